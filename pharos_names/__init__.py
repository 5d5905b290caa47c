"""Bulk commit-reveal name registration for ENS-style registrar controllers."""

__version__ = "0.1.0"

from .attempt import AttemptResult, AttemptState, CommitRevealAttempt, Outcome
from .chain import Capabilities, ChainClient, Web3ChainClient
from .config import NetworkConfig, RegistrationConfig, Settings, Wallet, load_settings
from .engine import RegistrationEngine
from .errors import CapabilityUnsupported, ConfigurationError, RegistrarError, TransientChainError
from .names import generate_label
from .orchestrator import BatchOutcome, Orchestrator, WalletOutcome
