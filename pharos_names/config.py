"""
Configuration for a registration batch.

Everything is read once at startup (``.env`` + environment, private keys from
``PRIVATE_KEYS`` or a key file) and frozen. Engines and attempts only ever
see the objects built here; nothing below reads ``os.environ`` on its own.
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv
from eth_account import Account
from eth_utils import is_address, to_checksum_address
from hexbytes import HexBytes
from web3 import Web3

from .errors import ConfigurationError
from .log import LOG_LEVELS

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# The registry rejects a register() made earlier than this after commit.
MIN_COMMITMENT_AGE = 60

DEFAULT_ATTEMPTS = 100
DEFAULT_DURATION = 30 * 24 * 60 * 60  # 1 month
DEFAULT_REVEAL_WAIT = 65
DEFAULT_THROTTLE = 0.8
DEFAULT_FALLBACK_PRICE = Web3.to_wei(Decimal("0.001"), "ether")
DEFAULT_LABEL_MIN = 6
DEFAULT_LABEL_MAX = 10
DEFAULT_EXPLORER_URL = "https://testnet.pharosscan.xyz/tx/"
DEFAULT_KEYS_FILE = "pkey.txt"


@dataclass(frozen=True)
class Wallet:
    address: str
    private_key: str = field(repr=False)

    @classmethod
    def from_key(cls, private_key):
        key = private_key.strip()
        if not key or key.removeprefix("0x") == "0" * 64:
            raise ConfigurationError("Invalid private key")
        try:
            account = Account.from_key(key)
        except Exception as e:
            raise ConfigurationError(f"Invalid private key: {e}") from e
        return cls(address=account.address, private_key=key)

    def masked(self):
        return f"{self.address[:6]}...{self.address[-4:]}"


@dataclass(frozen=True)
class RegistrationConfig:
    attempts: int = DEFAULT_ATTEMPTS
    duration: int = DEFAULT_DURATION
    resolver: str = ZERO_ADDRESS
    data: Tuple[bytes, ...] = ()
    reverse_record: bool = False
    fuses: int = 0
    reveal_wait: float = DEFAULT_REVEAL_WAIT
    throttle: float = DEFAULT_THROTTLE
    fallback_price: int = DEFAULT_FALLBACK_PRICE
    label_min: int = DEFAULT_LABEL_MIN
    label_max: int = DEFAULT_LABEL_MAX
    assume_available_when_unsupported: bool = True

    def __post_init__(self):
        if self.attempts < 0:
            raise ConfigurationError("attempts must not be negative")
        if self.duration <= 0:
            raise ConfigurationError("duration must be positive")
        if not is_address(self.resolver):
            raise ConfigurationError(f"Invalid resolver address: {self.resolver}")
        if not 0 <= self.fuses <= 0xFFFF:
            raise ConfigurationError("fuses must fit in uint16")
        if self.reveal_wait <= MIN_COMMITMENT_AGE:
            raise ConfigurationError(
                f"reveal wait must exceed the minimum commitment age ({MIN_COMMITMENT_AGE}s)"
            )
        if self.throttle < 0:
            raise ConfigurationError("throttle must not be negative")
        if self.fallback_price < 0:
            raise ConfigurationError("fallback price must not be negative")
        if not 1 <= self.label_min <= self.label_max:
            raise ConfigurationError(
                f"label bounds must satisfy 1 <= min <= max, got {self.label_min}..{self.label_max}"
            )
        object.__setattr__(self, "resolver", to_checksum_address(self.resolver))
        object.__setattr__(self, "data", tuple(bytes(HexBytes(d)) for d in self.data))


@dataclass(frozen=True)
class NetworkConfig:
    rpc_url: str
    controller: str
    chain_id: Optional[int] = None
    explorer_url: str = DEFAULT_EXPLORER_URL
    receipt_timeout: int = 300
    gas_multiplier: float = 1.2
    abi_path: Optional[str] = None
    probe_bytecode: bool = False

    def __post_init__(self):
        if not self.rpc_url:
            raise ConfigurationError("RPC_URL is not set")
        if not self.controller or not is_address(self.controller):
            raise ConfigurationError(f"Invalid controller address: {self.controller!r}")
        if self.gas_multiplier < 1:
            raise ConfigurationError("gas multiplier must be >= 1")
        object.__setattr__(self, "controller", to_checksum_address(self.controller))

    def tx_url(self, tx_hash):
        return f"{self.explorer_url}{tx_hash}"


@dataclass(frozen=True)
class Settings:
    network: NetworkConfig
    registration: RegistrationConfig
    wallets: Tuple[Wallet, ...]
    log_file: Optional[str] = None
    log_level: str = "INFO"


def _get_bool(environ, key, default):
    raw = environ.get(key)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise ConfigurationError(f"{key} must be a boolean, got {raw!r}")


def _get_number(environ, key, default, cast=int):
    raw = environ.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw.strip())
    except (ValueError, InvalidOperation) as e:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}") from e
    if isinstance(value, (Decimal, float)) and not Decimal(value).is_finite():
        raise ConfigurationError(f"{key} must be a finite number, got {raw!r}")
    return value


def parse_private_keys(text):
    """Split a comma or newline separated key list, dropping blanks and comments."""
    keys = []
    for line in text.replace(",", "\n").splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            keys.append(line)
    return keys


def load_wallets(environ, keys_file=None):
    raw = environ.get("PRIVATE_KEYS", "")
    keys = parse_private_keys(raw)
    if not keys:
        path = Path(keys_file or DEFAULT_KEYS_FILE)
        if path.is_file():
            keys = parse_private_keys(path.read_text(encoding="utf-8"))
    if not keys:
        raise ConfigurationError("PRIVATE_KEYS is not set and no key file was found")
    wallets = []
    seen = set()
    for key in keys:
        wallet = Wallet.from_key(key)
        # one engine per wallet, a duplicated key would share a nonce sequence
        if wallet.address in seen:
            raise ConfigurationError(f"Duplicate private key for {wallet.address}")
        seen.add(wallet.address)
        wallets.append(wallet)
    return tuple(wallets)


def load_registration_config(environ, attempts=None):
    days = _get_number(environ, "DURATION_DAYS", Decimal(DEFAULT_DURATION) / 86400, Decimal)
    fallback_eth = _get_number(environ, "FALLBACK_PRICE_ETH", None, Decimal)
    data = tuple(d for d in environ.get("RECORD_DATA", "").split(",") if d.strip())
    try:
        return RegistrationConfig(
            attempts=attempts if attempts is not None else _get_number(environ, "HOW_MANY", DEFAULT_ATTEMPTS),
            duration=int(days * 86400),
            resolver=environ.get("RESOLVER") or ZERO_ADDRESS,
            data=tuple(d.strip() for d in data),
            reverse_record=_get_bool(environ, "REVERSE_RECORD", False),
            fuses=_get_number(environ, "FUSES", 0),
            reveal_wait=_get_number(environ, "COMMIT_WAIT_SECONDS", DEFAULT_REVEAL_WAIT, float),
            throttle=_get_number(environ, "THROTTLE_SECONDS", DEFAULT_THROTTLE, float),
            fallback_price=(
                Web3.to_wei(fallback_eth, "ether") if fallback_eth is not None else DEFAULT_FALLBACK_PRICE
            ),
            label_min=_get_number(environ, "LABEL_MIN", DEFAULT_LABEL_MIN),
            label_max=_get_number(environ, "LABEL_MAX", DEFAULT_LABEL_MAX),
            assume_available_when_unsupported=_get_bool(environ, "ASSUME_AVAILABLE", True),
        )
    except ValueError as e:
        # hex decoding of RECORD_DATA
        raise ConfigurationError(f"Invalid registration setting: {e}") from e


def load_network_config(environ):
    return NetworkConfig(
        rpc_url=environ.get("RPC_URL", "").strip(),
        controller=environ.get("CONTROLLER", "").strip(),
        chain_id=_get_number(environ, "CHAIN_ID", None),
        explorer_url=environ.get("EXPLORER_URL") or DEFAULT_EXPLORER_URL,
        receipt_timeout=_get_number(environ, "RECEIPT_TIMEOUT", 300),
        gas_multiplier=_get_number(environ, "GAS_MULTIPLIER", 1.2, float),
        abi_path=environ.get("CONTROLLER_ABI") or None,
        probe_bytecode=_get_bool(environ, "PROBE_BYTECODE", False),
    )


def load_settings(env_file=None, keys_file=None, environ=None, attempts=None):
    """Build the frozen settings for one run.

    ``environ`` defaults to ``os.environ`` after loading ``env_file`` (or the
    nearest ``.env``). Raises ConfigurationError on anything missing or bad.
    """
    if environ is None:
        load_dotenv(env_file)
        environ = os.environ
    network = load_network_config(environ)
    registration = load_registration_config(environ, attempts=attempts)
    wallets = load_wallets(environ, keys_file=keys_file)
    log_level = (environ.get("LOG_LEVEL") or "INFO").strip().upper()
    if log_level not in LOG_LEVELS:
        raise ConfigurationError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {log_level!r}")
    return Settings(
        network=network,
        registration=registration,
        wallets=wallets,
        log_file=environ.get("LOG_FILE") or None,
        log_level=log_level,
    )
