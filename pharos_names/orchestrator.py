"""
Batch fan-out: one RegistrationEngine per wallet, all running concurrently.

Each wallet task captures its own failure into its ``WalletOutcome`` so the
join below only ever sees settled results; one wallet blowing up (bad RPC,
client construction error, anything) never cancels the others.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .attempt import AttemptResult, Outcome
from .engine import RegistrationEngine
from .errors import ConfigurationError, failure_reason

logger = logging.getLogger(__name__)


@dataclass
class WalletOutcome:
    address: str
    results: List[AttemptResult] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self):
        return self.error is None

    def count(self, outcome):
        return sum(1 for r in self.results if r.outcome is outcome)

    @property
    def outcomes(self):
        return [r.outcome for r in self.results]


@dataclass
class BatchOutcome:
    wallets: List[WalletOutcome]

    def _total(self, outcome):
        return sum(w.count(outcome) for w in self.wallets)

    @property
    def registered(self):
        return self._total(Outcome.REGISTERED)

    @property
    def skipped(self):
        return self._total(Outcome.SKIPPED_UNAVAILABLE)

    @property
    def failed(self):
        return self._total(Outcome.FAILED)

    @property
    def wallet_errors(self):
        return sum(1 for w in self.wallets if not w.ok)

    def for_wallet(self, address):
        for outcome in self.wallets:
            if outcome.address == address:
                return outcome
        raise KeyError(address)

    def summary_lines(self):
        lines = []
        for w in self.wallets:
            line = (
                f"{w.address}: registered {w.count(Outcome.REGISTERED)}, "
                f"skipped {w.count(Outcome.SKIPPED_UNAVAILABLE)}, "
                f"failed {w.count(Outcome.FAILED)}"
            )
            if w.error:
                line += f" | wallet error: {w.error}"
            lines.append(line)
        lines.append(
            f"Total: registered {self.registered}, skipped {self.skipped}, "
            f"failed {self.failed}, wallet errors {self.wallet_errors}"
        )
        return lines


def default_engine_factory(wallet, client, config, explorer_url=""):
    return RegistrationEngine(wallet, client, config, explorer_url=explorer_url)


class Orchestrator:
    def __init__(self, wallets, config, client_factory, engine_factory=default_engine_factory, explorer_url=""):
        """
        Args:
            wallets: the Wallets to run, one engine each.
            config: shared, frozen RegistrationConfig.
            client_factory: ``async (wallet) -> ChainClient``.
            engine_factory: ``(wallet, client, config, explorer_url) -> engine`` with ``async run()``.
        """
        wallets = list(wallets)
        if not wallets:
            raise ConfigurationError("No wallets to register with")
        self.wallets = wallets
        self.config = config
        self.client_factory = client_factory
        self.engine_factory = engine_factory
        self.explorer_url = explorer_url

    async def _run_wallet(self, wallet):
        outcome = WalletOutcome(address=wallet.address)
        try:
            client = await self.client_factory(wallet)
            engine = self.engine_factory(wallet, client, self.config, self.explorer_url)
            outcome.results = await engine.run()
        except Exception as e:
            outcome.error = failure_reason(e)
            logger.error(f"Wallet {wallet.address} stopped: {outcome.error}")
        return outcome

    async def run(self):
        logger.info(f"{len(self.wallets)} wallets, {self.config.attempts} attempts each")
        outcomes = await asyncio.gather(*(self._run_wallet(w) for w in self.wallets))
        return BatchOutcome(wallets=list(outcomes))
