"""
One commit-reveal registration attempt for a single (wallet, name) pair.

    START -> CHECK_AVAILABILITY -> COMMIT -> AWAIT_COMMIT_CONFIRMATION
          -> REVEAL_WAIT -> RESOLVE_PRICE -> REGISTER
          -> AWAIT_REGISTRATION_CONFIRMATION -> DONE

Every path ends in exactly one ``AttemptResult``. Errors raised by the chain
client never leave ``CommitRevealAttempt.run``; they become a FAILED result.
"""

import asyncio
import enum
import logging
import secrets
from dataclasses import dataclass
from typing import Optional

from colorama import Fore

from .errors import CapabilityUnsupported, failure_reason
from .pricing import resolve_price

logger = logging.getLogger(__name__)


class Outcome(enum.Enum):
    REGISTERED = "registered"
    SKIPPED_UNAVAILABLE = "skipped"
    FAILED = "failed"


class AttemptState(enum.Enum):
    START = "start"
    CHECK_AVAILABILITY = "check_availability"
    COMMIT = "commit"
    AWAIT_COMMIT_CONFIRMATION = "await_commit_confirmation"
    REVEAL_WAIT = "reveal_wait"
    RESOLVE_PRICE = "resolve_price"
    REGISTER = "register"
    AWAIT_REGISTRATION_CONFIRMATION = "await_registration_confirmation"
    DONE = "done"


@dataclass(frozen=True)
class AttemptResult:
    index: int
    name: str
    outcome: Outcome
    tx_hash: Optional[str] = None
    commit_tx_hash: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def registered(cls, index, name, tx_hash, commit_tx_hash=None):
        return cls(index, name, Outcome.REGISTERED, tx_hash=tx_hash, commit_tx_hash=commit_tx_hash)

    @classmethod
    def skipped(cls, index, name):
        return cls(index, name, Outcome.SKIPPED_UNAVAILABLE)

    @classmethod
    def failed(cls, index, name, reason, commit_tx_hash=None):
        return cls(index, name, Outcome.FAILED, commit_tx_hash=commit_tx_hash, reason=reason)

    @property
    def ok(self):
        return self.outcome is Outcome.REGISTERED

    def describe(self, explorer_url=""):
        if self.outcome is Outcome.REGISTERED:
            return f"{self.index} - {self.name} registered in {explorer_url}{self.tx_hash}"
        if self.outcome is Outcome.SKIPPED_UNAVAILABLE:
            return f"{self.index} - {self.name} already taken, skipped"
        return f"{self.index} - {self.name} failed: {self.reason}"


class CommitRevealAttempt:
    def __init__(self, index, name, client, config, sleep=asyncio.sleep, explorer_url=""):
        self.index = index
        self.name = name
        self.client = client
        self.config = config
        self.sleep = sleep
        self.explorer_url = explorer_url
        self.state = AttemptState.START
        self.secret = None
        self.commit_tx_hash = None

    def _params(self):
        config = self.config
        return (
            self.name,
            self.client.address,
            config.duration,
            self.secret,
            config.resolver,
            config.data,
            config.reverse_record,
            config.fuses,
        )

    async def run(self):
        try:
            result = await self._run()
        except Exception as e:
            result = AttemptResult.failed(
                self.index, self.name, failure_reason(e), commit_tx_hash=self.commit_tx_hash
            )
        self.state = AttemptState.DONE
        self._report(result)
        return result

    async def _run(self):
        caps = self.client.capabilities
        self.secret = secrets.token_bytes(32)

        self.state = AttemptState.CHECK_AVAILABILITY
        available = True
        try:
            if not caps.available:
                raise CapabilityUnsupported("available")
            available = await self.client.is_available(self.name)
        except CapabilityUnsupported:
            if not self.config.assume_available_when_unsupported:
                raise
            logger.debug(f"{self.index} - availability unknown for {self.name}, assuming available")
        if not available:
            return AttemptResult.skipped(self.index, self.name)

        self.state = AttemptState.COMMIT
        if not caps.make_commitment:
            raise CapabilityUnsupported("makeCommitment")
        if not caps.commit:
            raise CapabilityUnsupported("commit")
        commitment = await self.client.compute_commitment(*self._params())
        self.commit_tx_hash = await self.client.submit_commit(commitment)
        logger.info(f"{self.index} - Commit {self.name} -> {self.commit_tx_hash}")

        self.state = AttemptState.AWAIT_COMMIT_CONFIRMATION
        await self.client.confirm(self.commit_tx_hash)

        self.state = AttemptState.REVEAL_WAIT
        logger.debug(f"{self.index} - waiting {self.config.reveal_wait}s before revealing {self.name}")
        await self.sleep(self.config.reveal_wait)

        self.state = AttemptState.RESOLVE_PRICE
        price = await self._resolve_price()

        self.state = AttemptState.REGISTER
        if not caps.register:
            raise CapabilityUnsupported("register")
        tx_hash = await self.client.submit_register(*self._params(), price)
        logger.info(f"{self.index} - Register {self.name} -> {tx_hash}")

        self.state = AttemptState.AWAIT_REGISTRATION_CONFIRMATION
        await self.client.confirm(tx_hash)
        return AttemptResult.registered(self.index, self.name, tx_hash, self.commit_tx_hash)

    async def _resolve_price(self):
        fallback = self.config.fallback_price
        if not self.client.capabilities.rent_price:
            return fallback
        try:
            quote = await self.client.query_rent_price(self.name, self.config.duration)
        except Exception as e:
            logger.debug(f"rentPrice unavailable for {self.name} ({failure_reason(e)}), using fallback")
            return fallback
        return resolve_price(quote, fallback)

    def _report(self, result):
        line = result.describe(self.explorer_url)
        if result.outcome is Outcome.REGISTERED:
            logger.info(line, extra={"color": Fore.GREEN})
        elif result.outcome is Outcome.SKIPPED_UNAVAILABLE:
            logger.info(line, extra={"color": Fore.YELLOW})
        else:
            logger.error(line)
