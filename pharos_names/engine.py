import asyncio
import logging

from colorama import Fore
from web3 import Web3

from .attempt import CommitRevealAttempt, Outcome
from .errors import failure_reason
from .names import generate_label

logger = logging.getLogger(__name__)


class RegistrationEngine:
    """Runs ``config.attempts`` commit-reveal attempts back to back for one wallet.

    Attempts are strictly sequential: each one owns the wallet's nonce while it
    runs. Only a successful registration is followed by the throttle delay, and
    no outcome stops the loop early.
    """

    def __init__(self, wallet, client, config, generate=generate_label, sleep=asyncio.sleep, explorer_url=""):
        self.wallet = wallet
        self.client = client
        self.config = config
        self.generate = generate
        self.sleep = sleep
        self.explorer_url = explorer_url

    async def _log_wallet(self):
        try:
            balance = await self.client.get_balance()
        except Exception as e:
            logger.warning(f"Owner {self.wallet.address}: balance unavailable ({failure_reason(e)})")
            return
        if balance is None:
            logger.info(f"Owner: {self.wallet.address}", extra={"color": Fore.BLUE})
        else:
            logger.info(
                f"Owner: {self.wallet.address} | Balance: {Web3.from_wei(balance, 'ether')}",
                extra={"color": Fore.BLUE},
            )

    async def run(self):
        await self._log_wallet()
        results = []
        for i in range(self.config.attempts):
            name = self.generate(self.config.label_min, self.config.label_max)
            attempt = CommitRevealAttempt(
                i, name, self.client, self.config,
                sleep=self.sleep, explorer_url=self.explorer_url,
            )
            result = await attempt.run()
            results.append(result)
            if result.outcome is Outcome.REGISTERED and self.config.throttle > 0:
                await self.sleep(self.config.throttle)

        registered = sum(1 for r in results if r.outcome is Outcome.REGISTERED)
        logger.info(
            f"{self.wallet.masked()} finished: {registered}/{len(results)} registered",
            extra={"color": Fore.CYAN},
        )
        return results
