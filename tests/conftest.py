import pytest

from pharos_names.chain import Capabilities, ChainClient
from pharos_names.config import RegistrationConfig, Wallet
from pharos_names.errors import TransientChainError

# well-known throwaway key from the web3.py docs
TEST_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"


class FakeChainClient(ChainClient):
    """In-memory controller. Every call is appended to ``events`` as ``(op, name)``."""

    def __init__(self, address="0x2c7536E3605D9C16a7a3D7b1898e529396a65c23", capabilities=None,
                 events=None, unavailable=(), revert_commit=(), revert_register=(),
                 price=200, price_error=None, errors=None, balance=10 ** 18):
        self._address = address
        self.capabilities = capabilities or Capabilities()
        self.events = events if events is not None else []
        self.unavailable = set(unavailable)
        self.revert_commit = set(revert_commit)
        self.revert_register = set(revert_register)
        self.price = price
        self.price_error = price_error
        self.errors = errors or {}
        self.balance = balance
        self.commitments = []
        self.registrations = []
        self._pending = {}
        self._tx = 0

    @property
    def address(self):
        return self._address

    def _record(self, op, name):
        self.events.append((op, name))
        if op in self.errors:
            raise self.errors[op]

    def _new_tx(self, kind, name):
        self._tx += 1
        tx_hash = f"0x{kind}{self._tx:04d}"
        self._pending[tx_hash] = (kind, name)
        return tx_hash

    async def is_available(self, name):
        self._record("is_available", name)
        return name not in self.unavailable

    async def compute_commitment(self, name, owner, duration, secret, resolver, data, reverse_record, fuses):
        self._record("compute_commitment", name)
        self.commitments.append((name, owner, duration, secret, resolver, data, reverse_record, fuses))
        return b"c" * 32

    async def submit_commit(self, commitment):
        name = self.commitments[-1][0]
        self._record("submit_commit", name)
        return self._new_tx("c", name)

    async def confirm(self, tx_hash):
        kind, name = self._pending[tx_hash]
        self._record(f"confirm_{'commit' if kind == 'c' else 'register'}", name)
        if (kind == "c" and name in self.revert_commit) or (kind == "r" and name in self.revert_register):
            raise TransientChainError("execution reverted")
        return {"status": 1, "transactionHash": tx_hash}

    async def query_rent_price(self, name, duration):
        self._record("query_rent_price", name)
        if self.price_error is not None:
            raise self.price_error
        return self.price

    async def submit_register(self, name, owner, duration, secret, resolver, data, reverse_record, fuses, payment):
        self._record("submit_register", name)
        self.registrations.append((name, owner, duration, secret, resolver, data, reverse_record, fuses, payment))
        return self._new_tx("r", name)

    async def get_balance(self):
        return self.balance

    def calls_for(self, name):
        return [op for op, n in self.events if n == name]


class RecordingSleep:
    def __init__(self, events=None):
        self.events = events if events is not None else []
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)
        self.events.append(("sleep", delay))


@pytest.fixture
def config():
    return RegistrationConfig(attempts=3, reveal_wait=65, throttle=0.8, fallback_price=1000)


@pytest.fixture
def wallet():
    return Wallet.from_key(TEST_KEY)


@pytest.fixture
def events():
    return []


@pytest.fixture
def client(events, wallet):
    return FakeChainClient(address=wallet.address, events=events)


@pytest.fixture
def sleep(events):
    return RecordingSleep(events)
