"""
Registrar controller access.

``ChainClient`` is the async surface the attempts talk to. Which controller
methods exist depends on the deployment, so every client carries a
``Capabilities`` value fixed at construction time and callers branch on it
instead of probing per call. ``Web3ChainClient`` is the web3.py implementation
bound to one wallet.
"""

import abc
import asyncio
import functools
import json
import logging
from dataclasses import dataclass, replace
from pathlib import Path

import requests
from eth_abi import encode
from eth_account import Account
from eth_utils import function_abi_to_4byte_selector
from fake_useragent import FakeUserAgent
from hexbytes import HexBytes
from web3 import Web3
from web3.exceptions import BadFunctionCallOutput, ContractLogicError, TimeExhausted, Web3Exception
from web3.middleware import ExtraDataToPOAMiddleware

from .errors import CapabilityUnsupported, ConfigurationError, TransientChainError, failure_reason
from .pricing import decode_rent_price

logger = logging.getLogger(__name__)

# ENS-style registrar controller (commit / register with resolver data and fuses)
CONTROLLER_ABI = json.loads('''[
    {"inputs": [{"internalType": "string", "name": "name", "type": "string"}],
     "name": "available",
     "outputs": [{"internalType": "bool", "name": "", "type": "bool"}],
     "stateMutability": "view", "type": "function"},
    {"inputs": [{"internalType": "string", "name": "name", "type": "string"},
                {"internalType": "uint256", "name": "duration", "type": "uint256"}],
     "name": "rentPrice",
     "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
     "stateMutability": "view", "type": "function"},
    {"inputs": [{"internalType": "string", "name": "name", "type": "string"},
                {"internalType": "address", "name": "owner", "type": "address"},
                {"internalType": "uint256", "name": "duration", "type": "uint256"},
                {"internalType": "bytes32", "name": "secret", "type": "bytes32"},
                {"internalType": "address", "name": "resolver", "type": "address"},
                {"internalType": "bytes[]", "name": "data", "type": "bytes[]"},
                {"internalType": "bool", "name": "reverseRecord", "type": "bool"},
                {"internalType": "uint16", "name": "ownerControlledFuses", "type": "uint16"}],
     "name": "makeCommitment",
     "outputs": [{"internalType": "bytes32", "name": "", "type": "bytes32"}],
     "stateMutability": "view", "type": "function"},
    {"inputs": [{"internalType": "bytes32", "name": "commitment", "type": "bytes32"}],
     "name": "commit", "outputs": [],
     "stateMutability": "nonpayable", "type": "function"},
    {"inputs": [{"internalType": "string", "name": "name", "type": "string"},
                {"internalType": "address", "name": "owner", "type": "address"},
                {"internalType": "uint256", "name": "duration", "type": "uint256"},
                {"internalType": "bytes32", "name": "secret", "type": "bytes32"},
                {"internalType": "address", "name": "resolver", "type": "address"},
                {"internalType": "bytes[]", "name": "data", "type": "bytes[]"},
                {"internalType": "bool", "name": "reverseRecord", "type": "bool"},
                {"internalType": "uint16", "name": "ownerControlledFuses", "type": "uint16"}],
     "name": "register", "outputs": [],
     "stateMutability": "payable", "type": "function"}
]''')

# capability flag -> controller function name
OPERATIONS = {
    "available": "available",
    "make_commitment": "makeCommitment",
    "commit": "commit",
    "rent_price": "rentPrice",
    "register": "register",
}

RENT_PRICE_SELECTOR = Web3.keccak(text="rentPrice(string,uint256)")[:4]


@dataclass(frozen=True)
class Capabilities:
    available: bool = True
    make_commitment: bool = True
    commit: bool = True
    rent_price: bool = True
    register: bool = True

    @classmethod
    def from_abi(cls, abi, bytecode=None):
        """Flags for the functions declared in ``abi``.

        With ``bytecode`` a function also has to have its selector present in
        the deployed code to count as supported.
        """
        functions = {
            item["name"]: item
            for item in abi
            if item.get("type") == "function" and "name" in item
        }
        code = bytes(bytecode) if bytecode is not None else None
        flags = {}
        for flag, fn_name in OPERATIONS.items():
            fn_abi = functions.get(fn_name)
            supported = fn_abi is not None
            if supported and code is not None:
                supported = function_abi_to_4byte_selector(fn_abi) in code
            flags[flag] = supported
        return cls(**flags)

    def missing(self):
        return [flag for flag in OPERATIONS if not getattr(self, flag)]


class ChainClient(abc.ABC):
    """Async access to one registrar controller on behalf of one wallet."""

    capabilities = Capabilities()

    @property
    @abc.abstractmethod
    def address(self):
        """Checksummed address of the signing wallet."""

    @abc.abstractmethod
    async def is_available(self, name):
        ...

    @abc.abstractmethod
    async def compute_commitment(self, name, owner, duration, secret, resolver, data, reverse_record, fuses):
        ...

    @abc.abstractmethod
    async def submit_commit(self, commitment):
        """Send ``commit(commitment)`` and return the tx hash (hex)."""

    @abc.abstractmethod
    async def confirm(self, tx_hash):
        """Block until ``tx_hash`` is mined; raise TransientChainError on revert or timeout."""

    @abc.abstractmethod
    async def query_rent_price(self, name, duration):
        """Return an ``int`` or a ``(base, premium)`` pair."""

    @abc.abstractmethod
    async def submit_register(self, name, owner, duration, secret, resolver, data, reverse_record, fuses, payment):
        """Send the payable ``register(...)`` and return the tx hash (hex)."""

    async def get_balance(self):
        return None


def load_abi(path):
    """Read a controller ABI from a JSON file (bare list or an artifact with an ``abi`` key)."""
    try:
        content = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Cannot read controller ABI {path}: {e}") from e
    if isinstance(content, dict):
        content = content.get("abi")
    if not isinstance(content, list):
        raise ConfigurationError(f"Controller ABI {path} is not a list of entries")
    return content


def create_web3(rpc_url, timeout=60):
    session = requests.Session()
    session.headers.update({
        "Accept": "application/json",
        "Content-Type": "application/json",
        "User-Agent": FakeUserAgent().random,
    })
    w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}, session=session))
    w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
    return w3


class Web3ChainClient(ChainClient):
    def __init__(self, wallet, network, w3=None):
        self.network = network
        self.w3 = w3 or create_web3(network.rpc_url)
        self.account = Account.from_key(wallet.private_key)

        abi = load_abi(network.abi_path) if network.abi_path else CONTROLLER_ABI
        self.contract = self.w3.eth.contract(address=network.controller, abi=abi)

        bytecode = None
        if network.probe_bytecode:
            bytecode = self.w3.eth.get_code(network.controller)
            if not bytecode:
                raise ConfigurationError(f"No contract deployed at {network.controller}")
        self.capabilities = Capabilities.from_abi(abi, bytecode)
        if self.capabilities.missing():
            logger.warning(f"Controller lacks: {', '.join(self.capabilities.missing())}")

        self.chain_id = self._verify_chain_id(network.chain_id)

    @classmethod
    async def connect(cls, wallet, network):
        """Construct off the event loop; connecting does blocking RPC calls."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(cls, wallet, network))

    @property
    def address(self):
        return self.account.address

    def _verify_chain_id(self, expected):
        try:
            network_chain_id = self.w3.eth.chain_id
        except (Web3Exception, requests.RequestException) as e:
            raise ConfigurationError(f"Cannot reach RPC {self.network.rpc_url}: {e}") from e
        if expected is not None and network_chain_id != expected:
            logger.warning(f"Chain ID mismatch: expected {expected}, got {network_chain_id}")
        return network_chain_id

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, functools.partial(func, *args))
        except (Web3Exception, requests.RequestException, ValueError) as e:
            raise TransientChainError(failure_reason(e)) from e

    def _require(self, flag):
        if not getattr(self.capabilities, flag):
            raise CapabilityUnsupported(OPERATIONS[flag])

    def _send(self, fn_call, value=0):
        tx_params = {
            "from": self.address,
            "value": value,
            "nonce": self.w3.eth.get_transaction_count(self.address, "pending"),
            "chainId": self.chain_id,
            "gasPrice": self.w3.eth.gas_price,
        }
        estimated_gas = fn_call.estimate_gas({"from": self.address, "value": value})
        tx_params["gas"] = int(estimated_gas * self.network.gas_multiplier)
        tx = fn_call.build_transaction(tx_params)
        signed_tx = self.account.sign_transaction(tx)
        raw_tx = self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)
        return self.w3.to_hex(raw_tx)

    def _wait(self, tx_hash):
        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.network.receipt_timeout
            )
        except TimeExhausted as e:
            raise TransientChainError(
                f"timed out after {self.network.receipt_timeout}s waiting for {tx_hash}"
            ) from e
        if receipt.get("status") != 1:
            raise TransientChainError("execution reverted")
        return receipt

    def _call_available(self, name):
        try:
            return self.contract.functions.available(name).call()
        except (ContractLogicError, BadFunctionCallOutput) as e:
            raise CapabilityUnsupported("available") from e

    async def is_available(self, name):
        """Ask the controller whether ``name`` is free.

        A contract-level failure of ``available()`` means the deployment does
        not really implement it; the flag is dropped so later attempts on this
        client skip the call. Network errors stay TransientChainError.
        """
        self._require("available")
        try:
            return bool(await self._run(self._call_available, name))
        except CapabilityUnsupported:
            if self.capabilities.available:
                logger.warning("available() reverts on this controller, treating it as unsupported")
                self.capabilities = replace(self.capabilities, available=False)
            raise

    async def compute_commitment(self, name, owner, duration, secret, resolver, data, reverse_record, fuses):
        self._require("make_commitment")
        fn_call = self.contract.functions.makeCommitment(
            name, owner, duration, secret, resolver, list(data), reverse_record, fuses
        )
        return bytes(await self._run(fn_call.call))

    async def submit_commit(self, commitment):
        self._require("commit")
        return await self._run(self._send, self.contract.functions.commit(commitment))

    async def confirm(self, tx_hash):
        return await self._run(self._wait, tx_hash)

    async def query_rent_price(self, name, duration):
        self._require("rent_price")
        data = RENT_PRICE_SELECTOR + encode(["string", "uint256"], [name, duration])
        raw = await self._run(
            self.w3.eth.call, {"to": self.network.controller, "data": HexBytes(data)}
        )
        return decode_rent_price(raw)

    async def submit_register(self, name, owner, duration, secret, resolver, data, reverse_record, fuses, payment):
        self._require("register")
        fn_call = self.contract.functions.register(
            name, owner, duration, secret, resolver, list(data), reverse_record, fuses
        )
        return await self._run(self._send, fn_call, payment)

    async def get_balance(self):
        return await self._run(self.w3.eth.get_balance, self.address)
