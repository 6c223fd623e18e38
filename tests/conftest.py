"""Shared fixtures: an in-memory fullnode and faucet behind httpx.MockTransport.

The fake node decodes submitted BCS transactions, checks signatures and
sequence numbers, and executes the managed-coin and primary-store functions
against a balance table, so client behaviour can be tested end to end
without a network.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import parse_qs

import httpx
import pytest

from fa_sdk.account import Account
from fa_sdk.assets import AssetQueryClient
from fa_sdk.client import ChainClient
from fa_sdk.coin import ManagedCoinClient
from fa_sdk.faucet import FaucetClient
from fa_sdk.identity import verify_signature
from fa_sdk.transport import NodeTransport
from fa_sdk.types import AccountAddress, ConfirmationPolicy, EntryFunctionId

NODE_URL = "http://fullnode.test"
FAUCET_URL = "http://faucet.test"
CHAIN_ID = 4
OWNER_ADDR = "0xd13c155015121b598283cf4290955a68bb659228b2aacacbcee2a851e48b4e49"
METADATA_ADDR = "0x" + "ab" * 32

FROZEN_STATUS = (
    "Move abort in 0x1::fungible_asset: ESTORE_IS_FROZEN(0x50003): "
    "The fungible store is frozen."
)
INSUFFICIENT_STATUS = (
    "Move abort in 0x1::fungible_asset: EINSUFFICIENT_BALANCE(0x10004): "
    "Insufficient balance in the fungible store."
)
NOT_OWNER_STATUS = "Move abort in 0xd13c::coin_example: ENOT_OWNER(0x50001): Not the owner."


# ---------------------------------------------------------------------------
# Module ABIs served by the fake node
# ---------------------------------------------------------------------------


def _fn(name: str, params: list[str], *, entry: bool = True, view: bool = False,
        generics: int = 0) -> dict[str, Any]:
    return {
        "name": name,
        "visibility": "public",
        "is_entry": entry,
        "is_view": view,
        "generic_type_params": [{"constraints": ["key"]}] * generics,
        "params": params,
        "return": [],
    }


COIN_ABI = {
    "address": OWNER_ADDR,
    "name": "coin_example",
    "exposed_functions": [
        _fn("get_metadata", [], entry=False, view=True),
        _fn("mint", ["&signer", "address", "u64"]),
        _fn("transfer", ["&signer", "address", "address", "u64"]),
        _fn("burn", ["&signer", "address", "u64"]),
        _fn("freeze_account", ["&signer", "address"]),
        _fn("unfreeze_account", ["&signer", "address"]),
    ],
}

STORE_ABI = {
    "address": "0x1",
    "name": "primary_fungible_store",
    "exposed_functions": [
        _fn("balance", ["address", "0x1::object::Object<T0>"], entry=False, view=True, generics=1),
        _fn("is_frozen", ["address", "0x1::object::Object<T0>"], entry=False, view=True, generics=1),
        _fn("transfer", ["&signer", "0x1::object::Object<T0>", "address", "u64"], generics=1),
    ],
}


# ---------------------------------------------------------------------------
# Minimal BCS reader for submitted transactions
# ---------------------------------------------------------------------------


class _Reader:
    def __init__(self, data: bytes) -> None:
        self.data = data
        self.pos = 0

    def take(self, n: int) -> bytes:
        chunk = self.data[self.pos:self.pos + n]
        if len(chunk) != n:
            raise ValueError("truncated BCS input")
        self.pos += n
        return chunk

    def uleb(self) -> int:
        value = shift = 0
        while True:
            byte = self.take(1)[0]
            value |= (byte & 0x7F) << shift
            if byte < 0x80:
                return value
            shift += 7

    def u64(self) -> int:
        return int.from_bytes(self.take(8), "little")

    def blob(self) -> bytes:
        return self.take(self.uleb())

    def string(self) -> str:
        return self.blob().decode("utf-8")

    def type_tag(self) -> str:
        variant = self.uleb()
        names = {0: "bool", 1: "u8", 2: "u64", 3: "u128", 4: "address", 5: "signer",
                 8: "u16", 9: "u32", 10: "u256"}
        if variant in names:
            return names[variant]
        if variant == 6:
            return f"vector<{self.type_tag()}>"
        address = AccountAddress(self.take(32))
        module, name = self.string(), self.string()
        args = [self.type_tag() for _ in range(self.uleb())]
        suffix = f"<{', '.join(args)}>" if args else ""
        return f"{address}::{module}::{name}{suffix}"


@dataclass
class DecodedTransaction:
    sender: AccountAddress
    sequence_number: int
    function: EntryFunctionId
    type_args: list[str]
    args: list[bytes]
    expiration: int
    chain_id: int
    public_key: bytes
    signature: bytes
    raw_bytes: bytes


def decode_signed_transaction(body: bytes) -> DecodedTransaction:
    r = _Reader(body)
    sender = AccountAddress(r.take(32))
    seq = r.u64()
    if r.uleb() != 2:
        raise ValueError("only entry-function payloads are supported")
    module_addr = AccountAddress(r.take(32))
    module = r.string()
    name = r.string()
    type_args = [r.type_tag() for _ in range(r.uleb())]
    args = [r.blob() for _ in range(r.uleb())]
    r.u64()  # max gas
    r.u64()  # gas unit price
    expiration = r.u64()
    chain_id = r.take(1)[0]
    raw_end = r.pos
    if r.uleb() != 0:
        raise ValueError("only Ed25519 authenticators are supported")
    public_key = r.blob()
    signature = r.blob()
    return DecodedTransaction(
        sender=sender,
        sequence_number=seq,
        function=EntryFunctionId(address=module_addr, module=module, name=name),
        type_args=type_args,
        args=args,
        expiration=expiration,
        chain_id=chain_id,
        public_key=public_key,
        signature=signature,
        raw_bytes=body[:raw_end],
    )


def node_transaction_hash(body: bytes) -> str:
    salt = hashlib.sha3_256(b"APTOS::Transaction").digest()
    return "0x" + hashlib.sha3_256(salt + b"\x00" + body).hexdigest()


# ---------------------------------------------------------------------------
# Fake node
# ---------------------------------------------------------------------------


class _Abort(Exception):
    def __init__(self, vm_status: str) -> None:
        super().__init__(vm_status)
        self.vm_status = vm_status


@dataclass
class FakeNode:
    owner: AccountAddress = field(default_factory=lambda: AccountAddress.from_str(OWNER_ADDR))
    metadata: AccountAddress = field(default_factory=lambda: AccountAddress.from_str(METADATA_ADDR))
    sequence_numbers: dict[AccountAddress, int] = field(default_factory=dict)
    balances: dict[AccountAddress, int] = field(default_factory=dict)
    frozen: set[AccountAddress] = field(default_factory=set)
    transactions: dict[str, dict[str, Any]] = field(default_factory=dict)
    pending_polls: dict[str, int] = field(default_factory=dict)
    submitted: list[DecodedTransaction] = field(default_factory=list)
    requests: list[httpx.Request] = field(default_factory=list)
    # Polls reported as pending before each new transaction commits.
    confirm_after: int = 0
    # Status reported when a frozen store tries to send.
    frozen_status: str = FROZEN_STATUS
    never_commit: bool = False
    version: int = 1000

    def __post_init__(self) -> None:
        self.sequence_numbers.setdefault(self.owner, 0)

    # ----- helpers ---------------------------------------------------------

    def balance(self, address: AccountAddress) -> int:
        return self.balances.get(address, 0)

    def total_supply(self) -> int:
        return sum(self.balances.values())

    def _commit(self, tx_hash: str, success: bool, vm_status: str) -> None:
        self.version += 1
        self.transactions[tx_hash] = {
            "type": "user_transaction",
            "hash": tx_hash,
            "version": str(self.version),
            "success": success,
            "vm_status": vm_status,
            "gas_used": "7",
        }
        self.pending_polls[tx_hash] = -1 if self.never_commit else self.confirm_after

    # ----- HTTP dispatch ---------------------------------------------------

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == "faucet.test":
            return self._faucet(request)

        path = request.url.path.removeprefix("/v1").strip("/")
        parts = path.split("/") if path else []

        if request.method == "GET" and not parts:
            return httpx.Response(200, json={
                "chain_id": CHAIN_ID,
                "ledger_version": str(self.version),
                "ledger_timestamp": "1700000000000000",
            })
        if request.method == "GET" and parts[0] == "accounts":
            return self._account(parts[1:])
        if request.method == "GET" and parts[:2] == ["transactions", "by_hash"]:
            return self._by_hash(parts[2])
        if request.method == "POST" and parts == ["transactions"]:
            return self._submit(request)
        if request.method == "POST" and parts == ["view"]:
            return self._view(json.loads(request.content))
        return httpx.Response(404, json={"message": "not found", "error_code": "web_framework_error"})

    def _account(self, parts: list[str]) -> httpx.Response:
        address = AccountAddress.from_str(parts[0])
        if len(parts) == 3 and parts[1] == "module":
            abi = {
                (self.owner, "coin_example"): COIN_ABI,
                (AccountAddress.from_str("0x1"), "primary_fungible_store"): STORE_ABI,
            }.get((address, parts[2]))
            if abi is None:
                return httpx.Response(404, json={
                    "message": f"Module not found: {parts[2]}",
                    "error_code": "module_not_found",
                })
            return httpx.Response(200, json={"bytecode": "0x00", "abi": abi})

        if address not in self.sequence_numbers:
            return httpx.Response(404, json={
                "message": f"Account not found by Address({address})",
                "error_code": "account_not_found",
            })
        return httpx.Response(200, json={
            "sequence_number": str(self.sequence_numbers[address]),
            "authentication_key": str(address),
        })

    def _by_hash(self, tx_hash: str) -> httpx.Response:
        if tx_hash not in self.transactions:
            return httpx.Response(404, json={
                "message": f"Transaction not found by Transaction hash({tx_hash})",
                "error_code": "transaction_not_found",
            })
        remaining = self.pending_polls.get(tx_hash, 0)
        if remaining != 0:
            self.pending_polls[tx_hash] = remaining - 1 if remaining > 0 else -1
            return httpx.Response(200, json={"type": "pending_transaction", "hash": tx_hash})
        return httpx.Response(200, json=self.transactions[tx_hash])

    def _reject(self, message: str, vm_error_code: int) -> httpx.Response:
        return httpx.Response(400, json={
            "message": message,
            "error_code": "vm_error",
            "vm_error_code": vm_error_code,
        })

    def _submit(self, request: httpx.Request) -> httpx.Response:
        if request.headers.get("content-type") != "application/x.aptos.signed_transaction+bcs":
            return httpx.Response(415, json={"message": "unsupported media type"})
        body = request.content
        tx = decode_signed_transaction(body)
        salt = hashlib.sha3_256(b"APTOS::RawTransaction").digest()
        if not verify_signature(tx.public_key, salt + tx.raw_bytes, tx.signature):
            return self._reject("Invalid transaction: Type: Validation Code: INVALID_SIGNATURE", 1)
        if tx.chain_id != CHAIN_ID:
            return self._reject("Invalid transaction: Type: Validation Code: BAD_CHAIN_ID", 2)
        if tx.sender not in self.sequence_numbers:
            return self._reject(
                "Invalid transaction: Type: Validation Code: SENDING_ACCOUNT_DOES_NOT_EXIST", 3
            )
        if tx.sequence_number != self.sequence_numbers[tx.sender]:
            return self._reject(
                "Invalid transaction: Type: Validation Code: SEQUENCE_NUMBER_TOO_OLD", 4
            )

        self.submitted.append(tx)
        self.sequence_numbers[tx.sender] += 1
        tx_hash = node_transaction_hash(body)
        try:
            self._execute(tx)
        except _Abort as abort:
            self._commit(tx_hash, False, abort.vm_status)
        else:
            self._commit(tx_hash, True, "Executed successfully")
        return httpx.Response(202, json={"hash": tx_hash, "sender": str(tx.sender)})

    # ----- Move semantics --------------------------------------------------

    @staticmethod
    def _addr(arg: bytes) -> AccountAddress:
        return AccountAddress(arg)

    @staticmethod
    def _u64(arg: bytes) -> int:
        return int.from_bytes(arg, "little")

    def _debit(self, address: AccountAddress, amount: int) -> None:
        if self.balance(address) < amount:
            raise _Abort(INSUFFICIENT_STATUS)
        self.balances[address] = self.balance(address) - amount

    def _credit(self, address: AccountAddress, amount: int) -> None:
        self.balances[address] = self.balance(address) + amount

    def _execute(self, tx: DecodedTransaction) -> None:
        fn = tx.function
        a = tx.args
        if fn.address == self.owner and fn.module == "coin_example":
            if tx.sender != self.owner:
                raise _Abort(NOT_OWNER_STATUS)
            if fn.name == "mint":
                self._credit(self._addr(a[0]), self._u64(a[1]))
            elif fn.name == "transfer":
                amount = self._u64(a[2])
                self._debit(self._addr(a[0]), amount)
                self._credit(self._addr(a[1]), amount)
            elif fn.name == "burn":
                self._debit(self._addr(a[0]), self._u64(a[1]))
            elif fn.name == "freeze_account":
                self.frozen.add(self._addr(a[0]))
            elif fn.name == "unfreeze_account":
                self.frozen.discard(self._addr(a[0]))
            return

        if str(fn) == "0x1::primary_fungible_store::transfer":
            if self._addr(a[0]) != self.metadata:
                raise _Abort("Move abort in 0x1::object: EOBJECT_DOES_NOT_EXIST(0x60002)")
            to, amount = self._addr(a[1]), self._u64(a[2])
            if tx.sender in self.frozen or to in self.frozen:
                raise _Abort(self.frozen_status)
            self._debit(tx.sender, amount)
            self._credit(to, amount)
            return
        raise _Abort("FUNCTION_RESOLUTION_FAILURE")

    def _view(self, payload: dict[str, Any]) -> httpx.Response:
        fn = EntryFunctionId.from_str(payload["function"])
        args = payload["arguments"]
        if fn.address == self.owner and fn.name == "get_metadata":
            return httpx.Response(200, json=[{"inner": str(self.metadata)}])
        if str(fn) == "0x1::primary_fungible_store::balance":
            assert payload["type_arguments"] == ["0x1::fungible_asset::Metadata"]
            holder = AccountAddress.from_str(args[0])
            return httpx.Response(200, json=[str(self.balance(holder))])
        if str(fn) == "0x1::primary_fungible_store::is_frozen":
            return httpx.Response(200, json=[AccountAddress.from_str(args[0]) in self.frozen])
        return httpx.Response(400, json={
            "message": f"function {fn} not found",
            "error_code": "invalid_input",
        })

    # ----- faucet ----------------------------------------------------------

    def _faucet(self, request: httpx.Request) -> httpx.Response:
        if request.url.path != "/mint":
            return httpx.Response(404, text="not found")
        query = parse_qs(request.url.query.decode())
        address = AccountAddress.from_str(query["address"][0])
        amount = int(query["amount"][0])
        if amount > 1_000_000_000:
            return httpx.Response(400, text="amount too large")
        self.sequence_numbers.setdefault(address, 0)
        tx_hash = "0x" + hashlib.sha3_256(b"faucet" + bytes(address) + str(self.version).encode()).hexdigest()
        self._commit(tx_hash, True, "Executed successfully")
        return httpx.Response(200, json=[tx_hash])


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def fake_node() -> FakeNode:
    return FakeNode()


@pytest.fixture()
def http_client(fake_node: FakeNode) -> httpx.Client:
    client = httpx.Client(transport=httpx.MockTransport(fake_node.handle))
    yield client
    client.close()


@pytest.fixture()
def chain(http_client: httpx.Client) -> ChainClient:
    return ChainClient(NodeTransport(NODE_URL, http_client=http_client))


@pytest.fixture()
def policy() -> ConfirmationPolicy:
    return ConfirmationPolicy(check_success=True, timeout=2.0, poll_interval=0)


@pytest.fixture()
def owner() -> Account:
    return Account.from_private_key(b"\x11" * 32, address=OWNER_ADDR)


@pytest.fixture()
def funded(fake_node: FakeNode):
    """Create and register fresh accounts on the fake node."""

    def _make() -> Account:
        account = Account.generate()
        fake_node.sequence_numbers[account.address] = 0
        return account

    return _make


@pytest.fixture()
def assets(chain: ChainClient) -> AssetQueryClient:
    return AssetQueryClient(chain)


@pytest.fixture()
def coin(chain: ChainClient) -> ManagedCoinClient:
    return ManagedCoinClient(chain)


@pytest.fixture()
def faucet(chain: ChainClient, http_client: httpx.Client) -> FaucetClient:
    return FaucetClient(FAUCET_URL, chain, http_client=http_client)
