"""Transaction lifecycle client for a fullnode.

:class:`ChainClient` turns an entry-function intent into a signed, submitted
transaction and offers a bounded wait for its outcome. Submission and
confirmation are separate calls so a caller may submit several transactions
before waiting on any of them. The demo scenario does not, because every step
depends on the previous one's effect.

The client keeps no state between calls beyond its configuration; sequence
numbers, chain id and module ABIs are read from the node when needed.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Sequence

from fa_sdk.account import Account
from fa_sdk.errors import (
    ConfirmationTimeout,
    ExecutionFailed,
    MalformedRequest,
    NodeApiError,
    NodeConnectionError,
    SubmissionRejected,
)
from fa_sdk.transaction import (
    RawTransactionBuilder,
    encode_arguments,
    sign_transaction,
    signed_transaction_bytes,
)
from fa_sdk.transport import NodeTransport
from fa_sdk.types import (
    AccountAddress,
    AccountInfo,
    ConfirmationPolicy,
    EntryFunctionId,
    LedgerInfo,
    MoveModuleAbi,
    SignedTransaction,
    TransactionOptions,
    TransactionReceipt,
    TransactionRequest,
    TypeTag,
)

logger = logging.getLogger(__name__)

_PENDING = "pending_transaction"

# Lower bound on the HTTP timeout of a single confirmation poll.
_MIN_POLL_TIMEOUT = 0.05


def _function_id(function: str | EntryFunctionId) -> EntryFunctionId:
    if isinstance(function, EntryFunctionId):
        return function
    try:
        return EntryFunctionId.from_str(function)
    except ValueError as exc:
        raise MalformedRequest(str(exc)) from exc


def _type_tags(type_args: Sequence[str | TypeTag]) -> tuple[TypeTag, ...]:
    tags: list[TypeTag] = []
    for arg in type_args:
        if isinstance(arg, TypeTag):
            tags.append(arg)
            continue
        try:
            tags.append(TypeTag.from_str(arg))
        except ValueError as exc:
            raise MalformedRequest(f"invalid type argument {arg!r}: {exc}") from exc
    return tuple(tags)


def _view_argument(value: Any) -> Any:
    """Render a Python value the way the JSON view endpoint expects it."""
    if isinstance(value, Account):
        return str(value.address)
    if isinstance(value, AccountAddress):
        return str(value)
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, (list, tuple)):
        return [_view_argument(v) for v in value]
    return value


class ChainClient:
    """Builds, signs, submits and confirms entry-function transactions.

    Args:
        transport: Node transport the client delegates HTTP to.
        options: Gas, expiration and optional fixed chain id.

    Example::

        with ChainClient.from_url("https://fullnode.testnet.aptoslabs.com") as chain:
            tx_hash = chain.submit_entry(owner, f"{owner.address}::coin_example::mint",
                                         [], [bob.address, 100])
            chain.wait_for_confirmation(tx_hash)
    """

    def __init__(
        self,
        transport: NodeTransport,
        options: TransactionOptions | None = None,
    ) -> None:
        self._transport = transport
        self._options = options or TransactionOptions()

    @classmethod
    def from_url(cls, node_url: str, **kwargs: Any) -> "ChainClient":
        return cls(NodeTransport(node_url), **kwargs)

    @property
    def transport(self) -> NodeTransport:
        return self._transport

    # ----- lifecycle -------------------------------------------------------

    def close(self) -> None:
        self._transport.close()

    def __enter__(self) -> "ChainClient":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # ----- node reads ------------------------------------------------------

    def ledger_info(self) -> LedgerInfo:
        return LedgerInfo.model_validate(self._transport.get(""))

    def chain_id(self) -> int:
        if self._options.chain_id is not None:
            return self._options.chain_id
        return self.ledger_info().chain_id

    def account_info(self, address: AccountAddress) -> AccountInfo:
        return AccountInfo.model_validate(self._transport.get(f"accounts/{address}"))

    def sequence_number(self, address: AccountAddress) -> int:
        """Next sequence number for *address*; an unknown account starts at 0."""
        try:
            return self.account_info(address).sequence_number
        except NodeApiError as exc:
            if exc.status_code != 404:
                raise
            return 0

    def module_abi(self, address: AccountAddress, module: str) -> MoveModuleAbi:
        body = self._transport.get(f"accounts/{address}/module/{module}")
        return MoveModuleAbi.model_validate(body["abi"])

    def transaction_by_hash(
        self, tx_hash: str, *, timeout: float | None = None
    ) -> dict[str, Any] | None:
        """Raw transaction JSON, or ``None`` while the node does not know it yet."""
        try:
            return self._transport.get(f"transactions/by_hash/{tx_hash}", timeout=timeout)
        except NodeApiError as exc:
            if exc.status_code == 404:
                return None
            raise

    # ----- transaction lifecycle -------------------------------------------

    def build_transaction(
        self,
        sender: AccountAddress,
        function: str | EntryFunctionId,
        type_args: Sequence[str | TypeTag] = (),
        args: Sequence[Any] = (),
    ) -> TransactionRequest:
        """Resolve *function* against its module ABI and encode *args*.

        Raises:
            MalformedRequest: If the function is not a deployed entry
                function, or the arguments do not fit its signature.
        """
        fn_id = _function_id(function)
        tags = _type_tags(type_args)
        try:
            abi = self.module_abi(fn_id.address, fn_id.module)
        except NodeApiError as exc:
            if exc.status_code == 404:
                raise MalformedRequest(
                    f"module {fn_id.address}::{fn_id.module} is not deployed"
                ) from exc
            raise

        fn = abi.function(fn_id.name)
        if fn is None:
            raise MalformedRequest(f"{fn_id} does not exist")
        if not fn.is_entry:
            raise MalformedRequest(f"{fn_id} is not an entry function")

        return TransactionRequest(
            sender=sender,
            function=fn_id,
            type_arguments=tags,
            arguments=encode_arguments(fn, tags, args),
        )

    def sign(
        self,
        account: Account,
        request: TransactionRequest,
        *,
        sequence_number: int | None = None,
        expiration_timestamp_secs: int | None = None,
    ) -> SignedTransaction:
        """Attach sequence number, gas and expiration, then sign.

        Fields not given are filled from the node and the configured options.
        With both given and a fixed chain id, no I/O happens and the result is
        deterministic.
        """
        if account.address != request.sender:
            raise MalformedRequest(
                f"account {account.address} cannot sign for sender {request.sender}"
            )
        if sequence_number is None:
            sequence_number = self.sequence_number(request.sender)

        builder = (
            RawTransactionBuilder()
            .request(request)
            .sequence_number(sequence_number)
            .gas(
                max_amount=self._options.max_gas_amount,
                unit_price=self._options.gas_unit_price,
            )
            .ttl(self._options.expiration_ttl)
            .chain_id(self.chain_id())
        )
        if expiration_timestamp_secs is not None:
            builder.expiration_timestamp_secs(expiration_timestamp_secs)
        return sign_transaction(builder.build(), account)

    def submit(self, signed: SignedTransaction) -> str:
        """Post a signed transaction to the mempool and return its hash.

        Raises:
            SubmissionRejected: If the node refuses the transaction.
        """
        result = self._transport.post_bcs(
            "transactions",
            signed_transaction_bytes(signed),
            error_cls=SubmissionRejected,
        )
        tx_hash = str(result["hash"])
        logger.info(
            "submitted %s from %s (seq %d): %s",
            signed.raw.request.function,
            signed.raw.sender,
            signed.raw.sequence_number,
            tx_hash,
        )
        return tx_hash

    def submit_entry(
        self,
        account: Account,
        function: str | EntryFunctionId,
        type_args: Sequence[str | TypeTag] = (),
        args: Sequence[Any] = (),
    ) -> str:
        """Build, sign and submit in one call; returns the transaction hash."""
        request = self.build_transaction(account.address, function, type_args, args)
        return self.submit(self.sign(account, request))

    def wait_for_confirmation(
        self,
        tx_hash: str,
        policy: ConfirmationPolicy | None = None,
    ) -> TransactionReceipt:
        """Poll until *tx_hash* is committed or the policy timeout expires.

        Returns:
            The receipt once the transaction is no longer pending.

        Raises:
            ConfirmationTimeout: If no terminal state is seen in time.
            NodeConnectionError: If the node fails a poll before the deadline.
            ExecutionFailed: If ``policy.check_success`` is set and the
                transaction was committed with a failing VM status.
        """
        policy = policy or ConfirmationPolicy()
        deadline = time.monotonic() + policy.timeout

        while True:
            # A poll never outlives the deadline.
            poll_timeout = max(deadline - time.monotonic(), _MIN_POLL_TIMEOUT)
            try:
                body = self.transaction_by_hash(tx_hash, timeout=poll_timeout)
            except NodeConnectionError as exc:
                if time.monotonic() >= deadline:
                    raise ConfirmationTimeout(tx_hash, policy.timeout) from exc
                raise
            if body is not None and body.get("type") != _PENDING:
                receipt = TransactionReceipt.model_validate(body)
                break

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise ConfirmationTimeout(tx_hash, policy.timeout)
            time.sleep(min(policy.poll_interval, remaining))

        logger.debug("transaction %s committed: %s", tx_hash, receipt.vm_status)
        if not receipt.success and policy.check_success:
            raise ExecutionFailed(receipt)
        return receipt

    def call_view(
        self,
        function: str | EntryFunctionId,
        type_args: Sequence[str | TypeTag] = (),
        args: Sequence[Any] = (),
    ) -> list[Any]:
        """Execute a view function against the latest ledger state."""
        fn_id = _function_id(function)
        payload = {
            "function": str(fn_id),
            "type_arguments": [str(t) for t in _type_tags(type_args)],
            "arguments": [_view_argument(a) for a in args],
        }
        return list(self._transport.post_json("view", payload))
