"""Transaction construction, signing, and verification.

Provides argument encoding against a module ABI, a fluent builder for raw
transactions, and the canonical BCS layout that the node verifies
signatures over. Signing is a pure function of the key and the raw
transaction: fixing the sequence number and expiration makes the signed
bytes reproducible.
"""

from __future__ import annotations

import hashlib
import time
from typing import Any, Sequence, Self

from fa_sdk import bcs
from fa_sdk.account import Account
from fa_sdk.errors import MalformedRequest
from fa_sdk.identity import verify_signature
from fa_sdk.types import (
    AccountAddress,
    MoveFunction,
    RawTransaction,
    Signature,
    SignedTransaction,
    TransactionRequest,
    TypeTag,
    TypeTagKind,
)

# ---------------------------------------------------------------------------
# Wire constants
# ---------------------------------------------------------------------------

_RAW_TRANSACTION_SALT = hashlib.sha3_256(b"APTOS::RawTransaction").digest()
_TRANSACTION_SALT = hashlib.sha3_256(b"APTOS::Transaction").digest()

# TransactionPayload::EntryFunction
_PAYLOAD_ENTRY_FUNCTION = 2
# TransactionAuthenticator::Ed25519
_AUTHENTICATOR_ED25519 = 0
# Transaction::UserTransaction
_USER_TRANSACTION = b"\x00"

_TYPE_TAG_VARIANT: dict[TypeTagKind, int] = {
    TypeTagKind.BOOL: 0,
    TypeTagKind.U8: 1,
    TypeTagKind.U64: 2,
    TypeTagKind.U128: 3,
    TypeTagKind.ADDRESS: 4,
    TypeTagKind.SIGNER: 5,
    TypeTagKind.VECTOR: 6,
    TypeTagKind.STRUCT: 7,
    TypeTagKind.U16: 8,
    TypeTagKind.U32: 9,
    TypeTagKind.U256: 10,
}

_INT_ENCODERS = {
    TypeTagKind.U8: bcs.u8,
    TypeTagKind.U16: bcs.u16,
    TypeTagKind.U32: bcs.u32,
    TypeTagKind.U64: bcs.u64,
    TypeTagKind.U128: bcs.u128,
    TypeTagKind.U256: bcs.u256,
}


# ---------------------------------------------------------------------------
# Argument encoding
# ---------------------------------------------------------------------------


def _coerce_address(value: Any) -> AccountAddress:
    if isinstance(value, Account):
        return value.address
    if isinstance(value, (str, bytes, bytearray)):
        return AccountAddress._validate(value)
    raise TypeError(f"expected an address, got {type(value).__name__}")


def encode_argument(tag: TypeTag, value: Any) -> bytes:
    """BCS-encode a Python value as the Move type *tag*.

    Addresses accept :class:`AccountAddress`, hex strings or accounts;
    ``vector<u8>`` accepts bytes; ``0x1::object::Object<T>`` is encoded as
    the object's address.

    Raises:
        TypeError: If the value has the wrong Python type.
        ValueError: If the value is out of range for the Move type.
    """
    kind = tag.kind
    if kind is TypeTagKind.BOOL:
        return bcs.bool_(value)
    if kind in _INT_ENCODERS:
        return _INT_ENCODERS[kind](value)
    if kind is TypeTagKind.ADDRESS:
        return bcs.fixed_bytes(_coerce_address(value))
    if kind is TypeTagKind.SIGNER:
        raise TypeError("signer arguments are supplied by the transaction sender")
    if kind is TypeTagKind.VECTOR:
        if tag.item is None:
            raise MalformedRequest(f"vector type tag has no element type: {tag!r}")
        if tag.item.kind is TypeTagKind.U8 and isinstance(value, (bytes, bytearray, str)):
            raw = value.encode("utf-8") if isinstance(value, str) else bytes(value)
            return bcs.byte_string(raw)
        if isinstance(value, (str, bytes, bytearray)) or not isinstance(value, Sequence):
            raise TypeError(f"{tag} expects a sequence, got {type(value).__name__}")
        item = tag.item
        return bcs.sequence(value, lambda v: encode_argument(item, v))

    if tag.is_struct("0x1", "string", "String"):
        return bcs.string(value)
    if tag.is_struct("0x1", "object", "Object"):
        return bcs.fixed_bytes(_coerce_address(value))
    if tag.is_struct("0x1", "option", "Option"):
        if tag.struct is None or len(tag.struct.type_args) != 1:
            raise MalformedRequest(f"{tag} must have exactly one type argument")
        inner = tag.struct.type_args[0]
        return bcs.option(value, lambda v: encode_argument(inner, v))
    raise TypeError(f"struct type {tag} cannot be passed as an entry argument")


def encode_arguments(
    function: MoveFunction,
    type_args: Sequence[TypeTag],
    args: Sequence[Any],
) -> tuple[bytes, ...]:
    """Check arity against the ABI and encode every argument.

    Raises:
        MalformedRequest: On generic or value arity mismatch, or when a value
            cannot be encoded as its declared type.
    """
    if len(type_args) != len(function.generic_type_params):
        raise MalformedRequest(
            f"{function.name} expects {len(function.generic_type_params)} type "
            f"argument(s), got {len(type_args)}"
        )
    params = function.value_params()
    if len(args) != len(params):
        raise MalformedRequest(
            f"{function.name} expects {len(params)} argument(s), got {len(args)}"
        )

    encoded: list[bytes] = []
    for index, (param, value) in enumerate(zip(params, args)):
        try:
            tag = TypeTag.from_str(param, type_args)
            encoded.append(encode_argument(tag, value))
        except (TypeError, ValueError) as exc:
            raise MalformedRequest(
                f"argument {index} of {function.name} ({param}): {exc}"
            ) from exc
    return tuple(encoded)


# ---------------------------------------------------------------------------
# Canonical bytes
# ---------------------------------------------------------------------------


def serialize_type_tag(tag: TypeTag) -> bytes:
    buf = bytearray(bcs.uleb128(_TYPE_TAG_VARIANT[tag.kind]))
    if tag.kind is TypeTagKind.VECTOR:
        if tag.item is None:
            raise MalformedRequest(f"vector type tag has no element type: {tag!r}")
        buf += serialize_type_tag(tag.item)
    elif tag.kind is TypeTagKind.STRUCT:
        if tag.struct is None:
            raise MalformedRequest(f"struct type tag has no struct: {tag!r}")
        buf += bcs.fixed_bytes(tag.struct.address)
        buf += bcs.string(tag.struct.module)
        buf += bcs.string(tag.struct.name)
        buf += bcs.sequence(tag.struct.type_args, serialize_type_tag)
    return bytes(buf)


def signable_bytes(raw: RawTransaction) -> bytes:
    """BCS encoding of a raw transaction.

    Layout::

        sender                     32 bytes
        sequence_number            u64
        payload                    uleb128 variant (2 = entry function)
          module address           32 bytes
          module name              string
          function name            string
          type arguments           vector<TypeTag>
          arguments                vector<vector<u8>>
        max_gas_amount             u64
        gas_unit_price             u64
        expiration_timestamp_secs  u64
        chain_id                   u8
    """
    req = raw.request
    buf = bytearray()
    buf += bcs.fixed_bytes(req.sender)
    buf += bcs.u64(raw.sequence_number)

    buf += bcs.uleb128(_PAYLOAD_ENTRY_FUNCTION)
    buf += bcs.fixed_bytes(req.function.address)
    buf += bcs.string(req.function.module)
    buf += bcs.string(req.function.name)
    buf += bcs.sequence(req.type_arguments, serialize_type_tag)
    buf += bcs.sequence(req.arguments, bcs.byte_string)

    buf += bcs.u64(raw.max_gas_amount)
    buf += bcs.u64(raw.gas_unit_price)
    buf += bcs.u64(raw.expiration_timestamp_secs)
    buf += bcs.u8(raw.chain_id)
    return bytes(buf)


def signing_message(raw: RawTransaction) -> bytes:
    """Domain-separated message the sender signs."""
    return _RAW_TRANSACTION_SALT + signable_bytes(raw)


def signed_transaction_bytes(signed: SignedTransaction) -> bytes:
    """Submission body: raw transaction followed by the Ed25519 authenticator."""
    return (
        signable_bytes(signed.raw)
        + bcs.uleb128(_AUTHENTICATOR_ED25519)
        + bcs.byte_string(signed.public_key)
        + bcs.byte_string(signed.signature)
    )


def compute_transaction_hash(signed: SignedTransaction) -> str:
    """The ``0x``-prefixed hash the node reports for a user transaction."""
    digest = hashlib.sha3_256(
        _TRANSACTION_SALT + _USER_TRANSACTION + signed_transaction_bytes(signed)
    )
    return "0x" + digest.hexdigest()


def sign_transaction(raw: RawTransaction, account: Account) -> SignedTransaction:
    """Sign *raw* with *account*'s key. No I/O, no clock."""
    return SignedTransaction(
        raw=raw,
        public_key=account.public_key,
        signature=Signature(account.sign(signing_message(raw))),
    )


def verify_transaction(signed: SignedTransaction) -> bool:
    """Check the Ed25519 signature against the canonical signing message."""
    return verify_signature(
        bytes(signed.public_key), signing_message(signed.raw), bytes(signed.signature)
    )


class RawTransactionBuilder:
    """Fluent builder for :class:`RawTransaction` instances.

    Example::

        raw = (
            RawTransactionBuilder()
            .request(request)
            .sequence_number(7)
            .gas(max_amount=100_000, unit_price=100)
            .expiration_timestamp_secs(1_700_000_600)
            .chain_id(2)
            .build()
        )
    """

    def __init__(self) -> None:
        self._request: TransactionRequest | None = None
        self._sequence_number: int | None = None
        self._max_gas_amount: int = 100_000
        self._gas_unit_price: int = 100
        self._expiration: int | None = None
        self._ttl: int = 600
        self._chain_id: int | None = None

    def request(self, request: TransactionRequest) -> Self:
        """Set the entry-function call to wrap."""
        self._request = request
        return self

    def sequence_number(self, n: int) -> Self:
        """Set the sender's sequence number."""
        self._sequence_number = n
        return self

    def gas(self, *, max_amount: int, unit_price: int) -> Self:
        """Set the gas limit and unit price (defaults: 100_000 and 100)."""
        self._max_gas_amount = max_amount
        self._gas_unit_price = unit_price
        return self

    def expiration_timestamp_secs(self, ts: int) -> Self:
        """Set an absolute expiration (defaults to now + TTL at build time)."""
        self._expiration = ts
        return self

    def ttl(self, seconds: int) -> Self:
        """Set the lifetime used when no absolute expiration is given (default: 600)."""
        self._ttl = seconds
        return self

    def chain_id(self, chain_id: int) -> Self:
        """Set the chain id the transaction is valid on."""
        self._chain_id = chain_id
        return self

    def build(self) -> RawTransaction:
        """Validate all fields and return the :class:`RawTransaction`.

        Raises:
            MalformedRequest: If a required field is missing or out of range.
        """
        missing: list[str] = []
        if self._request is None:
            missing.append("request")
        if self._sequence_number is None:
            missing.append("sequence_number")
        if self._chain_id is None:
            missing.append("chain_id")
        if missing:
            raise MalformedRequest(f"missing required fields: {', '.join(missing)}")

        expiration = (
            self._expiration if self._expiration is not None else int(time.time()) + self._ttl
        )
        try:
            return RawTransaction(
                request=self._request,
                sequence_number=self._sequence_number,
                max_gas_amount=self._max_gas_amount,
                gas_unit_price=self._gas_unit_price,
                expiration_timestamp_secs=expiration,
                chain_id=self._chain_id,
            )
        except ValueError as exc:
            raise MalformedRequest(str(exc)) from exc
