"""Core types for the fungible-asset SDK.

All public-facing data structures are defined here as Pydantic v2 models.
Addresses, keys and signatures are ``bytes`` subclasses that validate their
length on creation and render as hex on the wire. Move type tags and function
identifiers parse from, and print back to, their canonical string forms
(``0x1::fungible_asset::Metadata``, ``vector<u8>``, ``0xcafe::coin::mint``).
"""

from __future__ import annotations

import hashlib
import re
from enum import Enum
from typing import Annotated, Any, Sequence

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    GetCoreSchemaHandler,
)
from pydantic_core import CoreSchema, core_schema

# Authentication-key scheme byte appended to a single Ed25519 public key.
_ED25519_SCHEME = b"\x00"


# ---------------------------------------------------------------------------
# Annotated scalar types
# ---------------------------------------------------------------------------


class AccountAddress(bytes):
    """A 32-byte account address.

    Accepts ``0x``-prefixed or bare hex, in long or short form (``0x1`` is
    left-padded to 32 bytes). Special addresses ``0x0``..``0xf`` print in
    short form, everything else prints as 64 hex digits.
    """

    LENGTH = 32

    @classmethod
    def __get_pydantic_core_schema__(
        cls, _source_type: Any, handler: GetCoreSchemaHandler
    ) -> CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._validate,
            serialization=core_schema.plain_serializer_function_ser_schema(str),
        )

    @classmethod
    def _validate(cls, v: Any) -> "AccountAddress":
        if isinstance(v, AccountAddress):
            return v
        if isinstance(v, str):
            return cls.from_str(v)
        if isinstance(v, (bytes, bytearray)):
            if len(v) != cls.LENGTH:
                raise ValueError(f"address must be {cls.LENGTH} bytes, got {len(v)}")
            return cls(v)
        raise ValueError("address must be bytes or a hex string")

    @classmethod
    def from_str(cls, text: str) -> "AccountAddress":
        """Parse a hex address, with or without ``0x`` prefix."""
        raw = text.strip()
        if raw.startswith(("0x", "0X")):
            raw = raw[2:]
        if not raw or len(raw) > cls.LENGTH * 2:
            raise ValueError(f"invalid address length: {text!r}")
        try:
            return cls(bytes.fromhex(raw.rjust(cls.LENGTH * 2, "0")))
        except ValueError as exc:
            raise ValueError(f"invalid hex address: {text!r}") from exc

    @classmethod
    def from_key(cls, public_key: bytes) -> "AccountAddress":
        """Derive the address of a single Ed25519 key: ``sha3_256(pk || 0x00)``."""
        if len(public_key) != 32:
            raise ValueError(f"public key must be 32 bytes, got {len(public_key)}")
        return cls(hashlib.sha3_256(bytes(public_key) + _ED25519_SCHEME).digest())

    def is_special(self) -> bool:
        return self[:-1] == b"\x00" * (self.LENGTH - 1) and self[-1] < 0x10

    def to_long_string(self) -> str:
        return "0x" + super().hex()

    def __str__(self) -> str:
        if self.is_special():
            return f"0x{self[-1]:x}"
        return self.to_long_string()

    def __repr__(self) -> str:
        return f"AccountAddress('{self}')"


class PublicKey(bytes):
    """32-byte Ed25519 public key with hex serialisation."""

    @classmethod
    def __get_pydantic_core_schema__(
        cls, _source_type: Any, handler: GetCoreSchemaHandler
    ) -> CoreSchema:
        return core_schema.no_info_plain_validator_function(cls._validate)

    @classmethod
    def _validate(cls, v: bytes | str) -> "PublicKey":
        if isinstance(v, str):
            v = bytes.fromhex(v.removeprefix("0x"))
        if len(v) != 32:
            raise ValueError(f"public key must be 32 bytes, got {len(v)}")
        return cls(v)


class Signature(bytes):
    """64-byte Ed25519 signature with hex serialisation."""

    @classmethod
    def __get_pydantic_core_schema__(
        cls, _source_type: Any, handler: GetCoreSchemaHandler
    ) -> CoreSchema:
        return core_schema.no_info_plain_validator_function(cls._validate)

    @classmethod
    def _validate(cls, v: bytes | str) -> "Signature":
        if isinstance(v, str):
            v = bytes.fromhex(v.removeprefix("0x"))
        if len(v) != 64:
            raise ValueError(f"signature must be 64 bytes, got {len(v)}")
        return cls(v)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class TypeTagKind(str, Enum):
    """Move type constructors that can appear in a type argument."""

    BOOL = "bool"
    U8 = "u8"
    U16 = "u16"
    U32 = "u32"
    U64 = "u64"
    U128 = "u128"
    U256 = "u256"
    ADDRESS = "address"
    SIGNER = "signer"
    VECTOR = "vector"
    STRUCT = "struct"


_PRIMITIVE_KINDS = {
    kind.value: kind
    for kind in TypeTagKind
    if kind not in (TypeTagKind.VECTOR, TypeTagKind.STRUCT)
}


class FailureReason(str, Enum):
    """Why a confirmed transaction did not execute successfully."""

    STORE_FROZEN = "store_frozen"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    UNAUTHORIZED = "unauthorized"
    OUT_OF_GAS = "out_of_gas"
    OTHER = "other"

    @classmethod
    def from_vm_status(cls, vm_status: str) -> "FailureReason":
        """Classify a node ``vm_status`` string.

        Move aborts report the abort constant by name, for example
        ``Move abort in 0x1::fungible_asset: ESTORE_IS_FROZEN(0x50003): ...``.
        """
        for code, reason in _ABORT_CODES.items():
            if re.search(rf"\b{code}\b", vm_status):
                return reason
        if "OUT_OF_GAS" in vm_status.upper().replace(" ", "_"):
            return cls.OUT_OF_GAS
        return cls.OTHER


_ABORT_CODES: dict[str, FailureReason] = {
    "ESTORE_IS_FROZEN": FailureReason.STORE_FROZEN,
    "EINSUFFICIENT_BALANCE": FailureReason.INSUFFICIENT_BALANCE,
    "ENOT_OWNER": FailureReason.UNAUTHORIZED,
    "EUNAUTHORIZED": FailureReason.UNAUTHORIZED,
    "ENOT_AUTHORIZED": FailureReason.UNAUTHORIZED,
}


# ---------------------------------------------------------------------------
# Move identifiers
# ---------------------------------------------------------------------------

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_GENERIC_PARAM_RE = re.compile(r"^T(\d+)$")


def _check_identifier(value: str) -> str:
    if not _IDENTIFIER_RE.match(value):
        raise ValueError(f"invalid Move identifier: {value!r}")
    return value


def _split_top_level(text: str) -> list[str]:
    """Split on commas that are not nested inside ``<...>``."""
    parts: list[str] = []
    depth = 0
    start = 0
    for i, ch in enumerate(text):
        if ch == "<":
            depth += 1
        elif ch == ">":
            depth -= 1
            if depth < 0:
                raise ValueError(f"unbalanced '>' in {text!r}")
        elif ch == "," and depth == 0:
            parts.append(text[start:i].strip())
            start = i + 1
    if depth != 0:
        raise ValueError(f"unbalanced '<' in {text!r}")
    tail = text[start:].strip()
    if tail:
        parts.append(tail)
    return parts


class StructTag(BaseModel):
    """A fully qualified Move struct type, possibly generic."""

    model_config = ConfigDict(frozen=True)

    address: AccountAddress
    module: str
    name: str
    type_args: tuple["TypeTag", ...] = ()

    def __str__(self) -> str:
        base = f"{self.address}::{self.module}::{self.name}"
        if self.type_args:
            base += "<" + ", ".join(str(t) for t in self.type_args) + ">"
        return base


class TypeTag(BaseModel):
    """A Move type argument such as ``u64`` or ``0x1::object::Object<T>``."""

    model_config = ConfigDict(frozen=True)

    kind: TypeTagKind
    item: "TypeTag | None" = None
    struct: StructTag | None = None

    @classmethod
    def from_str(cls, text: str, generics: Sequence["TypeTag"] = ()) -> "TypeTag":
        """Parse a canonical type string.

        *generics* resolves ``T0``, ``T1``... placeholders as they appear in
        module ABIs.

        Raises:
            ValueError: If the string is not a valid type.
        """
        text = text.strip()
        if not text:
            raise ValueError("empty type tag")
        if text in _PRIMITIVE_KINDS:
            return cls(kind=_PRIMITIVE_KINDS[text])

        generic = _GENERIC_PARAM_RE.match(text)
        if generic:
            index = int(generic.group(1))
            if index >= len(generics):
                raise ValueError(f"unbound generic parameter {text}")
            return generics[index]

        if text.startswith("vector<"):
            if not text.endswith(">"):
                raise ValueError(f"invalid vector type: {text!r}")
            return cls(kind=TypeTagKind.VECTOR, item=cls.from_str(text[7:-1], generics))

        head, sep, rest = text.partition("<")
        args: tuple[TypeTag, ...] = ()
        if sep:
            if not rest.endswith(">"):
                raise ValueError(f"invalid generic type: {text!r}")
            args = tuple(cls.from_str(a, generics) for a in _split_top_level(rest[:-1]))

        parts = head.split("::")
        if len(parts) != 3:
            raise ValueError(f"invalid struct type: {text!r}")
        return cls(
            kind=TypeTagKind.STRUCT,
            struct=StructTag(
                address=AccountAddress.from_str(parts[0]),
                module=_check_identifier(parts[1]),
                name=_check_identifier(parts[2]),
                type_args=args,
            ),
        )

    def is_struct(self, address: str, module: str, name: str) -> bool:
        """Whether this is the struct ``address::module::name`` (any type args)."""
        return (
            self.struct is not None
            and self.struct.address == AccountAddress.from_str(address)
            and self.struct.module == module
            and self.struct.name == name
        )

    def __str__(self) -> str:
        if self.kind is TypeTagKind.VECTOR:
            return f"vector<{self.item}>"
        if self.kind is TypeTagKind.STRUCT:
            return str(self.struct)
        return self.kind.value


StructTag.model_rebuild()
TypeTag.model_rebuild()


class EntryFunctionId(BaseModel):
    """``module_address::module_name::function_name``."""

    model_config = ConfigDict(frozen=True)

    address: AccountAddress
    module: str
    name: str

    @classmethod
    def from_str(cls, text: str) -> "EntryFunctionId":
        parts = text.strip().split("::")
        if len(parts) != 3:
            raise ValueError(f"function id must be 'address::module::function', got {text!r}")
        return cls(
            address=AccountAddress.from_str(parts[0]),
            module=_check_identifier(parts[1]),
            name=_check_identifier(parts[2]),
        )

    def __str__(self) -> str:
        return f"{self.address}::{self.module}::{self.name}"


# ---------------------------------------------------------------------------
# Transaction models
# ---------------------------------------------------------------------------


class TransactionRequest(BaseModel):
    """An entry-function call before sequence number and gas are attached.

    ``arguments`` hold each value already BCS-encoded for its Move type.
    """

    model_config = ConfigDict(frozen=True)

    sender: AccountAddress
    function: EntryFunctionId
    type_arguments: tuple[TypeTag, ...] = ()
    arguments: tuple[bytes, ...] = ()


class RawTransaction(BaseModel):
    """A request plus the replay-protection and gas fields that get signed."""

    model_config = ConfigDict(frozen=True)

    request: TransactionRequest
    sequence_number: Annotated[int, Field(ge=0)]
    max_gas_amount: Annotated[int, Field(ge=0)]
    gas_unit_price: Annotated[int, Field(ge=0)]
    expiration_timestamp_secs: Annotated[int, Field(ge=0)]
    chain_id: Annotated[int, Field(ge=0, le=255)]

    @property
    def sender(self) -> AccountAddress:
        return self.request.sender


class SignedTransaction(BaseModel):
    """A raw transaction with its Ed25519 signature and signer public key."""

    model_config = ConfigDict(frozen=True)

    raw: RawTransaction
    public_key: PublicKey
    signature: Signature


class TransactionReceipt(BaseModel):
    """Terminal state of a committed transaction as reported by the node."""

    hash: str
    success: bool
    vm_status: str = ""
    version: int | None = None
    gas_used: Annotated[int, Field(ge=0)] = 0

    @property
    def failure_reason(self) -> FailureReason | None:
        if self.success:
            return None
        return FailureReason.from_vm_status(self.vm_status)


# ---------------------------------------------------------------------------
# Node response models
# ---------------------------------------------------------------------------


class LedgerInfo(BaseModel):
    chain_id: int
    ledger_version: int
    ledger_timestamp: int = 0


class AccountInfo(BaseModel):
    sequence_number: Annotated[int, Field(ge=0)]
    authentication_key: str


class MoveFunction(BaseModel):
    """One exposed function from a module ABI."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    visibility: str = "public"
    is_entry: bool = False
    is_view: bool = False
    generic_type_params: list[dict[str, Any]] = Field(default_factory=list)
    params: list[str] = Field(default_factory=list)
    returns: list[str] = Field(default_factory=list, alias="return")

    def value_params(self) -> list[str]:
        """Parameters the caller supplies; leading signers come from the sender."""
        params = list(self.params)
        while params and params[0] in ("signer", "&signer"):
            params.pop(0)
        return params


class MoveModuleAbi(BaseModel):
    address: AccountAddress
    name: str
    exposed_functions: list[MoveFunction] = Field(default_factory=list)

    def function(self, name: str) -> MoveFunction | None:
        for fn in self.exposed_functions:
            if fn.name == name:
                return fn
        return None


# ---------------------------------------------------------------------------
# Client settings
# ---------------------------------------------------------------------------


class ConfirmationPolicy(BaseModel):
    """How :meth:`ChainClient.wait_for_confirmation` treats a receipt.

    ``check_success`` turns an on-chain execution failure into
    :class:`~fa_sdk.errors.ExecutionFailed` instead of a returned receipt.
    """

    model_config = ConfigDict(frozen=True)

    check_success: bool = True
    timeout: Annotated[float, Field(gt=0)] = 30.0
    poll_interval: Annotated[float, Field(ge=0)] = 1.0


class TransactionOptions(BaseModel):
    """Gas and expiration defaults applied when signing."""

    model_config = ConfigDict(frozen=True)

    max_gas_amount: Annotated[int, Field(ge=0)] = 100_000
    gas_unit_price: Annotated[int, Field(ge=0)] = 100
    expiration_ttl: Annotated[int, Field(gt=0)] = 600
    chain_id: int | None = Field(default=None, ge=0, le=255)
