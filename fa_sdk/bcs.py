"""Binary Canonical Serialization (BCS) primitives.

Only the encoding side is needed by the client: every signed transaction and
every entry-function argument is serialized with these helpers. Integers are
little-endian, sequences and byte strings carry a ULEB128 length prefix.
"""

from __future__ import annotations

import struct
from typing import Callable, Iterable, TypeVar

T = TypeVar("T")

_U8_MAX = 2**8 - 1
_U16_MAX = 2**16 - 1
_U32_MAX = 2**32 - 1
_U64_MAX = 2**64 - 1
_U128_MAX = 2**128 - 1
_U256_MAX = 2**256 - 1


def _check_range(value: int, maximum: int, name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} expects an int, got {type(value).__name__}")
    if value < 0 or value > maximum:
        raise ValueError(f"{value} out of range for {name}")


def uleb128(value: int) -> bytes:
    """Encode a length or enum discriminant as unsigned LEB128."""
    _check_range(value, _U32_MAX, "uleb128")
    out = bytearray()
    while value >= 0x80:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)
    return bytes(out)


def bool_(value: bool) -> bytes:
    if not isinstance(value, bool):
        raise TypeError(f"bool expects a bool, got {type(value).__name__}")
    return b"\x01" if value else b"\x00"


def u8(value: int) -> bytes:
    _check_range(value, _U8_MAX, "u8")
    return struct.pack("<B", value)


def u16(value: int) -> bytes:
    _check_range(value, _U16_MAX, "u16")
    return struct.pack("<H", value)


def u32(value: int) -> bytes:
    _check_range(value, _U32_MAX, "u32")
    return struct.pack("<I", value)


def u64(value: int) -> bytes:
    _check_range(value, _U64_MAX, "u64")
    return struct.pack("<Q", value)


def u128(value: int) -> bytes:
    _check_range(value, _U128_MAX, "u128")
    return value.to_bytes(16, "little")


def u256(value: int) -> bytes:
    _check_range(value, _U256_MAX, "u256")
    return value.to_bytes(32, "little")


def fixed_bytes(value: bytes) -> bytes:
    """Raw bytes with no length prefix (addresses)."""
    return bytes(value)


def byte_string(value: bytes) -> bytes:
    """Length-prefixed byte string (``vector<u8>``)."""
    return uleb128(len(value)) + bytes(value)


def string(value: str) -> bytes:
    """Length-prefixed UTF-8 string."""
    if not isinstance(value, str):
        raise TypeError(f"string expects a str, got {type(value).__name__}")
    return byte_string(value.encode("utf-8"))


def sequence(items: Iterable[T], encoder: Callable[[T], bytes]) -> bytes:
    """Length-prefixed sequence where each element is encoded by *encoder*."""
    items = list(items)
    buf = bytearray(uleb128(len(items)))
    for item in items:
        buf += encoder(item)
    return bytes(buf)


def option(value: T | None, encoder: Callable[[T], bytes]) -> bytes:
    """``Option<T>`` encoded as a zero- or one-element sequence."""
    if value is None:
        return uleb128(0)
    return uleb128(1) + encoder(value)
