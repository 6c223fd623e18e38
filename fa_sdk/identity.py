"""Identity primitives: keypair generation, address derivation, signing.

All cryptographic operations use Ed25519 via PyNaCl (libsodium binding).
Addresses of single-key accounts are ``sha3_256(public_key || 0x00)``; an
account whose key was rotated keeps its original address, which is why
callers may bind an address explicitly instead of deriving it.
"""

from __future__ import annotations

from pathlib import Path

from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey

from fa_sdk.types import AccountAddress


def generate_keypair() -> tuple[bytes, bytes]:
    """Generate a random Ed25519 keypair.

    Returns:
        A ``(private_key, public_key)`` tuple, 32 bytes each.
    """
    sk = SigningKey.generate()
    return bytes(sk), bytes(sk.verify_key)


def keypair_from_private_key(private_key: bytes) -> tuple[bytes, bytes]:
    """Rebuild the keypair for existing 32-byte private key material.

    Raises:
        ValueError: If *private_key* is not exactly 32 bytes.
    """
    if len(private_key) != 32:
        raise ValueError(f"private key must be exactly 32 bytes, got {len(private_key)}")
    sk = SigningKey(bytes(private_key))
    return bytes(sk), bytes(sk.verify_key)


def derive_address(public_key: bytes) -> AccountAddress:
    """Return the account address that a fresh Ed25519 key authenticates."""
    return AccountAddress.from_key(public_key)


def parse_private_key_hex(text: str) -> bytes:
    """Decode a hex private key, tolerating whitespace and a ``0x`` prefix.

    Raises:
        ValueError: If the text is not 32 bytes of hex.
    """
    raw = text.strip()
    if raw.startswith(("0x", "0X")):
        raw = raw[2:]
    try:
        key = bytes.fromhex(raw)
    except ValueError as exc:
        raise ValueError("private key is not valid hex") from exc
    if len(key) != 32:
        raise ValueError(f"private key must be exactly 32 bytes, got {len(key)}")
    return key


def load_private_key(path: str | Path) -> bytes:
    """Read a hex-encoded private key file."""
    return parse_private_key_hex(Path(path).read_text(encoding="utf-8"))


def sign_message(private_key: bytes, message: bytes) -> bytes:
    """Sign *message* and return the 64-byte Ed25519 signature."""
    return SigningKey(bytes(private_key)).sign(message).signature


def verify_signature(public_key: bytes, message: bytes, signature: bytes) -> bool:
    """Verify an Ed25519 signature.

    Returns:
        ``True`` if the signature is valid, ``False`` otherwise.
    """
    try:
        VerifyKey(bytes(public_key)).verify(message, bytes(signature))
    except (BadSignatureError, ValueError):
        return False
    return True
