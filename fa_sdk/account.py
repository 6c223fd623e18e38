"""Account: a single Ed25519 keypair bound to an on-chain address."""

from __future__ import annotations

from pathlib import Path

from fa_sdk.identity import (
    derive_address,
    generate_keypair,
    keypair_from_private_key,
    load_private_key,
    sign_message,
)
from fa_sdk.types import AccountAddress, PublicKey


class Account:
    """In-memory account holding one Ed25519 keypair.

    The private key is held in memory for the lifetime of the object and is
    never serialised or logged. Address and keys cannot be reassigned after
    construction. The constructor raises :class:`ValueError` when the
    public key does not belong to the private key.
    """

    __slots__ = ("_private_key", "_public_key", "_address")

    def __init__(
        self,
        private_key: bytes,
        public_key: bytes,
        address: AccountAddress | None = None,
    ) -> None:
        sk, pk = keypair_from_private_key(bytes(private_key))
        if bytes(public_key) != pk:
            raise ValueError("public key does not belong to the private key")
        self._private_key = sk
        self._public_key = PublicKey._validate(pk)
        self._address = address if address is not None else derive_address(pk)

    # ----- constructors ----------------------------------------------------

    @classmethod
    def generate(cls) -> "Account":
        """Create an account with a fresh random keypair."""
        sk, pk = generate_keypair()
        return cls(sk, pk)

    @classmethod
    def from_private_key(
        cls, private_key: bytes, address: AccountAddress | str | None = None
    ) -> "Account":
        """Wrap raw key bytes, optionally bound to an explicit *address*."""
        sk, pk = keypair_from_private_key(private_key)
        if isinstance(address, str):
            address = AccountAddress.from_str(address)
        return cls(sk, pk, address)

    @classmethod
    def load(
        cls, path: str | Path, address: AccountAddress | str | None = None
    ) -> "Account":
        """Load a hex-encoded private key file."""
        return cls.from_private_key(load_private_key(path), address)

    # ----- properties ------------------------------------------------------

    @property
    def address(self) -> AccountAddress:
        return self._address

    @property
    def public_key(self) -> PublicKey:
        return self._public_key

    # ----- signing ---------------------------------------------------------

    def sign(self, message: bytes) -> bytes:
        """Sign arbitrary bytes with this account's private key."""
        return sign_message(self._private_key, message)

    def __repr__(self) -> str:
        return f"Account(address='{self._address}')"
