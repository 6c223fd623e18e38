"""Admin-authorized calls to a deployed managed-coin module.

The module lives at the admin's address and exposes ``get_metadata``,
``mint``, ``transfer``, ``burn``, ``freeze_account`` and
``unfreeze_account``. Every call here is signed by the admin; authorization
rules are enforced on chain.
"""

from __future__ import annotations

import logging

from fa_sdk.account import Account
from fa_sdk.client import ChainClient
from fa_sdk.types import AccountAddress

logger = logging.getLogger(__name__)

DEFAULT_MODULE = "coin_example"


class ManagedCoinClient:
    """Issues mint, transfer, burn, freeze and unfreeze as the coin admin."""

    def __init__(self, chain: ChainClient, module: str = DEFAULT_MODULE) -> None:
        self._chain = chain
        self._module = module

    def _function(self, admin: AccountAddress, name: str) -> str:
        return f"{admin}::{self._module}::{name}"

    def _call(self, admin: Account, name: str, args: list[object]) -> str:
        logger.info("%s::%s %s", self._module, name, args)
        return self._chain.submit_entry(admin, self._function(admin.address, name), [], args)

    def get_metadata(self, admin: AccountAddress) -> AccountAddress:
        """Address of the coin's metadata object, i.e. the asset identifier."""
        result = self._chain.call_view(self._function(admin, "get_metadata"))
        return AccountAddress.from_str(result[0]["inner"])

    def mint(self, admin: Account, receiver: AccountAddress, amount: int) -> str:
        """Create *amount* new coins in *receiver*'s primary store."""
        return self._call(admin, "mint", [receiver, amount])

    def transfer(
        self,
        admin: Account,
        from_address: AccountAddress,
        to_address: AccountAddress,
        amount: int,
    ) -> str:
        """Move coins between any two holders, ignoring the frozen flag."""
        return self._call(admin, "transfer", [from_address, to_address, amount])

    def burn(self, admin: Account, from_address: AccountAddress, amount: int) -> str:
        """Destroy *amount* coins held by *from_address*."""
        return self._call(admin, "burn", [from_address, amount])

    def freeze(self, admin: Account, target: AccountAddress) -> str:
        """Stop *target*'s primary store from sending or receiving."""
        return self._call(admin, "freeze_account", [target])

    def unfreeze(self, admin: Account, target: AccountAddress) -> str:
        """Lift a freeze placed by :meth:`freeze`."""
        return self._call(admin, "unfreeze_account", [target])
