"""Holder-side view of a fungible asset.

:class:`AssetQueryClient` reads balances from primary stores and sends
transfers signed by the holder. Admin-authorized calls live in
:mod:`fa_sdk.coin`.
"""

from __future__ import annotations

import logging

from fa_sdk.account import Account
from fa_sdk.client import ChainClient
from fa_sdk.types import AccountAddress

logger = logging.getLogger(__name__)

_STORE_MODULE = "0x1::primary_fungible_store"
_METADATA_TYPE = "0x1::fungible_asset::Metadata"


class AssetQueryClient:
    """Balance lookups and self-authorized transfers for one chain."""

    def __init__(self, chain: ChainClient) -> None:
        self._chain = chain

    def get_balance(self, holder: AccountAddress, asset: AccountAddress) -> int:
        """Primary-store balance of *holder* for *asset*.

        A holder that never received the asset has no store and reads as 0.
        """
        result = self._chain.call_view(
            f"{_STORE_MODULE}::balance", [_METADATA_TYPE], [holder, asset]
        )
        balance = int(result[0])
        if balance < 0:
            raise ValueError(f"node reported a negative balance for {holder}: {balance}")
        return balance

    def is_frozen(self, holder: AccountAddress, asset: AccountAddress) -> bool:
        result = self._chain.call_view(
            f"{_STORE_MODULE}::is_frozen", [_METADATA_TYPE], [holder, asset]
        )
        return bool(result[0])

    def transfer(
        self,
        holder: Account,
        asset: AccountAddress,
        destination: AccountAddress,
        amount: int,
    ) -> str:
        """Send *amount* from *holder*'s primary store; returns the hash.

        A frozen store or short balance only shows up when the transaction is
        confirmed, as :class:`~fa_sdk.errors.ExecutionFailed`.
        """
        logger.info("transfer %d of %s: %s -> %s", amount, asset, holder.address, destination)
        return self._chain.submit_entry(
            holder,
            f"{_STORE_MODULE}::transfer",
            [_METADATA_TYPE],
            [asset, destination, amount],
        )
