"""Thin client for a test-network faucet."""

from __future__ import annotations

import logging

import httpx

from fa_sdk.client import ChainClient
from fa_sdk.errors import FaucetError, NodeConnectionError
from fa_sdk.types import AccountAddress, ConfirmationPolicy

logger = logging.getLogger(__name__)


class FaucetClient:
    """Creates and funds accounts through the faucet's ``mint`` endpoint.

    Args:
        faucet_url: Faucet base URL.
        chain: Client used to wait for the funding transactions.
        http_client: Pre-built :class:`httpx.Client` (tests use a mock one).
    """

    def __init__(
        self,
        faucet_url: str,
        chain: ChainClient,
        *,
        timeout: float = 30.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._faucet_url = faucet_url.rstrip("/")
        self._chain = chain
        self._client = http_client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        if not self._client.is_closed:
            self._client.close()

    def fund_account(
        self,
        address: AccountAddress,
        amount: int,
        *,
        wait: bool = True,
        policy: ConfirmationPolicy | None = None,
    ) -> list[str]:
        """Mint *amount* of the native coin to *address*.

        Returns:
            The funding transaction hashes, already confirmed when *wait*.

        Raises:
            FaucetError: If the faucet answers with an error status or a body
                that is not a JSON list of hashes.
        """
        url = f"{self._faucet_url}/mint"
        try:
            resp = self._client.post(url, params={"amount": amount, "address": str(address)})
        except httpx.TransportError as exc:
            raise NodeConnectionError(f"cannot reach faucet {self._faucet_url}: {exc}") from exc
        if resp.status_code >= 400:
            raise FaucetError(f"faucet returned HTTP {resp.status_code}: {resp.text}")

        try:
            body = resp.json()
        except ValueError as exc:
            raise FaucetError(f"faucet returned a non-JSON body: {resp.text[:200]}") from exc
        if not isinstance(body, list):
            raise FaucetError(f"faucet returned {type(body).__name__}, expected a list of hashes")
        hashes = [str(h) for h in body]
        logger.info("faucet funded %s with %d (%d txn)", address, amount, len(hashes))
        if wait:
            for tx_hash in hashes:
                self._chain.wait_for_confirmation(tx_hash, policy)
        return hashes
