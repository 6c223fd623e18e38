"""HTTP transport to a fullnode REST API.

:class:`NodeTransport` is the capability object a :class:`ChainClient` holds:
it owns the :mod:`httpx` connection pool and turns HTTP failures into SDK
errors, and knows nothing about transactions.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from fa_sdk.errors import NodeApiError, NodeConnectionError

logger = logging.getLogger(__name__)

_API_PREFIX = "/v1"

BCS_SIGNED_TRANSACTION = "application/x.aptos.signed_transaction+bcs"


def normalize_node_url(node_url: str) -> str:
    """Strip trailing slashes and make sure the URL ends with ``/v1``."""
    url = node_url.rstrip("/")
    if not url.endswith(_API_PREFIX):
        url += _API_PREFIX
    return url


class NodeTransport:
    """Synchronous JSON/BCS transport for the node REST endpoints.

    Args:
        node_url: Fullnode base URL; ``/v1`` is appended when absent.
        timeout: Per-request timeout in seconds.
        http_client: Pre-built client (tests pass one backed by
            :class:`httpx.MockTransport`).
    """

    def __init__(
        self,
        node_url: str,
        *,
        timeout: float = 15.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._base_url = normalize_node_url(node_url)
        self._timeout = timeout
        self._client = http_client or httpx.Client(timeout=timeout)

    @property
    def base_url(self) -> str:
        return self._base_url

    # ----- lifecycle -------------------------------------------------------

    def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        if not self._client.is_closed:
            self._client.close()

    def __enter__(self) -> "NodeTransport":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # ----- requests --------------------------------------------------------

    def _send(
        self,
        method: str,
        path: str,
        error_cls: type[NodeApiError],
        *,
        timeout: float | None = None,
        **kwargs: Any,
    ) -> Any:
        path = path.lstrip("/")
        url = f"{self._base_url}/{path}" if path else self._base_url
        if timeout is not None:
            kwargs["timeout"] = timeout
        try:
            resp = self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise NodeConnectionError(f"request to {url} timed out") from exc
        except httpx.TransportError as exc:
            raise NodeConnectionError(f"cannot reach {self._base_url}: {exc}") from exc

        logger.debug("%s %s -> %s", method, url, resp.status_code)
        if resp.status_code >= 400:
            try:
                body = resp.json()
            except ValueError:
                body = None
            raise error_cls.from_body(resp.status_code, body, resp.text)
        try:
            return resp.json()
        except ValueError as exc:
            raise error_cls(
                resp.status_code, f"response from {url} is not JSON: {resp.text[:200]}"
            ) from exc

    def get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        *,
        error_cls: type[NodeApiError] = NodeApiError,
        timeout: float | None = None,
    ) -> Any:
        """GET a JSON resource.

        *timeout* overrides the client timeout for this request only.
        """
        return self._send("GET", path, error_cls, timeout=timeout, params=params)

    def post_json(
        self,
        path: str,
        payload: Any,
        *,
        error_cls: type[NodeApiError] = NodeApiError,
    ) -> Any:
        """POST a JSON body and return the decoded JSON response."""
        return self._send("POST", path, error_cls, json=payload)

    def post_bcs(
        self,
        path: str,
        content: bytes,
        *,
        content_type: str = BCS_SIGNED_TRANSACTION,
        error_cls: type[NodeApiError] = NodeApiError,
    ) -> Any:
        """POST raw BCS bytes and return the decoded JSON response."""
        return self._send(
            "POST",
            path,
            error_cls,
            content=content,
            headers={"Content-Type": content_type},
        )
