"""Exception hierarchy shared by every client in the SDK."""

from __future__ import annotations

from typing import Any

from fa_sdk.types import FailureReason, TransactionReceipt


class FaClientError(Exception):
    """Base class for all SDK errors."""


class ConfigError(FaClientError):
    """Raised when environment configuration is missing or invalid."""


class MalformedRequest(FaClientError):
    """Raised before any network contact when a request cannot be valid."""


class NodeConnectionError(FaClientError):
    """Raised when the SDK cannot reach the node or faucet."""


class NodeApiError(FaClientError):
    """Raised when the node answers a request with a non-success status."""

    def __init__(
        self,
        status_code: int,
        message: str,
        error_code: str | None = None,
        vm_error_code: int | None = None,
    ) -> None:
        self.status_code = status_code
        self.message = message
        self.error_code = error_code
        self.vm_error_code = vm_error_code
        detail = f" ({error_code})" if error_code else ""
        super().__init__(f"HTTP {status_code}{detail}: {message}")

    @classmethod
    def from_body(cls, status_code: int, body: Any, text: str) -> "NodeApiError":
        """Build from the node's ``{"message", "error_code", "vm_error_code"}`` body."""
        if isinstance(body, dict):
            return cls(
                status_code,
                str(body.get("message", text)),
                body.get("error_code"),
                body.get("vm_error_code"),
            )
        return cls(status_code, text)


class SubmissionRejected(NodeApiError):
    """The node refused a signed transaction synchronously.

    Typical causes: bad signature, sequence number too old, insufficient gas
    balance, malformed payload. Never retried by the client.
    """


class ConfirmationTimeout(FaClientError):
    """No terminal state was observed before the confirmation deadline."""

    def __init__(self, tx_hash: str, timeout: float) -> None:
        self.tx_hash = tx_hash
        self.timeout = timeout
        super().__init__(f"transaction {tx_hash} not confirmed within {timeout}s")


class ExecutionFailed(FaClientError):
    """The transaction was committed but the Move VM reported a failure."""

    def __init__(self, receipt: TransactionReceipt) -> None:
        self.receipt = receipt
        self.reason: FailureReason = FailureReason.from_vm_status(receipt.vm_status)
        super().__init__(
            f"transaction {receipt.hash} failed ({self.reason.value}): {receipt.vm_status}"
        )

    @property
    def vm_status(self) -> str:
        return self.receipt.vm_status


class FaucetError(FaClientError):
    """Raised when the faucet refuses to fund an account."""


class ScenarioError(FaClientError):
    """Raised when the demo scenario observes an unexpected chain state."""
