"""Fungible-asset client SDK.

Builds, signs and submits Move entry-function transactions against a
fullnode REST API, waits for their outcome, and reads primary-store
balances. Ships with a demo scenario for a managed coin module.

Quick start::

    from fa_sdk import Account, AssetQueryClient, ChainClient

    with ChainClient.from_url("https://fullnode.testnet.aptoslabs.com") as chain:
        assets = AssetQueryClient(chain)
        print(assets.get_balance(holder, metadata_address))
"""

from fa_sdk.account import Account
from fa_sdk.assets import AssetQueryClient
from fa_sdk.client import ChainClient
from fa_sdk.coin import ManagedCoinClient
from fa_sdk.errors import (
    ConfigError,
    ConfirmationTimeout,
    ExecutionFailed,
    FaClientError,
    FaucetError,
    MalformedRequest,
    NodeApiError,
    NodeConnectionError,
    ScenarioError,
    SubmissionRejected,
)
from fa_sdk.faucet import FaucetClient
from fa_sdk.transaction import (
    RawTransactionBuilder,
    compute_transaction_hash,
    sign_transaction,
    verify_transaction,
)
from fa_sdk.transport import NodeTransport
from fa_sdk.types import (
    AccountAddress,
    ConfirmationPolicy,
    EntryFunctionId,
    FailureReason,
    RawTransaction,
    SignedTransaction,
    TransactionOptions,
    TransactionReceipt,
    TransactionRequest,
    TypeTag,
)

__all__ = [
    # Clients
    "AssetQueryClient",
    "ChainClient",
    "FaucetClient",
    "ManagedCoinClient",
    "NodeTransport",
    # Errors
    "ConfigError",
    "ConfirmationTimeout",
    "ExecutionFailed",
    "FaClientError",
    "FaucetError",
    "MalformedRequest",
    "NodeApiError",
    "NodeConnectionError",
    "ScenarioError",
    "SubmissionRejected",
    # Transaction
    "RawTransactionBuilder",
    "compute_transaction_hash",
    "sign_transaction",
    "verify_transaction",
    # Types
    "Account",
    "AccountAddress",
    "ConfirmationPolicy",
    "EntryFunctionId",
    "FailureReason",
    "RawTransaction",
    "SignedTransaction",
    "TransactionOptions",
    "TransactionReceipt",
    "TransactionRequest",
    "TypeTag",
]

__version__ = "0.1.0"
