"""End-to-end managed-coin scenario against a test network.

Run with ``python -m fa_sdk.demo`` (or the ``fa-coin-demo`` script). The
owner key is read from ``OWNER_KEY_FILE``; Bob and Charlie are fresh accounts
funded by the faucet. Every step waits for confirmation before the next one
is issued, and the balances it produces are printed and checked.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from typing import Callable

from fa_sdk.account import Account
from fa_sdk.assets import AssetQueryClient
from fa_sdk.client import ChainClient
from fa_sdk.coin import ManagedCoinClient
from fa_sdk.config import DemoConfig, load_config
from fa_sdk.errors import ConfigError, ExecutionFailed, FaClientError, ScenarioError
from fa_sdk.faucet import FaucetClient
from fa_sdk.logging_setup import configure_logging
from fa_sdk.transport import NodeTransport
from fa_sdk.types import AccountAddress, ConfirmationPolicy, FailureReason

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BalanceSnapshot:
    step: str
    balances: dict[str, int]


@dataclass
class ScenarioReport:
    asset: AccountAddress | None = None
    snapshots: list[BalanceSnapshot] = field(default_factory=list)
    frozen_transfer_rejected: bool = False

    def balances_after(self, step: str) -> dict[str, int]:
        for snap in self.snapshots:
            if snap.step == step:
                return snap.balances
        raise KeyError(step)


class DemoOrchestrator:
    """Fund, mint, transfer, burn, freeze, fail, unfreeze, transfer.

    Args:
        chain: Client used to wait on every submitted transaction.
        coin: Admin calls against the deployed coin module.
        assets: Holder-side balance reads and transfers.
        faucet: Funds Bob and Charlie so they can pay gas.
        owner: The coin admin.
        out: Sink for the human-readable progress lines.
    """

    def __init__(
        self,
        chain: ChainClient,
        coin: ManagedCoinClient,
        assets: AssetQueryClient,
        faucet: FaucetClient,
        owner: Account,
        *,
        bob: Account | None = None,
        charlie: Account | None = None,
        fund_amount: int = 100_000_000,
        policy: ConfirmationPolicy | None = None,
        out: Callable[[str], None] = print,
    ) -> None:
        self._chain = chain
        self._coin = coin
        self._assets = assets
        self._faucet = faucet
        self._fund_amount = fund_amount
        self._policy = policy or ConfirmationPolicy(check_success=True)
        self._out = out
        self._accounts = {
            "Owner": owner,
            "Bob": bob or Account.generate(),
            "Charlie": charlie or Account.generate(),
        }
        self._asset: AccountAddress | None = None
        self._report = ScenarioReport()

    # ----- helpers ---------------------------------------------------------

    def _addr(self, name: str) -> AccountAddress:
        return self._accounts[name].address

    def _require_asset(self) -> AccountAddress:
        if self._asset is None:
            raise ScenarioError("coin metadata has not been resolved yet")
        return self._asset

    def _balance(self, name: str) -> int:
        return self._assets.get_balance(self._addr(name), self._require_asset())

    def _confirm(self, tx_hash: str) -> None:
        self._chain.wait_for_confirmation(tx_hash, self._policy)

    def _observe(self, step: str, expected: dict[str, int], message: str) -> None:
        """Print and record balances, failing on any mismatch."""
        observed: dict[str, int] = {}
        for name, want in expected.items():
            got = self._balance(name)
            observed[name] = got
            self._out(f"{name}'s {message}: {got}.")
            if got != want:
                raise ScenarioError(f"after {step}: {name} holds {got}, expected {want}")
        self._report.snapshots.append(BalanceSnapshot(step, observed))
        self._out("")

    # ----- scenario --------------------------------------------------------

    def run(self) -> ScenarioReport:
        owner = self._accounts["Owner"]
        for name in ("Bob", "Charlie"):
            logger.info("%s: %s", name, self._addr(name))
            self._faucet.fund_account(self._addr(name), self._fund_amount, policy=self._policy)

        self._asset = self._coin.get_metadata(owner.address)
        self._report.asset = self._asset
        owner_start = self._balance("Owner")
        self._observe(
            "initial",
            {"Owner": owner_start, "Bob": 0, "Charlie": 0},
            "initial coin balance",
        )

        self._confirm(self._coin.mint(owner, self._addr("Bob"), 100))
        self._confirm(self._coin.mint(owner, owner.address, 100))
        self._observe(
            "mint",
            {"Bob": 100, "Owner": owner_start + 100},
            "updated coin primary fungible store balance after minting",
        )

        self._confirm(self._coin.transfer(owner, self._addr("Bob"), self._addr("Charlie"), 100))
        self._observe(
            "admin_transfer",
            {"Bob": 0, "Charlie": 100},
            "updated coin balance after transfer from Bob to Charlie by Owner",
        )

        self._confirm(self._coin.burn(owner, self._addr("Charlie"), 50))
        self._observe(
            "burn",
            {"Charlie": 50, "Owner": owner_start + 100},
            "updated coin balance after Owner burnt Charlie coins",
        )

        self._confirm(self._coin.freeze(owner, self._addr("Charlie")))
        self._out("Owner has frozen Charlie's account\n")
        self._attempt_frozen_transfer()
        self._observe(
            "frozen_transfer",
            {"Charlie": 50, "Bob": 0},
            "coin balance after the rejected transfer",
        )

        self._confirm(self._coin.unfreeze(owner, self._addr("Charlie")))
        self._out("Owner has unfrozen Charlie's account\n")

        self._confirm(self._send_charlie_to_bob())
        self._observe(
            "user_transfer",
            {"Charlie": 10, "Bob": 40},
            "updated coin balance after sending coins by Charlie to Bob",
        )
        return self._report

    def _send_charlie_to_bob(self) -> str:
        return self._assets.transfer(
            self._accounts["Charlie"], self._require_asset(), self._addr("Bob"), 40
        )

    def _attempt_frozen_transfer(self) -> None:
        try:
            self._confirm(self._send_charlie_to_bob())
        except ExecutionFailed as exc:
            if exc.reason is not FailureReason.STORE_FROZEN:
                raise
            logger.info("frozen transfer rejected: %s", exc.vm_status)
            self._report.frozen_transfer_rejected = True
            self._out("Charlie can't transfer coins because his account is frozen\n")
            return
        raise ScenarioError("transfer from a frozen store was executed")


def _build(cfg: DemoConfig, owner: Account) -> tuple[ChainClient, FaucetClient, DemoOrchestrator]:
    chain = ChainClient(NodeTransport(cfg.node_url))
    faucet = FaucetClient(cfg.faucet_url, chain)
    orchestrator = DemoOrchestrator(
        chain,
        ManagedCoinClient(chain, cfg.coin_module),
        AssetQueryClient(chain),
        faucet,
        owner,
        fund_amount=cfg.fund_amount,
        policy=ConfirmationPolicy(check_success=True, timeout=cfg.confirmation_timeout),
    )
    return chain, faucet, orchestrator


def main() -> int:
    """Run the scenario; returns the process exit status."""
    try:
        cfg = load_config()
    except ConfigError as exc:
        configure_logging()
        logger.error("%s", exc)
        return 1
    configure_logging(cfg.log_level)

    try:
        owner = Account.load(cfg.owner_key_file, cfg.owner_address)
    except (OSError, ValueError) as exc:
        logger.error("cannot load owner key from %s: %s", cfg.owner_key_file, exc)
        return 1

    chain, faucet, orchestrator = _build(cfg, owner)
    try:
        orchestrator.run()
    except FaClientError as exc:
        logger.error("scenario failed: %s", exc)
        return 1
    finally:
        faucet.close()
        chain.close()
    logger.info("scenario complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())
