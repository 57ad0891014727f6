from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from loguru import logger

from vault_paths.core.utils.receipts import ReceiptStatus, ReceiptWaiter
from vault_paths.core.utils.transaction import TransactionRevertedError
from vault_paths.core.utils.units import format_amount
from vault_paths.transactions.errors import FlowCancelled, ReceiptWaitCancelled
from vault_paths.transactions.state import StepType, TransactionProgressStep
from vault_paths.transactions.wallet import WalletProvider

ProgressCallback = Callable[[TransactionProgressStep], None]
TxBuilder = Callable[[], Awaitable[dict[str, Any]]]


class VaultGateway(Protocol):
    """Chain reads and unsigned transaction builders for one chain."""

    chain_id: int

    async def vault_asset(self, vault: str) -> str: ...
    async def allowance(self, token: str, owner: str, spender: str) -> int: ...
    async def token_balance(self, token: str, owner: str) -> int: ...
    async def native_balance(self, owner: str) -> int: ...
    async def preview_withdraw(self, vault: str, assets: int) -> int: ...
    async def preview_redeem(self, vault: str, shares: int) -> int: ...
    async def convert_to_assets(self, vault: str, shares: int) -> int: ...
    def is_weth(self, token: str) -> bool: ...
    def requires_approval_reset(self, token: str) -> bool: ...

    async def build_approve(
        self, token: str, spender: str, amount: int, owner: str
    ) -> dict[str, Any]: ...
    async def build_deposit(
        self, vault: str, assets: int, owner: str
    ) -> dict[str, Any]: ...
    async def build_withdraw(
        self, vault: str, assets: int, owner: str
    ) -> dict[str, Any]: ...
    async def build_redeem(
        self, vault: str, shares: int, owner: str
    ) -> dict[str, Any]: ...
    async def build_wrap(self, amount: int, owner: str) -> dict[str, Any]: ...
    async def build_unwrap(self, amount: int, owner: str) -> dict[str, Any]: ...


@dataclass(frozen=True)
class PlannedStep:
    type: StepType
    label: str
    # Each builder runs only after the previous transaction is confirmed.
    calls: tuple[TxBuilder, ...]
    contract_address: str | None = None


@dataclass(frozen=True)
class WithdrawPlan:
    redeem_all: bool
    shares: int
    expected_assets: int


class TransactionOrchestrator:
    """Sequence approvals, execution and confirmation for vault flows.

    Prerequisite transactions are chained automatically: once a step's
    receipt confirms, the next step is submitted without further input.
    Setting ``cancel_event`` abandons the flow at the next wallet prompt,
    build or receipt wait.
    """

    def __init__(
        self,
        *,
        gateway: VaultGateway,
        wallet: WalletProvider,
        receipts: ReceiptWaiter,
        on_progress: ProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        self.gateway = gateway
        self.wallet = wallet
        self.receipts = receipts
        self.on_progress = on_progress
        self.cancel_event = cancel_event or asyncio.Event()
        self.logger = logger.bind(component="orchestrator", chain_id=gateway.chain_id)

    def _emit(self, step: TransactionProgressStep) -> None:
        if self.on_progress is not None:
            self.on_progress(step)

    async def _confirm(self, txn_hash: str) -> None:
        result = await self.receipts.wait(txn_hash, cancel_event=self.cancel_event)
        match result.status:
            case ReceiptStatus.CONFIRMED:
                return
            case ReceiptStatus.REVERTED:
                raise TransactionRevertedError(
                    txn_hash, result.receipt, message=result.reason
                )
            case ReceiptStatus.CANCELLED:
                raise ReceiptWaitCancelled(txn_hash)
            case _:
                raise TimeoutError(f"Timed out waiting for receipt of {txn_hash}")

    def _check_cancelled(self, label: str) -> None:
        if self.cancel_event.is_set():
            raise FlowCancelled(label)

    async def _send(self, tx: dict[str, Any], label: str) -> str:
        send = asyncio.ensure_future(self.wallet.send(tx))
        stop = asyncio.ensure_future(self.cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {send, stop}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            stop.cancel()
            if not send.done():
                send.cancel()
        if send not in done:
            raise FlowCancelled(label)
        return send.result()

    async def run(self, steps: Sequence[PlannedStep]) -> str:
        """Execute planned steps in order and return the last transaction hash."""
        total = len(steps)
        last_hash = ""
        for index, step in enumerate(steps):
            base = TransactionProgressStep(
                type=step.type,
                step_index=index,
                total_steps=total,
                step_label=step.label,
                contract_address=step.contract_address,
            )
            self._check_cancelled(step.label)
            self._emit(base)
            for build in step.calls:
                tx = await build()
                self._check_cancelled(step.label)
                last_hash = await self._send(tx, step.label)
                self.logger.info(f"{step.label} submitted: {last_hash}")
                self._emit(
                    TransactionProgressStep(
                        type=step.type,
                        step_index=index,
                        total_steps=total,
                        step_label=step.label,
                        contract_address=step.contract_address,
                        tx_hash=last_hash,
                    )
                )
                await self._confirm(last_hash)
        return last_hash

    async def approval_steps(
        self, token: str, spender: str, amount: int
    ) -> list[PlannedStep]:
        owner = self.wallet.address
        allowance = await self.gateway.allowance(token, owner, spender)
        if allowance >= amount:
            return []

        calls: list[TxBuilder] = []
        if allowance > 0 and self.gateway.requires_approval_reset(token):
            calls.append(lambda: self.gateway.build_approve(token, spender, 0, owner))
        calls.append(lambda: self.gateway.build_approve(token, spender, amount, owner))
        return [
            PlannedStep(
                type="approving",
                label="Approve token",
                contract_address=token,
                calls=tuple(calls),
            )
        ]

    async def _wrap_steps(self, amount: int) -> list[PlannedStep]:
        owner = self.wallet.address
        available = await self.gateway.native_balance(owner)
        if amount > available:
            raise ValueError(
                "Insufficient ETH balance.\n\n"
                f"Requested: {format_amount(amount, 18)} ETH\n"
                f"Available: {format_amount(available, 18)} ETH\n\n"
                "Please reduce the amount or add more ETH to your wallet."
            )
        return [
            PlannedStep(
                type="confirming",
                label="Wrap ETH",
                calls=(lambda: self.gateway.build_wrap(amount, owner),),
            )
        ]

    async def plan_deposit(
        self, vault: str, amount: int, *, from_native: bool = False
    ) -> list[PlannedStep]:
        owner = self.wallet.address
        asset = await self.gateway.vault_asset(vault)

        steps: list[PlannedStep] = []
        if from_native and self.gateway.is_weth(asset):
            steps.extend(await self._wrap_steps(amount))
        steps.extend(await self.approval_steps(asset, vault, amount))
        steps.append(
            PlannedStep(
                type="confirming",
                label="Deposit",
                contract_address=vault,
                calls=(lambda: self.gateway.build_deposit(vault, amount, owner),),
            )
        )
        return steps

    async def _withdraw_plan(
        self, vault: str, amount: int, decimals: int
    ) -> WithdrawPlan:
        owner = self.wallet.address
        shares = await self.gateway.token_balance(vault, owner)
        if shares == 0:
            raise ValueError("No shares to withdraw")

        # Withdrawing exactly the whole position redeems every share so no dust is left.
        available = await self.gateway.convert_to_assets(vault, shares)
        if amount == available:
            try:
                expected = await self.gateway.preview_redeem(vault, shares)
            except Exception:  # noqa: BLE001
                expected = available
            return WithdrawPlan(
                redeem_all=True, shares=shares, expected_assets=expected
            )

        needed = await self.gateway.preview_withdraw(vault, amount)
        if needed > shares:
            raise ValueError(
                "Insufficient balance for vault withdrawal.\n\n"
                f"Requested: {format_amount(amount, decimals)} assets\n"
                f"Available: {format_amount(available, decimals)} assets\n\n"
                "Please reduce the amount or deposit more funds to the vault."
            )
        return WithdrawPlan(redeem_all=False, shares=needed, expected_assets=amount)

    def _exit_call(self, vault: str, amount: int, plan: WithdrawPlan) -> TxBuilder:
        owner = self.wallet.address
        if plan.redeem_all:
            return lambda: self.gateway.build_redeem(vault, plan.shares, owner)
        return lambda: self.gateway.build_withdraw(vault, amount, owner)

    async def plan_withdraw(
        self, vault: str, amount: int, *, decimals: int, to_native: bool = False
    ) -> list[PlannedStep]:
        owner = self.wallet.address
        plan = await self._withdraw_plan(vault, amount, decimals)
        steps = [
            PlannedStep(
                type="confirming",
                label="Redeem" if plan.redeem_all else "Withdraw",
                contract_address=vault,
                calls=(self._exit_call(vault, amount, plan),),
            )
        ]

        asset = await self.gateway.vault_asset(vault)
        if to_native and self.gateway.is_weth(asset):

            async def _unwrap() -> dict[str, Any]:
                # Never unwrap more WETH than the wallet actually received.
                balance = await self.gateway.token_balance(asset, owner)
                return await self.gateway.build_unwrap(
                    min(plan.expected_assets, balance), owner
                )

            steps.append(
                PlannedStep(type="confirming", label="Unwrap WETH", calls=(_unwrap,))
            )
        return steps

    async def plan_transfer(
        self, source: str, destination: str, amount: int, *, decimals: int
    ) -> list[PlannedStep]:
        owner = self.wallet.address
        plan = await self._withdraw_plan(source, amount, decimals)
        asset = await self.gateway.vault_asset(destination)

        steps = await self.approval_steps(asset, destination, plan.expected_assets)
        steps.append(
            PlannedStep(
                type="confirming",
                label="Transfer",
                contract_address=destination,
                calls=(
                    self._exit_call(source, amount, plan),
                    lambda: self.gateway.build_deposit(
                        destination, plan.expected_assets, owner
                    ),
                ),
            )
        )
        return steps

    async def deposit(
        self, vault: str, amount: int, *, from_native: bool = False
    ) -> str:
        return await self.run(
            await self.plan_deposit(vault, amount, from_native=from_native)
        )

    async def withdraw(
        self, vault: str, amount: int, *, decimals: int, to_native: bool = False
    ) -> str:
        return await self.run(
            await self.plan_withdraw(
                vault, amount, decimals=decimals, to_native=to_native
            )
        )

    async def transfer(
        self, source: str, destination: str, amount: int, *, decimals: int
    ) -> str:
        return await self.run(
            await self.plan_transfer(source, destination, amount, decimals=decimals)
        )
