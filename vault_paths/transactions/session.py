from __future__ import annotations

import asyncio
from collections.abc import Callable

from loguru import logger

from vault_paths.core.utils.receipts import ReceiptWaiter
from vault_paths.core.utils.units import is_native_gas_symbol, parse_amount
from vault_paths.transactions.accounts import Account, VaultAccount, WalletAccount
from vault_paths.transactions.errors import classify_transaction_error
from vault_paths.transactions.orchestrator import (
    TransactionOrchestrator,
    VaultGateway,
)
from vault_paths.transactions.state import (
    ConfirmFlow,
    Dismiss,
    FlowFailed,
    FlowSucceeded,
    OpenFlow,
    StepProgress,
    TransactionEvent,
    TransactionProgressStep,
    TransactionState,
    transition,
)
from vault_paths.transactions.wallet import WalletProvider

StateListener = Callable[[TransactionState], None]


class TransactionSession:
    """Owner of the one live ``TransactionState`` for a user session.

    All changes go through ``transition``; listeners receive every new
    state object.
    """

    def __init__(
        self,
        *,
        gateway: VaultGateway,
        wallet: WalletProvider,
        receipts: ReceiptWaiter | None = None,
    ) -> None:
        self.gateway = gateway
        self.wallet = wallet
        self.receipts = receipts or ReceiptWaiter(gateway.chain_id)
        self._state = TransactionState()
        self._listeners: list[StateListener] = []
        self.progress: list[TransactionProgressStep] = []
        self._cancel_event: asyncio.Event | None = None
        self.logger = logger.bind(component="TransactionSession")

    @property
    def state(self) -> TransactionState:
        return self._state

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def dispatch(self, event: TransactionEvent) -> TransactionState:
        previous = self._state
        self._state = transition(previous, event)
        if self._state.status is not previous.status:
            self.logger.info(
                f"Transaction {previous.status.value} -> {self._state.status.value}"
            )
        for listener in list(self._listeners):
            listener(self._state)
        return self._state

    def open(
        self, from_account: Account, to_account: Account, amount: str
    ) -> TransactionState:
        return self.dispatch(OpenFlow(from_account, to_account, amount))

    def _on_progress(self, step: TransactionProgressStep) -> None:
        self.progress.append(step)
        self.dispatch(StepProgress(step))

    async def confirm(self) -> TransactionState:
        """Run the previewed flow to a terminal state."""
        self.dispatch(ConfirmFlow())
        self.progress = []
        self._cancel_event = asyncio.Event()
        orchestrator = TransactionOrchestrator(
            gateway=self.gateway,
            wallet=self.wallet,
            receipts=self.receipts,
            on_progress=self._on_progress,
            cancel_event=self._cancel_event,
        )
        try:
            tx_hash = await self._execute(orchestrator, self._state)
        except Exception as exc:  # noqa: BLE001
            cancelled, message = classify_transaction_error(exc)
            if cancelled:
                self.logger.info(f"Transaction cancelled: {exc}")
            else:
                self.logger.error(f"Transaction failed: {exc}")
            return self.dispatch(FlowFailed(message, cancelled=cancelled))
        finally:
            self._cancel_event = None
        return self.dispatch(FlowSucceeded(tx_hash))

    async def _execute(
        self, orchestrator: TransactionOrchestrator, state: TransactionState
    ) -> str:
        decimals = state.derived_asset.decimals if state.derived_asset else 18
        amount = parse_amount(state.amount, decimals)
        source, destination = state.from_account, state.to_account

        match source, destination:
            case WalletAccount(), VaultAccount():
                return await orchestrator.deposit(
                    destination.address,
                    amount,
                    from_native=is_native_gas_symbol(source.symbol),
                )
            case VaultAccount(), WalletAccount():
                return await orchestrator.withdraw(
                    source.address,
                    amount,
                    decimals=decimals,
                    to_native=is_native_gas_symbol(destination.symbol),
                )
            case VaultAccount(), VaultAccount():
                return await orchestrator.transfer(
                    source.address, destination.address, amount, decimals=decimals
                )
        raise ValueError(f"Unsupported transaction type: {state.transaction_type}")

    def cancel(self) -> TransactionState:
        """Abandon the flow: in flight it unwinds to preview, otherwise resets."""
        if self._state.in_flight:
            if self._cancel_event is not None:
                self._cancel_event.set()
            return self._state
        return self.dispatch(Dismiss())

    def dismiss(self) -> TransactionState:
        return self.dispatch(Dismiss())
