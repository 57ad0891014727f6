from __future__ import annotations

from dataclasses import dataclass, replace
from enum import StrEnum
from typing import Literal

from vault_paths.core.utils.units import parse_amount
from vault_paths.transactions.accounts import (
    Account,
    DerivedAsset,
    TransactionType,
    accounts_compatible,
    derive_asset,
    transaction_type_for,
)
from vault_paths.transactions.errors import (
    InvalidTransitionError,
    TransactionInProgressError,
    TransactionValidationError,
)

StepType = Literal["signing", "approving", "confirming"]


class TransactionStatus(StrEnum):
    IDLE = "idle"
    PREVIEW = "preview"
    SIGNING = "signing"
    APPROVING = "approving"
    CONFIRMING = "confirming"
    SUCCESS = "success"
    ERROR = "error"


IN_FLIGHT = frozenset(
    {
        TransactionStatus.SIGNING,
        TransactionStatus.APPROVING,
        TransactionStatus.CONFIRMING,
    }
)


@dataclass(frozen=True)
class TransactionProgressStep:
    type: StepType
    step_index: int
    total_steps: int
    step_label: str
    contract_address: str | None = None
    tx_hash: str | None = None


@dataclass(frozen=True)
class TransactionState:
    status: TransactionStatus = TransactionStatus.IDLE
    transaction_type: TransactionType | None = None
    from_account: Account | None = None
    to_account: Account | None = None
    amount: str = ""
    derived_asset: DerivedAsset | None = None
    current_tx_hash: str | None = None
    pending_step_index: int = 0
    total_steps: int = 0
    step_label: str | None = None
    error: str | None = None

    @property
    def is_idle(self) -> bool:
        return self.status is TransactionStatus.IDLE

    @property
    def in_flight(self) -> bool:
        return self.status in IN_FLIGHT


@dataclass(frozen=True)
class OpenFlow:
    from_account: Account
    to_account: Account
    amount: str


@dataclass(frozen=True)
class ConfirmFlow:
    pass


@dataclass(frozen=True)
class StepProgress:
    step: TransactionProgressStep


@dataclass(frozen=True)
class FlowSucceeded:
    tx_hash: str


@dataclass(frozen=True)
class FlowFailed:
    message: str
    cancelled: bool = False


@dataclass(frozen=True)
class Dismiss:
    pass


TransactionEvent = (
    OpenFlow | ConfirmFlow | StepProgress | FlowSucceeded | FlowFailed | Dismiss
)

_STEP_STATUS: dict[str, TransactionStatus] = {
    "signing": TransactionStatus.SIGNING,
    "approving": TransactionStatus.APPROVING,
    "confirming": TransactionStatus.CONFIRMING,
}


def _validate_amount(amount: str, asset: DerivedAsset) -> None:
    try:
        raw = parse_amount(amount, asset.decimals)
    except ValueError as exc:
        raise TransactionValidationError(str(exc)) from exc
    if raw <= 0:
        raise TransactionValidationError(
            f"Amount must be at least one unit of {asset.symbol} "
            f"({asset.decimals} decimals)"
        )


def _open(state: TransactionState, event: OpenFlow) -> TransactionState:
    if not state.is_idle:
        raise TransactionInProgressError(state.status.value)
    tx_type = transaction_type_for(event.from_account, event.to_account)
    if not accounts_compatible(event.from_account, event.to_account):
        raise TransactionValidationError(
            "Vault-to-vault transfers require both vaults to hold the same asset"
        )
    asset = derive_asset(event.from_account, event.to_account)
    _validate_amount(event.amount, asset)
    return TransactionState(
        status=TransactionStatus.PREVIEW,
        transaction_type=tx_type,
        from_account=event.from_account,
        to_account=event.to_account,
        amount=str(event.amount).strip(),
        derived_asset=asset,
    )


def transition(state: TransactionState, event: TransactionEvent) -> TransactionState:
    """Apply one event; invalid events raise and leave ``state`` untouched."""
    status = state.status
    name = type(event).__name__

    match event:
        case OpenFlow():
            return _open(state, event)

        case ConfirmFlow():
            if status is not TransactionStatus.PREVIEW:
                raise InvalidTransitionError(status.value, name)
            return replace(
                state,
                status=TransactionStatus.SIGNING,
                current_tx_hash=None,
                pending_step_index=0,
                error=None,
            )

        case StepProgress(step=step):
            if status not in IN_FLIGHT:
                raise InvalidTransitionError(status.value, name)
            return replace(
                state,
                status=_STEP_STATUS[step.type],
                current_tx_hash=step.tx_hash or None,
                pending_step_index=step.step_index,
                total_steps=step.total_steps,
                step_label=step.step_label,
            )

        case FlowSucceeded(tx_hash=tx_hash):
            if status not in IN_FLIGHT:
                raise InvalidTransitionError(status.value, name)
            return replace(
                state, status=TransactionStatus.SUCCESS, current_tx_hash=tx_hash
            )

        case FlowFailed(cancelled=True):
            if status not in IN_FLIGHT:
                raise InvalidTransitionError(status.value, name)
            # Back to preview so the same inputs can be retried.
            return replace(
                state,
                status=TransactionStatus.PREVIEW,
                current_tx_hash=None,
                pending_step_index=0,
                total_steps=0,
                step_label=None,
                error=None,
            )

        case FlowFailed(message=message):
            if status not in IN_FLIGHT:
                raise InvalidTransitionError(status.value, name)
            return replace(state, status=TransactionStatus.ERROR, error=message)

        case Dismiss():
            if status in IN_FLIGHT:
                raise InvalidTransitionError(status.value, name)
            return TransactionState()

    raise InvalidTransitionError(status.value, name)
