from __future__ import annotations

GENERIC_FAILURE = "Transaction failed. Please try again."
CANCELLED = "Transaction cancelled."
INSUFFICIENT_BALANCE = "Insufficient balance. Please check your available funds."
REVERTED = (
    "Transaction was reverted. Please try again with a different amount "
    "or check your balance."
)
NETWORK_ERROR = "Network error. Please check your connection and try again."
GAS_ESTIMATION = "Transaction failed due to gas estimation. Please try again."
NOT_READY = "System is preparing the transaction. Please wait a moment and try again."

_CANCELLATION_MARKERS = (
    "user rejected",
    "user cancelled",
    "rejected",
    "denied",
    "action_cancelled",
    "4001",
)
_INSUFFICIENT_MARKERS = ("insufficient", "balance too low")
_DETAIL_MARKERS = ("Breakdown:", "Available:", "Requested:")
_REVERT_MARKERS = ("revert",)
_NETWORK_MARKERS = ("network", "rpc", "fetch", "timeout", "timed out", "connection")
_GAS_MARKERS = ("gas", "fee")
_NOT_READY_MARKERS = ("simulation", "bundler", "not ready")
_FAILED_MARKERS = ("failed",)

# Short, plain messages are shown to the user verbatim.
_PASSTHROUGH_MAX_LEN = 100


class InvalidTransitionError(RuntimeError):
    def __init__(self, status: str, event: str, message: str | None = None) -> None:
        self.status = status
        self.event = event
        super().__init__(message or f"Cannot apply {event} while {status}")


class TransactionInProgressError(InvalidTransitionError):
    def __init__(self, status: str) -> None:
        super().__init__(
            status, "OpenFlow", f"A transaction is already in progress ({status})"
        )


class TransactionValidationError(ValueError):
    pass


class ReceiptWaitCancelled(RuntimeError):
    def __init__(self, txn_hash: str) -> None:
        self.txn_hash = txn_hash
        super().__init__(f"User cancelled while waiting for {txn_hash}")


class FlowCancelled(RuntimeError):
    def __init__(self, step_label: str) -> None:
        self.step_label = step_label
        super().__init__(f"User cancelled the transaction at {step_label}")


def _message(error: BaseException | str | None) -> str:
    if error is None:
        return ""
    return str(error)


def _has(text: str, markers: tuple[str, ...]) -> bool:
    return any(m in text for m in markers)


def is_cancellation(error: BaseException | str | None) -> bool:
    return _has(_message(error).lower(), _CANCELLATION_MARKERS)


def classify_transaction_error(error: BaseException | str | None) -> tuple[bool, str]:
    """Return ``(is_cancellation, user_message)`` for a failed flow."""
    text = _message(error)
    if not text:
        return False, GENERIC_FAILURE

    if is_cancellation(text):
        return True, CANCELLED
    lower = text.lower()
    if _has(lower, _INSUFFICIENT_MARKERS):
        if _has(text, _DETAIL_MARKERS):
            return False, text
        return False, INSUFFICIENT_BALANCE
    if _has(lower, _REVERT_MARKERS):
        return False, REVERTED
    if _has(lower, _NETWORK_MARKERS):
        return False, NETWORK_ERROR
    if _has(lower, _GAS_MARKERS):
        return False, GAS_ESTIMATION
    if _has(lower, _NOT_READY_MARKERS):
        return False, NOT_READY
    if _has(lower, _FAILED_MARKERS):
        return False, GENERIC_FAILURE
    if len(text) < _PASSTHROUGH_MAX_LEN and "Error: " not in text:
        return False, text
    return False, GENERIC_FAILURE
