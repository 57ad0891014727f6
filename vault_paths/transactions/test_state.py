from __future__ import annotations

import pytest

from vault_paths.transactions.accounts import (
    VaultAccount,
    WalletAccount,
    accounts_compatible,
    derive_asset,
    transaction_type_for,
)
from vault_paths.transactions.errors import (
    InvalidTransitionError,
    TransactionInProgressError,
    TransactionValidationError,
)
from vault_paths.transactions.state import (
    ConfirmFlow,
    Dismiss,
    FlowFailed,
    FlowSucceeded,
    OpenFlow,
    StepProgress,
    TransactionProgressStep,
    TransactionState,
    TransactionStatus,
    transition,
)

USDC = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
WALLET = WalletAccount(symbol="USDC", balance=10_000_000, asset_address=USDC)
VAULT_A = VaultAccount(
    address="0xBEEF01735c132Ada46AA9aA4c54623cAA92A64CB",
    name="Steakhouse USDC",
    symbol="USDC",
    balance=5_000_000,
    asset_address=USDC,
    asset_decimals=6,
)
VAULT_B = VaultAccount(
    address="0x1111111111111111111111111111111111111111",
    name="Gauntlet USDC",
    symbol="usdc",
    balance=0,
    asset_address=USDC.lower(),
    asset_decimals=6,
)
VAULT_WETH = VaultAccount(
    address="0x2222222222222222222222222222222222222222",
    name="Moonwell WETH",
    symbol="WETH",
    balance=0,
    asset_address="0x4200000000000000000000000000000000000006",
)


def _step(kind, index=0, total=2, tx_hash=None):
    return StepProgress(
        TransactionProgressStep(
            type=kind,
            step_index=index,
            total_steps=total,
            step_label=kind.title(),
            tx_hash=tx_hash,
        )
    )


def _preview(from_account=WALLET, to_account=VAULT_A, amount="1.5"):
    return transition(TransactionState(), OpenFlow(from_account, to_account, amount))


def test_transaction_type_by_account_kinds():
    assert transaction_type_for(WALLET, VAULT_A) == "deposit"
    assert transaction_type_for(VAULT_A, WALLET) == "withdraw"
    assert transaction_type_for(VAULT_A, VAULT_B) == "transfer"
    with pytest.raises(TransactionValidationError):
        transaction_type_for(WALLET, WALLET)


def test_vault_transfers_need_matching_assets():
    assert accounts_compatible(VAULT_A, VAULT_B)
    assert not accounts_compatible(VAULT_A, VAULT_WETH)
    assert accounts_compatible(WALLET, VAULT_WETH)


def test_derive_asset_prefers_vault_side():
    asset = derive_asset(WALLET, VAULT_A)
    assert (asset.symbol, asset.decimals) == ("USDC", 6)
    assert derive_asset(VAULT_WETH, WALLET).decimals == 18


def test_open_moves_idle_to_preview():
    state = _preview()
    assert state.status is TransactionStatus.PREVIEW
    assert state.transaction_type == "deposit"
    assert state.amount == "1.5"
    assert state.derived_asset.decimals == 6


def test_open_rejects_incompatible_transfer():
    with pytest.raises(TransactionValidationError):
        _preview(VAULT_A, VAULT_WETH)


@pytest.mark.parametrize("amount", ["0", "-1", "abc", "", "0.0000001", "1e3"])
def test_open_rejects_bad_amounts(amount):
    with pytest.raises(TransactionValidationError):
        _preview(amount=amount)


def test_only_one_transaction_at_a_time():
    state = transition(_preview(), ConfirmFlow())
    with pytest.raises(TransactionInProgressError) as excinfo:
        transition(state, OpenFlow(VAULT_A, WALLET, "1"))
    assert "already in progress" in str(excinfo.value)
    # The rejected open leaves the running flow untouched.
    assert state.status is TransactionStatus.SIGNING
    assert state.transaction_type == "deposit"


def test_happy_path_through_steps():
    state = transition(_preview(), ConfirmFlow())
    assert state.status is TransactionStatus.SIGNING

    state = transition(state, _step("approving", 0))
    assert state.status is TransactionStatus.APPROVING
    assert state.pending_step_index == 0
    assert state.total_steps == 2

    state = transition(state, _step("approving", 0, tx_hash="0xaa"))
    assert state.current_tx_hash == "0xaa"

    state = transition(state, _step("confirming", 1, tx_hash="0xbb"))
    assert state.status is TransactionStatus.CONFIRMING
    assert state.pending_step_index == 1

    state = transition(state, FlowSucceeded("0xbb"))
    assert state.status is TransactionStatus.SUCCESS
    assert state.current_tx_hash == "0xbb"

    state = transition(state, Dismiss())
    assert state == TransactionState()


def test_cancelled_failure_returns_to_preview_and_clears_hash():
    state = transition(_preview(), ConfirmFlow())
    state = transition(state, _step("confirming", 1, tx_hash="0xbb"))
    state = transition(state, FlowFailed("Transaction cancelled.", cancelled=True))

    assert state.status is TransactionStatus.PREVIEW
    assert state.current_tx_hash is None
    assert state.error is None
    assert state.amount == "1.5"


def test_other_failures_land_in_error():
    state = transition(_preview(), ConfirmFlow())
    state = transition(state, FlowFailed("Network error."))
    assert state.status is TransactionStatus.ERROR
    assert state.error == "Network error."

    assert transition(state, Dismiss()).is_idle


def test_invalid_transitions_raise():
    with pytest.raises(InvalidTransitionError):
        transition(TransactionState(), ConfirmFlow())
    with pytest.raises(InvalidTransitionError):
        transition(_preview(), FlowSucceeded("0x1"))
    with pytest.raises(InvalidTransitionError):
        transition(transition(_preview(), ConfirmFlow()), Dismiss())


def test_states_are_immutable():
    state = _preview()
    with pytest.raises(AttributeError):
        state.status = TransactionStatus.ERROR  # type: ignore[misc]
