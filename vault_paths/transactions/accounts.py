from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from vault_paths.core.constants.vaults import DEFAULT_ASSET_DECIMALS
from vault_paths.transactions.errors import TransactionValidationError

TransactionType = Literal["deposit", "withdraw", "transfer"]


@dataclass(frozen=True)
class WalletAccount:
    symbol: str
    balance: int = 0
    asset_address: str | None = None

    kind: Literal["wallet"] = "wallet"


@dataclass(frozen=True)
class VaultAccount:
    address: str
    name: str
    # Symbol of the underlying asset.
    symbol: str
    balance: int
    asset_address: str
    asset_decimals: int = DEFAULT_ASSET_DECIMALS

    kind: Literal["vault"] = "vault"


Account = WalletAccount | VaultAccount


@dataclass(frozen=True)
class DerivedAsset:
    symbol: str
    decimals: int


def transaction_type_for(from_account: Account, to_account: Account) -> TransactionType:
    match from_account, to_account:
        case WalletAccount(), VaultAccount():
            return "deposit"
        case VaultAccount(), WalletAccount():
            return "withdraw"
        case VaultAccount(), VaultAccount():
            return "transfer"
        case _:
            raise TransactionValidationError(
                "Wallet-to-wallet transfers are not supported"
            )


def accounts_compatible(from_account: Account, to_account: Account) -> bool:
    if isinstance(from_account, VaultAccount) and isinstance(to_account, VaultAccount):
        return (
            from_account.asset_address.lower() == to_account.asset_address.lower()
            and from_account.symbol.upper() == to_account.symbol.upper()
        )
    return True


def derive_asset(from_account: Account, to_account: Account) -> DerivedAsset:
    for account in (from_account, to_account):
        if isinstance(account, VaultAccount):
            return DerivedAsset(account.symbol, account.asset_decimals)
    return DerivedAsset(from_account.symbol, DEFAULT_ASSET_DECIMALS)
