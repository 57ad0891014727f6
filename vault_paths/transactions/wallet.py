from __future__ import annotations

from typing import Any, Protocol

from eth_account import Account
from eth_utils import to_checksum_address

from vault_paths.core.utils.transaction import (
    SignCallback,
    private_key_sign_callback,
    submit_transaction,
)


class WalletProvider(Protocol):
    """Signs and broadcasts one transaction; raises if the user rejects it."""

    address: str

    async def send(self, transaction: dict[str, Any]) -> str: ...


class SigningWallet:
    def __init__(self, address: str, sign_callback: SignCallback) -> None:
        self.address = to_checksum_address(address)
        self.sign_callback = sign_callback

    @classmethod
    def from_private_key(cls, private_key: str) -> SigningWallet:
        account = Account.from_key(private_key)
        return cls(account.address, private_key_sign_callback(private_key))

    async def send(self, transaction: dict[str, Any]) -> str:
        tx = dict(transaction)
        tx.setdefault("from", self.address)
        return await submit_transaction(tx, self.sign_callback)
