from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock

import pytest

from vault_paths.core.utils.receipts import ReceiptWaiter

OWNER = "0x81830bC5f811aF86fF6f17Fb9a619088B09Dff43"
USDC = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
WETH = "0x4200000000000000000000000000000000000006"
VAULT = "0xBEEF01735c132Ada46AA9aA4c54623cAA92A64CB"
VAULT_B = "0x1111111111111111111111111111111111111111"


class FakeGateway:
    """In-memory chain: balances, allowances and ERC-4626 previews at 1:1."""

    chain_id = 8453

    def __init__(self) -> None:
        self.assets: dict[str, str] = {VAULT: USDC, VAULT_B: USDC}
        self.allowances: dict[tuple[str, str], int] = {}
        self.balances: dict[str, int] = {}
        self.native = 0
        # assets per share, as a fraction
        self.rate = (1, 1)
        self.preview_redeem_error: Exception | None = None
        self.reset_tokens: set[str] = set()

    def is_weth(self, token: str) -> bool:
        return token.lower() == WETH.lower()

    def requires_approval_reset(self, token: str) -> bool:
        return token in self.reset_tokens

    async def vault_asset(self, vault: str) -> str:
        return self.assets[vault]

    async def allowance(self, token: str, owner: str, spender: str) -> int:
        return self.allowances.get((token, spender), 0)

    async def token_balance(self, token: str, owner: str) -> int:
        return self.balances.get(token, 0)

    async def native_balance(self, owner: str) -> int:
        return self.native

    async def convert_to_assets(self, vault: str, shares: int) -> int:
        num, den = self.rate
        return shares * num // den

    async def preview_redeem(self, vault: str, shares: int) -> int:
        if self.preview_redeem_error is not None:
            raise self.preview_redeem_error
        return await self.convert_to_assets(vault, shares)

    async def preview_withdraw(self, vault: str, assets: int) -> int:
        num, den = self.rate
        return -(-assets * den // num)

    async def build_approve(self, token, spender, amount, owner) -> dict[str, Any]:
        return {"kind": "approve", "token": token, "spender": spender, "amount": amount}

    async def build_deposit(self, vault, assets, owner) -> dict[str, Any]:
        return {"kind": "deposit", "vault": vault, "amount": assets}

    async def build_withdraw(self, vault, assets, owner) -> dict[str, Any]:
        return {"kind": "withdraw", "vault": vault, "amount": assets}

    async def build_redeem(self, vault, shares, owner) -> dict[str, Any]:
        return {"kind": "redeem", "vault": vault, "amount": shares}

    async def build_wrap(self, amount, owner) -> dict[str, Any]:
        return {"kind": "wrap", "amount": amount}

    async def build_unwrap(self, amount, owner) -> dict[str, Any]:
        return {"kind": "unwrap", "amount": amount}


class FakeWallet:
    def __init__(self, address: str = OWNER, reject_at: int | None = None) -> None:
        self.address = address
        self.sent: list[dict[str, Any]] = []
        self.reject_at = reject_at

    async def send(self, transaction: dict[str, Any]) -> str:
        if self.reject_at is not None and len(self.sent) == self.reject_at:
            raise RuntimeError("User rejected the request.")
        self.sent.append(transaction)
        return "0x" + f"{len(self.sent):064x}"

    @property
    def kinds(self) -> list[str]:
        return [tx["kind"] for tx in self.sent]


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def wallet() -> FakeWallet:
    return FakeWallet()


@pytest.fixture
def receipts() -> ReceiptWaiter:
    return ReceiptWaiter(
        8453,
        poll_interval=0.01,
        timeout=1.0,
        fetch_receipt=AsyncMock(return_value={"status": 1, "blockNumber": 1}),
    )
