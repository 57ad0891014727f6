from __future__ import annotations

from typing import Any

from eth_utils import to_checksum_address

from vault_paths.core.constants.contracts import (
    is_weth,
    requires_approval_reset,
    weth_address,
)
from vault_paths.core.constants.erc4626_abi import ERC4626_ABI
from vault_paths.core.constants.weth_abi import WETH_ABI
from vault_paths.core.utils import web3 as web3_utils
from vault_paths.core.utils.tokens import (
    build_approve_transaction,
    get_token_allowance,
    get_token_balance,
)
from vault_paths.core.utils.transaction import encode_call


class OnChainVaultGateway:
    """ERC-4626 reads and unsigned transactions over the configured RPCs."""

    def __init__(self, chain_id: int) -> None:
        self.chain_id = int(chain_id)

    async def _vault_call(self, vault: str, fn_name: str, *args: Any) -> Any:
        async with web3_utils.web3_from_chain_id(self.chain_id) as web3:
            contract = web3.eth.contract(
                address=to_checksum_address(str(vault)), abi=ERC4626_ABI
            )
            return await getattr(contract.functions, fn_name)(*args).call(
                block_identifier="pending"
            )

    def is_weth(self, token: str) -> bool:
        return is_weth(self.chain_id, token)

    def requires_approval_reset(self, token: str) -> bool:
        return requires_approval_reset(self.chain_id, token)

    def _weth(self) -> str:
        addr = weth_address(self.chain_id)
        if not addr:
            raise ValueError(f"WETH not configured for chain_id={self.chain_id}")
        return addr

    async def vault_asset(self, vault: str) -> str:
        return to_checksum_address(str(await self._vault_call(vault, "asset")))

    async def allowance(self, token: str, owner: str, spender: str) -> int:
        return await get_token_allowance(token, self.chain_id, owner, spender)

    async def token_balance(self, token: str, owner: str) -> int:
        return await get_token_balance(token, self.chain_id, owner)

    async def native_balance(self, owner: str) -> int:
        return await get_token_balance(None, self.chain_id, owner)

    async def preview_withdraw(self, vault: str, assets: int) -> int:
        return int(await self._vault_call(vault, "previewWithdraw", int(assets)))

    async def preview_redeem(self, vault: str, shares: int) -> int:
        return int(await self._vault_call(vault, "previewRedeem", int(shares)))

    async def convert_to_assets(self, vault: str, shares: int) -> int:
        return int(await self._vault_call(vault, "convertToAssets", int(shares)))

    async def build_approve(
        self, token: str, spender: str, amount: int, owner: str
    ) -> dict[str, Any]:
        return await build_approve_transaction(
            owner, self.chain_id, token, spender, int(amount)
        )

    async def build_deposit(
        self, vault: str, assets: int, owner: str
    ) -> dict[str, Any]:
        return await encode_call(
            target=vault,
            abi=ERC4626_ABI,
            fn_name="deposit",
            args=[int(assets), to_checksum_address(owner)],
            from_address=owner,
            chain_id=self.chain_id,
        )

    async def build_withdraw(
        self, vault: str, assets: int, owner: str
    ) -> dict[str, Any]:
        owner = to_checksum_address(owner)
        return await encode_call(
            target=vault,
            abi=ERC4626_ABI,
            fn_name="withdraw",
            args=[int(assets), owner, owner],
            from_address=owner,
            chain_id=self.chain_id,
        )

    async def build_redeem(self, vault: str, shares: int, owner: str) -> dict[str, Any]:
        owner = to_checksum_address(owner)
        return await encode_call(
            target=vault,
            abi=ERC4626_ABI,
            fn_name="redeem",
            args=[int(shares), owner, owner],
            from_address=owner,
            chain_id=self.chain_id,
        )

    async def build_wrap(self, amount: int, owner: str) -> dict[str, Any]:
        return await encode_call(
            target=self._weth(),
            abi=WETH_ABI,
            fn_name="deposit",
            args=[],
            from_address=owner,
            chain_id=self.chain_id,
            value=int(amount),
        )

    async def build_unwrap(self, amount: int, owner: str) -> dict[str, Any]:
        return await encode_call(
            target=self._weth(),
            abi=WETH_ABI,
            fn_name="withdraw",
            args=[int(amount)],
            from_address=owner,
            chain_id=self.chain_id,
        )
