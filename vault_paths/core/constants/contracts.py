from eth_utils import to_checksum_address

from vault_paths.core.constants.chains import (
    CHAIN_ID_ARBITRUM,
    CHAIN_ID_BASE,
    CHAIN_ID_ETHEREUM,
    CHAIN_ID_UNICHAIN,
)

WETH_BY_CHAIN: dict[int, str] = {
    CHAIN_ID_ETHEREUM: "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
    CHAIN_ID_BASE: "0x4200000000000000000000000000000000000006",
    CHAIN_ID_ARBITRUM: "0x82aF49447D8a07e3bd95BD0d56f35241523fBab1",
    CHAIN_ID_UNICHAIN: "0x4200000000000000000000000000000000000006",
}


def weth_address(chain_id: int) -> str | None:
    return WETH_BY_CHAIN.get(int(chain_id))


def is_weth(chain_id: int, token_address: str | None) -> bool:
    weth = weth_address(chain_id)
    if not weth or not token_address:
        return False
    return str(token_address).lower() == weth.lower()


# (chain_id, token) pairs that refuse to move a non-zero allowance directly.
TOKENS_REQUIRING_APPROVAL_RESET: set[tuple[int, str]] = {
    (CHAIN_ID_ETHEREUM, "0xdAC17F958D2ee523a2206206994597C13D831ec7"),  # USDT
}


def requires_approval_reset(chain_id: int, token_address: str | None) -> bool:
    if not token_address:
        return False
    return (int(chain_id), to_checksum_address(str(token_address))) in (
        TOKENS_REQUIRING_APPROVAL_RESET
    )
