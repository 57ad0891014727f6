CHAIN_ID_ETHEREUM = 1
CHAIN_ID_BASE = 8453
CHAIN_ID_ARBITRUM = 42161
CHAIN_ID_POLYGON = 137
CHAIN_ID_UNICHAIN = 130
CHAIN_ID_KATANA = 747474

SUPPORTED_CHAINS = [
    CHAIN_ID_ETHEREUM,
    CHAIN_ID_BASE,
    CHAIN_ID_ARBITRUM,
    CHAIN_ID_POLYGON,
    CHAIN_ID_UNICHAIN,
    CHAIN_ID_KATANA,
]

POA_MIDDLEWARE_CHAIN_IDS: set[int] = {
    CHAIN_ID_POLYGON,
}

PRE_EIP_1559_CHAIN_IDS: set[int] = {
    CHAIN_ID_ARBITRUM,
}
