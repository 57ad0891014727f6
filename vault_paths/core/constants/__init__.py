from vault_paths.core.constants.base import (
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_TRANSACTION_TIMEOUT,
    MAX_UINT256,
    NATIVE_GAS_SYMBOLS,
)
from vault_paths.core.constants.chains import CHAIN_ID_BASE, SUPPORTED_CHAINS

__all__ = [
    "CHAIN_ID_BASE",
    "DEFAULT_HTTP_TIMEOUT",
    "DEFAULT_TRANSACTION_TIMEOUT",
    "MAX_UINT256",
    "NATIVE_GAS_SYMBOLS",
    "SUPPORTED_CHAINS",
]
