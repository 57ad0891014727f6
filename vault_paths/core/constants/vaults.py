from __future__ import annotations

from typing import Literal

SchemaVersion = Literal["v1", "v2"]
Period = Literal["7d", "30d", "90d", "1y", "all"]

SCHEMA_VERSIONS: tuple[str, ...] = ("v1", "v2")
VALID_PERIODS: tuple[str, ...] = ("7d", "30d", "90d", "1y", "all")
DEFAULT_PERIOD = "30d"

PERIOD_SECONDS: dict[str, int] = {
    "7d": 7 * 24 * 60 * 60,
    "30d": 30 * 24 * 60 * 60,
    "90d": 90 * 24 * 60 * 60,
    "1y": 365 * 24 * 60 * 60,
}

INTERVAL_MAP: dict[str, str] = {
    "7d": "HOUR",
    "30d": "HOUR",
    "90d": "DAY",
    "1y": "DAY",
    "all": "DAY",
}

# Upstream history before this point (2025-10-07 UTC) is not trusted.
MIN_VALID_TIMESTAMP = 1759795200

ADDRESS_PATTERN = r"^0x[a-fA-F0-9]{40}$"
MAX_CHAIN_ID = 2**31 - 1

# Raw-vs-converted reconciliation bounds for totalAssets samples.
CONVERTED_RATIO_MIN = 0.01
CONVERTED_RATIO_MAX = 100.0
RAW_RATIO_MIN = 0.5
RAW_RATIO_MAX = 2.0

DEFAULT_ASSET_PRICE = 1.0
DEFAULT_ASSET_DECIMALS = 18

ACTIVITY_LIMIT_ALL = 100
ACTIVITY_LIMIT_USER = 1000

V1_DEPOSIT_TYPE = "MetaMorphoDeposit"
V1_WITHDRAW_TYPE = "MetaMorphoWithdraw"
V2_DEPOSIT_TYPE = "Deposit"
V2_WITHDRAW_TYPE = "Withdraw"

# Allocation history is only meaningful after 2025-10-01 UTC.
ALLOCATION_HISTORY_MIN_TIMESTAMP = 1759276800
