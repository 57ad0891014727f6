from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utc_date(timestamp: int) -> str:
    return datetime.fromtimestamp(int(timestamp), tz=UTC).strftime("%Y-%m-%d")


class FrozenModel(BaseModel):
    # Snapshots are replaced wholesale, never mutated field by field.
    model_config = ConfigDict(
        frozen=True, populate_by_name=True, alias_generator=to_camel
    )

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class AssetInfo(FrozenModel):
    symbol: str = ""
    decimals: int = 18
    price_usd: float = 0.0
    address: str | None = None


class AllocationEntry(FrozenModel):
    market_key: str
    loan_symbol: str | None = None
    collateral_symbol: str | None = None
    supply_assets_usd: float = 0.0
    percentage_of_vault: float = 0.0


class AdapterEntry(FrozenModel):
    """A v2 sub-strategy the vault allocates into."""

    address: str
    type: str | None = None
    assets_raw: str = "0"
    assets_usd: float = 0.0


class RewardEntry(FrozenModel):
    asset_symbol: str | None = None
    asset_address: str | None = None
    supply_apr: float = 0.0


class VaultSnapshot(FrozenModel):
    address: str
    chain_id: int
    schema_version: Literal["v1", "v2"]
    name: str | None = None
    symbol: str | None = None
    asset: AssetInfo = AssetInfo()

    total_assets_raw: str = "0"
    total_assets: float = 0.0
    total_assets_usd: float = 0.0
    total_supply_raw: str = "0"
    share_price: float = 0.0
    share_price_usd: float = 0.0
    liquidity_usd: float = 0.0

    # Fractions (0.05 == 5%) until presentation.
    apy: float = 0.0
    net_apy: float = 0.0
    net_apy_without_rewards: float = 0.0
    rewards_apr: float = 0.0
    performance_fee: float = 0.0
    management_fee: float = 0.0

    allocation: tuple[AllocationEntry, ...] = ()
    adapters: tuple[AdapterEntry, ...] = ()
    rewards: tuple[RewardEntry, ...] = ()

    @classmethod
    def empty(
        cls,
        *,
        address: str,
        chain_id: int,
        schema_version: Literal["v1", "v2"],
        asset: AssetInfo | None = None,
    ) -> VaultSnapshot:
        return cls(
            address=address,
            chain_id=int(chain_id),
            schema_version=schema_version,
            asset=asset or AssetInfo(),
        )

    @property
    def is_empty(self) -> bool:
        return self.total_assets_raw == "0" and self.total_assets_usd == 0.0


class HistoryPoint(FrozenModel):
    timestamp: int
    date: str = ""
    total_assets_usd: float = 0.0
    total_assets_decimal: float = 0.0
    total_supply: float = 0.0
    share_price: float = 0.0
    share_price_usd: float = 0.0
    apy: float = 0.0
    net_apy: float = 0.0

    @property
    def is_zero(self) -> bool:
        return (
            self.total_assets_usd == 0
            and self.total_assets_decimal == 0
            and self.share_price_usd == 0
        )


class PositionPoint(FrozenModel):
    timestamp: int
    date: str = ""
    assets: float = 0.0
    assets_usd: float = 0.0
    shares: float = 0.0


class AllocationSlice(FrozenModel):
    market_name: str
    value: float = 0.0
    percentage: float = 0.0


class AllocationHistoryPoint(FrozenModel):
    timestamp: int
    date: str = ""
    total_assets_usd: float = 0.0
    # Keyed by market uniqueKey.
    allocations: dict[str, AllocationSlice] = Field(default_factory=dict)


class ActivityEvent(FrozenModel):
    hash: str
    timestamp: int
    block_number: int | None = None
    type: Literal["deposit", "withdraw", "event"]
    user_address: str | None = None
    assets: str = "0"
    shares: str = "0"
    assets_usd: float = 0.0


class ActivityFeed(FrozenModel):
    transactions: tuple[ActivityEvent, ...] = ()
    deposits: tuple[ActivityEvent, ...] = ()
    withdrawals: tuple[ActivityEvent, ...] = ()
    events: tuple[ActivityEvent, ...] = ()

    @classmethod
    def from_events(cls, events: list[ActivityEvent]) -> ActivityFeed:
        ordered = tuple(sorted(events, key=lambda e: e.timestamp, reverse=True))
        return cls(
            transactions=ordered,
            deposits=tuple(e for e in ordered if e.type == "deposit"),
            withdrawals=tuple(e for e in ordered if e.type == "withdraw"),
            events=tuple(e for e in ordered if e.type == "event"),
        )


class VaultPayloadV1(BaseModel):
    """``vaultByAddress`` result: metrics nested under ``state``."""

    schema_version: Literal["v1"] = "v1"
    chain_id: int
    data: dict[str, Any] = Field(default_factory=dict)


class VaultPayloadV2(BaseModel):
    """``vaultV2ByAddress`` result: flat metrics plus ``adapters``."""

    schema_version: Literal["v2"] = "v2"
    chain_id: int
    data: dict[str, Any] = Field(default_factory=dict)


VaultPayload = Annotated[
    VaultPayloadV1 | VaultPayloadV2, Field(discriminator="schema_version")
]

