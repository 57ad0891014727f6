from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from vault_paths.core.adapters.models import ActivityEvent, ActivityFeed, AssetInfo
from vault_paths.core.constants.vaults import (
    ACTIVITY_LIMIT_ALL,
    ACTIVITY_LIMIT_USER,
    DEFAULT_ASSET_DECIMALS,
    DEFAULT_ASSET_PRICE,
    V1_DEPOSIT_TYPE,
    V1_WITHDRAW_TYPE,
    V2_DEPOSIT_TYPE,
    V2_WITHDRAW_TYPE,
)
from vault_paths.core.utils.units import safe_float

_EVENT_TYPES = {
    V1_DEPOSIT_TYPE: "deposit",
    V1_WITHDRAW_TYPE: "withdraw",
    V2_DEPOSIT_TYPE: "deposit",
    V2_WITHDRAW_TYPE: "withdraw",
}


def activity_limit(user_address: str | None) -> int:
    return ACTIVITY_LIMIT_USER if user_address else ACTIVITY_LIMIT_ALL


def pricing_for(asset: Mapping[str, Any] | AssetInfo | None) -> tuple[int, float]:
    """Decimals and USD price used to value activity amounts."""
    if isinstance(asset, AssetInfo):
        asset = {
            "symbol": asset.symbol,
            "decimals": asset.decimals,
            "priceUsd": asset.price_usd,
        }
    if not isinstance(asset, Mapping):
        return DEFAULT_ASSET_DECIMALS, DEFAULT_ASSET_PRICE

    decimals = int(asset.get("decimals") or DEFAULT_ASSET_DECIMALS)
    # Assets without an upstream quote are valued at par.
    return decimals, safe_float(asset.get("priceUsd")) or DEFAULT_ASSET_PRICE


def _raw(value: Any) -> str:
    if value is None:
        return "0"
    if isinstance(value, float):
        return str(int(value))
    return str(value)


def _assets_usd(data: Mapping[str, Any], *, decimals: int, price: float) -> float:
    reported = safe_float(data.get("assetsUsd"))
    if reported:
        return reported
    assets = safe_float(data.get("assets"))
    if assets <= 0:
        return 0.0
    return assets / (10**decimals) * price


def _event_type(raw_type: Any) -> str:
    return _EVENT_TYPES.get(str(raw_type or ""), "event")


def v1_event(
    item: Mapping[str, Any], *, decimals: int, price: float
) -> ActivityEvent | None:
    tx_hash = item.get("hash")
    if not tx_hash:
        return None
    data = item.get("data") or {}
    return ActivityEvent(
        hash=str(tx_hash),
        timestamp=int(item.get("timestamp") or 0),
        block_number=item.get("blockNumber"),
        type=_event_type(item.get("type")),
        user_address=(item.get("user") or {}).get("address"),
        assets=_raw(data.get("assets")),
        shares=_raw(data.get("shares")),
        assets_usd=_assets_usd(data, decimals=decimals, price=price),
    )


def v2_event(
    item: Mapping[str, Any], *, decimals: int, price: float
) -> ActivityEvent | None:
    tx_hash = item.get("txHash")
    if not tx_hash:
        return None
    data = item.get("data") or {}
    return ActivityEvent(
        hash=str(tx_hash),
        timestamp=int(item.get("timestamp") or 0),
        block_number=item.get("blockNumber"),
        type=_event_type(item.get("type")),
        user_address=data.get("onBehalf") or data.get("sender"),
        assets=_raw(data.get("assets")),
        shares=_raw(item.get("shares")),
        assets_usd=_assets_usd(data, decimals=decimals, price=price),
    )


def build_activity_feed(
    items: Iterable[Mapping[str, Any]],
    *,
    schema_version: str,
    asset: Mapping[str, Any] | AssetInfo | None = None,
) -> ActivityFeed:
    decimals, price = pricing_for(asset)
    to_event = v2_event if schema_version == "v2" else v1_event
    events = [
        e
        for e in (to_event(i, decimals=decimals, price=price) for i in items)
        if e is not None
    ]
    return ActivityFeed.from_events(events)
