from __future__ import annotations

import time
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from vault_paths.adapters.morpho_vault_adapter.schema import (
    derive_share_price,
    reconcile_total_assets,
    share_decimal,
)
from vault_paths.core.adapters.models import HistoryPoint, PositionPoint, utc_date
from vault_paths.core.clients.MorphoClient import TimeseriesOptions
from vault_paths.core.constants.base import SHARE_DECIMALS
from vault_paths.core.constants.vaults import (
    DEFAULT_PERIOD,
    INTERVAL_MAP,
    MIN_VALID_TIMESTAMP,
    PERIOD_SECONDS,
)
from vault_paths.core.utils.units import safe_float

Series = Sequence[Mapping[str, Any]]

# v2 historicalState names the APY series differently.
_V2_SERIES_ALIASES = {"avgApy": "apy", "avgNetApy": "netApy"}


def timeseries_options(period: str, *, now: int | None = None) -> TimeseriesOptions:
    now = int(now if now is not None else time.time())
    if period == "all":
        start = 0
    else:
        start = now - PERIOD_SECONDS.get(period, PERIOD_SECONDS[DEFAULT_PERIOD])
    return {
        "startTimestamp": start,
        "endTimestamp": now,
        "interval": INTERVAL_MAP.get(period, "DAY"),
    }


def canonical_series(
    historical_state: Mapping[str, Any] | None, schema_version: str
) -> dict[str, Series]:
    """Rename a ``historicalState`` block to the v1 series names."""
    out: dict[str, Series] = {}
    for name, points in (historical_state or {}).items():
        if not isinstance(points, list):
            continue
        key = _V2_SERIES_ALIASES.get(name, name) if schema_version == "v2" else name
        out[key] = points
    return out


def _index(points: Series | None) -> dict[int, Any]:
    out: dict[int, Any] = {}
    for p in points or ():
        if not isinstance(p, Mapping) or p.get("x") is None:
            continue
        out[int(p["x"])] = p.get("y")
    return out


class HistoryAggregator:
    """Merge sparse per-metric series into one ascending ``HistoryPoint`` list.

    Every timestamp present in any series yields a point; a series missing
    that timestamp contributes zero. No interpolation.
    """

    def __init__(self, *, decimals: int, asset_price_usd: float = 0.0) -> None:
        self.decimals = int(decimals)
        self.asset_price_usd = safe_float(asset_price_usd)

    def aggregate(self, series: Mapping[str, Series]) -> list[HistoryPoint]:
        indexed = {name: _index(points) for name, points in series.items()}
        timestamps: set[int] = set()
        for values in indexed.values():
            timestamps.update(values)

        return [self._point(ts, indexed) for ts in sorted(timestamps)]

    def _point(self, ts: int, indexed: Mapping[str, dict[int, Any]]) -> HistoryPoint:
        def at(name: str) -> Any:
            return indexed.get(name, {}).get(ts)

        total_assets_usd = safe_float(at("totalAssetsUsd"))
        total_assets = reconcile_total_assets(
            at("totalAssets"),
            decimals=self.decimals,
            total_assets_usd=total_assets_usd,
            asset_price_usd=self.asset_price_usd,
        )

        historical_price = self.asset_price_usd
        if total_assets > 0 and total_assets_usd > 0:
            historical_price = total_assets_usd / total_assets

        supply_raw = at("totalSupply")
        share_price = safe_float(at("sharePrice")) / (10**self.decimals)
        if share_price <= 0:
            share_price = derive_share_price(total_assets, supply_raw)

        share_price_usd = safe_float(at("sharePriceUsd"))
        if share_price_usd <= 0:
            if share_price > 0 and historical_price > 0:
                share_price_usd = share_price * historical_price
            else:
                supply = share_decimal(supply_raw)
                if supply > 0 and total_assets_usd > 0:
                    share_price_usd = total_assets_usd / supply

        return HistoryPoint(
            timestamp=ts,
            date=utc_date(ts),
            total_assets_usd=total_assets_usd,
            total_assets_decimal=total_assets,
            total_supply=share_decimal(supply_raw),
            share_price=share_price,
            share_price_usd=share_price_usd,
            apy=safe_float(at("apy")),
            net_apy=safe_float(at("netApy")),
        )


def drop_untrusted[P: (HistoryPoint, PositionPoint)](
    points: Iterable[P], *, now: int | None = None
) -> list[P]:
    now = int(now if now is not None else time.time())
    if MIN_VALID_TIMESTAMP > now:
        return list(points)
    return [p for p in points if p.timestamp >= MIN_VALID_TIMESTAMP]


def trim_leading_zeros(points: Sequence[HistoryPoint]) -> list[HistoryPoint]:
    for i, p in enumerate(points):
        if not p.is_zero:
            return list(points[i:])
    return list(points)


def filter_period[P: (HistoryPoint, PositionPoint)](
    points: Iterable[P], period: str, *, now: int | None = None
) -> list[P]:
    if period == "all":
        return list(points)
    now = int(now if now is not None else time.time())
    cutoff = now - PERIOD_SECONDS.get(period, PERIOD_SECONDS[DEFAULT_PERIOD])
    return [p for p in points if p.timestamp >= cutoff]


def build_history(
    series: Mapping[str, Series],
    *,
    decimals: int,
    asset_price_usd: float,
    period: str,
    now: int | None = None,
) -> list[HistoryPoint]:
    points = HistoryAggregator(
        decimals=decimals, asset_price_usd=asset_price_usd
    ).aggregate(series)
    points = trim_leading_zeros(drop_untrusted(points, now=now))
    return filter_period(points, period, now=now)


def build_position_history(
    history: Mapping[str, Any] | None,
    *,
    decimals: int,
    period: str,
    now: int | None = None,
) -> list[PositionPoint]:
    history = history or {}
    assets = _index(history.get("assets"))
    assets_usd = _index(history.get("assetsUsd"))
    shares = _index(history.get("shares"))

    points = [
        PositionPoint(
            timestamp=ts,
            date=utc_date(ts),
            assets=safe_float(assets.get(ts)) / (10 ** int(decimals)),
            assets_usd=safe_float(assets_usd.get(ts)),
            shares=safe_float(shares.get(ts)) / (10**SHARE_DECIMALS),
        )
        for ts in sorted(set(assets) | set(assets_usd) | set(shares))
    ]
    return filter_period(drop_untrusted(points, now=now), period, now=now)


def to_chart_rows(points: Iterable[HistoryPoint]) -> list[dict[str, Any]]:
    """Presentation rows with APY as a percentage."""
    rows = []
    for p in points:
        row = p.to_json()
        row["apy"] = p.apy * 100
        row["netApy"] = p.net_apy * 100
        rows.append(row)
    return rows
