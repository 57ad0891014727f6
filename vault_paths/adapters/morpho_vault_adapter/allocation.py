from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from vault_paths.core.adapters.models import (
    AllocationHistoryPoint,
    AllocationSlice,
    utc_date,
)
from vault_paths.core.constants.vaults import ALLOCATION_HISTORY_MIN_TIMESTAMP
from vault_paths.core.utils.units import safe_float


def market_name(market: Mapping[str, Any]) -> str | None:
    loan = str((market.get("loanAsset") or {}).get("symbol") or "")
    collateral = str((market.get("collateralAsset") or {}).get("symbol") or "")
    if not loan and not collateral:
        return None
    return f"{loan}/{collateral or 'idle'}"


def current_weights(vault: Mapping[str, Any]) -> dict[str, AllocationSlice]:
    """Current per-market share of the vault, keyed by market uniqueKey."""
    state = vault.get("state") or {}
    merged: dict[str, AllocationSlice] = {}
    for entry in state.get("allocation") or ():
        market = entry.get("market") or {}
        key = market.get("uniqueKey")
        name = market_name(market)
        value = safe_float(entry.get("supplyAssetsUsd"))
        if not key or name is None or value <= 0:
            continue
        if key in merged:
            prev = merged[key]
            merged[key] = prev.model_copy(update={"value": prev.value + value})
        else:
            merged[key] = AllocationSlice(market_name=name, value=value)

    total = safe_float(state.get("totalAssetsUsd"))
    return {
        key: s.model_copy(
            update={"percentage": s.value / total * 100 if total > 0 else 0.0}
        )
        for key, s in merged.items()
    }


def build_allocation_history(vault: Mapping[str, Any]) -> list[AllocationHistoryPoint]:
    """Project today's market weights onto the historical total-assets series.

    Upstream exposes no per-vault allocation history, so every point uses the
    current percentages.
    """
    weights = current_weights(vault)
    series = ((vault.get("historicalState") or {}).get("totalAssetsUsd")) or []
    totals = {
        int(p["x"]): safe_float(p.get("y")) for p in series if p.get("x") is not None
    }

    points = []
    for ts in sorted(totals):
        if ts < ALLOCATION_HISTORY_MIN_TIMESTAMP:
            continue
        total = totals[ts]
        points.append(
            AllocationHistoryPoint(
                timestamp=ts,
                date=utc_date(ts),
                total_assets_usd=total,
                allocations={
                    key: AllocationSlice(
                        market_name=w.market_name,
                        value=total * w.percentage / 100,
                        percentage=w.percentage,
                    )
                    for key, w in weights.items()
                },
            )
        )
    return points
