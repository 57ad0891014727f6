from __future__ import annotations

import pytest

from vault_paths.adapters.morpho_vault_adapter.allocation import (
    build_allocation_history,
    current_weights,
    market_name,
)
from vault_paths.core.constants.vaults import ALLOCATION_HISTORY_MIN_TIMESTAMP

DAY = 24 * 60 * 60
T1 = ALLOCATION_HISTORY_MIN_TIMESTAMP + DAY


def _entry(key, loan, collateral, usd):
    return {
        "market": {
            "uniqueKey": key,
            "loanAsset": {"symbol": loan} if loan else None,
            "collateralAsset": {"symbol": collateral} if collateral else None,
        },
        "supplyAssetsUsd": usd,
    }


def _vault(allocation, totals):
    return {
        "state": {"totalAssetsUsd": 1000.0, "allocation": allocation},
        "historicalState": {"totalAssetsUsd": [{"x": x, "y": y} for x, y in totals]},
    }


def test_market_name_labels_idle_markets():
    market = {"loanAsset": {"symbol": "USDC"}, "collateralAsset": {"symbol": "WETH"}}
    assert market_name(market) == "USDC/WETH"
    assert market_name({"loanAsset": {"symbol": "USDC"}}) == "USDC/idle"
    assert market_name({}) is None


def test_current_weights_skips_unusable_entries_and_merges():
    weights = current_weights(
        _vault(
            [
                _entry("0xaa", "USDC", "WETH", 600.0),
                _entry("0xbb", "USDC", None, 100.0),
                _entry("0xbb", "USDC", None, 300.0),
                _entry("0xcc", "USDC", "cbBTC", 0.0),
                _entry("0xdd", None, None, 50.0),
                _entry(None, "USDC", "WETH", 50.0),
            ],
            [],
        )
    )

    assert set(weights) == {"0xaa", "0xbb"}
    assert weights["0xaa"].percentage == pytest.approx(60.0)
    assert weights["0xbb"].value == pytest.approx(400.0)
    assert weights["0xbb"].market_name == "USDC/idle"


def test_history_projects_current_weights_onto_totals():
    vault = _vault(
        [_entry("0xaa", "USDC", "WETH", 750.0), _entry("0xbb", "USDC", None, 250.0)],
        [(T1 + DAY, 2000.0), (T1, 1000.0), (ALLOCATION_HISTORY_MIN_TIMESTAMP - 1, 5.0)],
    )
    points = build_allocation_history(vault)

    assert [p.timestamp for p in points] == [T1, T1 + DAY]
    second = points[1]
    assert second.total_assets_usd == 2000.0
    assert second.allocations["0xaa"].value == pytest.approx(1500.0)
    assert second.allocations["0xaa"].percentage == pytest.approx(75.0)
    assert second.allocations["0xbb"].value == pytest.approx(500.0)


def test_history_without_series_is_empty():
    assert build_allocation_history({"state": {}}) == []
