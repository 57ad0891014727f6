from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from loguru import logger

from vault_paths.core.adapters.models import (
    AdapterEntry,
    AllocationEntry,
    AssetInfo,
    RewardEntry,
    VaultPayload,
    VaultPayloadV1,
    VaultPayloadV2,
    VaultSnapshot,
)
from vault_paths.core.constants.base import SHARE_DECIMALS
from vault_paths.core.constants.vaults import (
    CONVERTED_RATIO_MAX,
    CONVERTED_RATIO_MIN,
    DEFAULT_ASSET_DECIMALS,
    RAW_RATIO_MAX,
    RAW_RATIO_MIN,
)
from vault_paths.core.utils.units import NumericOverflow, safe_float, to_decimal


def reconcile_total_assets(
    raw: Any,
    *,
    decimals: int,
    total_assets_usd: Any = None,
    asset_price_usd: Any = None,
) -> float:
    """Resolve a ``totalAssets`` sample to a decimal amount.

    Upstream history sometimes reports an already-scaled value. When the
    USD total is available it decides between ``raw`` and
    ``raw / 10**decimals``; otherwise the scaled value wins.
    """
    raw_value = safe_float(raw)
    if raw_value <= 0:
        return 0.0
    converted = raw_value / (10 ** int(decimals))

    usd = safe_float(total_assets_usd)
    price = safe_float(asset_price_usd)
    if usd <= 0 or price <= 0:
        return converted if converted > 0 else raw_value

    expected = usd / price
    if converted <= 0:
        return raw_value

    converted_ratio = expected / converted
    if CONVERTED_RATIO_MIN <= converted_ratio <= CONVERTED_RATIO_MAX:
        return converted

    raw_ratio = expected / raw_value
    if RAW_RATIO_MIN < raw_ratio < RAW_RATIO_MAX:
        return raw_value
    return converted


def share_decimal(raw_supply: Any) -> float:
    return safe_float(raw_supply) / (10**SHARE_DECIMALS)


def derive_share_price(total_assets: float, total_supply_raw: Any) -> float:
    supply = share_decimal(total_supply_raw)
    if total_assets <= 0 or supply <= 0:
        return 0.0
    return total_assets / supply


def _raw_string(value: Any) -> str:
    if value is None:
        return "0"
    if isinstance(value, float):
        return str(int(value)) if value >= 0 else "0"
    text = str(value).strip()
    if text.isdigit():
        return text
    # Some responses serialize big ints in exponent form.
    try:
        as_float = float(text)
    except ValueError:
        return "0"
    return str(int(as_float)) if as_float >= 0 else "0"


def _raw_to_float(raw: str, decimals: int) -> float:
    try:
        return float(to_decimal(raw, decimals))
    except NumericOverflow:
        return 0.0


def _asset_info(asset: Mapping[str, Any] | None) -> AssetInfo | None:
    if not isinstance(asset, Mapping):
        return None
    decimals = asset.get("decimals")
    return AssetInfo(
        symbol=str(asset.get("symbol") or ""),
        decimals=int(decimals) if decimals is not None else DEFAULT_ASSET_DECIMALS,
        price_usd=safe_float(asset.get("priceUsd")),
        address=asset.get("address"),
    )


def _market_label(symbol: Any) -> str | None:
    text = str(symbol or "").strip()
    return text or None


def normalize_allocation(
    entries: Iterable[Mapping[str, Any]], *, total_assets_usd: float
) -> tuple[AllocationEntry, ...]:
    """Merge entries by market uniqueKey and attach their share of the vault."""
    merged: dict[str, dict[str, Any]] = {}
    for entry in entries or ():
        if not isinstance(entry, Mapping):
            continue
        market = entry.get("market") or {}
        key = str(market.get("uniqueKey") or "")
        if not key:
            continue
        value = safe_float(entry.get("supplyAssetsUsd"))
        if key in merged:
            merged[key]["supply_assets_usd"] += value
            continue
        merged[key] = {
            "market_key": key,
            "loan_symbol": _market_label((market.get("loanAsset") or {}).get("symbol")),
            "collateral_symbol": _market_label(
                (market.get("collateralAsset") or {}).get("symbol")
            ),
            "supply_assets_usd": value,
        }

    out = []
    for item in merged.values():
        usd = item["supply_assets_usd"]
        pct = usd / total_assets_usd if total_assets_usd > 0 else 0.0
        out.append(AllocationEntry(**item, percentage_of_vault=pct))
    return tuple(sorted(out, key=lambda e: e.supply_assets_usd, reverse=True))


def _rewards(items: Iterable[Mapping[str, Any]] | None) -> tuple[RewardEntry, ...]:
    out = []
    for r in items or ():
        if not isinstance(r, Mapping):
            continue
        asset = r.get("asset") or {}
        out.append(
            RewardEntry(
                asset_symbol=asset.get("symbol"),
                asset_address=asset.get("address"),
                supply_apr=safe_float(r.get("supplyApr")),
            )
        )
    return tuple(out)


def _adapters(block: Any) -> tuple[AdapterEntry, ...]:
    items = block.get("items") if isinstance(block, Mapping) else block
    out = []
    for a in items or ():
        if not isinstance(a, Mapping) or not a.get("address"):
            continue
        out.append(
            AdapterEntry(
                address=str(a["address"]),
                type=a.get("type"),
                assets_raw=_raw_string(a.get("assets")),
                assets_usd=safe_float(a.get("assetsUsd")),
            )
        )
    return tuple(out)


class VaultSchemaAdapter:
    """Map a tagged v1/v2 vault payload into a ``VaultSnapshot``."""

    def __init__(self) -> None:
        self.logger = logger.bind(component="VaultSchemaAdapter")

    def to_snapshot(self, payload: VaultPayload, *, address: str) -> VaultSnapshot:
        match payload:
            case VaultPayloadV1():
                return self._from_v1(payload, address=address)
            case VaultPayloadV2():
                return self._from_v2(payload, address=address)
            case _:
                raise TypeError(f"Unsupported vault payload: {type(payload).__name__}")

    def _empty(
        self, payload: VaultPayload, *, address: str, asset: AssetInfo | None
    ) -> VaultSnapshot:
        self.logger.warning(
            f"Vault payload for {address} missing required fields; "
            "returning empty snapshot"
        )
        return VaultSnapshot.empty(
            address=address,
            chain_id=payload.chain_id,
            schema_version=payload.schema_version,
            asset=asset,
        )

    def _from_v1(self, payload: VaultPayloadV1, *, address: str) -> VaultSnapshot:
        data = payload.data
        asset = _asset_info(data.get("asset"))
        state = data.get("state")
        if asset is None or not isinstance(state, Mapping):
            return self._empty(payload, address=address, asset=asset)

        total_assets_raw = _raw_string(state.get("totalAssets"))
        total_supply_raw = _raw_string(state.get("totalSupply"))
        total_assets_usd = safe_float(state.get("totalAssetsUsd"))
        total_assets = _raw_to_float(total_assets_raw, asset.decimals)

        # state.sharePrice is scaled by the asset's decimals.
        share_price = safe_float(state.get("sharePrice")) / (10**asset.decimals)
        if share_price <= 0:
            share_price = derive_share_price(total_assets, total_supply_raw)

        share_price_usd = safe_float(state.get("sharePriceUsd"))
        if share_price_usd <= 0:
            share_price_usd = self._share_price_usd_from_totals(
                total_assets_usd, total_supply_raw
            )

        rewards = _rewards(state.get("rewards"))
        return VaultSnapshot(
            address=str(data.get("address") or address),
            chain_id=payload.chain_id,
            schema_version="v1",
            name=data.get("name"),
            symbol=data.get("symbol"),
            asset=asset,
            total_assets_raw=total_assets_raw,
            total_assets=total_assets,
            total_assets_usd=total_assets_usd,
            total_supply_raw=total_supply_raw,
            share_price=share_price,
            share_price_usd=share_price_usd,
            apy=safe_float(state.get("apy")),
            net_apy=safe_float(state.get("netApy")),
            net_apy_without_rewards=safe_float(state.get("netApyWithoutRewards")),
            rewards_apr=sum(r.supply_apr for r in rewards),
            performance_fee=safe_float(state.get("fee")),
            allocation=normalize_allocation(
                state.get("allocation") or (), total_assets_usd=total_assets_usd
            ),
            rewards=rewards,
        )

    def _from_v2(self, payload: VaultPayloadV2, *, address: str) -> VaultSnapshot:
        data = payload.data
        asset = _asset_info(data.get("asset"))
        if asset is None:
            return self._empty(payload, address=address, asset=None)

        total_assets_raw = _raw_string(data.get("totalAssets"))
        total_supply_raw = _raw_string(data.get("totalSupply"))
        total_assets_usd = safe_float(data.get("totalAssetsUsd"))
        total_assets = _raw_to_float(total_assets_raw, asset.decimals)

        net_apy = safe_float(data.get("avgNetApy"))
        rewards = _rewards(data.get("rewards"))
        return VaultSnapshot(
            address=str(data.get("address") or address),
            chain_id=payload.chain_id,
            schema_version="v2",
            name=data.get("name"),
            symbol=data.get("symbol"),
            asset=asset,
            total_assets_raw=total_assets_raw,
            total_assets=total_assets,
            total_assets_usd=total_assets_usd,
            total_supply_raw=total_supply_raw,
            share_price=derive_share_price(total_assets, total_supply_raw),
            share_price_usd=self._share_price_usd_from_totals(
                total_assets_usd, total_supply_raw
            ),
            liquidity_usd=safe_float(data.get("liquidityUsd")),
            apy=safe_float(data.get("avgApy")) or safe_float(data.get("maxApy")),
            net_apy=net_apy,
            net_apy_without_rewards=net_apy,
            rewards_apr=sum(r.supply_apr for r in rewards),
            performance_fee=safe_float(data.get("performanceFee")),
            management_fee=safe_float(data.get("managementFee")),
            adapters=_adapters(data.get("adapters")),
            rewards=rewards,
        )

    @staticmethod
    def _share_price_usd_from_totals(total_assets_usd: float, supply_raw: Any) -> float:
        supply = share_decimal(supply_raw)
        if total_assets_usd <= 0 or supply <= 0:
            return 0.0
        return total_assets_usd / supply


SCHEMA_ADAPTER = VaultSchemaAdapter()
