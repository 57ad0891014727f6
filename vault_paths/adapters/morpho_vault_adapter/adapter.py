from __future__ import annotations

import asyncio
import time
from typing import Any

from vault_paths.adapters.morpho_vault_adapter.activity import (
    activity_limit,
    build_activity_feed,
)
from vault_paths.adapters.morpho_vault_adapter.allocation import (
    build_allocation_history,
)
from vault_paths.adapters.morpho_vault_adapter.history import (
    build_history,
    build_position_history,
    canonical_series,
    timeseries_options,
)
from vault_paths.adapters.morpho_vault_adapter.schema import SCHEMA_ADAPTER
from vault_paths.core.adapters.BaseAdapter import BaseAdapter
from vault_paths.core.adapters.decorators import status_tuple
from vault_paths.core.adapters.models import (
    ActivityFeed,
    AllocationHistoryPoint,
    HistoryPoint,
    PositionPoint,
    VaultPayloadV1,
    VaultPayloadV2,
    VaultSnapshot,
    utc_date,
)
from vault_paths.core.clients.MorphoClient import (
    MORPHO_CLIENT,
    MorphoClient,
    MorphoGraphQLError,
    MorphoNetworkError,
    MorphoResponseError,
)
from vault_paths.core.constants.base import SHARE_DECIMALS
from vault_paths.core.constants.vaults import (
    DEFAULT_ASSET_DECIMALS,
    DEFAULT_PERIOD,
    SchemaVersion,
)
from vault_paths.core.utils.units import safe_float

VaultRef = tuple[str, int, SchemaVersion]


class MorphoVaultAdapter(BaseAdapter):
    """Read-side access to Morpho vaults, normalized across v1 and v2.

    ``fetch_*`` methods raise upstream failures; "not found" upstream
    answers come back as empty results. ``get_*`` wrap them in the usual
    ``(ok, result)`` tuple.
    """

    adapter_type = "MORPHO_VAULT"

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        *,
        client: MorphoClient | None = None,
    ) -> None:
        super().__init__("morpho_vault_adapter", config)
        self.client = client or MORPHO_CLIENT

    def _not_found(self, exc: MorphoGraphQLError, what: str, address: str) -> bool:
        if not exc.is_not_found:
            return False
        self.logger.warning(f"Vault {address} not found or has no {what}")
        return True

    async def fetch_snapshot(
        self, *, address: str, chain_id: int, version: SchemaVersion = "v1"
    ) -> VaultSnapshot:
        try:
            if version == "v2":
                data = await self.client.get_vault_v2(
                    address=address, chain_id=chain_id
                )
            else:
                data = await self.client.get_vault_v1(
                    address=address, chain_id=chain_id
                )
        except MorphoGraphQLError as exc:
            if not self._not_found(exc, "state", address):
                raise
            data = None

        if data is None:
            return VaultSnapshot.empty(
                address=address, chain_id=chain_id, schema_version=version
            )

        payload = (
            VaultPayloadV2(chain_id=chain_id, data=data)
            if version == "v2"
            else VaultPayloadV1(chain_id=chain_id, data=data)
        )
        return SCHEMA_ADAPTER.to_snapshot(payload, address=address)

    async def fetch_history(
        self,
        *,
        address: str,
        chain_id: int,
        version: SchemaVersion = "v1",
        period: str = DEFAULT_PERIOD,
        now: int | None = None,
    ) -> list[HistoryPoint]:
        now = int(now if now is not None else time.time())
        try:
            vault = await self.client.get_vault_history(
                address=address,
                chain_id=chain_id,
                version=version,
                options=timeseries_options(period, now=now),
            )
        except MorphoGraphQLError as exc:
            if not self._not_found(exc, "historical data", address):
                raise
            return []

        if not vault or not vault.get("historicalState"):
            self.logger.warning(f"No historicalState returned for {address}")
            return []

        asset = vault.get("asset") or {}
        return build_history(
            canonical_series(vault["historicalState"], version),
            decimals=int(asset.get("decimals") or DEFAULT_ASSET_DECIMALS),
            asset_price_usd=safe_float(asset.get("priceUsd")),
            period=period,
            now=now,
        )

    async def _activity_asset(
        self, *, address: str, chain_id: int, version: SchemaVersion
    ) -> dict[str, Any] | None:
        # Valuation falls back to defaults when the asset lookup fails.
        try:
            return await self.client.get_vault_asset(
                address=address, chain_id=chain_id, version=version
            )
        except (MorphoGraphQLError, MorphoNetworkError, MorphoResponseError) as exc:
            self.logger.error(f"Failed to fetch vault asset info for {address}: {exc}")
            return None

    async def fetch_activity(
        self,
        *,
        address: str,
        chain_id: int,
        version: SchemaVersion = "v1",
        user_address: str | None = None,
    ) -> ActivityFeed:
        try:
            items = await self.client.get_vault_activity(
                address=address,
                chain_id=chain_id,
                version=version,
                first=activity_limit(user_address),
                user_address=user_address,
            )
        except MorphoGraphQLError as exc:
            if not self._not_found(exc, "activity", address):
                raise
            return ActivityFeed()
        asset = await self._activity_asset(
            address=address, chain_id=chain_id, version=version
        )
        return build_activity_feed(items, schema_version=version, asset=asset)

    async def fetch_allocation_history(
        self,
        *,
        address: str,
        chain_id: int,
        period: str = DEFAULT_PERIOD,
        now: int | None = None,
    ) -> list[AllocationHistoryPoint]:
        try:
            vault = await self.client.get_allocation_history(
                address=address,
                chain_id=chain_id,
                options=timeseries_options(period, now=now),
            )
        except MorphoGraphQLError as exc:
            if not self._not_found(exc, "allocation data", address):
                raise
            return []
        if not vault:
            return []
        return build_allocation_history(vault)

    async def fetch_position_history(
        self,
        *,
        vault_address: str,
        user_address: str,
        chain_id: int,
        period: str = DEFAULT_PERIOD,
        now: int | None = None,
    ) -> tuple[list[PositionPoint], PositionPoint | None]:
        """v2 only: a user's position over time plus its current value."""
        now = int(now if now is not None else time.time())
        try:
            position = await self.client.get_v2_position_history(
                user_address=user_address,
                vault_address=vault_address,
                chain_id=chain_id,
                options=timeseries_options(period, now=now),
            )
        except MorphoGraphQLError as exc:
            if not self._not_found(exc, "position", vault_address):
                raise
            return [], None
        if not position:
            return [], None

        asset = ((position.get("vault") or {}).get("asset")) or {}
        decimals = int(asset.get("decimals") or DEFAULT_ASSET_DECIMALS)
        history = build_position_history(
            position.get("history"), decimals=decimals, period=period, now=now
        )
        current = PositionPoint(
            timestamp=now,
            date=utc_date(now),
            assets=safe_float(position.get("assets")) / (10**decimals),
            assets_usd=safe_float(position.get("assetsUsd")),
            shares=safe_float(position.get("shares")) / (10**SHARE_DECIMALS),
        )
        return history, current

    async def preload_snapshots(
        self, vaults: list[VaultRef]
    ) -> dict[str, VaultSnapshot | None]:
        """Fetch several snapshots concurrently; a failed vault maps to None."""

        async def _one(ref: VaultRef) -> VaultSnapshot | None:
            address, chain_id, version = ref
            try:
                return await self.fetch_snapshot(
                    address=address, chain_id=chain_id, version=version
                )
            except (MorphoGraphQLError, MorphoNetworkError, MorphoResponseError) as exc:
                self.logger.error(f"Failed to preload vault {address}: {exc}")
                return None

        results = await asyncio.gather(*[_one(ref) for ref in vaults])
        return {ref[0].lower(): snap for ref, snap in zip(vaults, results, strict=True)}

    @status_tuple
    async def get_vault_snapshot(
        self, *, address: str, chain_id: int, version: SchemaVersion = "v1"
    ) -> VaultSnapshot:
        return await self.fetch_snapshot(
            address=address, chain_id=chain_id, version=version
        )

    @status_tuple
    async def get_vault_history(
        self,
        *,
        address: str,
        chain_id: int,
        version: SchemaVersion = "v1",
        period: str = DEFAULT_PERIOD,
    ) -> list[HistoryPoint]:
        return await self.fetch_history(
            address=address, chain_id=chain_id, version=version, period=period
        )

    @status_tuple
    async def get_vault_activity(
        self,
        *,
        address: str,
        chain_id: int,
        version: SchemaVersion = "v1",
        user_address: str | None = None,
    ) -> ActivityFeed:
        return await self.fetch_activity(
            address=address,
            chain_id=chain_id,
            version=version,
            user_address=user_address,
        )

    @status_tuple
    async def get_allocation_history(
        self, *, address: str, chain_id: int, period: str = DEFAULT_PERIOD
    ) -> list[AllocationHistoryPoint]:
        return await self.fetch_allocation_history(
            address=address, chain_id=chain_id, period=period
        )

    @status_tuple
    async def get_position_history(
        self,
        *,
        vault_address: str,
        user_address: str,
        chain_id: int,
        period: str = DEFAULT_PERIOD,
    ) -> tuple[list[PositionPoint], PositionPoint | None]:
        return await self.fetch_position_history(
            vault_address=vault_address,
            user_address=user_address,
            chain_id=chain_id,
            period=period,
        )
