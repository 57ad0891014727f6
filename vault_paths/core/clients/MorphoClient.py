from __future__ import annotations

import asyncio
import json
from typing import Any, NotRequired, Required, TypedDict

import httpx
from loguru import logger

from vault_paths.core.config import get_morpho_graphql_url
from vault_paths.core.constants.base import (
    DEFAULT_HTTP_TIMEOUT,
    GRAPHQL_MAX_RETRIES,
    GRAPHQL_RETRY_BASE_DELAY_S,
    GRAPHQL_RETRYABLE_STATUS_CODES,
)
from vault_paths.core.constants.vaults import (
    V1_DEPOSIT_TYPE,
    V1_WITHDRAW_TYPE,
)
from vault_paths.core.utils.retry import retry_async


class GraphQLErrorItem(TypedDict, total=False):
    message: Required[str]
    status: NotRequired[str]
    extensions: NotRequired[dict[str, Any]]


class TimeseriesOptions(TypedDict):
    startTimestamp: int
    endTimestamp: int
    interval: str


class MorphoGraphQLError(ValueError):
    def __init__(self, errors: list[GraphQLErrorItem]) -> None:
        self.errors = errors
        first = errors[0] if errors else {}
        super().__init__(str(first.get("message") or "GraphQL query failed"))

    @property
    def is_not_found(self) -> bool:
        for err in self.errors:
            code = err.get("status") or (err.get("extensions") or {}).get("code")
            if code == "NOT_FOUND":
                return True
            if "No results matching" in str(err.get("message") or ""):
                return True
        return False


class MorphoNetworkError(RuntimeError):
    """Transport failure or non-2xx status after retries."""


class MorphoResponseError(ValueError):
    """The upstream body was not JSON."""


_VAULT_V1_QUERY = """
query VaultV1($address: String!, $chainId: Int) {
  vaultByAddress(address: $address, chainId: $chainId) {
    address
    symbol
    name
    asset { address symbol name decimals priceUsd }
    state {
      apy
      netApy
      netApyWithoutRewards
      totalAssets
      totalAssetsUsd
      totalSupply
      sharePrice
      sharePriceUsd
      fee
      rewards { supplyApr asset { address symbol } }
      allocation {
        supplyAssets
        supplyAssetsUsd
        market {
          uniqueKey
          loanAsset { address symbol }
          collateralAsset { address symbol }
        }
      }
    }
  }
}
"""

_VAULT_V2_QUERY = """
query VaultV2($address: String!, $chainId: Int) {
  vaultV2ByAddress(address: $address, chainId: $chainId) {
    address
    symbol
    name
    asset { address symbol name decimals priceUsd }
    avgApy
    avgNetApy
    maxApy
    totalAssets
    totalAssetsUsd
    totalSupply
    liquidity
    liquidityUsd
    performanceFee
    managementFee
    rewards { supplyApr asset { address symbol } }
    adapters { items { address type assets assetsUsd } }
  }
}
"""

_VAULT_V1_HISTORY_QUERY = """
query VaultV1History($address: String!, $chainId: Int, $options: TimeseriesOptions) {
  vaultByAddress(address: $address, chainId: $chainId) {
    asset { address symbol decimals priceUsd }
    historicalState {
      apy(options: $options) { x y }
      netApy(options: $options) { x y }
      totalAssetsUsd(options: $options) { x y }
      totalAssets(options: $options) { x y }
      sharePrice(options: $options) { x y }
      sharePriceUsd(options: $options) { x y }
      totalSupply(options: $options) { x y }
    }
  }
}
"""

_VAULT_V2_HISTORY_QUERY = """
query VaultV2History($address: String!, $chainId: Int, $options: TimeseriesOptions) {
  vaultV2ByAddress(address: $address, chainId: $chainId) {
    asset { address symbol decimals priceUsd }
    historicalState {
      avgApy(options: $options) { x y }
      avgNetApy(options: $options) { x y }
      totalAssetsUsd(options: $options) { x y }
      totalAssets(options: $options) { x y }
      totalSupply(options: $options) { x y }
    }
  }
}
"""

_V1_ACTIVITY_QUERY = """
query VaultV1Activity($first: Int, $where: TransactionFilters) {
  transactions(first: $first, orderBy: Timestamp, orderDirection: Desc, where: $where) {
    items {
      hash
      timestamp
      type
      blockNumber
      user { address }
      data {
        ... on VaultTransactionData { shares assets }
      }
    }
  }
}
"""

_V2_ACTIVITY_QUERY = """
query VaultV2Activity($first: Int, $where: VaultV2TransactionFilters) {
  vaultV2transactions(first: $first, orderBy: Time, orderDirection: Desc, where: $where) {
    items {
      txHash
      timestamp
      type
      blockNumber
      shares
      data {
        ... on VaultV2DepositData { assets sender onBehalf }
        ... on VaultV2WithdrawData { assets sender onBehalf }
      }
    }
  }
}
"""

_ALLOCATION_HISTORY_QUERY = """
query VaultAllocation($address: String!, $chainId: Int, $options: TimeseriesOptions) {
  vaultByAddress(address: $address, chainId: $chainId) {
    state {
      totalAssetsUsd
      allocation {
        supplyAssetsUsd
        market {
          uniqueKey
          loanAsset { symbol }
          collateralAsset { symbol }
        }
      }
    }
    historicalState {
      totalAssetsUsd(options: $options) { x y }
    }
  }
}
"""

_V2_POSITION_HISTORY_QUERY = """
query VaultV2PositionHistory($userAddress: String!, $vaultAddress: String!, $chainId: Int!, $options: TimeseriesOptions) {
  vaultV2PositionByAddress(userAddress: $userAddress, vaultAddress: $vaultAddress, chainId: $chainId) {
    shares
    assets
    assetsUsd
    vault { asset { symbol decimals priceUsd } }
    history {
      assets(options: $options) { x y }
      assetsUsd(options: $options) { x y }
      shares(options: $options) { x y }
    }
  }
}
"""


class MorphoClient:
    def __init__(self, *, graphql_url: str | None = None) -> None:
        self._graphql_url = graphql_url
        self._timeout = httpx.Timeout(DEFAULT_HTTP_TIMEOUT)
        self.client = httpx.AsyncClient(timeout=self._timeout)
        self.headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        self._client_loop: asyncio.AbstractEventLoop | None = None

    @property
    def graphql_url(self) -> str:
        return self._graphql_url or get_morpho_graphql_url()

    async def _reset_client(self) -> None:
        try:
            await self.client.aclose()
        except Exception:  # noqa: BLE001
            pass
        self.client = httpx.AsyncClient(timeout=self._timeout)

    async def _ensure_client(self) -> None:
        loop = asyncio.get_running_loop()
        if self._client_loop is None:
            self._client_loop = loop
            return
        if self._client_loop is not loop or getattr(self.client, "is_closed", False):
            await self._reset_client()
            self._client_loop = loop

    async def close(self) -> None:
        await self.client.aclose()

    @staticmethod
    def _is_retryable(exc: Exception) -> bool:
        if isinstance(exc, httpx.HTTPStatusError):
            return exc.response.status_code in GRAPHQL_RETRYABLE_STATUS_CODES
        return isinstance(exc, (httpx.TransportError, httpx.TimeoutException))

    async def _post_once(self, query: str, variables: dict[str, Any]) -> Any:
        await self._ensure_client()
        resp = await self.client.post(
            self.graphql_url,
            headers=self.headers,
            json={"query": query, "variables": variables},
        )
        resp.raise_for_status()
        return resp.json()

    async def _post(
        self, *, query: str, variables: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        def _on_retry(attempt: int, exc: Exception, delay_s: float) -> None:
            logger.warning(
                "Morpho API request failed (attempt {}/{}): {}",
                attempt + 1,
                GRAPHQL_MAX_RETRIES,
                type(exc).__name__,
            )

        try:
            data = await retry_async(
                lambda: self._post_once(query, variables or {}),
                max_retries=GRAPHQL_MAX_RETRIES,
                base_delay_s=GRAPHQL_RETRY_BASE_DELAY_S,
                should_retry=self._is_retryable,
                on_retry=_on_retry,
            )
        except json.JSONDecodeError as exc:
            raise MorphoResponseError("Invalid response from Morpho API") from exc
        except (httpx.HTTPError, httpx.TimeoutException) as exc:
            raise MorphoNetworkError(f"Morpho API request failed: {exc}") from exc

        if not isinstance(data, dict):
            raise MorphoResponseError("Invalid response from Morpho API")
        if data.get("errors"):
            raise MorphoGraphQLError(list(data["errors"]))
        return data.get("data") or {}

    async def get_vault_v1(
        self, *, address: str, chain_id: int
    ) -> dict[str, Any] | None:
        payload = await self._post(
            query=_VAULT_V1_QUERY,
            variables={"address": str(address), "chainId": int(chain_id)},
        )
        vault = payload.get("vaultByAddress")
        return vault if isinstance(vault, dict) else None

    async def get_vault_v2(
        self, *, address: str, chain_id: int
    ) -> dict[str, Any] | None:
        payload = await self._post(
            query=_VAULT_V2_QUERY,
            variables={"address": str(address), "chainId": int(chain_id)},
        )
        vault = payload.get("vaultV2ByAddress")
        return vault if isinstance(vault, dict) else None

    async def get_vault_history(
        self,
        *,
        address: str,
        chain_id: int,
        version: str,
        options: TimeseriesOptions,
    ) -> dict[str, Any] | None:
        """Return ``{"asset": ..., "historicalState": {...}}`` or None."""
        if version == "v2":
            query, root = _VAULT_V2_HISTORY_QUERY, "vaultV2ByAddress"
        else:
            query, root = _VAULT_V1_HISTORY_QUERY, "vaultByAddress"
        payload = await self._post(
            query=query,
            variables={
                "address": str(address),
                "chainId": int(chain_id),
                "options": dict(options),
            },
        )
        vault = payload.get(root)
        return vault if isinstance(vault, dict) else None

    async def get_vault_activity(
        self,
        *,
        address: str,
        chain_id: int,
        version: str,
        first: int,
        user_address: str | None = None,
    ) -> list[dict[str, Any]]:
        # vaultV2transactions is already scoped to the vault's chain and types.
        where: dict[str, Any] = {"vaultAddress_in": [str(address)]}
        if version == "v2":
            query, root = _V2_ACTIVITY_QUERY, "vaultV2transactions"
        else:
            where["type_in"] = [V1_DEPOSIT_TYPE, V1_WITHDRAW_TYPE]
            where["chainId_in"] = [int(chain_id)]
            query, root = _V1_ACTIVITY_QUERY, "transactions"
        if user_address:
            where["userAddress_in"] = [str(user_address)]

        payload = await self._post(
            query=query, variables={"first": int(first), "where": where}
        )
        items = (payload.get(root) or {}).get("items") or []
        return [i for i in items if isinstance(i, dict)]

    async def get_vault_asset(
        self, *, address: str, chain_id: int, version: str
    ) -> dict[str, Any] | None:
        root = "vaultV2ByAddress" if version == "v2" else "vaultByAddress"
        query = (
            f"query VaultAssetInfo($address: String!, $chainId: Int) {{\n"
            f"  {root}(address: $address, chainId: $chainId) {{\n"
            f"    asset {{ address symbol decimals priceUsd }}\n"
            f"  }}\n"
            f"}}\n"
        )
        payload = await self._post(
            query=query,
            variables={"address": str(address), "chainId": int(chain_id)},
        )
        asset = (payload.get(root) or {}).get("asset")
        return asset if isinstance(asset, dict) else None

    async def get_allocation_history(
        self, *, address: str, chain_id: int, options: TimeseriesOptions
    ) -> dict[str, Any] | None:
        payload = await self._post(
            query=_ALLOCATION_HISTORY_QUERY,
            variables={
                "address": str(address),
                "chainId": int(chain_id),
                "options": dict(options),
            },
        )
        vault = payload.get("vaultByAddress")
        return vault if isinstance(vault, dict) else None

    async def get_v2_position_history(
        self,
        *,
        user_address: str,
        vault_address: str,
        chain_id: int,
        options: TimeseriesOptions,
    ) -> dict[str, Any] | None:
        payload = await self._post(
            query=_V2_POSITION_HISTORY_QUERY,
            variables={
                "userAddress": str(user_address),
                "vaultAddress": str(vault_address),
                "chainId": int(chain_id),
                "options": dict(options),
            },
        )
        position = payload.get("vaultV2PositionByAddress")
        return position if isinstance(position, dict) else None


MORPHO_CLIENT = MorphoClient()
