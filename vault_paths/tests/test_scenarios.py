"""End-to-end: HTTP API -> adapter -> GraphQL client against a canned upstream."""

from __future__ import annotations

import json
import re
import time

import httpx
import pytest
from aiohttp.test_utils import TestClient, TestServer

from vault_paths.adapters.morpho_vault_adapter.adapter import MorphoVaultAdapter
from vault_paths.core.clients.MorphoClient import MorphoClient
from vault_paths.server.app import create_app

VAULT = "0xBEEF01735c132Ada46AA9aA4c54623cAA92A64CB"
USER = "0x81830bC5f811aF86fF6f17Fb9a619088B09Dff43"
USDC = {
    "address": "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
    "symbol": "USDC",
    "name": "USD Coin",
    "decimals": 6,
    "priceUsd": 1.0,
}
DAY = 24 * 60 * 60
NOW = int(time.time())
RECENT = [NOW - 3 * DAY, NOW - 2 * DAY, NOW - DAY]

V1_VAULT = {
    "address": VAULT,
    "name": "Steakhouse USDC",
    "symbol": "steakUSDC",
    "asset": USDC,
    "state": {
        "apy": 0.05,
        "netApy": 0.06,
        "netApyWithoutRewards": 0.05,
        "totalAssets": "5000000000",
        "totalAssetsUsd": 5000.0,
        "totalSupply": "4900000000000000000",
        "fee": 0.1,
        "rewards": [],
        "allocation": [
            {
                "supplyAssetsUsd": 5000.0,
                "market": {
                    "uniqueKey": "0xaa",
                    "loanAsset": {"symbol": "USDC"},
                    "collateralAsset": {"symbol": "cbBTC"},
                },
            }
        ],
    },
}

V2_VAULT = {
    "address": VAULT,
    "name": "Steakhouse USDC",
    "symbol": "steakUSDC",
    "asset": USDC,
    "avgApy": 0.05,
    "avgNetApy": 0.06,
    "totalAssets": "5000000000",
    "totalAssetsUsd": 5000.0,
    "totalSupply": "4900000000000000000",
    "adapters": {"items": []},
}


def _series(values):
    return [{"x": ts, "y": v} for ts, v in zip(RECENT, values, strict=True)]


RESPONSES = {
    "VaultV1": {"vaultByAddress": V1_VAULT},
    "VaultV2": {"vaultV2ByAddress": V2_VAULT},
    "VaultV1History": {
        "vaultByAddress": {
            "asset": USDC,
            "historicalState": {
                "apy": _series([0.0, 0.05, 0.05]),
                "netApy": _series([0.0, 0.06, 0.06]),
                "totalAssetsUsd": _series([0.0, 4000.0, 5000.0]),
                # The middle sample arrives already scaled.
                "totalAssets": _series(["0", "4000", "5000000000"]),
                "totalSupply": _series(["0", str(4 * 10**18), "4900000000000000000"]),
            },
        }
    },
    "VaultV1Activity": {
        "transactions": {
            "items": [
                {
                    "hash": "0x01",
                    "timestamp": RECENT[1],
                    "blockNumber": 1,
                    "type": "MetaMorphoDeposit",
                    "user": {"address": USER},
                    "data": {"assets": "2000000", "shares": "1"},
                }
            ]
        }
    },
    "VaultAssetInfo": {"vaultByAddress": {"asset": USDC}},
    "VaultAllocation": {
        "vaultByAddress": {
            "state": V1_VAULT["state"],
            "historicalState": {"totalAssetsUsd": _series([3000.0, 4000.0, 5000.0])},
        }
    },
}


@pytest.fixture
def upstream():
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        name = re.search(r"query (\w+)", body["query"]).group(1)
        calls.append(name)
        if name not in RESPONSES:
            return httpx.Response(
                200,
                json={"errors": [{"message": "No results matching given parameters"}]},
            )
        return httpx.Response(200, json={"data": RESPONSES[name]})

    client = MorphoClient(graphql_url="https://morpho.example/graphql")
    client.client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client.calls = calls
    return client


async def _get(client, path, **params):
    app = create_app(MorphoVaultAdapter(config={}, client=client))
    async with TestClient(TestServer(app)) as http:
        resp = await http.get(path, params=params)
        return resp.status, await resp.json()


@pytest.mark.asyncio
async def test_v1_and_v2_snapshots_agree(upstream):
    _, v1 = await _get(upstream, f"/vaults/{VAULT}/complete")
    _, v2 = await _get(upstream, f"/vaults/v2/{VAULT}/complete")

    for key in ("totalAssets", "totalAssetsUsd", "sharePrice", "apy", "netApy"):
        assert v1["vault"][key] == pytest.approx(v2["vault"][key]), key
    assert v2["vault"]["sharePrice"] == pytest.approx(1020.41, rel=1e-4)
    assert v1["vault"]["allocation"][0]["percentageOfVault"] == pytest.approx(1.0)


@pytest.mark.asyncio
async def test_history_reconciles_and_trims(upstream):
    status, body = await _get(upstream, f"/vaults/{VAULT}/history", period="7d")

    assert status == 200
    rows = body["history"]
    assert [r["timestamp"] for r in rows] == RECENT[1:]
    assert [r["totalAssetsDecimal"] for r in rows] == [
        pytest.approx(4000.0),
        pytest.approx(5000.0),
    ]
    assert rows[0]["sharePrice"] == pytest.approx(1000.0)
    assert rows[-1]["apy"] == pytest.approx(5.0)


@pytest.mark.asyncio
async def test_activity_feed(upstream):
    status, body = await _get(upstream, f"/vaults/{VAULT}/activity", userAddress=USER)

    assert status == 200
    assert [d["hash"] for d in body["deposits"]] == ["0x01"]
    assert body["deposits"][0]["assetsUsd"] == pytest.approx(2.0)
    assert upstream.calls == ["VaultV1Activity", "VaultAssetInfo"]


@pytest.mark.asyncio
async def test_allocation_history(upstream):
    status, body = await _get(
        upstream, f"/vaults/{VAULT}/allocation-history", period="7d"
    )

    assert status == 200
    points = body["allocationHistory"]
    assert [p["totalAssetsUsd"] for p in points] == [3000.0, 4000.0, 5000.0]
    assert points[0]["allocations"]["0xaa"]["marketName"] == "USDC/cbBTC"
    assert points[0]["allocations"]["0xaa"]["value"] == pytest.approx(3000.0)


@pytest.mark.asyncio
async def test_unknown_vault_is_empty_not_error(upstream):
    status, body = await _get(
        upstream, f"/vaults/v2/{VAULT}/position-history", userAddress=USER
    )

    assert status == 200
    assert body == {"history": [], "currentPosition": None, "period": "30d"}
