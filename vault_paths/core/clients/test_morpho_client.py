from __future__ import annotations

import json

import httpx
import pytest

import vault_paths.core.clients.MorphoClient as morpho_module
from vault_paths.core.clients.MorphoClient import (
    MorphoClient,
    MorphoGraphQLError,
    MorphoNetworkError,
    MorphoResponseError,
)

VAULT = "0xBEEF01735c132Ada46AA9aA4c54623cAA92A64CB"


def _client(handler) -> MorphoClient:
    client = MorphoClient(graphql_url="https://morpho.example/graphql")
    client.client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return client


@pytest.fixture(autouse=True)
def no_retry_delay(monkeypatch):
    monkeypatch.setattr(morpho_module, "GRAPHQL_RETRY_BASE_DELAY_S", 0.0)


@pytest.mark.asyncio
async def test_get_vault_v1_posts_query_and_unwraps():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200, json={"data": {"vaultByAddress": {"address": VAULT, "name": "Steak"}}}
        )

    client = _client(handler)
    vault = await client.get_vault_v1(address=VAULT, chain_id=8453)

    assert vault == {"address": VAULT, "name": "Steak"}
    assert seen["url"] == "https://morpho.example/graphql"
    assert seen["body"]["variables"] == {"address": VAULT, "chainId": 8453}
    assert "vaultByAddress" in seen["body"]["query"]


@pytest.mark.asyncio
async def test_get_vault_v2_returns_none_for_null_vault():
    client = _client(
        lambda request: httpx.Response(200, json={"data": {"vaultV2ByAddress": None}})
    )
    assert await client.get_vault_v2(address=VAULT, chain_id=1) is None


@pytest.mark.asyncio
async def test_graphql_errors_raise_with_not_found_detection():
    body = {
        "errors": [
            {
                "message": "No results matching given parameters",
                "extensions": {"code": "NOT_FOUND"},
            }
        ]
    }
    client = _client(lambda request: httpx.Response(200, json=body))

    with pytest.raises(MorphoGraphQLError) as excinfo:
        await client.get_vault_v1(address=VAULT, chain_id=8453)

    assert excinfo.value.is_not_found
    assert "No results matching" in str(excinfo.value)


def test_other_graphql_errors_are_not_not_found():
    err = MorphoGraphQLError([{"message": "Cannot query field"}])
    assert not err.is_not_found
    assert str(err) == "Cannot query field"


@pytest.mark.asyncio
async def test_retries_transient_status_then_succeeds():
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        if calls["n"] == 1:
            return httpx.Response(503, json={})
        body = {"data": {"vaultByAddress": {"address": VAULT}}}
        return httpx.Response(200, json=body)

    client = _client(handler)
    vault = await client.get_vault_v1(address=VAULT, chain_id=8453)

    assert vault == {"address": VAULT}
    assert calls["n"] == 2


@pytest.mark.asyncio
async def test_persistent_transport_failure_is_network_error():
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        raise httpx.ConnectError("boom", request=request)

    client = _client(handler)
    with pytest.raises(MorphoNetworkError):
        await client.get_vault_v1(address=VAULT, chain_id=8453)
    assert calls["n"] == morpho_module.GRAPHQL_MAX_RETRIES


@pytest.mark.asyncio
async def test_client_error_status_is_not_retried():
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(400, json={})

    with pytest.raises(MorphoNetworkError):
        await _client(handler).get_vault_v1(address=VAULT, chain_id=8453)
    assert calls["n"] == 1


@pytest.mark.asyncio
async def test_non_json_body_is_response_error():
    client = _client(lambda request: httpx.Response(200, content=b"<html>oops</html>"))
    with pytest.raises(MorphoResponseError):
        await client.get_vault_v1(address=VAULT, chain_id=8453)


@pytest.mark.asyncio
async def test_v1_activity_filters_by_type_and_chain():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={"data": {"transactions": {"items": [{"hash": "0x1"}, None]}}},
        )

    items = await _client(handler).get_vault_activity(
        address=VAULT, chain_id=8453, version="v1", first=100
    )

    assert items == [{"hash": "0x1"}]
    assert seen["body"]["variables"] == {
        "first": 100,
        "where": {
            "vaultAddress_in": [VAULT],
            "type_in": ["MetaMorphoDeposit", "MetaMorphoWithdraw"],
            "chainId_in": [8453],
        },
    }


@pytest.mark.asyncio
async def test_v2_activity_scopes_to_vault_and_user_only():
    seen = {}
    user = "0x81830bC5f811aF86fF6f17Fb9a619088B09Dff43"

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        body = {"data": {"vaultV2transactions": {"items": []}}}
        return httpx.Response(200, json=body)

    items = await _client(handler).get_vault_activity(
        address=VAULT, chain_id=8453, version="v2", first=1000, user_address=user
    )

    assert items == []
    assert seen["body"]["variables"]["where"] == {
        "vaultAddress_in": [VAULT],
        "userAddress_in": [user],
    }


@pytest.mark.asyncio
async def test_history_passes_timeseries_options():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200, json={"data": {"vaultV2ByAddress": {"historicalState": {}}}}
        )

    options = {"startTimestamp": 1, "endTimestamp": 2, "interval": "HOUR"}
    vault = await _client(handler).get_vault_history(
        address=VAULT, chain_id=8453, version="v2", options=options
    )

    assert vault == {"historicalState": {}}
    assert seen["body"]["variables"]["options"] == options
