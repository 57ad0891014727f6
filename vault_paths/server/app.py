from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from aiohttp import web
from loguru import logger

from vault_paths.adapters.morpho_vault_adapter.adapter import MorphoVaultAdapter
from vault_paths.adapters.morpho_vault_adapter.history import to_chart_rows
from vault_paths.core.adapters.models import ActivityFeed
from vault_paths.core.clients.MorphoClient import (
    MorphoGraphQLError,
    MorphoNetworkError,
    MorphoResponseError,
)
from vault_paths.core.constants.vaults import DEFAULT_PERIOD, SchemaVersion
from vault_paths.server.validation import (
    RequestValidationError,
    optional_user_address,
    validate_address,
    validate_chain_id,
    validate_period,
)

ADAPTER_KEY = web.AppKey("adapter", MorphoVaultAdapter)

NETWORK_FAILURE = "Failed to connect to Morpho API"
RESPONSE_FAILURE = "Invalid response from Morpho API"

Producer = Callable[[], Awaitable[dict[str, Any]]]

log = logger.bind(component="server")
routes = web.RouteTableDef()


def _adapter(request: web.Request) -> MorphoVaultAdapter:
    return request.app[ADAPTER_KEY]


def _empty_activity() -> dict[str, Any]:
    return ActivityFeed().to_json()


async def _respond(
    request: web.Request,
    *,
    empty: dict[str, Any],
    what: str,
    produce: Producer,
) -> web.Response:
    """Run a handler body and map failures onto a well-typed empty body.

    Validation problems are 400s. Transport and parse failures are 500s.
    Upstream GraphQL errors are reported with a 200 so clients can still
    render the empty shape.
    """
    try:
        return web.json_response(await produce())
    except RequestValidationError as exc:
        return web.json_response({**empty, "error": str(exc)}, status=400)
    except MorphoGraphQLError as exc:
        log.error(f"GraphQL errors fetching {what} ({request.path}): {exc}")
        return web.json_response({**empty, "error": str(exc)})
    except MorphoNetworkError as exc:
        log.error(f"Network error fetching {what} ({request.path}): {exc}")
        return web.json_response({**empty, "error": NETWORK_FAILURE}, status=500)
    except MorphoResponseError as exc:
        log.error(f"Bad upstream response fetching {what} ({request.path}): {exc}")
        return web.json_response({**empty, "error": RESPONSE_FAILURE}, status=500)
    except Exception as exc:  # noqa: BLE001
        log.exception(f"Unexpected error fetching {what} ({request.path}): {exc}")
        return web.json_response(
            {**empty, "error": f"Failed to fetch {what}"}, status=500
        )


def _version(request: web.Request) -> SchemaVersion:
    return "v2" if request.path.startswith("/vaults/v2/") else "v1"


@routes.get("/health")
async def health(request: web.Request) -> web.Response:
    return web.json_response({"status": "ok"})


@routes.get("/vaults/{address}/complete")
@routes.get("/vaults/v2/{address}/complete")
async def vault_complete(request: web.Request) -> web.Response:
    async def produce() -> dict[str, Any]:
        address = validate_address(request.match_info["address"])
        chain_id = validate_chain_id(request.query.get("chainId"))
        snapshot = await _adapter(request).fetch_snapshot(
            address=address, chain_id=chain_id, version=_version(request)
        )
        return {"vault": snapshot.to_json()}

    return await _respond(
        request, empty={"vault": None}, what="vault data", produce=produce
    )


@routes.get("/vaults/{address}/history")
@routes.get("/vaults/v2/{address}/history")
async def vault_history(request: web.Request) -> web.Response:
    period = request.query.get("period") or DEFAULT_PERIOD

    async def produce() -> dict[str, Any]:
        address = validate_address(request.match_info["address"])
        chain_id = validate_chain_id(request.query.get("chainId"))
        validate_period(period)
        history = await _adapter(request).fetch_history(
            address=address,
            chain_id=chain_id,
            version=_version(request),
            period=period,
        )
        return {"history": to_chart_rows(history), "period": period}

    return await _respond(
        request,
        empty={"history": [], "period": period},
        what="historical data",
        produce=produce,
    )


@routes.get("/vaults/{address}/activity")
@routes.get("/vaults/v2/{address}/activity")
async def vault_activity(request: web.Request) -> web.Response:
    async def produce() -> dict[str, Any]:
        address = validate_address(request.match_info["address"])
        chain_id = validate_chain_id(request.query.get("chainId"))
        user_address = optional_user_address(request.query)
        feed = await _adapter(request).fetch_activity(
            address=address,
            chain_id=chain_id,
            version=_version(request),
            user_address=user_address,
        )
        return feed.to_json()

    return await _respond(
        request, empty=_empty_activity(), what="activity", produce=produce
    )


@routes.get("/vaults/{address}/allocation-history")
async def vault_allocation_history(request: web.Request) -> web.Response:
    period = request.query.get("period") or DEFAULT_PERIOD

    async def produce() -> dict[str, Any]:
        address = validate_address(request.match_info["address"])
        chain_id = validate_chain_id(request.query.get("chainId"))
        validate_period(period)
        points = await _adapter(request).fetch_allocation_history(
            address=address, chain_id=chain_id, period=period
        )
        return {
            "allocationHistory": [p.to_json() for p in points],
            "period": period,
        }

    return await _respond(
        request,
        empty={"allocationHistory": [], "period": period},
        what="allocation history",
        produce=produce,
    )


@routes.get("/vaults/v2/{address}/position-history")
async def vault_position_history(request: web.Request) -> web.Response:
    period = request.query.get("period") or DEFAULT_PERIOD

    async def produce() -> dict[str, Any]:
        address = validate_address(request.match_info["address"])
        chain_id = validate_chain_id(request.query.get("chainId"))
        validate_period(period)
        user_address = optional_user_address(request.query)
        if user_address is None:
            raise RequestValidationError("userAddress is required")
        history, current = await _adapter(request).fetch_position_history(
            vault_address=address,
            user_address=user_address,
            chain_id=chain_id,
            period=period,
        )
        return {
            "history": [p.to_json() for p in history],
            "currentPosition": current.to_json() if current else None,
            "period": period,
        }

    return await _respond(
        request,
        empty={"history": [], "currentPosition": None, "period": period},
        what="position history",
        produce=produce,
    )


async def _close_adapter(app: web.Application) -> None:
    await app[ADAPTER_KEY].close()


def create_app(adapter: MorphoVaultAdapter | None = None) -> web.Application:
    app = web.Application()
    app[ADAPTER_KEY] = adapter or MorphoVaultAdapter()
    app.add_routes(routes)
    app.on_cleanup.append(_close_adapter)
    return app
