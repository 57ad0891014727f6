from __future__ import annotations

import asyncio
import json
import sys
from typing import Any

import click
from aiohttp import web
from loguru import logger

from vault_paths.adapters.morpho_vault_adapter.adapter import MorphoVaultAdapter
from vault_paths.adapters.morpho_vault_adapter.history import to_chart_rows
from vault_paths.core.config import (
    get_default_chain_id,
    get_server_host,
    get_server_port,
    load_config,
)
from vault_paths.core.constants.vaults import (
    DEFAULT_PERIOD,
    SCHEMA_VERSIONS,
    VALID_PERIODS,
)
from vault_paths.server.app import create_app

_LOG_LEVELS = click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False)


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


def _configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


def _run_tuple(coro: Any) -> None:
    ok, result = asyncio.run(coro)
    if not ok:
        _echo_json({"ok": False, "error": result})
        raise SystemExit(1)
    _echo_json({"ok": True, "result": result})


@click.group(name="vault-paths", help="Morpho vault data service.")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to config.json (default: VAULT_PATHS_CONFIG_PATH or ./config.json).",
)
def cli(config_path: str | None) -> None:
    if config_path:
        load_config(config_path, require_exists=True)


@cli.command(name="serve", help="Run the vault data HTTP API.")
@click.option("--host", default=None, help="Bind host (config server.host).")
@click.option("--port", type=int, default=None, help="Bind port (config server.port).")
@click.option("--log-level", type=_LOG_LEVELS, default="INFO", show_default=True)
def serve_cmd(host: str | None, port: int | None, log_level: str) -> None:
    _configure_logging(log_level)
    host = host or get_server_host()
    port = port or get_server_port()
    logger.info(f"Serving vault API on http://{host}:{port}")
    web.run_app(create_app(), host=host, port=port, print=None)


@cli.command(name="snapshot", help="Print a normalized vault snapshot.")
@click.argument("address")
@click.option("--chain-id", type=int, default=None)
@click.option(
    "--version", type=click.Choice(SCHEMA_VERSIONS), default="v1", show_default=True
)
@click.option("--log-level", type=_LOG_LEVELS, default="WARNING", show_default=True)
def snapshot_cmd(
    address: str, chain_id: int | None, version: str, log_level: str
) -> None:
    _configure_logging(log_level)

    async def _go() -> tuple[bool, Any]:
        ok, snap = await MorphoVaultAdapter().get_vault_snapshot(
            address=address,
            chain_id=chain_id or get_default_chain_id(),
            version=version,
        )
        return ok, snap.to_json() if ok else snap

    _run_tuple(_go())


@cli.command(name="history", help="Print vault history chart rows.")
@click.argument("address")
@click.option("--chain-id", type=int, default=None)
@click.option(
    "--version", type=click.Choice(SCHEMA_VERSIONS), default="v1", show_default=True
)
@click.option(
    "--period",
    type=click.Choice(VALID_PERIODS),
    default=DEFAULT_PERIOD,
    show_default=True,
)
@click.option("--log-level", type=_LOG_LEVELS, default="WARNING", show_default=True)
def history_cmd(
    address: str, chain_id: int | None, version: str, period: str, log_level: str
) -> None:
    _configure_logging(log_level)

    async def _go() -> tuple[bool, Any]:
        ok, points = await MorphoVaultAdapter().get_vault_history(
            address=address,
            chain_id=chain_id or get_default_chain_id(),
            version=version,
            period=period,
        )
        return ok, to_chart_rows(points) if ok else points

    _run_tuple(_go())


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
