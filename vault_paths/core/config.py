import json
import os
from pathlib import Path
from typing import Any

from vault_paths.core.constants.chains import CHAIN_ID_BASE

_CONFIG_ENV_KEYS = ("VAULT_PATHS_CONFIG_PATH", "VAULT_PATHS_CONFIG")
_DEFAULT_CONFIG_FILENAME = "config.json"
_DEFAULT_MORPHO_GRAPHQL_URL = "https://api.morpho.org/graphql"
_DEFAULT_SERVER_HOST = "127.0.0.1"
_DEFAULT_SERVER_PORT = 8080


def _find_project_root(start: Path) -> Path | None:
    cur = start.resolve()
    for parent in [cur, *cur.parents]:
        if (parent / "pyproject.toml").exists():
            return parent
    return None


def _project_root() -> Path | None:
    return _find_project_root(Path.cwd()) or _find_project_root(Path(__file__).parent)


def resolve_config_path(path: str | Path | None = None) -> Path:
    if path is not None:
        return Path(path).expanduser()

    env_path = next(
        (os.getenv(k, "").strip() for k in _CONFIG_ENV_KEYS if os.getenv(k)), ""
    )
    if env_path:
        p = Path(env_path).expanduser()
        if p.is_absolute():
            return p
        root = _project_root()
        return (root / p) if root else p

    root = _project_root()
    return (root / _DEFAULT_CONFIG_FILENAME) if root else Path(_DEFAULT_CONFIG_FILENAME)


def load_config_json(
    path: str | Path | None = None, *, require_exists: bool = False
) -> dict[str, Any]:
    cfg_path = resolve_config_path(path)
    if not cfg_path.exists():
        if require_exists:
            raise FileNotFoundError(f"Config file not found: {cfg_path}")
        return {}
    try:
        return json.loads(cfg_path.read_text())
    except (OSError, ValueError):
        return {}


CONFIG: dict[str, Any] = load_config_json()


def set_config(config: dict[str, Any]) -> None:
    """Replace the global CONFIG dict in-place.

    Modules that imported CONFIG at import time see the update.
    """
    CONFIG.clear()
    CONFIG.update(config)


def load_config(
    path: str | Path | None = None, *, require_exists: bool = False
) -> None:
    """Load config from disk into the global CONFIG dict."""
    set_config(load_config_json(path, require_exists=require_exists))


def set_rpc_urls(rpc_urls: dict[str, Any]) -> None:
    CONFIG.setdefault("strategy", {})["rpc_urls"] = rpc_urls


def get_rpc_urls() -> dict[str, Any]:
    return CONFIG.get("strategy", {}).get("rpc_urls", {})


def get_morpho_graphql_url() -> str:
    system = CONFIG.get("system", {})
    url = system.get("morpho_graphql_url")
    if url:
        return str(url).strip()
    return os.environ.get("MORPHO_GRAPHQL_URL") or _DEFAULT_MORPHO_GRAPHQL_URL


def get_default_chain_id() -> int:
    system = CONFIG.get("system", {})
    try:
        return int(system.get("default_chain_id") or CHAIN_ID_BASE)
    except (TypeError, ValueError):
        return CHAIN_ID_BASE


def get_server_host() -> str:
    return str(CONFIG.get("server", {}).get("host") or _DEFAULT_SERVER_HOST)


def get_server_port() -> int:
    try:
        return int(CONFIG.get("server", {}).get("port") or _DEFAULT_SERVER_PORT)
    except (TypeError, ValueError):
        return _DEFAULT_SERVER_PORT
