from __future__ import annotations

import copy
import json
from pathlib import Path

import pytest

import vault_paths.core.config as config
from vault_paths.core.constants.chains import CHAIN_ID_BASE


@pytest.fixture(autouse=True)
def restore_global_config():
    original = copy.deepcopy(config.CONFIG)
    yield
    config.set_config(original)


def test_resolve_config_path_explicit(tmp_path: Path) -> None:
    target = tmp_path / "custom.json"
    assert config.resolve_config_path(target) == target


def test_resolve_config_path_env_absolute(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    target = tmp_path / "env.json"
    monkeypatch.setenv("VAULT_PATHS_CONFIG_PATH", str(target))
    assert config.resolve_config_path() == target


def test_resolve_config_path_defaults_to_project_root(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.delenv("VAULT_PATHS_CONFIG_PATH", raising=False)
    monkeypatch.delenv("VAULT_PATHS_CONFIG", raising=False)
    (tmp_path / "pyproject.toml").write_text("[project]\nname = 'x'\n")
    monkeypatch.chdir(tmp_path)

    assert config.resolve_config_path() == tmp_path / "config.json"


def test_load_config_missing_file(tmp_path: Path) -> None:
    assert config.load_config_json(tmp_path / "nope.json") == {}
    with pytest.raises(FileNotFoundError):
        config.load_config_json(tmp_path / "nope.json", require_exists=True)


def test_load_config_ignores_invalid_json(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{not json")
    assert config.load_config_json(path) == {}


def test_load_config_replaces_global_in_place(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "system": {
                    "morpho_graphql_url": " https://morpho.example/graphql ",
                    "default_chain_id": 1,
                },
                "server": {"host": "0.0.0.0", "port": "9000"},
            }
        )
    )
    ref = config.CONFIG
    config.load_config(path)

    assert config.CONFIG is ref
    assert config.get_morpho_graphql_url() == "https://morpho.example/graphql"
    assert config.get_default_chain_id() == 1
    assert config.get_server_host() == "0.0.0.0"
    assert config.get_server_port() == 9000


def test_defaults_without_config(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MORPHO_GRAPHQL_URL", raising=False)
    config.set_config({})

    assert config.get_morpho_graphql_url() == "https://api.morpho.org/graphql"
    assert config.get_default_chain_id() == CHAIN_ID_BASE
    assert config.get_server_port() == 8080
    assert config.get_rpc_urls() == {}


def test_graphql_url_env_fallback(monkeypatch: pytest.MonkeyPatch) -> None:
    config.set_config({})
    monkeypatch.setenv("MORPHO_GRAPHQL_URL", "http://localhost:4000/graphql")
    assert config.get_morpho_graphql_url() == "http://localhost:4000/graphql"


def test_bad_numbers_fall_back(monkeypatch: pytest.MonkeyPatch) -> None:
    config.set_config({"system": {"default_chain_id": "base"}, "server": {"port": "x"}})
    assert config.get_default_chain_id() == CHAIN_ID_BASE
    assert config.get_server_port() == 8080


def test_set_rpc_urls() -> None:
    config.set_config({})
    config.set_rpc_urls({"8453": ["https://base.example"]})
    assert config.get_rpc_urls() == {"8453": ["https://base.example"]}
