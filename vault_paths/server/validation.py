from __future__ import annotations

import re
from collections.abc import Mapping

from vault_paths.core.config import get_default_chain_id
from vault_paths.core.constants.vaults import (
    ADDRESS_PATTERN,
    DEFAULT_PERIOD,
    MAX_CHAIN_ID,
    VALID_PERIODS,
)

_ADDRESS_RE = re.compile(ADDRESS_PATTERN)
_CHAIN_ID_RE = re.compile(r"^\d+$")


class RequestValidationError(ValueError):
    pass


def is_valid_address(address: str | None) -> bool:
    return bool(address) and bool(_ADDRESS_RE.match(str(address)))


def validate_address(address: str | None, *, what: str = "vault") -> str:
    if not is_valid_address(address):
        raise RequestValidationError(f"Invalid {what} address format")
    return str(address)


def validate_chain_id(raw: str | None) -> int:
    if raw is None or raw == "":
        return get_default_chain_id()
    text = str(raw).strip()
    if not _CHAIN_ID_RE.match(text):
        raise RequestValidationError("Invalid chain ID")
    chain_id = int(text)
    if chain_id <= 0 or chain_id > MAX_CHAIN_ID:
        raise RequestValidationError("Invalid chain ID")
    return chain_id


def validate_period(raw: str | None) -> str:
    period = raw or DEFAULT_PERIOD
    if period not in VALID_PERIODS:
        raise RequestValidationError(
            f"Invalid period. Must be one of: {', '.join(VALID_PERIODS)}"
        )
    return period


def optional_user_address(query: Mapping[str, str]) -> str | None:
    user = query.get("userAddress")
    if not user:
        return None
    return validate_address(user, what="user")
