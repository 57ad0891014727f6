from __future__ import annotations

import math
import re
from decimal import ROUND_DOWN, Decimal, InvalidOperation, localcontext
from typing import Any

from vault_paths.core.constants.base import NATIVE_GAS_RESERVE, NATIVE_GAS_SYMBOLS

# uint256 has 78 decimal digits.
_UINT_PRECISION = 80
_RAW_INTEGER = re.compile(r"^\d+$")
_HUMAN_AMOUNT = re.compile(r"^\d+\.?\d*$")


class NumericOverflow(ValueError):
    """A raw on-chain amount that is not a non-negative integer."""


def _to_decimal(value: str | int | float | Decimal) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return Decimal(value)
    return Decimal(str(value).strip())


def _raw_digits(raw: str | int) -> str:
    if isinstance(raw, bool):
        raise NumericOverflow(f"Invalid raw amount: {raw!r}")
    if isinstance(raw, int):
        if raw < 0:
            raise NumericOverflow(f"Raw amount must be non-negative: {raw}")
        return str(raw)
    text = str(raw).strip()
    if not _RAW_INTEGER.match(text):
        raise NumericOverflow(f"Invalid raw amount: {raw!r}")
    return text


def to_decimal(raw: str | int, decimals: int) -> Decimal:
    """Scale a smallest-unit integer down by ``10**decimals`` without rounding."""
    digits = _raw_digits(raw)
    if int(decimals) < 0:
        raise NumericOverflow(f"Invalid decimals: {decimals}")
    return Decimal(f"{digits}e-{int(decimals)}")


def to_raw(amount: str | int | float | Decimal, decimals: int) -> int:
    try:
        amt = _to_decimal(amount)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid token amount: {amount}") from exc
    if not amt.is_finite():
        raise ValueError(f"Invalid token amount: {amount}")
    if amt < 0:
        raise ValueError("Amount must be non-negative")
    with localcontext() as ctx:
        ctx.prec = _UINT_PRECISION
        scaled = amt.scaleb(int(decimals))
        return int(scaled.to_integral_value(rounding=ROUND_DOWN))


def to_usd(amount: Decimal | float, price_usd: float | None) -> float:
    if not price_usd:
        return 0.0
    return float(amount) * float(price_usd)


def is_native_gas_symbol(symbol: str | None) -> bool:
    return str(symbol or "").strip().lower() in NATIVE_GAS_SYMBOLS


def max_spendable(
    balance_raw: str | int,
    symbol: str | None,
    is_native_gas_asset: bool | None = None,
    *,
    decimals: int = 18,
) -> Decimal:
    """Largest amount a wallet may spend; native gas assets keep a reserve back."""
    balance = to_decimal(balance_raw, decimals)
    native = (
        is_native_gas_symbol(symbol)
        if is_native_gas_asset is None
        else bool(is_native_gas_asset)
    )
    if not native:
        return balance
    spendable = balance - Decimal(NATIVE_GAS_RESERVE)
    return spendable if spendable > 0 else Decimal(0)


def parse_amount(text: str, decimals: int) -> int:
    """Parse a user-typed decimal string into raw units, truncating extra digits."""
    sanitized = re.sub(r"\s+", "", str(text or ""))
    if not _HUMAN_AMOUNT.match(sanitized):
        raise ValueError(
            f'Invalid amount format: "{text}". Expected a decimal number.'
        )
    integer_part, _, fraction = sanitized.partition(".")
    fraction = fraction[: int(decimals)].ljust(int(decimals), "0")
    return int(f"{integer_part or '0'}{fraction}")


def format_amount(raw: str | int, decimals: int) -> str:
    value = to_decimal(raw, decimals).normalize()
    text = format(value, "f")
    return text


def safe_float(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        out = float(value)
    except (TypeError, ValueError):
        return 0.0
    return out if math.isfinite(out) else 0.0
