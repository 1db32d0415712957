#!/usr/bin/env python3
"""Level price table helpers. SOL amounts are Decimal; lamports are int."""

from decimal import Decimal, InvalidOperation, ROUND_FLOOR

from .constants import LEVEL_PRICES_LAMPORTS, LAMPORTS_PER_SOL
from .pda import validate_level


def price_lamports_for_level(level: int) -> int:
    """Activation price of `level` (1..16) in lamports."""
    return LEVEL_PRICES_LAMPORTS[validate_level(level) - 1]


def price_sol_for_level(level: int) -> Decimal:
    return lamports_to_sol(price_lamports_for_level(level))


def lamports_to_sol(lamports: int) -> Decimal:
    return Decimal(lamports) / LAMPORTS_PER_SOL


def sol_to_lamports(sol) -> int:
    """Exact for decimal strings ("0.05"); floats go through their repr. Rounds down."""
    try:
        d = Decimal(str(sol))
    except InvalidOperation:
        raise ValueError(f"Invalid SOL value: {sol!r}")
    if not d.is_finite() or d < 0:
        raise ValueError(f"Invalid SOL value: {sol!r}")
    return int((d * LAMPORTS_PER_SOL).to_integral_value(rounding=ROUND_FLOOR))
