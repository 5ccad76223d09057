"""Utility helpers for calculator modules."""

from __future__ import annotations

import math

from kapitalen.backend.config.year_config import YearConfiguration, default_configuration


def resolve_configuration(config: YearConfiguration | None) -> YearConfiguration:
    """Return ``config`` or the configuration of the default tax year."""

    return config if config is not None else default_configuration()


def round_half_up(value: float) -> float:
    """Round to the nearest whole currency unit, halves rounding upwards."""

    return float(math.floor(value + 0.5))


def round_currency(value: float) -> float:
    """Round monetary amounts to two decimals."""

    return round(value, 2)


def round_rate(value: float) -> float:
    """Round rate values to four decimals."""

    return round(value, 4)
