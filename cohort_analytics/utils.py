"""
Shared utility functions for cohort analytics
"""
import math

import numpy as np
import pandas as pd


MONTH_LABELS = ["Ene", "Feb", "Mar", "Abr", "May", "Jun", "Jul", "Ago", "Sep", "Oct", "Nov", "Dic"]


def round_half_up(x, decimals=0):
    """Round half away from zero (``round`` in Python is banker's rounding)."""
    factor = 10 ** decimals
    return math.copysign(math.floor(abs(x) * factor + 0.5) / factor, x)


def percent(numerator, denominator, decimals=1) -> float:
    """Percentage rounded to ``decimals``; 0 for a zero denominator."""
    if denominator == 0 or pd.isna(denominator):
        return 0.0
    return round_half_up(numerator / denominator * 100, decimals)


def safe_divide(numerator, denominator, default=0.0):
    """Safe division that returns default for zero denominator."""
    if denominator == 0 or pd.isna(denominator):
        return default
    return numerator / denominator


def percent_series(counts: pd.Series, sizes: pd.Series, decimals: int = 1) -> pd.Series:
    """Vectorised ``percent`` over two aligned Series."""
    sizes = sizes.astype(float)
    with np.errstate(divide="ignore", invalid="ignore"):
        raw = np.where(sizes > 0, counts.astype(float) / sizes * 100, 0.0)
    factor = 10 ** decimals
    return pd.Series(np.floor(raw * factor + 0.5) / factor, index=counts.index)


def fmt_month(cohort: str) -> str:
    """'2024-03' -> 'Mar 2024'."""
    year, month = cohort.split("-")
    return f"{MONTH_LABELS[int(month) - 1]} {year}"
