"""
Filter value type, boundary validation and lead filtering
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, fields
from typing import Optional

import pandas as pd

from .config import Channel, Device, Origin, PropertyType, Stage, TransactionType
from .errors import ValidationError

logger = logging.getLogger(__name__)

MONTH_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")
MAX_SPAN_MONTHS = 36
WINDOW_RANGE = (3, 18)

# field -> (enum, lead column)
ENUM_FIELDS = {
    "channel": (Channel, "channel"),
    "device": (Device, "device"),
    "property_type": (PropertyType, "property_type"),
    "transaction_type": (TransactionType, "transaction_type"),
    "origin": (Origin, "origin"),
    "target_stage": (Stage, None),
}

# field -> max length
TEXT_FIELDS = {
    "portal": 50,
    "campaign": 100,
    "agent": 50,
    "office": 50,
    "zone": 100,
}

NUMERIC_FIELDS = ("window", "min_size", "price_min", "price_max")


@dataclass(frozen=True)
class CohortFilters:
    date_from: Optional[str] = None     # acquisition month 'YYYY-MM'
    date_to: Optional[str] = None
    window: Optional[int] = None
    channel: Optional[Channel] = None
    device: Optional[Device] = None
    property_type: Optional[PropertyType] = None
    transaction_type: Optional[TransactionType] = None
    origin: Optional[Origin] = None
    target_stage: Optional[Stage] = None
    portal: Optional[str] = None
    campaign: Optional[str] = None
    agent: Optional[str] = None
    office: Optional[str] = None
    zone: Optional[str] = None
    min_size: Optional[int] = None      # drop cohorts smaller than this
    price_min: Optional[float] = None
    price_max: Optional[float] = None

    @classmethod
    def from_dict(cls, raw: dict) -> "CohortFilters":
        """
        Build and validate filters from loose key/value input (query string,
        JSON body). Empty values are ignored, numbers are coerced.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(raw) - known)
        if unknown:
            raise ValidationError(
                "Unknown filter fields",
                [(k, "unknown field") for k in unknown],
            )

        values = {}
        errors = []
        for key, value in raw.items():
            if value is None or value == "":
                continue
            if key in NUMERIC_FIELDS:
                try:
                    num = float(value)
                except (TypeError, ValueError):
                    errors.append((key, "must be a number"))
                    continue
                values[key] = int(num) if key in ("window", "min_size") else num
            elif key in ENUM_FIELDS:
                enum_cls = ENUM_FIELDS[key][0]
                try:
                    values[key] = enum_cls(value)
                except ValueError:
                    allowed = ", ".join(e.value for e in enum_cls)
                    errors.append((key, f"invalid value {value!r}; allowed: {allowed}"))
            else:
                values[key] = str(value)

        if errors:
            raise ValidationError("Invalid filter values", errors)

        filters = cls(**values)
        validate_filters(filters)
        return filters

    def to_dict(self) -> dict:
        out = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            out[f.name] = value.value if hasattr(value, "value") else value
        return out


def _month_index(month: str) -> int:
    year, mon = month.split("-")
    return int(year) * 12 + int(mon) - 1


def validate_filters(filters: CohortFilters) -> CohortFilters:
    """
    Check every constraint the engine relies on.

    Raises ValidationError listing all offending fields; returns the filters
    unchanged when they are valid.
    """
    errors = []

    for key in ("date_from", "date_to"):
        value = getattr(filters, key)
        if value is not None and not MONTH_RE.match(str(value)):
            errors.append((key, "format must be YYYY-MM"))

    if (
        filters.date_from and filters.date_to
        and MONTH_RE.match(filters.date_from) and MONTH_RE.match(filters.date_to)
    ):
        span = _month_index(filters.date_to) - _month_index(filters.date_from)
        if span < 0 or span > MAX_SPAN_MONTHS:
            errors.append(("date_to", f"range must not exceed {MAX_SPAN_MONTHS} months and date_from must be <= date_to"))

    if filters.window is not None:
        lo, hi = WINDOW_RANGE
        if filters.window < lo or filters.window > hi:
            errors.append(("window", f"window must be between {lo} and {hi} months"))

    for key, (enum_cls, _) in ENUM_FIELDS.items():
        value = getattr(filters, key)
        if value is None:
            continue
        try:
            enum_cls(value)
        except ValueError:
            allowed = ", ".join(e.value for e in enum_cls)
            errors.append((key, f"invalid value {value!r}; allowed: {allowed}"))

    for key in ("min_size", "price_min", "price_max"):
        value = getattr(filters, key)
        if value is not None and value < 0:
            errors.append((key, "must be >= 0"))

    if (
        filters.price_min is not None and filters.price_max is not None
        and filters.price_min > filters.price_max
    ):
        errors.append(("price_max", "price_min must be <= price_max"))

    for key, max_len in TEXT_FIELDS.items():
        value = getattr(filters, key)
        if value is not None and len(value) > max_len:
            errors.append((key, f"must not exceed {max_len} characters"))

    if errors:
        raise ValidationError("Invalid cohort filters", errors)

    return filters


def cohort_range(date_from: str, date_to: str) -> list:
    """Inclusive list of 'YYYY-MM' keys between two months."""
    start = pd.Period(date_from, freq="M")
    end = pd.Period(date_to, freq="M")
    return [str(p) for p in pd.period_range(start, end, freq="M")]


def filter_dataframe(df: pd.DataFrame, filters: dict) -> pd.DataFrame:
    """
    Apply multiple filters to a DataFrame.

    filters is a dict like:
    {
        'column_name': value,  # exact match
        'column_name__gte': value,  # greater than or equal
        'column_name__lte': value,  # less than or equal
        'column_name__contains': value,  # string contains (case insensitive)
    }
    Filters on columns the frame does not have are skipped with a warning.
    """
    result = df

    for key, value in filters.items():
        if value is None:
            continue

        col, _, op = key.partition("__")
        if col not in result.columns:
            logger.warning("Filter on %r ignored: column not present", col)
            continue

        if op == "gte":
            result = result[result[col] >= value]
        elif op == "lte":
            result = result[result[col] <= value]
        elif op == "contains":
            result = result[result[col].astype(str).str.lower().str.contains(str(value).lower(), na=False, regex=False)]
        else:
            result = result[result[col] == value]

    return result


def apply_filters(leads: pd.DataFrame, filters: Optional[CohortFilters]) -> pd.DataFrame:
    """
    Restrict a normalised lead frame to the filter set.

    Cohort-level bounds (``min_size``) and the target stage are not lead
    filters; they are applied by the engine after cohort assignment.
    """
    if filters is None or leads is None or leads.empty:
        return leads

    criteria = {}
    for key, (_, col) in ENUM_FIELDS.items():
        if col is None:
            continue
        value = getattr(filters, key)
        criteria[col] = getattr(value, "value", value)

    criteria["portal"] = filters.portal
    criteria["campaign"] = filters.campaign
    criteria["agent"] = filters.agent
    criteria["office"] = filters.office
    criteria["zone__contains"] = filters.zone
    criteria["price__gte"] = filters.price_min
    criteria["price__lte"] = filters.price_max

    out = filter_dataframe(leads, criteria)

    if filters.date_from or filters.date_to:
        acq_month = out["acquired_at"].dt.to_period("M").astype(str)
        in_range = pd.Series(True, index=out.index)
        if filters.date_from:
            in_range &= acq_month >= filters.date_from
        if filters.date_to:
            in_range &= acq_month <= filters.date_to
        # unparseable dates stay in so cohort assignment reports them
        out = out[in_range | out["acquired_at"].isna()]

    logger.debug("Filters kept %d of %d leads", len(out), len(leads))
    return out
