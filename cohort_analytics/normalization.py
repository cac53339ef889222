"""
Data normalization and cleaning utilities for cohort analytics
"""
from dataclasses import astuple, dataclass
from typing import Optional

import pandas as pd
import numpy as np

from .config import STAGE_ORDER, Stage

LEAD_COLUMNS = ["lead_id", "acquired_at"]
EVENT_COLUMNS = ["lead_id", "stage", "timestamp", "channel"]
TOUCH_COLUMNS = ["lead_id", "channel", "timestamp", "converted"]

# lower-case categorical columns on the lead frame
LEAD_CATEGORICALS = ["channel", "device", "property_type", "transaction_type", "origin"]
LEAD_TEXT = ["portal", "campaign", "agent", "office", "zone"]

TRUE_TOKENS = {"true", "t", "1", "yes", "y", "si", "sí"}


@dataclass(frozen=True)
class StageEvent:
    """One stage reached by one lead."""
    lead_id: str
    stage: Stage
    timestamp: pd.Timestamp
    channel: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "stage", Stage(self.stage))
        object.__setattr__(self, "timestamp", pd.Timestamp(self.timestamp))


def events_frame(records) -> pd.DataFrame:
    """Long event frame from an iterable of StageEvent."""
    rows = [astuple(e) for e in records]
    frame = pd.DataFrame(rows, columns=EVENT_COLUMNS)
    frame["stage"] = frame["stage"].map(lambda s: s.value)
    return frame


def norm_str_col(df: pd.DataFrame, col: str) -> pd.Series:
    """Normalize string column: strip whitespace, collapse multiple spaces."""
    return (
        df[col]
        .astype(str)
        .str.replace(r"\s+", " ", regex=True)
        .str.strip()
    )


def clean_keys(series: pd.Series) -> pd.Series:
    """
    Normalize identifier keys:
    - Cast to string
    - Strip whitespace
    - Turn 'nan'/'None' into NaN
    """
    if series is None:
        return pd.Series([], dtype="object")

    s = series.astype(str).str.strip()
    return s.mask(s.isin(["", "nan", "NaN", "None", "none", "NaT", "<NA>"]))


def _require(df: pd.DataFrame, cols, name: str):
    missing = [c for c in cols if c not in df.columns]
    if missing:
        raise KeyError(f"{name} is missing required columns: {missing}")


def normalize_leads(df: pd.DataFrame) -> pd.DataFrame:
    """
    Normalize a lead DataFrame:
    - Clean lead ids, drop rows without one
    - Parse acquisition dates (unparseable -> NaT, handled downstream)
    - Lower-case categorical columns, trim free-text columns
    - Coerce price to float
    """
    if df is None:
        return pd.DataFrame(columns=LEAD_COLUMNS)

    _require(df, LEAD_COLUMNS, "leads")
    leads = df.copy()

    leads["lead_id"] = clean_keys(leads["lead_id"])
    leads = leads[leads["lead_id"].notna()].copy()
    leads["acquired_at"] = pd.to_datetime(leads["acquired_at"], errors="coerce")

    for col in LEAD_CATEGORICALS:
        if col in leads.columns:
            leads[col] = clean_keys(leads[col]).str.lower()

    for col in LEAD_TEXT:
        if col in leads.columns:
            leads[col] = clean_keys(norm_str_col(leads, col))

    if "price" in leads.columns:
        leads["price"] = pd.to_numeric(leads["price"], errors="coerce")

    return leads.drop_duplicates("lead_id").reset_index(drop=True)


def normalize_events(df: pd.DataFrame) -> pd.DataFrame:
    """
    Normalize a long stage-event DataFrame (one row per lead x stage), or an
    iterable of StageEvent records.

    Stage names are upper-cased; rows with a stage outside the funnel are
    dropped. Timestamps that fail to parse stay NaT so the cohort assigner
    can report them.
    """
    if df is None:
        return pd.DataFrame(columns=EVENT_COLUMNS)
    if not isinstance(df, pd.DataFrame):
        df = events_frame(df)

    _require(df, ["lead_id", "stage", "timestamp"], "events")
    events = df.copy()

    events["lead_id"] = clean_keys(events["lead_id"])
    events["stage"] = norm_str_col(events, "stage").str.upper()
    events["timestamp"] = pd.to_datetime(events["timestamp"], errors="coerce")
    if "channel" in events.columns:
        events["channel"] = clean_keys(events["channel"]).str.lower()
    else:
        events["channel"] = np.nan

    events = events[events["lead_id"].notna() & events["stage"].isin(STAGE_ORDER)]
    return events.reset_index(drop=True)


def stage_dates_to_events(leads: pd.DataFrame, stages=None) -> pd.DataFrame:
    """
    Melt wide stage-date columns (LEAD, VISITA, ... one date per column)
    into the long event form used by the engine.
    """
    stages = [s for s in (stages or STAGE_ORDER) if s in leads.columns]
    id_cols = ["lead_id"] + (["channel"] if "channel" in leads.columns else [])

    long = leads[id_cols + stages].melt(
        id_vars=id_cols,
        value_vars=stages,
        var_name="stage",
        value_name="timestamp",
    )
    long = long[long["timestamp"].notna()]
    return normalize_events(long)


def ensure_lead_events(leads: pd.DataFrame, events: pd.DataFrame) -> pd.DataFrame:
    """Add a LEAD event at the acquisition date for leads that lack one."""
    has_lead = set(events.loc[events["stage"] == "LEAD", "lead_id"])
    missing = leads[~leads["lead_id"].isin(has_lead) & leads["acquired_at"].notna()]
    if missing.empty:
        return events

    extra = pd.DataFrame({
        "lead_id": missing["lead_id"].values,
        "stage": "LEAD",
        "timestamp": missing["acquired_at"].values,
        "channel": missing["channel"].values if "channel" in missing.columns else np.nan,
    })
    return pd.concat([events, extra], ignore_index=True)


def parse_flag(value) -> bool:
    """Boolean from a bool, number or text cell; missing and unrecognised text are False."""
    if isinstance(value, str):
        return value.strip().lower() in TRUE_TOKENS
    if value is None or pd.isna(value):
        return False
    return bool(value)


def normalize_touches(df: pd.DataFrame) -> pd.DataFrame:
    """Normalize attribution touches and order them per lead by timestamp."""
    if df is None:
        return pd.DataFrame(columns=TOUCH_COLUMNS)

    _require(df, TOUCH_COLUMNS, "touches")
    touches = df.copy()

    touches["lead_id"] = clean_keys(touches["lead_id"])
    touches["channel"] = clean_keys(touches["channel"]).str.lower()
    touches["timestamp"] = pd.to_datetime(touches["timestamp"], errors="coerce")
    touches["converted"] = touches["converted"].map(parse_flag).astype(bool)

    touches = touches[touches["lead_id"].notna() & touches["channel"].notna()]
    return touches.sort_values(["lead_id", "timestamp"], kind="mergesort").reset_index(drop=True)
