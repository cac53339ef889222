"""
Data loading utilities and the DataSource interface the engine reads from
"""
import logging
from abc import ABC, abstractmethod
from io import BytesIO
from pathlib import Path

import pandas as pd

from .normalization import normalize_events, normalize_leads, normalize_touches

logger = logging.getLogger(__name__)


def _read_table(file) -> pd.DataFrame:
    """Read CSV or Excel from a path, or Excel from an uploaded file-like."""
    if file is None:
        return None

    if isinstance(file, (str, Path)):
        suffix = Path(file).suffix.lower()
        if suffix == ".csv":
            return pd.read_csv(file)
        if suffix == ".json":
            return pd.read_json(file, orient="records")
        return pd.read_excel(file)

    if isinstance(file, bytes):
        file = BytesIO(file)
    return pd.read_excel(file)


def load_leads(file) -> pd.DataFrame:
    """Load and normalise a lead file (CSV / JSON records / Excel)."""
    df = _read_table(file)
    if df is None:
        return None
    logger.debug("Loaded %d lead rows from %s", len(df), file)
    return normalize_leads(df)


def load_events(file) -> pd.DataFrame:
    """Load and normalise a long stage-event file."""
    df = _read_table(file)
    if df is None:
        return None
    logger.debug("Loaded %d event rows from %s", len(df), file)
    return normalize_events(df)


def load_touches(file) -> pd.DataFrame:
    """Load and normalise an attribution touch file."""
    df = _read_table(file)
    if df is None:
        return None
    logger.debug("Loaded %d touch rows from %s", len(df), file)
    return normalize_touches(df)


class DataSource(ABC):
    """
    Read-only access to already-fetched records.

    The engine consumes these frames and never mutates or stores them.
    """

    @abstractmethod
    def leads(self) -> pd.DataFrame:
        ...

    @abstractmethod
    def events(self) -> pd.DataFrame:
        ...

    def touches(self) -> pd.DataFrame:
        return None

    def spend(self) -> dict:
        return {}


class FrameDataSource(DataSource):
    """DataSource over in-memory DataFrames; normalises once on construction."""

    def __init__(self, leads: pd.DataFrame, events: pd.DataFrame, touches: pd.DataFrame = None, spend: dict = None):
        self._leads = normalize_leads(leads)
        self._events = normalize_events(events)
        self._touches = normalize_touches(touches) if touches is not None else None
        self._spend = dict(spend or {})

    def leads(self) -> pd.DataFrame:
        return self._leads.copy()

    def events(self) -> pd.DataFrame:
        return self._events.copy()

    def touches(self) -> pd.DataFrame:
        return self._touches.copy() if self._touches is not None else None

    def spend(self) -> dict:
        return dict(self._spend)


class FileDataSource(FrameDataSource):
    """DataSource backed by lead / event / touch files on disk."""

    def __init__(self, leads_path, events_path, touches_path=None, spend: dict = None):
        super().__init__(
            leads=_read_table(leads_path),
            events=_read_table(events_path),
            touches=_read_table(touches_path) if touches_path is not None else None,
            spend=spend,
        )
