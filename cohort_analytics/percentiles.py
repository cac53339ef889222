"""
Rank-based percentiles and time-to-event statistics
"""
import math

import numpy as np
import pandas as pd

from .config import Stage

TIME_TO_EVENT_COLUMNS = ["cohort", "event", "count", "p50", "p90", "mean"]


def percentile(samples, p: float) -> float:
    """
    Ceiling-rank percentile.

    Sorts ascending and picks index ``ceil(n * p / 100) - 1`` clamped to
    ``[0, n - 1]``. An empty sample returns 0. No interpolation: the result
    is always one of the samples.
    """
    values = np.sort(np.asarray([v for v in samples if not pd.isna(v)], dtype=float))
    n = len(values)
    if n == 0:
        return 0.0
    idx = math.ceil(n * p / 100) - 1
    idx = min(max(idx, 0), n - 1)
    return float(values[idx])


def median(samples) -> float:
    return percentile(samples, 50)


def durations_to_event(assigned: pd.DataFrame, event: str = Stage.CONTRATO.value) -> pd.DataFrame:
    """
    Days from acquisition to the first ``event`` for every lead that reached it.

    Parameters
    ----------
    assigned : events frame from ``assign_cohorts`` (needs cohort,
        acquired_at, timestamp, stage, lead_id)
    event : target stage

    Returns
    -------
    DataFrame with lead_id, cohort, days
    """
    hits = assigned[assigned["stage"] == Stage(event).value]
    if hits.empty:
        return pd.DataFrame(columns=["lead_id", "cohort", "days"])

    days = (hits["timestamp"] - hits["acquired_at"]).dt.total_seconds() / 86400.0
    return pd.DataFrame({
        "lead_id": hits["lead_id"].values,
        "cohort": hits["cohort"].values,
        "days": days.values,
    })


def time_to_event_columns(percentiles=(50, 90)):
    return ["cohort", "event", "count"] + [f"p{int(p)}" for p in percentiles] + ["mean"]


def time_to_event(
    assigned: pd.DataFrame,
    event: str = Stage.CONTRATO.value,
    percentiles=(50, 90),
) -> pd.DataFrame:
    """
    Per-cohort time-to-event distribution.

    Returns
    -------
    DataFrame with columns:
        cohort, event, count, p50, p90, mean  (one pNN column per requested
        percentile; durations in days)
    """
    event = Stage(event).value
    cols = time_to_event_columns(percentiles)

    durations = durations_to_event(assigned, event)
    if durations.empty:
        return pd.DataFrame(columns=cols)

    rows = []
    for cohort, grp in durations.groupby("cohort", sort=True):
        samples = grp["days"].tolist()
        row = {"cohort": cohort, "event": event, "count": len(samples)}
        for p in percentiles:
            row[f"p{int(p)}"] = percentile(samples, p)
        row["mean"] = float(np.mean(samples))
        rows.append(row)

    return pd.DataFrame(rows, columns=cols)
