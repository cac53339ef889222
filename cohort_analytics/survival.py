"""
Survival (not yet converted) curves per cohort.

A declining-population model: every lead is observed until it converts or
the window ends, so there is no censoring term.
"""
import pandas as pd

from .cohorts import observed_months
from .config import Stage
from .matrix import build_stage_matrix
from .utils import percent

SURVIVAL_COLUMNS = ["cohort", "month_rel", "survival", "at_risk", "events"]


def survival_curves(
    assignment,
    window: int = 12,
    target_stage: str = Stage.CONTRATO.value,
    as_of=None,
) -> pd.DataFrame:
    """
    Survival points per cohort.

    at_risk(0) = cohort size
    events(m)  = leads first reaching the target stage in month m
    at_risk(m+1) = at_risk(m) - events(m)
    survival(m)  = 100 * (at_risk(m) - events(m)) / at_risk(0)

    Returns
    -------
    DataFrame with columns cohort, month_rel, survival, at_risk, events
    """
    per_month = build_stage_matrix(assignment, window=window, stages=[target_stage])
    horizons = observed_months(assignment, window, as_of=as_of)

    rows = []
    for cohort, size in assignment.sizes.items():
        counts = per_month.loc[per_month["cohort"] == cohort].set_index("month_rel")["count"]
        at_risk = int(size)
        for month_rel in range(int(horizons.get(cohort, 0)) + 1):
            events = int(counts.get(month_rel, 0))
            rows.append({
                "cohort": cohort,
                "month_rel": month_rel,
                "survival": percent(at_risk - events, size),
                "at_risk": at_risk,
                "events": events,
            })
            at_risk -= events

    return pd.DataFrame(rows, columns=SURVIVAL_COLUMNS)


def median_survival_month(points: pd.DataFrame) -> pd.Series:
    """
    First relative month at which survival drops to 50% or below, per
    cohort; None when the curve never gets there inside the window.
    """
    out = {}
    for cohort, grp in points.groupby("cohort", sort=True):
        below = grp[grp["survival"] <= 50.0]
        out[cohort] = int(below["month_rel"].min()) if not below.empty else None
    return pd.Series(out, dtype=object)
