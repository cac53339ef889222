"""
Cohort x relative-month x stage matrix (heatmap and stage progression)
"""
import pandas as pd
import numpy as np

from .cohorts import observed_months
from .config import MatrixMode, STAGE_ORDER, Stage
from .utils import percent_series

MATRIX_COLUMNS = ["cohort", "month_rel", "stage", "count", "pct", "total_size"]


def _empty_matrix() -> pd.DataFrame:
    return pd.DataFrame(columns=MATRIX_COLUMNS)


def build_stage_matrix(assignment, window: int = 12, mode: str = "per_month", stages=None) -> pd.DataFrame:
    """
    Count leads per (cohort, month_rel, stage).

    Parameters
    ----------
    assignment : CohortAssignment
    window : highest relative month kept (inclusive); later events are ignored
    mode : 'per_month' (leads reaching the stage in that month) or
        'cumulative' (running sum over month_rel per cohort x stage)
    stages : optional subset of stages

    Returns
    -------
    DataFrame with columns:
        cohort, month_rel, stage, count, pct, total_size
    Only combinations with at least one lead are present; an absent row
    means "no data", distinct from a zero.
    """
    mode = MatrixMode(mode)
    ev = assignment.events
    ev = ev[(ev["month_rel"] >= 0) & (ev["month_rel"] <= int(window))]
    if stages is not None:
        ev = ev[ev["stage"].isin([Stage(s).value for s in stages])]

    if ev.empty:
        return _empty_matrix()

    cells = (
        ev.groupby(["cohort", "month_rel", "stage"])["lead_id"]
        .nunique()
        .reset_index(name="count")
    )
    cells["total_size"] = cells["cohort"].map(assignment.sizes).fillna(0).astype(int)

    # funnel order inside each month
    cells["_order"] = cells["stage"].map({s: i for i, s in enumerate(STAGE_ORDER)})
    cells = cells.sort_values(["cohort", "month_rel", "_order"]).drop(columns="_order")

    if mode is MatrixMode.CUMULATIVE:
        cells = to_cumulative(cells)
    else:
        cells["pct"] = percent_series(cells["count"], cells["total_size"])

    return cells[MATRIX_COLUMNS].reset_index(drop=True)


def to_cumulative(cells: pd.DataFrame) -> pd.DataFrame:
    """Running sum of per-month counts over month_rel for each cohort x stage."""
    if cells.empty:
        return _empty_matrix()

    out = cells.sort_values(["cohort", "stage", "month_rel"], kind="mergesort").copy()
    out["count"] = out.groupby(["cohort", "stage"])["count"].cumsum()
    out["pct"] = percent_series(out["count"], out["total_size"])
    return out.sort_values(["cohort", "month_rel"], kind="mergesort")[MATRIX_COLUMNS]


def heatmap_cells(matrix: pd.DataFrame, stage: str = Stage.CONTRATO.value) -> pd.DataFrame:
    """Matrix rows for a single stage."""
    stage = Stage(stage).value
    return matrix[matrix["stage"] == stage].reset_index(drop=True)


def observed_heatmap(assignment, window: int = 12, stage: str = Stage.CONTRATO.value, as_of=None) -> pd.DataFrame:
    """
    Dense cumulative cells of one stage for every observed month.

    Each cohort gets a row for months 0..horizon (see ``observed_months``),
    so an observed month without conversions is a real 0 and carries the
    previous cumulative count. Months past the horizon stay absent.
    """
    stage = Stage(stage).value
    per_month = build_stage_matrix(assignment, window=window, stages=[stage])
    horizons = observed_months(assignment, window, as_of=as_of)

    frames = []
    for cohort, size in assignment.sizes.items():
        counts = per_month[per_month["cohort"] == cohort].set_index("month_rel")["count"]
        months = list(range(int(horizons.get(cohort, 0)) + 1))
        cum = counts.reindex(months, fill_value=0).cumsum()
        frames.append(pd.DataFrame({
            "cohort": cohort,
            "month_rel": months,
            "stage": stage,
            "count": cum.astype(int).to_numpy(),
            "total_size": int(size),
        }))

    if not frames:
        return _empty_matrix()

    cells = pd.concat(frames, ignore_index=True)
    cells["pct"] = percent_series(cells["count"], cells["total_size"])
    return cells[MATRIX_COLUMNS]


def heatmap_grid(cells: pd.DataFrame, window: int = 12, value: str = "pct", cohorts=None) -> pd.DataFrame:
    """
    Pivot single-stage cells into a cohort x month grid.

    Columns are months 0..window; missing combinations are NaN ("no data")
    while a true zero stays 0. ``cohorts`` forces the row index, so cohorts
    with no events at all show up as empty rows.
    """
    months = list(range(int(window) + 1))
    if cells.empty:
        index = sorted(cohorts) if cohorts is not None else []
        return pd.DataFrame(np.nan, index=pd.Index(index, name="cohort"), columns=months)

    grid = cells.pivot_table(index="cohort", columns="month_rel", values=value, aggfunc="first")
    if cohorts is not None:
        grid = grid.reindex(sorted(cohorts))
    grid = grid.reindex(columns=months)
    grid.columns.name = None
    return grid
