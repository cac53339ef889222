"""
Cumulative retention curves: share of a cohort that reached the target
stage by each relative month.
"""
import logging

import pandas as pd

from .config import Stage
from .errors import DataError
from .matrix import observed_heatmap

logger = logging.getLogger(__name__)

RETENTION_COLUMNS = ["cohort", "month_rel", "pct_cum", "count"]


def retention_curves(
    assignment,
    window: int = 12,
    target_stage: str = Stage.CONTRATO.value,
    as_of=None,
):
    """
    Retention points per cohort for one target stage.

    Every observable month 0..horizon gets a point; months without new
    conversions carry the previous cumulative count.

    Returns
    -------
    (points, errors) where points has columns cohort, month_rel, pct_cum,
    count and errors lists the DataErrors of skipped points.
    """
    cells = observed_heatmap(assignment, window=window, stage=target_stage, as_of=as_of)
    return retention_from_cells(cells, target_stage)


def retention_from_cells(cumulative_cells: pd.DataFrame, stage: str = Stage.CONTRATO.value):
    """
    Retention points from already-cumulative matrix cells (for example an
    upstream heatmap feed). Decreasing points are rejected, not overwritten.
    """
    stage = Stage(stage).value
    cells = cumulative_cells
    if "stage" in cells.columns:
        cells = cells[cells["stage"] == stage]
    points = cells.rename(columns={"pct": "pct_cum"})[RETENTION_COLUMNS]
    return validate_retention(points)


def validate_retention(points: pd.DataFrame):
    """
    Enforce non-decreasing ``pct_cum`` per cohort.

    A point below the last kept point of its cohort is skipped and reported
    as a DataError.
    """
    if points.empty:
        return points.reset_index(drop=True), []

    errors = []
    keep = []
    ordered = points.sort_values(["cohort", "month_rel"], kind="mergesort")
    for cohort, grp in ordered.groupby("cohort", sort=False):
        last = None
        for idx, row in grp.iterrows():
            if last is not None and (row["pct_cum"] < last["pct_cum"] or row["count"] < last["count"]):
                err = DataError(
                    "retention percentage decreased",
                    cohort=cohort, month_rel=int(row["month_rel"]),
                )
                logger.warning(
                    "Skipping retention point %s m%d: %.1f%% < %.1f%%",
                    cohort, int(row["month_rel"]), row["pct_cum"], last["pct_cum"],
                )
                errors.append(err)
                continue
            keep.append(idx)
            last = row

    return ordered.loc[keep].reset_index(drop=True), errors
