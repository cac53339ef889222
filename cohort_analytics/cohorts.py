"""
Cohort assignment: acquisition-month buckets and relative months
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List

import pandas as pd

from .config import STAGE_ORDER, Stage
from .errors import DataError

logger = logging.getLogger(__name__)

ASSIGNED_COLUMNS = ["lead_id", "cohort", "acquired_at", "stage", "timestamp", "month_rel", "channel"]


def cohort_key(date) -> str:
    """Acquisition month key 'YYYY-MM'."""
    return pd.Timestamp(date).strftime("%Y-%m")


def relative_month(cohort: str, date) -> int:
    """Whole calendar months between a cohort month and a date's month."""
    cohort_year, cohort_month = (int(x) for x in cohort.split("-"))
    ts = pd.Timestamp(date)
    return (ts.year - cohort_year) * 12 + (ts.month - cohort_month)


@dataclass
class CohortAssignment:
    """Events tagged with cohort and relative month, plus what was dropped."""
    events: pd.DataFrame
    sizes: pd.Series                      # cohort -> lead count
    leads: pd.DataFrame                   # retained leads with a cohort column
    skipped: int = 0
    errors: List[DataError] = field(default_factory=list)

    @property
    def cohorts(self) -> List[str]:
        return sorted(self.sizes.index.tolist())

    def restrict(self, cohorts) -> "CohortAssignment":
        """Same assignment limited to a subset of cohorts."""
        keep = set(cohorts)
        return CohortAssignment(
            events=self.events[self.events["cohort"].isin(keep)].reset_index(drop=True),
            sizes=self.sizes[self.sizes.index.isin(keep)],
            leads=self.leads[self.leads["cohort"].isin(keep)].reset_index(drop=True),
            skipped=self.skipped,
            errors=list(self.errors),
        )


def _record(errors: List[DataError], err: DataError):
    logger.warning("Skipping record: %s (lead=%s)", err.reason, err.lead_id)
    errors.append(err)


def assign_cohorts(leads: pd.DataFrame, events: pd.DataFrame) -> CohortAssignment:
    """
    Bucket leads into acquisition-month cohorts and tag each stage event
    with its relative month.

    Parameters
    ----------
    leads : normalised lead frame (lead_id, acquired_at, ...)
    events : normalised long event frame (lead_id, stage, timestamp, channel)

    Returns
    -------
    CohortAssignment. Leads with an unparseable acquisition date or with an
    event before their acquisition are excluded entirely; events with an
    unknown lead or an unparseable timestamp are dropped. Each exclusion is
    a DataError in ``errors`` and adds one to ``skipped``.
    """
    errors: List[DataError] = []

    leads = leads.copy()
    leads["acquired_at"] = pd.to_datetime(leads["acquired_at"], errors="coerce")
    bad_acq = leads["acquired_at"].isna()
    for lead_id in leads.loc[bad_acq, "lead_id"]:
        _record(errors, DataError("unparseable acquisition date", lead_id=lead_id))
    leads = leads[~bad_acq].copy()
    leads["cohort"] = leads["acquired_at"].dt.strftime("%Y-%m")

    ev = events.copy()
    ev["timestamp"] = pd.to_datetime(ev["timestamp"], errors="coerce")
    known = ev["lead_id"].isin(set(leads["lead_id"]))
    for lead_id in ev.loc[~known, "lead_id"]:
        _record(errors, DataError("event for unknown lead", lead_id=lead_id))
    ev = ev[known]

    bad_ts = ev["timestamp"].isna()
    for lead_id in ev.loc[bad_ts, "lead_id"]:
        _record(errors, DataError("unparseable event timestamp", lead_id=lead_id))
    ev = ev[~bad_ts]

    ev = ev.drop(columns=[c for c in ("cohort", "acquired_at") if c in ev.columns])
    ev = ev.merge(leads[["lead_id", "cohort", "acquired_at"]], on="lead_id", how="left")

    ev["month_rel"] = (
        (ev["timestamp"].dt.year - ev["acquired_at"].dt.year) * 12
        + (ev["timestamp"].dt.month - ev["acquired_at"].dt.month)
    ).astype(int)

    # predates acquisition: negative relative month, or earlier day in the same month
    predates = (ev["month_rel"] < 0) | (ev["timestamp"].dt.normalize() < ev["acquired_at"].dt.normalize())
    bad_leads = ev.loc[predates, ["lead_id", "cohort", "month_rel"]].drop_duplicates("lead_id")
    for row in bad_leads.itertuples(index=False):
        _record(errors, DataError(
            "event predates acquisition",
            lead_id=row.lead_id, cohort=row.cohort, month_rel=int(row.month_rel),
        ))
    bad_ids = set(bad_leads["lead_id"])
    ev = ev[~ev["lead_id"].isin(bad_ids)]
    leads = leads[~leads["lead_id"].isin(bad_ids)]

    # first occurrence of each stage per lead
    ev = (
        ev.sort_values(["lead_id", "stage", "timestamp"], kind="mergesort")
        .drop_duplicates(["lead_id", "stage"], keep="first")
    )
    if "channel" not in ev.columns:
        ev["channel"] = pd.NA
    ev = ev[ASSIGNED_COLUMNS].sort_values(["cohort", "month_rel", "lead_id"], kind="mergesort")

    sizes = leads.groupby("cohort").size().sort_index()

    if errors:
        logger.info("Cohort assignment skipped %d records", len(errors))

    return CohortAssignment(
        events=ev.reset_index(drop=True),
        sizes=sizes,
        leads=leads.reset_index(drop=True),
        skipped=len(errors),
        errors=errors,
    )


def observed_months(assignment: CohortAssignment, window: int, as_of=None) -> pd.Series:
    """
    Last relative month observable for each cohort: the month of ``as_of``
    (latest event or acquisition in the data when omitted) clipped to
    ``[0, window]``.
    """
    if assignment.sizes.empty:
        return pd.Series(dtype=int)

    if as_of is None:
        candidates = [assignment.leads["acquired_at"].max()]
        if not assignment.events.empty:
            candidates.append(assignment.events["timestamp"].max())
        as_of = max(candidates)

    horizon = {c: min(max(relative_month(c, as_of), 0), int(window)) for c in assignment.sizes.index}
    return pd.Series(horizon, dtype=int).sort_index()


def drilldown(
    assignment: CohortAssignment,
    cohort: str,
    month_rel: int,
    event: str = Stage.CONTRATO.value,
) -> pd.DataFrame:
    """
    Leads of ``cohort`` whose first ``event`` fell in ``month_rel``.

    Returns the lead rows with one date column per funnel stage the lead
    reached (wide stage dates) and ``current_stage``, the furthest stage.
    """
    event = Stage(event).value
    ev = assignment.events
    hit = ev[(ev["cohort"] == cohort) & (ev["month_rel"] == int(month_rel)) & (ev["stage"] == event)]
    if hit.empty:
        return assignment.leads.iloc[0:0].copy()

    ids = hit["lead_id"].unique()
    stage_dates = (
        ev[ev["lead_id"].isin(ids)]
        .pivot(index="lead_id", columns="stage", values="timestamp")
        .reindex(columns=[s for s in STAGE_ORDER if s in set(ev["stage"])])
    )
    current = stage_dates.notna().iloc[:, ::-1].idxmax(axis=1).rename("current_stage")

    out = (
        assignment.leads[assignment.leads["lead_id"].isin(ids)]
        .merge(stage_dates, left_on="lead_id", right_index=True, how="left")
        .merge(current, left_on="lead_id", right_index=True, how="left")
    )
    return out.reset_index(drop=True)
