"""
Pure orchestration: filters + records -> AnalyticsResult
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Union

import pandas as pd

from .attribution import ATTRIBUTION_COLUMNS, attribution_table
from .cohorts import CohortAssignment, assign_cohorts
from .config import AnalyticsConfig
from .errors import DataError
from .filters import CohortFilters, apply_filters, validate_filters
from .funnel import FUNNEL_COLUMNS, funnel_overview
from .kpis import KpiSnapshot, calc_cohort_kpis
from .matrix import MATRIX_COLUMNS, build_stage_matrix, observed_heatmap
from .normalization import ensure_lead_events, normalize_events, normalize_leads, normalize_touches
from .percentiles import time_to_event, time_to_event_columns
from .retention import RETENTION_COLUMNS, retention_curves
from .summary import SUMMARY_COLUMNS, build_cohort_summary
from .survival import SURVIVAL_COLUMNS, survival_curves

logger = logging.getLogger(__name__)


@dataclass
class AnalyticsResult:
    config: AnalyticsConfig
    cohorts: pd.DataFrame               # summary rows
    heatmap: pd.DataFrame               # cumulative cells, target stage
    stage_matrix: pd.DataFrame          # per-month cells, every stage
    retention: pd.DataFrame
    survival: pd.DataFrame
    time_to_event: pd.DataFrame
    funnel: pd.DataFrame
    attribution: pd.DataFrame
    kpis: KpiSnapshot
    skipped: int = 0
    errors: List[DataError] = field(default_factory=list)
    metric_errors: Dict[str, str] = field(default_factory=dict)
    assignment: Optional[CohortAssignment] = field(default=None, repr=False)

    def tables(self) -> Dict[str, pd.DataFrame]:
        """Every tabular output keyed by name."""
        return {
            "cohorts": self.cohorts,
            "heatmap": self.heatmap,
            "stage_matrix": self.stage_matrix,
            "retention": self.retention,
            "survival": self.survival,
            "time_to_event": self.time_to_event,
            "funnel": self.funnel,
            "attribution": self.attribution,
        }


def _attribution(touches, assignment, config, spend):
    tnorm = normalize_touches(touches)
    tnorm = tnorm[tnorm["lead_id"].isin(set(assignment.leads["lead_id"]))]
    return attribution_table(
        tnorm,
        model=config.attribution_model.value,
        dimension=config.attribution_dimension,
        spend=spend,
    )


def compute(
    leads: pd.DataFrame,
    events: pd.DataFrame,
    filters: Optional[CohortFilters] = None,
    *,
    touches: Optional[pd.DataFrame] = None,
    spend: Optional[Dict[str, float]] = None,
    config: Optional[AnalyticsConfig] = None,
    previous: Optional[Union[KpiSnapshot, pd.DataFrame]] = None,
) -> AnalyticsResult:
    """
    Run the whole cohort pipeline for one filter set.

    Parameters
    ----------
    leads : lead frame (lead_id, acquired_at, ...)
    events : long stage events (lead_id, stage, timestamp[, channel])
    filters : validated CohortFilters; validated again here when given
    touches : optional attribution touches (lead_id, channel, timestamp, converted)
    spend : optional spend per attribution key for CPL / CPA
    config : AnalyticsConfig; derived from filters when omitted
    previous : prior-period KpiSnapshot, or prior-period summary rows

    Returns
    -------
    AnalyticsResult. Records that break an invariant are skipped and listed
    in ``errors``; a failing optional metric is reported in
    ``metric_errors`` without affecting the rest.
    """
    if filters is not None:
        validate_filters(filters)
    config = config or AnalyticsConfig.from_filters(filters)
    target = config.target_stage.value

    logger.debug("compute: filters=%s config=%s", filters.to_dict() if filters else {}, config)

    all_leads = normalize_leads(leads)
    leads = apply_filters(all_leads, filters)
    events = normalize_events(events)
    # events of leads the filter excluded are out of scope, not unknown
    excluded = set(all_leads["lead_id"]) - set(leads["lead_id"])
    events = ensure_lead_events(leads, events[~events["lead_id"].isin(excluded)])

    assignment = assign_cohorts(leads, events)
    if filters is not None and filters.min_size is not None:
        assignment = assignment.restrict(assignment.sizes[assignment.sizes >= filters.min_size].index)

    window = config.window
    metric_errors = {}

    def guarded(name, empty, fn, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except Exception as e:
            logger.exception("Metric %r failed; other metrics unaffected", name)
            metric_errors[name] = str(e)
            return empty

    stage_matrix = guarded(
        "stage_matrix", pd.DataFrame(columns=MATRIX_COLUMNS),
        build_stage_matrix, assignment, window=window,
    )
    heatmap = guarded(
        "heatmap", pd.DataFrame(columns=MATRIX_COLUMNS),
        observed_heatmap, assignment, window=window, stage=target, as_of=config.as_of,
    )
    retention, retention_errors = guarded(
        "retention", (pd.DataFrame(columns=RETENTION_COLUMNS), []),
        retention_curves, assignment, window=window, target_stage=target, as_of=config.as_of,
    )
    survival = guarded(
        "survival", pd.DataFrame(columns=SURVIVAL_COLUMNS),
        survival_curves, assignment, window=window, target_stage=target, as_of=config.as_of,
    )
    windowed = assignment.events[assignment.events["month_rel"] <= window]
    tte = guarded(
        "time_to_event", pd.DataFrame(columns=time_to_event_columns(config.percentiles)),
        time_to_event, windowed, target, percentiles=config.percentiles,
    )
    cohorts = guarded(
        "cohorts", pd.DataFrame(columns=SUMMARY_COLUMNS),
        build_cohort_summary, assignment, window=window, target_stage=target,
    )
    funnel = guarded("funnel", pd.DataFrame(columns=FUNNEL_COLUMNS), funnel_overview, assignment.events)

    if isinstance(previous, pd.DataFrame):
        previous = guarded("kpis", None, calc_cohort_kpis, previous)
    kpis = guarded("kpis", KpiSnapshot(), calc_cohort_kpis, cohorts, previous=previous)

    attribution = pd.DataFrame(columns=ATTRIBUTION_COLUMNS)
    if touches is not None:
        attribution = guarded(
            "attribution", attribution,
            _attribution, touches, assignment, config, spend,
        )

    errors = list(assignment.errors) + list(retention_errors)
    logger.info(
        "Computed %d cohorts (%d leads), skipped %d records",
        len(assignment.sizes), int(assignment.sizes.sum()), len(errors),
    )

    return AnalyticsResult(
        config=config,
        cohorts=cohorts,
        heatmap=heatmap,
        stage_matrix=stage_matrix,
        retention=retention,
        survival=survival,
        time_to_event=tte,
        funnel=funnel,
        attribution=attribution,
        kpis=kpis,
        skipped=len(errors),
        errors=errors,
        metric_errors=metric_errors,
        assignment=assignment,
    )


class AnalyticsEngine:
    """Pulls records from a DataSource and delegates to ``compute``."""

    def __init__(self, source, config: Optional[AnalyticsConfig] = None):
        self.source = source
        self.config = config

    def run(self, filters: Optional[CohortFilters] = None, previous=None, **overrides) -> AnalyticsResult:
        if self.config is None:
            config = AnalyticsConfig.from_filters(filters, **overrides)
        else:
            config = replace(self.config, **overrides)
        return compute(
            self.source.leads(),
            self.source.events(),
            filters,
            touches=self.source.touches(),
            spend=self.source.spend(),
            config=config,
            previous=previous,
        )
