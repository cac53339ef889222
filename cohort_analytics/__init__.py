"""
Cohort & Conversion Analytics - Core Modules
"""
from .config import AnalyticsConfig, Stage, Channel, AttributionModel, SignificanceMethod
from .errors import AnalyticsError, ValidationError, DataError
from .filters import CohortFilters, validate_filters, apply_filters, cohort_range
from .cohorts import assign_cohorts, cohort_key, relative_month, drilldown
from .matrix import build_stage_matrix, to_cumulative, heatmap_cells, heatmap_grid, observed_heatmap
from .retention import retention_curves, retention_from_cells
from .survival import survival_curves
from .percentiles import percentile, median, time_to_event
from .attribution import attribute_touches, attribution_table
from .ab_testing import ABTestVariant, ABTestResult, evaluate_ab_test
from .kpis import KpiSnapshot, calc_cohort_kpis, variation, compare_snapshots
from .summary import build_cohort_summary
from .funnel import stage_rates, funnel_overview
from .normalization import StageEvent, normalize_leads, normalize_events, normalize_touches
from .data_loader import DataSource, FrameDataSource, FileDataSource
from .engine import AnalyticsResult, AnalyticsEngine, compute

__all__ = [
    'AnalyticsConfig', 'Stage', 'Channel', 'AttributionModel', 'SignificanceMethod',
    'AnalyticsError', 'ValidationError', 'DataError',
    'CohortFilters', 'validate_filters', 'apply_filters', 'cohort_range',
    'assign_cohorts', 'cohort_key', 'relative_month', 'drilldown',
    'build_stage_matrix', 'to_cumulative', 'heatmap_cells', 'heatmap_grid', 'observed_heatmap',
    'retention_curves', 'retention_from_cells',
    'survival_curves',
    'percentile', 'median', 'time_to_event',
    'attribute_touches', 'attribution_table',
    'ABTestVariant', 'ABTestResult', 'evaluate_ab_test',
    'KpiSnapshot', 'calc_cohort_kpis', 'variation', 'compare_snapshots',
    'build_cohort_summary',
    'stage_rates', 'funnel_overview',
    'StageEvent', 'normalize_leads', 'normalize_events', 'normalize_touches',
    'DataSource', 'FrameDataSource', 'FileDataSource',
    'AnalyticsResult', 'AnalyticsEngine', 'compute',
]
