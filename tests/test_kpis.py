"""
Tests for headline KPIs, cohort summary rows and the funnel table.
"""
import pandas as pd
import pytest

from cohort_analytics.funnel import funnel_overview, stage_rates
from cohort_analytics.kpis import KpiSnapshot, calc_cohort_kpis, compare_snapshots, variation
from cohort_analytics.normalization import ensure_lead_events
from cohort_analytics.summary import SUMMARY_COLUMNS, build_cohort_summary, top_channels


def summary_rows(*rows):
    return pd.DataFrame(rows, columns=["cohort", "size", "contract_pct_cum", "time_to_contract_p50"])


class TestVariation:

    def test_growth(self):
        assert variation(120, 100) == pytest.approx(20.0)

    def test_zero_previous(self):
        assert variation(5, 0) == 100.0
        assert variation(0, 0) == 0.0

    def test_lower_is_better(self):
        assert variation(40, 50, lower_is_better=True) == pytest.approx(20.0)
        assert variation(80, 100, lower_is_better=True) == pytest.approx(20.0)


class TestCalcCohortKpis:
    """Rolling summary rows into a snapshot."""

    def test_single_cohort(self):
        kpis = calc_cohort_kpis(summary_rows(("2024-03", 1250, 24.5, 41.0)))
        assert kpis.total_leads == 1250
        assert kpis.total_contracts == 306
        assert kpis.avg_contract_pct == pytest.approx(24.48)
        assert kpis.median_ttc == 41.0
        assert kpis.best_cohort == kpis.worst_cohort == "2024-03"

    def test_volume_weighted(self):
        kpis = calc_cohort_kpis(summary_rows(
            ("2024-01", 100, 10.0, 30.0),
            ("2024-02", 300, 30.0, 50.0),
            ("2024-03", 100, 20.0, None),
        ))
        assert kpis.total_contracts == 10 + 90 + 20
        assert kpis.avg_contract_pct == pytest.approx(24.0)
        assert kpis.avg_cohort_size == pytest.approx(500 / 3)
        assert kpis.median_ttc == 30.0
        assert kpis.best_cohort == "2024-02"
        assert kpis.worst_cohort == "2024-01"

    def test_ties_keep_input_order(self):
        kpis = calc_cohort_kpis(summary_rows(
            ("2024-01", 10, 20.0, 10.0),
            ("2024-02", 10, 20.0, 10.0),
        ))
        assert kpis.best_cohort == "2024-01"
        assert kpis.worst_cohort == "2024-02"

    def test_empty(self):
        kpis = calc_cohort_kpis(summary_rows())
        assert kpis == KpiSnapshot()
        assert kpis.best_cohort is None

    def test_delta(self):
        previous = KpiSnapshot(avg_contract_pct=20.0, median_ttc=50.0, total_leads=1000, total_contracts=200)
        kpis = calc_cohort_kpis(summary_rows(("2024-03", 1250, 24.5, 41.0)), previous=previous)
        assert kpis.delta.total_leads == pytest.approx(25.0)
        assert kpis.delta.median_ttc == pytest.approx(18.0)
        assert kpis.delta == compare_snapshots(kpis, previous)


class TestCohortSummary:
    """One row per cohort from an assignment."""

    def test_columns(self, assignment):
        assert list(build_cohort_summary(assignment).columns) == SUMMARY_COLUMNS

    def test_values(self, assignment):
        s = build_cohort_summary(assignment).set_index("cohort")
        jan = s.loc["2024-01"]
        assert jan["size"] == 4
        assert jan["visit_pct_m1"] == 75.0
        assert jan["offer_pct_m1"] == 25.0
        assert [jan["contract_pct_m1"], jan["contract_pct_m2"], jan["contract_pct_m3"]] == [25.0, 50.0, 50.0]
        assert jan["contract_pct_cum"] == 50.0
        assert jan["time_to_contract_p50"] == pytest.approx(46)
        assert jan["time_to_contract_p90"] == pytest.approx(60)
        assert jan["top_channel"] == "web"

        feb = s.loc["2024-02"]
        assert feb["visit_pct_m1"] == 50.0
        assert feb["contract_pct_cum"] == 50.0
        assert feb["time_to_contract_p50"] == pytest.approx(25)
        assert feb["top_channel"] == "portal"

    def test_no_conversions_gives_none(self, assignment):
        s = build_cohort_summary(assignment, target_stage="RESERVA")
        assert s["time_to_contract_p50"].isna().all()
        assert (s["contract_pct_cum"] == 0.0).all()

    def test_min_size(self, assignment):
        s = build_cohort_summary(assignment, min_size=3)
        assert s["cohort"].tolist() == ["2024-01"]

    def test_top_channel_tie_is_alphabetical(self):
        leads = pd.DataFrame({"cohort": ["2024-01"] * 2, "channel": ["web", "ads"]})
        assert top_channels(leads)["2024-01"] == "ads"

    def test_kpis_from_summary(self, assignment):
        kpis = calc_cohort_kpis(build_cohort_summary(assignment))
        assert kpis.total_leads == 6
        assert kpis.total_contracts == 3
        assert kpis.avg_contract_pct == pytest.approx(50.0)
        assert kpis.avg_cohort_size == pytest.approx(3.0)
        assert kpis.median_ttc == pytest.approx(25)
        assert kpis.best_cohort == "2024-01"
        assert kpis.worst_cohort == "2024-02"


class TestFunnel:
    """Stage counts and conversion rates."""

    def test_stage_rates(self):
        stage, cumulative = stage_rates([100, 50, 0, 0])
        assert stage == [100.0, 50.0, 0.0, 0.0]
        assert cumulative == [100.0, 50.0, 0.0, 0.0]

    def test_overview(self, leads, events):
        funnel = funnel_overview(ensure_lead_events(leads, events)).set_index("stage")
        assert funnel["count"].tolist() == [7, 0, 5, 1, 0, 3]
        assert funnel.loc["VISITA", "cumulative_rate"] == pytest.approx(5 / 7 * 100)
        assert funnel.loc["VISITA", "stage_rate"] == 0.0
        assert funnel.loc["LEAD", "top_channels"][:2] == [("portal", 3), ("web", 3)]

    def test_top_n(self, leads, events):
        funnel = funnel_overview(ensure_lead_events(leads, events), top_n=1).set_index("stage")
        assert len(funnel.loc["LEAD", "top_channels"]) == 1
        assert funnel.loc["OFERTA", "top_channels"] == []
