"""
Tests for cohort assignment, relative months and drilldown.
"""
import pandas as pd

from cohort_analytics.cohorts import (
    assign_cohorts,
    cohort_key,
    drilldown,
    observed_months,
    relative_month,
)
from cohort_analytics.errors import DataError
from cohort_analytics.normalization import normalize_events, normalize_leads


class TestCohortKeys:
    """Month keys and relative months."""

    def test_cohort_key(self):
        assert cohort_key("2024-03-17") == "2024-03"

    def test_relative_month_same_month(self):
        assert relative_month("2024-01", "2024-01-31") == 0

    def test_relative_month_across_year(self):
        assert relative_month("2023-11", "2024-02-01") == 3

    def test_relative_month_negative(self):
        assert relative_month("2024-03", "2024-02-01") == -1


class TestAssignCohorts:
    """Bucketing leads and tagging events."""

    def test_sizes(self, assignment):
        assert assignment.sizes.to_dict() == {"2024-01": 4, "2024-02": 2}

    def test_month_rel_tagging(self, assignment):
        ev = assignment.events.set_index(["lead_id", "stage"])["month_rel"]
        assert ev[("L1", "VISITA")] == 0
        assert ev[("L1", "CONTRATO")] == 1
        assert ev[("L2", "CONTRATO")] == 2
        assert ev[("L6", "VISITA")] == 1

    def test_predating_lead_is_skipped(self, assignment):
        assert assignment.skipped == 1
        assert "L7" not in set(assignment.leads["lead_id"])
        assert "L7" not in set(assignment.events["lead_id"])
        err = assignment.errors[0]
        assert isinstance(err, DataError)
        assert err.lead_id == "L7"
        assert err.month_rel == -1

    def test_skipped_lead_not_in_any_cohort_size(self, assignment):
        assert "2024-03" not in assignment.sizes.index

    def test_duplicate_stage_keeps_earliest(self, leads):
        events = normalize_events(pd.DataFrame([
            {"lead_id": "L1", "stage": "VISITA", "timestamp": "2024-03-02"},
            {"lead_id": "L1", "stage": "VISITA", "timestamp": "2024-01-20"},
        ]))
        result = assign_cohorts(leads, events)
        row = result.events[result.events["lead_id"] == "L1"]
        assert len(row) == 1
        assert row["month_rel"].iloc[0] == 0

    def test_unknown_lead_and_bad_timestamp(self, leads):
        events = normalize_events(pd.DataFrame([
            {"lead_id": "ZZ", "stage": "VISITA", "timestamp": "2024-01-20"},
            {"lead_id": "L1", "stage": "VISITA", "timestamp": "not a date"},
        ]))
        result = assign_cohorts(leads, events)
        reasons = sorted(e.reason for e in result.errors)
        assert reasons == ["event for unknown lead", "unparseable event timestamp"]
        assert result.skipped == 2
        # the lead itself still counts toward its cohort
        assert result.sizes["2024-01"] == 4

    def test_same_month_earlier_day_predates(self):
        leads = normalize_leads(pd.DataFrame([{"lead_id": "A", "acquired_at": "2024-05-20"}]))
        events = normalize_events(pd.DataFrame([{"lead_id": "A", "stage": "VISITA", "timestamp": "2024-05-02"}]))
        result = assign_cohorts(leads, events)
        assert result.skipped == 1
        assert result.sizes.empty

    def test_restrict(self, assignment):
        sub = assignment.restrict(["2024-02"])
        assert sub.cohorts == ["2024-02"]
        assert set(sub.events["cohort"]) == {"2024-02"}


class TestObservedMonths:
    """Observation horizon per cohort."""

    def test_default_as_of_is_latest_event(self, assignment):
        assert observed_months(assignment, window=12).to_dict() == {"2024-01": 2, "2024-02": 1}

    def test_window_caps_horizon(self, assignment):
        assert observed_months(assignment, window=1).to_dict() == {"2024-01": 1, "2024-02": 1}

    def test_explicit_as_of(self, assignment):
        h = observed_months(assignment, window=12, as_of=pd.Timestamp("2024-06-30"))
        assert h.to_dict() == {"2024-01": 5, "2024-02": 4}


class TestDrilldown:
    """Leads behind a heatmap cell."""

    def test_contract_cell(self, assignment):
        out = drilldown(assignment, "2024-01", 1, "CONTRATO")
        assert out["lead_id"].tolist() == ["L1"]
        assert out["current_stage"].iloc[0] == "CONTRATO"
        assert out["OFERTA"].iloc[0] == pd.Timestamp("2024-02-05")

    def test_empty_cell(self, assignment):
        out = drilldown(assignment, "2024-02", 3, "CONTRATO")
        assert out.empty
