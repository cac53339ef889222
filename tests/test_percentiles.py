"""
Tests for rank-based percentiles and time-to-event statistics.
"""
import pytest

from cohort_analytics.percentiles import durations_to_event, median, percentile, time_to_event


class TestPercentile:
    """Ceiling-rank selection rule."""

    def test_scenario_median(self):
        assert percentile([41, 45, 52], 50) == 45

    def test_scenario_p90(self):
        assert percentile([41, 45, 52], 90) == 52

    def test_unsorted_input(self):
        assert percentile([52, 41, 45], 50) == 45

    def test_empty_sample_is_zero(self):
        assert percentile([], 50) == 0
        assert median([]) == 0

    def test_p0_clamps_to_first(self):
        assert percentile([3, 1, 2], 0) == 1

    def test_p100_is_max(self):
        assert percentile([3, 1, 2], 100) == 3

    def test_even_sample_takes_lower_middle(self):
        # ceil(4 * 0.5) - 1 = 1
        assert percentile([10, 20, 30, 40], 50) == 20

    def test_result_is_a_sample_value(self):
        samples = [1.5, 7.25, 3.0, 9.0, 4.4]
        for p in (10, 25, 50, 75, 90):
            assert percentile(samples, p) in samples

    @pytest.mark.parametrize("samples", [[5], [1, 2], [9, 3, 7, 1], [2.5, 2.5, 8.0, 1.0, 4.0]])
    def test_median_matches_p50(self, samples):
        assert percentile(samples, 50) == median(samples)

    def test_nan_values_ignored(self):
        assert percentile([float("nan"), 4, 2], 50) == 2


class TestTimeToEvent:
    """Per-cohort durations from acquisition to a stage."""

    def test_durations_in_days(self, assignment):
        d = durations_to_event(assignment.events, "CONTRATO").set_index("lead_id")["days"]
        assert d["L1"] == pytest.approx(46)
        assert d["L2"] == pytest.approx(60)
        assert d["L5"] == pytest.approx(25)

    def test_per_cohort_percentiles(self, assignment):
        tte = time_to_event(assignment.events, "CONTRATO").set_index("cohort")
        assert tte.loc["2024-01", "count"] == 2
        assert tte.loc["2024-01", "p50"] == pytest.approx(46)
        assert tte.loc["2024-01", "p90"] == pytest.approx(60)
        assert tte.loc["2024-01", "mean"] == pytest.approx(53)
        assert tte.loc["2024-02", "p50"] == pytest.approx(25)

    def test_custom_percentiles_columns(self, assignment):
        tte = time_to_event(assignment.events, "VISITA", percentiles=(25, 75))
        assert list(tte.columns) == ["cohort", "event", "count", "p25", "p75", "mean"]

    def test_no_hits_gives_empty_frame(self, assignment):
        tte = time_to_event(assignment.events, "RESERVA")
        assert tte.empty
