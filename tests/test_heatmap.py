"""Tests for IDW estimation, intensity normalization and the heat-field grid."""

import pytest

from heatmap import (
    build_heat_field,
    contrast_for,
    estimate_value_at,
    filter_samples,
    get_metric_value,
    metric_range,
    normalize_intensity,
)
from models import MetricConfig, Sample, ValueRange


class TestEstimate:

    def test_coincident_single_sample(self):
        samples = [Sample(x=50, y=50, metrics={"rssi_dbm": -62})]
        assert estimate_value_at((50, 50), samples, "rssi_dbm") == pytest.approx(-62)

    def test_beyond_cutoff_is_none(self, survey_samples):
        assert estimate_value_at((2000, 2000), survey_samples, "rssi_dbm") is None

    def test_cutoff_is_inclusive(self):
        samples = [Sample(x=0, y=0, metrics={"rssi_dbm": -60})]
        assert estimate_value_at((220, 0), samples, "rssi_dbm") == pytest.approx(-60)
        assert estimate_value_at((221, 0), samples, "rssi_dbm") is None
        assert estimate_value_at((100, 0), samples, "rssi_dbm", max_distance=50) is None

    def test_midpoint_is_plain_average(self):
        samples = [
            Sample(x=0, y=0, metrics={"rssi_dbm": -50}),
            Sample(x=100, y=0, metrics={"rssi_dbm": -70}),
        ]
        assert estimate_value_at((50, 0), samples, "rssi_dbm") == pytest.approx(-60)

    def test_nearer_sample_dominates(self):
        samples = [
            Sample(x=0, y=0, metrics={"rssi_dbm": -50}),
            Sample(x=100, y=0, metrics={"rssi_dbm": -70}),
        ]
        # weights 1/10^2 and 1/90^2
        expected = (-50 / 100 + -70 / 8100) / (1 / 100 + 1 / 8100)
        assert estimate_value_at((10, 0), samples, "rssi_dbm") == pytest.approx(expected)

    def test_sub_unit_distance_floored(self):
        samples = [
            Sample(x=0, y=0, metrics={"rssi_dbm": -50}),
            Sample(x=0.5, y=0, metrics={"rssi_dbm": -70}),
        ]
        # both sit within one unit of the query, so both weigh 1
        assert estimate_value_at((0, 0), samples, "rssi_dbm") == pytest.approx(-60)

    def test_samples_without_metric_are_skipped(self):
        samples = [
            Sample(x=0, y=0, metrics={"rssi_dbm": None, "snr_db": 20}),
            Sample(x=10, y=0, metrics={"rssi_dbm": -55}),
        ]
        assert estimate_value_at((0, 0), samples, "rssi_dbm") == pytest.approx(-55)
        assert estimate_value_at((0, 0), samples, "ping_avg_ms") is None

    def test_no_samples(self):
        assert estimate_value_at((0, 0), [], "rssi_dbm") is None

    def test_accepts_raw_records(self):
        samples = [{"x": 5, "y": 5, "rssi": -58}, {"x": "bad"}, None]
        assert estimate_value_at((5, 5), samples, "rssi_dbm") == pytest.approx(-58)

    def test_bad_query_point(self, survey_samples):
        assert estimate_value_at((float("nan"), 0), survey_samples, "rssi_dbm") is None
        assert estimate_value_at(None, survey_samples, "rssi_dbm") is None
        assert estimate_value_at((5,), survey_samples, "rssi_dbm") is None
        assert estimate_value_at((5, 5, 5), survey_samples, "rssi_dbm") is None

    def test_oversized_metric_value_is_ignored(self):
        samples = [Sample(x=0, y=0, metrics={"rssi_dbm": 10 ** 400})]
        assert samples[0].metrics["rssi_dbm"] is None
        assert estimate_value_at((0, 0), samples, "rssi_dbm") is None


class TestNormalize:

    def test_anchors_higher_is_better(self, rssi_metric):
        assert normalize_intensity(-50, rssi_metric) == pytest.approx(1.0)
        assert normalize_intensity(-80, rssi_metric) == pytest.approx(0.0)

    def test_anchors_lower_is_better(self, latency_metric):
        assert normalize_intensity(2, latency_metric) == pytest.approx(1.0)
        assert normalize_intensity(30, latency_metric) == pytest.approx(0.0)

    def test_clamped(self, rssi_metric, latency_metric):
        assert normalize_intensity(-20, rssi_metric) == 1.0
        assert normalize_intensity(-100, rssi_metric) == 0.0
        assert normalize_intensity(0, latency_metric) == 1.0
        assert normalize_intensity(500, latency_metric) == 0.0

    def test_contrast_curve(self, rssi_metric):
        assert normalize_intensity(-65, rssi_metric) == pytest.approx(0.5 ** 1.5)
        assert normalize_intensity(-65, rssi_metric, contrast=contrast_for(True)) == pytest.approx(0.25)
        assert contrast_for(False) == 1.5

    def test_monotonic(self, rssi_metric, latency_metric):
        rssi = [normalize_intensity(v, rssi_metric) for v in range(-90, -40)]
        assert rssi == sorted(rssi)
        latency = [normalize_intensity(v, latency_metric) for v in range(0, 40)]
        assert latency == sorted(latency, reverse=True)

    def test_degenerate_scale(self):
        flat = MetricConfig(key="k", label="k", good=5, bad=5)
        assert normalize_intensity(5, flat) is None
        broken = MetricConfig(key="k", label="k", good=float("inf"), bad=0)
        assert normalize_intensity(5, broken) is None

    def test_missing_inputs(self, rssi_metric):
        assert normalize_intensity(None, rssi_metric) is None
        assert normalize_intensity("n/a", rssi_metric) is None
        assert normalize_intensity(-60, None) is None

    def test_auto_scale_uses_observed_range(self, rssi_metric):
        observed = ValueRange(min=-70, max=-60)
        assert normalize_intensity(-60, rssi_metric, observed) == pytest.approx(1.0)
        assert normalize_intensity(-70, rssi_metric, observed) == pytest.approx(0.0)

    def test_auto_scale_keeps_direction(self, latency_metric):
        observed = ValueRange(min=5, max=15)
        assert normalize_intensity(5, latency_metric, observed) == pytest.approx(1.0)
        assert normalize_intensity(15, latency_metric, observed) == pytest.approx(0.0)

    def test_auto_scale_single_value(self, rssi_metric):
        assert normalize_intensity(-60, rssi_metric, ValueRange(min=-60, max=-60)) is None


class TestSampleHelpers:

    def test_filter_by_band(self, survey_samples):
        assert len(filter_samples(survey_samples, "all")) == 3
        assert len(filter_samples(survey_samples, None)) == 3
        assert [s.band for s in filter_samples(survey_samples, "5")] == ["5", "5"]
        assert filter_samples(survey_samples, "6") == []

    def test_metric_range(self, survey_samples):
        assert metric_range(survey_samples, "rssi_dbm") == ValueRange(min=-70, max=-50)
        assert metric_range(survey_samples, "snr_db") is None

    def test_legacy_rssi_folded_into_metrics(self):
        sample = Sample.model_validate({"x": 1, "y": 2, "rssi": -61, "band": "5"})
        assert get_metric_value(sample, "rssi_dbm") == -61

    def test_junk_metric_values_become_none(self):
        sample = Sample(x=0, y=0, metrics={"snr_db": "nope", "rssi_dbm": float("nan")})
        assert get_metric_value(sample, "snr_db") is None
        assert get_metric_value(sample, "rssi_dbm") is None


class TestHeatField:

    def test_zero_samples_empty_field(self, rssi_metric):
        field = build_heat_field([], rssi_metric, 800, 600)
        assert field.cells == []
        assert field.metric == "rssi_dbm"

    def test_cells_on_grid_and_in_range(self, survey_samples, rssi_metric):
        field = build_heat_field(survey_samples, rssi_metric, 480, 480)
        assert field.cells
        for cell in field.cells:
            assert cell.x % 24 == 0 and cell.y % 24 == 0
            assert 0 <= cell.x <= 480 and 0 <= cell.y <= 480
            assert 0 < cell.intensity <= 1

    def test_cells_only_near_samples(self, rssi_metric):
        samples = [Sample(x=0, y=0, metrics={"rssi_dbm": -50})]
        field = build_heat_field(samples, rssi_metric, 2000, 2000, step=100)
        assert {(c.x, c.y) for c in field.cells} == {(0, 0), (100, 0), (200, 0), (0, 100),
                                                     (100, 100), (0, 200)}

    def test_zero_intensity_cells_skipped(self, rssi_metric):
        samples = [Sample(x=0, y=0, metrics={"rssi_dbm": -85})]
        assert build_heat_field(samples, rssi_metric, 200, 200).cells == []

    def test_band_filter(self, survey_samples, rssi_metric):
        field = build_heat_field(survey_samples, rssi_metric, 480, 480, band="2.4")
        assert field.cells
        assert all(abs(c.intensity - normalize_intensity(-60, rssi_metric)) < 1e-9 for c in field.cells)

    def test_samples_without_metric(self, survey_samples):
        snr = MetricConfig(key="snr_db", label="SNR (dB)", good=25, bad=10)
        assert build_heat_field(survey_samples, snr, 480, 480).cells == []

    def test_auto_scale_reports_range(self, survey_samples, rssi_metric):
        field = build_heat_field(survey_samples, rssi_metric, 480, 480, auto_scale=True)
        assert field.range == ValueRange(min=-70, max=-50)
        fixed = build_heat_field(survey_samples, rssi_metric, 480, 480)
        assert fixed.range is None

    def test_high_contrast_dims_midrange(self, survey_samples, rssi_metric):
        base = {(c.x, c.y): c.intensity for c in build_heat_field(survey_samples, rssi_metric, 480, 480).cells}
        high = {(c.x, c.y): c.intensity
                for c in build_heat_field(survey_samples, rssi_metric, 480, 480, high_contrast=True).cells}
        for key, value in high.items():
            assert value <= base[key] + 1e-12
