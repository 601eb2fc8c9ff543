"""Tests for lifetime.py."""

import pytest

from battery_sim.const import MIN_REPLACEMENT_CAPACITY, REPLACE_AT_CAPACITY
from battery_sim.lifetime import LifetimeModel


def _feed(model, samples):
    for dod in samples:
        model.rainflow(dod)


class TestRainflow:
    """Tests for rainflow cycle counting."""

    def test_starts_new(self, lifetime_table):
        model = LifetimeModel(lifetime_table)
        assert model.capacity_percent == pytest.approx(100.0)
        assert model.cycles_elapsed == 0
        assert model.peaks == []

    def test_converging_swings_count_nothing(self, lifetime_table):
        model = LifetimeModel(lifetime_table)
        _feed(model, [10.0, 90.0, 20.0, 80.0, 30.0])
        assert model.cycles_elapsed == 0
        assert model.peaks == [10.0, 90.0, 20.0, 80.0, 30.0]

    def test_large_swing_closes_nested_cycles(self, lifetime_table):
        model = LifetimeModel(lifetime_table)
        _feed(model, [10.0, 90.0, 20.0, 80.0, 30.0, 95.0])
        assert model.cycles_elapsed == 2
        assert model.cycle_range == pytest.approx(70.0)
        assert model.average_range == pytest.approx(60.0)
        assert model.peaks == [10.0, 95.0]

    def test_counted_cycles_reduce_capacity(self, lifetime_table):
        model = LifetimeModel(lifetime_table)
        _feed(model, [10.0, 90.0, 20.0, 80.0, 30.0, 95.0])
        # Two cycles at 60 % average DOD between the 20 % and 80 % columns
        assert model.capacity_percent == pytest.approx(99.970667, abs=1e-5)

    def test_flat_input_counts_nothing(self, lifetime_table):
        model = LifetimeModel(lifetime_table)
        _feed(model, [50.0] * 10)
        assert model.cycles_elapsed == 0
        assert model.peaks == [50.0]

    def test_monotonic_input_keeps_extremes(self, lifetime_table):
        model = LifetimeModel(lifetime_table)
        _feed(model, [10.0, 20.0, 30.0, 40.0])
        assert model.cycles_elapsed == 0
        assert model.peaks == [10.0, 40.0]

    def test_capacity_never_increases(self, lifetime_table):
        model = LifetimeModel(lifetime_table)
        history = []
        for _ in range(50):
            _feed(model, [0.0, 90.0, 70.0, 80.0, 5.0])
            history.append(model.capacity_percent)
        assert model.cycles_elapsed > 0
        assert all(b <= a for a, b in zip(history, history[1:]))

    def test_peaks_are_a_copy(self, lifetime_table):
        model = LifetimeModel(lifetime_table)
        model.rainflow(10.0)
        model.peaks.append(99.0)
        assert model.peaks == [10.0]


class TestBilinear:
    """Tests for degradation table lookup."""

    def test_new_battery(self, lifetime_table):
        model = LifetimeModel(lifetime_table)
        assert model.bilinear(0.0, 0) == pytest.approx(100.0)

    def test_on_table_column(self, lifetime_table):
        model = LifetimeModel(lifetime_table)
        assert model.bilinear(20.0, 5000) == pytest.approx(80.0)

    def test_between_columns(self, lifetime_table):
        model = LifetimeModel(lifetime_table)
        # 20 % DOD: 90 % after 2500 cycles; 80 % DOD: 50 % (extended)
        assert model.bilinear(50.0, 2500) == pytest.approx(70.0)

    def test_single_dod_column(self):
        model = LifetimeModel([[50.0, 0.0, 100.0], [50.0, 1000.0, 80.0]])
        assert model.bilinear(30.0, 500) == pytest.approx(90.0)
        assert model.bilinear(90.0, 500) == pytest.approx(90.0)

    def test_synthesized_high_column(self):
        table = [
            [20.0, 0.0, 100.0],
            [20.0, 1000.0, 90.0],
            [40.0, 0.0, 100.0],
            [40.0, 500.0, 95.0],
        ]
        model = LifetimeModel(table)
        # Above the last column a steady fade column is assumed at 100 % DOD
        assert model.bilinear(60.0, 0) == pytest.approx(94.0)

    def test_empty_table(self):
        with pytest.raises(ValueError):
            LifetimeModel([])


class TestReplacement:
    """Tests for battery replacement."""

    def test_replaced_at_capacity(self, lifetime_table):
        model = LifetimeModel(lifetime_table, REPLACE_AT_CAPACITY, 99.99)
        _feed(model, [10.0, 90.0, 20.0, 80.0, 30.0, 95.0])

        assert model.check_replaced() is True
        assert model.replacements == 1
        assert model.cycles_elapsed == 0
        assert model.average_range == 0.0
        assert model.capacity_percent == pytest.approx(100.0)
        assert model.peaks == []

    def test_not_replaced_above_threshold(self, lifetime_table):
        model = LifetimeModel(lifetime_table, REPLACE_AT_CAPACITY, 50.0)
        _feed(model, [10.0, 90.0, 20.0, 80.0, 30.0, 95.0])
        assert model.check_replaced() is False
        assert model.replacements == 0

    def test_never_replaced_without_option(self, lifetime_table):
        model = LifetimeModel(lifetime_table, replacement_capacity=99.99)
        _feed(model, [10.0, 90.0, 20.0, 80.0, 30.0, 95.0])
        assert model.check_replaced() is False

    def test_forced_replacement_happens_once(self, lifetime_table):
        model = LifetimeModel(lifetime_table)
        model.force_replacement()
        assert model.check_replaced() is True
        assert model.check_replaced() is False
        assert model.replacements == 1

    def test_reset_replacements(self, lifetime_table):
        model = LifetimeModel(lifetime_table)
        model.force_replacement()
        model.check_replaced()
        model.reset_replacements()
        assert model.replacements == 0

    def test_zero_threshold_uses_minimum(self, lifetime_table):
        model = LifetimeModel(lifetime_table, REPLACE_AT_CAPACITY, 0.0)
        assert model.replacement_capacity == MIN_REPLACEMENT_CAPACITY
