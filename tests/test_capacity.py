"""Tests for capacity.py."""

import logging
import math

import pytest

from battery_sim.capacity import (
    KibamCapacity,
    LithiumIonCapacity,
    _c_compute,
    fit_kibam_parameters,
)


@pytest.fixture
def kibam():
    """Lead-acid bank: 100 Ah at C/20, 60 Ah at C/1, 93 Ah at C/10."""
    return KibamCapacity(q20=100.0, t1=1.0, q1=60.0, q10=93.0, soc_max=100.0)


@pytest.fixture
def li_ion():
    return LithiumIonCapacity(100.0, 100.0)


class TestKibamFit:
    """Tests for the KiBaM parameter fit."""

    def test_fit_is_physical(self, kibam):
        assert kibam.k > 0
        assert 0 < kibam.c < 1
        assert kibam.fit_residual < 0.01

    def test_fitted_estimates_agree(self, kibam):
        c1 = _c_compute(60.0 / 100.0, 1.0, 20.0, kibam.k)
        c2 = _c_compute(60.0 / 93.0, 1.0, 10.0, kibam.k)
        assert c1 == pytest.approx(c2, abs=0.01)
        assert kibam.c == pytest.approx(0.5 * (c1 + c2))

    def test_qmax_exceeds_slow_rate_capacity(self, kibam):
        assert kibam.qmax > kibam.q20()
        assert kibam.qmax0 == kibam.qmax

    def test_slow_discharge_delivers_q20(self, kibam):
        assert kibam.qmax_of_i(20.0) == pytest.approx(100.0, rel=1e-6)

    def test_fast_discharge_delivers_less(self, kibam):
        assert kibam.qmax_of_i(1.0) < kibam.qmax_of_i(20.0)

    def test_degenerate_ratio_warns(self, caplog):
        with caplog.at_level(logging.WARNING):
            k, c, residual = fit_kibam_parameters(5.0, 0.1, 1.0, 10.0)
        assert residual > 0.01
        assert "did not converge" in caplog.text

    def test_zero_denominator_is_nan(self):
        # F = 1 makes numerator and denominator vanish together at t1 == t2
        assert math.isnan(_c_compute(1.0, 1.0, 1.0, 0.5))


class TestKibamCapacity:
    """Tests for the two-tank model."""

    def test_starts_full_with_tanks_at_equilibrium(self, kibam):
        assert kibam.soc == pytest.approx(100.0)
        assert kibam.q1() == pytest.approx(kibam.c * kibam.q0)
        assert kibam.q1() + kibam.q2() == pytest.approx(kibam.q0)

    def test_tanks_sum_to_total_charge(self, kibam):
        for current in [10.0, 20.0, -15.0, 0.0, 5.0, -30.0, 40.0, 0.0]:
            kibam.update_capacity(current, 1.0)
            assert kibam.q1() + kibam.q2() == pytest.approx(kibam.q0)

    def test_soc_and_dod_bounds(self):
        capacity = KibamCapacity(100.0, 1.0, 60.0, 93.0, soc_max=95.0)
        for current in [50.0, 50.0, -80.0, -80.0, 200.0, -200.0]:
            capacity.update_capacity(current, 1.0)
            assert 0.0 <= capacity.soc <= 95.0
            assert capacity.dod == pytest.approx(100.0 - capacity.soc)

    def test_idle_step_keeps_equilibrium(self, kibam):
        q0 = kibam.q0
        kibam.update_capacity(0.0, 1.0)
        assert kibam.q0 == pytest.approx(q0)

    def test_discharge_limited_by_available_tank(self, kibam):
        kibam.update_capacity(1e6, 1.0)
        assert kibam.current < 1e6
        assert kibam.q1() == pytest.approx(0.0, abs=1e-6)
        assert kibam.q2() > 0

    def test_charge_never_exceeds_qmax(self, kibam):
        kibam.update_capacity(40.0, 1.0)
        kibam.update_capacity(-1e6, 1.0)
        assert kibam.current < 0
        assert kibam.q0 <= kibam.qmax + 1e-9

    def test_lifetime_derating_ratchets(self, kibam):
        kibam.update_capacity(0.0, 1.0)
        kibam.update_capacity_for_lifetime(80.0)
        assert kibam.qmax == pytest.approx(0.8 * kibam.qmax0)
        assert kibam.q0 == pytest.approx(kibam.qmax)
        assert kibam.loss_current == pytest.approx(0.2 * kibam.qmax0)
        assert kibam.q1() + kibam.q2() == pytest.approx(kibam.q0)

        kibam.update_capacity_for_lifetime(90.0)
        assert kibam.qmax == pytest.approx(0.8 * kibam.qmax0)

    def test_thermal_derating_caps_charge_only(self, kibam):
        kibam.update_capacity(0.0, 1.0)
        qmax = kibam.qmax
        kibam.update_capacity_for_thermal(50.0)
        assert kibam.qmax == qmax
        assert kibam.q0 == pytest.approx(0.5 * qmax)
        assert kibam.soc == pytest.approx(50.0)

    def test_replace_battery(self, kibam):
        kibam.update_capacity(30.0, 1.0)
        kibam.update_capacity_for_lifetime(70.0)
        kibam.replace_battery()
        assert kibam.qmax == kibam.qmax0
        assert kibam.soc == pytest.approx(100.0)
        assert kibam.q1() == pytest.approx(kibam.c * kibam.q0)


class TestLithiumIonCapacity:
    """Tests for the linear charge store."""

    def test_starts_at_soc_max(self):
        capacity = LithiumIonCapacity(100.0, 80.0)
        assert capacity.q0 == pytest.approx(80.0)
        assert capacity.soc == pytest.approx(80.0)
        assert capacity.qmax == 100.0

    def test_discharge(self, li_ion):
        li_ion.update_capacity(10.0, 1.0)
        assert li_ion.q0 == pytest.approx(90.0)
        assert li_ion.soc == pytest.approx(90.0)
        assert li_ion.dod == pytest.approx(10.0)
        assert li_ion.prev_dod == pytest.approx(0.0)
        assert li_ion.current == 10.0

    def test_overcharge_back_solves_current(self, li_ion):
        li_ion.update_capacity(10.0, 1.0)
        li_ion.update_capacity(-50.0, 1.0)
        assert li_ion.q0 == pytest.approx(100.0)
        assert li_ion.current == pytest.approx(-10.0)

    def test_overdischarge_back_solves_current(self, li_ion):
        li_ion.update_capacity(500.0, 1.0)
        assert li_ion.q0 == 0.0
        assert li_ion.soc == 0.0
        assert li_ion.current == pytest.approx(100.0)

    def test_half_hour_step(self, li_ion):
        li_ion.update_capacity(10.0, 0.5)
        assert li_ion.q0 == pytest.approx(95.0)

    def test_available_charge_is_total_charge(self, li_ion):
        assert li_ion.q1() == li_ion.q0
        assert li_ion.q10() == li_ion.qmax

    def test_lifetime_derating(self, li_ion):
        li_ion.update_capacity(0.0, 1.0)
        li_ion.update_capacity_for_lifetime(70.0)
        assert li_ion.qmax == pytest.approx(70.0)
        assert li_ion.q0 == pytest.approx(70.0)
        assert li_ion.loss_current == pytest.approx(30.0)

        li_ion.update_capacity_for_lifetime(80.0)
        assert li_ion.qmax == pytest.approx(70.0)

    def test_derating_before_first_step_books_no_loss(self, li_ion):
        li_ion.update_capacity_for_lifetime(70.0)
        assert li_ion.q0 == pytest.approx(70.0)
        assert li_ion.loss_current == 0.0

    def test_thermal_derating(self, li_ion):
        li_ion.update_capacity(0.0, 1.0)
        li_ion.update_capacity_for_thermal(60.0)
        assert li_ion.q0 == pytest.approx(60.0)
        assert li_ion.qmax == 100.0
        assert li_ion.soc == pytest.approx(60.0)
        assert li_ion.loss_current == pytest.approx(40.0)

        # Warming up again does not restore the shed charge
        li_ion.update_capacity_for_thermal(100.0)
        assert li_ion.q0 == pytest.approx(60.0)

    def test_replace_battery(self, li_ion):
        li_ion.update_capacity(50.0, 1.0)
        li_ion.update_capacity_for_lifetime(60.0)
        li_ion.replace_battery()
        assert li_ion.qmax == 100.0
        assert li_ion.q0 == pytest.approx(100.0)


class TestChargeDirection:
    """Tests for charge reversal detection."""

    def test_first_discharge_is_not_a_reversal(self, li_ion):
        li_ion.update_capacity(10.0, 1.0)
        assert li_ion.charge_changed is False

    def test_reversal_to_charge(self, li_ion):
        li_ion.update_capacity(10.0, 1.0)
        li_ion.update_capacity(-10.0, 1.0)
        assert li_ion.charge_changed is True

    def test_idle_is_never_a_reversal(self, li_ion):
        li_ion.update_capacity(10.0, 1.0)
        li_ion.update_capacity(-10.0, 1.0)
        li_ion.update_capacity(0.0, 1.0)
        assert li_ion.charge_changed is False

        # Idle does not reset the remembered direction
        li_ion.update_capacity(-5.0, 1.0)
        assert li_ion.charge_changed is False
        li_ion.update_capacity(5.0, 1.0)
        assert li_ion.charge_changed is True
