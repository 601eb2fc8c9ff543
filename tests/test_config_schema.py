"""Tests for config_schema.py."""

import pytest
import voluptuous as vol

from battery_sim.config_schema import PROFILE_SCHEMA, validate_config
from battery_sim.const import (
    CONF_CAPACITY_VS_TEMPERATURE,
    CONF_CHEMISTRY,
    CONF_DISPATCH_MODE,
    CONF_LIFETIME_TABLE,
    CONF_PROFILE_GRID_CHARGE,
    CONF_PROFILE_PERCENT_DISCHARGE,
    CONF_PROFILES,
    CONF_REPLACEMENT_OPTION,
    CONF_REPLACEMENT_SCHEDULE,
    CONF_SCHEDULE,
    CONF_SOC_MAX_PERCENT,
    CONF_SOC_MIN_PERCENT,
    CONF_TIME_STEP_MINUTES,
    DEFAULT_CAPACITY_VS_TEMPERATURE,
    DEFAULT_LIFETIME_TABLE,
    MODE_LOOK_AHEAD,
    REPLACE_ON_SCHEDULE,
)


def _schedule(value=1, columns=24):
    return [[value] * columns for _ in range(12)]


class TestDefaults:
    """Tests for default filling."""

    def test_empty_config(self):
        config = validate_config({})
        assert config[CONF_DISPATCH_MODE] == MODE_LOOK_AHEAD
        assert config[CONF_TIME_STEP_MINUTES] == 60
        assert config[CONF_LIFETIME_TABLE] == DEFAULT_LIFETIME_TABLE
        assert config[CONF_CAPACITY_VS_TEMPERATURE] == DEFAULT_CAPACITY_VS_TEMPERATURE

    def test_default_profile_and_schedule(self):
        config = validate_config({})
        assert config[CONF_PROFILES] == [PROFILE_SCHEMA({})]
        assert config[CONF_SCHEDULE] == _schedule()

    def test_profile_defaults(self):
        profile = PROFILE_SCHEMA({})
        assert profile[CONF_PROFILE_GRID_CHARGE] is False
        assert profile[CONF_PROFILE_PERCENT_DISCHARGE] == 100.0

    def test_input_not_mutated(self):
        raw = {CONF_SOC_MAX_PERCENT: "90"}
        validate_config(raw)
        assert raw == {CONF_SOC_MAX_PERCENT: "90"}

    def test_coerces_numbers(self):
        config = validate_config({CONF_SOC_MAX_PERCENT: "90"})
        assert config[CONF_SOC_MAX_PERCENT] == 90.0


class TestTables:
    """Tests for table validation."""

    def test_empty_lifetime_table(self):
        with pytest.raises(vol.Invalid):
            validate_config({CONF_LIFETIME_TABLE: []})

    def test_short_lifetime_row(self):
        with pytest.raises(vol.Invalid):
            validate_config({CONF_LIFETIME_TABLE: [[20.0, 0.0]]})

    def test_negative_cycles(self):
        with pytest.raises(vol.Invalid):
            validate_config({CONF_LIFETIME_TABLE: [[20.0, -1.0, 100.0]]})

    def test_empty_capacity_vs_temperature(self):
        with pytest.raises(vol.Invalid):
            validate_config({CONF_CAPACITY_VS_TEMPERATURE: []})

    def test_single_row_tables(self):
        config = validate_config(
            {
                CONF_LIFETIME_TABLE: [[50, 0, 100]],
                CONF_CAPACITY_VS_TEMPERATURE: [[25, 100]],
            }
        )
        assert config[CONF_LIFETIME_TABLE] == [[50.0, 0.0, 100.0]]


class TestLimits:
    """Tests for scalar validation."""

    def test_soc_min_above_max(self):
        with pytest.raises(vol.Invalid):
            validate_config({CONF_SOC_MIN_PERCENT: 90, CONF_SOC_MAX_PERCENT: 80})

    def test_soc_min_equal_max(self):
        with pytest.raises(vol.Invalid):
            validate_config({CONF_SOC_MIN_PERCENT: 80, CONF_SOC_MAX_PERCENT: 80})

    def test_soc_above_100(self):
        with pytest.raises(vol.Invalid):
            validate_config({CONF_SOC_MAX_PERCENT: 120})

    @pytest.mark.parametrize("minutes", [0, 7, 45, 90])
    def test_time_step_must_divide_hour(self, minutes):
        with pytest.raises(vol.Invalid):
            validate_config({CONF_TIME_STEP_MINUTES: minutes})

    @pytest.mark.parametrize("minutes", [1, 5, 15, 30, 60])
    def test_valid_time_steps(self, minutes):
        config = validate_config({CONF_TIME_STEP_MINUTES: minutes})
        assert config[CONF_TIME_STEP_MINUTES] == minutes

    def test_unknown_chemistry(self):
        with pytest.raises(vol.Invalid):
            validate_config({CONF_CHEMISTRY: "nickel_iron"})

    def test_unknown_key(self):
        with pytest.raises(vol.Invalid):
            validate_config({"capacity_kwh": 10})


class TestSchedule:
    """Tests for the profile schedule."""

    def test_hourly_schedule(self):
        config = validate_config(
            {CONF_PROFILES: [{}, {}], CONF_SCHEDULE: _schedule(value=2)}
        )
        assert config[CONF_SCHEDULE][0][0] == 2

    def test_subhourly_schedule(self):
        config = validate_config(
            {CONF_TIME_STEP_MINUTES: 30, CONF_SCHEDULE: _schedule(columns=48)}
        )
        assert len(config[CONF_SCHEDULE][11]) == 48

    def test_unknown_profile(self):
        with pytest.raises(vol.Invalid):
            validate_config({CONF_PROFILES: [{}], CONF_SCHEDULE: _schedule(value=3)})

    def test_zero_profile_id(self):
        with pytest.raises(vol.Invalid):
            validate_config({CONF_SCHEDULE: _schedule(value=0)})

    def test_wrong_column_count(self):
        with pytest.raises(vol.Invalid):
            validate_config({CONF_SCHEDULE: _schedule(columns=23)})

    def test_mixed_column_counts(self):
        schedule = _schedule(columns=48)
        schedule[0] = [1] * 24
        with pytest.raises(vol.Invalid):
            validate_config({CONF_TIME_STEP_MINUTES: 30, CONF_SCHEDULE: schedule})

    def test_eleven_months(self):
        with pytest.raises(vol.Invalid):
            validate_config({CONF_SCHEDULE: _schedule()[:11]})

    def test_too_many_profiles(self):
        with pytest.raises(vol.Invalid):
            validate_config({CONF_PROFILES: [{}] * 7})


class TestReplacement:
    """Tests for replacement options."""

    def test_schedule_defaults_empty(self):
        assert validate_config({})[CONF_REPLACEMENT_SCHEDULE] == []

    def test_schedule_coerced(self):
        config = validate_config(
            {
                CONF_REPLACEMENT_OPTION: REPLACE_ON_SCHEDULE,
                CONF_REPLACEMENT_SCHEDULE: ["5", 10],
            }
        )
        assert config[CONF_REPLACEMENT_SCHEDULE] == [5, 10]

    def test_schedule_year_zero(self):
        with pytest.raises(vol.Invalid):
            validate_config({CONF_REPLACEMENT_SCHEDULE: [0]})

    def test_unknown_option(self):
        with pytest.raises(vol.Invalid):
            validate_config({CONF_REPLACEMENT_OPTION: "yearly"})
