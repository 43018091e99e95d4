"""
Epoch conversion, vector helper and settings validation tests.
"""

import math
from datetime import datetime, timezone

import numpy as np
import pytest
from numpy.testing import assert_allclose
from pydantic import ValidationError

from slingshot.config import Settings, TrajectorySearchConfig, TrajectoryUserSettings
from slingshot.mechanics.transforms import (
    datetime_to_seconds,
    days,
    iso_to_seconds,
    lerp,
    perpendicular_component,
    rotate_about_axis,
    seconds_to_iso,
    signed_angle,
    unit,
)


# =============================================================================
# Test: Epoch conversions
# =============================================================================

class TestEpoch:
    """Seconds since J2000 (2000-01-01T12:00:00)."""

    def test_epoch_is_zero(self):
        assert iso_to_seconds("2000-01-01T12:00:00") == 0.0

    def test_day_offsets(self):
        assert iso_to_seconds("2000-01-02T12:00:00") == days(1.0)
        assert iso_to_seconds("2000-01-01") == -days(0.5)

    def test_aware_datetimes_are_utc(self):
        dt = datetime(2000, 1, 1, 13, 0, tzinfo=timezone.utc)
        assert datetime_to_seconds(dt) == 3600.0
        assert iso_to_seconds("2000-01-01T14:00:00+02:00") == 0.0

    def test_iso_round_trip(self):
        assert seconds_to_iso(iso_to_seconds("2031-07-15T06:30:00")) == "2031-07-15T06:30:00"


# =============================================================================
# Test: Vector helpers
# =============================================================================

class TestVectors:

    def test_lerp(self):
        assert lerp(2.0, 4.0, 0.0) == 2.0
        assert lerp(2.0, 4.0, 1.0) == 4.0
        assert lerp(2.0, 4.0, 0.25) == 2.5

    def test_unit(self):
        assert_allclose(unit(np.array([3.0, 0.0, 4.0])), [0.6, 0.0, 0.8])
        with pytest.raises(ZeroDivisionError):
            unit(np.zeros(3))

    def test_rotation_is_right_handed(self):
        v = rotate_about_axis(np.array([1.0, 0.0, 0.0]), np.array([0.0, 0.0, 2.0]), math.pi / 2)
        assert_allclose(v, [0.0, 1.0, 0.0], atol=1e-15)

    def test_signed_angle(self):
        z = np.array([0.0, 0.0, 1.0])
        x = np.array([1.0, 0.0, 0.0])
        y = np.array([0.0, 1.0, 0.0])
        assert signed_angle(x, y, z) == pytest.approx(math.pi / 2)
        assert signed_angle(y, x, z) == pytest.approx(-math.pi / 2)

    def test_perpendicular_component(self):
        z = np.array([0.0, 0.0, 1.0])
        assert_allclose(perpendicular_component(np.array([1.0, 2.0, 3.0]), z), [1.0, 2.0, 0.0])


# =============================================================================
# Test: Settings validation
# =============================================================================

class TestSettings:
    """Malformed mission settings and search configs are rejected."""

    def test_iso_window(self):
        s = TrajectoryUserSettings(
            start_date_min="2030-01-01", start_date_max="2030-06-01", max_duration=days(500.0),
        )
        assert s.start_date_min == iso_to_seconds("2030-01-01")
        assert s.start_date_max > s.start_date_min

    @pytest.mark.parametrize("kwargs", [
        {"start_date_min": 10.0, "start_date_max": 0.0, "max_duration": 1.0},
        {"start_date_min": 0.0, "start_date_max": 1.0, "max_duration": 0.0},
        {"start_date_min": 0.0, "start_date_max": 1.0, "max_duration": 1.0, "dep_altitude": -5.0},
        {"start_date_min": "not a date", "start_date_max": 1.0, "max_duration": 1.0},
    ])
    def test_invalid_user_settings(self, kwargs):
        with pytest.raises(ValidationError):
            TrajectoryUserSettings(**kwargs)

    @pytest.mark.parametrize("kwargs", [
        {"population_size": 3},
        {"min_cross_proba": 0.95, "max_cross_proba": 0.5},
        {"leg_duration_min_scale": 2.0, "leg_duration_max_scale": 1.0},
        {"max_compute_attempts": 0},
    ])
    def test_invalid_search_config(self, kwargs):
        with pytest.raises(ValidationError):
            TrajectorySearchConfig(**kwargs)

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("SLINGSHOT_EXECUTOR", "thread")
        monkeypatch.setenv("SLINGSHOT_SEARCH__POPULATION_SIZE", "60")
        s = Settings()
        assert s.executor == "thread"
        assert s.search.population_size == 60
