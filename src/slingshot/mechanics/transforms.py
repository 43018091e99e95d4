"""Epoch conversions and small vector helpers.

Handles:
- Seconds since J2000 <-> Python datetime / ISO strings
- Axis-angle rotations (scipy Rotation)
- Linear interpolation of agent coordinates into physical ranges
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone

import numpy as np
from scipy.spatial.transform import Rotation

# --------------------------------------------------------------------------- #
#  Epoch conversions  (seconds since J2000 <-> Python datetime)
# --------------------------------------------------------------------------- #
J2000_EPOCH = datetime(2000, 1, 1, 12, 0, 0)  # JD 2451545.0
SECONDS_PER_DAY = 86400.0


def datetime_to_seconds(dt: datetime) -> float:
    """Convert Python datetime to seconds since J2000 (naive = UTC)."""
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return (dt - J2000_EPOCH).total_seconds()


def seconds_to_datetime(seconds: float) -> datetime:
    """Convert seconds since J2000 to Python datetime (UTC)."""
    return J2000_EPOCH + timedelta(seconds=seconds)


def iso_to_seconds(iso_str: str) -> float:
    """Convert ISO date string to seconds since J2000."""
    return datetime_to_seconds(datetime.fromisoformat(iso_str))


def seconds_to_iso(seconds: float) -> str:
    """Convert seconds since J2000 to ISO date string."""
    return seconds_to_datetime(seconds).isoformat()


def days(n: float) -> float:
    """Duration of n days in seconds."""
    return n * SECONDS_PER_DAY


# --------------------------------------------------------------------------- #
#  Vectors
# --------------------------------------------------------------------------- #
def lerp(low: float, high: float, t: float) -> float:
    """Map t in [0, 1] onto [low, high]."""
    return low + (high - low) * t


def unit(vec: np.ndarray) -> np.ndarray:
    """Normalised copy of vec; raises ZeroDivisionError on a null vector."""
    norm = float(np.linalg.norm(vec))
    if norm == 0.0:
        raise ZeroDivisionError("cannot normalise a null vector")
    return vec / norm


def rotate_about_axis(vec: np.ndarray, axis: np.ndarray, angle: float) -> np.ndarray:
    """Rotate vec by angle (rad, right-handed) about the given axis."""
    return Rotation.from_rotvec(unit(axis) * angle).apply(vec)


def signed_angle(from_vec: np.ndarray, to_vec: np.ndarray, normal: np.ndarray) -> float:
    """Angle from from_vec to to_vec, positive counter-clockwise about normal."""
    cross = np.cross(from_vec, to_vec)
    return math.atan2(float(np.dot(cross, normal)), float(np.dot(from_vec, to_vec)))


def perpendicular_component(vec: np.ndarray, axis: np.ndarray) -> np.ndarray:
    """Component of vec orthogonal to the unit vector axis."""
    return vec - np.dot(vec, axis) * axis
