"""Shared fixtures: catalogs, sequences and mission settings."""

import numpy as np
import pytest

from slingshot.config import TrajectorySearchConfig, TrajectoryUserSettings
from slingshot.ephemeris.bodies import AU_KM, GM_SUN, CelestialBody, OrbitData
from slingshot.ephemeris.system import SolarSystem
from slingshot.mechanics.sequence import FlybySequence
from slingshot.mechanics.transforms import days

# =============================================================================
# Toy catalog: circular, coplanar Earth and Mars
# =============================================================================

TOY_SUN = CelestialBody(id=10, name="Sun", gm=GM_SUN, radius=695_700.0)
TOY_EARTH = CelestialBody(
    id=399, name="Earth", gm=3.986004418e5, radius=6_371.0, soi=9.245e5,
    orbit=OrbitData(AU_KM, 0.0, 0.0, 0.0, 0.0, 0.0),
    attractor_id=10,
)
# Mars leads Earth by 90 degrees at epoch; the Hohmann phasing (~44 degrees)
# is reached about 100 days later.
TOY_MARS = CelestialBody(
    id=499, name="Mars", gm=4.282837e4, radius=3_389.5, soi=5.774e5,
    orbit=OrbitData(1.52371034 * AU_KM, 0.0, 0.0, 0.0, 0.0, 90.0),
    attractor_id=10,
)


@pytest.fixture(scope="session")
def toy_system():
    return SolarSystem([TOY_SUN, TOY_EARTH, TOY_MARS])


@pytest.fixture(scope="session")
def solar_system():
    return SolarSystem.default()


@pytest.fixture
def toy_sequence(toy_system):
    return FlybySequence(toy_system, [399, 499])


@pytest.fixture
def toy_settings():
    return TrajectoryUserSettings(
        start_date_min=0.0,
        start_date_max=days(200.0),
        max_duration=days(1000.0),
        dep_altitude=200.0,
        dest_altitude=200.0,
    )


@pytest.fixture
def config():
    return TrajectorySearchConfig()


@pytest.fixture
def small_config():
    return TrajectorySearchConfig(population_size=8, max_generations=3)


@pytest.fixture
def rng():
    return np.random.default_rng(12345)
