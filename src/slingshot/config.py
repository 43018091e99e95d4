from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings

from slingshot.mechanics.transforms import iso_to_seconds


class TrajectorySearchConfig(BaseModel):
    """Hyperparameters of the trajectory search.

    The evolutionary part (population, generations, differential weight,
    crossover schedule) and the mapping of agent coordinates in [0, 1] to
    physical ranges (leg durations, DSM offsets, ejection speeds, flyby radii).
    """

    # Evolution
    population_size: int = Field(default=40, ge=4)
    max_generations: int = Field(default=100, ge=1)
    diff_weight: float = Field(default=0.8, gt=0.0, le=2.0)
    min_cross_proba: float = Field(default=0.1, ge=0.0, le=1.0)
    max_cross_proba: float = Field(default=0.9, ge=0.0, le=1.0)
    cross_proba_incr: float = Field(default=0.02, ge=0.0)

    # Agent -> physical parameters
    dsm_offset_min: float = Field(default=0.1, gt=0.0, lt=1.0)
    dsm_offset_max: float = Field(default=0.9, gt=0.0, lt=1.0)
    max_ejection_speed_scale: float = Field(default=1.5, gt=1.0)
    fb_radius_min_scale: float = Field(default=1.05, ge=1.0)
    fb_radius_max_scale: float = Field(default=10.0, ge=1.0)
    leg_duration_min_scale: float = Field(default=0.35, gt=0.0)
    leg_duration_max_scale: float = Field(default=1.75, gt=0.0)
    resonant_duration_min_revs: float = Field(default=1.0, gt=0.0)
    resonant_duration_max_revs: float = Field(default=3.0, gt=0.0)

    # Retry ceiling for a single agent
    max_compute_attempts: int = Field(default=1000, ge=1)

    @model_validator(mode="after")
    def check_ranges(self) -> "TrajectorySearchConfig":
        pairs = [
            ("min_cross_proba", "max_cross_proba"),
            ("dsm_offset_min", "dsm_offset_max"),
            ("fb_radius_min_scale", "fb_radius_max_scale"),
            ("leg_duration_min_scale", "leg_duration_max_scale"),
            ("resonant_duration_min_revs", "resonant_duration_max_revs"),
        ]
        for low, high in pairs:
            if getattr(self, low) > getattr(self, high):
                raise ValueError(f"{low} must not exceed {high}")
        return self


class TrajectoryUserSettings(BaseModel):
    """Mission settings for one search: departure window, limits, altitudes.

    Dates are seconds since the catalog epoch (ISO strings such as
    "2030-06-01" are accepted and converted), durations in seconds,
    altitudes in km above the body's surface.
    """

    start_date_min: float
    start_date_max: float
    max_duration: float = Field(gt=0.0)
    dep_altitude: float = Field(default=200.0, ge=0.0)
    dest_altitude: float = Field(default=200.0, ge=0.0)
    no_insertion: bool = False

    @field_validator("start_date_min", "start_date_max", mode="before")
    @classmethod
    def parse_iso_date(cls, v):
        if isinstance(v, str):
            try:
                return iso_to_seconds(v)
            except ValueError:
                raise ValueError(f"Invalid ISO date: {v!r}") from None
        return v

    @model_validator(mode="after")
    def check_window(self) -> "TrajectoryUserSettings":
        if self.start_date_max < self.start_date_min:
            raise ValueError(
                f"start_date_max ({self.start_date_max}) is before "
                f"start_date_min ({self.start_date_min})"
            )
        return self


class Settings(BaseSettings):
    # Redis
    redis_url: str = "redis://localhost:6379"

    # Chunk execution units
    executor: Literal["process", "thread", "serial"] = "process"
    num_workers: int = Field(default=4, ge=1)

    # Logging
    log_level: str = "INFO"

    # Search defaults, e.g. SLINGSHOT_SEARCH__POPULATION_SIZE=60
    search: TrajectorySearchConfig = TrajectorySearchConfig()

    model_config = {
        "env_prefix": "SLINGSHOT_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_nested_delimiter": "__",
    }


settings = Settings()
