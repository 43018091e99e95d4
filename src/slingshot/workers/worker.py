"""ARQ worker — runs trajectory search jobs in the background.

This worker process is started separately (via `arq slingshot.workers.worker.WorkerSettings`)
and picks up jobs from the Redis queue.
"""

from __future__ import annotations

import asyncio
import logging

from slingshot.config import TrajectorySearchConfig, TrajectoryUserSettings, settings
from slingshot.ephemeris.system import SolarSystem
from slingshot.mechanics.sequence import FlybySequence
from slingshot.optimizer.dispatcher import (
    publish_failure,
    publish_progress,
    redis_settings,
    set_job_status,
)
from slingshot.optimizer.solver import TrajectorySolver

logger = logging.getLogger("slingshot.worker")


async def startup(ctx: dict) -> None:
    """Called once when the worker starts. Builds the default catalog."""
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )
    ctx["system"] = SolarSystem.default()
    logger.info("Worker ready — %d bodies in the default catalog", len(ctx["system"]))


async def shutdown(ctx: dict) -> None:
    """Called when the worker shuts down."""
    logger.info("Worker shutting down")


def _build_search(ctx: dict, request_data: dict) -> tuple:
    if request_data.get("bodies"):
        system = SolarSystem.from_records(request_data["bodies"])
    else:
        system = ctx.get("system") or SolarSystem.default()

    raw_sequence = request_data["sequence"]
    if isinstance(raw_sequence, str):
        sequence = FlybySequence.from_string(system, raw_sequence)
    else:
        sequence = FlybySequence(system, raw_sequence)

    user_settings = TrajectoryUserSettings.model_validate(request_data["settings"])
    config = TrajectorySearchConfig.model_validate({
        **settings.search.model_dump(),
        **(request_data.get("config") or {}),
    })
    return system, sequence, user_settings, config


async def run_search(ctx: dict, job_id: str, request_data: dict) -> dict:
    """Execute a search job and stream progress via Redis pub/sub.

    This is the ARQ task function registered with the worker. Any error
    ends the job with a single "failed" message.
    """
    await set_job_status(job_id, "running")
    last_progress = None

    try:
        system, sequence, user_settings, config = _build_search(ctx, request_data)
        logger.info("Starting search job %s: %s", job_id, sequence.seq_string)

        with TrajectorySolver(
            system,
            sequence,
            user_settings,
            config,
            executor=request_data.get("executor"),
            seed=request_data.get("seed"),
        ) as solver:
            for progress in solver.run():
                last_progress = progress
                await publish_progress(
                    job_id, progress, status="running", trajectory=progress.best_trajectory,
                )

                # Yield control to the event loop so other tasks can run
                await asyncio.sleep(0)

            best = solver.best_trajectory

        if last_progress is None or best is None:
            raise RuntimeError("Search finished without a trajectory")

        await publish_progress(job_id, last_progress, status="complete", trajectory=best)
        logger.info("Search job %s complete — best dv: %.3f km/s", job_id, best.total_delta_v)

        return {"status": "complete", "job_id": job_id, "best_delta_v": best.total_delta_v}

    except Exception as e:
        logger.error("Search job %s failed: %s", job_id, e)
        await publish_failure(job_id, str(e))
        return {"status": "failed", "job_id": job_id, "error": str(e)}


class WorkerSettings:
    """ARQ worker settings class."""
    functions = [run_search]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = redis_settings()
    max_jobs = 4
    job_timeout = 3600  # 1 hour max per search
