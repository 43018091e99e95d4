"""Search job dispatcher — queues searches on ARQ and relays their progress.

A job is a Redis hash ``slingshot:job:<id>`` (status, request, last result)
plus a pub/sub channel ``slingshot:progress:<id>`` carrying one JSON message
per generation. The final message has status "complete" (with the best
trajectory) or "failed" (with the error).
"""

from __future__ import annotations

import json
import logging
import math
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator

import redis.asyncio as aioredis
from arq import create_pool
from arq.connections import ArqRedis, RedisSettings

from slingshot.config import TrajectorySearchConfig, TrajectoryUserSettings, settings
from slingshot.ephemeris.system import SolarSystem
from slingshot.mechanics.sequence import FlybySequence
from slingshot.mechanics.trajectory import Trajectory, trajectory_to_dict
from slingshot.optimizer.solver import SearchProgress

logger = logging.getLogger("slingshot.dispatcher")

JOB_PREFIX = "slingshot:job:"
CHANNEL_PREFIX = "slingshot:progress:"

TERMINAL_STATUSES = ("complete", "failed")


def job_key(job_id: str) -> str:
    return f"{JOB_PREFIX}{job_id}"


def progress_channel(job_id: str) -> str:
    return f"{CHANNEL_PREFIX}{job_id}"


# --------------------------------------------------------------------------- #
#  Connections
# --------------------------------------------------------------------------- #
def redis_settings() -> RedisSettings:
    """ARQ connection settings for ``settings.redis_url`` (host, port, db, auth)."""
    return RedisSettings.from_dsn(settings.redis_url)


async def get_arq_pool() -> ArqRedis:
    return await create_pool(redis_settings())


async def get_redis() -> aioredis.Redis:
    """Async Redis client returning str values."""
    return aioredis.from_url(settings.redis_url, decode_responses=True)


@asynccontextmanager
async def redis_client() -> AsyncIterator[aioredis.Redis]:
    client = await get_redis()
    try:
        yield client
    finally:
        await client.close()


# --------------------------------------------------------------------------- #
#  Submission / status
# --------------------------------------------------------------------------- #
async def submit_search(
    sequence: FlybySequence,
    user_settings: TrajectoryUserSettings,
    config: TrajectorySearchConfig | None = None,
    seed: int | None = None,
    executor: str | None = None,
) -> str:
    """Queue a trajectory search and return its job id.

    ``sequence`` is already validated, so an impossible sequence never
    reaches a worker. A custom catalog travels with the request as plain
    records; the built-in one is rebuilt by the worker.
    """
    job_id = str(uuid.uuid4())
    system = sequence.system
    request_data = {
        "sequence": list(sequence.ids),
        "bodies": None if _is_default_catalog(system) else _catalog_records(system),
        "settings": user_settings.model_dump(),
        "config": None if config is None else config.model_dump(),
        "seed": seed,
        "executor": executor,
    }

    async with redis_client() as r:
        await r.hset(job_key(job_id), mapping={
            "status": "queued",
            "request": json.dumps(request_data),
            "result": "",
        })

    pool = await get_arq_pool()
    try:
        await pool.enqueue_job("run_search", job_id=job_id, request_data=request_data, _job_id=job_id)
    finally:
        await pool.close()

    logger.info("Queued search %s for %s", job_id, sequence.seq_string)
    return job_id


async def get_job_status(job_id: str) -> dict:
    """Status and last published result of a job ("not_found" if unknown)."""
    async with redis_client() as r:
        data = await r.hgetall(job_key(job_id))

    if not data:
        return {"status": "not_found", "job_id": job_id}

    status = {"job_id": job_id, "status": data.get("status", "unknown")}
    if data.get("result"):
        try:
            status["result"] = json.loads(data["result"])
        except json.JSONDecodeError:
            logger.warning("Job %s has an unreadable result", job_id)
    return status


async def set_job_status(job_id: str, status: str) -> None:
    async with redis_client() as r:
        await r.hset(job_key(job_id), "status", status)


# --------------------------------------------------------------------------- #
#  Progress channel
# --------------------------------------------------------------------------- #
async def stream_progress(job_id: str) -> AsyncGenerator[dict, None]:
    """Yield the job's progress messages until a terminal one arrives."""
    channel = progress_channel(job_id)
    async with redis_client() as r:
        pubsub = r.pubsub()
        await pubsub.subscribe(channel)
        logger.info("Listening on %s", channel)
        try:
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                try:
                    data = json.loads(message["data"])
                except (json.JSONDecodeError, TypeError):
                    logger.warning("Dropped malformed message on %s", channel)
                    continue

                yield data
                if data.get("status") in TERMINAL_STATUSES:
                    break
        finally:
            await pubsub.unsubscribe(channel)
            await pubsub.close()


async def publish_progress(
    job_id: str,
    progress: SearchProgress,
    status: str = "running",
    trajectory: Trajectory | None = None,
) -> None:
    """Publish one generation's progress and store it as the job result.

    Running messages carry the best trajectory so far, the terminal
    "complete" message the final one.
    """
    body = progress_to_dict(progress)
    if trajectory is not None:
        body["trajectory"] = trajectory_to_dict(trajectory)

    async with redis_client() as r:
        await r.publish(progress_channel(job_id), json.dumps({"status": status, "job_id": job_id, **body}))
        await r.hset(job_key(job_id), mapping={"status": status, "result": json.dumps(body)})


async def publish_failure(job_id: str, error: str) -> None:
    """Mark a job failed and publish its single terminal message."""
    async with redis_client() as r:
        await r.hset(job_key(job_id), "status", "failed")
        await r.publish(
            progress_channel(job_id),
            json.dumps({"status": "failed", "job_id": job_id, "error": error}),
        )


def _finite_or_none(v: float | None) -> float | None:
    return v if v is not None and math.isfinite(v) else None


def progress_to_dict(p: SearchProgress) -> dict:
    """JSON-safe progress; inf / nan become None."""
    return {
        "generation": p.generation,
        "max_generations": p.max_generations,
        "best_cost": _finite_or_none(p.best_cost),
        "best_delta_v": _finite_or_none(p.best_delta_v),
        "mean_cost": _finite_or_none(p.mean_cost),
        "updated": p.updated,
        "retries": p.retries,
        "elapsed": p.elapsed,
        "best_departure_date": _finite_or_none(p.best_departure_date),
        "best_duration": _finite_or_none(p.best_duration),
        "population_costs": [_finite_or_none(c) for c in p.population_costs],
    }


# --------------------------------------------------------------------------- #
#  Catalog transport
# --------------------------------------------------------------------------- #
def _is_default_catalog(system: SolarSystem) -> bool:
    default = SolarSystem.default()
    return set(system.ids) == set(default.ids) and all(
        system.body(i) == default.body(i) for i in default.ids
    )


def _catalog_records(system: SolarSystem) -> list[dict]:
    """Plain-dict form of a catalog, accepted by ``SolarSystem.from_records``."""
    records = []
    for body in system:
        orbit = body.orbit
        records.append({
            "id": body.id,
            "name": body.name,
            "gm": body.gm,
            "radius": body.radius,
            "soi": body.soi if math.isfinite(body.soi) else None,
            "attractor_id": body.attractor_id,
            "orbit": None if orbit is None else {
                "semi_major_axis": orbit.semi_major_axis,
                "eccentricity": orbit.eccentricity,
                "inclination": orbit.inclination,
                "arg_of_periapsis": orbit.arg_of_periapsis,
                "asc_node_longitude": orbit.asc_node_longitude,
                "mean_anomaly0": orbit.mean_anomaly0,
                "epoch": orbit.epoch,
            },
        })
    return records
