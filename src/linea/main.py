"""LINEA application entrypoint."""

import asyncio
import logging
from dataclasses import asdict

from fastapi import FastAPI

from linea.config import settings
from linea.pipeline.runner import build_pipeline
from linea.pipeline.session import ReportingSession
from linea.utils.logging import configure_logging

configure_logging(settings.log_level)
logger = logging.getLogger("linea")

app = FastAPI(
    title="LINEA",
    description="Lineage Event Normalization, Error classification and Alerting",
    version=settings.version,
)

session = ReportingSession.from_settings(settings)
pipeline = build_pipeline(settings, session)
_run_lock = asyncio.Lock()
_scheduler: asyncio.Task | None = None


async def run_once() -> dict:
    async with _run_lock:
        report = await pipeline.run()
    return asdict(report)


async def _run_periodically(interval: int) -> None:
    while True:
        await run_once()
        await asyncio.sleep(interval)


@app.on_event("startup")
async def startup():
    global _scheduler
    logger.info("LINEA v%s starting", settings.version)
    logger.info("Log level: %s", settings.log_level)
    logger.info("Active sinks: %s", [s.name for s in pipeline.sinks])
    for problem in settings.problems():
        logger.error("Configuration problem: %s", problem)
    if settings.run_interval > 0:
        logger.info("Running every %d seconds", settings.run_interval)
        _scheduler = asyncio.create_task(_run_periodically(settings.run_interval))


@app.on_event("shutdown")
async def shutdown():
    if _scheduler is not None:
        _scheduler.cancel()
        try:
            await _scheduler
        except asyncio.CancelledError:
            pass
    await session.close()
    logger.info("LINEA stopped")


@app.get("/health")
async def health():
    source = session.current_source
    return {
        "status": "ok",
        "version": settings.version,
        "sinks": [s.name for s in pipeline.sinks],
        "source": asdict(source.health()) if source is not None else None,
    }


@app.post("/runs")
async def trigger_run():
    """Run the pipeline once and return its report."""
    return await run_once()
