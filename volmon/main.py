import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from .api import volumes
from .dependencies import get_accessory_registry, get_scan_orchestrator, get_settings
from .logging_config import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    settings = get_settings()
    setup_logging(settings)

    logging.info("Volume monitor starting up...")
    logging.info(
        f"Scan period: {settings.period_hr}h, default low space threshold: "
        f"{settings.default_alarm_threshold}%"
    )

    # Registry must subscribe before the first scan publishes
    get_accessory_registry()
    orchestrator = get_scan_orchestrator()
    orchestrator.start()
    logging.info("VolumeScanOrchestrator started")

    yield

    logging.info("Volume monitor shutting down...")
    await orchestrator.terminate()


app = FastAPI(
    title="Volume Monitor",
    description="Periodic storage volume capacity and low space monitoring",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(volumes.router)


@app.get("/health")
async def health():
    return {"status": "healthy", "service": "volmon"}


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "volmon.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
