"""FastAPI service for feedmatch.

Exposes:
- POST /items, POST /items/batch, POST /items/raw, GET /queue  (intake router)
- GET  /health
- POST /config/reload
- GET  /config/errors
"""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request, Response

from intake import router as intake_router

from .config import FeedmatchConfig, MatchingConfig
from .database import get_engine
from .logging_config import get_logger
from .manual_queue import ManualQueue
from .orchestrator import MatchingOrchestrator, create_orchestrator

logger = get_logger(__name__)


def configure_app(
    app: FastAPI,
    orchestrator: MatchingOrchestrator,
    manual_queue: Optional[ManualQueue] = None,
    matching: Optional[MatchingConfig] = None,
) -> None:
    """Attach the matching engine the routes dispatch to.

    `matching` drives raw-entry parsing; without it the routes fall back
    to config.ini.
    """
    app.state.orchestrator = orchestrator
    app.state.matching = matching
    app.state.manual_queue = manual_queue or (
        orchestrator.manual_queue if isinstance(orchestrator.manual_queue, ManualQueue) else None
    )


@asynccontextmanager
async def _lifespan(app: FastAPI):
    async def _print_startup_messages():
        await asyncio.sleep(0.1)
        logger.info("Started server process [" + str(os.getpid()) + "]")
        logger.info("Application startup complete. (Press CTRL+C to quit)")
        if getattr(app.state, "monitoring_enabled", False):
            logger.info("Configuration monitoring enabled")

    asyncio.create_task(_print_startup_messages())
    yield


app = FastAPI(title="feedmatch", lifespan=_lifespan)
app.include_router(intake_router)


@app.get("/favicon.ico", include_in_schema=False)
def favicon() -> Response:
    return Response(status_code=204)


def _require_orchestrator(request: Request) -> MatchingOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Matching engine not ready")
    return orchestrator


@app.get("/health")
def health(request: Request):
    """JSON: engine status and the loaded snapshot summary."""
    orchestrator = _require_orchestrator(request)
    snapshot = orchestrator.holder.current
    return {
        "status": "ok",
        "generation": orchestrator.holder.generation,
        "signature": snapshot.signature,
        "loaded_at": snapshot.loaded_at.isoformat(),
        "rule_filters": snapshot.rule_filter_count,
        "author_filters": snapshot.author_filter_count,
        "subscriptions": len(snapshot.authors.subscriptions),
        "configuration_errors": len(snapshot.errors),
    }


@app.post("/config/reload")
def reload_config(request: Request):
    """Rebuild the matching snapshot now instead of waiting for the monitor."""
    orchestrator = _require_orchestrator(request)
    changed = orchestrator.holder.reload()
    return {"reloaded": changed, "generation": orchestrator.holder.generation}


@app.get("/config/errors")
def config_errors(request: Request):
    """JSON: filters skipped because they failed to compile."""
    snapshot = _require_orchestrator(request).holder.current
    return [error.to_dict() for error in snapshot.errors]


class _UvicornStartupFilter(logging.Filter):
    """Suppress uvicorn startup messages; we print our own in lifespan."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            msg = record.getMessage()
        except Exception:
            return True
        for noise in ("Started server process", "Waiting for application startup",
                      "Application startup complete", "running on"):
            if noise in msg:
                return False
        return True


def run_server(
    config: FeedmatchConfig,
    host: Optional[str] = None,
    port: Optional[int] = None,
    orchestrator: Optional[MatchingOrchestrator] = None,
    monitoring_enabled: bool = False,
) -> None:
    """Run the FastAPI app with Uvicorn."""
    import uvicorn

    effective_host = host or config.server_host
    effective_port = port or config.server_port

    if orchestrator is None:
        orchestrator = create_orchestrator(get_engine(), config.matching.title_author_separator)
    configure_app(app, orchestrator, matching=config.matching)
    app.state.monitoring_enabled = monitoring_enabled

    startup_filter = _UvicornStartupFilter()
    for name in ("uvicorn", "uvicorn.error", "uvicorn.lifespan"):
        logging.getLogger(name).addFilter(startup_filter)

    logger.info(f"Item intake available at: http://{effective_host}:{effective_port}/items")
    uvicorn.run(
        app,
        host=effective_host,
        port=effective_port,
        log_level="info",
        log_config=None,
    )
