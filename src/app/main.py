"""STORMNIGHT - typhoon preparedness simulation.

Main FastAPI application.
"""

import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from app.config import settings
from app.routers.game import router as game_router
from engine.narration import FallbackNarrator, NarrationClient
from engine.simulation.catalog import load_catalog
from engine.simulation.turn_engine import TurnEngine


def _configure_logging() -> None:
    """Route loguru to stderr at the configured level."""
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level.upper())


def _create_turn_engine() -> TurnEngine:
    """Load the choice catalog once and build the engine around it."""
    catalog = load_catalog(settings.catalog_path)
    if catalog.fallback:
        logger.warning("Choice catalog unusable; serving fallback choices only")
    else:
        logger.info(f"Choice catalog: {len(catalog)} choices (v{catalog.version})")
    return TurnEngine(catalog)


def _create_narrator() -> NarrationClient:
    narrator = NarrationClient(
        host=settings.ollama_host,
        model=settings.narration_model,
        timeout=settings.narration_timeout,
        enabled=settings.narration_enabled,
        fallback=FallbackNarrator(),
    )
    if settings.narration_enabled:
        logger.info(f"Narration: {settings.narration_model} @ {settings.ollama_host}")
    else:
        logger.info("Narration: scripted (model disabled)")
    return narrator


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    _configure_logging()
    logger.info(f"Starting {settings.app_name}...")

    app.state.turn_engine = _create_turn_engine()
    app.state.narrator = _create_narrator()
    app.state.sim_seed = settings.sim_seed
    if settings.sim_seed is not None:
        logger.info(f"Deterministic mode: SIM_SEED={settings.sim_seed}")

    logger.info("=" * 60)
    logger.info(f"  {settings.app_name} ONLINE")
    logger.info("=" * 60)

    yield

    logger.info(f"{settings.app_name} shutting down...")


# Create FastAPI app
app = FastAPI(
    title="STORMNIGHT",
    description="Typhoon preparedness turn-based simulation",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(game_router)


@app.get("/health")
async def health():
    """Health check endpoint."""
    engine = getattr(app.state, "turn_engine", None)
    return {
        "status": "operational" if engine is not None else "starting",
        "version": "0.1.0",
        "system": settings.app_name,
        "catalog_fallback": bool(engine and engine.catalog.fallback),
    }


def run() -> None:
    """Console entry point."""
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
