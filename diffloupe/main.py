"""
DiffLoupe Backend - FastAPI Application Entry Point
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from diffloupe.routers import analyze, config
from diffloupe.services.config_manager import ConfigManager

logger = logging.getLogger("diffloupe")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - startup and shutdown logic"""
    logger.info("Starting DiffLoupe backend...")
    config_manager = ConfigManager.get_instance()
    logger.info(
        "ConfigManager initialized (%s, provider: %s)",
        config_manager.config_file,
        config_manager.get("provider"),
    )
    yield
    logger.info("Shutting down DiffLoupe backend...")


app = FastAPI(
    title="DiffLoupe Backend",
    description="Intent and risk analysis for diffs too large for a single model context",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(analyze.router, prefix="/api/analyze", tags=["analyze"])
app.include_router(config.router, prefix="/api/config", tags=["config"])


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": "diffloupe-backend"}


def run():
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    server = ConfigManager.get_instance().get("server", {})
    uvicorn.run(app, host=server.get("host", "0.0.0.0"), port=server.get("port", 8000))


if __name__ == "__main__":
    run()
