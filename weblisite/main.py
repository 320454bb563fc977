"""
Weblisite Backend - FastAPI Application Entry Point
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from weblisite.routers import config, files, generation
from weblisite.services.config_manager import ConfigManager
from weblisite.services.runtime import Runtime

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - startup and shutdown logic"""
    logger.info("[Backend] Starting Weblisite backend...")
    config_manager = ConfigManager.get_instance()
    # tests may install their own runtime before startup
    if getattr(app.state, "runtime", None) is None:
        app.state.runtime = Runtime(config_manager)
    logger.info(f"[Backend] Project directory: {app.state.runtime.store.project_dir}")

    yield

    logger.info("[Backend] Shutting down Weblisite backend...")
    await app.state.runtime.shutdown()


app = FastAPI(
    title="Weblisite Backend",
    description="Streaming website generation with structural validation and repair",
    version="1.0.0",
    lifespan=lifespan,
)

# The editor and preview run on other local ports
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(generation.router, prefix="/api", tags=["generation"])
app.include_router(files.router, prefix="/api/files", tags=["files"])
app.include_router(config.router, prefix="/api/config", tags=["config"])


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": "weblisite-backend"}


if __name__ == "__main__":
    import uvicorn

    server = ConfigManager.get_instance().get_config().get("server", {})
    uvicorn.run(app, host=server.get("host", "0.0.0.0"), port=int(server.get("port", 8000)))
