"""
examsuite API - main entry point.
Creates FastAPI app, sets up lifespan (indexes + exam status scheduler), CORS,
registers all routes.
"""

import os
import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, APIRouter
from fastapi.middleware.cors import CORSMiddleware

from examsuite.config import logger, get_version_info
from examsuite.database import client, ensure_indexes
from examsuite.services.background import run_background_worker
from examsuite.routes import register_all_routes

# Global reference to the background worker task
_worker_task = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - starts/stops background worker"""
    global _worker_task

    logger.info("🚀 FastAPI app starting up...")
    try:
        await ensure_indexes()
    except Exception as e:
        logger.error(f"❌ Failed to ensure indexes: {e}")

    logger.info("🔄 Starting exam status scheduler...")
    _worker_task = asyncio.create_task(run_background_worker())
    logger.info("=" * 60)

    yield

    logger.info("🛑 FastAPI app shutting down...")
    if _worker_task and not _worker_task.done():
        logger.info("⏹️  Stopping background worker...")
        _worker_task.cancel()
        try:
            await _worker_task
        except asyncio.CancelledError:
            logger.info("✅ Background worker stopped cleanly")
    client.close()


# Create the main app with lifespan
app = FastAPI(title="examsuite API", lifespan=lifespan)

# Create a router with the /api prefix
api_router = APIRouter(prefix="/api")


@api_router.get("/version")
async def get_version():
    """Public version endpoint for deployment verification"""
    return get_version_info()


# Register all route modules on the api_router
register_all_routes(api_router)

# Include the api_router on the app
app.include_router(api_router)


# Root-level health check endpoint (for Kubernetes probes)
@app.get("/health")
async def root_health_check():
    """Health check for Kubernetes liveness/readiness probes"""
    return {"status": "healthy", "service": "examsuite API"}


# ============== CORS ==============

cors_origins_env = os.environ.get("CORS_ORIGINS")
cors_origins = [origin.strip() for origin in cors_origins_env.split(",")] if cors_origins_env else [
    "http://localhost:3000",
    "http://127.0.0.1:3000"
]

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=int(os.environ.get("PORT", 8001)))
