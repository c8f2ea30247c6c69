"""
Bus Crowd Monitor
Main FastAPI Application Entry Point

Initializes configuration, the crowd service (storage backend, seed data)
and the background sampler, and mounts the crowd API.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from dotenv import load_dotenv

from crowd_monitor import __version__
from crowd_monitor.crowd.exceptions import StorageError, ValidationError

# Load environment variables
load_dotenv()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events - startup and shutdown"""
    # Startup
    print("=" * 60)
    print("[STARTUP] Bus Crowd Monitor")
    print("=" * 60)

    from crowd_monitor.config import get_config
    cfg = get_config()
    crowd_config = cfg.get_crowd_config()
    print("[OK] Configuration loaded")

    from crowd_monitor.crowd import init_crowd_service
    service = init_crowd_service(crowd_config)

    if cfg.get('crowd.storage.seedOnStartup', True):
        service.seed(cfg.get('stations.catalog', []))

    if cfg.get('crowd.sampler.enabled', True):
        await service.sampler.start()

    print("=" * 60)
    print("[SERVER] Ready at http://localhost:8000")
    print("[DOCS] API docs at http://localhost:8000/docs")
    print("=" * 60)

    yield

    # Shutdown
    print("[SHUTDOWN] Shutting down...")

    try:
        await service.sampler.stop()
    except Exception as e:
        print(f"[SHUTDOWN] Error stopping crowd sampler: {e}")

    print("[SHUTDOWN] Complete")


# Create FastAPI application
app = FastAPI(
    title="Bus Crowd Monitor API",
    description="Crowd density analytics and prediction for bus transit monitoring",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)


def _cors_origins() -> list:
    from crowd_monitor.config import get_config
    return get_config().get('system.cors.origins', ["*"])


# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================
# Error Translation
# ============================================

@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    """Out-of-range readings and pattern keys -> 422"""
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    """Persistence failures -> 503"""
    print(f"[ERROR] {exc}")
    return JSONResponse(status_code=503, content={"detail": "Crowd storage unavailable"})


# ============================================
# Include API Routers
# ============================================

from crowd_monitor.api import crowd_router

# Crowd routes: /api/crowd/*
app.include_router(crowd_router)


# ============================================
# Root Endpoints
# ============================================

@app.get("/", tags=["root"])
async def root():
    """Root endpoint - API information"""
    return {
        "name": "Bus Crowd Monitor",
        "version": __version__,
        "status": "operational",
        "documentation": "/docs",
        "endpoints": {
            "readings": "/api/crowd/readings",
            "latest": "/api/crowd/latest/{stationId}",
            "patterns": "/api/crowd/patterns/{stationId}/{routeId}",
            "predictions": "/api/crowd/predictions/{stationId}/{routeId}",
            "analytics": "/api/crowd/analytics/{stationId}",
            "stations": "/api/crowd/stations",
            "summary": "/api/crowd/summary"
        }
    }


@app.get("/health", tags=["health"])
async def health_check():
    """Health check endpoint"""
    from crowd_monitor.crowd import get_crowd_service

    service = get_crowd_service()

    return {
        "status": "healthy" if service else "starting",
        "timestamp": time.time(),
        "storage": service.store.backend_name if service else None,
        "sampler": service.sampler.get_statistics() if service else None
    }


# ============================================
# Entry Point
# ============================================

if __name__ == "__main__":
    import uvicorn
    from crowd_monitor.config import get_config

    server = get_config().get('system.server', {})

    uvicorn.run(
        "crowd_monitor.main:app",
        host=server.get('host', "0.0.0.0"),
        port=server.get('port', 8000),
        reload=True,
        log_level="info"
    )
