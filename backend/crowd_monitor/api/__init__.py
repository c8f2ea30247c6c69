"""
API Routes Package

This module exports the FastAPI routers for the crowd monitor.
"""

from .crowd_routes import router as crowd_router

__all__ = [
    "crowd_router",
]
