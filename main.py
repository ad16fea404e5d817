"""
Campus Events - FastAPI Backend
Main application entry point
"""

import os
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
import uvicorn

from app.core.config import settings
from app.core.db import engine, Base
from app.core.exceptions import AIServiceError, NotFoundError
from app.api import routes_ai, routes_organizer, routes_public, routes_user, ws
from app.services.repositories import use_firestore
from app.utils.responses import error_response

# Configure logging
logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    if not use_firestore():
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created")
    yield
    logger.info("Application shutdown")

# Create FastAPI application
app = FastAPI(
    title="Campus Events",
    description="Campus events: RSVPs, QR check-in, points leaderboard and AI assistant",
    version="1.0.0",
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount static files (generated event banners)
os.makedirs(settings.STATIC_DIR, exist_ok=True)
app.mount("/static", StaticFiles(directory=settings.STATIC_DIR), name="static")

@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return error_response(
        message=f"{exc.resource} not found",
        error_code=exc.error_code,
        details={"id": exc.identifier},
        status_code=404
    )

@app.exception_handler(AIServiceError)
async def ai_unavailable_handler(request: Request, exc: AIServiceError):
    return error_response(
        message=str(exc),
        error_code=exc.error_code,
        status_code=503
    )

# Include routers
app.include_router(routes_public.router, tags=["public"])
app.include_router(routes_user.router, tags=["user"])
app.include_router(routes_organizer.router, prefix="/organizer", tags=["organizer"])
app.include_router(routes_ai.router, prefix="/ai", tags=["ai"])
app.include_router(ws.router, prefix="/ws", tags=["websocket"])

# Note: Run this ASGI app directly with Uvicorn or Hypercorn. For Gunicorn,
# use `uvicorn.workers.UvicornWorker` instead of wrapping the app.

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="127.0.0.1",
        port=8000,
        reload=True
    )
