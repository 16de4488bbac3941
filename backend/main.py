"""
LeadBot Backend - Main Application Entry Point
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from leadbot.core.config import settings
from leadbot.core.langfuse_handler import flush_langfuse
from leadbot.core.logging import logger
from leadbot.api.deps import get_session_sweeper
from leadbot.api.routes import chat, admin


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management."""
    # Startup
    logger.info(f"Starting {settings.APP_NAME} in {settings.APP_ENV} mode")
    sweeper = get_session_sweeper() if settings.SESSION_SWEEPER_ENABLED else None
    if sweeper:
        sweeper.start()
    yield
    # Shutdown
    logger.info("Shutting down...")
    if sweeper:
        await sweeper.stop()
    flush_langfuse()


app = FastAPI(
    title=settings.APP_NAME,
    description="Lead Qualification Conversation Service",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:3001", "http://localhost:3002"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API Routers
app.include_router(chat.router, prefix="/chat", tags=["Chat"])
app.include_router(admin.router, prefix="/admin", tags=["Admin"])


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "env": settings.APP_ENV,
    }
