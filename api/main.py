"""scadscene FastAPI Application"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from dotenv import load_dotenv
load_dotenv()  # Load .env file

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routes import health, scene

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan handler."""
    logger.info("Starting scadscene API...")
    yield
    scene.reset_pipeline()
    logger.info("Shutting down scadscene API...")


app = FastAPI(
    title="scadscene",
    description="Solid-model AST to renderable scene conversion API",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(scene.router, prefix="/api/scene", tags=["Scene"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "scadscene",
        "version": "0.1.0",
        "status": "running",
        "docs": "/docs",
    }
