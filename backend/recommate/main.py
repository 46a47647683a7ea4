"""
Recommate - FastAPI Application

Main entry point for the Recommate backend.

Flow:
- Professor creates a request -> student fills it in through an access code
- Professor picks a template -> master letter + one letter per destination
- Letters are finalized, rendered to PDF and delivered per destination
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .config import FRONTEND_URL, LOG_LEVEL
from .database import init_db
from .routers import auth_router, requests_router, student_router, templates_router, letters_router

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    init_db()
    logger.info("Database initialized")
    yield

# Create FastAPI app
app = FastAPI(
    lifespan=lifespan,
    title="Recommate",
    description="""
    Recommate - Recommendation Letter Management

    ## Workflow
    1. **Requests**: professor issues an access code per student
    2. **Intake**: student submits details and destinations
    3. **Letters**: templates interpolated into a master letter and per-destination letters
    4. **Delivery**: finalized letters rendered to PDF and sent or marked per destination
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth_router, prefix="/api")
app.include_router(requests_router, prefix="/api")
app.include_router(student_router, prefix="/api")
app.include_router(templates_router, prefix="/api")
app.include_router(letters_router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint - API information."""
    return {
        "name": "Recommate",
        "version": __version__,
        "description": "Recommendation Letter Management",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__}


# For running with: python -m recommate.main
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
