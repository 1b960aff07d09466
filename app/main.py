"""SUPAWATCH — FastAPI Application Entry Point.

Backend project monitor: register projects, store alert rules, and read a
point-in-time dashboard of stats, resource usage and recent signups.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.database import init_db, test_connection
from app.api.project_routes import router as project_router
from app.api.rule_routes import router as rule_router
from app.core.logging import get_logger

logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    logger.info("🚀 SUPAWATCH starting up...")
    if test_connection():
        try:
            init_db()
        except Exception as e:
            logger.error(f"❌ Table creation failed: {e}")
    else:
        logger.error("❌ Database NOT connected — storage endpoints will fail")
    yield
    logger.info("SUPAWATCH shut down")


app = FastAPI(
    title="SUPAWATCH",
    description="Register backend projects, keep notification rules, and view health dashboards.",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(project_router)
app.include_router(rule_router)


@app.get("/health", tags=["System"])
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "supawatch",
        "version": "1.0.0",
    }
