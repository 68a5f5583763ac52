"""
Main FastAPI application entry point.
Configures the application, middleware, and includes routers.
"""
from dotenv import load_dotenv

# Load environment variables from .env file first
load_dotenv()

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from .auth.router import router as auth_router
from .doctors.router import router as doctors_router
from .database import Base, SessionLocal, engine
from .config import settings
from .auth import models  # noqa: F401  (register tables on Base.metadata)
from .core import audit_models  # noqa: F401
from .core.bootstrap import run_startup_tasks
from .exceptions import register_exception_handlers
from .core.middleware import setup_middlewares

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Create tables, seed roles and bootstrap the first admin before serving.

    A missing Patient role or unsafe JWT secrets abort startup.
    """
    logger.info(f"Starting ReVeda API ({settings.environment})...")
    # Alembic owns the schema in production; create_all covers dev and tests
    if not settings.is_production:
        Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        run_startup_tasks(db, settings)
    finally:
        db.close()
    yield
    logger.info("ReVeda API shutting down")

# Create FastAPI application
app = FastAPI(
    title="ReVeda API",
    description="OTP based authentication for the ReVeda app",
    version="1.0.0",
    lifespan=lifespan
)

# Register exception handlers
register_exception_handlers(app)

# Configure CORS middleware
origins = list(dict.fromkeys([
    "http://localhost:3000",  # Frontend development server
    settings.frontend_url,
]))

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["*"],
)

# Setup custom middleware
setup_middlewares(app, settings)

# Include routers
app.include_router(auth_router, prefix="/api/v1/auth", tags=["Authentication"])
app.include_router(doctors_router, prefix="/api/v1/doctors", tags=["Doctors"])

# Root endpoint
@app.get("/")
def root():
    """
    Root endpoint for API health check.
    
    Returns:
        dict: Simple welcome message
    """
    return {
        "success": True,
        "message": "ReVeda Backend API is running",
        "version": app.version,
        "environment": settings.environment
    }

# Health check endpoint
@app.get("/health")
def health_check():
    """
    Health check endpoint for monitoring.
    
    Returns:
        dict: Health status information
    """
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        database = "connected"
    except Exception as e:
        logger.error(f"Health check database error: {e!r}")
        database = "unreachable"
    finally:
        db.close()
    return {"status": "healthy" if database == "connected" else "degraded", "database": database}
