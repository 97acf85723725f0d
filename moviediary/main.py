from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from dotenv import load_dotenv
from moviediary.routes import movies, admin
from moviediary.services.background_jobs import background_jobs
import os
import logging

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


# ============================================
# Application Lifespan Management
# ============================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifespan events

    Startup:
    - Start background jobs (popularity decay and rebuild)

    Shutdown:
    - Stop background jobs gracefully
    """
    logger.info("=" * 60)
    logger.info("🚀 MovieDiary API Starting...")
    logger.info(f"   Environment: {os.getenv('ENVIRONMENT', 'development')}")
    logger.info(f"   Cache backend: {os.getenv('CACHE_BACKEND', 'memory')}")
    logger.info("=" * 60)

    try:
        background_jobs.start()
    except Exception as e:
        logger.error(f"Failed to start background jobs: {str(e)}")

    yield

    logger.info("=" * 60)
    logger.info("🛑 MovieDiary API Shutting Down...")
    try:
        background_jobs.shutdown()
        logger.info("   Background jobs stopped")
    except Exception as e:
        logger.error(f"Error stopping background jobs: {str(e)}")
    logger.info("=" * 60)


app = FastAPI(
    title="MovieDiary API",
    description="Cursor-paginated movie listings backed by the TMDB catalog",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# CORS - Whitelist allowed origins
allowed_origins = [
    "http://localhost:3000",
    "http://localhost:5173",
]
if production_url := os.getenv("FRONTEND_URL"):
    allowed_origins.append(production_url)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


# ============================================
# Exception Handlers
# ============================================

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Return HTTP errors (including catalog 502s) as JSON"""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail}
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """
    Catch-all handler. A cache backend outage lands here as a 500;
    there is no fallback path for it.
    """
    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )


# ============================================
# Routes
# ============================================

@app.get("/", tags=["Health"])
async def root():
    """Basic health check"""
    return {
        "message": "MovieDiary API",
        "version": "1.0.0",
        "status": "healthy",
        "docs": "/docs"
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Detailed health check for monitoring"""
    return {
        "status": "healthy",
        "api_version": "1.0.0",
        "timestamp": __import__("datetime").datetime.now(__import__("datetime").timezone.utc).isoformat(),
        "background_jobs": background_jobs.scheduler.running,
    }


app.include_router(movies.router)

if os.getenv("ENABLE_ADMIN_ROUTES", "true").lower() == "true":
    app.include_router(admin.router)  # Background jobs management


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
        log_level="info"
    )
