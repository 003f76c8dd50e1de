# ============================================================================
# FastAPI Application Entry Point
# ============================================================================
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from redis.exceptions import RedisError

from app.config import get_settings
from app.core.exceptions import MathWizardException

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

settings = get_settings()

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown"""
    logger.info(f"🚀 Starting {settings.APP_NAME}...")

    # Register models on Base.metadata before create_all
    from app import models  # noqa: F401
    from app.core.database import engine, Base

    # Initialize database tables
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("✅ Database tables created/verified")
    except Exception as e:
        logger.error(f"❌ Database initialization failed: {e}")
        raise

    # Initialize Redis (optional - sessions and live updates degrade without it)
    try:
        from app.core.redis import redis_client
        await redis_client.ping()
        logger.info("✅ Redis connected")
    except (RedisError, OSError) as e:
        logger.warning(f"⚠️ Redis connection failed (non-critical): {e}")

    # Question generator (Gemini when a key is configured, templates otherwise)
    from app.services.practice.question_generator import QuestionGenerator
    app.state.question_generator = QuestionGenerator()
    if app.state.question_generator.ai_enabled:
        logger.info(f"✅ Gemini question generation enabled ({settings.GEMINI_MODEL})")
    else:
        logger.info("ℹ️ GEMINI_API_KEY not set, using template questions only")

    logger.info("🎉 Application started successfully!")

    yield

    # Shutdown
    logger.info("👋 Shutting down...")
    from app.core.database import engine
    await engine.dispose()

app = FastAPI(
    title=settings.APP_NAME,
    description="Adaptive math practice for kids: generated questions, XP and two-player challenges",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json"
)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allow all for development
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Exception Handler
@app.exception_handler(MathWizardException)
async def math_wizard_exception_handler(request: Request, exc: MathWizardException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error_code": exc.error_code}
    )

# Health Check - Root level
@app.get("/")
async def root():
    return {
        "app": settings.APP_NAME,
        "status": "running",
        "docs": "/docs",
        "health": "/health"
    }

@app.get("/health")
async def health_check():
    return {"status": "healthy", "app": settings.APP_NAME}

from app.api.v1.router import api_router
app.include_router(api_router, prefix=settings.API_V1_PREFIX)
logger.info(f"✅ API router mounted at {settings.API_V1_PREFIX}")
