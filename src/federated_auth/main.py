"""Federated Auth Service

Main FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from federated_auth.api.routes import auth
from federated_auth.config.settings import get_settings
from federated_auth.core.auth import FirebaseAuthStrategy, StrategyContext
from federated_auth.infrastructure.database import close_db, init_db

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    settings = get_settings()

    # Startup
    logger.info(f"Starting {settings.service_name} v{settings.service_version}")
    logger.info(f"Environment: {settings.environment}")

    if settings.create_schema_on_startup:
        await init_db()
        logger.info("User directory schema ready")

    # Credential errors are fatal: the service must not start without a verifier
    strategy = FirebaseAuthStrategy()
    await strategy.init(StrategyContext(options=settings.strategy_options()))
    app.state.strategy = strategy

    yield

    # Shutdown
    logger.info("Shutting down Federated Auth Service")
    await strategy.destroy()
    await close_db()


app = FastAPI(
    title="Federated Auth Service",
    version=settings.service_version,
    description="Firebase ID token authentication with local user federation",
    lifespan=lifespan
)

app.include_router(auth.router, tags=["authentication"])


@app.get("/health")
async def root_health_check():
    """Root health check endpoint"""
    return {
        "status": "healthy",
        "service": settings.service_name,
        "version": settings.service_version,
        "environment": settings.environment
    }


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler for unhandled errors"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred. Please try again later."
        }
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "federated_auth.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
