# app/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.config.settings import settings
from app.config.database import engine
from app.core.exceptions import register_exception_handlers
from app.core.logging_config import setup_logging
from app.core.middleware import setup_middleware
from app.api.v1.router import api_router
from app.modules.acceptance.probe import select_acceptance_strategy
from app.shared.database.models import Base

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    setup_logging(settings.log_level, settings.log_file)
    logger.info(f"🚀 {settings.app_name} starting (version {settings.version})")
    logger.info(f"🌍 Environment: {'Development' if settings.debug else 'Production'}")
    logger.info(f"🗄️ Database: {settings.database_url.split('@')[-1]}")
    logger.info(f"🧱 Strict transition graph: {'on' if settings.enforce_transition_graph else 'off'}")

    Base.metadata.create_all(bind=engine)
    app.state.acceptance_strategy = select_acceptance_strategy(engine, settings)

    yield

    # Shutdown
    logger.info(f"🛑 {settings.app_name} shutting down")

app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="Freight marketplace: shipments, bids and delivery lifecycle",
    docs_url="/docs",
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan
)

setup_middleware(app)
register_exception_handlers(app)

app.include_router(api_router, prefix="/api/v1")

@app.get("/")
async def root():
    return {
        "message": f"🚚 {settings.app_name}",
        "version": settings.version,
        "status": "running",
        "environment": "production" if not settings.debug else "development",
        "docs": "/docs",
        "api": "/api/v1"
    }

@app.get("/health")
async def health_check():
    strategy = getattr(app.state, "acceptance_strategy", None)
    return {
        "status": "healthy",
        "version": settings.version,
        "app": settings.app_name,
        "acceptance_strategy": strategy.name if strategy else None,
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
