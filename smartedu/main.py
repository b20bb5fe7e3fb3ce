"""
FastAPI application factory.
"""
import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from smartedu.api.errors import register_exception_handlers
from smartedu.container import build_container
from smartedu.core.config import Settings, get_settings
from smartedu.core.database import build_session_factory, create_engine_from_settings, init_db
from smartedu.core.logging import configure_logging

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, session_factory: Optional[sessionmaker] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    if session_factory is None:
        engine = create_engine_from_settings(settings)
        session_factory = build_session_factory(engine)
    init_db(session_factory.kw["bind"])

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
    )
    app.state.container = build_container(settings, session_factory)

    report = app.state.container.registry.validate_configuration()
    if not report.is_valid:
        logger.warning(f"Permission configuration problems: {report.errors}")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app, settings)

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Basic health check endpoint."""
        return {
            "status": "healthy",
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
        }

    @app.get("/health/ready", tags=["Health"])
    def readiness_check(request: Request):
        """Readiness check endpoint."""
        factory = request.app.state.container.session_factory
        try:
            with factory() as db:
                db.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.error(f"Database health check failed: {e}")
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"status": "not_ready", "checks": {"database": False}},
            )
        return {"status": "ready", "checks": {"database": True}}

    logger.info(f"{settings.APP_NAME} {settings.APP_VERSION} started in {settings.ENVIRONMENT} mode")
    return app


def run() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "smartedu.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development(),
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
