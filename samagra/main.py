from contextlib import asynccontextmanager
from typing import Optional
import logging

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

# Load environment variables as early as possible; the Firebase SDK reads emulator hosts from os.environ
load_dotenv()

from .config import Settings, get_settings
from .database import build_engine, check_database, create_db_and_tables
from .exceptions import (
    AppError,
    app_error_handler,
    create_error_response,
    http_exception_handler,
    request_validation_handler,
)
from .infrastructure.audit.std_logger import StdAuditLogger
from .infrastructure.identity import build_identity_resolver
from .infrastructure.notifications import build_notifier
from .middleware import ErrorHandlingMiddleware, LoggingMiddleware, SecurityMiddleware
from .routers import appointments_router, doctors_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {app.state.settings.APP_NAME}...")
    create_db_and_tables(app.state.engine)
    logger.info("Database initialized successfully")
    yield
    logger.info(f"Shutting down {app.state.settings.APP_NAME}...")
    app.state.engine.dispose()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format=settings.LOG_FORMAT
    )

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
        docs_url=("/docs" if settings.DOCS_ENABLED else None),
        redoc_url=("/redoc" if settings.DOCS_ENABLED else None),
        openapi_url=("/openapi.json" if settings.DOCS_ENABLED else None)
    )

    # Process-scoped collaborators; request handlers reach them through app.state
    app.state.settings = settings
    app.state.engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)
    app.state.identity_resolver = build_identity_resolver(settings)
    app.state.notifier = build_notifier(settings)
    app.state.audit_logger = StdAuditLogger()

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    app.add_middleware(ErrorHandlingMiddleware, debug=settings.DEBUG)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(SecurityMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(appointments_router.router)
    app.include_router(doctors_router.router)

    @app.get("/health")
    def health(request: Request):
        try:
            check_database(request.app.state.engine)
        except SQLAlchemyError as e:
            logger.error(f"Health check failed: {e}")
            return JSONResponse(status_code=503, content=create_error_response("Database unavailable", 503))
        return {"success": True, "status": "healthy", "version": settings.APP_VERSION}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    _settings = get_settings()
    uvicorn.run(
        "samagra.main:app",
        host=_settings.HOST,
        port=_settings.PORT,
        log_level=_settings.LOG_LEVEL.lower()
    )
