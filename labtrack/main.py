import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from labtrack.config import settings
from labtrack.database import Base, engine, check_db_connection
from labtrack.utils.exceptions import AppException
from labtrack.middleware.error_handler import (
    app_exception_handler,
    validation_exception_handler,
    integrity_error_handler,
    sqlalchemy_error_handler,
    generic_exception_handler,
)

import labtrack.models  # noqa: F401  registers every table on Base.metadata
from labtrack.api.v1 import inventory
from labtrack.api.v1 import borrowings
from labtrack.api.v1 import maintenance
from labtrack.api.v1 import disposals
from labtrack.api.v1 import returning

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        version=API_VERSION,
        description="Laboratory equipment inventory: borrowing, maintenance, disposal and returns",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # ─── CORS ─────────────────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ─── Exception Handlers ───────────────────────────────────────────────────
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_error_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # ─── Routers ──────────────────────────────────────────────────────────────
    PREFIX = "/api/v1"
    app.include_router(inventory.router,   prefix=PREFIX, tags=["Inventory"])
    app.include_router(borrowings.router,  prefix=PREFIX, tags=["Borrowings"])
    app.include_router(maintenance.router, prefix=PREFIX, tags=["Maintenance"])
    app.include_router(disposals.router,   prefix=PREFIX, tags=["Disposals"])
    app.include_router(returning.router,   prefix=PREFIX, tags=["Returns"])

    # ─── Startup ──────────────────────────────────────────────────────────────
    @app.on_event("startup")
    def on_startup():
        ok = check_db_connection()
        logger.info("DB connected" if ok else "DB connection FAILED")
        if ok and settings.AUTO_CREATE_TABLES:
            Base.metadata.create_all(bind=engine)
            logger.info("Tables created (AUTO_CREATE_TABLES)")

    # ─── Health ───────────────────────────────────────────────────────────────
    @app.get("/health", tags=["Health"])
    def health():
        return {"status": "ok", "app": settings.APP_NAME, "version": API_VERSION}

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("labtrack.main:app", host=settings.APP_HOST, port=settings.APP_PORT,
                reload=settings.is_development)
