from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
from contextlib import asynccontextmanager
from typing import Optional

from entrysync import __version__
from entrysync.core.config import Settings, get_settings
from entrysync.core.database import Database
from entrysync.api.v1 import attendance, grades, courses
from entrysync.services.remote.sql import SqlRemoteStore

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Initialize database
        database = Database(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)
        await database.init_db()
        app.state.database = database
        app.state.record_store = SqlRemoteStore(database)
        logger.info(f"{settings.APP_NAME} started")

        yield

        await database.dispose()
        logger.info(f"{settings.APP_NAME} stopped")

    app = FastAPI(
        title=settings.APP_NAME,
        description="Batched attendance and grade entry records API",
        version=__version__,
        lifespan=lifespan
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include API routers
    app.include_router(attendance.router, prefix="/api/v1/attendance", tags=["attendance"])
    app.include_router(grades.router, prefix="/api/v1/grades", tags=["grades"])
    app.include_router(courses.router, prefix="/api/v1/courses", tags=["courses"])

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "version": __version__}

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request, exc):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "status_code": exc.status_code}
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request, exc):
        logger.error(f"Unhandled error on {request.url.path}: {exc}")
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "status_code": 500}
        )

    return app
