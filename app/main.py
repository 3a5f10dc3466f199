from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.cache.backend import RedisCache
from app.core.config import get_settings
from app.core.errors import StoreError, TaskServiceError
from app.core.logging import configure_logging
from app.database import create_db_and_tables, dispose_engine
from app.routers import summary, tasks

import logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings)
    await create_db_and_tables()

    cache_backend = RedisCache(settings)
    await cache_backend.connect()
    app.state.cache_backend = cache_backend
    yield
    await cache_backend.close()
    await dispose_engine()


app = FastAPI(
    title="Task Tracker API",
    description="Async task tracking API with SQLModel and a versioned Redis cache",
    swagger_ui_parameters={"displayRequestDuration": True},
    version="1.0.0",
    lifespan=lifespan,
)

# Include routers
app.include_router(tasks.router)
app.include_router(summary.router)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors: dict[str, list[str]] = {}
    for error in exc.errors():
        location = [str(part) for part in error["loc"] if part not in ("body", "query", "path")]
        errors.setdefault(".".join(location) or "body", []).append(error["msg"])
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"errors": errors})


@app.exception_handler(TaskServiceError)
async def task_error_handler(request: Request, exc: TaskServiceError):
    if isinstance(exc, StoreError):
        # details are in the log, not the response
        return JSONResponse(
            status_code=exc.status_code, content={"error": "Internal server error"}
        )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.get("/")
async def root():
    return {
        "message": "Welcome to Task Tracker API",
        "docs": "/docs",
        "version": "1.0.0",
    }


@app.get("/health")
async def health_check(request: Request):
    cache_backend = request.app.state.cache_backend
    return {
        "status": "healthy",
        "cache": {
            "reachable": await cache_backend.ping(),
            **cache_backend.get_stats(),
        },
    }


if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run("app.main:app", host=settings.host, port=settings.port)
