# scheduler/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from scheduler.config import settings
from scheduler.db import init_db
from scheduler.errors import (
    AlreadyExists,
    InconsistentStateError,
    NotFound,
    PersistenceFailure,
    ValidationError,
)
from scheduler.logging import setup_logging
from scheduler.routers import (
    appointments_routes,
    auth_routes,
    availability_routes,
    businesses_routes,
    users_routes,
    waitlist_routes,
)

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

app.include_router(auth_routes.router)
app.include_router(users_routes.router)
app.include_router(businesses_routes.router)
app.include_router(availability_routes.router)
app.include_router(appointments_routes.router)
app.include_router(waitlist_routes.router)


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(AlreadyExists)
async def already_exists_handler(request: Request, exc: AlreadyExists):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(PersistenceFailure)
async def persistence_failure_handler(request: Request, exc: PersistenceFailure):
    logger.warning("Retryable failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": str(exc), "retryable": True})


@app.exception_handler(InconsistentStateError)
async def inconsistent_state_handler(request: Request, exc: InconsistentStateError):
    logger.error("Refusing %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Stored schedule is inconsistent; operation refused", "retryable": False},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.critical(f"Unhandled exception for request {request.method} {request.url.path}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"message": "An internal server error occurred."},
    )
