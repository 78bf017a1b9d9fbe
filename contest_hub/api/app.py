# api/app.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from contest_hub.api.deps import USER_HEADER
from contest_hub.api.routes import competitions, enrollments, events, submissions, teams
from contest_hub.config import Settings
from contest_hub.db.database import DataBase
from contest_hub.errors import ContestError, NotFound, Transient, ValidationError
from contest_hub.services.audit_log import audit_logger

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    db = DataBase()
    await db.create_all()
    logger.info("Schema ready, serving requests")
    yield
    await db.dispose()


async def contest_error_handler(request: Request, exc: ContestError) -> JSONResponse:
    if isinstance(exc, Transient):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    elif isinstance(exc, NotFound):
        logger.info("%s %s: %s", request.method, request.url.path, exc.message)
    else:
        logger.warning("%s %s rejected (%s): %s", request.method, request.url.path, exc.kind, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.kind, "message": exc.message})


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    return await contest_error_handler(request, ValidationError(problems or "Invalid request."))


def create_app() -> FastAPI:
    settings = Settings()
    app = FastAPI(title="Contest Hub", version="0.1.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def bind_audit_actor(request: Request, call_next):
        actor = (request.headers.get(USER_HEADER) or "").strip() or None
        token = audit_logger.bind_actor(actor)
        try:
            return await call_next(request)
        finally:
            audit_logger.unbind_actor(token)

    app.add_exception_handler(ContestError, contest_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    app.include_router(competitions.router)
    app.include_router(teams.router)
    app.include_router(enrollments.router)
    app.include_router(events.router)
    app.include_router(submissions.router)
    return app
