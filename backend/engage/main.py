from __future__ import annotations
import uuid
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from engage.config import settings
from engage.logging_setup import configure_logging
from engage.routes.system import router as system_router
from engage.routes.circles import router as circles_router
from engage.routes.challenges import router as challenges_router
from engage.routes.submissions import router as submissions_router
from engage.routes.points import router as points_router
from engage.services.errors import LedgerError, PRECONDITION, CONFLICT, NOT_FOUND
import structlog

configure_logging()
log = structlog.get_logger()

_STATUS_FOR_CATEGORY = {
    PRECONDITION: 403,
    CONFLICT: 409,
    NOT_FOUND: 404,
}

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    log.info("startup", env=settings.environment, version=settings.app_version, git_sha=settings.git_sha)
    yield
    # Shutdown
    log.info("shutdown")

app = FastAPI(
    title=f"{settings.app_display_name} API",
    version=settings.app_version,
    lifespan=lifespan,
    description=f"{settings.app_display_name} API for circles, challenges, submissions and points"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.environment == "dev" else settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(system_router)
app.include_router(circles_router)
app.include_router(challenges_router)
app.include_router(submissions_router)
app.include_router(points_router)

@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    status_code = _STATUS_FOR_CATEGORY.get(exc.category, 400)
    log.info("request_rejected", error=exc.kind, detail=exc.message, path=request.url.path)
    return JSONResponse(status_code=status_code, content={"error": exc.kind, "detail": exc.message})

@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = rid
    structlog.contextvars.bind_contextvars(request_id=rid)
    response: Response = await call_next(request)
    response.headers["X-Request-ID"] = rid
    structlog.contextvars.clear_contextvars()
    return response
