import time

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from .application.use_cases.reconcile_mentees import ReconcileMentees
from .config import settings
from .infrastructure.db import SessionLocal, engine
from .infrastructure.metrics import (
    metrics_endpoint,
    http_requests_total,
    http_request_duration_seconds
)
from .infrastructure.models import Base
from .infrastructure.repositories import CounselorRepository, StudentRepository
from .infrastructure.stream import StreamIdentityProvisioner
from .interfaces.http.errors import register_error_handlers
from .interfaces.http.routers import students as students_router
from .logging_setup import configure_logging

configure_logging()
logger = structlog.get_logger()

app = FastAPI(title="Student Onboarding Service", version="0.1.0")
app.state.limiter = Limiter(key_func=get_remote_address, storage_uri=settings.RATE_LIMIT_STORAGE_URI)
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
register_error_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()
    method = request.method
    path = request.url.path

    response = await call_next(request)

    duration = time.time() - start_time
    status_code = response.status_code
    http_requests_total.labels(method=method, endpoint=path, status=status_code).inc()
    http_request_duration_seconds.labels(method=method, endpoint=path).observe(duration)

    logger.info(
        "http_request",
        method=method,
        path=path,
        status_code=status_code,
        duration_ms=round(duration * 1000, 2)
    )
    return response


@app.on_event("startup")
async def on_startup():
    logger.info("Starting onboarding service", version="0.1.0")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database connection established")

    app.state.provisioner = StreamIdentityProvisioner(settings)

    # чиним студентов, которых не успели дописать куратору
    async with SessionLocal() as db:
        repaired = await ReconcileMentees(StudentRepository(db), CounselorRepository(db)).execute()
    if repaired:
        logger.warning("Reconciled counselor mentee links", repaired=repaired)


@app.on_event("shutdown")
async def on_shutdown():
    provisioner = getattr(app.state, "provisioner", None)
    if provisioner is not None:
        await provisioner.close()
    await engine.dispose()


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/metrics")
def metrics():
    """Prometheus metrics endpoint"""
    return metrics_endpoint()


app.include_router(students_router.router)
