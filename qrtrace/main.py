# qrtrace/main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from qrtrace import __version__
from qrtrace.api.problem import make_problem, problem_from_error
from qrtrace.core.audit import new_trace
from qrtrace.core.config import get_settings
from qrtrace.core.logging import setup_logging
from qrtrace.db.base import Base, init_models
from qrtrace.db.session import async_engine, close_engines
from qrtrace.domain.errors import TraceabilityError

settings = get_settings()
setup_logging(settings.LOG_LEVEL, json=settings.JSON_LOG)
logger = logging.getLogger("qrtrace")


@asynccontextmanager
async def lifespan(_app: FastAPI):
    init_models()
    # 本地 sqlite 直接建表；PostgreSQL 走 alembic upgrade head
    if async_engine.url.get_backend_name() == "sqlite":
        async with async_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    logger.info("qrtrace %s started (env=%s)", __version__, settings.ENV)
    yield
    await close_engines()


app = FastAPI(
    title="QR-Trace",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://127.0.0.1:5173",
        "http://localhost:5173",
        "http://127.0.0.1:8000",
        "http://localhost:8000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def _unhandled_exc(_req: Request, exc: Exception):
    logger.exception("UNHANDLED_EXC: %s", exc)
    return JSONResponse(
        status_code=500,
        content={
            "detail": make_problem(
                status_code=500, error_code="INTERNAL_ERROR", message="Internal server error"
            )
        },
    )


@app.exception_handler(RequestValidationError)
async def _validation_exc(_req: Request, exc: RequestValidationError):
    safe = jsonable_encoder(exc.errors())
    return JSONResponse(status_code=422, content={"detail": safe})


@app.exception_handler(HTTPException)
async def _http_exc(_req: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(TraceabilityError)
async def _domain_exc(req: Request, exc: TraceabilityError):
    trace = new_trace(f"http:{req.url.path}")
    logger.info("%s on %s (trace=%s): %s", exc.code, req.url.path, trace.trace_id, exc.message)
    problem = problem_from_error(exc, trace_id=trace.trace_id)
    return JSONResponse(status_code=problem["http_status"], content={"detail": problem})


# ===========================
#          挂载路由
# ===========================
from qrtrace.api.routers.completions import router as completions_router  # noqa: E402
from qrtrace.api.routers.documents import router as documents_router  # noqa: E402
from qrtrace.api.routers.scan import router as scan_router  # noqa: E402
from qrtrace.metrics import router as metrics_router  # noqa: E402

app.include_router(scan_router)
app.include_router(completions_router)
app.include_router(documents_router)
app.include_router(metrics_router)


@app.get("/")
async def root():
    return {"name": "QR-Trace", "version": __version__}


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}
