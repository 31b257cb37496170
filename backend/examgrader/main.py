"""
ExamGrader API - main entry point.
Creates the FastAPI app, ensures MongoDB indexes on startup, wires CORS,
request logging and the error handler, and registers all routes.
"""

import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, APIRouter, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import logger, get_version_info
from .database import close_client, ensure_indexes, get_database
from .errors import GradingError
from .routes import register_all_routes


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - indexes on startup, client close on shutdown"""
    logger.info("🚀 FastAPI app starting up...")
    await ensure_indexes(get_database())
    logger.info("REGISTERED ROUTES: %s", [r.path for r in app.routes])
    logger.info("=" * 60)

    yield

    logger.info("🛑 FastAPI app shutting down...")
    close_client()


app = FastAPI(title="ExamGrader API", lifespan=lifespan)

api_router = APIRouter(prefix="/api")


@api_router.get("/version")
async def get_version():
    """Public version endpoint for deployment verification"""
    return get_version_info()


register_all_routes(api_router)
app.include_router(api_router)


@app.get("/health")
async def root_health_check():
    """Health check for liveness/readiness probes"""
    return {"status": "healthy", "service": "ExamGrader API"}


@app.exception_handler(GradingError)
async def grading_error_handler(request: Request, exc: GradingError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


# ============== REQUEST LOGGING MIDDLEWARE ==============

@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    start_time = time.time()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    except Exception as e:
        logger.error(f"Request failed: {e}")
        raise
    finally:
        response_time_ms = int((time.time() - start_time) * 1000)
        logger.info(f"{request.method} {request.url.path} -> {status_code} ({response_time_ms}ms)")


# ============== CORS ==============

cors_origins_env = os.environ.get("CORS_ORIGINS")
cors_origins = [origin.strip() for origin in cors_origins_env.split(",")] if cors_origins_env else [
    "http://localhost:3000",
    "http://127.0.0.1:3000"
]

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)
