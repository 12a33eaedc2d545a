# main.py
"""
App factory.

    uvicorn --factory main:create_app

Tests pass their own Settings / session factory / RPC client; in production
everything is built from the environment.
"""
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

if os.getenv("DEBUGPY", "0") == "1":
    import debugpy
    debugpy.listen(("0.0.0.0", 5678))

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from config.logging_config import configure_logging
from config.settings import Settings
from database import create_db_engine, create_session_factory
from middleware.rate_limit import limiter
from middleware.request_logging import RequestLoggingMiddleware
from routers.admin_routes import router as admin_router
from routers.project_routes import router as project_router
from routers.sponsored_routes import router as sponsored_router
from routers.subscribe_routes import router as subscribe_router
from routers.verify_twitter_routes import router as verify_twitter_router
from services.chain.rpc_client import BaseRpcClient
from services.errors import ServiceError

logger = logging.getLogger(__name__)


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("service_error path=%s status=%s detail=%s", request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("database_error path=%s error=%s", request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await app.state.rpc_client.aclose()


def create_app(
    settings: Optional[Settings] = None,
    session_factory: Optional[sessionmaker] = None,
    rpc_client: Optional[BaseRpcClient] = None,
) -> FastAPI:
    configure_logging()
    settings = settings or Settings.from_env()
    if session_factory is None:
        session_factory = create_session_factory(create_db_engine(settings))
    if rpc_client is None:
        rpc_client = BaseRpcClient(settings.base_rpc_url, timeout_sec=settings.rpc_timeout_sec)

    app = FastAPI(title="Sonarbot API", lifespan=lifespan)
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.rpc_client = rpc_client
    app.state.limiter = limiter

    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)

    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    app.include_router(project_router, prefix="/projects")
    app.include_router(sponsored_router, prefix="/sponsored")
    app.include_router(subscribe_router, prefix="/subscribe")
    app.include_router(admin_router, prefix="/admin")
    app.include_router(verify_twitter_router, prefix="/verify-twitter")

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app
