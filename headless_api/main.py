"""Headless API - FastAPI Application Factory.

``create_app`` is the composition root: the token store, credential
verifier, user deserializer and CSRF guard are built here (or passed in)
and handed explicitly to the bearer middleware and the token endpoints.
"""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from starlette.responses import JSONResponse

from headless_api.api import build_api_router
from headless_api.api.health import router as health_router
from headless_api.core import Settings, async_session_maker, settings, setup_logging
from headless_api.core.errors import HeadlessAPIError
from headless_api.core.logging import get_logger
from headless_api.middleware import (
    BearerAuthMiddleware,
    BearerTokenExtractor,
    DoubleSubmitCSRFGuard,
    PrefixCORSMiddleware,
)
from headless_api.middleware.cors import API_CORS_METHODS
from headless_api.services.auth import AuthComponents, CSRFGuard
from headless_api.services.token_store import SQLAlchemyTokenStore, TokenStore, token_sweep_loop
from headless_api.services.users import CredentialVerifier, UserDeserializer, UserDirectory

logger = get_logger("main")


def task_done_callback(task: asyncio.Task[None]) -> None:
    """Log unhandled exceptions from background tasks."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Background task {task.get_name()} failed: {exc}")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    cfg: Settings = app.state.settings
    setup_logging(
        level=cfg.log_level,
        format_type="structured" if not cfg.debug else "dev",
    )
    logger.info(f"Starting {cfg.app_name} v{cfg.app_version} at {cfg.api_prefix}")

    tasks: list[asyncio.Task[None]] = []
    store = app.state.auth_components.token_store
    if cfg.bearer_tokens_enabled and isinstance(store, SQLAlchemyTokenStore):
        sweep = asyncio.create_task(
            token_sweep_loop(store, cfg.token_sweep_interval_seconds),
            name="bearer-token-sweep",
        )
        sweep.add_done_callback(task_done_callback)
        tasks.append(sweep)

    yield

    logger.info("Shutting down...")
    for task in tasks:
        task.cancel()
    if tasks:
        await asyncio.gather(*tasks, return_exceptions=True)


async def api_error_handler(request: Request, exc: HeadlessAPIError) -> JSONResponse:
    """Render taxonomy errors; server-side failures never leak details."""
    if exc.status_code >= 500:
        logger.error(
            f"Internal error on {request.method} {request.url.path}: {exc}",
            exc_info=exc,
        )
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_body(), headers=headers)


def create_app(
    cfg: Settings | None = None,
    *,
    token_store: TokenStore | None = None,
    credential_verifier: CredentialVerifier | None = None,
    user_deserializer: UserDeserializer | None = None,
    csrf_guard: CSRFGuard | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Collaborators that are not passed in default to the SQLAlchemy-backed
    token store and user directory, and the double-submit CSRF guard.
    """
    cfg = cfg or settings

    if token_store is None:
        token_store = SQLAlchemyTokenStore(
            async_session_maker, timeout_seconds=cfg.token_store_timeout_seconds
        )
    if credential_verifier is None or user_deserializer is None:
        directory = UserDirectory(async_session_maker)
        credential_verifier = credential_verifier or directory
        user_deserializer = user_deserializer or directory
    if csrf_guard is None:
        csrf_guard = DoubleSubmitCSRFGuard(
            session_cookie_name=cfg.session_cookie_name,
            cookie_name=cfg.csrf_cookie_name,
            header_name=cfg.csrf_header_name,
            trusted_origins=cfg.trusted_origins_list,
        )

    components = AuthComponents(
        token_store=token_store,
        credential_verifier=credential_verifier,
        user_deserializer=user_deserializer,
        csrf_guard=csrf_guard,
        token_lifetime_seconds=cfg.bearer_token_lifetime_seconds,
        call_timeout_seconds=cfg.token_store_timeout_seconds,
        bearer_tokens_enabled=cfg.bearer_tokens_enabled,
    )

    app = FastAPI(
        title=cfg.app_name,
        description="REST API with bearer-token authentication",
        version=cfg.app_version,
        lifespan=lifespan,
        docs_url="/docs" if cfg.debug else None,
        redoc_url="/redoc" if cfg.debug else None,
        openapi_url="/openapi.json" if cfg.debug else None,
    )
    app.state.settings = cfg
    app.state.auth_components = components

    app.add_exception_handler(HeadlessAPIError, api_error_handler)  # type: ignore[arg-type]

    app.add_middleware(
        BearerAuthMiddleware,
        prefix=cfg.api_prefix,
        components=components,
        extractor=BearerTokenExtractor(
            query_key=cfg.bearer_query_key,
            body_key=cfg.bearer_body_key,
        ),
    )

    # CORS - MUST be outermost (added last in Starlette LIFO order) so that
    # 401/403 responses from the bearer middleware carry CORS headers too.
    app.add_middleware(
        PrefixCORSMiddleware,
        prefix=cfg.api_prefix,
        allow_origins=cfg.cors_origins_list,
        allow_credentials=False,
        allow_methods=API_CORS_METHODS,
        allow_headers=[
            "Authorization",
            "Content-Type",
            "Accept",
            cfg.csrf_header_name,
        ],
    )

    app.include_router(health_router)
    app.include_router(build_api_router(cfg.api_prefix, cfg.bearer_tokens_enabled))

    return app


# Application instance
app = create_app()
