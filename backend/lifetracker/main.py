"""LifeTracker API - Entry point.

Runs the REST API, with the MCP tool server mounted at the root, under
uvicorn for Cloud Run deployment.
"""

import contextlib
import logging

import uvicorn
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Mount

from .core.errors import Unauthorized
from .shell.api import api_routes
from .shell.auth import current_owner_id, resolve_context
from .shell.config import Settings
from .shell.mcp_server import build_mcp
from .shell.store import DocumentStore
from .shell.wiring import Services, build_services


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

PUBLIC_PATHS = ("/health", "/api/health")


# ==================== Auth Middleware ====================


class AuthMiddleware(BaseHTTPMiddleware):
    """Attach the caller's RequestContext to /api and /mcp requests."""

    def __init__(self, app, settings: Settings) -> None:
        super().__init__(app)
        self.settings = settings

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        # Skip auth for health checks and anything outside the API and MCP
        if path in PUBLIC_PATHS or not (path.startswith("/api") or path.startswith("/mcp")):
            return await call_next(request)

        context = resolve_context(
            request.headers.get("Authorization"),
            allow_dev_identity=self.settings.allow_dev_identity,
            dev_user_id=self.settings.dev_user_id,
        )

        if context is None:
            if path.startswith("/api"):
                error = Unauthorized("Authentication required")
                return JSONResponse(error.to_dict(), status_code=error.status_code)
            return await call_next(request)

        request.state.context = context
        # Set user context for this request
        current_owner_id.set(context.owner_id)
        logger.debug("Authenticated user: %s", context.owner_id[:8])

        return await call_next(request)


# ==================== Create ASGI App ====================


def create_app(
    settings: Settings | None = None,
    store: DocumentStore | None = None,
    services: Services | None = None,
) -> Starlette:
    """Create the Starlette application.

    REST routes come first; when enabled, the MCP streamable_http_app() is
    mounted at root and handles /mcp/ internally.

    Args:
        settings: Runtime settings (read from the environment when None)
        store: Document store override, e.g. an in-memory store for tests
        services: Fully built service graph override
    """
    settings = settings or (services.settings if services else Settings.from_env())
    services = services or build_services(settings, store)

    routes = api_routes()

    mcp_app = None
    if settings.mcp_enabled:
        mcp_app = build_mcp(services).streamable_http_app()
        # Mount MCP app at root - it handles /mcp/ path internally
        routes.append(Mount("/", app=mcp_app))

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette):
        await services.store.initialize()
        logger.info("Document store ready: %s", services.store.backend_name)
        if mcp_app is None:
            yield
            return
        async with mcp_app.router.lifespan_context(app):
            yield

    app = Starlette(
        routes=routes,
        middleware=[
            Middleware(
                CORSMiddleware,
                allow_origins=list(settings.cors_origins),
                allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
                allow_headers=["*"],
            ),
            Middleware(AuthMiddleware, settings=settings),
        ],
        lifespan=lifespan,
    )
    app.state.services = services

    return app


def main() -> None:
    """Run the server."""
    settings = Settings.from_env()
    logging.getLogger().setLevel(settings.log_level)

    logger.info("Starting LifeTracker API on %s:%d (%s)", settings.host, settings.port, settings.app_env)

    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
