from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.middleware import SlowAPIMiddleware

from app.api.v1 import api_router
from app.core.errors import register_exception_handlers
from app.core.health import APP_VERSION
from app.core.limiter import limiter
from app.core.logging import configure_logging
from app.core.response_envelope import register_response_envelope
from app.core.settings import settings
from app.events import lifespan
from app.middlewares.request_context import RequestContextMiddleware

OPENAPI_TAGS = [
    {"name": "auth", "description": "Registration, sign-in and token lifecycle"},
    {"name": "folders", "description": "Folder tree, ACL entries and access checks"},
    {"name": "health", "description": "Liveness and readiness probes"},
]


def _register_middleware(app: FastAPI) -> None:
    # Last added runs outermost.
    register_response_envelope(app)
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )


def create_app() -> FastAPI:
    configure_logging()
    is_production = settings.environment == "production"
    app = FastAPI(
        title="Document Workspace API",
        version=APP_VERSION,
        openapi_tags=OPENAPI_TAGS,
        docs_url=None if is_production else "/docs",
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.limiter = limiter
    register_exception_handlers(app)
    _register_middleware(app)
    app.include_router(api_router, prefix="/api/v1")
    return app


app = create_app()
