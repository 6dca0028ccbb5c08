from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.middleware import SlowAPIMiddleware

from hrms.api.v1 import api_router
from hrms.core.errors import register_exception_handlers
from hrms.core.limiter import limiter
from hrms.core.logging import configure_logging
from hrms.core.response_envelope import register_response_envelope
from hrms.core.settings import settings
from hrms.events import lifespan
from hrms.middlewares.request_context import RequestContextMiddleware
from hrms.middlewares.security_headers import SecurityHeadersMiddleware


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="HRMS Departments", version="0.1.0", lifespan=lifespan)
    register_exception_handlers(app)
    register_response_envelope(app)
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(SecurityHeadersMiddleware, enable_hsts=settings.enable_hsts)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(api_router, prefix="/api/v1")
    return app


app = create_app()
