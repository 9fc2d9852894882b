from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.middleware import SlowAPIMiddleware

from loanadmin.api.v1 import api_router
from loanadmin.core.errors import register_exception_handlers
from loanadmin.core.limiter import limiter
from loanadmin.core.logging import configure_logging
from loanadmin.core.settings import settings
from loanadmin.events import register_event_handlers
from loanadmin.middlewares.request_context import RequestContextMiddleware


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Loan Admin Identity & Access", version="0.1.0")
    register_exception_handlers(app)
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(api_router, prefix="/api/v1")
    register_event_handlers(app)
    return app


app = create_app()
