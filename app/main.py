import threading
from typing import Optional

from fastapi import FastAPI

from app.api.v1.router import v1_router
from app.core.config import Settings, get_settings
from app.core.error_handlers import register_error_handlers
from app.core.logging import configure_logging
from app.core.middleware import RequestIdMiddleware
from app.ledger.client import LedgerClient


def create_app(
    settings: Optional[Settings] = None,
    ledger_client: Optional[LedgerClient] = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
    )

    app.state.settings = settings

    # Ledger client: injected (tests) or built on first use from settings
    app.state.ledger_client = ledger_client
    app.state.ledger_client_lock = threading.Lock()

    # Middleware: Request ID
    app.add_middleware(RequestIdMiddleware, header_name=settings.request_id_header)

    # Domain failures -> HTTP
    register_error_handlers(app)

    # API v1
    app.include_router(v1_router, prefix=settings.api_prefix)

    return app


app = create_app()
