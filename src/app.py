"""Checkout FastAPI application.

Processes commands synchronously via HTTP; every request runs inside the
checkout domain context.

Usage:
    uvicorn app:create_app --factory --app-dir src --host 0.0.0.0 --port 8000

Set RUN_WORKERS=true to run the maintenance loops (notification retries,
expired stock holds, stale label claims) inside the web process; otherwise
run them with ``python src/server.py``.
"""

from contextlib import asynccontextmanager
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fulfillment.carrier import configure_carrier
from notifications.channel import configure_channels
from payments.gateway import configure_providers
from shared.api import register_exception_handlers
from shared.config import Settings
from shared.domain import checkout, init_domain
from shared.utils.db import setup_db
from shared.utils.logging import add_context, clear_context, configure_logging

logger = structlog.get_logger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings.from_env()

    configure_logging(settings.environment, settings.log_level, settings.log_dir)
    domain = init_domain(settings)
    setup_db(domain)
    configure_providers(settings.payment, use_fakes=not settings.is_production)
    configure_carrier(settings.carrier)
    configure_channels(settings.notifications)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        from shared.utils.maintenance import start_maintenance

        tasks = start_maintenance(domain, settings) if settings.run_workers else []
        yield
        for task in tasks:
            task.cancel()

    app = FastAPI(
        title="Checkout API",
        description="Order checkout, fulfillment and notifications",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        """Push the domain context and bind a request id to every log line of the request."""
        clear_context()
        request_id = request.headers.get("X-Request-Id") or uuid4().hex
        add_context(request_id=request_id, method=request.method, path=request.url.path)
        with checkout.domain_context():
            response = await call_next(request)
        response.headers["X-Request-Id"] = request_id
        return response

    register_exception_handlers(app)

    # ---------------------------------------------------------------------------
    # Routers
    # ---------------------------------------------------------------------------
    from fulfillment.api import shipping_router
    from inventory.api import inventory_router
    from notifications.api import notification_router
    from ordering.api import coupon_router, order_router, tax_router
    from payments.api import payment_router

    app.include_router(order_router)
    app.include_router(coupon_router)
    app.include_router(tax_router)
    app.include_router(shipping_router)
    app.include_router(payment_router)
    app.include_router(inventory_router)
    app.include_router(notification_router)

    @app.get("/health")
    async def health():
        return JSONResponse(
            content={"status": "ok", "environment": settings.environment, "domain": {"name": domain.name}}
        )

    logger.info("Application configured", environment=settings.environment, run_workers=settings.run_workers)
    return app
