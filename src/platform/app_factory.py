"""
FastAPI App Factory

One place that assembles the booking API, shared by `src.main` and the test app.
"""

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from src.platform.config.core_setting import settings
from src.platform.exception.exception_handlers import register_exception_handlers
from src.platform.observability.tracing import TracingConfig
from src.service.booking.driving_adapter.http_controller.admin_controller import (
    router as admin_router,
)
from src.service.booking.driving_adapter.http_controller.booking_controller import (
    router as booking_router,
)


API_ROUTERS = (
    (booking_router, '/api/bookings', 'booking'),
    (admin_router, '/api/admin', 'admin'),
)


def create_app(
    *,
    lifespan: Callable[[FastAPI], AbstractAsyncContextManager[Any]],
    title_suffix: str = '',
    service_name: str = 'slot-booking',
) -> FastAPI:
    """
    Args:
        lifespan: startup/shutdown context (store connection, Lua scripts, task group)
        title_suffix: appended to the OpenAPI title, e.g. " (Test)"
        service_name: resource name reported on spans
    """
    app = FastAPI(
        title=f'{settings.PROJECT_NAME}{title_suffix}',
        description='Time-slot booking API: one booking per slot, admin-only cancellation',
        version=settings.VERSION,
        lifespan=lifespan,
    )

    # Instrument before routes are mounted
    TracingConfig(service_name=service_name).instrument_fastapi(app=app)

    app.add_middleware(
        CORSMiddleware,  # type: ignore
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,  # admin cookie
        allow_methods=['GET', 'POST', 'PUT', 'DELETE'],
        allow_headers=['*'],
    )
    register_exception_handlers(app)

    for router, prefix, tag in API_ROUTERS:
        app.include_router(router, prefix=prefix, tags=[tag])

    @app.get('/health')
    async def health_check() -> dict[str, str]:
        """Liveness only; the store is not pinged."""
        return {
            'status': 'healthy',
            'service': settings.PROJECT_NAME,
            'reservation_mode': settings.SLOT_RESERVATION_MODE,
        }

    @app.get('/metrics')
    async def get_metrics() -> PlainTextResponse:
        return PlainTextResponse(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app
