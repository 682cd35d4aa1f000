"""
Production FastAPI Application

Slot booking API backed by Kvrocks, with confirmation emails sent in the background.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import anyio
from fastapi import FastAPI
from fastapi.responses import RedirectResponse
import uvicorn

from src.platform.app_factory import create_app
from src.platform.config.core_setting import settings
from src.platform.config.di import container
from src.platform.config.wire_modules import WIRE_MODULES
from src.platform.logging.loguru_io import Logger
from src.platform.observability.tracing import TracingConfig
from src.platform.state.kvrocks_client import kvrocks_client
from src.platform.state.lua_script_executor import lua_script_executor


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Store connection, Lua scripts and the notification task group live for the app lifetime."""
    Logger.base.info('🚀 [Slot Booking] Starting up...')

    tracing = TracingConfig(service_name='slot-booking')
    tracing.setup()
    tracing.instrument_redis()
    Logger.base.info('📊 [Slot Booking] OpenTelemetry tracing configured')

    container.wire(modules=WIRE_MODULES)
    Logger.base.info('🔌 [Slot Booking] Dependency injection wired')

    # Fails fast if Kvrocks is unreachable
    client = await kvrocks_client.initialize()
    Logger.base.info('📡 [Slot Booking] Kvrocks initialized')

    await lua_script_executor.initialize(client=client)
    Logger.base.info(
        f'🔥 [Slot Booking] Lua scripts loaded (mode={settings.SLOT_RESERVATION_MODE})'
    )

    # Confirmation emails run here; exiting the group waits for them
    async with anyio.create_task_group() as tg:
        container.background_task_group.override(tg)
        container.notification_trigger.reset()
        Logger.base.info('✅ [Slot Booking] Ready to serve requests')

        yield

        Logger.base.info('🛑 [Slot Booking] Shutting down, waiting for pending notifications...')

    container.background_task_group.reset_override()

    await kvrocks_client.disconnect()
    Logger.base.info('📡 [Slot Booking] Kvrocks disconnected')

    # Flush remaining spans
    tracing.shutdown()
    Logger.base.info('📊 [Slot Booking] Tracing shutdown complete')

    container.unwire()

    Logger.base.info('👋 [Slot Booking] Shutdown complete')


app = create_app(lifespan=lifespan)


@app.get('/')
async def root() -> RedirectResponse:
    """Redirect to the OpenAPI docs."""
    return RedirectResponse(url='/docs')


if __name__ == '__main__':
    uvicorn.run('src.main:app', host='0.0.0.0', port=8000, reload=settings.DEBUG)
