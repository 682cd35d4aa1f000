"""
Test Configuration and Fixtures

This module provides:
- Kvrocks isolation with worker-specific key prefixes
- An in-memory Redis (fakeredis, Lua enabled) installed into the kvrocks_client singleton
- An HTTP client bound to the test app over ASGI

Architecture:
- Unit tests (test/**/unit/): mocks only, no store
- Integration tests (test/**/integration/): BookingRepoImpl / HTTP against fakeredis
"""

# =============================================================================
# CRITICAL: Environment setup MUST happen before any other imports
# This ensures KVROCKS_KEY_PREFIX is set before modules that read it at import
# time (e.g., key_str_generator.py, settings)
# =============================================================================
import os
from pathlib import Path


def _early_setup_test_environment() -> None:
    """Set test environment variables before any module imports."""
    worker_id = os.environ.get('PYTEST_XDIST_WORKER', 'master')
    if worker_id == 'master':
        os.environ['KVROCKS_KEY_PREFIX'] = 'test_'
    else:
        os.environ['KVROCKS_KEY_PREFIX'] = f'test_{worker_id}_'

    # Create test log directory
    test_log_dir = Path(__file__).parent / 'test_log'
    test_log_dir.mkdir(exist_ok=True)
    os.environ['TEST_LOG_DIR'] = str(test_log_dir)

    # Never reach a real email provider from tests
    os.environ['RESEND_API_KEY'] = ''
    os.environ.setdefault('ADMIN_PASSWORD', 'admin')


# Call immediately to set env vars before any imports
_early_setup_test_environment()

from collections.abc import AsyncGenerator  # noqa: E402

from fakeredis import FakeAsyncRedis, FakeServer  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
import pytest_asyncio  # noqa: E402

from src.platform.state.kv_store import KvStore  # noqa: E402
from src.platform.state.kvrocks_client import kvrocks_client  # noqa: E402
from src.platform.state.lua_script_executor import lua_script_executor  # noqa: E402


@pytest_asyncio.fixture(scope='function')
async def fake_kvrocks() -> AsyncGenerator[FakeAsyncRedis, None]:
    """Fresh in-memory store per test, installed as the application's Kvrocks client."""
    client = FakeAsyncRedis(server=FakeServer(), decode_responses=True)
    kvrocks_client.use_client(client)
    await lua_script_executor.initialize(client=client)

    yield client

    await client.flushall()
    await kvrocks_client.disconnect()


@pytest_asyncio.fixture(scope='function')
async def kv_store(fake_kvrocks: FakeAsyncRedis) -> KvStore:
    return KvStore()


@pytest_asyncio.fixture(scope='function')
async def async_client(fake_kvrocks: FakeAsyncRedis) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the test app; the test lifespan runs around each test."""
    from test.test_main import app, lifespan_for_tests

    async with lifespan_for_tests(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url='http://test') as client:
            yield client
