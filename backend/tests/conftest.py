"""Shared fixtures: ASGI test client and per-test reset of module state."""

import httpx
import pytest

from app.main import app
from app.services import sessions
from app.services.sessions import InMemorySessionStore
from app.shopify.products import product_cache
from app.utils import gemini, r2, redis_store


@pytest.fixture(autouse=True)
def _reset_state():
    """Fresh session store, empty product cache and no cached SDK clients."""
    sessions.set_store(InMemorySessionStore())
    product_cache.clear()
    r2.reset_client()
    redis_store.reset_client()
    gemini.reset_client()
    yield
    sessions.set_store(None)
    product_cache.clear()
    r2.reset_client()
    redis_store.reset_client()
    gemini.reset_client()


@pytest.fixture
async def client():
    """httpx client bound to the FastAPI app, no network."""
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c
