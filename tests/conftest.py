"""
tests/conftest.py -- Shared test fixtures for VetDir tests.

This module provides:
  - records_store: a fresh, seeded RecordsStore per test
  - api_client: TestClient wired to a seeded store through a patched lifespan

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because the aggregation engine runs queries on worker threads and TestClient
runs the app on its own thread. Plain ':memory:' DBs are per-connection and
would present a blank schema to each worker thread. The named URI format
(file:name?mode=memory&cache=shared&uri=true) shares one in-memory instance
across all connections in the same process.
"""

from __future__ import annotations

import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.capabilities import HeaderCapabilityOracle
from cache.token import TokenCache
from core.config import Settings
from core.pipeline import build_aggregator
from records.store import RecordsStore
from tests.seed_data import make_store

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def records_store() -> Generator[RecordsStore, None, None]:
    store = make_store()
    yield store
    store.close()


def _patch_lifespan(store: RecordsStore):
    """Return an async context manager that replaces the real lifespan.

    Wires the seeded store into app.state. The contact directory and the
    credentialing platform are left unconfigured, so those two sources report
    "unavailable" without any network traffic.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        settings = Settings(contact_directory_url="", credential_api_url="")
        app.state.records = store
        app.state.aggregator = build_aggregator(settings, store, TokenCache(MagicMock()))
        app.state.capability_oracle = HeaderCapabilityOracle("X-Capabilities")
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[TestClient, None, None]:
    """Yield a TestClient for API integration tests.

    base_url uses localhost so TrustedHostMiddleware accepts the requests.
    The rate limiter is reset so one module's traffic never throttles another.
    """
    store = make_store(f"vetdir_api_{uuid.uuid4().hex}")
    app.router.lifespan_context = _patch_lifespan(store)
    limiter.reset()

    with TestClient(app, base_url="http://localhost", raise_server_exceptions=True) as client:
        yield client

    store.close()
