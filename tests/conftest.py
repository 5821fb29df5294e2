"""
Shared test fixtures.

Provides:
  • ``store`` – an open PersistentCacheStore on a temp database, driven
    by a ``clock`` that only moves when a test advances it
  • ``provider`` – an in-memory StubProvider (no external HTTP)
  • ``client`` – a FastAPI TestClient wired to a service container built
    around the stub provider and a temp database

The ``client`` fixture runs the full lifespan (store open / close).
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from playscanner.config import Settings
from playscanner.main import create_app
from playscanner.services.container import Services, build_services
from playscanner.services.providers.registry import ProviderRegistry
from playscanner.store import PersistentCacheStore
from tests.mocks.models import FakeClock
from tests.mocks.services import StubProvider

SECRET = "test-secret"


async def _no_sleep(_: float) -> None:
    pass


# ── Fixtures ───────────────────────────────────────────────────────────────


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
async def store(tmp_path, clock):
    """Open store on a temp database; closed after the test."""
    s = PersistentCacheStore(tmp_path / "cache.db", default_ttl=3600, clock=clock)
    await s.open()
    yield s
    await s.close()


@pytest.fixture()
def provider() -> StubProvider:
    return StubProvider()


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        db_path=str(tmp_path / "api.db"),
        collect_secret=SECRET,
        timezone="UTC",
        collect_provider="stub",
        cities=("London",),
        days_ahead=2,
        request_delay_seconds=0,
        use_cached_mode=True,
    )


@pytest.fixture()
def services(settings: Settings, provider: StubProvider) -> Services:
    registry = ProviderRegistry()
    registry.register(provider)
    return build_services(settings, registry=registry, sleep=_no_sleep)


@pytest.fixture()
def _test_env(monkeypatch):
    """Disable rate limiting in tests."""
    from playscanner.rate_limit import limiter as _limiter

    monkeypatch.setattr(_limiter, "enabled", False)


@pytest.fixture()
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {SECRET}"}


@pytest.fixture()
def client(_test_env, services: Services) -> TestClient:
    """
    FastAPI TestClient around the stub-provider container.

    Uses a context manager so the lifespan runs (store open/close).
    """
    app = create_app(services=services)
    with TestClient(app, raise_server_exceptions=False) as tc:
        yield tc
