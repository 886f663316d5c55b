from datetime import datetime, timedelta, timezone

import pytest

from src.backend.main import build_context
from src.backend.services import TodoService
from src.backend.settings import Settings


class FakeClock:
    """Deterministic clock advancing one second per reading."""

    def __init__(self, start=None):
        self.current = start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        self.current = self.current + timedelta(seconds=1)
        return self.current


@pytest.fixture(params=["memory", "sqlite"])
def settings(request, tmp_path):
    return Settings(
        persistence_backend=request.param,
        sqlite_db_path=str(tmp_path / "data" / "todos.db"),
        enable_scheduler=False,
        cleanup_interval_seconds=0.01,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def context(settings, clock):
    ctx = build_context(settings)
    ctx.clock = clock
    return ctx


@pytest.fixture
def service(context):
    return TodoService(context)
