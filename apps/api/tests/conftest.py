"""Pytest configuration and fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterator

import pytest
from fastapi.testclient import TestClient

from app.core.clock import set_clock
from app.core.db import init_db, reset_engine
from app.modules.artifacts.service import create_artifact

# a Wednesday; its week starts Sunday 2026-10-11 00:00 UTC
START = datetime(2026, 10, 14, 12, 0, 0, tzinfo=timezone.utc)


class ManualClock:
    def __init__(self, start: datetime) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture
def clock() -> Iterator[ManualClock]:
    c = ManualClock(START)
    set_clock(c)
    yield c
    set_clock(None)


@pytest.fixture(autouse=True)
def db(tmp_path, monkeypatch, clock) -> Iterator[None]:
    """Fresh sqlite file per test, UTC week buckets."""
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{(tmp_path / 'force.db').as_posix()}")
    monkeypatch.setenv("WEEK_TZ", "UTC")
    monkeypatch.setenv("SWEEP_INTERVAL_SECONDS", "0")
    reset_engine()
    init_db()
    yield
    reset_engine()


@pytest.fixture
def client() -> Iterator[TestClient]:
    from app.main import app

    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_artifact() -> Callable[..., Dict[str, Any]]:
    def _make(**overrides: Any) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "name": "Position paper",
            "type": "paper",
            "ship_days": 7,
            "done_criteria": ["Abstract", "Three sections", "Sent to reviewer"],
            "external_recipient": "editor@example.com",
            "max_word_count": 100,
        }
        params.update(overrides)
        return create_artifact(**params)

    return _make