from __future__ import annotations

import itertools
from typing import Callable

import pytest
from structlog.testing import capture_logs

from miller_notes.tab_hub.core.store import TreeStore


@pytest.fixture(autouse=True)
def structlog_events():
    """捕获 structlog 事件，避免输出混入 stdout"""
    with capture_logs() as events:
        yield events


def _deterministic_store() -> TreeStore:
    ids = itertools.count(1)
    clock = itertools.count(1000)
    return TreeStore(
        clock=lambda: next(clock),
        id_factory=lambda: f"tab-{next(ids)}",
    )


@pytest.fixture
def make_store() -> Callable[[], TreeStore]:
    return _deterministic_store


@pytest.fixture
def store() -> TreeStore:
    return _deterministic_store()
