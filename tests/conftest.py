"""Shared pytest fixtures."""

from __future__ import annotations

import os

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from lorelink.data import LookupServices  # noqa: E402
from lorelink.services.settings import Settings  # noqa: E402
from lorelink.ui.events import EventBus  # noqa: E402
from tests.helpers import SAMPLE_RECORDS, ManualScheduler  # noqa: E402


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    for name in list(os.environ):
        if name.startswith("LORELINK_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("LORELINK_LOG_DIR", str(tmp_path / "logs"))


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def services() -> LookupServices:
    return LookupServices.from_records(SAMPLE_RECORDS)
