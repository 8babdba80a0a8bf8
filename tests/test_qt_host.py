"""Tests for the Qt presentation of reference tooltips."""

from __future__ import annotations

import pytest
import pytest_asyncio
from PySide6.QtCore import Qt

from lorelink.data import LookupServices
from lorelink.services.settings import Settings
from lorelink.ui import ReferenceContext, build_reference_context
from lorelink.ui.dom import ContentDocument
from lorelink.ui.events import EventBus
from lorelink.ui.presentation.qt_host import (
    ANCHOR_SCHEME,
    QtTooltipHost,
    ReferenceBrowser,
    ReferenceWindow,
    _key_name,
)
from tests.helpers import ManualScheduler

PAGE = '<p class="description">Cast {@spell Fireball} or {@spell Light}. <a href="https://example.com">site</a></p>'


@pytest.fixture
def host(qapp, event_bus: EventBus) -> QtTooltipHost:
    return QtTooltipHost(event_bus)


@pytest_asyncio.fixture
async def context(
    host: QtTooltipHost, settings: Settings, services: LookupServices, scheduler: ManualScheduler, event_bus: EventBus
) -> ReferenceContext:
    context = build_reference_context(
        settings,
        services,
        document=ContentDocument(PAGE),
        scheduler=scheduler,
        host=host,
        event_bus=event_bus,
    )
    host.attach(context.stack)
    await context.processor.process_region()
    return context


class TestHostProtocol:
    """The Qt host measures, sizes and copies for the stack manager."""

    def test_stack_requires_attach(self, host: QtTooltipHost) -> None:
        with pytest.raises(RuntimeError):
            _ = host.stack

    def test_measure_is_bounded(self, host: QtTooltipHost) -> None:
        width, height = host.measure("<p>" + "long words " * 200 + "</p>")

        assert 0 < width <= 360 + 16
        assert 0 < height <= 480 + 16 + 24

    def test_viewport_is_positive(self, host: QtTooltipHost) -> None:
        viewport = host.viewport()

        assert viewport.width > 0
        assert viewport.height > 0


class TestReferenceBrowser:
    @pytest.mark.asyncio
    async def test_refresh_maps_anchor_hrefs(self, host: QtTooltipHost, context: ReferenceContext) -> None:
        browser = ReferenceBrowser(host, context.document.body)

        fireball = browser.anchor_for(f"{ANCHOR_SCHEME}0")
        assert fireball is not None
        assert fireball["data-hover-name"] == "Fireball"
        assert not fireball.has_attr("href")
        assert context.document.select_one('a[href="https://example.com"]') is not None
        assert "Cast Fireball or Light." in browser.toPlainText()

        browser.dispose()


class TestFrames:
    """Frames follow the tooltip events published by the stack manager."""

    @pytest.mark.asyncio
    async def test_open_pin_and_close(
        self, host: QtTooltipHost, context: ReferenceContext, scheduler: ManualScheduler
    ) -> None:
        anchor = context.document.select_one('a[data-hover-name="Fireball"]')
        context.stack.pointer_over(anchor, 40, 40)
        scheduler.advance(0.2)
        await context.stack.settle()

        top = context.stack.top
        assert top is not None
        frame = host.frames[top.id]
        assert frame.content is top.content
        assert "Fireball" in frame.browser.toPlainText()
        assert not frame.drag_handle.isVisibleTo(frame)

        context.stack.toggle_pin(top.id)
        assert frame.pin_button.isChecked()
        assert frame.drag_handle.isVisibleTo(frame)

        frame.close_button.click()
        assert context.stack.depth == 0
        assert top.id not in host.frames

    @pytest.mark.asyncio
    async def test_pin_button_routes_through_stack(
        self, host: QtTooltipHost, context: ReferenceContext, scheduler: ManualScheduler
    ) -> None:
        context.stack.pointer_over(context.document.select_one('a[data-hover-name="Light"]'), 40, 40)
        scheduler.advance(0.2)
        await context.stack.settle()
        top = context.stack.top
        assert top is not None

        host.frames[top.id].pin_button.click()

        assert top.is_pinned


class TestReferenceWindow:
    @pytest.mark.asyncio
    async def test_window_wires_browser(self, host: QtTooltipHost, context: ReferenceContext) -> None:
        window = ReferenceWindow(host, context.document.body)

        assert window.windowTitle() == "Lorelink"
        assert window.browser.root is context.document.body
        window.close()


@pytest.mark.parametrize(
    ("key", "expected"),
    [(Qt.Key.Key_Escape, "Escape"), (Qt.Key.Key_P, "p"), (Qt.Key.Key_C, "c"), (Qt.Key.Key_F1, None)],
)
def test_key_names(key: Qt.Key, expected: str | None) -> None:
    assert _key_name(key) == expected
