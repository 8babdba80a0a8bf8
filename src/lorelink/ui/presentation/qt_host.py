"""Qt presentation for reference tooltips.

The stack manager decides what is open; this module only draws it. Every
open instance gets a frameless :class:`TooltipFrame` and every content view
is a :class:`ReferenceBrowser` that turns anchor hovers back into element
hovers for the manager.
"""

from __future__ import annotations

import logging
import math
from typing import Any

from bs4 import Tag
from PySide6.QtCore import QEvent, QObject, QPoint, Qt
from PySide6.QtGui import QCursor, QGuiApplication, QTextDocument
from PySide6.QtWidgets import (
    QFrame,
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QTextBrowser,
    QToolButton,
    QVBoxLayout,
    QWidget,
)

from ..dom import inner_html
from ..domain.positioning import Viewport
from ..domain.tooltip_stack import CLOSE_TITLE, HOVER_SELECTOR, PIN_TITLE, UNPIN_TITLE, TooltipStackManager
from ..events import (
    ContentProcessed,
    EventBus,
    TooltipClosed,
    TooltipOpened,
    TooltipMoved,
    TooltipPinChanged,
)

__all__ = ["QtTooltipHost", "ReferenceBrowser", "ReferenceWindow", "TooltipFrame"]

LOGGER = logging.getLogger(__name__)

WINDOW_APP_NAME = "Lorelink"
ANCHOR_SCHEME = "lorelink:"
MAX_CONTENT_WIDTH = 360
MAX_CONTENT_HEIGHT = 480
CONTENT_PADDING = 8
HEADER_HEIGHT = 24

_FRAME_STYLE = """
QFrame#lorelink-tooltip {
    background: #1f1f24;
    border: 1px solid #5a5a66;
    border-radius: 6px;
}
QFrame#lorelink-tooltip[pinned="true"] {
    border-color: #c9a227;
}
QFrame#lorelink-tooltip QTextBrowser {
    background: transparent;
    border: none;
    color: #e6e6e6;
}
"""


class QtTooltipHost(QObject):
    """Tooltip host backed by Qt: measures with ``QTextDocument``, draws frames."""

    def __init__(self, event_bus: EventBus, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._event_bus = event_bus
        self._stack: TooltipStackManager | None = None
        self._frames: dict[str, TooltipFrame] = {}
        self._browsers: list[ReferenceBrowser] = []
        self._last_left: Tag | None = None
        event_bus.subscribe(TooltipOpened, self._on_opened)
        event_bus.subscribe(TooltipClosed, self._on_closed)
        event_bus.subscribe(TooltipPinChanged, self._on_pin_changed)
        event_bus.subscribe(TooltipMoved, self._on_moved)
        event_bus.subscribe(ContentProcessed, self._on_content_processed)

    def attach(self, stack: TooltipStackManager) -> None:
        self._stack = stack

    @property
    def stack(self) -> TooltipStackManager:
        if self._stack is None:
            raise RuntimeError("QtTooltipHost is not attached to a stack manager")
        return self._stack

    @property
    def frames(self) -> dict[str, TooltipFrame]:
        return dict(self._frames)

    # ------------------------------------------------------------------
    # TooltipHost protocol
    # ------------------------------------------------------------------
    def measure(self, content_html: str) -> tuple[int, int]:
        document = QTextDocument()
        document.setDocumentMargin(0)
        document.setHtml(content_html or "")
        document.setTextWidth(MAX_CONTENT_WIDTH)
        width = min(math.ceil(document.idealWidth()), MAX_CONTENT_WIDTH)
        height = min(math.ceil(document.size().height()), MAX_CONTENT_HEIGHT)
        return width + CONTENT_PADDING * 2, height + CONTENT_PADDING * 2 + HEADER_HEIGHT

    def viewport(self) -> Viewport:
        screen = QGuiApplication.primaryScreen()
        if screen is None:
            return Viewport(1280, 800)
        geometry = screen.availableGeometry()
        return Viewport(geometry.width(), geometry.height())

    def copy_text(self, text: str) -> None:
        clipboard = QGuiApplication.clipboard()
        if clipboard is not None:
            clipboard.setText(text)

    # ------------------------------------------------------------------
    # Coordinates
    # ------------------------------------------------------------------
    def origin(self) -> QPoint:
        screen = QGuiApplication.primaryScreen()
        return screen.availableGeometry().topLeft() if screen is not None else QPoint(0, 0)

    def to_viewport(self, global_pos: QPoint) -> tuple[int, int]:
        origin = self.origin()
        return global_pos.x() - origin.x(), global_pos.y() - origin.y()

    # ------------------------------------------------------------------
    # Browser registry
    # ------------------------------------------------------------------
    def register_browser(self, browser: ReferenceBrowser) -> None:
        if not any(existing is browser for existing in self._browsers):
            self._browsers.append(browser)

    def unregister_browser(self, browser: ReferenceBrowser) -> None:
        self._browsers = [existing for existing in self._browsers if existing is not browser]

    def frame_entered(self, frame: TooltipFrame, global_pos: QPoint) -> None:
        previous, self._last_left = self._last_left, None
        if previous is not None and previous is not frame.content:
            self.stack.pointer_out(previous, frame.content)
        x, y = self.to_viewport(global_pos)
        self.stack.pointer_over(frame.content, x, y)

    def frame_left(self, frame: TooltipFrame) -> None:
        self._last_left = frame.content
        self.stack.pointer_out(frame.content, None)

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------
    def _on_opened(self, event: TooltipOpened) -> None:
        instance = self.stack.instance(event.tooltip_id)
        if instance is None:
            return
        frame = TooltipFrame(self, event.tooltip_id, instance.content)
        frame.resize(instance.width, instance.height)
        frame.move(self.origin() + QPoint(event.x, event.y))
        self._frames[event.tooltip_id] = frame
        frame.show()
        frame.raise_()

    def _on_closed(self, event: TooltipClosed) -> None:
        frame = self._frames.pop(event.tooltip_id, None)
        if frame is None:
            return
        if self._last_left is frame.content:
            self._last_left = None
        frame.dispose()

    def _on_pin_changed(self, event: TooltipPinChanged) -> None:
        frame = self._frames.get(event.tooltip_id)
        if frame is not None:
            frame.set_pinned(event.pinned)

    def _on_moved(self, event: TooltipMoved) -> None:
        frame = self._frames.get(event.tooltip_id)
        if frame is not None:
            frame.move(self.origin() + QPoint(event.x, event.y))

    def _on_content_processed(self, event: ContentProcessed) -> None:
        if not event.count:
            return
        for browser in list(self._browsers):
            browser.refresh()


class ReferenceBrowser(QTextBrowser):
    """Read-only view of an element subtree that reports anchor hovers."""

    def __init__(self, host: QtTooltipHost, root: Tag, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self._host = host
        self._root = root
        self._anchors: dict[str, Tag] = {}
        self.setOpenLinks(False)
        self.setOpenExternalLinks(False)
        self.setMouseTracking(True)
        self.viewport().setMouseTracking(True)
        host.register_browser(self)
        self.refresh()

    @property
    def root(self) -> Tag:
        return self._root

    def anchor_for(self, href: str) -> Tag | None:
        return self._anchors.get(href)

    def refresh(self) -> None:
        """Re-render the root, tagging each hover anchor with a ``lorelink:N`` href."""

        self._anchors.clear()
        saved: list[tuple[Tag, Any]] = []
        for index, anchor in enumerate(self._root.select(HOVER_SELECTOR)):
            href = f"{ANCHOR_SCHEME}{index}"
            saved.append((anchor, anchor.get("href")))
            anchor["href"] = href
            self._anchors[href] = anchor
        try:
            html = inner_html(self._root)
        finally:
            for anchor, original in saved:
                if original is None:
                    del anchor["href"]
                else:
                    anchor["href"] = original
        self.setHtml(html)

    def dispose(self) -> None:
        self._host.unregister_browser(self)

    def mouseMoveEvent(self, event: Any) -> None:  # noqa: N802 - Qt override
        href = self.anchorAt(event.position().toPoint())
        target = self._anchors.get(href) if href else None
        x, y = self._host.to_viewport(event.globalPosition().toPoint())
        self._host.stack.pointer_over(target if target is not None else self._root, x, y)
        super().mouseMoveEvent(event)

    def leaveEvent(self, event: Any) -> None:  # noqa: N802 - Qt override
        if self._host.stack.containing_instance(self._root) is None:
            x, y = self._host.to_viewport(QCursor.pos())
            self._host.stack.pointer_over(None, x, y)
        super().leaveEvent(event)


class TooltipFrame(QFrame):
    """Frameless popup drawing one tooltip instance."""

    def __init__(self, host: QtTooltipHost, tooltip_id: str, content: Tag) -> None:
        super().__init__(
            None,
            Qt.WindowType.Tool | Qt.WindowType.FramelessWindowHint | Qt.WindowType.WindowStaysOnTopHint,
        )
        self._host = host
        self.tooltip_id = tooltip_id
        self.content = content
        self.setObjectName("lorelink-tooltip")
        self.setAttribute(Qt.WidgetAttribute.WA_ShowWithoutActivating, True)
        self.setStyleSheet(_FRAME_STYLE)

        layout = QVBoxLayout(self)
        layout.setContentsMargins(CONTENT_PADDING, 2, CONTENT_PADDING, CONTENT_PADDING)
        layout.setSpacing(2)

        header = QHBoxLayout()
        header.setContentsMargins(0, 0, 0, 0)
        self.drag_handle = QLabel("⠇")
        self.drag_handle.setCursor(Qt.CursorShape.SizeAllCursor)
        self.drag_handle.setVisible(False)
        self.drag_handle.installEventFilter(self)
        self.pin_button = QToolButton()
        self.pin_button.setText("\U0001f4cc")
        self.pin_button.setCheckable(True)
        self.pin_button.setToolTip(PIN_TITLE)
        self.pin_button.clicked.connect(self._on_pin_clicked)
        self.close_button = QToolButton()
        self.close_button.setText("×")
        self.close_button.setToolTip(CLOSE_TITLE)
        self.close_button.clicked.connect(self._on_close_clicked)
        header.addWidget(self.drag_handle)
        header.addStretch(1)
        header.addWidget(self.pin_button)
        header.addWidget(self.close_button)
        layout.addLayout(header)

        self.browser = ReferenceBrowser(host, content, self)
        layout.addWidget(self.browser)

    def set_pinned(self, pinned: bool) -> None:
        self.setProperty("pinned", "true" if pinned else "false")
        self.pin_button.setChecked(pinned)
        self.pin_button.setToolTip(UNPIN_TITLE if pinned else PIN_TITLE)
        self.drag_handle.setVisible(pinned)
        self.style().unpolish(self)
        self.style().polish(self)

    def dispose(self) -> None:
        self.browser.dispose()
        self.hide()
        self.deleteLater()

    def _control(self, selector: str) -> Tag | None:
        instance = self._host.stack.instance(self.tooltip_id)
        if instance is None:
            return None
        return instance.tooltip.select_one(selector)

    def _on_pin_clicked(self) -> None:
        button = self._control(".tooltip-pin-btn")
        if button is not None:
            self._host.stack.click(button)

    def _on_close_clicked(self) -> None:
        button = self._control(".tooltip-close-btn")
        if button is not None:
            self._host.stack.click(button)

    def enterEvent(self, event: Any) -> None:  # noqa: N802 - Qt override
        self._host.frame_entered(self, event.globalPosition().toPoint())
        super().enterEvent(event)

    def leaveEvent(self, event: Any) -> None:  # noqa: N802 - Qt override
        self._host.frame_left(self)
        super().leaveEvent(event)

    def eventFilter(self, obj: Any, event: Any) -> bool:  # type: ignore[override]
        if obj is not self.drag_handle:
            return super().eventFilter(obj, event)
        stack = self._host.stack
        kind = event.type()
        if kind == QEvent.Type.MouseButtonPress:
            button = 0 if event.button() == Qt.MouseButton.LeftButton else 1
            x, y = self._host.to_viewport(event.globalPosition().toPoint())
            return stack.begin_drag(self.tooltip_id, x, y, button=button)
        if kind == QEvent.Type.MouseMove and stack.dragging:
            x, y = self._host.to_viewport(event.globalPosition().toPoint())
            stack.drag_to(x, y)
            return True
        if kind == QEvent.Type.MouseButtonRelease and stack.dragging:
            stack.end_drag()
            return True
        return super().eventFilter(obj, event)


class ReferenceWindow(QMainWindow):
    """Main window showing the processed document with tooltip shortcuts."""

    def __init__(self, host: QtTooltipHost, body: Tag, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self._host = host
        self.setWindowTitle(WINDOW_APP_NAME)
        self.browser = ReferenceBrowser(host, body, self)
        self.setCentralWidget(self.browser)
        self.browser.installEventFilter(self)
        self.browser.viewport().installEventFilter(self)

    def eventFilter(self, obj: Any, event: Any) -> bool:  # type: ignore[override]
        if event.type() == QEvent.Type.KeyPress and self._forward_key(event):
            return True
        return super().eventFilter(obj, event)

    def keyPressEvent(self, event: Any) -> None:  # noqa: N802 - Qt override
        if not self._forward_key(event):
            super().keyPressEvent(event)

    def closeEvent(self, event: Any) -> None:  # noqa: N802 - Qt override
        self._host.stack.clear()
        super().closeEvent(event)

    def _forward_key(self, event: Any) -> bool:
        key = _key_name(event.key())
        if key is None:
            return False
        modifiers = event.modifiers()
        return self._host.stack.handle_key(
            key,
            ctrl=bool(modifiers & Qt.KeyboardModifier.ControlModifier),
            meta=bool(modifiers & Qt.KeyboardModifier.MetaModifier),
            has_selection=self.browser.textCursor().hasSelection(),
            in_text_input=False,
        )


def _key_name(key: Any) -> str | None:
    code = getattr(key, "value", key)
    if code == Qt.Key.Key_Escape.value:
        return "Escape"
    if Qt.Key.Key_A.value <= code <= Qt.Key.Key_Z.value:
        return chr(code).lower()
    return None
