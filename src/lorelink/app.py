"""Application bootstrap helpers for the Lorelink reference viewer."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import os
import sys
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO, cast, get_args, get_origin, get_type_hints

from .data import LookupServices, load_services
from .markup import build_tag_renderer
from .references.resolver import ReferenceResolver
from .rendering.registry import EntityRendererRegistry
from .services.settings import Settings, SettingsError, SettingsStore
from .ui.context import ReferenceContext, build_reference_context
from .ui.dom import ContentDocument, inner_html
from .ui.scheduling import AsyncioScheduler
from .utils import logging as logging_utils

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_LOGGER = logging.getLogger(__name__)
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}

_SAMPLE_DOCUMENT = """
<div class="description">
  <p>Cast {@spell Fireball|PHB} to deal {@damage 8d6} fire damage.</p>
  <p>A creature that fails is {@condition Prone}; see {@skill Athletics} to stand.</p>
</div>
"""


@dataclass(slots=True)
class QtRuntime:
    """Container returned by :func:`create_qapp`."""

    app: Any
    loop: asyncio.AbstractEventLoop


def configure_logging(
    debug: bool = False,
    *,
    level: int | None = None,
    trace_hover: bool = False,
    force: bool = False,
) -> None:
    """Configure structured logging for the application."""

    resolved = level if level is not None else (logging.DEBUG if debug else logging.INFO)
    logging_utils.setup_logging(resolved, trace_hover=trace_hover, force=force)
    _LOGGER.debug("Logging configured (level=%s)", logging.getLevelName(resolved))


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
    strict: bool = False,
) -> Settings:
    """Load persisted settings or fall back to defaults.

    With ``strict`` enabled an unreadable file raises :class:`SettingsError`.
    """

    active_store = store or SettingsStore(path)
    try:
        return active_store.load(overrides=overrides, strict=strict)
    except SettingsError:
        raise
    except (OSError, TypeError, ValueError) as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        return Settings()


def create_qapp(settings: Settings) -> QtRuntime:
    """Create a qasync-powered QApplication instance."""

    from PySide6.QtWidgets import QApplication
    from qasync import QEventLoop

    os.environ.setdefault("QT_ENABLE_HIGHDPI_SCALING", "1")
    app = cast(Any, QApplication.instance() or QApplication(sys.argv))
    app.setApplicationName("Lorelink")
    app.setApplicationDisplayName("Lorelink")

    loop = QEventLoop(app)
    asyncio.set_event_loop(loop)
    app.aboutToQuit.connect(loop.stop)  # type: ignore[attr-defined]

    theme = (settings.theme or "").lower()
    if theme == "dark":
        app.setStyle("Fusion")

    _install_qt_message_handler()
    return QtRuntime(app=app, loop=loop)


# ----------------------------------------------------------------------
# Headless entry points
# ----------------------------------------------------------------------
def render_text(text: str, settings: Settings) -> str:
    """Render tag markup in *text* without any UI."""

    return build_tag_renderer(default_source=settings.default_source).process_string(text)


async def resolve_tooltip(
    ref_type: str,
    name: str,
    source: str | None,
    *,
    settings: Settings,
    services: LookupServices,
) -> str:
    """Resolve one reference and return the tooltip body it would show."""

    tags = build_tag_renderer(default_source=settings.default_source)
    resolver = ReferenceResolver.from_services(services, default_source=settings.default_source)
    entity = await resolver.resolve(ref_type, name, source)
    return EntityRendererRegistry(tags).format_tooltip(entity)


async def process_document(html: str, *, settings: Settings, services: LookupServices) -> str:
    """Run the batch processor over an HTML document and return the new body."""

    context = build_reference_context(settings, services, document=ContentDocument(html))
    try:
        await context.processor.process_region()
    finally:
        context.shutdown()
    return inner_html(context.document.body)


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point invoked by the `lorelink` console script."""

    args = _parse_cli_args(argv)

    debug = _env_flag("LORELINK_DEBUG", default=False)
    level = logging_utils.parse_level(args.log_level) if args.log_level else None
    configure_logging(debug, level=level)

    settings_path = args.settings_path or os.environ.get("LORELINK_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        raise SystemExit(2) from exc
    if args.data_dir:
        cli_overrides["data_dir"] = args.data_dir

    overrides_mapping: Dict[str, Any] | None = cli_overrides or None
    try:
        settings = load_settings(
            resolved_path,
            store=settings_store,
            overrides=overrides_mapping,
            strict=args.settings_path is not None,
        )
    except SettingsError as exc:
        print(str(exc), file=sys.stderr)
        raise SystemExit(2) from exc

    if args.dump_settings:
        _dump_settings(settings, settings_store, overrides=cli_overrides)
        return

    if settings.debug_logging and not debug and level is None:
        configure_logging(True, trace_hover=settings.trace_hover, force=True)
    elif settings.trace_hover:
        configure_logging(debug, level=level, trace_hover=True, force=True)

    services = load_services(settings.data_dir)

    if args.render is not None:
        print(render_text(args.render, settings))
        return
    if args.resolve is not None:
        if len(args.resolve) not in (2, 3):
            print("--resolve expects TYPE NAME [SOURCE]", file=sys.stderr)
            raise SystemExit(2)
        ref_type, name, *rest = args.resolve
        body = asyncio.run(
            resolve_tooltip(ref_type, name, rest[0] if rest else None, settings=settings, services=services)
        )
        print(body)
        return
    if args.headless:
        html = sys.stdin.read()
        print(asyncio.run(process_document(html, settings=settings, services=services)))
        return

    _run_gui(settings, services, document_path=args.document)


def _run_gui(settings: Settings, services: LookupServices, *, document_path: str | None = None) -> None:
    from .ui.presentation.qt_host import QtTooltipHost, ReferenceWindow
    from .ui.events import EventBus

    runtime = create_qapp(settings)
    html = Path(document_path).read_text(encoding="utf-8") if document_path else _SAMPLE_DOCUMENT

    event_bus = EventBus()
    host = QtTooltipHost(event_bus)
    context = build_reference_context(
        settings,
        services,
        document=ContentDocument(html),
        scheduler=AsyncioScheduler(runtime.loop),
        host=host,
        event_bus=event_bus,
    )
    host.attach(context.stack)

    loop = runtime.loop
    loop.run_until_complete(context.processor.process_region())
    context.processor.start()

    window = ReferenceWindow(host, context.document.body)
    window.resize(900, 640)
    window.show()

    try:
        loop.run_forever()
    except KeyboardInterrupt:  # pragma: no cover - manual shutdown path
        _LOGGER.info("Shutdown requested by user.")
    finally:
        _shutdown_context(context)
        _drain_event_loop(loop)
        loop.close()


def _shutdown_context(context: ReferenceContext) -> None:
    context.shutdown()
    _LOGGER.debug("Reference context shut down")


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _drain_event_loop(loop: asyncio.AbstractEventLoop) -> None:
    """Cancel outstanding tasks and shutdown async machinery before closing."""

    if loop.is_closed():
        return

    async def _cleanup() -> None:
        current_task = None
        with contextlib.suppress(RuntimeError):
            current_task = asyncio.current_task(loop=loop)

        tasks = [task for task in asyncio.all_tasks(loop) if not task.done() and task is not current_task]
        if tasks:
            _LOGGER.debug("Canceling %s pending asyncio task(s) before shutdown.", len(tasks))
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        with contextlib.suppress(RuntimeError, NotImplementedError):
            await loop.shutdown_asyncgens()

    try:
        loop.run_until_complete(_cleanup())
    except RuntimeError as exc:  # pragma: no cover
        _LOGGER.debug("Unable to drain asyncio loop: %s", exc)


def _install_qt_message_handler() -> None:
    """Redirect Qt warnings to the Python logging stack."""

    from PySide6.QtCore import QtMsgType, qInstallMessageHandler

    level_map = {
        QtMsgType.QtDebugMsg: logging.DEBUG,
        QtMsgType.QtInfoMsg: logging.INFO,
        QtMsgType.QtWarningMsg: logging.WARNING,
        QtMsgType.QtCriticalMsg: logging.ERROR,
        QtMsgType.QtFatalMsg: logging.CRITICAL,
    }

    def _handler(mode, context, message):  # type: ignore[no-untyped-def]
        del context
        level = level_map.get(mode, logging.INFO)
        logging.getLogger("PySide6").log(level, message)

    qInstallMessageHandler(_handler)


def _parse_cli_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="lorelink",
        add_help=True,
        description="Show rules text with hoverable references, or render and resolve markup headlessly.",
    )
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload and exit.",
    )
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.lorelink/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings before launch (repeatable).",
    )
    parser.add_argument("--data-dir", metavar="PATH", help="Directory holding the JSON data catalogs.")
    parser.add_argument("--log-level", metavar="LEVEL", help="Logging level name or number.")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--render", metavar="TEXT", help="Print TEXT with its tag markup rendered and exit.")
    mode.add_argument(
        "--resolve",
        nargs="+",
        metavar="ARG",
        help="Resolve TYPE NAME [SOURCE], print the tooltip body and exit.",
    )
    mode.add_argument(
        "--headless",
        action="store_true",
        help="Read an HTML document from stdin, process it and print the result.",
    )
    parser.add_argument("document", nargs="?", help="HTML document to open in the viewer.")
    return parser.parse_args(argv)


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if not items:
        return overrides

    fields = Settings.__dataclass_fields__  # type: ignore[attr-defined]
    type_hints = get_type_hints(Settings)
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in fields:
            raise ValueError(f"Unknown setting '{key}'.")
        annotation = type_hints.get(key, fields[key].type)
        overrides[key] = _coerce_value(annotation, raw_value.strip())
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    optional = type(None) in get_args(annotation)
    target = _resolve_annotation(annotation)
    normalized = raw_value.strip()

    if optional and normalized.lower() in {"none", "null"}:
        return None
    if target is str or target is Any:
        return normalized
    if target is bool:
        return _parse_bool(normalized)
    if target is int:
        return int(normalized, 10)
    if target is float:
        return float(normalized)
    return normalized


def _resolve_annotation(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is None:
        return annotation
    args = [arg for arg in get_args(annotation) if arg is not type(None)]
    if not args:
        return origin
    return args[0]


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    metadata = {
        "path": str(store.path),
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": _active_env_overrides(),
    }
    output = {"settings": asdict(settings), "meta": metadata}
    json.dump(output, destination, indent=2)
    destination.write("\n")


def _active_env_overrides() -> list[str]:
    return sorted(name for name in os.environ if name.startswith("LORELINK_"))
