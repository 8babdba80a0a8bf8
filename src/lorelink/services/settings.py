"""Settings dataclass and persistence helpers."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

from ..markup.tokens import DEFAULT_SOURCE

__all__ = [
    "DEFAULT_SETTINGS_PATH",
    "Settings",
    "SettingsError",
    "SettingsStore",
]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".lorelink"
DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_SETTINGS_VERSION = 1
_ENV_OVERRIDES: Mapping[str, str] = {
    "LORELINK_DEFAULT_SOURCE": "default_source",
    "LORELINK_DATA_DIR": "data_dir",
    "LORELINK_THEME": "theme",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "LORELINK_DEBUG_LOGGING": "debug_logging",
    "LORELINK_TRACE_HOVER": "trace_hover",
    "LORELINK_PROCESS_FORMATTING": "process_formatting",
}
_INT_ENV_OVERRIDES: Mapping[str, str] = {
    "LORELINK_SHOW_DELAY_MS": "show_delay_ms",
    "LORELINK_HIDE_DELAY_MS": "hide_delay_ms",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}


class SettingsError(RuntimeError):
    """Raised when a settings file cannot be read in strict mode."""


@dataclass(slots=True)
class Settings:
    """User-facing preferences for the reference tooltip runtime."""

    default_source: str = DEFAULT_SOURCE
    show_delay_ms: int = 200
    hide_delay_ms: int = 300
    retreat_delay_ms: int = 150
    close_animation_ms: int = 200
    frame_interval_ms: int = 16
    tooltip_offset: int = 10
    viewport_margin: int = 10
    viewport_width: int = 1280
    viewport_height: int = 800
    process_formatting: bool = True
    data_dir: str | None = None
    theme: str = "default"
    debug_logging: bool = False
    trace_hover: bool = False
    window_geometry: str | None = None

    @property
    def show_delay(self) -> float:
        return max(self.show_delay_ms, 0) / 1000

    @property
    def hide_delay(self) -> float:
        return max(self.hide_delay_ms, 0) / 1000

    @property
    def retreat_delay(self) -> float:
        return max(self.retreat_delay_ms, 0) / 1000

    @property
    def close_animation(self) -> float:
        return max(self.close_animation_ms, 0) / 1000

    @property
    def frame_interval(self) -> float:
        return max(self.frame_interval_ms, 0) / 1000


class SettingsStore:
    """Persistence adapter for :class:`Settings`."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or DEFAULT_SETTINGS_PATH

    @property
    def path(self) -> Path:
        """Return the resolved path backing this store."""

        return self._path

    def load(self, *, overrides: Mapping[str, Any] | None = None, strict: bool = False) -> Settings:
        """Load settings from disk, applying CLI/environment overrides when present.

        Args:
            overrides: Field values taking precedence over the stored payload.
            strict: Raise :class:`SettingsError` instead of falling back to
                defaults when the file exists but is not valid JSON.
        """

        payload = self._read_payload(strict=strict)
        settings = Settings()
        if payload:
            data = _filter_fields(payload)
            try:
                settings = Settings(**data)
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = Settings()

        version_mismatch = bool(payload) and payload.get("version") != _SETTINGS_VERSION
        if version_mismatch:
            try:
                self.save(settings)
            except OSError as exc:
                LOGGER.warning("Failed to migrate settings payload: %s", exc)

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="CLI")

        return self._apply_env_overrides(settings)

    def save(self, settings: Settings) -> Path:
        """Persist settings to disk with atomic file writes."""

        payload = asdict(settings)
        payload["version"] = _SETTINGS_VERSION
        body = json.dumps(payload, indent=2, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _read_payload(self, *, strict: bool = False) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as exc:
            if strict:
                raise SettingsError(f"Unable to read settings file {self._path}: {exc}") from exc
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(payload, dict):
            LOGGER.warning("Settings file %s does not contain an object", self._path)
            return {}
        return payload

    def _apply_overrides(
        self,
        settings: Settings,
        overrides: Mapping[str, Any],
        *,
        source: str = "runtime",
    ) -> Settings:
        allowed = {field.name for field in fields(Settings)}
        filtered = {key: value for key, value in overrides.items() if key in allowed and value is not None}
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = replace(settings, **filtered)
        return settings

    def _apply_env_overrides(self, settings: Settings) -> Settings:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        for env_name, field_name in _INT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = int(value, 10)
            except ValueError:
                LOGGER.warning(
                    "Environment override %s=%s is not a valid integer",
                    env_name,
                    value,
                )
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {field.name for field in fields(Settings)}
    return {key: value for key, value in payload.items() if key in allowed}
