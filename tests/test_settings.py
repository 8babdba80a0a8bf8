"""Tests for the settings persistence layer."""

from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path

import pytest

from lorelink.services.settings import Settings, SettingsError, SettingsStore


def test_load_returns_defaults_when_file_missing(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "settings.json")

    assert store.load() == Settings()


def test_defaults_match_tooltip_timings() -> None:
    settings = Settings()

    assert settings.default_source == "PHB"
    assert settings.show_delay == pytest.approx(0.2)
    assert settings.hide_delay == pytest.approx(0.3)
    assert settings.retreat_delay == pytest.approx(0.15)
    assert settings.close_animation == pytest.approx(0.2)
    assert settings.frame_interval == pytest.approx(0.016)


def test_negative_delays_clamp_to_zero() -> None:
    assert Settings(show_delay_ms=-5).show_delay == 0


def test_save_and_load_roundtrip(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    original = Settings(default_source="XPHB", show_delay_ms=120, theme="dark", data_dir="/srv/data")

    SettingsStore(path).save(original)
    payload = json.loads(path.read_text(encoding="utf-8"))
    reloaded = SettingsStore(path).load()

    assert payload["version"] == 1
    assert not path.with_suffix(".tmp").exists()
    assert reloaded == original


def test_unknown_keys_are_ignored(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"version": 1, "theme": "dark", "legacy_field": True}), encoding="utf-8")

    assert SettingsStore(path).load().theme == "dark"


def test_version_mismatch_rewrites_payload(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"theme": "dark"}), encoding="utf-8")

    SettingsStore(path).load()

    assert json.loads(path.read_text(encoding="utf-8"))["version"] == 1


def test_corrupt_file_falls_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{oops", encoding="utf-8")

    assert SettingsStore(path).load() == Settings()


def test_corrupt_file_raises_in_strict_mode(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{oops", encoding="utf-8")

    with pytest.raises(SettingsError):
        SettingsStore(path).load(strict=True)


def test_cli_overrides_apply_before_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    store = SettingsStore(tmp_path / "settings.json")
    store.save(replace(Settings(), theme="light"))
    monkeypatch.setenv("LORELINK_THEME", "dark")
    monkeypatch.setenv("LORELINK_DEBUG_LOGGING", "yes")
    monkeypatch.setenv("LORELINK_SHOW_DELAY_MS", "50")

    settings = store.load(overrides={"theme": "solarized", "default_source": "XGE", "unknown": 1})

    assert settings.theme == "dark"
    assert settings.default_source == "XGE"
    assert settings.debug_logging is True
    assert settings.show_delay_ms == 50


def test_invalid_integer_environment_override_is_ignored(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LORELINK_HIDE_DELAY_MS", "soon")

    assert SettingsStore(tmp_path / "settings.json").load().hide_delay_ms == 300


def test_trace_hover_environment_override(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LORELINK_TRACE_HOVER", "on")

    settings = SettingsStore(tmp_path / "settings.json").load()

    assert settings.trace_hover is True
    assert Settings().trace_hover is False
