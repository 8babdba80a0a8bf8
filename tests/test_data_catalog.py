"""Tests for the lazy-loading lookup services."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import pytest

from lorelink.data import (
    CatalogError,
    ConditionService,
    LookupServices,
    SpellService,
    VariantRuleService,
    json_file_loader,
    load_services,
)


def _write(path: Path, payload: object) -> Path:
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


class TestBaseDataService:
    @pytest.mark.asyncio
    async def test_lookup_prefers_exact_source(self) -> None:
        service = SpellService(
            [
                {"name": "Fireball", "source": "PHB"},
                {"name": "Fireball", "source": "XPHB"},
            ]
        )

        assert (await service.get_spell("FIREBALL", "xphb"))["source"] == "XPHB"
        assert (await service.get_spell("fireball", "NOPE"))["source"] == "PHB"
        assert (await service.get_spell("fireball"))["source"] == "PHB"

    @pytest.mark.asyncio
    async def test_missing_names(self) -> None:
        service = SpellService([{"name": "Light"}, {"source": "PHB"}])

        assert await service.get_spell("Wish") is None
        assert await service.get_spell("") is None
        assert len(await service.all()) == 1

    @pytest.mark.asyncio
    async def test_loader_runs_once_for_concurrent_callers(self) -> None:
        calls = 0

        async def loader() -> list[dict]:
            nonlocal calls
            calls += 1
            await asyncio.sleep(0)
            return [{"name": "Prone"}]

        service = ConditionService(loader)

        results = await asyncio.gather(*(service.get_condition("prone", "ANY") for _ in range(5)))

        assert calls == 1
        assert all(result == {"name": "Prone"} for result in results)
        assert service.is_loaded

    @pytest.mark.asyncio
    async def test_reset_reloads(self) -> None:
        records = [{"name": "Light"}]
        service = SpellService(lambda: _as_coroutine(records))
        await service.ensure_loaded()

        records.append({"name": "Wish"})
        service.reset()

        assert not service.is_loaded
        assert await service.get_spell("Wish") == {"name": "Wish"}

    @pytest.mark.asyncio
    async def test_label_names_catalog_in_logs(self, caplog: pytest.LogCaptureFixture) -> None:
        service = VariantRuleService([{"name": "Flanking"}])

        with caplog.at_level(logging.DEBUG, logger="lorelink.data.catalog"):
            await service.ensure_loaded()

        assert VariantRuleService.label == "variant rule"
        assert "Loaded 1 variant rule record(s)" in caplog.text


async def _as_coroutine(records: list[dict]) -> list[dict]:
    return list(records)


class TestJsonCatalogs:
    @pytest.mark.asyncio
    async def test_reads_keyed_list(self, tmp_path: Path) -> None:
        path = _write(tmp_path / "spells.json", {"spell": [{"name": "Light"}, "junk"]})

        records = await json_file_loader(path, "spell")()

        assert records == [{"name": "Light"}]

    @pytest.mark.asyncio
    async def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        assert await json_file_loader(tmp_path / "absent.json", "spell")() == []

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "spells.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(CatalogError):
            await json_file_loader(path, "spell")()

    @pytest.mark.asyncio
    async def test_broken_catalog_leaves_service_empty(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        _write(tmp_path / "spells.json", {"spell": {"name": "not a list"}})
        services = load_services(tmp_path)

        with caplog.at_level(logging.ERROR):
            result = await services.spells.get_spell("Light")

        assert result is None
        assert "Failed to load spell catalog" in caplog.text

    @pytest.mark.asyncio
    async def test_load_services_reads_each_catalog(self, tmp_path: Path) -> None:
        _write(tmp_path / "bestiary.json", {"monster": [{"name": "Goblin", "cr": "1/4"}]})
        _write(tmp_path / "conditionsdiseases.json", {"condition": [{"name": "Prone"}]})
        _write(tmp_path / "optionalfeatures.json", {"optionalfeature": [{"name": "Agonizing Blast"}]})

        services = load_services(tmp_path)

        assert (await services.monsters.get_monster("goblin"))["cr"] == "1/4"
        assert (await services.conditions.get_condition("Prone")) == {"name": "Prone"}
        assert (await services.optional_features.get_feature_by_name("agonizing blast")) is not None
        assert await services.items.get_item("Rope") is None


def test_load_services_without_directory() -> None:
    services = load_services(None)

    assert isinstance(services, LookupServices)
    assert len(list(services)) == 12
