"""Lazy-loading game data lookup services backed by JSON catalogs."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Awaitable, Callable

from ..references.keys import normalize_for_lookup

__all__ = [
    "ActionService",
    "BackgroundService",
    "BaseDataService",
    "CatalogError",
    "ClassService",
    "ConditionService",
    "FeatService",
    "ItemService",
    "LookupServices",
    "MonsterService",
    "OptionalFeatureService",
    "RaceService",
    "SkillService",
    "SpellService",
    "VariantRuleService",
    "json_file_loader",
    "load_services",
]

LOGGER = logging.getLogger(__name__)

Entity = dict[str, Any]
Loader = Callable[[], Awaitable[list[Entity]]]


class CatalogError(RuntimeError):
    """Raised when a data file exists but cannot be parsed."""


def json_file_loader(path: Path, key: str) -> Loader:
    """Return a loader reading the *key* list from the JSON file at *path*.

    A missing file yields an empty catalog; unreadable JSON raises
    :class:`CatalogError`.
    """

    async def load() -> list[Entity]:
        if not path.exists():
            LOGGER.debug("Catalog %s not found; using an empty %s list", path, key)
            return []
        try:
            payload = json.loads(await asyncio.to_thread(path.read_text, encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise CatalogError(f"Unable to read {path}: {exc}") from exc
        records = payload.get(key, []) if isinstance(payload, Mapping) else payload
        if not isinstance(records, list):
            raise CatalogError(f"{path} does not contain a '{key}' list")
        return [dict(record) for record in records if isinstance(record, Mapping)]

    return load


def _static_loader(records: list[Mapping[str, Any]]) -> Loader:
    async def load() -> list[Entity]:
        return [dict(record) for record in records]

    return load


class BaseDataService:
    """Shared lazy initialisation and name/source lookup for a catalog."""

    label = "data"

    def __init__(self, loader: Loader | list[Mapping[str, Any]] | None = None) -> None:
        if loader is None:
            loader = []
        self._loader: Loader = _static_loader(loader) if isinstance(loader, list) else loader
        self._index: dict[str, list[Entity]] | None = None
        self._lock = asyncio.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._index is not None

    async def ensure_loaded(self) -> None:
        """Run the loader once; concurrent callers wait on the same load."""

        if self._index is not None:
            return
        async with self._lock:
            if self._index is not None:
                return
            try:
                records = await self._loader()
            except CatalogError:
                LOGGER.exception("Failed to load %s catalog", self.label)
                records = []
            self._index = self._build_index(records)
            LOGGER.debug("Loaded %d %s record(s)", len(records), self.label)

    def reset(self) -> None:
        self._index = None

    async def all(self) -> list[Entity]:
        await self.ensure_loaded()
        assert self._index is not None
        return [record for bucket in self._index.values() for record in bucket]

    async def lookup(self, name: str, source: str | None = None) -> Entity | None:
        """Find *name*, preferring an exact source match, then any source."""

        if not name:
            return None
        await self.ensure_loaded()
        assert self._index is not None
        matches = self._index.get(normalize_for_lookup(name))
        if not matches:
            return None
        if source:
            wanted = source.lower()
            for record in matches:
                if str(record.get("source", "")).lower() == wanted:
                    return record
        return matches[0]

    @staticmethod
    def _build_index(records: list[Entity]) -> dict[str, list[Entity]]:
        index: dict[str, list[Entity]] = {}
        for record in records:
            name = record.get("name")
            if not name:
                continue
            index.setdefault(normalize_for_lookup(name), []).append(record)
        return index


class SpellService(BaseDataService):
    label = "spell"

    async def get_spell(self, name: str, source: str | None = None) -> Entity | None:
        return await self.lookup(name, source)


class ClassService(BaseDataService):
    label = "class"

    async def get_class(self, name: str, source: str | None = None) -> Entity | None:
        return await self.lookup(name, source)


class RaceService(BaseDataService):
    label = "race"

    async def get_race(self, name: str, source: str | None = None) -> Entity | None:
        return await self.lookup(name, source)


class ItemService(BaseDataService):
    label = "item"

    async def get_item(self, name: str, source: str | None = None) -> Entity | None:
        return await self.lookup(name, source)


class ConditionService(BaseDataService):
    label = "condition"

    async def get_condition(self, name: str, source: str | None = None) -> Entity | None:
        del source  # conditions are not source-qualified
        return await self.lookup(name)


class FeatService(BaseDataService):
    label = "feat"

    async def get_feat(self, name: str, source: str | None = None) -> Entity | None:
        return await self.lookup(name, source)


class SkillService(BaseDataService):
    label = "skill"

    async def get_skill(self, name: str, source: str | None = None) -> Entity | None:
        del source  # skills are not source-qualified
        return await self.lookup(name)


class ActionService(BaseDataService):
    label = "action"

    async def get_action(self, name: str, source: str | None = None) -> Entity | None:
        return await self.lookup(name, source)


class MonsterService(BaseDataService):
    label = "monster"

    async def get_monster(self, name: str, source: str | None = None) -> Entity | None:
        return await self.lookup(name, source)


class BackgroundService(BaseDataService):
    label = "background"

    async def get_background(self, name: str, source: str | None = None) -> Entity | None:
        return await self.lookup(name, source)


class VariantRuleService(BaseDataService):
    label = "variant rule"

    async def get_variant_rule(self, name: str, source: str | None = None) -> Entity | None:
        return await self.lookup(name, source)


class OptionalFeatureService(BaseDataService):
    label = "optional feature"

    async def get_feature_by_name(self, name: str, source: str | None = None) -> Entity | None:
        return await self.lookup(name, source)


@dataclass(slots=True)
class LookupServices:
    """One lookup service per entity type consumed by the resolver."""

    spells: SpellService
    classes: ClassService
    races: RaceService
    items: ItemService
    conditions: ConditionService
    feats: FeatService
    skills: SkillService
    actions: ActionService
    monsters: MonsterService
    backgrounds: BackgroundService
    variant_rules: VariantRuleService
    optional_features: OptionalFeatureService

    @classmethod
    def from_records(cls, records: Mapping[str, list[Mapping[str, Any]]] | None = None) -> LookupServices:
        """Build in-memory services from ``{attribute: [record, ...]}``."""

        records = records or {}
        kwargs: dict[str, BaseDataService] = {}
        for field_info in fields(cls):
            service_cls = _SERVICE_TYPES[field_info.name]
            kwargs[field_info.name] = service_cls(list(records.get(field_info.name, [])))
        return cls(**kwargs)  # type: ignore[arg-type]

    def __iter__(self):
        for field_info in fields(self):
            yield getattr(self, field_info.name)


# attribute -> (service class, catalog file, top-level key)
_CATALOGS: dict[str, tuple[type[BaseDataService], str, str]] = {
    "spells": (SpellService, "spells.json", "spell"),
    "classes": (ClassService, "classes.json", "class"),
    "races": (RaceService, "races.json", "race"),
    "items": (ItemService, "items.json", "item"),
    "conditions": (ConditionService, "conditionsdiseases.json", "condition"),
    "feats": (FeatService, "feats.json", "feat"),
    "skills": (SkillService, "skills.json", "skill"),
    "actions": (ActionService, "actions.json", "action"),
    "monsters": (MonsterService, "bestiary.json", "monster"),
    "backgrounds": (BackgroundService, "backgrounds.json", "background"),
    "variant_rules": (VariantRuleService, "variantrules.json", "variantrule"),
    "optional_features": (OptionalFeatureService, "optionalfeatures.json", "optionalfeature"),
}
_SERVICE_TYPES: dict[str, type[BaseDataService]] = {name: entry[0] for name, entry in _CATALOGS.items()}


def load_services(data_dir: Path | str | None) -> LookupServices:
    """Create lookup services reading 5etools-style catalogs from *data_dir*.

    Nothing is read until a service is first queried.
    """

    if data_dir is None:
        LOGGER.info("No data directory configured; lookup services start empty")
        return LookupServices.from_records()
    base = Path(data_dir).expanduser()
    kwargs: dict[str, BaseDataService] = {}
    for attribute, (service_cls, file_name, key) in _CATALOGS.items():
        kwargs[attribute] = service_cls(json_file_loader(base / file_name, key))
    return LookupServices(**kwargs)  # type: ignore[arg-type]
