"""Game data lookup services consumed by the reference resolver."""

from .catalog import (
    ActionService,
    BackgroundService,
    BaseDataService,
    CatalogError,
    ClassService,
    ConditionService,
    FeatService,
    ItemService,
    LookupServices,
    MonsterService,
    OptionalFeatureService,
    RaceService,
    SkillService,
    SpellService,
    VariantRuleService,
    json_file_loader,
    load_services,
)

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
