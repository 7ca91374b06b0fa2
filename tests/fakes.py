from __future__ import annotations

from typing import Any, Optional

from eve_industry_planner.domain.blueprint import BlueprintDefinition, MaterialRequirement, ProductionActivity
from eve_industry_planner.domain.facility import Facility, RigBonus, StructureBonus
from eve_industry_planner.domain.invention import Decryptor, InventionCatalogEntry


def bp(
    product_type_id: int,
    materials: dict[int, int],
    *,
    blueprint_id: Optional[int] = None,
    activity: ProductionActivity = ProductionActivity.MANUFACTURING,
    quantity_per_run: int = 1,
    time_seconds: int = 100,
    product_category: Optional[str] = "Modules",
    material_categories: Optional[dict[int, str]] = None,
) -> BlueprintDefinition:
    cats = material_categories or {}
    return BlueprintDefinition(
        blueprint_id=blueprint_id if blueprint_id is not None else product_type_id + 100000,
        activity=activity,
        product_type_id=product_type_id,
        quantity_per_run=quantity_per_run,
        materials=tuple(MaterialRequirement(tid, qty, cats.get(tid)) for tid, qty in materials.items()),
        time_seconds=time_seconds,
        product_category=product_category,
    )


class _FakeCatalog:
    def __init__(
        self,
        definitions: list[BlueprintDefinition] | None = None,
        *,
        structures: dict[int, StructureBonus] | None = None,
        rigs: dict[int, RigBonus] | None = None,
        invention: dict[int, InventionCatalogEntry] | None = None,
        decryptors: list[Decryptor] | None = None,
    ):
        self._definitions = {(d.product_type_id, d.activity): d for d in (definitions or [])}
        self._structures = structures or {}
        self._rigs = rigs or {}
        self._invention = invention or {}
        self._decryptors = decryptors or []
        self.definition_calls: list[tuple[int, ProductionActivity]] = []

    def get_definition(self, type_id: int, activity: ProductionActivity) -> Optional[BlueprintDefinition]:
        self.definition_calls.append((int(type_id), activity))
        return self._definitions.get((int(type_id), activity))

    def get_invention_data(self, type_id: int) -> Optional[InventionCatalogEntry]:
        return self._invention.get(int(type_id))

    def get_decryptors(self) -> list[Decryptor]:
        return list(self._decryptors)

    def get_structure_bonus(self, structure_type_id: int) -> StructureBonus:
        return self._structures.get(int(structure_type_id), StructureBonus())

    def get_rig_bonus(self, rig_type_id: int) -> Optional[RigBonus]:
        return self._rigs.get(int(rig_type_id))


class _FakePrices:
    def __init__(
        self,
        unit: dict[int, float] | None = None,
        adjusted: dict[int, float] | None = None,
        *,
        buy: dict[int, float] | None = None,
    ):
        self._unit = unit or {}
        self._adjusted = adjusted or {}
        self._buy = buy or {}
        self.calls: list[tuple[int, Any, str]] = []

    def get_unit_price(self, type_id: int, region_id: Optional[int], price_type: str) -> Optional[float]:
        self.calls.append((int(type_id), region_id, price_type))
        if price_type == "buy":
            return self._buy.get(int(type_id))
        return self._unit.get(int(type_id))

    def get_adjusted_price(self, type_id: int) -> Optional[float]:
        return self._adjusted.get(int(type_id))


class _FakeCostIndices:
    def __init__(self, indices: dict[tuple[int, ProductionActivity], float] | None = None):
        self._indices = indices or {}

    def get(self, system_id: Optional[int], activity: ProductionActivity) -> float:
        return self._indices.get((int(system_id), activity), 0.0) if system_id is not None else 0.0


class _FakeTaxProfile:
    def __init__(self, skills: dict[str, int] | None = None, *, character_id: int = 90000001):
        self._skills = skills or {}
        self._character_id = character_id

    def get_skill_level(self, character_id: Optional[int], skill_name: str) -> int:
        if character_id != self._character_id:
            return 0
        return self._skills.get(skill_name, 0)


class _FakeFacilities:
    def __init__(self, facilities: list[Facility] | None = None):
        self._facilities = {f.facility_id: f for f in (facilities or [])}

    def get_facility(self, facility_id: int) -> Optional[Facility]:
        return self._facilities.get(int(facility_id))


class _BrokenCatalog(_FakeCatalog):
    def get_definition(self, type_id: int, activity: ProductionActivity) -> Optional[BlueprintDefinition]:
        raise ConnectionError("sde unavailable")
