from __future__ import annotations

from typing import Optional, Protocol, Sequence

from eve_industry_planner.domain.blueprint import BlueprintDefinition, ProductionActivity
from eve_industry_planner.domain.facility import Facility, RigBonus, StructureBonus
from eve_industry_planner.domain.invention import Decryptor, InventionCatalogEntry


class CatalogLookup(Protocol):
    def get_definition(self, type_id: int, activity: ProductionActivity) -> Optional[BlueprintDefinition]:
        ...

    def get_invention_data(self, type_id: int) -> Optional[InventionCatalogEntry]:
        ...

    def get_decryptors(self) -> Sequence[Decryptor]:
        ...

    def get_structure_bonus(self, structure_type_id: int) -> StructureBonus:
        ...

    def get_rig_bonus(self, rig_type_id: int) -> Optional[RigBonus]:
        ...


class PriceLookup(Protocol):
    def get_unit_price(self, type_id: int, region_id: Optional[int], price_type: str) -> Optional[float]:
        ...

    def get_adjusted_price(self, type_id: int) -> Optional[float]:
        ...


class TaxProfile(Protocol):
    def get_skill_level(self, character_id: Optional[int], skill_name: str) -> int:
        ...


class CostIndexLookup(Protocol):
    def get(self, system_id: Optional[int], activity: ProductionActivity) -> float:
        ...


class FacilityLookup(Protocol):
    def get_facility(self, facility_id: int) -> Optional[Facility]:
        ...
