from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ProductionActivity(str, Enum):
    MANUFACTURING = "manufacturing"
    REACTION = "reaction"
    INVENTION = "invention"

    @classmethod
    def parse(cls, raw: Any) -> "ProductionActivity":
        if isinstance(raw, ProductionActivity):
            return raw
        key = str(raw or "").strip().lower()
        # SDE spells the reaction activity in the plural.
        if key == "reactions":
            key = "reaction"
        for member in cls:
            if member.value == key:
                return member
        raise ValueError(f"Unknown production activity: {raw!r}")


@dataclass(frozen=True)
class MaterialRequirement:
    type_id: int
    quantity: int
    category: Optional[str] = None


@dataclass(frozen=True)
class BlueprintDefinition:
    blueprint_id: int
    activity: ProductionActivity
    product_type_id: int
    quantity_per_run: int
    materials: tuple[MaterialRequirement, ...] = field(default_factory=tuple)
    time_seconds: int = 0

    # Rig group label of the product (e.g. "Modules", "Advanced Components").
    product_category: Optional[str] = None

    max_me_level: int = 10
    max_te_level: int = 20
    max_production_limit: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "blueprint_id": self.blueprint_id,
            "activity": self.activity.value,
            "product_type_id": self.product_type_id,
            "quantity_per_run": self.quantity_per_run,
            "materials": [
                {"type_id": m.type_id, "quantity": m.quantity, "category": m.category} for m in self.materials
            ],
            "time_seconds": self.time_seconds,
            "product_category": self.product_category,
            "max_me_level": self.max_me_level,
            "max_te_level": self.max_te_level,
            "max_production_limit": self.max_production_limit,
        }
