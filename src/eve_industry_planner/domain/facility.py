from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from eve_industry_planner.domain.blueprint import ProductionActivity


class SecurityZone(str, Enum):
    HIGH = "high"
    LOW = "low"
    NULL = "null"

    @property
    def rig_multiplier(self) -> float:
        return _MANUFACTURING_RIG_MULTIPLIERS[self]

    @property
    def reaction_rig_multiplier(self) -> float:
        return _REACTION_RIG_MULTIPLIERS[self]

    def rig_multiplier_for(self, activity: ProductionActivity) -> float:
        if activity == ProductionActivity.REACTION:
            return self.reaction_rig_multiplier
        return self.rig_multiplier

    @classmethod
    def from_security_status(cls, security_status: float) -> "SecurityZone":
        s = float(security_status)
        if s >= 0.5:
            return cls.HIGH
        if s > 0.0:
            return cls.LOW
        return cls.NULL

    @classmethod
    def parse(cls, raw: Any) -> "SecurityZone":
        if isinstance(raw, SecurityZone):
            return raw
        if isinstance(raw, (int, float)):
            return cls.from_security_status(float(raw))
        key = str(raw or "").strip().lower()
        if key in {"high", "highsec", "hisec"}:
            return cls.HIGH
        if key in {"low", "lowsec"}:
            return cls.LOW
        if key in {"null", "nullsec", "wormhole", "wh", "j-space"}:
            return cls.NULL
        raise ValueError(f"Unknown security zone: {raw!r}")


# Wormhole space shares the null-sec multiplier.
_MANUFACTURING_RIG_MULTIPLIERS: dict[SecurityZone, float] = {
    SecurityZone.HIGH: 1.0,
    SecurityZone.LOW: 1.9,
    SecurityZone.NULL: 2.1,
}

_REACTION_RIG_MULTIPLIERS: dict[SecurityZone, float] = {
    SecurityZone.HIGH: 1.0,
    SecurityZone.LOW: 1.0,
    SecurityZone.NULL: 1.1,
}


@dataclass(frozen=True)
class StructureBonus:
    """Fixed role bonuses of a structure hull, as fractions."""

    material_bonus_pct: float = 0.0
    cost_bonus_pct: float = 0.0
    time_bonus_pct: float = 0.0


@dataclass(frozen=True)
class RigBonus:
    rig_type_id: int
    affected_category: str = "All"
    activity: ProductionActivity = ProductionActivity.MANUFACTURING
    material_bonus_pct: float = 0.0
    time_bonus_pct: float = 0.0

    def affects(self, *, product_category: Optional[str], material_category: Optional[str]) -> bool:
        wanted = (self.affected_category or "").strip()
        if wanted == "All":
            return True
        candidates = {(product_category or "").strip(), (material_category or "").strip()} - {""}
        if wanted == "All Ships":
            return any(c.endswith("Ships") for c in candidates)
        return wanted in candidates


@dataclass(frozen=True)
class Facility:
    facility_id: int
    name: str = ""
    # None for an NPC station.
    structure_type_id: Optional[int] = None
    rig_type_ids: tuple[int, ...] = field(default_factory=tuple)
    security_zone: SecurityZone = SecurityZone.HIGH
    system_id: Optional[int] = None
    tax_rate: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "facility_id": self.facility_id,
            "name": self.name,
            "structure_type_id": self.structure_type_id,
            "rig_type_ids": list(self.rig_type_ids),
            "security_zone": self.security_zone.value,
            "system_id": self.system_id,
            "tax_rate": self.tax_rate,
        }
