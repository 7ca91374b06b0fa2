from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from eve_industry_planner.domain.blueprint import MaterialRequirement


# Invented copies start at these levels before decryptor modifiers.
INVENTED_BASE_ME_LEVEL = 2
INVENTED_BASE_TE_LEVEL = 4


class OptimizationStrategy(str, Enum):
    INVENTION_ONLY = "invention-only"
    TOTAL_PER_ITEM = "total-per-item"
    TOTAL_FULL_BPC = "total-full-bpc"
    TIME_OPTIMIZED = "time-optimized"
    MAX_PROFIT = "max-profit"
    CUSTOM_VOLUME = "custom-volume"

    @classmethod
    def parse(cls, raw: Any) -> "OptimizationStrategy":
        if raw is None or raw == "":
            return cls.TOTAL_PER_ITEM
        if isinstance(raw, OptimizationStrategy):
            return raw
        key = str(raw).strip().lower().replace("_", "-")
        for member in cls:
            if member.value == key:
                return member
        raise ValueError(f"Unknown invention strategy: {raw!r}")


@dataclass(frozen=True)
class InventionCatalogEntry:
    """Invention activity of a T1 blueprint that yields the requested item."""

    source_blueprint_id: int
    output_blueprint_id: int
    product_type_id: int
    base_probability: float
    base_runs: int
    time_seconds: int
    materials: tuple[MaterialRequirement, ...] = field(default_factory=tuple)
    # Skill names: two science skills and the racial encryption skill.
    science_skills: tuple[str, ...] = field(default_factory=tuple)
    encryption_skill: Optional[str] = None
    product_quantity_per_run: int = 1


@dataclass(frozen=True)
class Decryptor:
    type_id: int
    name: str
    probability_multiplier: float = 1.0
    me_modifier: int = 0
    te_modifier: int = 0
    run_modifier: int = 0


@dataclass(frozen=True)
class InventionSkills:
    science_1: int = 0
    science_2: int = 0
    encryption: int = 0

    def modifier(self) -> float:
        return (self.science_1 + self.science_2) / 30.0 + self.encryption / 40.0

    @staticmethod
    def from_dict(data: Optional[dict]) -> "InventionSkills":
        data = data or {}
        return InventionSkills(
            science_1=_skill_level(data.get("science_1")),
            science_2=_skill_level(data.get("science_2")),
            encryption=_skill_level(data.get("encryption")),
        )


def _skill_level(raw: Any) -> int:
    try:
        level = int(raw or 0)
    except (TypeError, ValueError):
        return 0
    return max(0, min(level, 5))


@dataclass(frozen=True)
class InventionOption:
    decryptor_type_id: Optional[int]
    decryptor_name: str
    probability: float
    runs_per_copy: int
    me_level: int
    te_level: int

    datacore_cost: float
    decryptor_cost: float
    job_cost: float
    cost_per_attempt: float
    # A datacore or the decryptor had no price.
    missing_prices: int

    units_per_copy: int
    expected_attempts: Optional[float]
    cost_per_success: Optional[float]
    invention_cost_per_unit: Optional[float]
    manufacturing_cost_per_unit: Optional[float]
    total_cost_per_unit: Optional[float]
    full_bpc_cost: Optional[float]
    custom_volume_cost: Optional[float]
    expected_time_per_unit_seconds: Optional[float]
    expected_profit_per_unit: Optional[float]
    score: float


@dataclass(frozen=True)
class InventionResult:
    product_type_id: int
    base_probability: float
    skill_modifier: float
    strategy: OptimizationStrategy
    options: tuple[InventionOption, ...]
    best: Optional[InventionOption]
    custom_volume: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["strategy"] = self.strategy.value
        # Unscorable options carry an infinite score; JSON has no infinity.
        for opt in list(out["options"]) + ([out["best"]] if out["best"] else []):
            if math.isinf(opt["score"]):
                opt["score"] = None
        return out
