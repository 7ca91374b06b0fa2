from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from eve_industry_planner.application.errors import call_collaborator
from eve_industry_planner.domain.blueprint import BlueprintDefinition, MaterialRequirement, ProductionActivity
from eve_industry_planner.domain.collaborators import CatalogLookup
from eve_industry_planner.domain.efficiency import EfficiencyState
from eve_industry_planner.domain.facility import Facility, RigBonus, StructureBonus


logger = logging.getLogger(__name__)


# One research level removes 1% of materials (ME) or 1% of time (TE).
_ME_STEP = 0.01
_TE_STEP = 0.01

DEFAULT_MIN_MATERIAL_MULTIPLIER = 0.01
DEFAULT_MIN_TIME_MULTIPLIER = 0.01


def compute_combined_reduction(reductions: Iterable[float]) -> float:
    """Combine several rig reductions for the same term: total = 1 - prod(1 - r_i)."""

    mul = 1.0
    for r in reductions:
        r_f = float(r or 0.0)
        if r_f <= 0:
            continue
        mul *= 1.0 - min(r_f, 1.0)
    return max(0.0, min(1.0 - mul, 1.0))


@dataclass(frozen=True)
class BonusSet:
    activity: ProductionActivity
    me_level: int
    te_level: int
    structure: StructureBonus
    rigs: tuple[RigBonus, ...]
    security_multiplier: float
    product_category: Optional[str]
    min_material_multiplier: float = DEFAULT_MIN_MATERIAL_MULTIPLIER
    min_time_multiplier: float = DEFAULT_MIN_TIME_MULTIPLIER
    time_multiplier: float = 1.0
    cost_multiplier: float = 1.0

    def rig_material_reduction_for(self, material_category: Optional[str]) -> float:
        return compute_combined_reduction(
            rig.material_bonus_pct
            for rig in self.rigs
            if rig.affects(product_category=self.product_category, material_category=material_category)
        )

    def material_multiplier_for(self, material: MaterialRequirement | None = None) -> float:
        """Net quantity multiplier for one input of this blueprint.

        Each bonus is an independent subtractive term; the rig term is scaled
        by the security multiplier, the structure term never is.
        """

        category = material.category if material is not None else None
        rig_reduction = self.rig_material_reduction_for(category)
        raw = (
            1.0
            - self.me_level * _ME_STEP
            - self.structure.material_bonus_pct
            - rig_reduction * self.security_multiplier
        )
        return max(self.min_material_multiplier, raw)

    @property
    def material_multiplier(self) -> float:
        """Multiplier for inputs no category-specific rig touches."""
        return self.material_multiplier_for(None)


def _structure_bonus_for(facility: Facility, catalog: CatalogLookup) -> StructureBonus:
    if facility.structure_type_id is None:
        return StructureBonus()
    bonus = call_collaborator("catalog", catalog.get_structure_bonus, int(facility.structure_type_id))
    return bonus if bonus is not None else StructureBonus()


def _rigs_for(facility: Facility, catalog: CatalogLookup, activity: ProductionActivity) -> tuple[RigBonus, ...]:
    rigs: list[RigBonus] = []
    for rig_type_id in facility.rig_type_ids:
        if not rig_type_id:
            continue
        rig = call_collaborator("catalog", catalog.get_rig_bonus, int(rig_type_id))
        if rig is None:
            logger.debug("Rig %s has no industry bonus; ignored", rig_type_id)
            continue
        if rig.activity != activity:
            continue
        rigs.append(rig)
    return tuple(rigs)


def resolve_bonuses(
    blueprint: BlueprintDefinition,
    efficiency: EfficiencyState,
    facility: Optional[Facility],
    catalog: CatalogLookup,
    *,
    is_root: bool = True,
    min_material_multiplier: float = DEFAULT_MIN_MATERIAL_MULTIPLIER,
    min_time_multiplier: float = DEFAULT_MIN_TIME_MULTIPLIER,
) -> BonusSet:
    """Compute material/time/cost multipliers for one blueprint job.

    - No facility: only ME/TE apply.
    - Reactions ignore ME/TE and use the reaction security table.
    - Rigs only count for their own activity and for the categories they affect.
    """

    activity = blueprint.activity
    if activity == ProductionActivity.REACTION:
        me_level, te_level = 0, 0
    else:
        me_level, te_level = efficiency.levels_for(blueprint.blueprint_id, is_root=is_root)

    if facility is None:
        structure = StructureBonus()
        rigs: tuple[RigBonus, ...] = tuple()
        security_multiplier = 1.0
    else:
        structure = _structure_bonus_for(facility, catalog)
        rigs = _rigs_for(facility, catalog, activity)
        security_multiplier = facility.security_zone.rig_multiplier_for(activity)

    rig_time_reduction = compute_combined_reduction(
        rig.time_bonus_pct
        for rig in rigs
        if rig.affects(product_category=blueprint.product_category, material_category=None)
    )
    time_multiplier = max(
        float(min_time_multiplier),
        1.0 - te_level * _TE_STEP - structure.time_bonus_pct - rig_time_reduction * security_multiplier,
    )
    cost_multiplier = max(0.0, 1.0 - structure.cost_bonus_pct)

    return BonusSet(
        activity=activity,
        me_level=int(me_level),
        te_level=int(te_level),
        structure=structure,
        rigs=rigs,
        security_multiplier=float(security_multiplier),
        product_category=blueprint.product_category,
        min_material_multiplier=float(min_material_multiplier),
        min_time_multiplier=float(min_time_multiplier),
        time_multiplier=float(time_multiplier),
        cost_multiplier=float(cost_multiplier),
    )


def skill_time_multiplier(
    activity: ProductionActivity,
    *,
    industry: int = 0,
    advanced_industry: int = 0,
    reactions: int = 0,
) -> float:
    """Time multiplier from character skills.

    - Industry: -4% manufacturing time per level
    - Reactions: -4% reaction time per level
    - Advanced Industry: -3% per level, all job types
    """

    def _lvl(v: int) -> float:
        return float(max(0, min(int(v or 0), 5)))

    adv_mult = 1.0 - 0.03 * _lvl(advanced_industry)
    if activity == ProductionActivity.REACTION:
        mult = (1.0 - 0.04 * _lvl(reactions)) * adv_mult
    elif activity == ProductionActivity.MANUFACTURING:
        mult = (1.0 - 0.04 * _lvl(industry)) * adv_mult
    else:
        mult = adv_mult
    return max(0.0, min(mult, 1.0))
