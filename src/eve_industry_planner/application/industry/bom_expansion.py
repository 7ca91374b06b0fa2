from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Callable, Iterable, Mapping, Optional

from eve_industry_planner.application.errors import (
    CyclicDependencyError,
    InvalidInputError,
    NotFoundError,
    call_collaborator,
)
from eve_industry_planner.application.industry.bonus_resolver import (
    DEFAULT_MIN_MATERIAL_MULTIPLIER,
    DEFAULT_MIN_TIME_MULTIPLIER,
    BonusSet,
    resolve_bonuses,
)
from eve_industry_planner.domain.blueprint import BlueprintDefinition, ProductionActivity
from eve_industry_planner.domain.collaborators import CatalogLookup
from eve_industry_planner.domain.efficiency import MAX_ME_LEVEL, MAX_TE_LEVEL, TE_LEVEL_STEP, EfficiencyState
from eve_industry_planner.domain.facility import Facility
from eve_industry_planner.domain.requirement_node import NodeKind, RequirementNode


logger = logging.getLogger(__name__)


BuildPolicy = Callable[[int], bool]


def build_everything(type_id: int) -> bool:
    return True


def buy_list_policy(buy_type_ids: Iterable[int]) -> BuildPolicy:
    """Build every input that has a recipe, except the listed type ids."""

    buy = {int(x) for x in buy_type_ids}

    def _policy(type_id: int) -> bool:
        return int(type_id) not in buy

    return _policy


def _ceil_div(a: int, b: int) -> int:
    if b <= 0:
        return 0
    return (a + b - 1) // b


def per_run_quantity(base_quantity: int, multiplier: float) -> int:
    """Apply a material multiplier to one run, rounding up.

    Float noise is rounded away first so 10 * 0.9 gives 9, not 10. A positive
    base quantity never drops below one unit per run.
    """

    base = int(base_quantity or 0)
    if base <= 0:
        return 0
    return max(1, int(math.ceil(round(base * float(multiplier), 6))))


def job_time_seconds(base_time_seconds: int, runs: int, multiplier: float) -> int:
    base = int(base_time_seconds or 0)
    if base <= 0 or runs <= 0:
        return 0
    return int(math.ceil(round(base * float(multiplier), 6))) * int(runs)


def validate_request(type_id: int, runs: int, efficiency: EfficiencyState) -> None:
    if isinstance(type_id, bool) or not isinstance(type_id, int) or type_id <= 0:
        raise InvalidInputError(f"Invalid type_id: {type_id!r}")
    if isinstance(runs, bool) or not isinstance(runs, int) or runs < 1:
        raise InvalidInputError(f"runs must be an integer >= 1, got {runs!r}")
    for label, me, te in efficiency.all_levels():
        if not 0 <= int(me) <= MAX_ME_LEVEL:
            raise InvalidInputError(f"ME level for {label} must be within 0..{MAX_ME_LEVEL}, got {me}")
        if not 0 <= int(te) <= MAX_TE_LEVEL:
            raise InvalidInputError(f"TE level for {label} must be within 0..{MAX_TE_LEVEL}, got {te}")
        if int(te) % TE_LEVEL_STEP:
            raise InvalidInputError(f"TE level for {label} must be a multiple of {TE_LEVEL_STEP}, got {te}")


@dataclass
class ExpansionStats:
    nodes_built: int = 0
    cache_hits: int = 0
    raw_leaves: int = 0
    max_depth_reached: int = 0

    def to_dict(self) -> dict:
        return {
            "nodes_built": self.nodes_built,
            "cache_hits": self.cache_hits,
            "raw_leaves": self.raw_leaves,
            "max_depth_reached": self.max_depth_reached,
        }


class BomExpander:
    """Recursive bill-of-materials expansion for one resolve call.

    The memo and the definition cache live on the instance, so an expander must
    not be shared between resolve calls.
    """

    def __init__(
        self,
        catalog: CatalogLookup,
        *,
        build_policy: Optional[BuildPolicy] = None,
        max_depth: int = 10,
        expand_reactions: bool = False,
        min_material_multiplier: float = DEFAULT_MIN_MATERIAL_MULTIPLIER,
        min_time_multiplier: float = DEFAULT_MIN_TIME_MULTIPLIER,
        skill_time_multipliers: Optional[Mapping[ProductionActivity, float]] = None,
    ) -> None:
        self._catalog = catalog
        self._build_policy = build_policy or build_everything
        self._max_depth = max(0, int(max_depth))
        self._expand_reactions = bool(expand_reactions)
        self._min_material_multiplier = float(min_material_multiplier)
        self._min_time_multiplier = float(min_time_multiplier)
        self._skill_time_multipliers = dict(skill_time_multipliers or {})

        self._definitions: dict[tuple[int, ProductionActivity], Optional[BlueprintDefinition]] = {}
        self._bonuses: dict[tuple, BonusSet] = {}
        # (type_id, runs, me, te, facility_id, activity, remaining depth) -> finished job node
        self._memo: dict[tuple, RequirementNode] = {}
        # Recipes walked past the depth cap and known to reach no cycle.
        self._acyclic: set[tuple[int, ProductionActivity]] = set()
        self.stats = ExpansionStats()

    def expand(
        self,
        type_id: int,
        runs: int,
        efficiency: EfficiencyState,
        facility: Optional[Facility],
        activity: ProductionActivity = ProductionActivity.MANUFACTURING,
        depth: int = 0,
    ) -> RequirementNode:
        validate_request(type_id, runs, efficiency)
        if activity == ProductionActivity.INVENTION:
            raise InvalidInputError("Invention is not expandable; use the invention optimizer")

        definition = self._definition(type_id, activity)
        if definition is None:
            raise NotFoundError(f"No {activity.value} recipe for item {type_id}", data={"type_id": int(type_id)})

        root = self._expand_job(
            definition,
            type_id=int(type_id),
            runs=int(runs),
            quantity=int(runs) * int(definition.quantity_per_run),
            efficiency=efficiency,
            facility=facility,
            depth=int(depth),
            path=(),
            is_root=True,
        )
        logger.debug(
            "Expanded %s x%s: %s nodes, %s memo hits, %s raw leaves",
            type_id,
            runs,
            self.stats.nodes_built,
            self.stats.cache_hits,
            self.stats.raw_leaves,
        )
        return root

    def _definition(self, type_id: int, activity: ProductionActivity) -> Optional[BlueprintDefinition]:
        key = (int(type_id), activity)
        if key not in self._definitions:
            self._definitions[key] = call_collaborator("catalog", self._catalog.get_definition, int(type_id), activity)
        return self._definitions[key]

    def _child_definition(self, type_id: int, parent_activity: ProductionActivity) -> Optional[BlueprintDefinition]:
        if parent_activity == ProductionActivity.REACTION:
            return self._definition(type_id, ProductionActivity.REACTION)
        definition = self._definition(type_id, ProductionActivity.MANUFACTURING)
        if definition is None and self._expand_reactions:
            definition = self._definition(type_id, ProductionActivity.REACTION)
        return definition

    def _bonuses_for(
        self,
        definition: BlueprintDefinition,
        efficiency: EfficiencyState,
        facility: Optional[Facility],
        *,
        is_root: bool,
    ) -> BonusSet:
        me, te = efficiency.levels_for(definition.blueprint_id, is_root=is_root)
        key = (definition.blueprint_id, definition.activity, me, te, facility.facility_id if facility else None)
        cached = self._bonuses.get(key)
        if cached is None:
            cached = resolve_bonuses(
                definition,
                efficiency,
                facility,
                self._catalog,
                is_root=is_root,
                min_material_multiplier=self._min_material_multiplier,
                min_time_multiplier=self._min_time_multiplier,
            )
            self._bonuses[key] = cached
        return cached

    def _expand_job(
        self,
        definition: BlueprintDefinition,
        *,
        type_id: int,
        runs: int,
        quantity: int,
        efficiency: EfficiencyState,
        facility: Optional[Facility],
        depth: int,
        path: tuple[int, ...],
        is_root: bool,
    ) -> RequirementNode:
        if type_id in path:
            chain = list(path) + [type_id]
            logger.error("Cyclic blueprint dependency detected: %s", " -> ".join(str(x) for x in chain))
            raise CyclicDependencyError(chain)

        bonuses = self._bonuses_for(definition, efficiency, facility, is_root=is_root)
        memo_key = (
            type_id,
            runs,
            bonuses.me_level,
            bonuses.te_level,
            facility.facility_id if facility else None,
            definition.activity,
            self._max_depth - depth,
        )
        cached = self._memo.get(memo_key)
        if cached is not None:
            self.stats.cache_hits += 1
            return cached if cached.quantity == quantity else replace(cached, quantity=quantity)

        self.stats.max_depth_reached = max(self.stats.max_depth_reached, depth)
        child_path = path + (type_id,)
        children: list[RequirementNode] = []
        for material in definition.materials:
            total = per_run_quantity(material.quantity, bonuses.material_multiplier_for(material)) * runs
            children.append(
                self._expand_input(
                    material.type_id,
                    total,
                    parent_activity=definition.activity,
                    efficiency=efficiency,
                    facility=facility,
                    depth=depth + 1,
                    path=child_path,
                )
            )

        skill_mult = float(self._skill_time_multipliers.get(definition.activity, 1.0))
        node = RequirementNode(
            type_id=type_id,
            quantity=quantity,
            kind=NodeKind.INTERMEDIATE,
            blueprint_id=definition.blueprint_id,
            activity=definition.activity,
            runs=runs,
            me_level=bonuses.me_level,
            te_level=bonuses.te_level,
            job_time_seconds=job_time_seconds(definition.time_seconds, runs, bonuses.time_multiplier * skill_mult),
            base_materials=definition.materials,
            material_multiplier=bonuses.material_multiplier,
            time_multiplier=bonuses.time_multiplier,
            cost_multiplier=bonuses.cost_multiplier,
            children=tuple(children),
        )
        self.stats.nodes_built += 1
        self._memo[memo_key] = node
        return node

    def _expand_input(
        self,
        type_id: int,
        quantity: int,
        *,
        parent_activity: ProductionActivity,
        efficiency: EfficiencyState,
        facility: Optional[Facility],
        depth: int,
        path: tuple[int, ...],
    ) -> RequirementNode:
        if quantity <= 0 or not self._build_policy(int(type_id)):
            return self._raw(type_id, quantity)
        if depth > self._max_depth:
            self._check_cycles_beyond_cap(int(type_id), parent_activity, path)
            return self._raw(type_id, quantity)

        definition = self._child_definition(type_id, parent_activity)
        if definition is None or int(definition.quantity_per_run or 0) <= 0:
            return self._raw(type_id, quantity)

        child_runs = _ceil_div(int(quantity), int(definition.quantity_per_run))
        return self._expand_job(
            definition,
            type_id=int(type_id),
            runs=child_runs,
            quantity=int(quantity),
            efficiency=efficiency,
            facility=facility,
            depth=depth,
            path=path,
            is_root=False,
        )

    def _check_cycles_beyond_cap(
        self,
        type_id: int,
        parent_activity: ProductionActivity,
        path: tuple[int, ...],
    ) -> None:
        """Walk recipes below the depth cap without building nodes.

        A truncated branch still raises CyclicDependencyError when its recipes
        lead back to an item on the current chain or loop among themselves.
        """

        definition = self._child_definition(type_id, parent_activity)
        if definition is None or int(definition.quantity_per_run or 0) <= 0:
            return
        if type_id in path:
            chain = list(path) + [type_id]
            logger.error("Cyclic blueprint dependency detected: %s", " -> ".join(str(x) for x in chain))
            raise CyclicDependencyError(chain)
        key = (type_id, definition.activity)
        if key in self._acyclic:
            return

        child_path = path + (type_id,)
        for material in definition.materials:
            if int(material.quantity or 0) <= 0 or not self._build_policy(int(material.type_id)):
                continue
            self._check_cycles_beyond_cap(int(material.type_id), definition.activity, child_path)
        self._acyclic.add(key)

    def _raw(self, type_id: int, quantity: int) -> RequirementNode:
        self.stats.raw_leaves += 1
        return RequirementNode(type_id=int(type_id), quantity=max(0, int(quantity)), kind=NodeKind.RAW)
