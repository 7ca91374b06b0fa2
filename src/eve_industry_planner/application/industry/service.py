from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from eve_industry_planner.application.errors import (
    InvalidInputError,
    NotFoundError,
    call_collaborator,
)
from eve_industry_planner.application.industry.bom_expansion import BomExpander, BuildPolicy, ExpansionStats
from eve_industry_planner.application.industry.bonus_resolver import skill_time_multiplier
from eve_industry_planner.application.industry.cost_calculator import CostCalculator, FeeRates, job_fee
from eve_industry_planner.application.industry.invention_optimizer import (
    InventionOptimizer,
    ManufacturingEstimate,
)
from eve_industry_planner.config.settings import PlannerSettings, get_settings
from eve_industry_planner.domain.blueprint import ProductionActivity
from eve_industry_planner.domain.collaborators import (
    CatalogLookup,
    CostIndexLookup,
    FacilityLookup,
    PriceLookup,
    TaxProfile,
)
from eve_industry_planner.domain.efficiency import EfficiencyState
from eve_industry_planner.domain.facility import Facility
from eve_industry_planner.domain.invention import InventionResult, InventionSkills, OptimizationStrategy
from eve_industry_planner.domain.pricing import CostBreakdown, PricingContext
from eve_industry_planner.domain.requirement_node import RequirementNode, flatten, total_job_time_seconds


logger = logging.getLogger(__name__)


SKILL_INDUSTRY = "Industry"
SKILL_ADVANCED_INDUSTRY = "Advanced Industry"
SKILL_REACTIONS = "Reactions"


def _parse_option(parser, raw: Any, label: str):
    try:
        return parser(raw)
    except ValueError as e:
        raise InvalidInputError(str(e), data={label: str(raw)}) from e


@dataclass(frozen=True)
class ProductionPlan:
    type_id: int
    runs: int
    activity: ProductionActivity
    facility: Optional[Facility]
    tree: RequirementNode
    flat_materials: Dict[int, int]
    total_time_seconds: int
    pricing: Optional[CostBreakdown]
    stats: ExpansionStats

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type_id": self.type_id,
            "runs": self.runs,
            "activity": self.activity.value,
            "facility": self.facility.to_dict() if self.facility else None,
            "tree": self.tree.to_dict(),
            # JSON object keys are strings; keep the map ordered as flattened.
            "flat_materials": {str(k): v for k, v in self.flat_materials.items()},
            "total_time_seconds": self.total_time_seconds,
            "pricing": self.pricing.to_dict() if self.pricing else None,
            "stats": self.stats.to_dict(),
        }


class IndustryPlannerService:
    """Entry points used by the HTTP layer and the CLI.

    Holds collaborators only; every call builds its own expander and
    calculator, so one instance is safe to share between threads.
    """

    def __init__(
        self,
        *,
        catalog: CatalogLookup,
        prices: Optional[PriceLookup] = None,
        facilities: Optional[FacilityLookup] = None,
        cost_indices: Optional[CostIndexLookup] = None,
        tax_profile: Optional[TaxProfile] = None,
        settings: Optional[PlannerSettings] = None,
    ) -> None:
        self._catalog = catalog
        self._prices = prices
        self._facilities = facilities
        self._cost_indices = cost_indices
        self._tax_profile = tax_profile
        self._settings = settings or get_settings()
        self._rates = FeeRates.from_settings(self._settings)

    @property
    def default_region_id(self) -> int:
        return self._settings.default_region_id

    def get_facility(self, facility_id: Optional[int]) -> Optional[Facility]:
        if facility_id is None:
            return None
        if isinstance(facility_id, bool) or not isinstance(facility_id, int):
            raise InvalidInputError(f"Invalid facility_id: {facility_id!r}")
        if self._facilities is None:
            raise NotFoundError(f"Facility {facility_id} not found (no facility source configured)")
        facility = call_collaborator("facility", self._facilities.get_facility, int(facility_id))
        if facility is None:
            raise NotFoundError(f"Facility {facility_id} not found", data={"facility_id": int(facility_id)})
        return facility

    def _skill(self, character_id: Optional[int], skill_name: str) -> int:
        if character_id is None or self._tax_profile is None:
            return 0
        level = call_collaborator("tax profile", self._tax_profile.get_skill_level, character_id, skill_name)
        return max(0, min(int(level or 0), 5))

    def _skill_time_multipliers(self, character_id: Optional[int]) -> dict[ProductionActivity, float]:
        if character_id is None:
            return {}
        industry = self._skill(character_id, SKILL_INDUSTRY)
        advanced = self._skill(character_id, SKILL_ADVANCED_INDUSTRY)
        reactions = self._skill(character_id, SKILL_REACTIONS)
        return {
            activity: skill_time_multiplier(activity, industry=industry, advanced_industry=advanced, reactions=reactions)
            for activity in ProductionActivity
        }

    def _calculator(self) -> CostCalculator:
        if self._prices is None:
            raise InvalidInputError("Pricing requested but no price source is configured")
        return CostCalculator(
            self._prices,
            cost_indices=self._cost_indices,
            tax_profile=self._tax_profile,
            rates=self._rates,
        )

    def resolve(
        self,
        type_id: int,
        runs: int,
        efficiency: Optional[EfficiencyState] = None,
        facility_id: Optional[int] = None,
        activity: ProductionActivity = ProductionActivity.MANUFACTURING,
        *,
        pricing: Optional[PricingContext] = None,
        with_pricing: bool = True,
        build_policy: Optional[BuildPolicy] = None,
        max_depth: Optional[int] = None,
        expand_reactions: Optional[bool] = None,
    ) -> ProductionPlan:
        """Expand, flatten, time and (optionally) price one production request.

        Any collaborator failure aborts the call; only missing prices degrade
        the result, surfaced through `pricing.items_without_prices`.
        """

        efficiency = efficiency or EfficiencyState()
        activity = _parse_option(ProductionActivity.parse, activity, "activity")
        facility = self.get_facility(facility_id)
        ctx = pricing or PricingContext(
            material_region_id=self._settings.default_region_id,
            product_region_id=self._settings.default_region_id,
        )

        expander = BomExpander(
            self._catalog,
            build_policy=build_policy,
            max_depth=self._settings.max_depth if max_depth is None else max_depth,
            expand_reactions=self._settings.expand_reactions if expand_reactions is None else expand_reactions,
            min_material_multiplier=self._settings.min_material_multiplier,
            min_time_multiplier=self._settings.min_time_multiplier,
            skill_time_multipliers=self._skill_time_multipliers(ctx.character_id),
        )
        tree = expander.expand(type_id, runs, efficiency, facility, activity)
        flat = flatten(tree)

        breakdown = None
        if with_pricing and self._prices is not None:
            breakdown = self._calculator().price(flat, tree, facility, ctx)

        logger.info(
            "Resolved %s x%s (%s): %s raw materials, %s jobs",
            type_id,
            runs,
            activity.value,
            len(flat),
            sum(1 for _ in tree.iter_jobs()),
        )
        return ProductionPlan(
            type_id=int(type_id),
            runs=int(runs),
            activity=activity,
            facility=facility,
            tree=tree,
            flat_materials=flat,
            total_time_seconds=total_job_time_seconds(tree),
            pricing=breakdown,
            stats=expander.stats,
        )

    def _invention_skills(self, entry, character_id: Optional[int]) -> InventionSkills:
        science = list(entry.science_skills or ())[:2]
        while len(science) < 2:
            science.append("")
        return InventionSkills(
            science_1=self._skill(character_id, science[0]) if science[0] else 0,
            science_2=self._skill(character_id, science[1]) if science[1] else 0,
            encryption=self._skill(character_id, entry.encryption_skill) if entry.encryption_skill else 0,
        )

    def _invention_job_cost(self, product_type_id: int, facility: Optional[Facility], calculator: CostCalculator) -> float:
        """Installation cost of one invention attempt.

        The job basis is a fixed fraction of the product's manufacturing EIV.
        """

        if facility is None or facility.system_id is None:
            return 0.0
        definition = call_collaborator("catalog", self._catalog.get_definition, product_type_id, ProductionActivity.MANUFACTURING)
        if definition is None:
            return 0.0
        eiv = 0.0
        for material in definition.materials:
            price = calculator.adjusted_price(material.type_id)
            if price is not None:
                eiv += float(material.quantity) * price

        cost_bonus = 0.0
        if facility.structure_type_id is not None:
            bonus = call_collaborator("catalog", self._catalog.get_structure_bonus, int(facility.structure_type_id))
            cost_bonus = bonus.cost_bonus_pct if bonus is not None else 0.0

        fee = job_fee(
            estimated_item_value=eiv * self._settings.invention_job_cost_base_fraction,
            system_cost_index=calculator.cost_index(facility.system_id, ProductionActivity.INVENTION),
            structure_cost_bonus=cost_bonus,
            facility_tax_rate=facility.tax_rate,
            scc_surcharge_rate=self._rates.scc_surcharge_rate,
        )
        return fee["total"]

    def optimize_invention(
        self,
        type_id: int,
        skills: Optional[InventionSkills] = None,
        facility_id: Optional[int] = None,
        strategy: OptimizationStrategy = OptimizationStrategy.TOTAL_PER_ITEM,
        custom_volume: Optional[int] = None,
        *,
        context: Optional[PricingContext] = None,
        component_efficiency: Optional[EfficiencyState] = None,
    ) -> InventionResult:
        if isinstance(type_id, bool) or not isinstance(type_id, int) or type_id <= 0:
            raise InvalidInputError(f"Invalid type_id: {type_id!r}")
        strategy = _parse_option(OptimizationStrategy.parse, strategy, "strategy")
        facility = self.get_facility(facility_id)
        ctx = context or PricingContext(
            material_region_id=self._settings.default_region_id,
            product_region_id=self._settings.default_region_id,
        )

        entry = call_collaborator("catalog", self._catalog.get_invention_data, int(type_id))
        decryptors = list(call_collaborator("catalog", self._catalog.get_decryptors) or []) if entry is not None else []
        if skills is None and entry is not None:
            skills = self._invention_skills(entry, ctx.character_id)
        skills = skills or InventionSkills()

        material_prices: dict[int, Optional[float]] = {}
        product_price: Optional[float] = None
        job_cost = 0.0
        estimator = None
        calculator: Optional[CostCalculator] = None
        if entry is not None and self._prices is not None:
            calculator = self._calculator()
            wanted = [m.type_id for m in entry.materials] + [d.type_id for d in decryptors]
            for tid in wanted:
                unit = calculator.unit_price(tid, ctx.material_region_id, ctx.material_price_type)
                material_prices[int(tid)] = unit * ctx.material_price_modifier if unit is not None else None
            unit = calculator.unit_price(entry.product_type_id, ctx.product_region_id, ctx.product_price_type)
            product_price = unit * ctx.product_price_modifier if unit is not None else None
            job_cost = self._invention_job_cost(entry.product_type_id, facility, calculator)

        if entry is not None:
            base = component_efficiency or EfficiencyState()

            def _estimate(me: int, te: int, runs: int) -> Optional[ManufacturingEstimate]:
                efficiency = EfficiencyState(
                    me_level=me,
                    te_level=te,
                    blueprint_overrides=base.blueprint_overrides,
                    component_me_level=base.component_me_level,
                    component_te_level=base.component_te_level,
                )
                try:
                    plan = self.resolve(entry.product_type_id, runs, efficiency, facility_id, pricing=ctx)
                except NotFoundError:
                    return None
                units = max(1, plan.tree.quantity)
                cost = plan.pricing.total_cost / units if plan.pricing is not None else None
                return ManufacturingEstimate(cost_per_unit=cost, time_per_unit_seconds=plan.total_time_seconds / units)

            estimator = _estimate

        attempt_time = None
        if entry is not None and ctx.character_id is not None:
            advanced = self._skill(ctx.character_id, SKILL_ADVANCED_INDUSTRY)
            attempt_time = entry.time_seconds * skill_time_multiplier(ProductionActivity.INVENTION, advanced_industry=advanced)

        optimizer = InventionOptimizer(
            job_cost_per_attempt=job_cost,
            attempt_time_seconds=attempt_time,
            manufacturing_estimator=estimator,
        )
        result = optimizer.optimize(
            entry,
            decryptors,
            material_prices,
            product_price,
            skills,
            strategy,
            custom_volume,
            requested_type_id=int(type_id),
        )
        if result.best is not None:
            logger.info(
                "Best invention option for %s (%s): %s at p=%.3f",
                type_id,
                strategy.value,
                result.best.decryptor_name,
                result.best.probability,
            )
        return result
