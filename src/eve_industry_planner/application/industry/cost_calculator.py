from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from eve_industry_planner.application.errors import InvalidInputError, call_collaborator
from eve_industry_planner.config.settings import PlannerSettings
from eve_industry_planner.domain.blueprint import ProductionActivity
from eve_industry_planner.domain.collaborators import CostIndexLookup, PriceLookup, TaxProfile
from eve_industry_planner.domain.facility import Facility
from eve_industry_planner.domain.pricing import (
    PRICE_TYPES,
    CostBreakdown,
    JobCostBreakdown,
    MaterialPrice,
    PricingContext,
    TradingFees,
)
from eve_industry_planner.domain.requirement_node import RequirementNode


logger = logging.getLogger(__name__)


SKILL_BROKER_RELATIONS = "Broker Relations"
SKILL_ACCOUNTING = "Accounting"


@dataclass(frozen=True)
class FeeRates:
    scc_surcharge_rate: float = 0.04
    broker_fee_base_rate: float = 0.03
    broker_fee_reduction_per_level: float = 0.003
    min_broker_fee_rate: float = 0.01
    sales_tax_base_rate: float = 0.075
    # Relative: each Accounting level removes 11% of the base rate.
    sales_tax_reduction_per_level: float = 0.11
    min_sales_tax_rate: float = 0.01

    @staticmethod
    def from_settings(settings: PlannerSettings) -> "FeeRates":
        return FeeRates(
            scc_surcharge_rate=settings.scc_surcharge_rate,
            broker_fee_base_rate=settings.broker_fee_base_rate,
            broker_fee_reduction_per_level=settings.broker_fee_reduction_per_level,
            min_broker_fee_rate=settings.min_broker_fee_rate,
            sales_tax_base_rate=settings.sales_tax_base_rate,
            sales_tax_reduction_per_level=settings.sales_tax_reduction_per_level,
            min_sales_tax_rate=settings.min_sales_tax_rate,
        )


def _clamp_skill(level: Any) -> int:
    try:
        lvl = int(level or 0)
    except (TypeError, ValueError):
        return 0
    return max(0, min(lvl, 5))


def _valid_price(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(f) or f < 0:
        return None
    return f


def broker_fee_rate(broker_relations_level: int, rates: FeeRates = FeeRates()) -> float:
    lvl = _clamp_skill(broker_relations_level)
    return max(rates.min_broker_fee_rate, rates.broker_fee_base_rate - rates.broker_fee_reduction_per_level * lvl)


def sales_tax_rate(accounting_level: int, rates: FeeRates = FeeRates()) -> float:
    lvl = _clamp_skill(accounting_level)
    return max(rates.min_sales_tax_rate, rates.sales_tax_base_rate * (1.0 - rates.sales_tax_reduction_per_level * lvl))


def job_fee(
    *,
    estimated_item_value: float,
    system_cost_index: float,
    structure_cost_bonus: float,
    facility_tax_rate: float,
    scc_surcharge_rate: float,
) -> dict[str, float]:
    """Installation fee of one job.

    gross = EIV * SCI; base = gross * (1 - structure bonus); facility tax and
    the SCC surcharge are both charged on the base cost.
    """

    eiv = max(0.0, float(estimated_item_value or 0.0))
    ci = max(0.0, float(system_cost_index or 0.0))
    bonus = max(0.0, min(float(structure_cost_bonus or 0.0), 1.0))
    tax_rate = max(0.0, float(facility_tax_rate or 0.0))
    scc_rate = max(0.0, float(scc_surcharge_rate or 0.0))

    gross = eiv * ci
    base = gross * (1.0 - bonus)
    facility_tax = base * tax_rate
    scc = base * scc_rate
    return {
        "estimated_item_value": eiv,
        "system_cost_index": ci,
        "gross_cost": gross,
        "structure_cost_bonus": bonus,
        "base_cost": base,
        "facility_tax": facility_tax,
        "scc_surcharge": scc,
        "total": base + facility_tax + scc,
    }


class CostCalculator:
    """Turns a flattened bill of materials and its job tree into a CostBreakdown.

    Adjusted prices and cost indices are memoized per instance; create one per
    resolve call.
    """

    def __init__(
        self,
        prices: PriceLookup,
        *,
        cost_indices: Optional[CostIndexLookup] = None,
        tax_profile: Optional[TaxProfile] = None,
        rates: FeeRates = FeeRates(),
    ) -> None:
        self._prices = prices
        self._cost_indices = cost_indices
        self._tax_profile = tax_profile
        self._rates = rates
        self._adjusted: dict[int, Optional[float]] = {}
        self._indices: dict[tuple[Optional[int], ProductionActivity], float] = {}

    def adjusted_price(self, type_id: int) -> Optional[float]:
        tid = int(type_id)
        if tid not in self._adjusted:
            raw = call_collaborator("price", self._prices.get_adjusted_price, tid)
            self._adjusted[tid] = _valid_price(raw)
        return self._adjusted[tid]

    def unit_price(self, type_id: int, region_id: Optional[int], price_type: str) -> Optional[float]:
        raw = call_collaborator("price", self._prices.get_unit_price, int(type_id), region_id, price_type)
        return _valid_price(raw)

    def cost_index(self, system_id: Optional[int], activity: ProductionActivity) -> float:
        if system_id is None or self._cost_indices is None:
            return 0.0
        key = (int(system_id), activity)
        if key not in self._indices:
            raw = call_collaborator("cost index", self._cost_indices.get, int(system_id), activity)
            self._indices[key] = max(0.0, float(raw or 0.0))
        return self._indices[key]

    def skill_level(self, character_id: Optional[int], skill_name: str) -> int:
        if self._tax_profile is None:
            return 0
        return _clamp_skill(call_collaborator("tax profile", self._tax_profile.get_skill_level, character_id, skill_name))

    def estimated_item_value(self, node: RequirementNode) -> tuple[float, int]:
        """EIV of one job: sum(base qty * adjusted price) * runs. Unpriced inputs are skipped."""

        per_run = 0.0
        missing = 0
        for material in node.base_materials:
            price = self.adjusted_price(material.type_id)
            if price is None:
                missing += 1
                continue
            per_run += float(material.quantity) * price
        return per_run * int(node.runs), missing

    def job_cost(self, node: RequirementNode, facility: Optional[Facility]) -> JobCostBreakdown:
        eiv, missing = self.estimated_item_value(node)
        activity = node.activity or ProductionActivity.MANUFACTURING
        fee = job_fee(
            estimated_item_value=eiv,
            system_cost_index=self.cost_index(facility.system_id if facility else None, activity),
            structure_cost_bonus=1.0 - float(node.cost_multiplier),
            facility_tax_rate=facility.tax_rate if facility else 0.0,
            scc_surcharge_rate=self._rates.scc_surcharge_rate,
        )
        return JobCostBreakdown(
            type_id=node.type_id,
            blueprint_id=node.blueprint_id,
            runs=node.runs,
            items_without_adjusted_price=missing,
            **fee,
        )

    def price(
        self,
        flat_materials: Mapping[int, int],
        root: RequirementNode,
        facility: Optional[Facility],
        context: Optional[PricingContext] = None,
    ) -> CostBreakdown:
        ctx = context or PricingContext()
        for price_type in (ctx.material_price_type, ctx.product_price_type):
            if price_type not in PRICE_TYPES:
                raise InvalidInputError(f"Unknown price type: {price_type!r}")

        warnings: list[str] = []

        materials: list[MaterialPrice] = []
        material_cost = 0.0
        missing_prices = 0
        for type_id, quantity in flat_materials.items():
            unit = self.unit_price(type_id, ctx.material_region_id, ctx.material_price_type)
            if unit is None:
                missing_prices += 1
                materials.append(MaterialPrice(type_id=int(type_id), quantity=int(quantity), unit_price=None, total_price=0.0, has_price=False))
                continue
            unit = unit * float(ctx.material_price_modifier)
            total = unit * int(quantity)
            material_cost += total
            materials.append(MaterialPrice(type_id=int(type_id), quantity=int(quantity), unit_price=unit, total_price=total, has_price=True))

        if missing_prices:
            logger.warning("%s of %s materials have no price; material cost is partial", missing_prices, len(materials))
            warnings.append(f"{missing_prices} material(s) without price")

        jobs = [self.job_cost(node, facility) for node in root.iter_jobs()]
        root_job, component_jobs = jobs[0], tuple(jobs[1:])
        total_job_cost = sum(j.total for j in jobs)
        if any(j.items_without_adjusted_price for j in jobs):
            warnings.append("Some job inputs have no adjusted price; EIV is understated")
        if facility is None or facility.system_id is None:
            warnings.append("No facility system; job installation cost not computed")

        broker_lvl = self.skill_level(ctx.character_id, SKILL_BROKER_RELATIONS)
        accounting_lvl = self.skill_level(ctx.character_id, SKILL_ACCOUNTING)
        broker_rate = broker_fee_rate(broker_lvl, self._rates)
        tax_rate = sales_tax_rate(accounting_lvl, self._rates)

        output_quantity = int(root.quantity)
        output_unit = self.unit_price(root.type_id, ctx.product_region_id, ctx.product_price_type)
        if output_unit is None:
            output_value = 0.0
            warnings.append("Product has no price; profit and margin are not meaningful")
        else:
            output_unit = output_unit * float(ctx.product_price_modifier)
            output_value = output_unit * output_quantity

        trading = TradingFees(
            broker_fee_rate=broker_rate,
            sales_tax_rate=tax_rate,
            material_broker_fee=material_cost * broker_rate,
            product_broker_fee=output_value * broker_rate,
            sales_tax=output_value * tax_rate,
        )

        total_cost = material_cost + total_job_cost + trading.material_broker_fee
        profit = output_value - total_cost - trading.sales_tax - trading.product_broker_fee
        margin = (profit / output_value * 100.0) if output_value > 0 else None

        return CostBreakdown(
            material_cost=material_cost,
            materials=tuple(materials),
            items_with_prices=len(materials) - missing_prices,
            items_without_prices=missing_prices,
            job=root_job,
            component_jobs=component_jobs,
            total_job_cost=total_job_cost,
            trading=trading,
            output_quantity=output_quantity,
            output_unit_price=output_unit,
            output_value=output_value,
            total_cost=total_cost,
            profit=profit,
            margin=margin,
            cost_per_unit=(total_cost / output_quantity) if output_quantity > 0 else None,
            warnings=tuple(warnings),
        )


def price_plan(
    flat_materials: Mapping[int, int],
    root: RequirementNode,
    facility: Optional[Facility],
    prices: PriceLookup,
    *,
    tax_profile: Optional[TaxProfile] = None,
    cost_indices: Optional[CostIndexLookup] = None,
    context: Optional[PricingContext] = None,
    rates: FeeRates = FeeRates(),
) -> CostBreakdown:
    calculator = CostCalculator(prices, cost_indices=cost_indices, tax_profile=tax_profile, rates=rates)
    return calculator.price(flat_materials, root, facility, context)
