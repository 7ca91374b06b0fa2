from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Mapping, Optional


PRICE_TYPES = {"sell", "buy", "average"}


@dataclass(frozen=True)
class PricingContext:
    """Where and how prices are read for one costing run.

    Modifiers scale the looked-up unit price (1.0 = unchanged), e.g. 0.95 to
    model buying 5% under the sell order floor.
    """

    character_id: Optional[int] = None
    material_region_id: Optional[int] = None
    material_price_type: str = "sell"
    material_price_modifier: float = 1.0
    product_region_id: Optional[int] = None
    product_price_type: str = "sell"
    product_price_modifier: float = 1.0

    @staticmethod
    def from_dict(data: Optional[Mapping[str, Any]], *, default_region_id: Optional[int] = None) -> "PricingContext":
        data = data or {}

        def _region(key: str) -> Optional[int]:
            raw = data.get(key)
            if raw is None:
                return default_region_id
            return int(raw)

        return PricingContext(
            character_id=(int(data["character_id"]) if data.get("character_id") is not None else None),
            material_region_id=_region("material_region_id"),
            material_price_type=str(data.get("material_price_type") or "sell"),
            material_price_modifier=float(data.get("material_price_modifier", 1.0)),
            product_region_id=_region("product_region_id"),
            product_price_type=str(data.get("product_price_type") or "sell"),
            product_price_modifier=float(data.get("product_price_modifier", 1.0)),
        )


@dataclass(frozen=True)
class MaterialPrice:
    type_id: int
    quantity: int
    unit_price: Optional[float]
    total_price: float
    has_price: bool


@dataclass(frozen=True)
class JobCostBreakdown:
    type_id: int
    blueprint_id: Optional[int]
    runs: int
    estimated_item_value: float
    system_cost_index: float
    gross_cost: float
    structure_cost_bonus: float
    base_cost: float
    facility_tax: float
    scc_surcharge: float
    total: float
    # Inputs without an adjusted price were left out of the EIV.
    items_without_adjusted_price: int = 0


@dataclass(frozen=True)
class TradingFees:
    broker_fee_rate: float
    sales_tax_rate: float
    material_broker_fee: float
    product_broker_fee: float
    sales_tax: float


@dataclass(frozen=True)
class CostBreakdown:
    material_cost: float
    materials: tuple[MaterialPrice, ...]
    items_with_prices: int
    items_without_prices: int

    job: JobCostBreakdown
    component_jobs: tuple[JobCostBreakdown, ...]
    total_job_cost: float

    trading: TradingFees
    output_quantity: int
    output_unit_price: Optional[float]
    output_value: float

    total_cost: float
    profit: float
    margin: Optional[float]
    cost_per_unit: Optional[float] = None
    warnings: tuple[str, ...] = field(default_factory=tuple)

    @property
    def has_all_prices(self) -> bool:
        return self.items_without_prices == 0

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["has_all_prices"] = self.has_all_prices
        return out
