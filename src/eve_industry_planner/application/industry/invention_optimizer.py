from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Sequence

from eve_industry_planner.application.errors import InvalidInputError, NoDecryptorDataError
from eve_industry_planner.domain.efficiency import MAX_ME_LEVEL, MAX_TE_LEVEL
from eve_industry_planner.domain.invention import (
    INVENTED_BASE_ME_LEVEL,
    INVENTED_BASE_TE_LEVEL,
    Decryptor,
    InventionCatalogEntry,
    InventionOption,
    InventionResult,
    InventionSkills,
    OptimizationStrategy,
)


logger = logging.getLogger(__name__)


NO_DECRYPTOR = Decryptor(type_id=0, name="No Decryptor")


@dataclass(frozen=True)
class ManufacturingEstimate:
    cost_per_unit: Optional[float]
    time_per_unit_seconds: Optional[float] = None


# (me_level, te_level, runs) -> estimate for manufacturing from the invented copy.
ManufacturingEstimator = Callable[[int, int, int], Optional[ManufacturingEstimate]]


def invention_probability(base_probability: float, skills: InventionSkills, probability_multiplier: float = 1.0) -> float:
    """base * (1 + (science1 + science2) / 30 + encryption / 40) * decryptor, clamped to [0, 1]."""

    p = float(base_probability or 0.0) * (1.0 + skills.modifier()) * float(probability_multiplier or 0.0)
    return max(0.0, min(p, 1.0))


def _clamp(v: int, lo: int, hi: int) -> int:
    return max(lo, min(int(v), hi))


def _safe_div(a: Optional[float], b: float) -> Optional[float]:
    if a is None or b <= 0:
        return None
    return a / b


class InventionOptimizer:
    def __init__(
        self,
        *,
        job_cost_per_attempt: float = 0.0,
        attempt_time_seconds: Optional[float] = None,
        manufacturing_estimator: Optional[ManufacturingEstimator] = None,
    ) -> None:
        self._job_cost_per_attempt = max(0.0, float(job_cost_per_attempt or 0.0))
        self._attempt_time_seconds = attempt_time_seconds
        self._manufacturing_estimator = manufacturing_estimator
        self._estimates: dict[tuple[int, int, int], Optional[ManufacturingEstimate]] = {}

    def _estimate(self, me: int, te: int, runs: int) -> Optional[ManufacturingEstimate]:
        if self._manufacturing_estimator is None:
            return None
        key = (me, te, runs)
        if key not in self._estimates:
            self._estimates[key] = self._manufacturing_estimator(me, te, runs)
        return self._estimates[key]

    def optimize(
        self,
        entry: Optional[InventionCatalogEntry],
        decryptors: Sequence[Decryptor],
        material_prices: Mapping[int, Optional[float]],
        product_price: Optional[float],
        skills: InventionSkills,
        strategy: OptimizationStrategy = OptimizationStrategy.TOTAL_PER_ITEM,
        custom_volume: Optional[int] = None,
        *,
        requested_type_id: int = 0,
    ) -> InventionResult:
        if entry is None:
            raise NoDecryptorDataError(requested_type_id)
        if strategy == OptimizationStrategy.CUSTOM_VOLUME:
            if custom_volume is None or int(custom_volume) < 1:
                raise InvalidInputError("custom-volume strategy needs a volume >= 1")
            custom_volume = int(custom_volume)

        candidates = [NO_DECRYPTOR] + [d for d in decryptors if d.type_id != NO_DECRYPTOR.type_id]
        options = [
            self._evaluate(entry, d, material_prices, product_price, skills, strategy, custom_volume)
            for d in candidates
        ]
        ranked = sorted(
            options,
            key=lambda o: (o.score, o.datacore_cost + o.decryptor_cost, o.decryptor_name),
        )
        best = ranked[0] if ranked else None
        if best is not None and math.isinf(best.score):
            logger.warning(
                "No invention option for %s is scorable under %s; falling back to cheapest materials",
                entry.product_type_id,
                strategy.value,
            )

        return InventionResult(
            product_type_id=entry.product_type_id,
            base_probability=float(entry.base_probability),
            skill_modifier=skills.modifier(),
            strategy=strategy,
            options=tuple(ranked),
            best=best,
            custom_volume=custom_volume,
        )

    def _evaluate(
        self,
        entry: InventionCatalogEntry,
        decryptor: Decryptor,
        material_prices: Mapping[int, Optional[float]],
        product_price: Optional[float],
        skills: InventionSkills,
        strategy: OptimizationStrategy,
        custom_volume: Optional[int],
    ) -> InventionOption:
        probability = invention_probability(entry.base_probability, skills, decryptor.probability_multiplier)
        runs = max(1, int(entry.base_runs) + int(decryptor.run_modifier))
        me = _clamp(INVENTED_BASE_ME_LEVEL + decryptor.me_modifier, 0, MAX_ME_LEVEL)
        te = _clamp(INVENTED_BASE_TE_LEVEL + decryptor.te_modifier, 0, MAX_TE_LEVEL)
        units_per_copy = runs * max(1, int(entry.product_quantity_per_run))

        missing = 0
        datacore_cost = 0.0
        for material in entry.materials:
            price = material_prices.get(material.type_id)
            if price is None:
                missing += 1
                continue
            datacore_cost += float(material.quantity) * float(price)

        decryptor_cost = 0.0
        if decryptor is not NO_DECRYPTOR:
            price = material_prices.get(decryptor.type_id)
            if price is None:
                missing += 1
            else:
                decryptor_cost = float(price)

        cost_per_attempt = datacore_cost + decryptor_cost + self._job_cost_per_attempt

        expected_attempts = (1.0 / probability) if probability > 0 else None
        cost_per_success = (cost_per_attempt / probability) if probability > 0 else None
        invention_cost_per_unit = _safe_div(cost_per_success, units_per_copy)

        estimate = self._estimate(me, te, runs)
        mfg_cost_per_unit = estimate.cost_per_unit if estimate is not None else None
        mfg_time_per_unit = estimate.time_per_unit_seconds if estimate is not None else None

        total_cost_per_unit = None
        full_bpc_cost = None
        custom_volume_cost = None
        if invention_cost_per_unit is not None:
            total_cost_per_unit = invention_cost_per_unit + (mfg_cost_per_unit or 0.0)
        if cost_per_success is not None:
            full_bpc_cost = cost_per_success + (mfg_cost_per_unit or 0.0) * units_per_copy
            if custom_volume:
                copies_needed = math.ceil(custom_volume / units_per_copy)
                custom_volume_cost = copies_needed * cost_per_success + (mfg_cost_per_unit or 0.0) * custom_volume

        expected_time_per_unit = None
        attempt_time = self._attempt_time_seconds if self._attempt_time_seconds is not None else entry.time_seconds
        if probability > 0:
            expected_time_per_unit = (float(attempt_time) / probability) / units_per_copy + (mfg_time_per_unit or 0.0)

        expected_profit_per_unit = None
        if product_price is not None and total_cost_per_unit is not None:
            expected_profit_per_unit = float(product_price) - total_cost_per_unit

        if strategy == OptimizationStrategy.INVENTION_ONLY:
            metric = invention_cost_per_unit
        elif strategy == OptimizationStrategy.TOTAL_PER_ITEM:
            metric = total_cost_per_unit
        elif strategy == OptimizationStrategy.TOTAL_FULL_BPC:
            metric = full_bpc_cost
        elif strategy == OptimizationStrategy.TIME_OPTIMIZED:
            metric = expected_time_per_unit
        elif strategy == OptimizationStrategy.MAX_PROFIT:
            metric = -expected_profit_per_unit if expected_profit_per_unit is not None else None
        else:
            metric = _safe_div(custom_volume_cost, float(custom_volume or 0))

        return InventionOption(
            decryptor_type_id=(decryptor.type_id if decryptor is not NO_DECRYPTOR else None),
            decryptor_name=decryptor.name,
            probability=probability,
            runs_per_copy=runs,
            me_level=me,
            te_level=te,
            datacore_cost=datacore_cost,
            decryptor_cost=decryptor_cost,
            job_cost=self._job_cost_per_attempt,
            cost_per_attempt=cost_per_attempt,
            missing_prices=missing,
            units_per_copy=units_per_copy,
            expected_attempts=expected_attempts,
            cost_per_success=cost_per_success,
            invention_cost_per_unit=invention_cost_per_unit,
            manufacturing_cost_per_unit=mfg_cost_per_unit,
            total_cost_per_unit=total_cost_per_unit,
            full_bpc_cost=full_bpc_cost,
            custom_volume_cost=custom_volume_cost,
            expected_time_per_unit_seconds=expected_time_per_unit,
            expected_profit_per_unit=expected_profit_per_unit,
            score=float(metric) if metric is not None else math.inf,
        )
