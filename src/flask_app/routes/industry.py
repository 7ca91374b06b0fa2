from __future__ import annotations

from typing import Any, Optional

from flask import Blueprint, request

from eve_industry_planner.application.errors import InvalidInputError
from eve_industry_planner.application.industry.bom_expansion import buy_list_policy
from eve_industry_planner.domain.blueprint import ProductionActivity
from eve_industry_planner.domain.efficiency import EfficiencyState
from eve_industry_planner.domain.invention import InventionSkills, OptimizationStrategy
from eve_industry_planner.domain.pricing import PricingContext

from flask_app.deps import get_service
from flask_app.http import ok


industry_bp = Blueprint("industry", __name__)


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise InvalidInputError("Request body must be a JSON object")
    return payload


def _int_field(payload: dict, key: str, *, required: bool = False, default: Optional[int] = None) -> Optional[int]:
    raw = payload.get(key)
    if raw is None:
        if required:
            raise InvalidInputError(f"Missing required field: {key}")
        return default
    if isinstance(raw, bool):
        raise InvalidInputError(f"Invalid {key}: {raw!r}")
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise InvalidInputError(f"Invalid {key}: {raw!r}") from None


def _parse(key: str, parser, raw: Any, **kwargs: Any):
    try:
        return parser(raw, **kwargs)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"Invalid {key}: {e}") from None


def _pricing_context(payload: dict) -> Optional[PricingContext]:
    raw = payload.get("pricing")
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise InvalidInputError("Invalid pricing: expected an object")
    service = get_service()
    return _parse("pricing", PricingContext.from_dict, raw, default_region_id=service.default_region_id)


def _efficiency(payload: dict, key: str) -> Optional[EfficiencyState]:
    raw = payload.get(key)
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise InvalidInputError(f"Invalid {key}: expected an object")
    return _parse(key, EfficiencyState.from_dict, raw)


@industry_bp.post("/industry/resolve")
def resolve_production():
    """Expand a production request into its requirement tree and cost breakdown.

    Body: {type_id, runs, activity?, efficiency?, facility_id?, pricing?,
    with_pricing?, buy_type_ids?, max_depth?, expand_reactions?}
    """

    payload = _json_body()
    type_id = _int_field(payload, "type_id", required=True)
    runs = _int_field(payload, "runs", default=1)
    activity = _parse("activity", ProductionActivity.parse, payload.get("activity") or "manufacturing")

    buy_type_ids = payload.get("buy_type_ids")
    build_policy = None
    if buy_type_ids is not None:
        if not isinstance(buy_type_ids, list):
            raise InvalidInputError("Invalid buy_type_ids: expected a list")
        build_policy = _parse("buy_type_ids", buy_list_policy, buy_type_ids)

    expand_reactions = payload.get("expand_reactions")
    plan = get_service().resolve(
        type_id,
        runs,
        _efficiency(payload, "efficiency"),
        _int_field(payload, "facility_id"),
        activity,
        pricing=_pricing_context(payload),
        with_pricing=bool(payload.get("with_pricing", True)),
        build_policy=build_policy,
        max_depth=_int_field(payload, "max_depth"),
        expand_reactions=(bool(expand_reactions) if expand_reactions is not None else None),
    )
    return ok(data=plan.to_dict())


@industry_bp.post("/industry/invention")
def optimize_invention():
    """Rank decryptor choices for inventing a T2 item.

    Body: {type_id, skills?, facility_id?, strategy?, custom_volume?, pricing?,
    component_efficiency?}. Without `skills` the character from `pricing`
    is used, or level 0 everywhere.
    """

    payload = _json_body()
    type_id = _int_field(payload, "type_id", required=True)

    skills = None
    if payload.get("skills") is not None:
        if not isinstance(payload["skills"], dict):
            raise InvalidInputError("Invalid skills: expected an object")
        skills = InventionSkills.from_dict(payload["skills"])

    strategy = _parse("strategy", OptimizationStrategy.parse, payload.get("strategy"))
    result = get_service().optimize_invention(
        type_id,
        skills,
        _int_field(payload, "facility_id"),
        strategy,
        _int_field(payload, "custom_volume"),
        context=_pricing_context(payload),
        component_efficiency=_efficiency(payload, "component_efficiency"),
    )
    return ok(data=result.to_dict())
