from __future__ import annotations

import argparse
import json
import logging
from typing import Optional

from eve_industry_planner.application.errors import ServiceError
from eve_industry_planner.application.industry.bom_expansion import buy_list_policy
from eve_industry_planner.application.industry.service import IndustryPlannerService
from eve_industry_planner.config.settings import PlannerSettings, get_settings
from eve_industry_planner.domain.blueprint import ProductionActivity
from eve_industry_planner.domain.efficiency import EfficiencyState
from eve_industry_planner.domain.invention import InventionSkills, OptimizationStrategy
from eve_industry_planner.domain.pricing import PricingContext
from eve_industry_planner.infrastructure.db import make_session_factory
from eve_industry_planner.infrastructure.esi.client import EsiClient
from eve_industry_planner.infrastructure.esi.prices import EsiCostIndexLookup, EsiPriceLookup
from eve_industry_planner.infrastructure.persistence.facilities_repo import SqlFacilityLookup
from eve_industry_planner.infrastructure.persistence.models import BaseApp
from eve_industry_planner.infrastructure.sde.catalog import SdeCatalog
from eve_industry_planner.infrastructure.skills import CharacterSkillsProfile
from utils.logging_setup import configure_logging


logger = logging.getLogger(__name__)


def _load_skills(path: Optional[str]) -> CharacterSkillsProfile:
    """Skills file: {"<character_id>": {"<skill name>": level, ...}, ...}."""

    if not path:
        return CharacterSkillsProfile()
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)
    if not isinstance(raw, dict):
        raise ValueError(f"Skills file {path} must contain a JSON object")
    return CharacterSkillsProfile({int(k): v for k, v in raw.items()})


def build_service(settings: Optional[PlannerSettings] = None, *, skills_file: Optional[str] = None) -> IndustryPlannerService:
    settings = settings or get_settings()

    catalog = SdeCatalog(make_session_factory(settings.sde_db_url), language=settings.language)
    facilities = SqlFacilityLookup(
        make_session_factory(settings.app_db_url, metadata=BaseApp.metadata),
        npc_station_tax_rate=settings.npc_station_tax_rate,
    )
    esi = EsiClient(
        base_url=settings.esi_base_url,
        timeout_seconds=settings.esi_timeout_seconds,
        user_agent=settings.esi_user_agent,
    )
    return IndustryPlannerService(
        catalog=catalog,
        prices=EsiPriceLookup(
            esi,
            default_region_id=settings.default_region_id,
            market_prices_cache_ttl_seconds=settings.market_prices_cache_ttl_seconds,
        ),
        facilities=facilities,
        cost_indices=EsiCostIndexLookup(esi, cache_ttl_seconds=settings.industry_systems_cache_ttl_seconds),
        tax_profile=_load_skills(skills_file),
        settings=settings,
    )


def _pricing_context(args: argparse.Namespace, settings: PlannerSettings) -> PricingContext:
    region = args.region_id or settings.default_region_id
    return PricingContext(
        character_id=args.character_id,
        material_region_id=region,
        material_price_type=args.material_price_type,
        product_region_id=region,
        product_price_type=args.product_price_type,
    )


def _cmd_serve(args: argparse.Namespace, settings: PlannerSettings) -> int:
    from flask_app.app import create_app

    app = create_app(build_service(settings, skills_file=args.skills_file))
    logger.info("Serving on %s:%s", settings.flask_host, settings.flask_port)
    app.run(host=settings.flask_host, port=settings.flask_port, debug=settings.flask_debug, use_reloader=False)
    return 0


def _cmd_resolve(args: argparse.Namespace, settings: PlannerSettings) -> int:
    service = build_service(settings, skills_file=args.skills_file)
    efficiency = EfficiencyState(
        me_level=args.me,
        te_level=args.te,
        component_me_level=args.component_me,
        component_te_level=args.component_te,
    )
    plan = service.resolve(
        args.type_id,
        args.runs,
        efficiency,
        args.facility_id,
        ProductionActivity.parse(args.activity),
        pricing=_pricing_context(args, settings),
        with_pricing=not args.no_pricing,
        build_policy=buy_list_policy(args.buy) if args.buy else None,
        max_depth=args.max_depth,
        expand_reactions=True if args.expand_reactions else None,
    )
    print(json.dumps(plan.to_dict(), indent=2))
    return 0


def _cmd_invention(args: argparse.Namespace, settings: PlannerSettings) -> int:
    service = build_service(settings, skills_file=args.skills_file)
    skills = None
    if args.character_id is None:
        skills = InventionSkills.from_dict(
            {"science_1": args.science_1, "science_2": args.science_2, "encryption": args.encryption}
        )
    result = service.optimize_invention(
        args.type_id,
        skills,
        args.facility_id,
        OptimizationStrategy.parse(args.strategy),
        args.custom_volume,
        context=_pricing_context(args, settings),
    )
    print(json.dumps(result.to_dict(), indent=2))
    return 0


def _add_pricing_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--facility-id", type=int, default=None)
    p.add_argument("--character-id", type=int, default=None, help="Read skills for this character from --skills-file.")
    p.add_argument("--region-id", type=int, default=None, help="Market region (default: PLANNER_DEFAULT_REGION_ID).")
    p.add_argument("--material-price-type", choices=["sell", "buy", "average"], default="sell")
    p.add_argument("--product-price-type", choices=["sell", "buy", "average"], default="sell")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="eve-industry-planner",
        description="Resolve EVE Online production chains, job costs and invention choices.",
    )
    parser.add_argument("--log-level", default="INFO", help="Python logging level (default: %(default)s)")
    parser.add_argument("--skills-file", default=None, help="JSON file of character skills.")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("serve", help="Run the HTTP API.")

    resolve = sub.add_parser("resolve", help="Expand and price one production request.")
    resolve.add_argument("type_id", type=int)
    resolve.add_argument("--runs", type=int, default=1)
    resolve.add_argument("--activity", default="manufacturing", choices=["manufacturing", "reaction"])
    resolve.add_argument("--me", type=int, default=0)
    resolve.add_argument("--te", type=int, default=0)
    resolve.add_argument("--component-me", type=int, default=0)
    resolve.add_argument("--component-te", type=int, default=0)
    resolve.add_argument("--buy", type=int, action="append", default=[], help="Type id to buy instead of build.")
    resolve.add_argument("--max-depth", type=int, default=None)
    resolve.add_argument("--expand-reactions", action="store_true")
    resolve.add_argument("--no-pricing", action="store_true")
    _add_pricing_args(resolve)

    invention = sub.add_parser("invention", help="Rank decryptor choices for a T2 item.")
    invention.add_argument("type_id", type=int)
    invention.add_argument("--strategy", default=OptimizationStrategy.TOTAL_PER_ITEM.value,
                           choices=[s.value for s in OptimizationStrategy])
    invention.add_argument("--custom-volume", type=int, default=None)
    invention.add_argument("--science-1", type=int, default=0)
    invention.add_argument("--science-2", type=int, default=0)
    invention.add_argument("--encryption", type=int, default=0)
    _add_pricing_args(invention)

    return parser


_COMMANDS = {
    "serve": _cmd_serve,
    "resolve": _cmd_resolve,
    "invention": _cmd_invention,
}


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(default_level=str(args.log_level).upper())
    settings = get_settings()

    try:
        return _COMMANDS[args.command](args, settings)
    except ServiceError as e:
        logger.error("%s (%s)", e.message, e.status_code)
        print(json.dumps({"status": "error", "message": e.message, "data": e.data}, indent=2))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
