from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
import os


def _env(name: str, default: str) -> str:
    value = os.getenv(name)
    return default if value is None or value == "" else value


def _bool(name: str, default: bool) -> bool:
    raw = _env(name, "1" if default else "0").strip().lower()
    return raw in {"1", "true", "yes", "y", "on"}


def _int(name: str, default: int) -> int:
    raw = _env(name, str(default)).strip()
    try:
        return int(raw)
    except ValueError:
        return default


def _float(name: str, default: float) -> float:
    raw = _env(name, str(default)).strip()
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class PlannerSettings:
    sde_db_url: str
    app_db_url: str
    language: str

    esi_base_url: str
    esi_timeout_seconds: int
    esi_user_agent: str
    market_prices_cache_ttl_seconds: int
    industry_systems_cache_ttl_seconds: int
    default_region_id: int

    max_depth: int
    expand_reactions: bool

    # Fractions, not percentages.
    scc_surcharge_rate: float
    min_material_multiplier: float
    min_time_multiplier: float
    broker_fee_base_rate: float
    broker_fee_reduction_per_level: float
    min_broker_fee_rate: float
    sales_tax_base_rate: float
    sales_tax_reduction_per_level: float
    min_sales_tax_rate: float
    invention_job_cost_base_fraction: float
    npc_station_tax_rate: float

    flask_host: str
    flask_port: int
    flask_debug: bool


@lru_cache(maxsize=1)
def get_settings() -> PlannerSettings:
    return PlannerSettings(
        sde_db_url=_env("PLANNER_SDE_DB_URL", "sqlite:///database/eve_sde.sqlite"),
        app_db_url=_env("PLANNER_APP_DB_URL", "sqlite:///database/eve_app.sqlite"),
        language=_env("PLANNER_LANGUAGE", "en"),
        esi_base_url=_env("PLANNER_ESI_BASE_URL", "https://esi.evetech.net/latest"),
        esi_timeout_seconds=_int("PLANNER_ESI_TIMEOUT", default=15),
        esi_user_agent=_env("PLANNER_ESI_USER_AGENT", "eve-industry-planner/0.1"),
        market_prices_cache_ttl_seconds=_int("PLANNER_MARKET_PRICES_TTL", default=3600),
        industry_systems_cache_ttl_seconds=_int("PLANNER_INDUSTRY_SYSTEMS_TTL", default=3600),
        # The Forge
        default_region_id=_int("PLANNER_DEFAULT_REGION_ID", default=10000002),
        max_depth=_int("PLANNER_MAX_DEPTH", default=10),
        expand_reactions=_bool("PLANNER_EXPAND_REACTIONS", default=False),
        scc_surcharge_rate=_float("PLANNER_SCC_SURCHARGE_RATE", default=0.04),
        min_material_multiplier=_float("PLANNER_MIN_MATERIAL_MULTIPLIER", default=0.01),
        min_time_multiplier=_float("PLANNER_MIN_TIME_MULTIPLIER", default=0.01),
        broker_fee_base_rate=_float("PLANNER_BROKER_FEE_BASE_RATE", default=0.03),
        broker_fee_reduction_per_level=_float("PLANNER_BROKER_FEE_REDUCTION_PER_LEVEL", default=0.003),
        min_broker_fee_rate=_float("PLANNER_MIN_BROKER_FEE_RATE", default=0.01),
        sales_tax_base_rate=_float("PLANNER_SALES_TAX_BASE_RATE", default=0.075),
        sales_tax_reduction_per_level=_float("PLANNER_SALES_TAX_REDUCTION_PER_LEVEL", default=0.11),
        min_sales_tax_rate=_float("PLANNER_MIN_SALES_TAX_RATE", default=0.01),
        invention_job_cost_base_fraction=_float("PLANNER_INVENTION_JOB_COST_BASE_FRACTION", default=0.02),
        npc_station_tax_rate=_float("PLANNER_NPC_STATION_TAX_RATE", default=0.0025),
        flask_host=_env("FLASK_HOST", "localhost"),
        flask_port=_int("FLASK_PORT", default=5000),
        flask_debug=_bool("FLASK_DEBUG", default=False),
    )
