from __future__ import annotations

import logging
import threading
import time
from typing import Any, Dict, Optional

from eve_industry_planner.domain.blueprint import ProductionActivity
from eve_industry_planner.infrastructure.esi.client import EsiClient


logger = logging.getLogger(__name__)


def market_price_map_from_esi_prices(market_prices: list[dict] | None) -> dict[int, dict[str, Optional[float]]]:
    """Index /markets/prices/ rows by type id: {"average": .., "adjusted": ..}."""

    out: dict[int, dict[str, Optional[float]]] = {}
    for r in market_prices or []:
        if not isinstance(r, dict) or r.get("type_id") is None:
            continue
        try:
            tid = int(r["type_id"])
        except (TypeError, ValueError):
            continue
        if tid <= 0:
            continue
        avg = r.get("average_price")
        adj = r.get("adjusted_price")
        out[tid] = {
            "average": float(avg) if avg is not None else None,
            "adjusted": float(adj) if adj is not None else None,
        }
    return out


class EsiPriceLookup:
    """PriceLookup over ESI market endpoints, with in-memory TTL caches.

    - "sell": lowest sell order in the region
    - "buy": highest buy order in the region
    - "average": CCP's global average price
    Adjusted prices (for EIV) come from /markets/prices/.
    """

    def __init__(
        self,
        client: EsiClient,
        *,
        default_region_id: int = 10000002,
        market_prices_cache_ttl_seconds: int = 3600,
        type_orders_cache_ttl_seconds: int = 300,
    ) -> None:
        self._client = client
        self._default_region_id = int(default_region_id)
        self._market_prices_cache_ttl_seconds = int(market_prices_cache_ttl_seconds)
        self._type_orders_cache_ttl_seconds = int(type_orders_cache_ttl_seconds)
        self._lock = threading.Lock()

        # (timestamp, {type_id: {"average": .., "adjusted": ..}})
        self._market_prices_cache: Optional[tuple[float, dict[int, dict[str, Optional[float]]]]] = None
        # { (order_type, region_id, type_id): (timestamp, best price or None) }
        self._type_orders_cache: Dict[tuple, tuple[float, Optional[float]]] = {}

    def _market_prices(self) -> dict[int, dict[str, Optional[float]]]:
        now = time.time()
        with self._lock:
            cache = self._market_prices_cache
        if cache and (now - cache[0] < self._market_prices_cache_ttl_seconds):
            return cache[1]

        data = self._client.esi_get("/markets/prices/", paginate=True)
        price_map = market_price_map_from_esi_prices(data if isinstance(data, list) else [])
        with self._lock:
            self._market_prices_cache = (now, price_map)
        logger.info("Loaded %s market prices from ESI", len(price_map))
        return price_map

    def _best_order_price(self, type_id: int, region_id: int, order_type: str) -> Optional[float]:
        now = time.time()
        cache_key = (order_type, region_id, type_id)
        with self._lock:
            cached = self._type_orders_cache.get(cache_key)
        if cached and (now - cached[0] < self._type_orders_cache_ttl_seconds):
            return cached[1]

        orders = self._client.esi_get(
            f"/markets/{region_id}/orders/",
            params={"order_type": order_type, "type_id": type_id},
            paginate=True,
        )
        want_buy = order_type == "buy"
        prices = [
            float(o["price"])
            for o in orders or []
            if isinstance(o, dict) and o.get("price") is not None and bool(o.get("is_buy_order")) == want_buy
        ]
        best: Optional[float] = None
        if prices:
            best = max(prices) if want_buy else min(prices)

        with self._lock:
            self._type_orders_cache[cache_key] = (now, best)
        return best

    def get_unit_price(self, type_id: int, region_id: Optional[int], price_type: str) -> Optional[float]:
        if price_type == "average":
            return self._market_prices().get(int(type_id), {}).get("average")
        if price_type not in {"sell", "buy"}:
            raise ValueError(f"Unsupported price type: {price_type!r}")
        return self._best_order_price(int(type_id), int(region_id or self._default_region_id), price_type)

    def get_adjusted_price(self, type_id: int) -> Optional[float]:
        return self._market_prices().get(int(type_id), {}).get("adjusted")


# /industry/systems/ activity names
_COST_INDEX_ACTIVITY: dict[ProductionActivity, str] = {
    ProductionActivity.MANUFACTURING: "manufacturing",
    ProductionActivity.REACTION: "reaction",
    ProductionActivity.INVENTION: "invention",
}


class EsiCostIndexLookup:
    def __init__(self, client: EsiClient, *, cache_ttl_seconds: int = 3600) -> None:
        self._client = client
        self._cache_ttl_seconds = int(cache_ttl_seconds)
        self._lock = threading.Lock()
        self._cache: Optional[tuple[float, dict[int, dict[str, float]]]] = None

    def _indices(self) -> dict[int, dict[str, float]]:
        now = time.time()
        with self._lock:
            cache = self._cache
        if cache and (now - cache[0] < self._cache_ttl_seconds):
            return cache[1]

        data = self._client.esi_get("/industry/systems/")
        out: dict[int, dict[str, float]] = {}
        for row in data if isinstance(data, list) else []:
            if not isinstance(row, dict) or row.get("solar_system_id") is None:
                continue
            out[int(row["solar_system_id"])] = {
                str(ci.get("activity")): float(ci.get("cost_index") or 0.0)
                for ci in row.get("cost_indices") or []
                if isinstance(ci, dict)
            }
        with self._lock:
            self._cache = (now, out)
        return out

    def get(self, system_id: Optional[int], activity: ProductionActivity) -> float:
        if system_id is None:
            return 0.0
        by_activity = self._indices().get(int(system_id), {})
        return float(by_activity.get(_COST_INDEX_ACTIVITY.get(activity, ""), 0.0))
