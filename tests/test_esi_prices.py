from __future__ import annotations

from typing import Any

import pytest
import requests

from eve_industry_planner.domain.blueprint import ProductionActivity
from eve_industry_planner.infrastructure.esi import client as esi_client_module
from eve_industry_planner.infrastructure.esi.client import EsiClient
from eve_industry_planner.infrastructure.esi.prices import (
    EsiCostIndexLookup,
    EsiPriceLookup,
    market_price_map_from_esi_prices,
)


class _FakeResponse:
    def __init__(self, payload: Any, *, status_code: int = 200, headers: dict[str, str] | None = None):
        self._payload = payload
        self.status_code = status_code
        self.headers = headers or {}

    def json(self) -> Any:
        return self._payload

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code}")


class _FakeRequests:
    def __init__(self, routes: dict[str, list[_FakeResponse]]):
        self._routes = routes
        self.urls: list[str] = []

    def get(self, url: str, headers=None, timeout=None) -> _FakeResponse:
        self.urls.append(url)
        for prefix, responses in self._routes.items():
            if prefix in url:
                return responses.pop(0) if len(responses) > 1 else responses[0]
        return _FakeResponse(None, status_code=404)


@pytest.fixture
def no_sleep(monkeypatch):
    monkeypatch.setattr(esi_client_module.time, "sleep", lambda _s: None)


def _install(monkeypatch, routes) -> _FakeRequests:
    fake = _FakeRequests(routes)
    monkeypatch.setattr(esi_client_module.requests, "get", fake.get)
    return fake


MARKET_PRICES = [
    {"type_id": 34, "average_price": 4.5, "adjusted_price": 4.1},
    {"type_id": 35, "adjusted_price": 9.0},
    {"type_id": 0, "average_price": 1.0},
    {"average_price": 1.0},
]

ORDERS = [
    {"type_id": 34, "price": 5.0, "is_buy_order": False},
    {"type_id": 34, "price": 4.8, "is_buy_order": False},
    {"type_id": 34, "price": 4.2, "is_buy_order": True},
    {"type_id": 34, "price": 4.4, "is_buy_order": True},
]


def test_market_price_map_skips_bad_rows():
    prices = market_price_map_from_esi_prices(MARKET_PRICES)

    assert prices == {34: {"average": 4.5, "adjusted": 4.1}, 35: {"average": None, "adjusted": 9.0}}


def test_adjusted_and_average_prices_are_cached(monkeypatch, no_sleep):
    fake = _install(monkeypatch, {"/markets/prices/": [_FakeResponse(MARKET_PRICES, headers={"X-Pages": "1"})]})
    lookup = EsiPriceLookup(EsiClient())

    assert lookup.get_adjusted_price(34) == pytest.approx(4.1)
    assert lookup.get_unit_price(34, None, "average") == pytest.approx(4.5)
    assert lookup.get_adjusted_price(99) is None
    assert len(fake.urls) == 1


def test_best_sell_and_buy_orders(monkeypatch, no_sleep):
    fake = _install(monkeypatch, {"/markets/10000002/orders/": [_FakeResponse(ORDERS, headers={"X-Pages": "1"})]})
    lookup = EsiPriceLookup(EsiClient(), default_region_id=10000002)

    assert lookup.get_unit_price(34, None, "sell") == pytest.approx(4.8)
    assert lookup.get_unit_price(34, 10000002, "buy") == pytest.approx(4.4)
    assert "order_type=sell" in fake.urls[0]
    assert "type_id=34" in fake.urls[0]


def test_no_orders_means_no_price(monkeypatch, no_sleep):
    _install(monkeypatch, {"/markets/10000043/orders/": [_FakeResponse([], headers={"X-Pages": "1"})]})

    assert EsiPriceLookup(EsiClient()).get_unit_price(34, 10000043, "sell") is None


def test_unknown_price_type(monkeypatch):
    with pytest.raises(ValueError):
        EsiPriceLookup(EsiClient()).get_unit_price(34, None, "median")


def test_pagination_concatenates_pages(monkeypatch, no_sleep):
    fake = _install(
        monkeypatch,
        {
            "page=1": [_FakeResponse([{"type_id": 34, "adjusted_price": 1.0}], headers={"X-Pages": "2"})],
            "page=2": [_FakeResponse([{"type_id": 35, "adjusted_price": 2.0}], headers={"X-Pages": "2"})],
        },
    )
    data = EsiClient().esi_get("/markets/prices/", paginate=True)

    assert [r["type_id"] for r in data] == [34, 35]
    assert len(fake.urls) == 2


def test_retries_on_error_limit(monkeypatch, no_sleep):
    fake = _install(
        monkeypatch,
        {"/industry/systems/": [_FakeResponse(None, status_code=420), _FakeResponse([])]},
    )

    assert EsiClient(max_retries=3).esi_get("/industry/systems/") == []
    assert len(fake.urls) == 2


def test_gives_up_after_retries(monkeypatch, no_sleep):
    _install(monkeypatch, {"/industry/systems/": [_FakeResponse(None, status_code=503)]})

    with pytest.raises(RuntimeError):
        EsiClient(max_retries=2).esi_get("/industry/systems/")


def test_cost_indices(monkeypatch, no_sleep):
    systems = [
        {
            "solar_system_id": 30000142,
            "cost_indices": [
                {"activity": "manufacturing", "cost_index": 0.0712},
                {"activity": "invention", "cost_index": 0.0521},
                {"activity": "reaction", "cost_index": 0.001},
            ],
        }
    ]
    fake = _install(monkeypatch, {"/industry/systems/": [_FakeResponse(systems)]})
    lookup = EsiCostIndexLookup(EsiClient())

    assert lookup.get(30000142, ProductionActivity.MANUFACTURING) == pytest.approx(0.0712)
    assert lookup.get(30000142, ProductionActivity.INVENTION) == pytest.approx(0.0521)
    assert lookup.get(30000142, ProductionActivity.REACTION) == pytest.approx(0.001)
    assert lookup.get(30002187, ProductionActivity.MANUFACTURING) == 0.0
    assert lookup.get(None, ProductionActivity.MANUFACTURING) == 0.0
    assert len(fake.urls) == 1


def test_missing_later_page_is_not_returned_as_partial(monkeypatch, no_sleep):
    _install(
        monkeypatch,
        {
            "page=1": [_FakeResponse([{"type_id": 34, "price": 5.0, "is_buy_order": False}], headers={"X-Pages": "3"})],
            "page=2": [_FakeResponse(None, status_code=404)],
        },
    )

    with pytest.raises(RuntimeError):
        EsiClient().esi_get("/markets/10000002/orders/", paginate=True)


def test_missing_first_page_reads_as_empty(monkeypatch, no_sleep):
    _install(monkeypatch, {"/markets/10000002/orders/": [_FakeResponse(None, status_code=404)]})

    assert EsiClient().esi_get("/markets/10000002/orders/", paginate=True) == []
