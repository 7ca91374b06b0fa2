from __future__ import annotations

import pytest

from eve_industry_planner.application.industry.service import IndustryPlannerService
from eve_industry_planner.config.settings import get_settings
from eve_industry_planner.domain.blueprint import MaterialRequirement
from eve_industry_planner.domain.invention import Decryptor, InventionCatalogEntry
from flask_app.app import create_app

from fakes import _FakeCatalog, _FakePrices, bp


ROOT = 1000
COMPONENT = 2000
MINERAL = 34
DATACORE = 20171


def _service() -> IndustryPlannerService:
    entry = InventionCatalogEntry(
        source_blueprint_id=900,
        output_blueprint_id=ROOT + 100000,
        product_type_id=ROOT,
        base_probability=0.3,
        base_runs=10,
        time_seconds=60_000,
        materials=(MaterialRequirement(DATACORE, 4),),
    )
    catalog = _FakeCatalog(
        [bp(ROOT, {COMPONENT: 2, MINERAL: 10}), bp(COMPONENT, {MINERAL: 5}), bp(COMPONENT + 1, {COMPONENT + 2: 1}), bp(COMPONENT + 2, {COMPONENT + 1: 1})],
        invention={ROOT: entry},
        decryptors=[Decryptor(34201, "Accelerant Decryptor", 1.2, 2, 10, 1)],
    )
    prices = _FakePrices(unit={MINERAL: 10.0, ROOT: 1_000.0, DATACORE: 50.0, 34201: 500.0}, adjusted={MINERAL: 9.0})
    return IndustryPlannerService(catalog=catalog, prices=prices, settings=get_settings())


@pytest.fixture
def client():
    app = create_app(_service())
    app.config["TESTING"] = True
    return app.test_client()


def test_health(client):
    r = client.get("/health")

    assert r.status_code == 200
    assert r.get_json()["status"] == "OK"


def test_health_not_ready():
    r = create_app().test_client().get("/health")

    assert r.status_code == 503
    assert r.get_json()["status"] == "not_ready"


def test_resolve(client):
    r = client.post("/industry/resolve", json={"type_id": ROOT, "runs": 2, "efficiency": {"me_level": 10}})

    assert r.status_code == 200
    payload = r.get_json()
    assert payload["status"] == "success"
    data = payload["data"]
    # Root at ME 10: 2 -> 2 components, 10 -> 9 minerals per run.
    assert data["flat_materials"] == {str(MINERAL): 2 * 2 * 5 + 2 * 9}
    assert data["tree"]["children"][0]["is_intermediate"] is True
    assert data["pricing"]["items_without_prices"] == 0
    assert data["pricing"]["has_all_prices"] is True


def test_resolve_with_buy_list(client):
    r = client.post("/industry/resolve", json={"type_id": ROOT, "runs": 1, "buy_type_ids": [COMPONENT], "with_pricing": False})

    data = r.get_json()["data"]
    assert data["flat_materials"] == {str(COMPONENT): 2, str(MINERAL): 10}
    assert data["pricing"] is None


@pytest.mark.parametrize(
    "body,status",
    [
        ({"runs": 1}, 400),
        ({"type_id": "abc"}, 400),
        ({"type_id": ROOT, "runs": 0}, 400),
        ({"type_id": ROOT, "efficiency": {"me_level": 11}}, 400),
        ({"type_id": ROOT, "activity": "mining"}, 400),
        ({"type_id": ROOT, "pricing": {"material_price_type": "median"}}, 400),
        ({"type_id": 424242}, 404),
        ({"type_id": ROOT, "facility_id": 1}, 404),
        ({"type_id": COMPONENT + 1}, 422),
    ],
)
def test_resolve_errors(client, body, status):
    r = client.post("/industry/resolve", json=body)

    assert r.status_code == status
    payload = r.get_json()
    assert payload["status"] == "error"
    assert payload["message"]


def test_cycle_error_carries_chain(client):
    r = client.post("/industry/resolve", json={"type_id": COMPONENT + 1})

    payload = r.get_json()
    assert payload["error"]["code"] == "CyclicDependencyError"
    assert payload["data"]["chain"] == [COMPONENT + 1, COMPONENT + 2, COMPONENT + 1]


def test_invention(client):
    r = client.post(
        "/industry/invention",
        json={"type_id": ROOT, "skills": {"science_1": 5, "science_2": 5, "encryption": 5}, "strategy": "invention-only"},
    )

    assert r.status_code == 200
    data = r.get_json()["data"]
    assert data["strategy"] == "invention-only"
    assert data["skill_modifier"] == pytest.approx(10 / 30 + 5 / 40)
    assert {o["decryptor_name"] for o in data["options"]} == {"No Decryptor", "Accelerant Decryptor"}
    assert data["best"]["score"] == min(o["score"] for o in data["options"])


def test_invention_errors(client):
    assert client.post("/industry/invention", json={"type_id": MINERAL}).status_code == 400
    assert client.post("/industry/invention", json={"type_id": ROOT, "strategy": "custom-volume"}).status_code == 400
    assert client.post("/industry/invention", json={"type_id": ROOT, "strategy": "fastest"}).status_code == 400


def test_unknown_route(client):
    r = client.get("/nope")

    assert r.status_code == 404
    assert r.get_json()["status"] == "error"
