from __future__ import annotations

import json

import pytest
from flask import Flask

from eve_industry_planner import cli
from eve_industry_planner.application.industry.service import IndustryPlannerService
from eve_industry_planner.config.settings import get_settings
from eve_industry_planner.domain.blueprint import MaterialRequirement
from eve_industry_planner.domain.invention import Decryptor, InventionCatalogEntry

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
        [bp(ROOT, {COMPONENT: 2, MINERAL: 10}), bp(COMPONENT, {MINERAL: 5})],
        invention={ROOT: entry},
        decryptors=[Decryptor(34201, "Accelerant Decryptor", 1.2, 2, 10, 1)],
    )
    prices = _FakePrices(unit={MINERAL: 10.0, ROOT: 1_000.0, DATACORE: 50.0, 34201: 500.0}, adjusted={MINERAL: 9.0})
    return IndustryPlannerService(catalog=catalog, prices=prices, settings=get_settings())


@pytest.fixture
def fake_service(monkeypatch):
    built = []

    def _build(settings=None, *, skills_file=None):
        built.append(skills_file)
        return _service()

    monkeypatch.setattr(cli, "build_service", _build)
    return built


def test_resolve_prints_plan(fake_service, capsys):
    code = cli.main(["resolve", str(ROOT), "--runs", "2", "--me", "10", "--buy", str(COMPONENT)])

    assert code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["runs"] == 2
    assert payload["flat_materials"] == {str(COMPONENT): 4, str(MINERAL): 18}
    assert payload["pricing"]["material_cost"] == pytest.approx(18 * 10.0)


def test_resolve_without_pricing(fake_service, capsys):
    assert cli.main(["resolve", str(ROOT), "--no-pricing"]) == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload["pricing"] is None
    assert payload["flat_materials"] == {str(MINERAL): 2 * 5 + 10}


def test_resolve_error_is_reported_as_json(fake_service, capsys):
    assert cli.main(["resolve", "424242"]) == 1

    payload = json.loads(capsys.readouterr().out)
    assert payload["status"] == "error"
    assert payload["data"] == {"type_id": 424242}


def test_invention_prints_ranked_options(fake_service, capsys):
    code = cli.main(
        [
            "invention",
            str(ROOT),
            "--strategy",
            "invention-only",
            "--science-1",
            "5",
            "--science-2",
            "5",
            "--encryption",
            "4",
        ]
    )

    assert code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["strategy"] == "invention-only"
    assert payload["skill_modifier"] == pytest.approx(10 / 30 + 4 / 40)
    assert {o["decryptor_name"] for o in payload["options"]} == {"No Decryptor", "Accelerant Decryptor"}


def test_invention_on_non_inventable_item(fake_service, capsys):
    assert cli.main(["invention", str(MINERAL)]) == 1
    assert json.loads(capsys.readouterr().out)["status"] == "error"


def test_serve_runs_app_with_settings(fake_service, monkeypatch):
    calls = []

    def _run(self, **kwargs):
        calls.append((self, kwargs))

    monkeypatch.setattr(Flask, "run", _run)

    assert cli.main(["--skills-file", "skills.json", "serve"]) == 0

    settings = get_settings()
    app, kwargs = calls[0]
    assert app.extensions["app_state"].init_state == "Ready"
    assert kwargs["host"] == settings.flask_host
    assert kwargs["port"] == settings.flask_port
    assert kwargs["use_reloader"] is False
    assert fake_service == ["skills.json"]
