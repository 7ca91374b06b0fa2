from __future__ import annotations

import pytest

from eve_industry_planner.application.errors import InvalidInputError, NoDecryptorDataError, NotFoundError
from eve_industry_planner.application.industry.service import IndustryPlannerService
from eve_industry_planner.config.settings import get_settings
from eve_industry_planner.domain.blueprint import MaterialRequirement, ProductionActivity
from eve_industry_planner.domain.efficiency import EfficiencyState
from eve_industry_planner.domain.facility import Facility, SecurityZone, StructureBonus
from eve_industry_planner.domain.invention import Decryptor, InventionCatalogEntry, OptimizationStrategy
from eve_industry_planner.domain.pricing import PricingContext

from fakes import _FakeCatalog, _FakeCostIndices, _FakeFacilities, _FakePrices, _FakeTaxProfile, bp


T2_ITEM = 12058
COMPONENT = 11539
MINERAL = 34
DATACORE = 20171
DECRYPTOR = 34201
SYSTEM = 30000142
CHARACTER = 90000001


def _service(**overrides) -> IndustryPlannerService:
    entry = InventionCatalogEntry(
        source_blueprint_id=1000,
        output_blueprint_id=T2_ITEM + 100000,
        product_type_id=T2_ITEM,
        base_probability=0.34,
        base_runs=10,
        time_seconds=60_000,
        materials=(MaterialRequirement(DATACORE, 8),),
        science_skills=("Mechanical Engineering", "Electronic Engineering"),
        encryption_skill="Caldari Encryption Methods",
    )
    catalog = _FakeCatalog(
        [bp(T2_ITEM, {COMPONENT: 10, MINERAL: 100}, time_seconds=3_000), bp(COMPONENT, {MINERAL: 20})],
        structures={35825: StructureBonus(0.01, 0.03, 0.15)},
        invention={T2_ITEM: entry},
        decryptors=[Decryptor(DECRYPTOR, "Accelerant Decryptor", 1.2, 2, 10, 1)],
    )
    defaults = dict(
        catalog=catalog,
        prices=_FakePrices(
            unit={MINERAL: 10.0, T2_ITEM: 10_000.0, DATACORE: 100.0, DECRYPTOR: 1_000.0},
            adjusted={MINERAL: 9.0, COMPONENT: 250.0, T2_ITEM: 9_000.0},
        ),
        facilities=_FakeFacilities(
            [Facility(7, "Raitaru", structure_type_id=35825, security_zone=SecurityZone.LOW, system_id=SYSTEM, tax_rate=0.01)]
        ),
        cost_indices=_FakeCostIndices(
            {
                (SYSTEM, ProductionActivity.MANUFACTURING): 0.05,
                (SYSTEM, ProductionActivity.INVENTION): 0.07,
            }
        ),
        tax_profile=_FakeTaxProfile(
            {
                "Industry": 5,
                "Advanced Industry": 5,
                "Mechanical Engineering": 4,
                "Electronic Engineering": 4,
                "Caldari Encryption Methods": 3,
            },
            character_id=CHARACTER,
        ),
        settings=get_settings(),
    )
    defaults.update(overrides)
    return IndustryPlannerService(**defaults)


def test_resolve_returns_tree_flat_time_and_pricing():
    plan = _service().resolve(T2_ITEM, 2, EfficiencyState(me_level=2), 7)

    # Root at ME 2 + hull 1%: 10 -> 10 components, 100 -> 97 minerals per run.
    # 20 component runs at ME 0 + hull 1%: 20 -> 20 minerals per run.
    assert plan.flat_materials == {MINERAL: 20 * 20 + 2 * 97}
    assert plan.total_time_seconds == sum(job.job_time_seconds for job in plan.tree.iter_jobs())
    assert plan.pricing is not None
    assert plan.pricing.output_quantity == 2
    assert plan.pricing.component_jobs[0].type_id == COMPONENT
    assert plan.facility.facility_id == 7

    data = plan.to_dict()
    assert data["flat_materials"] == {str(MINERAL): plan.flat_materials[MINERAL]}
    assert data["activity"] == "manufacturing"


def test_resolve_without_pricing():
    plan = _service().resolve(T2_ITEM, 1, with_pricing=False)

    assert plan.pricing is None


def test_resolve_uses_character_skills_for_time():
    service = _service()
    without = service.resolve(T2_ITEM, 1, with_pricing=False)
    with_skills = service.resolve(T2_ITEM, 1, pricing=PricingContext(character_id=CHARACTER), with_pricing=False)

    assert with_skills.tree.job_time_seconds == pytest.approx(without.tree.job_time_seconds * 0.8 * 0.85, abs=1)


def test_unknown_facility_is_not_found():
    with pytest.raises(NotFoundError):
        _service().resolve(T2_ITEM, 1, facility_id=999)


def test_invalid_facility_id():
    with pytest.raises(InvalidInputError):
        _service().resolve(T2_ITEM, 1, facility_id="7")


def test_pricing_requested_without_price_source_is_skipped():
    plan = _service(prices=None).resolve(T2_ITEM, 1)

    assert plan.pricing is None
    assert plan.flat_materials


def test_optimize_invention_reads_skills_from_character():
    result = _service().optimize_invention(T2_ITEM, context=PricingContext(character_id=CHARACTER))

    assert result.skill_modifier == pytest.approx(8 / 30 + 3 / 40)
    assert result.best is not None
    assert {o.decryptor_name for o in result.options} == {"No Decryptor", "Accelerant Decryptor"}
    for option in result.options:
        assert option.manufacturing_cost_per_unit is not None
        assert option.datacore_cost == pytest.approx(800.0)


def test_optimize_invention_job_cost_uses_invention_index():
    result = _service().optimize_invention(T2_ITEM, facility_id=7, strategy=OptimizationStrategy.INVENTION_ONLY)

    eiv = 10 * 250.0 + 100 * 9.0
    expected = eiv * 0.02 * 0.07 * 0.97 * (1 + 0.01 + 0.04)
    assert result.best.job_cost == pytest.approx(expected)


def test_optimize_invention_for_non_inventable_item():
    with pytest.raises(NoDecryptorDataError):
        _service().optimize_invention(COMPONENT)


def test_optimize_invention_rejects_bad_type_id():
    with pytest.raises(InvalidInputError):
        _service().optimize_invention(-5)


def test_unknown_activity_is_invalid_input():
    with pytest.raises(InvalidInputError) as excinfo:
        _service().resolve(T2_ITEM, 1, activity="mining")

    assert excinfo.value.status_code == 400
    assert excinfo.value.data == {"activity": "mining"}


def test_unknown_strategy_is_invalid_input():
    with pytest.raises(InvalidInputError):
        _service().optimize_invention(T2_ITEM, strategy="fastest")


def test_activity_given_as_text_is_accepted():
    plan = _service().resolve(T2_ITEM, 1, activity="manufacturing", with_pricing=False)

    assert plan.activity == ProductionActivity.MANUFACTURING
