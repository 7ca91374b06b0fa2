from __future__ import annotations

import pytest

from eve_industry_planner.application.industry.bonus_resolver import (
    compute_combined_reduction,
    resolve_bonuses,
    skill_time_multiplier,
)
from eve_industry_planner.domain.blueprint import ProductionActivity
from eve_industry_planner.domain.efficiency import EfficiencyState
from eve_industry_planner.domain.facility import Facility, RigBonus, SecurityZone, StructureBonus

from fakes import _FakeCatalog, bp


RAITARU = 35825
ME_RIG = 43920
TIME_RIG = 43921
SHIP_RIG = 43922
REACTION_RIG = 46484


def _catalog() -> _FakeCatalog:
    return _FakeCatalog(
        structures={RAITARU: StructureBonus(material_bonus_pct=0.01, cost_bonus_pct=0.03, time_bonus_pct=0.15)},
        rigs={
            ME_RIG: RigBonus(ME_RIG, affected_category="Modules", material_bonus_pct=0.02),
            TIME_RIG: RigBonus(TIME_RIG, affected_category="Modules", time_bonus_pct=0.2),
            SHIP_RIG: RigBonus(SHIP_RIG, affected_category="All Ships", material_bonus_pct=0.02),
            REACTION_RIG: RigBonus(
                REACTION_RIG,
                affected_category="All",
                activity=ProductionActivity.REACTION,
                material_bonus_pct=0.024,
            ),
        },
    )


def _facility(*rigs: int, zone: SecurityZone = SecurityZone.HIGH, structure: int | None = RAITARU) -> Facility:
    return Facility(facility_id=1, name="Test", structure_type_id=structure, rig_type_ids=tuple(rigs), security_zone=zone)


def test_structure_and_rig_stack_as_independent_terms():
    bonuses = resolve_bonuses(bp(1, {34: 10}), EfficiencyState(), _facility(ME_RIG), _catalog())

    assert bonuses.material_multiplier == pytest.approx(0.97)
    assert bonuses.cost_multiplier == pytest.approx(0.97)


def test_no_facility_uses_research_levels_only():
    bonuses = resolve_bonuses(bp(1, {34: 10}), EfficiencyState(me_level=10, te_level=20), None, _catalog())

    assert bonuses.material_multiplier == pytest.approx(0.90)
    assert bonuses.time_multiplier == pytest.approx(0.80)
    assert bonuses.security_multiplier == 1.0
    assert bonuses.rigs == ()


@pytest.mark.parametrize(
    "zone,expected",
    [
        (SecurityZone.HIGH, 1 - 0.01 - 0.02 * 1.0),
        (SecurityZone.LOW, 1 - 0.01 - 0.02 * 1.9),
        (SecurityZone.NULL, 1 - 0.01 - 0.02 * 2.1),
    ],
)
def test_rig_bonus_scales_with_security(zone, expected):
    bonuses = resolve_bonuses(bp(1, {34: 10}), EfficiencyState(), _facility(ME_RIG, zone=zone), _catalog())

    assert bonuses.material_multiplier == pytest.approx(expected)


def test_rig_for_other_category_is_ignored():
    definition = bp(1, {34: 10}, product_category="Ammo & Charges")
    bonuses = resolve_bonuses(definition, EfficiencyState(), _facility(ME_RIG), _catalog())

    assert bonuses.material_multiplier == pytest.approx(0.99)


def test_all_ships_rig_matches_any_ship_label():
    definition = bp(1, {34: 10}, product_category="Advanced Medium Ships")
    bonuses = resolve_bonuses(definition, EfficiencyState(), _facility(SHIP_RIG), _catalog())

    assert bonuses.material_multiplier == pytest.approx(0.97)


def test_rig_can_target_a_material_category():
    definition = bp(1, {34: 10, 11399: 5}, product_category="Ships", material_categories={11399: "Modules"})
    bonuses = resolve_bonuses(definition, EfficiencyState(), _facility(ME_RIG), _catalog())

    assert bonuses.material_multiplier_for(definition.materials[0]) == pytest.approx(0.99)
    assert bonuses.material_multiplier_for(definition.materials[1]) == pytest.approx(0.97)


def test_time_multiplier_stacks_te_structure_and_rig():
    bonuses = resolve_bonuses(
        bp(1, {34: 10}),
        EfficiencyState(te_level=20),
        _facility(TIME_RIG, zone=SecurityZone.NULL),
        _catalog(),
    )

    assert bonuses.time_multiplier == pytest.approx(1 - 0.20 - 0.15 - 0.2 * 2.1)


def test_multipliers_never_drop_below_floor():
    rigs = {i: RigBonus(i, material_bonus_pct=0.5, time_bonus_pct=0.9) for i in (1, 2, 3)}
    catalog = _FakeCatalog(structures={RAITARU: StructureBonus(0.5, 0.0, 0.5)}, rigs=rigs)
    bonuses = resolve_bonuses(
        bp(1, {34: 10}),
        EfficiencyState(me_level=10, te_level=20),
        _facility(1, 2, 3, zone=SecurityZone.NULL),
        catalog,
    )

    assert bonuses.material_multiplier == pytest.approx(0.01)
    assert bonuses.time_multiplier == pytest.approx(0.01)


def test_reactions_ignore_research_levels_and_use_reaction_security_table():
    definition = bp(16670, {16633: 100}, activity=ProductionActivity.REACTION, product_category="Composite Reactions")
    bonuses = resolve_bonuses(
        definition,
        EfficiencyState(me_level=10, te_level=20),
        _facility(REACTION_RIG, ME_RIG, zone=SecurityZone.NULL, structure=None),
        _catalog(),
    )

    assert bonuses.me_level == 0
    assert bonuses.te_level == 0
    # The manufacturing rig does not apply to a reaction.
    assert [r.rig_type_id for r in bonuses.rigs] == [REACTION_RIG]
    assert bonuses.material_multiplier == pytest.approx(1 - 0.024 * 1.1)


def test_combined_reduction_is_multiplicative():
    assert compute_combined_reduction([0.02, 0.02]) == pytest.approx(1 - 0.98 * 0.98)
    assert compute_combined_reduction([]) == 0.0
    assert compute_combined_reduction([0.0, -1.0]) == 0.0


def test_skill_time_multiplier():
    assert skill_time_multiplier(ProductionActivity.MANUFACTURING, industry=5, advanced_industry=5) == pytest.approx(
        0.80 * 0.85
    )
    assert skill_time_multiplier(ProductionActivity.REACTION, reactions=5) == pytest.approx(0.80)
    assert skill_time_multiplier(ProductionActivity.INVENTION, industry=5, advanced_industry=4) == pytest.approx(0.88)
    assert skill_time_multiplier(ProductionActivity.MANUFACTURING, industry=9) == pytest.approx(0.80)
