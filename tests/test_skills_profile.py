from __future__ import annotations

from eve_industry_planner.infrastructure.skills import CharacterSkillsProfile


def test_plain_mapping_is_case_insensitive_and_clamped():
    profile = CharacterSkillsProfile({"90000001": {"Broker Relations": 4, "Accounting": 7, "Industry": -1}})

    assert profile.get_skill_level(90000001, "broker relations") == 4
    assert profile.get_skill_level(90000001, "ACCOUNTING") == 5
    assert profile.get_skill_level(90000001, "Industry") == 0


def test_esi_rows_are_accepted():
    rows = [
        {"skill_name": "Science", "trained_skill_level": 5},
        {"skill_name": "Amarr Encryption Methods", "trained_skill_level": "3"},
        {"skill_name": None, "trained_skill_level": 5},
        {"skill_name": "Broken", "trained_skill_level": "x"},
        "not a row",
    ]
    profile = CharacterSkillsProfile()
    profile.set_skills(90000002, rows)

    assert profile.get_skill_level(90000002, "Science") == 5
    assert profile.get_skill_level(90000002, "Amarr Encryption Methods") == 3
    assert profile.get_skill_level(90000002, "Broken") == 0


def test_unknown_character_or_skill_reads_zero():
    profile = CharacterSkillsProfile({1: {"Industry": 5}})

    assert profile.get_skill_level(None, "Industry") == 0
    assert profile.get_skill_level(2, "Industry") == 0
    assert profile.get_skill_level(1, "") == 0
    assert profile.get_skill_level(1, "Reactions") == 0


def test_set_skills_replaces_previous_levels():
    profile = CharacterSkillsProfile({1: {"Industry": 5, "Accounting": 3}})
    profile.set_skills(1, {"Industry": 2})

    assert profile.get_skill_level(1, "Industry") == 2
    assert profile.get_skill_level(1, "Accounting") == 0
