from __future__ import annotations

import threading
from typing import Any, Iterable, Mapping, Optional


class CharacterSkillsProfile:
    """TaxProfile over skills already fetched for each character.

    Skill rows use the ESI/skills shape ({"skill_name": .., "trained_skill_level": ..})
    or a plain {name: level} mapping. Unknown characters and skills read as 0.
    """

    def __init__(self, skills_by_character: Optional[Mapping[int, Any]] = None) -> None:
        self._lock = threading.Lock()
        self._skills: dict[int, dict[str, int]] = {}
        for character_id, skills in (skills_by_character or {}).items():
            self.set_skills(int(character_id), skills)

    @staticmethod
    def _normalize(skills: Any) -> dict[str, int]:
        out: dict[str, int] = {}
        if isinstance(skills, Mapping):
            items: Iterable[tuple[Any, Any]] = skills.items()
        else:
            items = (
                (s.get("skill_name"), s.get("trained_skill_level"))
                for s in skills or []
                if isinstance(s, Mapping)
            )
        for name, level in items:
            if not name:
                continue
            try:
                out[str(name).strip().lower()] = max(0, min(int(level or 0), 5))
            except (TypeError, ValueError):
                continue
        return out

    def set_skills(self, character_id: int, skills: Any) -> None:
        normalized = self._normalize(skills)
        with self._lock:
            self._skills[int(character_id)] = normalized

    def get_skill_level(self, character_id: Optional[int], skill_name: str) -> int:
        if character_id is None or not skill_name:
            return 0
        with self._lock:
            return self._skills.get(int(character_id), {}).get(str(skill_name).strip().lower(), 0)
