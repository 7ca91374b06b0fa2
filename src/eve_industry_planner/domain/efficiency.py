from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional


MAX_ME_LEVEL = 10
MAX_TE_LEVEL = 20
TE_LEVEL_STEP = 2


@dataclass(frozen=True)
class EfficiencyState:
    """Blueprint research levels used for one resolve call.

    `blueprint_overrides` maps a blueprint id to the (me, te) levels of a copy
    the character owns; an override wins over every caller-supplied level.
    Intermediate blueprints without an override use the component levels.
    """

    me_level: int = 0
    te_level: int = 0
    blueprint_overrides: Mapping[int, tuple[int, int]] = field(default_factory=dict)
    component_me_level: int = 0
    component_te_level: int = 0

    def levels_for(self, blueprint_id: int, *, is_root: bool) -> tuple[int, int]:
        override = self.blueprint_overrides.get(int(blueprint_id))
        if override is not None:
            return int(override[0]), int(override[1])
        if is_root:
            return int(self.me_level), int(self.te_level)
        return int(self.component_me_level), int(self.component_te_level)

    def all_levels(self) -> list[tuple[str, int, int]]:
        levels = [("root", self.me_level, self.te_level), ("component", self.component_me_level, self.component_te_level)]
        for bp_id, (me, te) in self.blueprint_overrides.items():
            levels.append((f"blueprint {bp_id}", me, te))
        return levels

    @staticmethod
    def from_dict(data: Optional[Mapping[str, Any]]) -> "EfficiencyState":
        data = data or {}
        overrides: dict[int, tuple[int, int]] = {}
        for raw_id, raw_levels in (data.get("blueprint_overrides") or {}).items():
            if isinstance(raw_levels, Mapping):
                me = raw_levels.get("me_level", 0)
                te = raw_levels.get("te_level", 0)
            else:
                me, te = raw_levels
            overrides[int(raw_id)] = (int(me or 0), int(te or 0))
        return EfficiencyState(
            me_level=int(data.get("me_level") or 0),
            te_level=int(data.get("te_level") or 0),
            blueprint_overrides=overrides,
            component_me_level=int(data.get("component_me_level") or 0),
            component_te_level=int(data.get("component_te_level") or 0),
        )
