from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Optional

from sqlalchemy import bindparam, text

from eve_industry_planner.domain.blueprint import ProductionActivity
from eve_industry_planner.domain.facility import RigBonus


logger = logging.getLogger(__name__)


_RIG_ATTR_TIME_REDUCTION = 2593
_RIG_ATTR_MATERIAL_REDUCTION = 2594


_RIG_GROUP_TOKEN_LABELS: dict[str, str] = {
    # Manufacturing
    "Equipment": "Modules",
    "Ammo": "Ammo & Charges",
    "Drone": "Drones",
    "Smallship": "Basic Small Ships",
    "Mediumship": "Basic Medium Ships",
    "Mediumships": "Basic Medium Ships",
    "Largeship": "Basic Large Ships",
    "AdvComponent": "Advanced Components",
    "AdvSmship": "Advanced Small Ships",
    "AdvMedShip": "Advanced Medium Ships",
    "AdvLarShip": "Advanced Large Ships",
    "BasCapComp": "Capital Components",
    "CapShip": "Capital Ships",
    "AdvCapComponent": "Advanced Capital Components",
    "Structure": "Structures",
    "ThukkerAdvCapComp": "Advanced Capital Components",
    "ThukkerBasCapComp": "Capital Components",
    "AllShip": "All Ships",
    # Reactions
    "Bio": "Biochemical Reactions",
    "Comp": "Composite Reactions",
    "Hyb": "Hybrid Reactions",
}

_BONUS_SUFFIXES = ("MaterialBonus", "MatBonus", "TimeBonus", "CostBonus")


def _camel_to_words(s: str) -> str:
    out: list[str] = []
    buf = ""
    for ch in s:
        if buf and ch.isupper() and (not buf[-1].isupper()):
            out.append(buf)
            buf = ch
        else:
            buf += ch
    if buf:
        out.append(buf)
    return " ".join(out).strip()


def _group_label(token: Optional[str]) -> str:
    if not token:
        return "All"
    return _RIG_GROUP_TOKEN_LABELS.get(token) or _camel_to_words(token)


def parse_rig_effect_name(effect_name: str) -> tuple[Optional[ProductionActivity], Optional[str], Optional[str]]:
    """Split a rig effect name into (activity, group label, metric).

    e.g. "rigEquipmentManufactureMaterialBonus" -> (MANUFACTURING, "Modules", "material")
         "rigReactionBioTimeBonus" -> (REACTION, "Biochemical Reactions", "time")

    Research and copying rigs return activity None.
    """

    if not effect_name or not effect_name.startswith("rig") or "Bonus" not in effect_name:
        return None, None, None

    if ("Material" in effect_name) or ("MatBonus" in effect_name):
        metric: Optional[str] = "material"
    elif "Time" in effect_name:
        metric = "time"
    elif "Cost" in effect_name:
        metric = "cost"
    else:
        metric = None

    rest = effect_name[3:]

    if rest.startswith("Reaction"):
        group_part = rest[len("Reaction"):]
        for suffix in _BONUS_SUFFIXES:
            if suffix in group_part:
                group_part = group_part.split(suffix, 1)[0]
                break
        return ProductionActivity.REACTION, _group_label(group_part or None), metric

    for token, activity in [
        ("Manufacture", ProductionActivity.MANUFACTURING),
        ("Invention", ProductionActivity.INVENTION),
    ]:
        idx = rest.find(token)
        if idx >= 0:
            return activity, _group_label(rest[:idx] if idx > 0 else None), metric

    return None, None, metric


def _json(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return None
    return value


def _attr_map(raw: Any) -> dict[int, float]:
    out: dict[int, float] = {}
    for a in _json(raw) or []:
        if not isinstance(a, dict):
            continue
        aid = a.get("attributeID")
        val = a.get("value")
        if aid is None or val is None:
            continue
        try:
            out[int(aid)] = float(val)
        except (TypeError, ValueError):
            continue
    return out


def _effect_ids(raw: Any) -> list[int]:
    out: list[int] = []
    for e in _json(raw) or []:
        if not isinstance(e, dict) or e.get("effectID") is None:
            continue
        try:
            out.append(int(e["effectID"]))
        except (TypeError, ValueError):
            continue
    return out


def load_rig_bonuses(sde_session: Any, rig_type_ids: Iterable[int]) -> dict[int, RigBonus]:
    """Read industry rig bonuses from typeDogma/dogmaEffects.

    Attribute values are negative percentages (-2.0 == 2% reduction). Rigs
    without a manufacturing, reaction or invention effect are left out.
    """

    ids = sorted({int(x) for x in rig_type_ids if x is not None and int(x) != 0})
    if not ids:
        return {}

    dogma_rows = sde_session.execute(
        text("SELECT id, dogmaAttributes, dogmaEffects FROM typeDogma WHERE id IN :ids").bindparams(
            bindparam("ids", expanding=True)
        ),
        {"ids": ids},
    ).fetchall()

    dogma_by_type_id: dict[int, tuple[dict[int, float], list[int]]] = {}
    all_effect_ids: set[int] = set()
    for tid, attrs_raw, effects_raw in dogma_rows:
        effect_ids = _effect_ids(effects_raw)
        all_effect_ids.update(effect_ids)
        dogma_by_type_id[int(tid)] = (_attr_map(attrs_raw), effect_ids)

    effect_name_by_id: dict[int, str] = {}
    if all_effect_ids:
        eff_rows = sde_session.execute(
            text("SELECT id, name FROM dogmaEffects WHERE id IN :ids").bindparams(bindparam("ids", expanding=True)),
            {"ids": sorted(all_effect_ids)},
        ).fetchall()
        effect_name_by_id = {int(r[0]): (r[1] or "") for r in eff_rows}

    out: dict[int, RigBonus] = {}
    for type_id in ids:
        attrs, effect_ids = dogma_by_type_id.get(type_id, ({}, []))
        material_reduction = max(0.0, -float(attrs.get(_RIG_ATTR_MATERIAL_REDUCTION, 0.0)) / 100.0)
        time_reduction = max(0.0, -float(attrs.get(_RIG_ATTR_TIME_REDUCTION, 0.0)) / 100.0)

        activity: Optional[ProductionActivity] = None
        group: Optional[str] = None
        has_material = False
        has_time = False
        for eid in effect_ids:
            e_activity, e_group, metric = parse_rig_effect_name(effect_name_by_id.get(eid, ""))
            if e_activity is None or metric not in {"material", "time"}:
                continue
            if activity is None:
                activity, group = e_activity, e_group
            elif (e_activity, e_group) != (activity, group):
                logger.debug("Rig %s has effects for several groups; using %s", type_id, group)
                continue
            has_material = has_material or metric == "material"
            has_time = has_time or metric == "time"

        if activity is None:
            continue

        out[type_id] = RigBonus(
            rig_type_id=type_id,
            affected_category=group or "All",
            activity=activity,
            material_bonus_pct=material_reduction if has_material else 0.0,
            time_bonus_pct=time_reduction if has_time else 0.0,
        )

    return out
