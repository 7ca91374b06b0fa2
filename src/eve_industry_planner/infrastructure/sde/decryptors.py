from __future__ import annotations

import json
from typing import Any

from sqlalchemy import bindparam, text

from eve_industry_planner.domain.invention import Decryptor
from eve_industry_planner.infrastructure.sde.localization import localized_text

# Dogma attribute IDs (SDE dogmaAttributes table)
_ATTR_INVENTION_PROB_MULT = 1112
_ATTR_INVENTION_ME_MOD = 1113
_ATTR_INVENTION_TE_MOD = 1114
_ATTR_INVENTION_MAX_RUN_MOD = 1124

_INVENTION_ATTRS = {
    _ATTR_INVENTION_PROB_MULT,
    _ATTR_INVENTION_ME_MOD,
    _ATTR_INVENTION_TE_MOD,
    _ATTR_INVENTION_MAX_RUN_MOD,
}

# The classic T2 decryptors are the 'Generic Decryptor' group of the
# 'Decryptors' category (35). Other groups in that category hold
# reverse-engineering decryptors and subsystem data interfaces.
T2_GENERIC_DECRYPTOR_GROUP_ID = 1304


def load_t2_decryptors(sde_session: Any, *, language: str = "en") -> list[Decryptor]:
    """Return the T2 invention decryptors, ordered by name.

    Types without any invention attribute are skipped; missing attributes
    default to neutral values.
    """

    type_rows = sde_session.execute(
        text("SELECT id, name FROM types WHERE published = 1 AND groupID = :gid"),
        {"gid": int(T2_GENERIC_DECRYPTOR_GROUP_ID)},
    ).fetchall()

    names: dict[int, str] = {}
    for tid, raw_name in type_rows or []:
        if tid is None or int(tid) <= 0:
            continue
        names[int(tid)] = localized_text(raw_name, language, fallback=str(tid))
    if not names:
        return []

    td_rows = sde_session.execute(
        text("SELECT id, dogmaAttributes FROM typeDogma WHERE id IN :ids").bindparams(bindparam("ids", expanding=True)),
        {"ids": sorted(names)},
    ).fetchall()

    out: list[Decryptor] = []
    for tid, attrs_raw in td_rows or []:
        attrs = json.loads(attrs_raw) if isinstance(attrs_raw, str) else (attrs_raw or [])
        m: dict[int, float] = {}
        for a in attrs if isinstance(attrs, list) else []:
            if not isinstance(a, dict) or a.get("value") is None:
                continue
            try:
                aid = int(a.get("attributeID"))
            except (TypeError, ValueError):
                continue
            if aid in _INVENTION_ATTRS:
                m[aid] = float(a["value"])

        # No invention dogma at all: not useful for invention.
        if not m:
            continue

        out.append(
            Decryptor(
                type_id=int(tid),
                name=names[int(tid)],
                probability_multiplier=float(m.get(_ATTR_INVENTION_PROB_MULT, 1.0) or 1.0),
                me_modifier=int(m.get(_ATTR_INVENTION_ME_MOD, 0.0)),
                te_modifier=int(m.get(_ATTR_INVENTION_TE_MOD, 0.0)),
                run_modifier=int(m.get(_ATTR_INVENTION_MAX_RUN_MOD, 0.0)),
            )
        )

    out.sort(key=lambda d: d.name)
    return out
