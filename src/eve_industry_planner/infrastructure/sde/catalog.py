from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Iterable, Optional

from eve_industry_planner.domain.blueprint import BlueprintDefinition, MaterialRequirement, ProductionActivity
from eve_industry_planner.domain.facility import RigBonus, StructureBonus
from eve_industry_planner.domain.invention import Decryptor, InventionCatalogEntry
from eve_industry_planner.infrastructure.sde.decryptors import load_t2_decryptors
from eve_industry_planner.infrastructure.sde.localization import localized_text
from eve_industry_planner.infrastructure.sde.models import Blueprints, Categories, Groups, Types
from eve_industry_planner.infrastructure.sde.rig_effects import load_rig_bonuses


logger = logging.getLogger(__name__)


# Fixed hull role bonuses, as fractions (material, cost, time).
STRUCTURE_BONUSES: dict[int, StructureBonus] = {
    35825: StructureBonus(material_bonus_pct=0.01, cost_bonus_pct=0.03, time_bonus_pct=0.15),  # Raitaru
    35826: StructureBonus(material_bonus_pct=0.01, cost_bonus_pct=0.04, time_bonus_pct=0.20),  # Azbel
    35827: StructureBonus(material_bonus_pct=0.01, cost_bonus_pct=0.05, time_bonus_pct=0.30),  # Sotiyo
    35835: StructureBonus(material_bonus_pct=0.02, cost_bonus_pct=0.0, time_bonus_pct=0.0),  # Athanor
    35836: StructureBonus(material_bonus_pct=0.02, cost_bonus_pct=0.0, time_bonus_pct=0.25),  # Tatara
}

# SDE activity keys inside Blueprints.activities
_ACTIVITY_KEYS: dict[ProductionActivity, str] = {
    ProductionActivity.MANUFACTURING: "manufacturing",
    ProductionActivity.REACTION: "reaction",
}

_ENCRYPTION_SKILL_TOKEN = "encryption methods"

# Tech II / Tech III meta groups
_ADVANCED_META_GROUP_IDS = {2, 14}


def rig_group_label(
    *,
    group_name: str,
    category_name: str,
    activity: ProductionActivity = ProductionActivity.MANUFACTURING,
    meta_group_id: Optional[int] = None,
) -> str:
    """Map an item's SDE group/category to the label industry rigs use."""

    cat = (category_name or "").strip().lower()
    grp = (group_name or "").strip().lower()

    if activity == ProductionActivity.REACTION:
        if "composite" in grp or "intermediate" in grp:
            return "Composite Reactions"
        if "hybrid" in grp or "polymer" in grp:
            return "Hybrid Reactions"
        return "Biochemical Reactions"

    if cat in {"structure", "starbase"} or "structure" in grp:
        return "Structures"
    if cat in {"charge", "charges"}:
        return "Ammo & Charges"
    if cat in {"drone", "fighter"}:
        return "Drones"
    if cat in {"module", "subsystem"}:
        return "Modules"

    if "component" in grp:
        if "capital" in grp:
            return "Advanced Capital Components" if "advanced" in grp else "Capital Components"
        return "Advanced Components"

    if cat == "ship":
        if any(x in grp for x in ("capital", "carrier", "titan", "dread", "freighter", "force auxiliary")):
            return "Capital Ships"
        advanced = meta_group_id in _ADVANCED_META_GROUP_IDS
        if any(x in grp for x in ("frigate", "destroyer", "shuttle", "corvette")):
            return "Advanced Small Ships" if advanced else "Basic Small Ships"
        if any(x in grp for x in ("cruiser", "industrial", "hauler")):
            return "Advanced Medium Ships" if advanced else "Basic Medium Ships"
        if "battleship" in grp or "marauder" in grp or "black ops" in grp:
            return "Advanced Large Ships" if advanced else "Basic Large Ships"
        return "All Ships"

    return "All"


def _activity_dict(activities: Any, key: str) -> dict:
    if not isinstance(activities, dict):
        return {}
    act = activities.get(key)
    return act if isinstance(act, dict) else {}


class SdeCatalog:
    """CatalogLookup backed by a static-data export database.

    Blueprint activities are indexed by product on first use; type labels,
    rigs and decryptors are cached for the lifetime of the catalog.
    """

    def __init__(self, session_factory: Callable[[], Any], *, language: str = "en") -> None:
        self._session_factory = session_factory
        self._language = language
        self._lock = threading.Lock()

        self._indexed = False
        # blueprintTypeID -> (maxProductionLimit, activities)
        self._blueprints: dict[int, tuple[Optional[int], dict]] = {}
        # (activity key, product type id) -> blueprintTypeID
        self._producers: dict[tuple[str, int], int] = {}
        # invented blueprint type id -> source blueprint type id
        self._inventors: dict[int, int] = {}

        # type id -> (name, group name, category name, meta group id)
        self._types: dict[int, tuple[str, str, str, Optional[int]]] = {}
        self._rigs: dict[int, Optional[RigBonus]] = {}
        self._decryptors: Optional[list[Decryptor]] = None

    def _ensure_index(self) -> None:
        with self._lock:
            if self._indexed:
                return
            with self._session_factory() as session:
                rows = session.query(Blueprints).all()
                for bp in rows:
                    activities = bp.activities if isinstance(bp.activities, dict) else {}
                    self._blueprints[int(bp.blueprintTypeID)] = (bp.maxProductionLimit, activities)
                    for key in ("manufacturing", "reaction"):
                        for prod in _activity_dict(activities, key).get("products") or []:
                            try:
                                product_id = int(prod["typeID"])
                            except (KeyError, TypeError, ValueError):
                                continue
                            self._producers.setdefault((key, product_id), int(bp.blueprintTypeID))
                    for prod in _activity_dict(activities, "invention").get("products") or []:
                        try:
                            self._inventors.setdefault(int(prod["typeID"]), int(bp.blueprintTypeID))
                        except (KeyError, TypeError, ValueError):
                            continue
            self._indexed = True
            logger.info("Indexed %s blueprints (%s producible types)", len(self._blueprints), len(self._producers))

    def _load_types(self, type_ids: Iterable[int]) -> None:
        wanted = {int(t) for t in type_ids if t is not None}
        with self._lock:
            missing = sorted(wanted - set(self._types))
        if not missing:
            return

        with self._session_factory() as session:
            types_q = session.query(Types).filter(Types.id.in_(missing)).all()
            group_ids = {t.groupID for t in types_q if t.groupID is not None}
            groups = {g.id: g for g in session.query(Groups).filter(Groups.id.in_(group_ids)).all()}
            category_ids = {g.categoryID for g in groups.values() if g.categoryID is not None}
            categories = {c.id: c for c in session.query(Categories).filter(Categories.id.in_(category_ids)).all()}

            loaded: dict[int, tuple[str, str, str, Optional[int]]] = {}
            for t in types_q:
                group = groups.get(t.groupID)
                category = categories.get(group.categoryID) if group else None
                loaded[int(t.id)] = (
                    localized_text(t.name, self._language, fallback=str(t.id)),
                    localized_text(group.name, self._language) if group else "",
                    localized_text(category.name, self._language) if category else "",
                    t.metaGroupID,
                )

        with self._lock:
            for tid in missing:
                self._types[tid] = loaded.get(tid, (str(tid), "", "", None))

    def _label(self, type_id: int, activity: ProductionActivity) -> str:
        _, group_name, category_name, meta_group_id = self._types.get(int(type_id), ("", "", "", None))
        return rig_group_label(
            group_name=group_name,
            category_name=category_name,
            activity=activity,
            meta_group_id=meta_group_id,
        )

    def type_name(self, type_id: int) -> str:
        self._load_types([type_id])
        return self._types[int(type_id)][0]

    def get_definition(self, type_id: int, activity: ProductionActivity) -> Optional[BlueprintDefinition]:
        key = _ACTIVITY_KEYS.get(activity)
        if key is None:
            return None
        self._ensure_index()

        bp_type_id = self._producers.get((key, int(type_id)))
        if bp_type_id is None:
            return None
        max_runs, activities = self._blueprints[bp_type_id]
        act = _activity_dict(activities, key)

        product = next(
            (p for p in act.get("products") or [] if int(p.get("typeID", 0) or 0) == int(type_id)),
            None,
        )
        if product is None:
            return None

        raw_materials = [m for m in act.get("materials") or [] if m.get("typeID") is not None]
        self._load_types([int(type_id)] + [int(m["typeID"]) for m in raw_materials])

        materials = tuple(
            MaterialRequirement(
                type_id=int(m["typeID"]),
                quantity=int(m.get("quantity") or 0),
                category=self._label(int(m["typeID"]), activity),
            )
            for m in raw_materials
        )
        return BlueprintDefinition(
            blueprint_id=int(bp_type_id),
            activity=activity,
            product_type_id=int(type_id),
            quantity_per_run=int(product.get("quantity") or 1),
            materials=materials,
            time_seconds=int(act.get("time") or 0),
            product_category=self._label(int(type_id), activity),
            max_production_limit=(int(max_runs) if max_runs is not None else None),
        )

    def get_invention_data(self, type_id: int) -> Optional[InventionCatalogEntry]:
        self._ensure_index()

        output_bp_id = self._producers.get(("manufacturing", int(type_id)))
        if output_bp_id is None:
            return None
        source_bp_id = self._inventors.get(output_bp_id)
        if source_bp_id is None:
            return None

        _, source_activities = self._blueprints[source_bp_id]
        invention = _activity_dict(source_activities, "invention")
        product = next(
            (p for p in invention.get("products") or [] if int(p.get("typeID", 0) or 0) == output_bp_id),
            None,
        )
        if product is None:
            return None

        _, output_activities = self._blueprints[output_bp_id]
        mfg_product = next(
            (
                p
                for p in _activity_dict(output_activities, "manufacturing").get("products") or []
                if int(p.get("typeID", 0) or 0) == int(type_id)
            ),
            {},
        )

        skill_ids = [int(s["typeID"]) for s in invention.get("skills") or [] if s.get("typeID") is not None]
        self._load_types(skill_ids)
        skill_names = [self._types[sid][0] for sid in skill_ids]
        encryption = next((n for n in skill_names if _ENCRYPTION_SKILL_TOKEN in n.lower()), None)
        science = tuple(n for n in skill_names if n != encryption)

        return InventionCatalogEntry(
            source_blueprint_id=int(source_bp_id),
            output_blueprint_id=int(output_bp_id),
            product_type_id=int(type_id),
            base_probability=float(product.get("probability") or 0.0),
            base_runs=int(product.get("quantity") or 1),
            time_seconds=int(invention.get("time") or 0),
            materials=tuple(
                MaterialRequirement(type_id=int(m["typeID"]), quantity=int(m.get("quantity") or 0))
                for m in invention.get("materials") or []
                if m.get("typeID") is not None
            ),
            science_skills=science,
            encryption_skill=encryption,
            product_quantity_per_run=int(mfg_product.get("quantity") or 1),
        )

    def get_decryptors(self) -> list[Decryptor]:
        with self._lock:
            if self._decryptors is not None:
                return list(self._decryptors)
        with self._session_factory() as session:
            decryptors = load_t2_decryptors(session, language=self._language)
        with self._lock:
            self._decryptors = decryptors
        return list(decryptors)

    def get_structure_bonus(self, structure_type_id: int) -> StructureBonus:
        bonus = STRUCTURE_BONUSES.get(int(structure_type_id))
        if bonus is None:
            logger.debug("No role bonus known for structure type %s", structure_type_id)
            return StructureBonus()
        return bonus

    def get_rig_bonus(self, rig_type_id: int) -> Optional[RigBonus]:
        rid = int(rig_type_id)
        with self._lock:
            if rid in self._rigs:
                return self._rigs[rid]
        with self._session_factory() as session:
            loaded = load_rig_bonuses(session, [rid])
        with self._lock:
            self._rigs[rid] = loaded.get(rid)
        return self._rigs[rid]
