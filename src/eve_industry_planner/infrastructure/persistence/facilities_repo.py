from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from eve_industry_planner.domain.facility import Facility, SecurityZone
from eve_industry_planner.infrastructure.persistence.models import FacilityModel


_FIELDS = [
    "name",
    "structure_type_id",
    "location_id",
    "system_id",
    "security_zone",
    "security_status",
    "facility_tax",
    "rig_slot0_type_id",
    "rig_slot1_type_id",
    "rig_slot2_type_id",
    "is_default",
]


def to_domain(model: Any, *, default_tax_rate: float = 0.0) -> Facility:
    if getattr(model, "security_zone", None):
        zone = SecurityZone.parse(model.security_zone)
    elif getattr(model, "security_status", None) is not None:
        zone = SecurityZone.from_security_status(float(model.security_status))
    else:
        zone = SecurityZone.HIGH

    rigs = tuple(
        int(rid)
        for rid in (model.rig_slot0_type_id, model.rig_slot1_type_id, model.rig_slot2_type_id)
        if rid
    )
    tax = model.facility_tax if model.facility_tax is not None else default_tax_rate
    return Facility(
        facility_id=int(model.id),
        name=str(model.name),
        structure_type_id=model.structure_type_id,
        rig_type_ids=rigs,
        security_zone=zone,
        system_id=model.system_id,
        tax_rate=float(tax),
    )


def list_all(session) -> List[FacilityModel]:
    return session.query(FacilityModel).order_by(FacilityModel.id).all()


def get_by_id(session, facility_id: int) -> Optional[FacilityModel]:
    return session.query(FacilityModel).filter(FacilityModel.id == facility_id).first()


def create(session, data: Dict[str, Any]) -> int:
    if data.get("security_zone"):
        data = dict(data, security_zone=SecurityZone.parse(data["security_zone"]).value)
    facility = FacilityModel(**{f: data.get(f) for f in _FIELDS if f in data})
    if data.get("is_default", False):
        session.query(FacilityModel).update({"is_default": False})
    session.add(facility)
    session.commit()
    return int(facility.id)


def delete(session, facility_id: int) -> None:
    facility = get_by_id(session, facility_id)
    if not facility:
        raise ValueError(f"Facility with id {facility_id} not found.")
    session.delete(facility)
    session.commit()


class SqlFacilityLookup:
    """FacilityLookup over the app database. NPC stations default to the NPC tax rate."""

    def __init__(self, session_factory: Callable[[], Any], *, npc_station_tax_rate: float = 0.0025) -> None:
        self._session_factory = session_factory
        self._npc_station_tax_rate = float(npc_station_tax_rate)

    def get_facility(self, facility_id: int) -> Optional[Facility]:
        with self._session_factory() as session:
            model = get_by_id(session, int(facility_id))
            if model is None:
                return None
            default_tax = self._npc_station_tax_rate if model.structure_type_id is None else 0.0
            return to_domain(model, default_tax_rate=default_tax)

    def list_facilities(self) -> List[Facility]:
        with self._session_factory() as session:
            return [
                to_domain(m, default_tax_rate=(self._npc_station_tax_rate if m.structure_type_id is None else 0.0))
                for m in list_all(session)
            ]
