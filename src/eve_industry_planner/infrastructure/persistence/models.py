from typing import Optional
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func
from sqlalchemy import BigInteger, DateTime, Integer, String, Float, Boolean
from sqlalchemy.orm import declarative_base

BaseApp = declarative_base()


class FacilityModel(BaseApp):
    __tablename__ = "industry_facilities"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    structure_type_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    location_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    system_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    # "high" / "low" / "null"; derived from security_status when empty.
    security_zone: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    security_status: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    # Fraction (0.0025 == 0.25%).
    facility_tax: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    rig_slot0_type_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    rig_slot1_type_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    rig_slot2_type_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    def __repr__(self) -> str:
        return f"<Facility(id={self.id}, name='{self.name}', structure_type_id={self.structure_type_id})>"
