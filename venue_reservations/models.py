import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    String,
    Integer,
    Boolean,
    DateTime,
    ForeignKey,
    Text,
    UniqueConstraint,
    Index,
    Enum as SQLEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from venue_reservations.database import Base


def new_id() -> str:
    return str(uuid.uuid4())


class ReservationStatus(str, Enum):
    AWAITING_CHECKIN = "AWAITING_CHECKIN"
    CHECKED_IN = "CHECKED_IN"
    NO_SHOW = "NO_SHOW"
    CANCELLED = "CANCELLED"


# Reservations in these states occupy seats
COUNTING_STATUSES = frozenset(
    {ReservationStatus.AWAITING_CHECKIN, ReservationStatus.CHECKED_IN}
)


class ReservationType(str, Enum):
    PARTICULAR = "PARTICULAR"
    ANIVERSARIO = "ANIVERSARIO"
    CONFRATERNIZACAO = "CONFRATERNIZACAO"
    EMPRESA = "EMPRESA"


class BlockMode(str, Enum):
    PERIOD = "PERIOD"


class BlockPeriod(str, Enum):
    AFTERNOON = "AFTERNOON"
    NIGHT = "NIGHT"
    ALL_DAY = "ALL_DAY"


class GuestRole(str, Enum):
    GUEST = "GUEST"
    HOST = "HOST"


class Role(str, Enum):
    ADMIN = "ADMIN"
    STAFF = "STAFF"


class Unit(Base):
    __tablename__ = "units"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(120))
    slug: Mapped[str] = mapped_column(String(140), unique=True, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now
    )

    areas: Mapped[list["Area"]] = relationship(back_populates="unit")


class Area(Base):
    __tablename__ = "areas"
    __table_args__ = (UniqueConstraint("unit_id", "name", name="uq_areas_unit_name"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    unit_id: Mapped[str] = mapped_column(ForeignKey("units.id"), index=True)
    unit: Mapped["Unit"] = relationship(back_populates="areas")

    name: Mapped[str] = mapped_column(String(120))
    # NULL means zero seats for the period, never "unlimited"
    capacity_afternoon: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    capacity_night: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    photo_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    icon_emoji: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now
    )


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (
        Index("ix_reservations_area_date_status", "area_id", "reservation_date", "status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    # Guest
    full_name: Mapped[str] = mapped_column(String(200))
    cpf: Mapped[Optional[str]] = mapped_column(String(14), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(254), nullable=True, index=True)
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True, index=True)
    birthday_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Party and slot
    people: Mapped[int] = mapped_column(Integer)
    kids: Mapped[int] = mapped_column(Integer, default=0)
    reservation_date: Mapped[datetime] = mapped_column(DateTime, index=True)
    reservation_type: Mapped[Optional[ReservationType]] = mapped_column(
        SQLEnum(ReservationType), nullable=True
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    unit_id: Mapped[Optional[str]] = mapped_column(ForeignKey("units.id"), nullable=True, index=True)
    area_id: Mapped[Optional[str]] = mapped_column(ForeignKey("areas.id"), nullable=True)
    # Denormalised labels, kept for listings and exports
    unit_name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    area_name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)

    # Ticket
    status: Mapped[ReservationStatus] = mapped_column(
        SQLEnum(ReservationStatus), default=ReservationStatus.AWAITING_CHECKIN, index=True
    )
    reservation_code: Mapped[str] = mapped_column(String(6), unique=True, index=True)
    qr_token: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    qr_expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    checked_in_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    checked_in_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # Marketing attribution
    utm_source: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    utm_medium: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    utm_campaign: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    utm_content: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    utm_term: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    ref: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    source: Mapped[Optional[str]] = mapped_column(String(60), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now
    )

    guests: Mapped[list["Guest"]] = relationship(
        back_populates="reservation",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def party_size(self) -> int:
        return (self.people or 0) + (self.kids or 0)


class ReservationBlock(Base):
    __tablename__ = "reservation_blocks"
    __table_args__ = (Index("ix_reservation_blocks_unit_date", "unit_id", "date"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    unit_id: Mapped[str] = mapped_column(ForeignKey("units.id"))
    # NULL blocks every area of the unit
    area_id: Mapped[Optional[str]] = mapped_column(ForeignKey("areas.id"), nullable=True)
    date: Mapped[datetime] = mapped_column(DateTime)  # Midnight of the blocked day
    mode: Mapped[BlockMode] = mapped_column(SQLEnum(BlockMode), default=BlockMode.PERIOD)
    period: Mapped[BlockPeriod] = mapped_column(SQLEnum(BlockPeriod))
    reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    created_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now
    )


class Guest(Base):
    __tablename__ = "guests"
    __table_args__ = (
        UniqueConstraint("reservation_id", "email", name="uq_guests_reservation_email"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    reservation_id: Mapped[str] = mapped_column(
        ForeignKey("reservations.id", ondelete="CASCADE"), index=True
    )
    reservation: Mapped["Reservation"] = relationship(back_populates="guests")
    name: Mapped[str] = mapped_column(String(200))
    email: Mapped[str] = mapped_column(String(254))
    role: Mapped[GuestRole] = mapped_column(SQLEnum(GuestRole), default=GuestRole.GUEST)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    action: Mapped[str] = mapped_column(String(32), index=True)
    entity: Mapped[str] = mapped_column(String(32), index=True)
    entity_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    user_role: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    old_data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    new_data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    ip: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, index=True)
