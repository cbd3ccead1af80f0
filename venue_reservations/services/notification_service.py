import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Optional

from venue_reservations.core.config import settings
from venue_reservations.models import Reservation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReservationTicket:
    """Snapshot of what the guest receives after booking."""

    reservation_id: str
    full_name: str
    email: Optional[str]
    phone: Optional[str]
    reservation_code: str
    qr_token: str
    qr_expires_at: Optional[datetime]
    reservation_date: datetime
    unit_name: Optional[str]
    area_name: Optional[str]
    party_size: int

    @classmethod
    def from_reservation(cls, reservation: Reservation) -> "ReservationTicket":
        return cls(
            reservation_id=reservation.id,
            full_name=reservation.full_name,
            email=reservation.email,
            phone=reservation.phone,
            reservation_code=reservation.reservation_code,
            qr_token=reservation.qr_token,
            qr_expires_at=reservation.qr_expires_at,
            reservation_date=reservation.reservation_date,
            unit_name=reservation.unit_name,
            area_name=reservation.area_name,
            party_size=reservation.party_size,
        )


def format_ticket_message(ticket: ReservationTicket) -> str:
    lines = [
        f"Reservation {ticket.reservation_code}",
        f"Guest: {ticket.full_name} ({ticket.party_size} people)",
        f"When: {ticket.reservation_date:%Y-%m-%d %H:%M}",
    ]
    if ticket.unit_name or ticket.area_name:
        lines.append(f"Where: {' / '.join(p for p in (ticket.unit_name, ticket.area_name) if p)}")
    if ticket.qr_expires_at:
        lines.append(f"QR valid until {ticket.qr_expires_at:%Y-%m-%d %H:%M}")
    return "\n".join(lines)


TicketSender = Callable[[ReservationTicket, str], Awaitable[None]]


async def _log_sender(ticket: ReservationTicket, message: str) -> None:
    logger.info(
        f"Ticket for reservation {ticket.reservation_id} queued to "
        f"{ticket.email or ticket.phone or 'no contact'}"
    )


class NotificationService:
    """
    Dispatches reservation tickets after the booking is committed.

    Delivery is best effort: a failed send is logged and never reaches the
    caller, the reservation stays valid either way.
    """

    def __init__(self, sender: TicketSender = _log_sender):
        self.sender = sender

    async def send_reservation_ticket(self, ticket: ReservationTicket) -> bool:
        if not settings.notifications_enabled:
            return False
        if not ticket.email and not ticket.phone:
            logger.debug(f"Reservation {ticket.reservation_id} has no contact, ticket skipped")
            return False
        try:
            await self.sender(ticket, format_ticket_message(ticket))
            return True
        except Exception as e:
            logger.error(
                f"Failed to send ticket for reservation {ticket.reservation_id}: {e}",
                exc_info=True,
            )
            return False


notification_service = NotificationService()
