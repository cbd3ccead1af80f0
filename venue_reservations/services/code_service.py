import logging
import secrets

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from venue_reservations.core.config import settings
from venue_reservations.core.errors import ReservationCodeExhaustedError
from venue_reservations.models import Reservation

logger = logging.getLogger(__name__)

# No 0/O or 1/I, codes are read aloud and typed by hand
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 6
QR_TOKEN_BYTES = 16


def random_code(length: int = CODE_LENGTH) -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def random_qr_token() -> str:
    return secrets.token_hex(QR_TOKEN_BYTES)


class CodeService:
    """Allocates reservation codes and QR tokens that are not yet stored."""

    @staticmethod
    async def _unused(db: AsyncSession, column, value: str) -> bool:
        result = await db.execute(select(Reservation.id).where(column == value).limit(1))
        return result.first() is None

    @classmethod
    async def generate_reservation_code(cls, db: AsyncSession, attempts: int | None = None) -> str:
        attempts = attempts or settings.reservation_code_attempts
        for _ in range(attempts):
            code = random_code()
            if await cls._unused(db, Reservation.reservation_code, code):
                return code
        logger.error(f"Reservation code space exhausted after {attempts} attempts")
        raise ReservationCodeExhaustedError(attempts=attempts)

    @classmethod
    async def generate_qr_token(cls, db: AsyncSession, attempts: int | None = None) -> str:
        attempts = attempts or settings.reservation_code_attempts
        for _ in range(attempts):
            token = random_qr_token()
            if await cls._unused(db, Reservation.qr_token, token):
                return token
        logger.error(f"QR token allocation failed after {attempts} attempts")
        raise ReservationCodeExhaustedError("Could not allocate a unique QR token", attempts=attempts)
