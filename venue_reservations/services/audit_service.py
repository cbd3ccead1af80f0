import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from venue_reservations.models import AuditLog

logger = logging.getLogger(__name__)

AUDIT_ACTIONS = {"CREATE", "UPDATE", "DELETE", "CHECKIN", "NO_SHOW", "QR_RENEW", "STATUS"}


@dataclass(frozen=True)
class AuditContext:
    """Who did it and from where."""

    user_id: Optional[str] = None
    user_role: Optional[str] = None
    ip: Optional[str] = None
    user_agent: Optional[str] = None


async def log_action(
    db: AsyncSession,
    entity: str,
    action: str,
    entity_id: Optional[str] = None,
    old_data: Optional[dict[str, Any]] = None,
    new_data: Optional[dict[str, Any]] = None,
    context: Optional[AuditContext] = None,
) -> bool:
    """
    Appends an audit entry in its own commit, after the business change is
    already committed. Failures are logged and rolled back, never raised.
    """
    if action not in AUDIT_ACTIONS:
        logger.warning(f"Unknown audit action {action!r} for {entity}")
    ctx = context or AuditContext()
    try:
        db.add(
            AuditLog(
                entity=entity,
                entity_id=entity_id,
                action=action,
                user_id=ctx.user_id,
                user_role=ctx.user_role,
                old_data=old_data,
                new_data=new_data,
                ip=ctx.ip,
                user_agent=(ctx.user_agent or "")[:300] or None,
            )
        )
        await db.commit()
        return True
    except Exception as e:
        logger.error(f"Audit log failed for {entity} {entity_id} {action}: {e}", exc_info=True)
        await db.rollback()
        return False


async def list_actions(db: AsyncSession, limit: int = 100, entity: Optional[str] = None) -> list[AuditLog]:
    query = select(AuditLog)
    if entity:
        query = query.where(AuditLog.entity == entity)
    query = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(min(500, max(1, limit)))
    result = await db.execute(query)
    return list(result.scalars().all())
