from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from venue_reservations.api.deps import Identity, require_admin
from venue_reservations.database import get_db
from venue_reservations.services.audit_service import list_actions

router = APIRouter(prefix="/v1/audit", tags=["audit"])


@router.get("")
async def list_audit(
    limit: int = Query(default=100),
    entity: Optional[str] = Query(default=None),
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    rows = await list_actions(db, limit=limit, entity=entity)
    return [
        {
            "id": r.id,
            "entity": r.entity,
            "entity_id": r.entity_id,
            "action": r.action,
            "user_id": r.user_id,
            "user_role": r.user_role,
            "old_data": r.old_data,
            "new_data": r.new_data,
            "created_at": r.created_at.isoformat() if r.created_at else None,
        }
        for r in rows
    ]
