from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from venue_reservations.api.deps import Identity, audit_context, require_staff
from venue_reservations.database import get_db
from venue_reservations.schemas.block import BlockCreate, BlockOut, BlockUpdate
from venue_reservations.services.audit_service import log_action
from venue_reservations.services.block_service import BlockService

router = APIRouter(prefix="/v1/blocks", tags=["blocks"])


@router.get("", response_model=list[BlockOut])
async def list_blocks(
    unit_id: Optional[str] = Query(default=None),
    area_id: Optional[str] = Query(default=None),
    date_from: Optional[date] = Query(default=None, alias="from"),
    date_to: Optional[date] = Query(default=None, alias="to"),
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(require_staff),
):
    return await BlockService.list_blocks(db, unit_id, area_id, date_from, date_to)


@router.post("", response_model=BlockOut, status_code=201)
async def upsert_block(
    payload: BlockCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(require_staff),
):
    """Creates the block, or refreshes the reason of an identical existing one."""
    block = await BlockService.upsert_block(
        db,
        unit_id=payload.unit_id,
        day=payload.date,
        period=payload.period,
        area_id=payload.area_id,
        reason=payload.reason,
        created_by=identity.user_id,
    )
    out = BlockOut.model_validate(block)
    await log_action(
        db, "block", "CREATE", block.id,
        new_data=out.model_dump(mode="json"),
        context=audit_context(request, identity),
    )
    return out


@router.patch("/{block_id}", response_model=BlockOut)
async def update_block(
    block_id: str,
    payload: BlockUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(require_staff),
):
    before = BlockOut.model_validate(await BlockService.get_block(db, block_id)).model_dump(mode="json")
    block = await BlockService.update_block(db, block_id, payload.model_dump(exclude_unset=True))
    out = BlockOut.model_validate(block)
    await log_action(
        db, "block", "UPDATE", block.id,
        old_data=before,
        new_data=out.model_dump(mode="json"),
        context=audit_context(request, identity),
    )
    return out


@router.delete("/{block_id}", status_code=204)
async def delete_block(
    block_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(require_staff),
):
    before = BlockOut.model_validate(await BlockService.get_block(db, block_id)).model_dump(mode="json")
    await BlockService.delete_block(db, block_id)
    await log_action(
        db, "block", "DELETE", block_id,
        old_data=before,
        context=audit_context(request, identity),
    )
