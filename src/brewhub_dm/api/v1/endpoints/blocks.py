"""Block-list endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from brewhub_dm.api.v1.dependencies import ActiveUserDep, SessionDep
from brewhub_dm.schemas import BlockListResponse, SuccessResponse
from brewhub_dm.services.blocks import BlockService

router = APIRouter(prefix="/messages/blocks", tags=["blocks"])


@router.get("", response_model=BlockListResponse)
async def list_blocks(current_user: ActiveUserDep, db: SessionDep) -> BlockListResponse:
    """List members the caller has blocked."""
    return BlockListResponse(blocked_users=BlockService(db).list_blocks(current_user.id))


@router.post("/{user_id}", response_model=SuccessResponse)
async def block_user(user_id: str, current_user: ActiveUserDep, db: SessionDep) -> SuccessResponse:
    """Block a member from messaging the caller."""
    BlockService(db).block(current_user.id, user_id)
    return SuccessResponse()


@router.delete("/{user_id}", response_model=SuccessResponse)
async def unblock_user(user_id: str, current_user: ActiveUserDep, db: SessionDep) -> SuccessResponse:
    """Lift a block."""
    BlockService(db).unblock(current_user.id, user_id)
    return SuccessResponse()
