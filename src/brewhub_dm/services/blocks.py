"""User-to-user block list."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from brewhub_dm.models import Profile, UserBlock
from brewhub_dm.schemas import BlockedUser, ProfileSnapshot
from brewhub_dm.services.errors import NotFoundError, ValidationFailedError

logger = logging.getLogger(__name__)


class BlockService:
    """Maintains directional block relations."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def block(self, blocker_id: str, blocked_id: str) -> UserBlock:
        """Block ``blocked_id``; repeating an existing block is a no-op."""
        if blocker_id == blocked_id:
            raise ValidationFailedError("Invalid block", "You cannot block yourself.")
        if self.db.get(Profile, blocked_id) is None:
            raise NotFoundError("User not found")

        existing = self.db.get(UserBlock, (blocker_id, blocked_id))
        if existing is not None:
            return existing

        block = UserBlock(blocker_id=blocker_id, blocked_id=blocked_id)
        self.db.add(block)
        self.db.commit()
        logger.info("User %s blocked %s", blocker_id, blocked_id)
        return block

    def unblock(self, blocker_id: str, blocked_id: str) -> None:
        """Remove a block if present."""
        existing = self.db.get(UserBlock, (blocker_id, blocked_id))
        if existing is None:
            return
        self.db.delete(existing)
        self.db.commit()

    def list_blocks(self, blocker_id: str) -> list[BlockedUser]:
        """Return the caller's blocks, newest first."""
        stmt = (
            select(UserBlock, Profile)
            .outerjoin(Profile, Profile.id == UserBlock.blocked_id)
            .where(UserBlock.blocker_id == blocker_id)
            .order_by(UserBlock.created_at.desc())
        )
        return [
            BlockedUser(
                id=block.blocked_id,
                created_at=block.created_at,
                profile=ProfileSnapshot.from_profile(profile) if profile is not None else None,
            )
            for block, profile in self.db.execute(stmt).all()
        ]
