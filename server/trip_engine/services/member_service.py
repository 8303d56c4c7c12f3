"""Member lookup service."""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import NotFoundError
from ..models.member import Member

logger = logging.getLogger(__name__)


class MemberService:
    """Read-only access to the member directory."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_member_by_id(self, member_id: UUID) -> Member | None:
        stmt = select(Member).where(Member.id == member_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_member_by_id_or_raise(self, member_id: UUID) -> Member:
        """
        Get member by ID or raise NotFoundError.

        Raises:
            NotFoundError: If member not found
        """
        member = await self.get_member_by_id(member_id)
        if not member:
            logger.warning("Member not found", extra={"member_id": str(member_id)})
            raise NotFoundError(resource_type="member", resource_id=str(member_id))
        return member
