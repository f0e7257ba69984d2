"""Organization membership lookups."""

from uuid import UUID

from sqlalchemy import select

from sitedoc.db.models.site import OrganizationMember

from .base import BaseRepository


class MembershipRepository(BaseRepository[OrganizationMember, UUID]):
    """Read access to ``organization_members``."""

    async def roles_for_user(self, user_id: UUID) -> dict[UUID, str]:
        """Map of organization id to role for every organization the user belongs to."""
        stmt = select(OrganizationMember.organization_id, OrganizationMember.role).where(
            OrganizationMember.user_id == user_id
        )
        result = await self.db.execute(stmt)
        return {org_id: role for org_id, role in result.all()}

    async def role_in(self, organization_id: UUID, user_id: UUID) -> str | None:
        stmt = select(OrganizationMember.role).where(
            OrganizationMember.organization_id == organization_id,
            OrganizationMember.user_id == user_id,
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()
