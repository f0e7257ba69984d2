"""Shared repository plumbing.

A repository wraps one ``AsyncSession``; the model it serves is read from
the generic parameter:

    class MembershipRepository(BaseRepository[OrganizationMember, UUID]):
        ...
"""

from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from sitedoc.db.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)
PKType = TypeVar("PKType", bound=UUID | str)


class BaseRepository(Generic[ModelType, PKType]):
    model: type[ModelType]

    def __init__(self, db: AsyncSession):
        self.db = db

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        for generic_base in getattr(cls, "__orig_bases__", ()):
            model = next(iter(getattr(generic_base, "__args__", ())), None)
            if isinstance(model, type) and issubclass(model, Base):
                cls.model = model
                return

    async def get(self, pk: PKType) -> ModelType | None:
        return await self.db.get(self.model, pk)

    async def create(self, obj: ModelType, *, commit: bool = True) -> ModelType:
        """Insert ``obj``.

        With ``commit=False`` the row is only flushed and the caller owns the
        transaction.
        """
        self.db.add(obj)
        if not commit:
            await self.db.flush()
            return obj
        await self.db.commit()
        await self.db.refresh(obj)
        return obj

    async def delete(self, obj: ModelType, *, commit: bool = True) -> None:
        """Delete ``obj``; with ``commit=False`` only flush the removal."""
        await self.db.delete(obj)
        await (self.db.commit() if commit else self.db.flush())
