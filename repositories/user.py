from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.user import User, UserRole
from repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    def __init__(self, db: AsyncSession):
        super().__init__(User, db)

    async def get_active(self, user_id: Optional[int]) -> Optional[User]:
        if user_id is None:
            return None
        result = await self.db.execute(select(User).where(User.id == user_id, User.is_active.is_(True)))
        return result.scalar_one_or_none()

    async def list_by_role(self, role: UserRole) -> List[User]:
        result = await self.db.execute(
            select(User).where(User.role == role, User.is_active.is_(True)).order_by(User.id)
        )
        return list(result.scalars().all())
