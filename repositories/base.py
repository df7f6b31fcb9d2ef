"""
Base repository with common CRUD operations.

Write helpers only flush by default so a service can group several writes in
one transaction and commit once; pass ``commit=True`` for single-step writes.
"""

from typing import Generic, TypeVar, Type, Optional, Any, Dict, Union
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from pydantic import BaseModel

from core.database import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Base repository with common CRUD operations."""

    def __init__(self, model: Type[ModelType], db: AsyncSession):
        self.model = model
        self.db = db

    async def get(self, id: Any) -> Optional[ModelType]:
        """Get a single record by ID."""
        query = select(self.model).where(self.model.id == id)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_for_update(self, id: Any) -> Optional[ModelType]:
        """Get a record and lock its row until the transaction ends (no-op on SQLite)."""
        query = select(self.model).where(self.model.id == id).with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def add(self, db_obj: ModelType, commit: bool = False) -> ModelType:
        """Stage an object; flushes so the primary key is assigned."""
        self.db.add(db_obj)
        if commit:
            await self.db.commit()
            await self.db.refresh(db_obj)
        else:
            await self.db.flush()
        return db_obj

    async def create(self, obj_in: Union[BaseModel, Dict[str, Any]], commit: bool = False) -> ModelType:
        """Create a new record."""
        data = obj_in if isinstance(obj_in, dict) else obj_in.model_dump()
        return await self.add(self.model(**data), commit=commit)

    async def update(
        self,
        db_obj: ModelType,
        obj_in: Union[BaseModel, Dict[str, Any]],
        commit: bool = False,
    ) -> ModelType:
        """Update an existing record."""
        if isinstance(obj_in, dict):
            update_data = obj_in
        else:
            update_data = obj_in.model_dump(exclude_unset=True)

        for field, value in update_data.items():
            setattr(db_obj, field, value)

        return await self.add(db_obj, commit=commit)

    async def delete(self, id: Any, commit: bool = False) -> bool:
        """Delete a record by ID."""
        query = delete(self.model).where(self.model.id == id)
        result = await self.db.execute(query)
        if commit:
            await self.db.commit()
        return result.rowcount > 0
