"""
Base repository class with common operations.
"""
from typing import Generic, Type, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from mango_quests.infra.db.base import Base, generate_id

# Type variable for model classes
ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Base repository providing common operations.
    
    Inherit from this class and specify the model type:
        class HabitRepository(BaseRepository[Habit]):
            def __init__(self, session: AsyncSession):
                super().__init__(Habit, session)
    """
    
    def __init__(self, model: Type[ModelType], session: AsyncSession):
        self.model = model
        self.session = session
    
    async def create(self, **kwargs) -> ModelType:
        """Create a new record."""
        if "id" not in kwargs:
            kwargs["id"] = generate_id()
        
        obj = self.model(**kwargs)
        self.session.add(obj)
        await self.session.commit()
        await self.session.refresh(obj)
        return obj
