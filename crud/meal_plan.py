"""
MealPlanRepository for weekly meal plan entries
"""

from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from database_models import MealPlanEntry
from models.recipe import DAYS, MEAL_TYPES


class MealPlanRepository:
    """Meal plan entries, one row per (user, day, meal type)."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_entries(self, user_id: int) -> List[MealPlanEntry]:
        result = await self.db.execute(
            select(MealPlanEntry).where(MealPlanEntry.user_id == user_id)
        )
        entries = list(result.scalars().all())
        entries.sort(key=lambda e: (DAYS.index(e.day), MEAL_TYPES.index(e.meal_type)))
        return entries

    async def get_entry(self, user_id: int, entry_id: str) -> Optional[MealPlanEntry]:
        result = await self.db.execute(
            select(MealPlanEntry).where(
                MealPlanEntry.user_id == user_id,
                MealPlanEntry.id == entry_id,
            )
        )
        return result.scalar_one_or_none()

    async def replace_unpinned(self, user_id: int, new_entries: List[dict]) -> List[MealPlanEntry]:
        """
        Delete the user's unpinned entries and insert `new_entries`.
        Pinned entries are left untouched.
        """
        await self.db.execute(
            delete(MealPlanEntry).where(
                MealPlanEntry.user_id == user_id,
                MealPlanEntry.is_pinned.is_(False),
            )
        )
        for data in new_entries:
            self.db.add(MealPlanEntry(
                user_id=user_id,
                day=data["day"],
                meal_type=data["meal_type"],
                name=data["name"],
                is_pinned=False,
            ))
        await self.db.flush()
        return await self.list_entries(user_id)

    async def set_pinned(self, entry: MealPlanEntry, is_pinned: bool) -> MealPlanEntry:
        entry.is_pinned = is_pinned
        await self.db.flush()
        await self.db.refresh(entry)
        return entry


def entry_to_dict(entry: MealPlanEntry) -> dict:
    return {
        "id": entry.id,
        "day": entry.day,
        "type": entry.meal_type,
        "name": entry.name,
        "isPinned": entry.is_pinned,
    }
