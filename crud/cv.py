"""
CVRepository for database operations on CV model
"""

import json
from datetime import datetime
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from database_models import CV
from utils.shared_utils import generate_slug


class CVRepository:
    """
    Repository class for CV database operations.
    Every owner-scoped query filters on user_id.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_for_user(self, user_id: str) -> List[CV]:
        """Return the user's CVs, most recently updated first."""
        result = await self.db.execute(
            select(CV).where(CV.user_id == user_id).order_by(CV.updated_at.desc())
        )
        return list(result.scalars().all())

    async def get_by_id(self, cv_id: str) -> Optional[CV]:
        """CV ids are global, so existence checks ignore the owner."""
        result = await self.db.execute(select(CV).where(CV.id == cv_id))
        return result.scalar_one_or_none()

    async def get_owned(self, cv_id: str, user_id: str) -> Optional[CV]:
        result = await self.db.execute(
            select(CV).where(CV.id == cv_id, CV.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_by_slug(self, slug: str) -> Optional[CV]:
        result = await self.db.execute(select(CV).where(CV.slug == slug))
        return result.scalar_one_or_none()

    async def get_public_by_slug(self, slug: str) -> Optional[CV]:
        result = await self.db.execute(
            select(CV).where(CV.slug == slug, CV.is_public.is_(True))
        )
        return result.scalar_one_or_none()

    async def create_cv(self, cv_id: str, user_id: str, name: Optional[str], data: dict) -> CV:
        """
        Create a private CV with a fresh public slug.

        Args:
            cv_id: Client supplied identifier
            user_id: Owner
            name: Display name
            data: Structured CV payload (stored as JSON text)

        Returns:
            Created CV object
        """
        now = datetime.utcnow()
        cv = CV(
            id=cv_id,
            user_id=user_id,
            name=name,
            data=json.dumps(data or {}),
            slug=generate_slug(),
            is_public=False,
            created_at=now,
            updated_at=now,
        )
        self.db.add(cv)
        await self.db.flush()
        return cv

    async def update_cv(self, cv: CV, name: Optional[str], data: dict, is_public: bool) -> CV:
        cv.name = name
        cv.data = json.dumps(data or {})
        cv.is_public = is_public
        cv.updated_at = datetime.utcnow()
        await self.db.flush()
        return cv

    async def delete_owned(self, cv_id: str, user_id: str) -> None:
        await self.db.execute(
            delete(CV).where(CV.id == cv_id, CV.user_id == user_id)
        )
