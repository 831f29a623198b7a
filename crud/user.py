"""
UserRepository for database operations on User model
"""

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from database_models import User
from utils.shared_utils import new_id


class UserRepository:
    """
    Repository class for User database operations.
    Encapsulates all database logic for the User model.
    """

    def __init__(self, db: AsyncSession):
        """
        Initialize the repository with a database session.

        Args:
            db: AsyncSession instance for database operations
        """
        self.db = db

    async def get_user_by_username(self, username: str) -> Optional[User]:
        """
        Retrieve a user by username.

        Args:
            username: Exact username (usernames are case-sensitive)

        Returns:
            User object if found, None otherwise
        """
        result = await self.db.execute(
            select(User).where(User.username == username)
        )
        return result.scalar_one_or_none()

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        """
        Retrieve a user by ID.

        Args:
            user_id: User's opaque ID

        Returns:
            User object if found, None otherwise
        """
        result = await self.db.execute(
            select(User).where(User.id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_user_by_verification_token(self, token: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.email_verification_token == token)
        )
        return result.scalar_one_or_none()

    async def create_user(self, user_data: dict) -> User:
        """
        Create a new user in the database.

        Args:
            user_data: Dictionary containing user data. Must include:
                - username: str
                - password_hash: str
                Optional:
                - email: str
                - email_verification_token: str
                - trial_active: bool (defaults to False)

        Returns:
            Created User object
        """
        user = User(
            id=user_data.get("id") or new_id("user"),
            username=user_data["username"],
            password_hash=user_data["password_hash"],
            email=user_data.get("email"),
            email_verified=False,
            email_verification_token=user_data.get("email_verification_token"),
            trial_active=user_data.get("trial_active", False),
        )
        self.db.add(user)
        await self.db.flush()  # Flush to get defaults without committing
        await self.db.refresh(user)
        return user

    async def update_user(self, user: User, updates: dict) -> User:
        """
        Update user fields.

        Args:
            user: User object to update
            updates: Dictionary of fields to update (e.g., {"trial_active": True})

        Returns:
            Updated User object
        """
        for key, value in updates.items():
            if hasattr(user, key):
                setattr(user, key, value)

        await self.db.flush()
        await self.db.refresh(user)
        return user

    async def mark_email_verified(self, user: User) -> User:
        return await self.update_user(
            user, {"email_verified": True, "email_verification_token": None}
        )

    async def set_trial_active(self, user_id: str, trial_active: bool) -> None:
        """Set the trial flag without loading the row."""
        await self.db.execute(
            update(User).where(User.id == user_id).values(trial_active=trial_active)
        )
