"""User service for business logic."""

from datetime import UTC, datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.permissions import Role
from app.models.users import users


class UserService:
    """Service for user account operations."""

    async def create_user(
        self,
        db: AsyncSession,
        *,
        email: str,
        password_hash: str,
        role: Role,
        name: str,
        **profile: object,
    ) -> dict:
        """Insert a user row without committing."""
        query = (
            users.insert()
            .values(
                email=email.lower(),
                password_hash=password_hash,
                role=role.value,
                name=name,
                **profile,
            )
            .returning(users)
        )

        result = await db.execute(query)
        user = result.mappings().first()

        if not user:
            raise ValueError("Failed to create user")

        return dict(user)

    async def get_user_by_id(self, db: AsyncSession, user_id: int) -> dict | None:
        """Get user by ID."""
        query = select(users).where(users.c.id == user_id)
        result = await db.execute(query)
        user = result.mappings().first()
        return dict(user) if user else None

    async def get_user_by_email(self, db: AsyncSession, email: str) -> dict | None:
        """Get user by email (case-insensitive)."""
        query = select(users).where(users.c.email == email.lower())
        result = await db.execute(query)
        user = result.mappings().first()
        return dict(user) if user else None

    async def set_active(self, db: AsyncSession, user_id: int, is_active: bool) -> None:
        """Flip the account flag without committing."""
        await db.execute(
            update(users)
            .where(users.c.id == user_id)
            .values(is_active=is_active, updated_at=datetime.now(UTC))
        )
