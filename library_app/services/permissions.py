"""
Role checks for the trusted entry points.

Direct rental closing and request decisions go through ``require_manager``;
nothing else in the services flips a book back to AVAILABLE.
"""

from typing import Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from library_app.core.exceptions import ForbiddenError, ValidationError
from library_app.models.user import User, UserRole, UserStatus


async def require_manager(
    db: AsyncSession,
    manager_id: Optional[UUID],
    forbidden_message: str = "Invalid manager"
) -> User:
    """Load the acting manager or refuse the action."""
    if not manager_id:
        raise ValidationError("Manager ID is required")

    result = await db.execute(
        select(User).where(
            User.id == manager_id,
            User.role == UserRole.MANAGER,
            User.status == UserStatus.ACTIVE
        )
    )
    manager = result.scalars().first()
    if not manager:
        raise ForbiddenError(forbidden_message)
    return manager


async def get_active_user(db: AsyncSession, user_id: UUID, role: UserRole) -> Optional[User]:
    result = await db.execute(
        select(User).where(
            User.id == user_id,
            User.role == role,
            User.status == UserStatus.ACTIVE
        ).execution_options(populate_existing=True)
    )
    return result.scalars().first()
