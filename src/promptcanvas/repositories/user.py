"""User repository for promptcanvas.

Provides data access methods for User entities, including the atomic credit debit.
"""

from uuid import UUID

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from promptcanvas.models.user import User
from promptcanvas.services.exceptions import InsufficientCredits

logger = structlog.get_logger()


class UserRepository:
    """Repository for User entities.

    Methods:
    - get_by_id: Retrieve user by UUID
    - get_by_email: Exact (case-sensitive) email lookup
    - add: Persist new user
    - debit_credits: Conditional decrement that never drives the balance negative
    """

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def get_by_id(self, user_id: UUID) -> User | None:
        """Retrieve user by UUID.

        Args:
            user_id: User's unique identifier

        Returns:
            User if found, None otherwise
        """
        result = await self.session.execute(select(User).where(User.id == user_id))  # type: ignore[arg-type]
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> User | None:
        """Retrieve user by email, compared exactly as stored.

        Args:
            email: Email address

        Returns:
            User if found, None otherwise
        """
        result = await self.session.execute(select(User).where(User.email == email))  # type: ignore[arg-type]
        return result.scalar_one_or_none()

    async def add(self, user: User) -> User:
        """Persist new user to database.

        Args:
            user: User entity to persist

        Returns:
            Persisted user with generated ID

        Raises:
            IntegrityError: If the email is already registered
        """
        self.session.add(user)
        await self.session.flush()
        return user

    async def debit_credits(self, user_id: UUID, amount: int = 1) -> int:
        """Atomically subtract credits from a user's balance.

        Executes a single conditional UPDATE:

            UPDATE users SET credits = credits - :amount
            WHERE id = :user_id AND credits >= :amount

        Concurrent debits for the same user serialize on the row, so two
        requests can never both spend the last credit.

        Args:
            user_id: User's unique identifier
            amount: Credits to subtract (default: 1)

        Returns:
            New credit balance

        Raises:
            ValueError: If amount is not positive
            InsufficientCredits: If the balance is lower than amount (or user is missing)
        """
        if amount < 1:
            raise ValueError(f"Debit amount must be positive (got {amount})")

        result = await self.session.execute(
            update(User)
            .where(User.id == user_id, User.credits >= amount)  # type: ignore[arg-type]
            .values(credits=User.credits - amount)
        )

        if result.rowcount != 1:  # type: ignore[attr-defined]
            logger.info("credits.debit_rejected", user_id=str(user_id), amount=amount)
            raise InsufficientCredits("Insufficient credits")

        balance_result = await self.session.execute(
            select(User.credits).where(User.id == user_id)  # type: ignore[arg-type]
        )
        new_balance = balance_result.scalar_one()

        logger.info("credits.debited", user_id=str(user_id), amount=amount, balance=new_balance)
        return new_balance
