"""Unit of Work for promptcanvas.

One UnitOfWork is one database transaction over users, prompts and images.
"""

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from promptcanvas.repositories.generated_image import GeneratedImageRepository
from promptcanvas.repositories.prompt import PromptRepository
from promptcanvas.repositories.user import UserRepository

logger = structlog.get_logger()


class UnitOfWork:
    """Transaction scope exposing the ledger repositories.

    Attributes:
        users: Accounts and credit balances
        prompts: Generation requests and their status
        images: Stored generation outputs

    Example:
        async with await uow_factory() as uow:
            await uow.images.record(user.id, prompt.id, url, metadata)
            await uow.prompts.mark_completed(prompt.id)
            await uow.users.debit_credits(user.id)
        # Clean exit commits all three; any exception rolls all three back
    """

    def __init__(self, session: AsyncSession):
        self.session = session

        self.users = UserRepository(session)
        self.prompts = PromptRepository(session)
        self.images = GeneratedImageRepository(session)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Commit on clean exit, roll back otherwise, then release the session.

        Returns:
            False, so exceptions always propagate to the caller
        """
        try:
            if exc_type is None:
                await self.session.commit()
                logger.debug("transaction.committed")
            else:
                await self.session.rollback()
                logger.info("transaction.rolled_back", exc_type=exc_type.__name__)
        finally:
            await self.session.close()

        return False


def create_uow_factory(session_factory: async_sessionmaker[AsyncSession]):
    """Bind a session factory into an async UnitOfWork constructor.

    The returned coroutine function opens a fresh session per call, so each
    ``async with await uow_factory() as uow`` block is an independent transaction.
    """

    async def _new_uow() -> UnitOfWork:
        return UnitOfWork(session_factory())

    return _new_uow
