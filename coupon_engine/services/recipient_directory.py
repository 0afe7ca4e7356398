"""
领取人目录
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import async_sessionmaker

from coupon_engine.repositories.recipient_repository import RecipientRepository


class RecipientDirectory(Protocol):
    async def exists(self, recipient_id: str) -> bool:
        ...


class DatabaseRecipientDirectory:
    """基于 recipients 表的领取人目录"""

    def __init__(self, session_maker: async_sessionmaker):
        self.session_maker = session_maker

    async def exists(self, recipient_id: str) -> bool:
        async with self.session_maker() as session:
            return await RecipientRepository(session).exists(recipient_id)
