"""
领取人目录数据库操作层
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coupon_engine.models.database.recipient_db import RecipientDB


class RecipientRepository:
    """领取人目录操作类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def exists(self, recipient_id: str) -> bool:
        result = await self.db.execute(
            select(RecipientDB.recipient_id).where(RecipientDB.recipient_id == recipient_id)
        )
        return result.first() is not None

    async def create(self, recipient_id: str, display_name: str, email: Optional[str] = None) -> RecipientDB:
        """创建领取人"""
        db_recipient = RecipientDB(
            recipient_id=recipient_id,
            display_name=display_name,
            email=email
        )
        self.db.add(db_recipient)
        await self.db.flush()
        return db_recipient
