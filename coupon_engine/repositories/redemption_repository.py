"""
核销流水数据库操作层
"""

from typing import Optional
from datetime import datetime
import uuid

from sqlalchemy import select, and_, func
from sqlalchemy.ext.asyncio import AsyncSession

from coupon_engine.core.clock import ensure_utc
from coupon_engine.models.coupon import Redemption
from coupon_engine.models.database.coupon_db import CouponDB
from coupon_engine.models.database.redemption_db import RedemptionDB


class RedemptionRepository:
    """核销流水操作类，只追加不修改"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def count_for_recipient(self, coupon_id: str, recipient_id: str) -> int:
        """获取领取人对特定优惠券的核销次数"""
        result = await self.db.execute(
            select(func.count(RedemptionDB.redemption_id)).where(
                and_(
                    RedemptionDB.coupon_id == coupon_id,
                    RedemptionDB.recipient_id == recipient_id
                )
            )
        )
        return result.scalar() or 0

    async def count_for_coupon(self, coupon_id: str) -> int:
        """获取优惠券的总核销次数"""
        result = await self.db.execute(
            select(func.count(RedemptionDB.redemption_id)).where(RedemptionDB.coupon_id == coupon_id)
        )
        return result.scalar() or 0

    async def append(
        self,
        db_coupon: CouponDB,
        recipient_id: str,
        sequence: int,
        redeemed_at: datetime,
        order_reference: Optional[str] = None
    ) -> RedemptionDB:
        """追加核销记录，折扣取核销时刻的快照"""
        db_redemption = RedemptionDB(
            redemption_id=str(uuid.uuid4()),
            coupon_id=db_coupon.coupon_id,
            recipient_id=recipient_id,
            sequence=sequence,
            order_reference=order_reference,
            discount_kind=db_coupon.discount_kind,
            discount_applied=db_coupon.discount_value,
            redeemed_at=redeemed_at
        )
        self.db.add(db_redemption)
        await self.db.flush()
        return db_redemption

    def to_model(self, db_redemption: RedemptionDB, code: str) -> Redemption:
        """转换为Pydantic模型"""
        return Redemption(
            redemption_id=db_redemption.redemption_id,
            coupon_id=db_redemption.coupon_id,
            code=code,
            recipient_id=db_redemption.recipient_id,
            sequence=db_redemption.sequence,
            redeemed_at=ensure_utc(db_redemption.redeemed_at),
            order_reference=db_redemption.order_reference,
            discount_kind=db_redemption.discount_kind,
            discount_applied=db_redemption.discount_applied
        )
