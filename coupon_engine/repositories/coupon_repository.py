"""
优惠券数据库操作层
"""

from typing import Optional, Union
from datetime import datetime
import uuid

from sqlalchemy import select, update, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from coupon_engine.core.clock import ensure_utc
from coupon_engine.models.coupon import (
    Coupon,
    CouponVariant,
    Discount,
    SingleRecipientPolicy,
    WindowedPolicy,
)
from coupon_engine.models.database.coupon_db import CouponDB, SingleRecipientPolicyDB, WindowedPolicyDB

PolicyDB = Union[SingleRecipientPolicyDB, WindowedPolicyDB]


class CouponRepository:
    """优惠券数据库操作类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def code_exists(self, code: str) -> bool:
        """优惠码是否已被占用（不区分有效状态）"""
        result = await self.db.execute(
            select(CouponDB.coupon_id).where(CouponDB.code == code)
        )
        return result.first() is not None

    async def get_by_code(self, code: str) -> Optional[CouponDB]:
        """根据优惠码获取优惠券"""
        result = await self.db.execute(
            select(CouponDB).where(CouponDB.code == code)
        )
        return result.scalar_one_or_none()

    async def get_active_by_code(self, code: str, for_update: bool = False) -> Optional[CouponDB]:
        """根据优惠码获取有效优惠券，for_update 时对该行加锁"""
        query = select(CouponDB).where(
            and_(
                CouponDB.code == code,
                CouponDB.active.is_(True)
            )
        )
        if for_update:
            query = query.with_for_update()

        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def create_coupon(
        self,
        code: str,
        variant: CouponVariant,
        discount: Discount,
        issuer: str,
        created_at: datetime
    ) -> CouponDB:
        """创建优惠券主记录"""
        db_coupon = CouponDB(
            coupon_id=str(uuid.uuid4()),
            code=code,
            variant=variant.value,
            discount_kind=discount.kind.value,
            discount_value=discount.value,
            active=True,
            created_by=issuer,
            created_at=created_at,
            updated_at=created_at
        )
        self.db.add(db_coupon)
        await self.db.flush()
        return db_coupon

    async def create_single_recipient_policy(self, coupon_id: str, recipient_id: str) -> SingleRecipientPolicyDB:
        """创建指定领取人策略"""
        db_policy = SingleRecipientPolicyDB(
            policy_id=str(uuid.uuid4()),
            coupon_id=coupon_id,
            recipient_id=recipient_id,
            redeemed=False,
            redeemed_at=None
        )
        self.db.add(db_policy)
        await self.db.flush()
        return db_policy

    async def create_windowed_policy(
        self,
        coupon_id: str,
        valid_from: datetime,
        valid_until: datetime,
        max_uses_per_recipient: int,
        total_usage_limit: Optional[int]
    ) -> WindowedPolicyDB:
        """创建时间窗口策略"""
        db_policy = WindowedPolicyDB(
            policy_id=str(uuid.uuid4()),
            coupon_id=coupon_id,
            valid_from=valid_from,
            valid_until=valid_until,
            max_uses_per_recipient=max_uses_per_recipient,
            total_usage_limit=total_usage_limit,
            current_usage_count=0
        )
        self.db.add(db_policy)
        await self.db.flush()
        return db_policy

    async def get_single_recipient_policy(
        self,
        coupon_id: str,
        recipient_id: Optional[str] = None,
        for_update: bool = False
    ) -> Optional[SingleRecipientPolicyDB]:
        """获取指定领取人策略，传入 recipient_id 时只匹配该领取人"""
        conditions = [SingleRecipientPolicyDB.coupon_id == coupon_id]
        if recipient_id is not None:
            conditions.append(SingleRecipientPolicyDB.recipient_id == recipient_id)

        query = select(SingleRecipientPolicyDB).where(and_(*conditions))
        if for_update:
            query = query.with_for_update()

        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_windowed_policy(self, coupon_id: str, for_update: bool = False) -> Optional[WindowedPolicyDB]:
        """获取时间窗口策略"""
        query = select(WindowedPolicyDB).where(WindowedPolicyDB.coupon_id == coupon_id)
        if for_update:
            query = query.with_for_update()

        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_policy(self, db_coupon: CouponDB) -> Optional[PolicyDB]:
        """按策略类型获取策略记录"""
        variant = CouponVariant(db_coupon.variant)
        if variant == CouponVariant.SINGLE_RECIPIENT:
            return await self.get_single_recipient_policy(db_coupon.coupon_id)
        if variant == CouponVariant.WINDOWED:
            return await self.get_windowed_policy(db_coupon.coupon_id)
        raise ValueError(f"未知的优惠券策略类型: {db_coupon.variant}")

    async def mark_redeemed(self, policy_id: str, redeemed_at: datetime) -> bool:
        """标记已核销，仅当当前未核销时生效"""
        result = await self.db.execute(
            update(SingleRecipientPolicyDB)
            .where(
                and_(
                    SingleRecipientPolicyDB.policy_id == policy_id,
                    SingleRecipientPolicyDB.redeemed.is_(False)
                )
            )
            .values(redeemed=True, redeemed_at=redeemed_at)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def increment_usage(self, coupon_id: str) -> bool:
        """使用次数加一，仅当未达到总上限时生效"""
        result = await self.db.execute(
            update(WindowedPolicyDB)
            .where(
                and_(
                    WindowedPolicyDB.coupon_id == coupon_id,
                    or_(
                        WindowedPolicyDB.total_usage_limit.is_(None),
                        WindowedPolicyDB.current_usage_count < WindowedPolicyDB.total_usage_limit
                    )
                )
            )
            .values(current_usage_count=WindowedPolicyDB.current_usage_count + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def deactivate(self, db_coupon: CouponDB, updated_at: datetime) -> None:
        """停用优惠券（调用方需已锁定该行）"""
        db_coupon.active = False
        db_coupon.updated_at = updated_at
        await self.db.flush()

    async def load_model(self, db_coupon: CouponDB) -> Coupon:
        """读取策略并转换为Pydantic模型"""
        db_policy = await self.get_policy(db_coupon)
        if db_policy is None:
            raise LookupError(f"优惠券 {db_coupon.code} 缺少策略记录")
        return self.to_model(db_coupon, db_policy)

    def to_model(self, db_coupon: CouponDB, db_policy: PolicyDB) -> Coupon:
        """转换为Pydantic模型"""
        if isinstance(db_policy, SingleRecipientPolicyDB):
            policy = SingleRecipientPolicy(
                recipient_id=db_policy.recipient_id,
                redeemed=db_policy.redeemed,
                redeemed_at=ensure_utc(db_policy.redeemed_at)
            )
        else:
            policy = WindowedPolicy(
                valid_from=ensure_utc(db_policy.valid_from),
                valid_until=ensure_utc(db_policy.valid_until),
                max_uses_per_recipient=db_policy.max_uses_per_recipient,
                total_usage_limit=db_policy.total_usage_limit,
                current_usage_count=db_policy.current_usage_count or 0
            )

        return Coupon(
            coupon_id=db_coupon.coupon_id,
            code=db_coupon.code,
            discount=Discount(kind=db_coupon.discount_kind, value=db_coupon.discount_value),
            created_at=ensure_utc(db_coupon.created_at),
            created_by=db_coupon.created_by,
            active=db_coupon.active,
            policy=policy
        )

