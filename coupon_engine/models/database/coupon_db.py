"""
优惠券数据库模型
"""

from sqlalchemy import Column, String, Integer, Numeric, Boolean, DateTime, ForeignKey, CheckConstraint, UniqueConstraint
from sqlalchemy.sql import func
from coupon_engine.core.database import Base


class CouponDB(Base):
    """优惠券数据库表"""

    __tablename__ = "coupons"

    # 主键和基本信息
    coupon_id = Column(String(50), primary_key=True, comment="优惠券ID")
    code = Column(String(32), nullable=False, unique=True, index=True, comment="优惠码")
    variant = Column(String(20), nullable=False, comment="策略类型")

    # 折扣信息
    discount_kind = Column(String(20), nullable=False, comment="折扣类型")
    discount_value = Column(Numeric(18, 6), nullable=False, comment="折扣值")

    # 状态
    active = Column(Boolean, nullable=False, default=True, index=True, comment="是否有效")

    # 发放信息
    created_by = Column(String(100), nullable=False, comment="发放人")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), comment="创建时间")
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), comment="更新时间")

    __table_args__ = (
        CheckConstraint("discount_value > 0", name="ck_coupons_discount_positive"),
        CheckConstraint("variant IN ('SINGLE_RECIPIENT', 'WINDOWED')", name="ck_coupons_variant"),
        CheckConstraint("discount_kind IN ('PERCENTAGE', 'FIXED_AMOUNT')", name="ck_coupons_discount_kind"),
        {'comment': '优惠券信息表'}
    )


class SingleRecipientPolicyDB(Base):
    """指定领取人优惠券策略表"""

    __tablename__ = "single_recipient_policies"

    policy_id = Column(String(50), primary_key=True, comment="策略ID")
    coupon_id = Column(String(50), ForeignKey("coupons.coupon_id"), nullable=False, unique=True, comment="优惠券ID")
    recipient_id = Column(String(50), nullable=False, index=True, comment="领取人ID")
    redeemed = Column(Boolean, nullable=False, default=False, comment="是否已核销")
    redeemed_at = Column(DateTime(timezone=True), comment="核销时间")

    __table_args__ = (
        UniqueConstraint("coupon_id", "recipient_id", name="uq_single_recipient_coupon_recipient"),
        {'comment': '指定领取人优惠券策略表'}
    )


class WindowedPolicyDB(Base):
    """时间窗口优惠券策略表"""

    __tablename__ = "windowed_policies"

    policy_id = Column(String(50), primary_key=True, comment="策略ID")
    coupon_id = Column(String(50), ForeignKey("coupons.coupon_id"), nullable=False, unique=True, comment="优惠券ID")

    # 有效期
    valid_from = Column(DateTime(timezone=True), nullable=False, comment="有效开始时间")
    valid_until = Column(DateTime(timezone=True), nullable=False, comment="有效结束时间")

    # 使用限制
    max_uses_per_recipient = Column(Integer, nullable=False, comment="单个领取人使用次数上限")
    total_usage_limit = Column(Integer, comment="总使用次数上限，为空表示不限")
    current_usage_count = Column(Integer, nullable=False, default=0, comment="已使用次数")

    __table_args__ = (
        CheckConstraint("valid_from < valid_until", name="ck_windowed_valid_range"),
        CheckConstraint("max_uses_per_recipient > 0", name="ck_windowed_max_uses_positive"),
        CheckConstraint(
            "total_usage_limit IS NULL OR total_usage_limit > 0",
            name="ck_windowed_total_limit_positive"
        ),
        CheckConstraint(
            "total_usage_limit IS NULL OR current_usage_count <= total_usage_limit",
            name="ck_windowed_usage_within_limit"
        ),
        {'comment': '时间窗口优惠券策略表'}
    )
