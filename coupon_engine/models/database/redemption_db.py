"""
核销流水数据库模型
"""

from sqlalchemy import Column, String, Integer, Numeric, DateTime, ForeignKey, Index, UniqueConstraint
from coupon_engine.core.database import Base


class RedemptionDB(Base):
    """优惠券核销流水表（只追加）"""

    __tablename__ = "coupon_redemptions"

    # 主键和关联信息
    redemption_id = Column(String(50), primary_key=True, comment="核销记录ID")
    coupon_id = Column(String(50), ForeignKey("coupons.coupon_id"), nullable=False, comment="优惠券ID")
    recipient_id = Column(String(50), nullable=False, comment="领取人ID")
    sequence = Column(Integer, nullable=False, comment="该领取人对该券的第几次核销")
    order_reference = Column(String(100), comment="关联订单号")

    # 折扣快照
    discount_kind = Column(String(20), nullable=False, comment="核销时折扣类型")
    discount_applied = Column(Numeric(18, 6), nullable=False, comment="核销时折扣值")

    redeemed_at = Column(DateTime(timezone=True), nullable=False, comment="核销时间")

    __table_args__ = (
        UniqueConstraint("coupon_id", "recipient_id", "sequence", name="uq_redemptions_recipient_sequence"),
        Index("idx_redemptions_coupon_recipient", "coupon_id", "recipient_id"),
        {'comment': '优惠券核销流水表'}
    )
