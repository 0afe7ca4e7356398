"""
仓库包初始化文件 - 数据库访问层
"""

from .coupon_repository import CouponRepository
from .redemption_repository import RedemptionRepository
from .recipient_repository import RecipientRepository

__all__ = [
    "CouponRepository",
    "RedemptionRepository",
    "RecipientRepository"
]
