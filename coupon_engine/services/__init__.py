"""
服务包初始化文件
"""

from .code_generator import CouponCodeGenerator
from .common_cache import SimpleCache, coupon_cache
from .coupon_service import CouponQueryService
from .recipient_directory import DatabaseRecipientDirectory, RecipientDirectory
from .redemption_engine import RedemptionEngine

__all__ = [
    "CouponCodeGenerator",
    "SimpleCache",
    "coupon_cache",
    "CouponQueryService",
    "DatabaseRecipientDirectory",
    "RecipientDirectory",
    "RedemptionEngine"
]
