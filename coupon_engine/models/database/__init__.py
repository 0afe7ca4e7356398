"""
数据库模型包初始化文件
"""

from .coupon_db import CouponDB, SingleRecipientPolicyDB, WindowedPolicyDB
from .redemption_db import RedemptionDB
from .recipient_db import RecipientDB

__all__ = [
    "CouponDB",
    "SingleRecipientPolicyDB",
    "WindowedPolicyDB",
    "RedemptionDB",
    "RecipientDB"
]
