"""
数据模型包初始化文件
"""

from .coupon import (
    Coupon,
    CouponPolicy,
    CouponVariant,
    Decision,
    Discount,
    DiscountKind,
    IssueSingleRecipientRequest,
    IssueWindowedRequest,
    RedeemRequest,
    Redemption,
    RejectionReason,
    SingleRecipientPolicy,
    ValidateRequest,
    ValidationResult,
    WindowedPolicy,
    normalize_code
)

__all__ = [
    "Coupon",
    "CouponPolicy",
    "CouponVariant",
    "Decision",
    "Discount",
    "DiscountKind",
    "IssueSingleRecipientRequest",
    "IssueWindowedRequest",
    "RedeemRequest",
    "Redemption",
    "RejectionReason",
    "SingleRecipientPolicy",
    "ValidateRequest",
    "ValidationResult",
    "WindowedPolicy",
    "normalize_code"
]
