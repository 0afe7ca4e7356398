"""
优惠券相关数据模型
"""

from decimal import Decimal
from datetime import datetime
from typing import Optional, Union, Literal, Annotated
from pydantic import BaseModel, Field, field_validator, model_validator
from enum import Enum

from coupon_engine.core.clock import ensure_utc


class DiscountKind(str, Enum):
    """折扣类型枚举"""
    PERCENTAGE = "PERCENTAGE"  # 百分比折扣
    FIXED_AMOUNT = "FIXED_AMOUNT"  # 固定金额折扣


class CouponVariant(str, Enum):
    """优惠券策略类型"""
    SINGLE_RECIPIENT = "SINGLE_RECIPIENT"  # 指定领取人，一次性使用
    WINDOWED = "WINDOWED"  # 时间窗口内多次使用


class Decision(str, Enum):
    """校验结论"""
    ELIGIBLE = "ELIGIBLE"
    INELIGIBLE = "INELIGIBLE"


class RejectionReason(str, Enum):
    """不可用/拒绝原因，取值固定"""
    NOT_AVAILABLE_FOR_RECIPIENT = "not available for this recipient"
    INVALID_RECIPIENT = "invalid recipient"
    ALREADY_REDEEMED = "already redeemed"
    NOT_YET_ACTIVE = "not yet active"
    EXPIRED = "expired"
    USAGE_LIMIT_EXCEEDED = "usage limit exceeded"
    PER_RECIPIENT_LIMIT_EXCEEDED = "per-recipient limit exceeded"
    CONFIGURATION_NOT_FOUND = "coupon configuration not found"


ELIGIBLE_MESSAGE = "coupon is valid and ready to use"


def normalize_code(code: str) -> str:
    """优惠码统一去空白并转大写"""
    return code.strip().upper()


def strip_recipient_id(recipient_id: str) -> str:
    """领取人ID去除首尾空白，不允许为空"""
    recipient_id = recipient_id.strip()
    if not recipient_id:
        raise ValueError("recipient_id must not be blank")
    return recipient_id


class Discount(BaseModel):
    """折扣条款"""

    kind: DiscountKind = Field(..., description="折扣类型")
    value: Decimal = Field(..., gt=0, max_digits=18, decimal_places=6, description="折扣值")


class SingleRecipientPolicy(BaseModel):
    """指定领取人策略"""

    variant: Literal[CouponVariant.SINGLE_RECIPIENT] = CouponVariant.SINGLE_RECIPIENT
    recipient_id: str
    redeemed: bool = False
    redeemed_at: Optional[datetime] = None


class WindowedPolicy(BaseModel):
    """时间窗口策略"""

    variant: Literal[CouponVariant.WINDOWED] = CouponVariant.WINDOWED
    valid_from: datetime
    valid_until: datetime
    max_uses_per_recipient: int = Field(..., ge=1)
    total_usage_limit: Optional[int] = Field(None, ge=1)
    current_usage_count: int = Field(default=0, ge=0)

    def window_status(self, now: datetime) -> Optional[RejectionReason]:
        """检查时间窗口，闭区间 [valid_from, valid_until]"""
        if now < ensure_utc(self.valid_from):
            return RejectionReason.NOT_YET_ACTIVE
        if now > ensure_utc(self.valid_until):
            return RejectionReason.EXPIRED
        return None

    def is_used_up(self) -> bool:
        return self.total_usage_limit is not None and self.current_usage_count >= self.total_usage_limit


CouponPolicy = Annotated[Union[SingleRecipientPolicy, WindowedPolicy], Field(discriminator="variant")]


class Coupon(BaseModel):
    """优惠券及其策略"""

    coupon_id: str = Field(..., description="优惠券ID")
    code: str = Field(..., min_length=1, max_length=32, description="优惠码")
    discount: Discount
    created_at: datetime
    created_by: str = Field(..., description="发放人")
    active: bool = True
    policy: CouponPolicy

    @property
    def variant(self) -> CouponVariant:
        return self.policy.variant


class IssueSingleRecipientRequest(BaseModel):
    """发放指定领取人优惠券"""

    recipient_id: str = Field(..., min_length=1, max_length=50)
    discount: Discount
    issuer: str = Field(..., min_length=1, max_length=100)

    @field_validator("recipient_id")
    @classmethod
    def strip_recipient(cls, v):
        return strip_recipient_id(v)


class IssueWindowedRequest(BaseModel):
    """发放时间窗口优惠券"""

    discount: Discount
    valid_from: datetime
    valid_until: datetime
    max_uses_per_recipient: int = Field(..., ge=1)
    total_usage_limit: Optional[int] = Field(None, ge=1)
    issuer: str = Field(..., min_length=1, max_length=100)

    @field_validator("valid_from", "valid_until")
    @classmethod
    def to_utc(cls, v):
        return ensure_utc(v)

    @model_validator(mode="after")
    def validate_window(self):
        """验证有效期"""
        if self.valid_from >= self.valid_until:
            raise ValueError("valid_from must be before valid_until")
        return self


class CodeRecipientRequest(BaseModel):
    """按优惠码和领取人的请求"""

    code: str = Field(..., min_length=1, max_length=32)
    recipient_id: str = Field(..., min_length=1, max_length=50)

    @field_validator("code")
    @classmethod
    def normalize(cls, v):
        v = normalize_code(v)
        if not v:
            raise ValueError("code must not be blank")
        return v

    @field_validator("recipient_id")
    @classmethod
    def strip_recipient(cls, v):
        return strip_recipient_id(v)


class ValidateRequest(CodeRecipientRequest):
    """优惠券校验请求"""


class RedeemRequest(CodeRecipientRequest):
    """优惠券核销请求"""

    order_reference: Optional[str] = Field(None, max_length=100)


class ValidationResult(BaseModel):
    """优惠券校验结果（仅供展示，核销时会重新校验）"""

    coupon_id: str
    code: str
    variant: CouponVariant
    discount: Discount
    decision: Decision
    reason: str

    @property
    def eligible(self) -> bool:
        return self.decision == Decision.ELIGIBLE


class Redemption(BaseModel):
    """核销记录"""

    redemption_id: str
    coupon_id: str
    code: str
    recipient_id: str
    sequence: int = Field(..., ge=1, description="该领取人对该券的第几次核销")
    redeemed_at: datetime
    order_reference: Optional[str] = None
    discount_kind: DiscountKind
    discount_applied: Decimal
