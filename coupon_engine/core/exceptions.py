"""
优惠券引擎业务异常定义
"""

from typing import Optional, Dict, Any


class CouponEngineError(Exception):
    """业务异常基类"""

    error_code = "COUPON_ERROR"
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        payload = {"success": False, "error": self.message, "error_code": self.error_code}
        if self.details:
            payload["details"] = self.details
        return payload


class InvalidInput(CouponEngineError):
    """请求参数缺失或格式错误"""

    error_code = "INVALID_INPUT"
    status_code = 400


class RecipientNotFound(CouponEngineError):
    """领取人不存在"""

    error_code = "RECIPIENT_NOT_FOUND"
    status_code = 404

    def __init__(self, recipient_id: str):
        super().__init__("Recipient not found", {"recipient_id": recipient_id})
        self.recipient_id = recipient_id


class CouponNotFound(CouponEngineError):
    """优惠码不存在或已停用"""

    error_code = "COUPON_NOT_FOUND"
    status_code = 404

    def __init__(self, code: str):
        super().__init__("Coupon not found or inactive", {"code": code})
        self.code = code


class RedemptionRejected(CouponEngineError):
    """
    核销被业务规则拒绝

    不属于系统故障，调用方不应重试
    """

    error_code = "REDEMPTION_REJECTED"
    status_code = 400

    def __init__(self, reason: str):
        super().__init__("Cannot redeem coupon")
        self.reason = reason

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["reason"] = self.reason
        return payload


class StoreUnavailable(CouponEngineError):
    """存储层故障，整个操作可安全重试"""

    error_code = "STORE_UNAVAILABLE"
    status_code = 503


class CodeSpaceExhausted(CouponEngineError):
    """优惠码生成次数耗尽，属于配置错误"""

    error_code = "CODE_SPACE_EXHAUSTED"
    status_code = 500
