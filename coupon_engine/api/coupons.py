"""
优惠券接口
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from coupon_engine.core.exceptions import CouponNotFound
from coupon_engine.models.coupon import DiscountKind, RedeemRequest, ValidateRequest, normalize_code
from coupon_engine.api.dependencies import get_coupon_query_service, get_redemption_engine
from coupon_engine.services.coupon_service import CouponQueryService
from coupon_engine.services.redemption_engine import RedemptionEngine

router = APIRouter(prefix="/api/coupons", tags=["优惠券"])


class SingleRecipientCouponBody(BaseModel):
    """指定领取人优惠券发放请求"""

    recipient_id: str
    discount_type: DiscountKind
    discount_value: Decimal
    created_by: str


class WindowedCouponBody(BaseModel):
    """时间窗口优惠券发放请求"""

    discount_type: DiscountKind
    discount_value: Decimal
    valid_from: datetime
    valid_until: datetime
    max_uses_per_recipient: int
    total_usage_limit: Optional[int] = Field(None)
    created_by: str


@router.post("/single-recipient", status_code=201)
async def issue_single_recipient_coupon(
    body: SingleRecipientCouponBody,
    engine: RedemptionEngine = Depends(get_redemption_engine)
):
    """发放指定领取人优惠券"""
    coupon = await engine.issue_single_recipient(
        recipient_id=body.recipient_id,
        discount={"kind": body.discount_type, "value": body.discount_value},
        issuer=body.created_by
    )
    return {"success": True, "data": coupon.model_dump(mode="json")}


@router.post("/windowed", status_code=201)
async def issue_windowed_coupon(
    body: WindowedCouponBody,
    engine: RedemptionEngine = Depends(get_redemption_engine)
):
    """发放时间窗口优惠券"""
    coupon = await engine.issue_windowed(
        discount={"kind": body.discount_type, "value": body.discount_value},
        valid_from=body.valid_from,
        valid_until=body.valid_until,
        max_uses_per_recipient=body.max_uses_per_recipient,
        total_usage_limit=body.total_usage_limit,
        issuer=body.created_by
    )
    return {"success": True, "data": coupon.model_dump(mode="json")}


@router.post("/validate")
async def validate_coupon(
    body: ValidateRequest,
    engine: RedemptionEngine = Depends(get_redemption_engine)
):
    """校验优惠券是否可用（仅供参考，以核销结果为准）"""
    result = await engine.validate(body.code, body.recipient_id)
    data = result.model_dump(mode="json")
    data["can_redeem"] = result.eligible
    data["message"] = result.reason
    return {"success": True, "valid": result.eligible, "data": data}


@router.post("/redeem")
async def redeem_coupon(
    body: RedeemRequest,
    engine: RedemptionEngine = Depends(get_redemption_engine)
):
    """核销优惠券"""
    redemption = await engine.redeem(body.code, body.recipient_id, body.order_reference)
    data = redemption.model_dump(mode="json")
    data["message"] = "Coupon redeemed successfully"
    return {"success": True, "data": data}


@router.get("/{code}")
async def get_coupon(
    code: str,
    query_service: CouponQueryService = Depends(get_coupon_query_service)
):
    """查询优惠券详情"""
    coupon = await query_service.get_coupon_by_code(code)
    if coupon is None:
        raise CouponNotFound(normalize_code(code))
    return {"success": True, "data": coupon.model_dump(mode="json")}


@router.post("/{code}/deactivate")
async def deactivate_coupon(
    code: str,
    engine: RedemptionEngine = Depends(get_redemption_engine)
):
    """停用优惠券"""
    coupon = await engine.deactivate(code)
    return {"success": True, "data": coupon.model_dump(mode="json")}
