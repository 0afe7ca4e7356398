"""
API依赖注入
"""

from coupon_engine.core.config import settings
from coupon_engine.core.database import get_session_maker
from coupon_engine.services.common_cache import coupon_cache
from coupon_engine.services.coupon_service import CouponQueryService
from coupon_engine.services.recipient_directory import DatabaseRecipientDirectory
from coupon_engine.services.redemption_engine import RedemptionEngine


def get_redemption_engine() -> RedemptionEngine:
    """获取核销引擎"""
    session_maker = get_session_maker()
    return RedemptionEngine(
        session_maker=session_maker,
        recipient_directory=DatabaseRecipientDirectory(session_maker),
        cache=coupon_cache if settings.cache_enabled else None
    )


def get_coupon_query_service() -> CouponQueryService:
    """获取优惠券查询服务"""
    return CouponQueryService(
        session_maker=get_session_maker(),
        cache=coupon_cache if settings.cache_enabled else None
    )
