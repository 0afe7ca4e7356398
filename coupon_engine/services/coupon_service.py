"""
优惠券查询服务
提供优惠券详情的缓存查询，核销和停用后由核销引擎清除缓存
"""

from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from coupon_engine.core.config import settings
from coupon_engine.models.coupon import Coupon, normalize_code
from coupon_engine.repositories.coupon_repository import CouponRepository
from coupon_engine.services.common_cache import SimpleCache, coupon_code_key
from coupon_engine.services.redemption_engine import translate_store_errors


class CouponQueryService:
    """优惠券查询服务"""

    def __init__(self, session_maker: async_sessionmaker, cache: Optional[SimpleCache] = None):
        self.session_maker = session_maker
        self.cache = cache
        self.cache_ttl = settings.coupon_cache_ttl

    async def get_coupon_by_code(self, code: str, use_cache: bool = True) -> Optional[Coupon]:
        """根据优惠码获取优惠券（含已停用的）"""
        normalized = normalize_code(code)
        cache_key = coupon_code_key(normalized)
        use_cache = use_cache and self.cache is not None

        if use_cache:
            cached_coupon = await self.cache.get(cache_key)
            if cached_coupon:
                return Coupon.model_validate(cached_coupon)

        with translate_store_errors("get_coupon_by_code"):
            async with self.session_maker() as session:
                repo = CouponRepository(session)
                db_coupon = await repo.get_by_code(normalized)
                if not db_coupon:
                    return None
                coupon = await repo.load_model(db_coupon)

        if use_cache:
            await self.cache.set(cache_key, coupon.model_dump(mode="json"), ttl=self.cache_ttl)

        return coupon
