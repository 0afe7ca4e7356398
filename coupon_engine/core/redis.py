import redis.asyncio as aioredis
from typing import Optional
from coupon_engine.core.config import settings
import structlog

"优惠券查询缓存使用的Redis连接管理"

logger = structlog.get_logger()


class RedisManager:
    """Redis连接管理器，缓存只是加速层，连接失败不影响核销"""

    def __init__(self):
        self.redis_pool: Optional[aioredis.Redis] = None

    async def init_redis(self, redis_url: Optional[str] = None) -> None:
        """建立连接池并确认可用，失败时保持未连接状态"""
        client = aioredis.from_url(
            redis_url or settings.redis_url_computed,
            encoding="utf-8",
            decode_responses=True,
            max_connections=20,
            retry_on_timeout=True
        )
        try:
            await client.ping()
        except Exception as e:
            logger.error("Redis连接初始化失败", error=str(e))
            await client.aclose()
            raise

        self.redis_pool = client
        logger.info("Redis连接初始化成功")

    async def close_redis(self) -> None:
        if self.redis_pool:
            await self.redis_pool.aclose()
            self.redis_pool = None
            logger.info("Redis连接已关闭")

    async def ping(self) -> bool:
        """健康检查用，未连接或异常均视为不可用"""
        if not self.redis_pool:
            return False
        try:
            return bool(await self.redis_pool.ping())
        except Exception as e:
            logger.warning("Redis ping失败", error=str(e))
            return False


# 全局Redis管理器实例
redis_manager = RedisManager()


def get_redis_client() -> Optional[aioredis.Redis]:
    """当前可用的Redis客户端，未初始化时为None"""
    return redis_manager.redis_pool
