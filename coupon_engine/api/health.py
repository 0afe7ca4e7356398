from fastapi import APIRouter
import logging

from coupon_engine.core.config import settings
from coupon_engine.core.redis import redis_manager
from coupon_engine.core.database import database_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["健康检查"])


@router.get("")
async def health_check():
    """基础健康检查接口"""
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment
    }


@router.get("/database")
async def database_health():
    """数据库和缓存连接健康检查"""
    health_status = {
        "database": False,
        "redis": False,
        "overall": False,
        "details": {}
    }

    db_status = await database_service.health_check()
    health_status["database"] = db_status["status"] == "healthy"
    health_status["details"]["database"] = db_status["message"]
    health_status["details"]["connection"] = await database_service.get_connection_info()

    if not settings.cache_enabled:
        health_status["details"]["redis"] = "缓存未启用"
    elif await redis_manager.ping():
        health_status["redis"] = True
        health_status["details"]["redis"] = "连接正常"
    else:
        health_status["details"]["redis"] = "连接不可用"

    # Redis只用于查询缓存，不影响整体可用性
    health_status["overall"] = health_status["database"]
    if not health_status["overall"]:
        logger.warning(f"健康检查失败: {health_status['details']}")

    return health_status
