from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from contextlib import asynccontextmanager
from sqlalchemy.exc import SQLAlchemyError
import uvicorn

from coupon_engine.core.config import settings
from coupon_engine.core.redis import redis_manager
from coupon_engine.core.database import init_database, close_database, create_all_tables
from coupon_engine.core import database
from coupon_engine.core.exceptions import CouponEngineError
from coupon_engine.api.health import router as health_router
from coupon_engine.api.coupons import router as coupons_router
from coupon_engine.api.exceptions import (
    validation_exception_handler,
    database_exception_handler,
    general_exception_handler,
    business_exception_handler
)

# 简化日志配置
import logging

logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logger.info("正在启动优惠券核销服务")

    try:
        await init_database()
        if settings.auto_create_tables:
            await create_all_tables(database.engine)
        logger.info("数据库初始化成功")
    except Exception as e:
        logger.error(f"应用启动失败: {e}")
        raise

    if settings.cache_enabled:
        try:
            await redis_manager.init_redis()
            logger.info("Redis初始化成功")
        except Exception as e:
            # 缓存不可用时查询直接走数据库
            logger.warning(f"Redis不可用，查询缓存已禁用: {e}")

    logger.info("应用启动完成")

    yield

    logger.info("正在关闭应用")
    await close_database()
    await redis_manager.close_redis()
    logger.info("应用关闭完成")


# 创建FastAPI应用
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="优惠券发放、校验与核销服务",
    debug=settings.debug,
    docs_url=None if settings.is_production else "/docs",
    lifespan=lifespan
)

# CORS中间件
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# 注册路由
app.include_router(health_router)
app.include_router(coupons_router)

# 注册异常处理器
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(CouponEngineError, business_exception_handler)
app.add_exception_handler(SQLAlchemyError, database_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)


@app.get("/")
async def root():
    """根路径"""
    return {
        "message": f"欢迎使用 {settings.app_name}",
        "version": settings.app_version,
        "docs": app.docs_url,
        "health": "/health",
    }


if __name__ == "__main__":
    uvicorn.run(
        "coupon_engine.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
