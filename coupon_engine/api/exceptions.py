"""
全局异常处理器
"""

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from coupon_engine.core.exceptions import CouponEngineError

logger = logging.getLogger(__name__)


async def business_exception_handler(request: Request, exc: CouponEngineError) -> JSONResponse:
    """业务异常：按异常类型返回对应状态码"""
    if exc.status_code >= 500:
        logger.error(f"业务处理失败 {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """请求参数校验失败"""
    errors = [
        {"field": ".".join(str(part) for part in error["loc"]), "message": error["msg"]}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": "Invalid request",
            "error_code": "INVALID_INPUT",
            "details": {"errors": errors}
        }
    )


async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """未被业务层处理的数据库异常"""
    logger.error(f"数据库异常 {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Internal server error", "error_code": "DATABASE_ERROR"}
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """兜底异常处理"""
    logger.exception(f"未处理的异常 {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Internal server error", "error_code": "INTERNAL_ERROR"}
    )
