from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, AsyncEngine, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy import event, text
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
import logging

from coupon_engine.core.config import settings

logger = logging.getLogger(__name__)

# 创建基础模型类
Base = declarative_base()

# 全局数据库引擎
engine: Optional[AsyncEngine] = None
async_session_maker: Optional[async_sessionmaker] = None

# 写事务标记，SQLite据此使用 BEGIN IMMEDIATE
WRITE_TRANSACTION_OPTION = "coupon_write_transaction"


def _enable_sqlite_immediate_transactions(db_engine: AsyncEngine) -> None:
    """
    SQLite下写事务以 BEGIN IMMEDIATE 开始，写事务串行执行

    只读事务使用普通的 BEGIN，配合WAL模式不等待写锁
    """

    @event.listens_for(db_engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # 关闭驱动自带的BEGIN，由下面的begin事件接管
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(db_engine.sync_engine, "begin")
    def _on_begin(conn):
        if conn.get_execution_options().get(WRITE_TRANSACTION_OPTION):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """按数据库类型创建异步引擎"""
    if database_url.startswith("sqlite"):
        db_engine = create_async_engine(
            database_url,
            echo=echo,
            connect_args={"timeout": settings.sqlite_busy_timeout},
        )
        _enable_sqlite_immediate_transactions(db_engine)
        return db_engine

    return create_async_engine(
        database_url,
        echo=echo,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,  # 连接前ping检查
        pool_recycle=3600,   # 连接回收时间1小时
    )


def build_session_maker(db_engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


async def init_database(database_url: Optional[str] = None) -> None:
    """初始化数据库连接"""
    global engine, async_session_maker

    try:
        engine = build_engine(database_url or settings.database_url_computed, echo=settings.debug)
        async_session_maker = build_session_maker(engine)
        logger.info("数据库连接初始化成功")

    except Exception as e:
        logger.error(f"数据库连接初始化失败: {e}")
        raise


async def close_database() -> None:
    """关闭数据库连接"""
    global engine

    if engine:
        await engine.dispose()
        logger.info("数据库连接已关闭")


async def create_all_tables(db_engine: AsyncEngine) -> None:
    """创建所有数据表"""
    # 导入模型以确保表被注册
    from coupon_engine.models import database  # noqa: F401

    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def get_session_maker() -> async_sessionmaker:
    if not async_session_maker:
        raise RuntimeError("数据库未初始化，请先调用 init_database()")
    return async_session_maker


@asynccontextmanager
async def session_scope(session_maker: async_sessionmaker) -> AsyncIterator[AsyncSession]:
    """写事务作用域：正常退出时提交，任何异常回滚后继续抛出"""
    async with session_maker() as session:
        try:
            await session.connection(execution_options={WRITE_TRANSACTION_OPTION: True})
            yield session
            await session.commit()
        except BaseException:
            await session.rollback()
            raise


class DatabaseService:
    """数据库服务类"""

    @property
    def engine(self):
        return engine

    async def health_check(self) -> dict:
        """数据库健康检查"""
        try:
            if not self.engine:
                return {"status": "error", "message": "数据库引擎未初始化"}

            async with self.engine.connect() as conn:
                result = await conn.execute(text("SELECT 1"))
                row = result.fetchone()

            return {
                "status": "healthy",
                "message": "数据库连接正常",
                "test_query_result": row[0] if row else None
            }

        except Exception as e:
            return {
                "status": "error",
                "message": f"数据库连接失败: {str(e)}"
            }

    async def get_connection_info(self) -> dict:
        """获取数据库连接信息"""
        if not self.engine:
            return {"status": "not_initialized"}

        return {
            "url": self.engine.url.render_as_string(hide_password=True),
            "driver": self.engine.url.drivername,
            "database": self.engine.url.database,
            "host": self.engine.url.host,
            "port": self.engine.url.port,
        }


# 全局数据库服务实例
database_service = DatabaseService()
