"""
测试配置文件 - pytest fixtures和共用配置
"""

import os

import pytest
import pytest_asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

from coupon_engine.core.database import Base, build_engine, build_session_maker, create_all_tables, session_scope
from coupon_engine.models.coupon import Discount, DiscountKind
from coupon_engine.repositories.coupon_repository import CouponRepository
from coupon_engine.repositories.recipient_repository import RecipientRepository
from coupon_engine.repositories.redemption_repository import RedemptionRepository
from coupon_engine.services.recipient_directory import DatabaseRecipientDirectory
from coupon_engine.services.redemption_engine import RedemptionEngine


# 设置后改用该数据库（如PostgreSQL）运行全部测试，覆盖行锁路径；测试会清空其中的表
TEST_DATABASE_URL = os.getenv("COUPON_TEST_DATABASE_URL")

# 测试时钟的起点
FIXED_NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """可手动推进的测试时钟"""

    def __init__(self, now: datetime):
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


@pytest_asyncio.fixture(scope="function")
async def test_db_engine(tmp_path):
    """测试数据库引擎 - 默认每个测试独立的SQLite文件"""
    engine = build_engine(TEST_DATABASE_URL or f"sqlite+aiosqlite:///{tmp_path / 'coupon_test.db'}")

    if TEST_DATABASE_URL:
        # 清理上次中断留下的表
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    # 创建表结构
    await create_all_tables(engine)

    yield engine

    if TEST_DATABASE_URL:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_maker(test_db_engine):
    """测试会话工厂"""
    return build_session_maker(test_db_engine)


@pytest.fixture
def clock():
    """固定起点的测试时钟"""
    return FakeClock(FIXED_NOW)


@pytest_asyncio.fixture
async def recipients(session_maker):
    """预置领取人"""
    recipient_ids = [f"recipient_{i:03d}" for i in range(1, 13)]
    async with session_scope(session_maker) as session:
        repo = RecipientRepository(session)
        for recipient_id in recipient_ids:
            await repo.create(recipient_id, f"测试用户{recipient_id[-3:]}", f"{recipient_id}@example.com")
    return recipient_ids


@pytest.fixture
def mock_cache():
    """模拟缓存"""
    cache = AsyncMock()
    cache.get = AsyncMock(return_value=None)
    cache.set = AsyncMock(return_value=True)
    cache.delete = AsyncMock(return_value=True)
    return cache


@pytest.fixture
def redemption_engine(session_maker, clock, mock_cache):
    """核销引擎"""
    return RedemptionEngine(
        session_maker=session_maker,
        recipient_directory=DatabaseRecipientDirectory(session_maker),
        clock=clock,
        cache=mock_cache
    )


@pytest.fixture
def fixed_discount():
    """示例固定金额折扣"""
    return Discount(kind=DiscountKind.FIXED_AMOUNT, value=Decimal("50.00"))


@pytest.fixture
def percentage_discount():
    """示例百分比折扣"""
    return Discount(kind=DiscountKind.PERCENTAGE, value=Decimal("15.00"))


@pytest.fixture
def store_snapshot(session_maker):
    """读取优惠券当前的持久化状态：策略记录和核销流水数"""

    async def _snapshot(code: str, recipient_id: str = None):
        async with session_maker() as session:
            coupon_repo = CouponRepository(session)
            redemption_repo = RedemptionRepository(session)

            db_coupon = await coupon_repo.get_by_code(code)
            coupon = await coupon_repo.load_model(db_coupon)
            if recipient_id is None:
                ledger_count = await redemption_repo.count_for_coupon(db_coupon.coupon_id)
            else:
                ledger_count = await redemption_repo.count_for_recipient(db_coupon.coupon_id, recipient_id)
        return coupon, ledger_count

    return _snapshot
