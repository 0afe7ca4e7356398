"""
优惠券系统数据库表创建脚本
"""

import asyncio
import sys
from pathlib import Path

# 添加项目根目录到Python路径
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from coupon_engine.core.config import settings
from coupon_engine.core.database import build_engine, build_session_maker, create_all_tables, session_scope
from coupon_engine.repositories.recipient_repository import RecipientRepository


SAMPLE_RECIPIENTS = [
    {"recipient_id": "recipient_001", "display_name": "John Doe", "email": "john.doe@example.com"},
    {"recipient_id": "recipient_002", "display_name": "Jane Roe", "email": "jane.roe@example.com"},
]


async def create_database_if_not_exists():
    """创建数据库（如果不存在），仅PostgreSQL"""
    if settings.is_sqlite:
        return

    # 连接到PostgreSQL服务器（不指定数据库）
    server_url = settings.database_url_computed.replace(f"/{settings.db_name}", "/postgres")
    engine = build_engine(server_url).execution_options(isolation_level="AUTOCOMMIT")

    async with engine.connect() as conn:
        result = await conn.execute(
            text("SELECT 1 FROM pg_database WHERE datname = :db_name"),
            {"db_name": settings.db_name}
        )

        if not result.fetchone():
            await conn.execute(text(f'CREATE DATABASE "{settings.db_name}"'))
            print(f"数据库 '{settings.db_name}' 创建成功")
        else:
            print(f"数据库 '{settings.db_name}' 已存在")

    await engine.dispose()


async def insert_sample_recipients(session_maker):
    """插入示例领取人"""
    for recipient in SAMPLE_RECIPIENTS:
        try:
            async with session_scope(session_maker) as session:
                await RecipientRepository(session).create(**recipient)
            print(f"插入领取人: {recipient['recipient_id']}")
        except IntegrityError:
            print(f"领取人已存在: {recipient['recipient_id']}")


async def main():
    """主函数"""
    print("开始创建优惠券系统数据库表...")

    await create_database_if_not_exists()

    engine = build_engine(settings.database_url_computed)
    try:
        await create_all_tables(engine)
        print("所有数据表创建成功")

        await insert_sample_recipients(build_session_maker(engine))
        print("优惠券系统数据库初始化完成！")
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
