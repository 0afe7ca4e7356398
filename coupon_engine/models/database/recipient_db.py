"""
领取人目录数据库模型
"""

from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from coupon_engine.core.database import Base


class RecipientDB(Base):
    """领取人表"""

    __tablename__ = "recipients"

    recipient_id = Column(String(50), primary_key=True, comment="领取人ID")
    display_name = Column(String(100), nullable=False, comment="名称")
    email = Column(String(200), comment="邮箱")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), comment="创建时间")

    __table_args__ = (
        {'comment': '领取人目录表'}
    )
