from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from enum import Enum
import string


class Environment(str, Enum):

    """运行环境枚举"""
    TESTING = "testing"
    PRODUCTION = "production"


class Settings(BaseSettings):

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # 应用基础配置
    app_name: str = "Coupon Redemption Engine"
    app_version: str = "1.0.0"
    environment: Environment = Environment.TESTING
    debug: bool = False

    # 数据库配置
    database_url: Optional[str] = None
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "coupon_db"
    db_user: str = "coupon_user"
    db_password: str = "coupon_password"
    db_pool_size: int = 10
    db_max_overflow: int = 20
    sqlite_busy_timeout: int = 30  # 秒，SQLite写锁等待上限
    auto_create_tables: bool = False  # 启动时自动建表，用于本地SQLite

    # Redis配置 (优惠券查询缓存)
    redis_url: Optional[str] = None
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: Optional[str] = None
    redis_db: int = 0
    cache_enabled: bool = True
    coupon_cache_ttl: int = 300

    # 优惠码生成配置
    coupon_code_length: int = 6
    coupon_code_alphabet: str = string.ascii_uppercase + string.digits
    coupon_code_max_attempts: int = 32

    # 核销配置
    redeem_conflict_retries: int = 3

    # 日志配置
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION

    @property
    def database_url_computed(self) -> str:
        """计算数据库URL"""
        if self.database_url:
            return self.database_url
        return f"postgresql+asyncpg://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    @property
    def is_sqlite(self) -> bool:
        return self.database_url_computed.startswith("sqlite")

    @property
    def redis_url_computed(self) -> str:
        """计算Redis URL"""
        if self.redis_url:
            return self.redis_url
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"


# 全局配置实例
settings = Settings()
