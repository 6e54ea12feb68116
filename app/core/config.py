import os
from typing import Optional
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # 数据库配置
    POSTGRES_USER: str = os.getenv("POSTGRES_USER", "postgres")
    POSTGRES_PASSWORD: str = os.getenv("POSTGRES_PASSWORD", "123456")
    POSTGRES_HOST: str = os.getenv("POSTGRES_HOST", "localhost")
    POSTGRES_PORT: int = int(os.getenv("POSTGRES_PORT", "5432"))
    POSTGRES_DB: str = os.getenv("POSTGRES_DB", "mydb")
    # 直接指定完整连接串时优先使用（例如本地 sqlite）
    DATABASE_URL: Optional[str] = os.getenv("DATABASE_URL")

    # Redis 配置
    REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_DB: int = int(os.getenv("REDIS_DB", "0"))
    REDIS_HOSTS: str = os.getenv("REDIS_HOSTS", "")

    # 下单配置
    ORDER_LOCK_ENABLED: bool = os.getenv("ORDER_LOCK_ENABLED", "true").lower() == "true"
    ORDER_LOCK_TTL_MS: int = int(os.getenv("ORDER_LOCK_TTL_MS", "10000"))
    STOCK_CACHE_TTL: int = int(os.getenv("STOCK_CACHE_TTL", "300"))
    ORDER_TASK_MAX_RETRIES: int = int(os.getenv("ORDER_TASK_MAX_RETRIES", "3"))
    ORDER_TASK_RETRY_DELAY: int = int(os.getenv("ORDER_TASK_RETRY_DELAY", "2"))
    ORDER_PAGE_SIZE_MAX: int = int(os.getenv("ORDER_PAGE_SIZE_MAX", "100"))

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg://"
            f"{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/"
            f"{self.POSTGRES_DB}"
        )

    @property
    def redis_url(self) -> str:
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

settings = Settings()
