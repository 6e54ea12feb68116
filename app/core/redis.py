"""Redis 客户端配置模块"""

from redis import Redis
from redis.asyncio import Redis as AsyncRedis
from redlock import Redlock

from app.core.config import settings

# 统一的 Redis 配置
REDIS_URL = settings.redis_url

# 基础 Redis 客户端
redis_client = Redis.from_url(REDIS_URL, decode_responses=True)
async_redis = AsyncRedis.from_url(REDIS_URL, decode_responses=True)

# Redlock 配置（支持单实例和多实例）
def create_redlock():
    """根据配置动态创建 Redlock 实例"""
    redis_hosts = settings.REDIS_HOSTS or settings.REDIS_HOST

    if "," in redis_hosts:  # 多实例模式
        hosts = redis_hosts.split(",")
        servers = [
            {"host": host.strip(), "port": settings.REDIS_PORT, "db": settings.REDIS_DB}
            for host in hosts
            if host.strip()
        ]
    else:  # 单实例模式
        servers = [
            {"host": redis_hosts.strip(), "port": settings.REDIS_PORT, "db": settings.REDIS_DB}
        ]

    return Redlock(servers)

redlock = create_redlock()

# 导出
__all__ = [
    "redis_client",
    "async_redis",
    "redlock",
    "REDIS_URL"
]
