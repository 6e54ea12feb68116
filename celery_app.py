"""Celery 配置文件"""

from celery import Celery

from app.core.config import settings

# 创建 Celery 应用实例
app = Celery('order_worker', include=['tasks.order_tasks'])

# 配置 Redis 作为 broker 和 backend
app.conf.broker_url = f"redis://{settings.REDIS_HOST}:{settings.REDIS_PORT}/1"
app.conf.result_backend = f"redis://{settings.REDIS_HOST}:{settings.REDIS_PORT}/2"

# 任务序列化配置
app.conf.task_serializer = 'json'
app.conf.result_serializer = 'json'
app.conf.accept_content = ['json']

# 时区配置
app.conf.timezone = 'Asia/Shanghai'
app.conf.enable_utc = True

# 任务路由配置
app.conf.task_routes = {
    'tasks.orders.*': {'queue': 'orders'},
}

# Worker 配置
app.conf.worker_prefetch_multiplier = 1
app.conf.task_acks_late = True

# 导出应用实例
__all__ = ['app']
