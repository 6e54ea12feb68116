"""订单相关的 Celery 任务"""

from celery_app import app
from app.core.config import settings
from app.core.exceptions import OrderError, TransactionFailed
from app.db.session import SessionLocal
from app.services.order_service import OrderService
from app.core.redis import redis_client
from app.core.dependencies import get_redlock
import logging

logger = logging.getLogger(__name__)

@app.task(
    bind=True,
    name='tasks.orders.place_order',
    max_retries=settings.ORDER_TASK_MAX_RETRIES,
)
def place_order(self, user_id: str, items: list):
    """异步下单任务，事务冲突时自动重试

    Args:
        user_id: 已认证的用户ID
        items: 商品项列表 [{"product_id": "p1", "quantity": 2}, ...]

    Returns:
        成功: {"success": True, "order_id": ..., "total_price": ...}
        业务失败: {"success": False, "code": ..., "message": ...}
    """
    db = SessionLocal()
    try:
        rlock = get_redlock()
        service = OrderService(db, redis_client, rlock, source="order_worker")
        order = service.place_order(user_id, items)
        return {
            "success": True,
            "order_id": order.id,
            "total_price": float(order.total_price),
        }
    except TransactionFailed as e:
        logger.warning(
            f"异步下单冲突，准备重试: user_id={user_id}, "
            f"attempt={self.request.retries + 1}"
        )
        if self.request.retries >= self.max_retries:
            return {"success": False, "code": e.code, "message": e.detail}
        raise self.retry(exc=e, countdown=settings.ORDER_TASK_RETRY_DELAY)
    except OrderError as e:
        # 库存不足、商品不存在等业务失败不重试
        return {"success": False, "code": e.code, "message": e.detail}
    except Exception as e:
        logger.error(f"异步下单失败: user_id={user_id}, error: {str(e)}")
        db.rollback()
        raise
    finally:
        db.close()

# 导出任务
__all__ = [
    'place_order',
]
