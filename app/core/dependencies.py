"""依赖注入配置模块"""

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException

# 数据库会话依赖
from app.db.session import SessionLocal
from sqlalchemy.orm import Session

# Redis 依赖
from app.core.config import settings
from app.core.redis import redis_client, redlock

from app.services.catalog_service import CatalogService
from app.services.order_service import OrderService

logger = logging.getLogger(__name__)

# 允许推进订单状态的角色
FULFILLMENT_ROLES = {"admin"}


def get_redis():
    """获取同步 Redis 客户端，不可用时返回 None（退化为无缓存模式）"""
    try:
        redis_client.ping()
        return redis_client
    except Exception as e:
        logger.warning(f"Redis 不可用，跳过缓存: {e}")
        return None

def get_redlock():
    """获取 Redlock 分布式锁实例

    未启用、未配置服务器或可达实例不足 quorum 时返回 None，
    此时下单只依赖数据库行锁和条件扣减。
    """
    if not settings.ORDER_LOCK_ENABLED or not redlock.servers:
        return None

    reachable = 0
    for server in redlock.servers:
        try:
            server.ping()
            reachable += 1
        except Exception as e:
            logger.warning(f"Redlock 实例不可用: {e}")

    if reachable < redlock.quorum:
        logger.warning(
            f"Redlock 可用实例不足 ({reachable}/{len(redlock.servers)})，跳过分布式锁"
        )
        return None
    return redlock

def get_db() -> Session:
    """获取数据库会话"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id")
) -> str:
    """获取网关认证后的用户ID"""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="未认证用户")
    return x_user_id.strip()


def get_fulfillment_user_id(
    user_id: str = Depends(get_current_user_id),
    x_user_role: Optional[str] = Header(None, alias="X-User-Role")
) -> str:
    """获取有权推进订单状态的操作人（网关传入的角色须为 admin）"""
    role = (x_user_role or "").strip().lower()
    if role not in FULFILLMENT_ROLES:
        logger.warning(f"无权限修改订单状态: user_id={user_id}, role={x_user_role}")
        raise HTTPException(status_code=403, detail="无权限修改订单状态")
    return user_id


def get_order_service(
    db: Session = Depends(get_db),
    redis = Depends(get_redis),
    rlock = Depends(get_redlock)
) -> OrderService:
    """获取订单服务实例（依赖注入）"""
    return OrderService(db=db, redis=redis, rlock=rlock)


def get_catalog_service(
    db: Session = Depends(get_db),
    redis = Depends(get_redis)
) -> CatalogService:
    """获取商品目录服务实例（依赖注入）"""
    return CatalogService(db=db, redis=redis)


# 常用的依赖注入别名
OrderServiceDep = Depends(get_order_service)
CatalogServiceDep = Depends(get_catalog_service)
CurrentUserDep = Depends(get_current_user_id)
FulfillmentUserDep = Depends(get_fulfillment_user_id)
