"""订单服务实现"""

from collections.abc import Mapping
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import uuid4
import logging
import math

from redis import Redis
from redis.exceptions import RedisError
from redlock import Redlock
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import (
    OrderError,
    OrderValidationError,
    ProductNotFound,
    InsufficientStock,
    TransactionFailed,
    OrderNotFound,
    InvalidStatusTransition,
)
from app.models.order import Order, OrderItem, OrderStatus
from app.models.inventory_logs import InventoryLog, ChangeType
from app.services.catalog_service import CatalogService

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

# 履约方允许的状态流转；取消不归还库存
ALLOWED_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
}


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_price(value: Decimal) -> Decimal:
    """金额保留两位小数（四舍五入）"""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def compute_total(lines: Sequence[Tuple[int, Any]]) -> Decimal:
    """计算订单总价：sum(数量 * 单价)，最后统一舍入"""
    total = sum((to_decimal(price) * quantity for quantity, price in lines), Decimal("0"))
    return round_price(total)


def _item_field(item, *names):
    for name in names:
        if isinstance(item, Mapping):
            if name in item:
                return item[name]
        elif hasattr(item, name):
            return getattr(item, name)
    return None


class OrderService:
    """订单核心服务类"""

    def __init__(
        self,
        db: Session,
        redis: Redis = None,
        rlock: Redlock = None,
        lock_ttl: int = None,
        source: str = "order_service",
    ):
        self.db = db
        self.redis = redis
        self.rlock = rlock
        self.lock_ttl = lock_ttl or settings.ORDER_LOCK_TTL_MS
        self.source = source
        self.catalog = CatalogService(db, redis)

    # ==================== 下单 ====================

    def place_order(self, user_id: str, items: Sequence[Any]) -> Order:
        """下单并预占库存（全部成功或全部失败）

        Args:
            user_id: 已认证的用户ID
            items: [{"product_id": "p1", "quantity": 2}, ...]，按请求顺序逐项校验和扣减，
                重复的 product_id 不合并

        Returns:
            已提交的订单，状态为 pending

        Raises:
            OrderValidationError: 请求格式错误，不访问数据库
            ProductNotFound: 商品不存在
            InsufficientStock: 库存不足，detail 为 "Insufficient stock for <商品名>"
            TransactionFailed: 获取锁失败或提交失败，可整体重试
        """
        user_id, requested = self._validate_request(user_id, items)
        product_ids = [product_id for product_id, _ in requested]

        locks = self._acquire_locks(product_ids)
        try:
            order = self._create_order(user_id, requested)
        finally:
            self._release_locks(locks)

        self._invalidate_cache(product_ids)
        logger.info(
            f"下单成功: order_id={order.id}, user_id={user_id}, "
            f"items={len(requested)}, total_price={order.total_price}"
        )
        return order

    def _validate_request(self, user_id, items) -> Tuple[str, List[Tuple[str, int]]]:
        errors = []
        if not isinstance(user_id, str) or not user_id.strip():
            errors.append("userId is required")

        if isinstance(items, (str, bytes, Mapping)) or not isinstance(items, Sequence) or not items:
            errors.append("Order must contain an array of products with productId and quantity")
            raise OrderValidationError(errors)

        requested = []
        for index, item in enumerate(items, start=1):
            product_id = _item_field(item, "product_id", "productId")
            quantity = _item_field(item, "quantity")

            if not isinstance(product_id, str) or not product_id.strip():
                errors.append(f"Item {index}: productId is required and must be a valid string")
            if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
                errors.append(f"Item {index}: quantity must be a positive integer")

            if not errors:
                requested.append((product_id.strip(), quantity))

        if errors:
            logger.warning(f"下单参数校验失败: {errors}")
            raise OrderValidationError(errors)

        return user_id.strip(), requested

    def _create_order(self, user_id: str, requested: List[Tuple[str, int]]) -> Order:
        order_id = str(uuid4())
        try:
            line_items = []
            for position, (product_id, quantity) in enumerate(requested):
                # 使用行级锁查询商品
                product = self.catalog.get_product_by_id(product_id, for_update=True)
                if product is None:
                    raise ProductNotFound(product_id)

                if product.stock < quantity:
                    raise InsufficientStock(product.name, quantity, product.stock)

                before_available = product.stock
                if not self.catalog.decrement_stock(product_id, quantity):
                    # 读取之后被并发订单抢先扣减
                    current = self.catalog.get_product_by_id(product_id, for_update=True)
                    available = current.stock if current is not None else 0
                    raise InsufficientStock(product.name, quantity, available)

                line_items.append(OrderItem(
                    position=position,
                    product_id=product_id,
                    product_name_snapshot=product.name,
                    quantity=quantity,
                    unit_price=to_decimal(product.price),
                ))

                self.db.add(InventoryLog(
                    product_id=product_id,
                    order_id=order_id,
                    change_type=ChangeType.DEDUCT,
                    quantity=-quantity,
                    before_available=before_available,
                    after_available=before_available - quantity,
                    operator=f"{self.source}_{user_id}"[:64],
                    source=self.source,
                ))

            count = len(line_items)
            order = Order(
                id=order_id,
                user_id=user_id,
                description=f"Order with {count} product{'s' if count > 1 else ''}",
                total_price=compute_total([(li.quantity, li.unit_price) for li in line_items]),
                status=OrderStatus.PENDING,
                items=line_items,
            )
            self.db.add(order)
            self.db.commit()
            return order

        except OrderError as e:
            self.db.rollback()
            logger.warning(f"下单失败: user_id={user_id}, reason={e.detail}")
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"下单事务提交失败: user_id={user_id}, error={str(e)}")
            raise TransactionFailed() from e

    def _acquire_locks(self, product_ids: List[str]) -> list:
        """按商品ID排序获取分布式锁，避免多商品订单互相等待"""
        if not self.rlock:
            return []

        locks = []
        for product_id in sorted(set(product_ids)):
            lock = self.rlock.lock(f"lock:product:{product_id}", ttl=self.lock_ttl)
            if not lock:
                self._release_locks(locks)
                logger.warning(f"获取商品锁失败: product_id={product_id}")
                raise TransactionFailed("Order placement conflict, please retry")
            locks.append(lock)
        return locks

    def _release_locks(self, locks: list) -> None:
        for lock in locks:
            self.rlock.unlock(lock)

    def _invalidate_cache(self, product_ids: List[str]) -> None:
        try:
            self.catalog.invalidate_stock_cache(product_ids)
        except RedisError as e:
            # 订单已提交，缓存会在 TTL 到期后自然失效
            logger.warning(f"库存缓存失效失败: {str(e)}")

    # ==================== 查询 ====================

    def list_orders(self, user_id: str) -> List[Dict[str, Any]]:
        """查询用户全部订单，按创建时间倒序"""
        orders = self.db.execute(
            select(Order)
            .where(Order.user_id == user_id)
            .order_by(Order.created_at.desc(), Order.id)
        ).scalars().all()
        return self.describe_orders(orders)

    def list_orders_page(self, user_id: str, page: int = 1, page_size: int = 10) -> Dict[str, Any]:
        """分页查询用户订单

        Returns:
            {"items": [...], "page": 1, "page_size": 10, "total_items": 23, "total_pages": 3}
        """
        if page < 1 or page_size < 1:
            raise OrderValidationError(["page and page_size must be positive integers"])
        page_size = min(page_size, settings.ORDER_PAGE_SIZE_MAX)

        total_items = self.db.execute(
            select(func.count()).select_from(Order).where(Order.user_id == user_id)
        ).scalar_one()

        orders = self.db.execute(
            select(Order)
            .where(Order.user_id == user_id)
            .order_by(Order.created_at.desc(), Order.id)
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).scalars().all()

        return {
            "items": self.describe_orders(orders),
            "page": page,
            "page_size": page_size,
            "total_items": total_items,
            "total_pages": math.ceil(total_items / page_size) if total_items else 0,
        }

    def get_order(self, order_id: str, user_id: str) -> Dict[str, Any]:
        order = self.db.execute(
            select(Order).where(Order.id == order_id, Order.user_id == user_id)
        ).scalar_one_or_none()
        if order is None:
            raise OrderNotFound(order_id)
        return self.describe_order(order)

    def describe_orders(self, orders: Sequence[Order]) -> List[Dict[str, Any]]:
        product_ids = [item.product_id for order in orders for item in order.items]
        products = self.catalog.get_products(product_ids)
        return [self.describe_order(order, products) for order in orders]

    def describe_order(self, order: Order, products: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """订单转换为对外展示结构，商品名称和描述优先取目录中的当前值"""
        if products is None:
            products = self.catalog.get_products(item.product_id for item in order.items)

        lines = []
        for item in order.items:
            product = products.get(item.product_id)
            lines.append({
                "product_id": item.product_id,
                "name": product.name if product is not None else item.product_name_snapshot,
                "description": product.description if product is not None else None,
                "quantity": item.quantity,
                "unit_price": to_decimal(item.unit_price),
                "item_total": round_price(to_decimal(item.unit_price) * item.quantity),
            })

        return {
            "order_id": order.id,
            "user_id": order.user_id,
            "description": order.description,
            "status": OrderStatus(order.status).value,
            "total_price": to_decimal(order.total_price),
            "created_at": order.created_at,
            "products": lines,
        }

    # ==================== 状态流转 ====================

    def update_status(self, order_id: str, new_status: str) -> Order:
        """履约方推进订单状态"""
        try:
            target = OrderStatus(new_status)
        except ValueError:
            raise OrderValidationError([f"Unknown order status: {new_status}"]) from None

        try:
            order = self.db.execute(
                select(Order).where(Order.id == order_id).with_for_update()
            ).scalar_one_or_none()
            if order is None:
                raise OrderNotFound(order_id)

            current = OrderStatus(order.status)
            if target not in ALLOWED_TRANSITIONS.get(current, set()):
                raise InvalidStatusTransition(current.value, target.value)

            order.status = target
            self.db.commit()
        except OrderError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"订单状态更新失败: order_id={order_id}, error={str(e)}")
            raise TransactionFailed() from e

        logger.info(f"订单状态更新: order_id={order_id}, {current.value} -> {target.value}")
        return order
