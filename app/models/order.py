import enum
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import (
    Column,
    BigInteger,
    String,
    Integer,
    Numeric,
    TIMESTAMP,
    Enum,
    ForeignKey,
    CheckConstraint,
    Index,
    func,
)
from sqlalchemy.orm import relationship
from app.db.base import Base


def _utcnow():
    return datetime.now(timezone.utc)


# 1️ 订单状态枚举

class OrderStatus(str, enum.Enum):
    PENDING = "pending"          # 待处理（下单成功的初始状态）
    PROCESSING = "processing"    # 处理中
    SHIPPED = "shipped"          # 已发货
    DELIVERED = "delivered"      # 已送达
    CANCELLED = "cancelled"      # 已取消


# 2️ 订单表

class Order(Base):
    __tablename__ = "orders"

    id = Column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
        comment="订单ID（UUID）",
    )

    user_id = Column(
        String(64),
        nullable=False,
        comment="下单用户ID",
    )

    description = Column(
        String(255),
        nullable=True,
        comment="订单描述",
    )

    total_price = Column(
        Numeric(12, 2),
        nullable=False,
        comment="订单总价（下单时计算，之后不再变更）",
    )

    status = Column(
        Enum(
            OrderStatus,
            name="order_status_type",
            values_callable=lambda e: [m.value for m in e],
            create_type=True,
        ),
        nullable=False,
        default=OrderStatus.PENDING,
        comment="订单状态",
    )

    created_at = Column(
        TIMESTAMP(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
    )

    updated_at = Column(
        TIMESTAMP(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        server_default=func.now(),
        nullable=False,
    )

    items = relationship(
        "OrderItem",
        back_populates="order",
        order_by="OrderItem.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


# 3️ 订单明细表（下单时的价格快照）

class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )

    order_id = Column(
        String(36),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="订单ID",
    )

    position = Column(
        Integer,
        nullable=False,
        comment="明细在请求中的顺序",
    )

    product_id = Column(
        String(64),
        nullable=False,
        index=True,
        comment="商品ID",
    )

    product_name_snapshot = Column(
        String(255),
        nullable=False,
        comment="下单时商品名称",
    )

    quantity = Column(
        Integer,
        nullable=False,
        comment="购买数量",
    )

    unit_price = Column(
        Numeric(10, 2),
        nullable=False,
        comment="下单时单价",
    )

    order = relationship("Order", back_populates="items")

    __table_args__ = (
        CheckConstraint(
            "quantity > 0",
            name="ck_order_item_quantity_positive",
        ),
    )


# 4️ 高频查询优化索引（用户订单历史，按时间倒序）

Index(
    "idx_orders_user_created_desc",
    Order.user_id,
    Order.created_at.desc(),
)
