import enum

from sqlalchemy import (
    Column,
    BigInteger,
    String,
    Integer,
    TIMESTAMP,
    func,
    Enum,
    Index,
)
from app.db.base import Base

# 1定义库存变更类型（数据库 ENUM）
class ChangeType(str, enum.Enum):
    DEDUCT = "DEDUCT"     # 下单扣减
# 2️库存日志表
class InventoryLog(Base):
    __tablename__ = "inventory_logs"

    id = Column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )

    product_id = Column(
        String(64),
        nullable=False,
        index=True,
        comment="商品ID",
    )

    order_id = Column(
        String(36),
        nullable=True,
        index=True,
        comment="订单ID",
    )

    change_type = Column(
        Enum(
            ChangeType,
            name="inventory_change_type",  # 重要！PostgreSQL ENUM 类型名
            create_type=True,
        ),
        nullable=False,
        comment="库存变更类型",
    )

    quantity = Column(
        Integer,
        nullable=False,
        comment="变更数量",
    )

    before_available = Column(
        Integer,
        nullable=False,
        comment="变更前可用库存",
    )

    after_available = Column(
        Integer,
        nullable=False,
        comment="变更后可用库存",
    )

    created_at = Column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    operator = Column(
        String(64),
        nullable=True,
        comment="操作人/服务名",
    )

    source = Column(
        String(50),
        nullable=True,
        comment="来源：order_service / order_worker",
    )

# 3️组合索引（高频查询优化）


Index(
    "idx_inventory_logs_product_created_desc",
    InventoryLog.product_id,
    InventoryLog.created_at.desc(),
)
