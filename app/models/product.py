from uuid import uuid4

from sqlalchemy import (
    Column,
    String,
    Text,
    Integer,
    Numeric,
    TIMESTAMP,
    CheckConstraint,
    func,
    Index,
)
from app.db.base import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(
        String(64),
        primary_key=True,
        default=lambda: uuid4().hex,
        comment="商品ID",
    )

    name = Column(
        String(255),
        nullable=False,
        comment="商品名称",
    )

    description = Column(
        Text,
        nullable=True,
        comment="商品描述",
    )

    category = Column(
        String(64),
        nullable=True,
        comment="商品分类",
    )

    price = Column(
        Numeric(10, 2),
        nullable=False,
        comment="当前售价",
    )

    stock = Column(
        Integer,
        nullable=False,
        server_default="0",
        comment="当前可售库存",
    )

    created_at = Column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at = Column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False,
        onupdate=func.now(),
    )

    __table_args__ = (
        CheckConstraint(
            "stock >= 0",
            name="ck_product_stock_non_negative",
        ),
        CheckConstraint(
            "price >= 0",
            name="ck_product_price_non_negative",
        ),
    )


# -----------------------------
# 组合索引（按分类、名称检索）
# -----------------------------
Index(
    "idx_products_category_name",
    Product.category,
    Product.name,
)
