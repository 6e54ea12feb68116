# app/schemas/order.py
from pydantic import AliasChoices, BaseModel, Field, field_validator
from typing import List, Optional
from datetime import datetime
from enum import Enum

from app.schemas.base import BaseResponse


class OrderStatusEnum(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# ==================== 请求模型 ====================

class OrderItemRequest(BaseModel):
    """购物车中的一项"""
    product_id: str = Field(
        ...,
        validation_alias=AliasChoices("product_id", "productId"),
        min_length=1,
        max_length=64,
        description="商品ID",
        examples=["p1"]
    )
    quantity: int = Field(
        ...,
        gt=0,
        description="购买数量",
        examples=[2]
    )

    @field_validator("product_id")
    @classmethod
    def strip_product_id(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("productId is required and must be a valid string")
        return value


class UpdateStatusRequest(BaseModel):
    """订单状态流转请求"""
    status: str = Field(
        ...,
        description="目标状态：pending / processing / shipped / delivered / cancelled，未知值返回 400",
        examples=["processing"]
    )


# ==================== 响应模型 ====================

class OrderLineSchema(BaseModel):
    product_id: str
    name: str
    description: Optional[str] = None
    quantity: int
    unit_price: float
    item_total: float


class OrderSchema(BaseModel):
    order_id: str
    user_id: str
    description: Optional[str] = None
    status: OrderStatusEnum
    total_price: float
    created_at: Optional[datetime] = None
    products: List[OrderLineSchema] = []


class OrderPage(BaseModel):
    """统一的分页结构"""
    items: List[OrderSchema] = []
    page: int
    page_size: int
    total_items: int
    total_pages: int


class OrderResponse(BaseResponse):
    data: Optional[OrderSchema] = None


class OrderListResponse(BaseResponse):
    data: List[OrderSchema] = []


class OrderPageResponse(BaseResponse):
    data: Optional[OrderPage] = None


class OrderTaskResponse(BaseResponse):
    """异步下单任务提交响应"""
    task_id: Optional[str] = Field(
        None,
        description="任务ID"
    )


class TaskStatusResponse(BaseModel):
    """任务状态响应"""
    task_id: str = Field(
        ...,
        description="任务ID"
    )
    status: str = Field(
        ...,
        description="任务状态描述"
    )
    state: str = Field(
        ...,
        description="任务状态码"
    )
    result: Optional[dict] = Field(
        None,
        description="任务结果"
    )
