# app/schemas/product.py
from pydantic import BaseModel, Field
from typing import Dict, List

from app.schemas.base import BaseResponse


class BatchStockQueryRequest(BaseModel):
    """批量查询库存请求"""
    product_ids: List[str] = Field(
        ...,
        min_length=1,
        max_length=100,
        description="商品ID列表",
        examples=[["p1", "p2", "p3"]]
    )


class StockResponse(BaseResponse):
    """单个商品库存响应"""
    product_id: str = Field(
        ...,
        description="商品ID"
    )
    available_stock: int = Field(
        ...,
        ge=0,
        description="可用库存数量"
    )


class BatchStockResponse(BaseResponse):
    """批量库存查询响应"""
    data: Dict[str, int] = Field(
        ...,
        description="商品ID到库存数量的映射"
    )
