"""商品库存查询路由"""

from fastapi import APIRouter, Body, HTTPException, Path
import logging

from app.core.dependencies import CatalogServiceDep
from app.services.catalog_service import CatalogService
from app.schemas.product import (
    BatchStockQueryRequest,
    StockResponse,
    BatchStockResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/products",
    tags=["商品库存"],
    responses={
        422: {"description": "请求验证失败"},
        500: {"description": "服务器内部错误"}
    }
)

@router.post(
    "/stock/batch",
    response_model=BatchStockResponse,
    summary="批量查询商品库存",
    description="""批量查询多个商品的库存数量。

    **限制：**
    - 单次最多查询100个商品
    - 不存在的商品返回 0
    """
)
async def batch_get_stocks(
    request: BatchStockQueryRequest = Body(
        ...,
        description="批量查询请求参数"
    ),
    catalog: CatalogService = CatalogServiceDep,
):
    """批量查询商品库存（Redis mget + 数据库 in 查询）"""
    try:
        stocks = catalog.batch_get_stocks(request.product_ids)
        return BatchStockResponse(
            success=True,
            data=stocks
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"批量查询库存失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

@router.get(
    "/{product_id}/stock",
    response_model=StockResponse,
    summary="查询商品库存",
    description="""查询指定商品的可用库存数量。

    **缓存策略：**
    - 首先查询Redis缓存
    - 缓存未命中则查询数据库
    - 下单成功后相关商品的缓存立即失效
    """
)
async def get_stock(
    product_id: str = Path(
        ...,
        min_length=1,
        max_length=64,
        description="商品ID"
    ),
    catalog: CatalogService = CatalogServiceDep,
):
    try:
        stock = catalog.get_product_stock(product_id)
        return {
            "success": True,
            "product_id": product_id,
            "available_stock": stock
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"查询库存失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))
