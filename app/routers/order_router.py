"""订单 API 路由（同步下单、异步下单、订单查询、状态流转）"""

from fastapi import APIRouter, Body, HTTPException, Query, Path
from typing import List
import logging

from app.core.dependencies import OrderServiceDep, CurrentUserDep, FulfillmentUserDep
from app.services.order_service import OrderService
from app.schemas.base import ErrorResponse
from app.schemas.order import (
    OrderItemRequest,
    UpdateStatusRequest,
    OrderResponse,
    OrderListResponse,
    OrderPageResponse,
    OrderTaskResponse,
    TaskStatusResponse,
)
from celery_app import app as celery_app
from tasks.order_tasks import place_order as place_order_task

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/orders",
    tags=["订单管理"],
    responses={
        400: {"model": ErrorResponse, "description": "请求参数错误或库存不足"},
        401: {"model": ErrorResponse, "description": "未认证用户"},
        403: {"model": ErrorResponse, "description": "无权限修改订单状态"},
        404: {"model": ErrorResponse, "description": "商品或订单不存在"},
        409: {"model": ErrorResponse, "description": "并发冲突，可重试"},
        422: {"description": "请求验证失败"},
        500: {"description": "服务器内部错误"}
    }
)

@router.post(
    "",
    status_code=201,
    response_model=OrderResponse,
    summary="下单",
    description="""按请求顺序校验库存，在同一事务中扣减库存并创建订单。

    **特点：**
    - 全部成功或全部失败，失败时不扣减任何库存
    - 价格取自商品目录，总价由服务端计算
    - 重复的商品ID按独立明细处理，不合并

    **失败：**
    - 400 Insufficient stock for <商品名>
    - 404 Product with ID <id> does not exist
    - 409 事务冲突，可整体重试
    """,
    responses={
        201: {
            "description": "下单成功",
            "content": {
                "application/json": {
                    "example": {
                        "success": True,
                        "message": "Order placed successfully",
                        "data": {
                            "order_id": "7b0e4a4e-2c1b-4a55-9a8e-6b0c5a0f9e11",
                            "user_id": "u1",
                            "status": "pending",
                            "total_price": 20.0,
                            "products": [
                                {
                                    "product_id": "p1",
                                    "name": "Widget",
                                    "quantity": 2,
                                    "unit_price": 10.0,
                                    "item_total": 20.0
                                }
                            ]
                        }
                    }
                }
            }
        }
    }
)
async def place_order(
    items: List[OrderItemRequest] = Body(
        ...,
        description="购物车：[{product_id, quantity}, ...]"
    ),
    user_id: str = CurrentUserDep,
    service: OrderService = OrderServiceDep,
):
    """下单（库存预占核心接口）"""
    try:
        order = service.place_order(user_id, items)
        return {
            "success": True,
            "message": "Order placed successfully",
            "data": service.describe_order(order),
        }
    except HTTPException:
        # 透传 HTTPException（含业务异常）
        raise
    except Exception as e:
        logger.error(f"下单失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

@router.get(
    "",
    response_model=OrderListResponse,
    summary="查询我的订单",
    description="返回当前用户的全部订单，按创建时间倒序。"
)
async def list_orders(
    user_id: str = CurrentUserDep,
    service: OrderService = OrderServiceDep,
):
    try:
        orders = service.list_orders(user_id)
        return {
            "success": True,
            "message": "Orders retrieved successfully",
            "data": orders,
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"查询订单失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

@router.get(
    "/page",
    response_model=OrderPageResponse,
    summary="分页查询我的订单"
)
async def list_orders_page(
    page: int = Query(1, ge=1, description="页码"),
    page_size: int = Query(10, ge=1, description="每页数量"),
    user_id: str = CurrentUserDep,
    service: OrderService = OrderServiceDep,
):
    try:
        result = service.list_orders_page(user_id, page, page_size)
        return {
            "success": True,
            "message": "Orders retrieved successfully",
            "data": result,
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"分页查询订单失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

@router.post(
    "/async",
    status_code=202,
    response_model=OrderTaskResponse,
    summary="异步下单",
    description="提交 Celery 下单任务，事务冲突时由 worker 自动重试。"
)
async def place_order_async(
    items: List[OrderItemRequest] = Body(...),
    user_id: str = CurrentUserDep,
):
    try:
        task = place_order_task.delay(user_id, [item.model_dump() for item in items])
        return {
            "success": True,
            "message": "已提交异步下单任务",
            "task_id": task.id
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Celery 任务提交失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

@router.get(
    "/tasks/{task_id}",
    response_model=TaskStatusResponse,
    summary="查询异步下单任务状态"
)
async def get_task_status(task_id: str):
    try:
        task = celery_app.AsyncResult(task_id)
        result = None

        if task.state == 'PENDING':
            status = "任务等待中"
        elif task.state == 'SUCCESS':
            result = task.result
            status = "下单成功" if result.get("success") else f"下单失败: {result.get('message')}"
        elif task.state == 'FAILURE':
            status = f"任务失败: {str(task.info)}"
        else:
            status = f"任务状态: {task.state}"

        return {
            "task_id": task_id,
            "status": status,
            "state": task.state,
            "result": result
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"查询任务状态失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="查询订单详情"
)
async def get_order(
    order_id: str = Path(..., description="订单ID"),
    user_id: str = CurrentUserDep,
    service: OrderService = OrderServiceDep,
):
    try:
        order = service.get_order(order_id, user_id)
        return {
            "success": True,
            "message": "Order retrieved successfully",
            "data": order,
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"查询订单详情失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

@router.patch(
    "/{order_id}/status",
    response_model=OrderResponse,
    summary="订单状态流转",
    description="""由履约方推进订单状态。

    **允许的流转：**
    - pending → processing / cancelled
    - processing → shipped / cancelled
    - shipped → delivered

    取消订单不会归还库存。
    """
)
async def update_order_status(
    order_id: str = Path(..., description="订单ID"),
    request: UpdateStatusRequest = Body(...),
    operator_id: str = FulfillmentUserDep,
    service: OrderService = OrderServiceDep,
):
    try:
        order = service.update_status(order_id, request.status)
        logger.info(f"订单状态由 {operator_id} 修改: order_id={order_id}, status={request.status}")
        return {
            "success": True,
            "message": "Order status updated",
            "data": service.describe_order(order),
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"订单状态更新失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))
