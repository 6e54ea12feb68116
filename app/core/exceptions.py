"""下单相关的业务异常

全部继承 HTTPException，路由层直接透传，由 app.main 中的全局处理器统一渲染。
"""

from typing import List, Optional

from fastapi import HTTPException


class OrderError(HTTPException):
    """订单业务异常基类"""

    status_code = 400
    code = "ORDER_ERROR"

    def __init__(self, detail: str, errors: Optional[List[str]] = None):
        super().__init__(status_code=self.status_code, detail=detail)
        self.errors = errors if errors is not None else [detail]

    @property
    def message(self) -> str:
        return self.detail


class OrderValidationError(OrderError):
    """请求格式错误（空购物车、数量非正整数、缺少用户ID），不访问数据库"""

    code = "VALIDATION_ERROR"

    def __init__(self, errors: List[str]):
        super().__init__("Order validation failed", errors=errors)


class ProductNotFound(OrderError):
    status_code = 404
    code = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product with ID {product_id} does not exist")


class InsufficientStock(OrderError):
    """库存不足

    detail 固定为 "Insufficient stock for <商品名>"，调用方依赖该文案。
    """

    code = "INSUFFICIENT_STOCK"

    def __init__(self, product_name: str, requested: int, available: int):
        self.product_name = product_name
        self.requested = requested
        self.available = available
        super().__init__(f"Insufficient stock for {product_name}")


class TransactionFailed(OrderError):
    """事务提交失败或并发冲突，调用方可以整体重试"""

    status_code = 409
    code = "TRANSACTION_FAILED"

    def __init__(self, reason: str = "Order placement failed, please retry"):
        super().__init__(reason)


class OrderNotFound(OrderError):
    status_code = 404
    code = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order with ID {order_id} does not exist")


class InvalidStatusTransition(OrderError):
    status_code = 409
    code = "INVALID_STATUS_TRANSITION"

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot change order status from {current} to {target}")
