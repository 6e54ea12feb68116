# Models
from .product import Product
from .order import Order, OrderItem, OrderStatus
from .inventory_logs import InventoryLog, ChangeType

__all__ = [
    "Product",
    "Order",
    "OrderItem",
    "OrderStatus",
    "InventoryLog",
    "ChangeType",
]
