"""Tools exposed to agents, in listing order."""

from .categories import GetCategoriesTool
from .coupons import CheckCouponTool
from .orders import CreateOrderTool, GetOrderTool, UpdateOrderTool
from .products import ListProductsTool, SearchProductsTool
from .shipping import GetShippingTool

ALL_TOOLS = [
    ListProductsTool(),
    SearchProductsTool(),
    GetOrderTool(),
    CreateOrderTool(),
    UpdateOrderTool(),
    CheckCouponTool(),
    GetShippingTool(),
    GetCategoriesTool(),
]

__all__ = ["ALL_TOOLS"]
