# Routes module
from castolin.routes.customers import router as customers_router
from castolin.routes.orders import router as orders_router
from castolin.routes.stock_items import router as stock_items_router

__all__ = [
    "customers_router",
    "orders_router",
    "stock_items_router",
]
