from .stock import InsufficientStockError, StockChange, change_stock

__all__ = [
    "InsufficientStockError",
    "StockChange",
    "change_stock",
]
