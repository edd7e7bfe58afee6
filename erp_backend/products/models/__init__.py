"""
PATH: products/models/__init__.py

Products models export surface.
"""

from .product import Product
from .stock_movement import StockMovement
from .variant import ProductVariant

__all__ = [
    "Product",
    "ProductVariant",
    "StockMovement",
]
