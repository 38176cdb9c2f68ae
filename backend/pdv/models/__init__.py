from .base import Active, Deleted, SoftDeleteMixin
from .staff import Employee
from .catalog import Product, ProductVariant
from .ledger import Sale, StockMovement

__all__ = [
    'Active', 'Deleted', 'SoftDeleteMixin',
    'Employee',
    'Product', 'ProductVariant',
    'Sale', 'StockMovement',
]
