from .hierarchy import Platform, Brand, Family, DeviceModel
from .catalog import Part, PartModel
from .inventory import StockTransaction, TRANSACTION_TYPES
from .sales import Sale, SaleItem, SALE_STATUSES
from .auth import AuthPin

__all__ = [
    'Platform', 'Brand', 'Family', 'DeviceModel',
    'Part', 'PartModel',
    'StockTransaction', 'TRANSACTION_TYPES',
    'Sale', 'SaleItem', 'SALE_STATUSES',
    'AuthPin',
]
