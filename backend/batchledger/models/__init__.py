from .tenancy import Business, User, Category
from .inventory import Item, InventoryBatch, StockAdjustment
from .purchases import Purchase, PurchaseItem, PurchaseBreakdown
from .sales import Sale, SaleItem
from .shifts import Shift
from .credits import CreditAccount, CreditTransaction

__all__ = [
    'Business', 'User', 'Category',
    'Item', 'InventoryBatch', 'StockAdjustment',
    'Purchase', 'PurchaseItem', 'PurchaseBreakdown',
    'Sale', 'SaleItem',
    'Shift',
    'CreditAccount', 'CreditTransaction',
]
