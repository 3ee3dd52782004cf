from .catalog import Category, Product
from .inventory import Supplier, InventoryLedgerEntry, Purchase, PurchaseLineItem
from .orders import Order, OrderLineItem, Payment
from .customers import Customer, CreditTransaction
from .documents import DocumentSequence

__all__ = [
    'Category', 'Product',
    'Supplier', 'InventoryLedgerEntry', 'Purchase', 'PurchaseLineItem',
    'Order', 'OrderLineItem', 'Payment',
    'Customer', 'CreditTransaction',
    'DocumentSequence',
]
