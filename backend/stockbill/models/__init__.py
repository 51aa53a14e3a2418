from .auth import User, SessionToken
from .inventory import InventoryItem, RestockRecord, InventoryTransaction, InventoryTransactionLine
from .billing import Invoice, InvoiceLine, Payment
from .pos import PosSale, PosSaleLine
from .notifications import Notification

__all__ = [
    'User', 'SessionToken',
    'InventoryItem', 'RestockRecord', 'InventoryTransaction', 'InventoryTransactionLine',
    'Invoice', 'InvoiceLine', 'Payment',
    'PosSale', 'PosSaleLine',
    'Notification',
]
