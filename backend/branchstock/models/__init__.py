from .branches import Branch
from .auth import User, USER_ROLES
from .inventory import Product, StockMovement, AppendOnlyViolation, MOVEMENT_TYPES, MOVEMENT_REASON_MAX
from .documents import Transfer, DocumentSequence, TRANSFER_STATUSES
from .sales import Invoice, InvoiceItem, Payment, PAYMENT_METHODS, PAYMENT_STATUSES, PAYMENT_TYPES

__all__ = [
    'Branch',
    'User', 'USER_ROLES',
    'Product', 'StockMovement', 'AppendOnlyViolation', 'MOVEMENT_TYPES', 'MOVEMENT_REASON_MAX',
    'Transfer', 'DocumentSequence', 'TRANSFER_STATUSES',
    'Invoice', 'InvoiceItem', 'Payment', 'PAYMENT_METHODS', 'PAYMENT_STATUSES', 'PAYMENT_TYPES',
]
