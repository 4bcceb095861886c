from bookledger.models.audit import AuditLog
from bookledger.models.donation import Donation
from bookledger.models.inventory import InventoryPurchase, InventorySale
from bookledger.models.transaction import Transaction
from bookledger.models.user import User

__all__ = [
    "AuditLog",
    "Donation",
    "InventoryPurchase",
    "InventorySale",
    "Transaction",
    "User",
]
