"""Models Package - Export all models for easy imports"""

from app.models.base import BaseModel, CustomerScopedMixin, DELETED
from app.models.enums import *
from app.models.billing import Bill, BillLine, BillAudit, BillType
from app.models.payment import Payment, PaymentType, Transaction, BillTransactionType
from app.models.attachment import Attachment
from app.models.notification import NotificationAudit
from app.models.master import Member, Room
from app.models.system import AppConfig, DocumentSequence


__all__ = [
    # Base classes
    "BaseModel",
    "CustomerScopedMixin",
    "DELETED",

    # Billing
    "Bill",
    "BillLine",
    "BillAudit",
    "BillType",

    # Payments
    "Payment",
    "PaymentType",
    "Transaction",
    "BillTransactionType",

    # Files
    "Attachment",

    # Notifications
    "NotificationAudit",

    # Master data
    "Member",
    "Room",

    # System
    "AppConfig",
    "DocumentSequence",
]
