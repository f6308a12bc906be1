"""Centralized Enum Definitions"""

import enum


# Bills
class BillStatus(enum.IntEnum):
    """Bill lifecycle. 2 is the tombstone."""
    DRAFT = 0
    SENT = 1
    DELETED = 2
    CANCELED = 3


class BillLineStatus(enum.IntEnum):
    """Per-unit ledger status. OVERDUE is derived at read time, never stored."""
    UNPAID = 0
    PAID = 1
    DELETED = 2
    OVERDUE = 3
    PARTIALLY_PAID = 4
    AWAITING_REVIEW = 5


# Lines that still owe money
OUTSTANDING_LINE_STATUSES = (
    BillLineStatus.UNPAID,
    BillLineStatus.PARTIALLY_PAID,
    BillLineStatus.AWAITING_REVIEW,
)

# Lines the overdue rule applies to
OVERDUE_ELIGIBLE_STATUSES = (BillLineStatus.UNPAID, BillLineStatus.AWAITING_REVIEW)


# Payments
class PaymentStatus(enum.IntEnum):
    AWAITING_REVIEW = 0
    APPROVED = 1
    DELETED = 2
    REJECTED = 3


class PayableType(str, enum.Enum):
    """Tag naming the table a Payment settles against"""
    BILL_LINE = "bill_room_information"


class TransactionType(str, enum.Enum):
    FULL = "full"
    PARTIAL = "partial"


# Members
class MemberStatus(enum.IntEnum):
    PENDING = 0
    ACTIVE = 1
    DELETED = 2


# Attachments
class AttachmentMenu(str, enum.Enum):
    BILL = "bill"
    PAYMENT = "payment"


class AttachmentStatus(enum.IntEnum):
    PENDING = 0
    VALID = 1
    DELETED = 2


# Notifications
class PushStatus(enum.IntEnum):
    """Delivery state of a notification audit row to the push backend"""
    PENDING = 0
    SENT = 1
    FAILED = 3


# Dynamic configuration
class ConfigDataType(str, enum.Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    JSON = "json"
