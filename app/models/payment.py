"""Payments submitted by residents and the settlement ledger"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)

from app.models.base import BaseModel, CustomerScopedMixin


class PaymentType(BaseModel):
    """Payment channel reference (transfer, QR, cash, ...)"""
    __tablename__ = "payment_type_information"

    title = Column(String(255), nullable=False)
    detail = Column(Text, nullable=True)


class BillTransactionType(BaseModel):
    """Manual-entry transaction channel reference"""
    __tablename__ = "bill_transaction_type_information"

    title = Column(String(255), nullable=False)
    detail = Column(Text, nullable=True)


class Payment(BaseModel, CustomerScopedMixin):
    """
    A resident's payment notification against a payable.
    Status: 0 awaiting review, 1 approved, 3 rejected, 2 deleted.
    """
    __tablename__ = "payment_information"
    __table_args__ = (
        Index("ix_payment_payable", "payable_type", "payable_id"),
    )

    upload_key = Column(String(64), nullable=False, index=True)
    payable_type = Column(String(64), nullable=False)
    payable_id = Column(Integer, nullable=False)
    payment_amount = Column(Numeric(12, 2), nullable=False)
    payment_type_id = Column(Integer, ForeignKey("payment_type_information.id"), nullable=True)
    bank_id = Column(String(64), nullable=True)
    member_id = Column(String(64), nullable=True, index=True)
    payment_date = Column(DateTime, nullable=True)
    remark = Column(Text, nullable=True)
    member_remark = Column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Payment {self.id} {self.payable_type}:{self.payable_id} - {self.status}>"


class Transaction(BaseModel, CustomerScopedMixin):
    """
    A posted amount against a bill line. Either synthesized from an approved
    payment (payment_id set) or entered manually (bill_transaction_type_id set),
    never both and never neither.
    """
    __tablename__ = "bill_transaction_information"
    __table_args__ = (
        CheckConstraint(
            "(payment_id IS NULL) <> (bill_transaction_type_id IS NULL)",
            name="ck_transaction_source_xor",
        ),
    )

    bill_room_id = Column(Integer, ForeignKey("bill_room_information.id"), nullable=False, index=True)
    payment_id = Column(Integer, ForeignKey("payment_information.id"), nullable=True, index=True)
    bill_transaction_type_id = Column(
        Integer, ForeignKey("bill_transaction_type_information.id"), nullable=True
    )
    transaction_amount = Column(Numeric(12, 2), nullable=False)
    transaction_type = Column(String(16), nullable=False)
    transaction_type_json = Column(Text, nullable=True)
    pay_date = Column(DateTime, nullable=False, index=True)
    transaction_date = Column(DateTime, nullable=False)
    remark = Column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Transaction {self.id} line={self.bill_room_id} {self.transaction_amount}>"
