"""Bills, per-unit bill lines and their audit trail"""

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint

from app.database import Base
from app.models.base import BaseModel, CustomerScopedMixin
from app.utils.time import get_utc_now


class BillType(BaseModel):
    """Reference list of bill categories (common fee, water, ...)"""
    __tablename__ = "bill_type_information"

    title = Column(String(255), nullable=False)
    detail = Column(Text, nullable=True)


class Bill(BaseModel, CustomerScopedMixin):
    """
    A batch billing document addressed to many units.
    Status: 0 draft, 1 sent, 3 canceled, 2 deleted.
    """
    __tablename__ = "bill_information"
    __table_args__ = (
        UniqueConstraint("customer_id", "bill_no", name="uq_bill_customer_bill_no"),
    )

    bill_no = Column(String(32), nullable=False, index=True)
    upload_key = Column(String(64), nullable=True, index=True)
    title = Column(String(255), nullable=False)
    detail = Column(Text, nullable=True)
    bill_type_id = Column(Integer, ForeignKey("bill_type_information.id"), nullable=True)
    expire_date = Column(Date, nullable=False)
    send_date = Column(DateTime, nullable=True)
    remark = Column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Bill {self.bill_no} - {self.status}>"


class BillLine(BaseModel, CustomerScopedMixin):
    """
    One unit's obligation within a Bill; the unit of settlement.
    Status: 0 unpaid, 4 partially paid, 1 paid, 5 awaiting review, 2 deleted.
    """
    __tablename__ = "bill_room_information"
    __table_args__ = (
        UniqueConstraint("customer_id", "bill_no", name="uq_bill_room_customer_bill_no"),
    )

    bill_id = Column(Integer, ForeignKey("bill_information.id"), nullable=False, index=True)
    bill_no = Column(String(32), nullable=False, index=True)
    house_no = Column(String(64), nullable=False, index=True)
    member_name = Column(String(255), nullable=True)
    total_price = Column(Numeric(12, 2), nullable=False)
    remark = Column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<BillLine {self.bill_no} {self.house_no} - {self.status}>"


class BillAudit(Base):
    """Append-only log of bill status transitions"""
    __tablename__ = "bill_audit"

    id = Column(Integer, primary_key=True, autoincrement=True)
    bill_id = Column(Integer, ForeignKey("bill_information.id"), nullable=False, index=True)
    status = Column(Integer, nullable=False)
    create_date = Column(DateTime, default=get_utc_now, nullable=False)
    create_by = Column(String(100), nullable=True)
