"""Durable record of notifications and their push delivery"""

from sqlalchemy import Column, DateTime, Integer, String, Text

from app.models.base import BaseModel, CustomerScopedMixin
from app.models.enums import PushStatus


class NotificationAudit(BaseModel, CustomerScopedMixin):
    """
    One notification addressed to one receiver about one row.
    The push_* columns double as the delivery queue.
    """
    __tablename__ = "notification_audit_information"

    table_name = Column(String(64), nullable=False)
    rows_id = Column(Integer, nullable=False, index=True)
    title = Column(String(255), nullable=True)
    detail = Column(Text, nullable=True)
    topic = Column(String(64), nullable=True)
    type = Column(String(64), nullable=True)
    receiver = Column(String(128), nullable=True)
    remark = Column(Text, nullable=True)

    push_status = Column(Integer, nullable=False, default=PushStatus.PENDING, index=True)
    push_attempts = Column(Integer, nullable=False, default=0)
    pushed_date = Column(DateTime, nullable=True)
