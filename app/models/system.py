"""Runtime configuration and document-number counters"""

from sqlalchemy import Boolean, Column, Date, Integer, String, Text, UniqueConstraint

from app.database import Base
from app.models.base import BaseModel


class AppConfig(BaseModel):
    """Key/value settings editable at runtime, typed by data_type"""
    __tablename__ = "app_config"

    config_key = Column(String(100), nullable=False, unique=True)
    config_value = Column(Text, nullable=True)
    data_type = Column(String(16), nullable=False, default="string")
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)


class DocumentSequence(Base):
    """Next number to issue per (prefix, customer, civil day)"""
    __tablename__ = "document_sequence"
    __table_args__ = (
        UniqueConstraint("prefix", "customer_id", "seq_date", name="uq_document_sequence_day"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    prefix = Column(String(16), nullable=False)
    customer_id = Column(String(64), nullable=False)
    seq_date = Column(Date, nullable=False)
    next_value = Column(Integer, nullable=False, default=0)
