"""Base Models and Mixins shared by all tables"""

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.orm import declared_attr

from app.database import Base
from app.utils.time import get_utc_now

# Universal tombstone status; excluded from every read path
DELETED = 2


class BaseModel(Base):
    """
    Base model class with the audit columns every table carries.

    Provides:
    - integer primary key
    - status (2 = tombstone)
    - create/update/delete timestamps and actors
    """
    __abstract__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)
    status = Column(Integer, nullable=False, default=0, index=True)
    create_date = Column(DateTime, default=get_utc_now, nullable=False)
    create_by = Column(String(100), nullable=True)
    update_date = Column(DateTime, nullable=True)
    update_by = Column(String(100), nullable=True)
    delete_date = Column(DateTime, nullable=True)
    delete_by = Column(String(100), nullable=True)

    @property
    def is_live(self) -> bool:
        return self.status != DELETED

    def touch(self, actor: str) -> None:
        self.update_date = get_utc_now()
        self.update_by = actor

    def soft_delete(self, actor: str) -> None:
        """Tombstone the row without removing it"""
        self.status = DELETED
        self.delete_date = get_utc_now()
        self.delete_by = actor


class CustomerScopedMixin:
    """
    Mixin for rows owned by a customer (a residential community).
    """

    @declared_attr
    def customer_id(cls):
        return Column(String(64), nullable=False, index=True)
