"""Master data synced from the resident directory; read-only to billing"""

from sqlalchemy import Column, String

from app.models.base import BaseModel, CustomerScopedMixin


class Member(BaseModel, CustomerScopedMixin):
    """A resident. Status: 0 pending approval, 1 active, 2 deleted."""
    __tablename__ = "member_information"

    house_no = Column(String(64), nullable=False, index=True)
    full_name = Column(String(255), nullable=True)
    user_ref = Column(String(255), nullable=True)

    @property
    def receiver_uid(self):
        """Last path segment of user_ref, e.g. 'users/abc' -> 'abc'"""
        if not self.user_ref:
            return None
        return self.user_ref.rstrip("/").split("/")[-1] or None


class Room(BaseModel, CustomerScopedMixin):
    """A billable unit"""
    __tablename__ = "room_information"

    house_no = Column(String(64), nullable=False, index=True)
    title = Column(String(255), nullable=True)
