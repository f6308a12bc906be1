"""Uploaded files grouped by upload key"""

from sqlalchemy import Column, Integer, String

from app.models.base import BaseModel, CustomerScopedMixin


class Attachment(BaseModel, CustomerScopedMixin):
    """
    A stored file (bill sheet or payment slip). status=1 means the upload
    was validated and the file is usable.
    """
    __tablename__ = "attachment_information"

    upload_key = Column(String(64), nullable=False, index=True)
    menu = Column(String(32), nullable=False)
    file_name = Column(String(255), nullable=False)
    file_size = Column(Integer, nullable=True)
    file_ext = Column(String(16), nullable=True)
    file_path = Column(String(512), nullable=False)

    def __repr__(self) -> str:
        return f"<Attachment {self.upload_key} {self.file_name}>"
