from typing import Optional, List, Union
from pydantic import BaseModel, Field, ConfigDict, field_validator
from datetime import datetime, date
from decimal import Decimal

from app.models.enums import BillStatus


class BillBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    detail: Optional[str] = None
    bill_type_id: Optional[int] = None
    expire_date: date
    remark: Optional[str] = None


class BillCreate(BillBase):
    customer_id: str
    upload_key: Optional[str] = None
    status: int = BillStatus.DRAFT

    @field_validator("status")
    @classmethod
    def check_status(cls, v: int) -> int:
        if v not in (BillStatus.DRAFT, BillStatus.SENT):
            raise ValueError("status must be 0 (draft) or 1 (sent)")
        return v


class BillUpdate(BaseModel):
    customer_id: str
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    detail: Optional[str] = None
    bill_type_id: Optional[int] = None
    expire_date: Optional[date] = None
    remark: Optional[str] = None
    status: Optional[int] = None

    @field_validator("status")
    @classmethod
    def check_status(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v not in (BillStatus.DRAFT, BillStatus.SENT, BillStatus.CANCELED):
            raise ValueError("status must be 0, 1 or 3")
        return v


class BillAction(BaseModel):
    """Body for send / cancel-send"""
    customer_id: str


class BillSheetPreview(BaseModel):
    customer_id: str
    upload_key: str = Field(..., min_length=1)


class BillSheetCommit(BillCreate):
    upload_key: str = Field(..., min_length=1)
    excluded_rows: Union[List[int], str, None] = None


class BillNotifyRequest(BaseModel):
    """Re-emit notifications for some (or all) lines of a sent bill"""
    customer_id: str
    bill_room_ids: Union[List[int], str, None] = None


class BillResponse(BaseModel):
    id: int
    bill_no: str
    upload_key: Optional[str] = None
    title: str
    detail: Optional[str] = None
    bill_type_id: Optional[int] = None
    expire_date: date
    send_date: Optional[datetime] = None
    remark: Optional[str] = None
    customer_id: str
    status: int
    create_date: datetime
    create_by: Optional[str] = None
    update_date: Optional[datetime] = None
    update_by: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class BillLineCreate(BaseModel):
    customer_id: str
    bill_id: int
    house_no: str = Field(..., min_length=1, max_length=64)
    member_name: Optional[str] = None
    total_price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    remark: Optional[str] = None


class BillLineResponse(BaseModel):
    id: int
    bill_id: int
    bill_no: str
    house_no: str
    member_name: Optional[str] = None
    total_price: Decimal
    remark: Optional[str] = None
    customer_id: str
    status: int
    create_date: datetime

    model_config = ConfigDict(from_attributes=True)


class ReferenceItem(BaseModel):
    id: int
    title: str
    detail: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
