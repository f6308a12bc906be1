from typing import Any, Optional, List, Union
from pydantic import BaseModel, Field, ConfigDict, field_validator
from datetime import datetime
from decimal import Decimal

from app.models.enums import PayableType
from app.utils.time import to_utc_naive


class PaymentCreate(BaseModel):
    """Resident payment notification. Always enters review as status 0."""
    customer_id: str
    upload_key: str = Field(..., min_length=1)
    payable_type: str = PayableType.BILL_LINE.value
    payable_id: int
    payment_amount: Decimal = Field(..., max_digits=12, decimal_places=2)
    payment_type_id: Optional[int] = None
    bank_id: Optional[str] = None
    member_id: Optional[str] = None
    payment_date: Optional[datetime] = None
    remark: Optional[str] = None
    member_remark: Optional[str] = None

    @field_validator("payment_date")
    @classmethod
    def store_as_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_utc_naive(v)


class PaymentReview(BaseModel):
    customer_id: str
    ids: Union[List[int], str, int]
    status: int
    remark: Optional[str] = None


class PaymentResponse(BaseModel):
    id: int
    upload_key: str
    payable_type: str
    payable_id: int
    payment_amount: Decimal
    payment_type_id: Optional[int] = None
    bank_id: Optional[str] = None
    member_id: Optional[str] = None
    payment_date: Optional[datetime] = None
    remark: Optional[str] = None
    member_remark: Optional[str] = None
    customer_id: str
    status: int
    create_date: datetime
    update_date: Optional[datetime] = None
    update_by: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class TransactionCreate(BaseModel):
    """Manual ledger entry (cash at the office, adjustments)"""
    customer_id: str
    bill_room_id: int
    bill_transaction_type_id: int
    transaction_amount: Decimal = Field(..., max_digits=12, decimal_places=2)
    transaction_type_json: Optional[Union[str, dict, list]] = None
    pay_date: Optional[datetime] = None
    remark: Optional[str] = None

    @field_validator("pay_date")
    @classmethod
    def store_as_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_utc_naive(v)


class TransactionResponse(BaseModel):
    id: int
    bill_room_id: int
    payment_id: Optional[int] = None
    bill_transaction_type_id: Optional[int] = None
    transaction_amount: Decimal
    transaction_type: str
    transaction_type_json: Optional[Any] = None
    pay_date: datetime
    transaction_date: datetime
    remark: Optional[str] = None
    customer_id: str
    status: int

    model_config = ConfigDict(from_attributes=True)
