from typing import Any, Optional, List
from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class PortalUserResponse(BaseModel):
    userid: Optional[str] = None
    username: Optional[str] = None
    userlevel: Optional[str] = None
    userprimarykey: Optional[str] = None
    parentuserid: Optional[str] = None
    permission: Any = False


class LoginResponse(BaseModel):
    token: str
    user: PortalUserResponse


class CustomerItem(BaseModel):
    customer_id: str
    customer_name: str
    site_name: Optional[str] = None
    site_code: Optional[str] = None


class CustomerList(BaseModel):
    customers: List[CustomerItem]
    total: int
