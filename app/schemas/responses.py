"""Standardized API Response Schemas"""

import math
from typing import Generic, TypeVar, Optional, Any, Dict
from pydantic import BaseModel, Field

from app.utils.time import get_utc_now


T = TypeVar('T')


def _timestamp() -> str:
    return get_utc_now().isoformat() + "Z"


class SuccessResponse(BaseModel, Generic[T]):
    """
    Standard success response envelope.

    Example:
        {
            "success": true,
            "data": {...},
            "message": "Operation successful",
            "timestamp": "2025-10-08T09:27:32.123456Z"
        }
    """
    success: bool = True
    data: Optional[T] = None
    message: str = "Operation successful"
    timestamp: str = Field(default_factory=_timestamp)


class ErrorResponse(BaseModel):
    """
    Standard error response envelope.

    Example:
        {
            "success": false,
            "error": "NOT_FOUND",
            "message": "ไม่พบข้อมูลบิล",
            "timestamp": "..."
        }
    """
    success: bool = False
    error: str
    message: str
    details: Optional[Dict[str, Any]] = None
    timestamp: str = Field(default_factory=_timestamp)


class PaginationMeta(BaseModel):
    """Pagination metadata"""
    current_page: int = Field(..., ge=1)
    per_page: int = Field(..., ge=1)
    total: int = Field(..., ge=0)
    total_pages: int = Field(..., ge=0)
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, per_page: int, total: int) -> "PaginationMeta":
        total_pages = math.ceil(total / per_page) if per_page else 0
        return cls(
            current_page=page,
            per_page=per_page,
            total=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )


class PaginatedResponse(BaseModel, Generic[T]):
    """
    Paginated response with metadata.

    Example:
        {
            "success": true,
            "data": [...],
            "pagination": {
                "current_page": 1,
                "per_page": 10,
                "total": 50,
                "total_pages": 5,
                "has_next": true,
                "has_prev": false
            }
        }
    """
    success: bool = True
    data: list[T]
    pagination: PaginationMeta
    message: str = "Operation successful"
    timestamp: str = Field(default_factory=_timestamp)
