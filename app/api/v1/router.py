"""API V1 Router"""

from fastapi import APIRouter

# Import endpoint routers
from app.api.v1.endpoints import (
    auth, bills, bill_lines, payments,
    bill_transactions, dashboard, attachments,
)

# Create API v1 router
api_router = APIRouter()

# Include endpoint routers with prefixes and tags
api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(bills.router, prefix="/bills", tags=["Bills"])
api_router.include_router(bill_lines.router, prefix="/bill_lines", tags=["Bill Lines"])
api_router.include_router(payments.router, prefix="/payments", tags=["Payments"])
api_router.include_router(bill_transactions.router, prefix="/bill_transactions", tags=["Bill Transactions"])
api_router.include_router(dashboard.router, prefix="/dashboard", tags=["Dashboard"])
api_router.include_router(attachments.router, prefix="/attachments", tags=["Attachments"])
