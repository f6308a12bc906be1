"""Invoice PDFs, rendered by an external HTML-to-PDF service"""

from typing import Any, Dict

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.errors import ExternalServiceError
from app.core.logging import get_logger
from app.services.bill_line_service import BillLineService
from app.utils.formatting import format_price, format_thai_date

logger = get_logger(__name__)

INVOICE_TEMPLATE = "bill_room_invoice"


def invoice_document(detail: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten a bill line detail into the renderer's template variables"""
    summary = detail["summary"]
    return {
        "template": INVOICE_TEMPLATE,
        "filename": f"{detail['bill_no']}.pdf",
        "data": {
            "bill_no": detail["bill_no"],
            "house_no": detail["house_no"],
            "member_name": detail.get("member_name") or "",
            "bill_title": detail.get("bill_title") or "",
            "bill_detail": detail.get("bill_detail") or "",
            "bill_type": detail.get("bill_type") or "",
            "expire_date": format_thai_date(detail.get("expire_date")),
            "status_text": detail["status_formatted"]["text"],
            "total_price": format_price(summary["total_price"]),
            "total_paid": format_price(summary["total_paid"]),
            "remaining_amount": format_price(max(summary["remaining_amount"], 0)),
            "transactions": [
                {
                    "pay_date": t["pay_date_formatted"],
                    "title": t["transaction_type_title"] or "",
                    "amount": t["transaction_amount_formatted"],
                    "type": t["transaction_type"],
                }
                for t in detail["transactions"]
            ],
        },
    }


async def render_invoice(db: AsyncSession, customer_id: str, line_id: int) -> Dict[str, Any]:
    """
    Render one bill line as a PDF. Returns ``{"filename", "content"}``.

    Raises:
        NotFoundError: line absent
        ExternalServiceError: renderer unconfigured or failing
    """
    detail = await BillLineService.detail(db, customer_id, line_id)
    document = invoice_document(detail)

    if not settings.PDF_RENDER_URL:
        raise ExternalServiceError("pdf_renderer", message_key="PDF_RENDER_FAILED", reason="not configured")

    try:
        async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS) as client:
            response = await client.post(settings.PDF_RENDER_URL, json=document)
            response.raise_for_status()
    except httpx.HTTPError as e:
        logger.error("Invoice rendering failed", extra={"bill_room_id": line_id, "error": str(e)})
        raise ExternalServiceError("pdf_renderer", message_key="PDF_RENDER_FAILED", reason=str(e))

    logger.info("Invoice rendered", extra={"bill_room_id": line_id, "size": len(response.content)})
    return {"filename": document["filename"], "content": response.content}
