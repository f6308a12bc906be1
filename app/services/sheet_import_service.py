"""Bill Sheet Import Service - preview and commit of bulk bill spreadsheets

Sheets carry one row per unit with the columns เลขที่ห้อง (unit number),
ชื่อลูกบ้าน (member name) and ยอดเงิน (amount), plus an optional หมายเหตุ
(remark). Row numbers follow the sheet: the header is row 1.
"""

import asyncio
import csv
import io
import re
import zipfile
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError, ValidationError
from app.core.logging import get_logger
from app.models.billing import Bill, BillLine
from app.models.enums import BillLineStatus, BillStatus
from app.schemas.billing import BillSheetCommit
from app.services import storage_service
from app.services.attachment_service import AttachmentService
from app.services.bill_service import BillService
from app.services.identifier_service import LINE_PREFIX, IdentifierService
from app.services.notification_service import NotificationService
from app.utils.formatting import format_price, to_money
from app.utils.parsing import parse_id_list

logger = get_logger(__name__)

REQUIRED_COLUMNS = ("house_no", "member_name", "total_price")

# Canonical field -> accepted header spellings (compared after normalization)
HEADER_ALIASES = {
    "house_no": ("เลขที่ห้อง", "บ้านเลขที่", "house_no", "house no", "unit", "room"),
    "member_name": ("ชื่อลูกบ้าน", "ชื่อ", "member_name", "member name", "name"),
    "total_price": ("ยอดเงิน", "จำนวนเงิน", "amount", "total_price", "total price"),
    "remark": ("หมายเหตุ", "remark", "note"),
}

DISPLAY_HEADERS = {
    "house_no": "เลขที่ห้อง",
    "member_name": "ชื่อลูกบ้าน",
    "total_price": "ยอดเงิน",
}

SPREADSHEET_EXTENSIONS = {"xlsx", "xlsm"}
TEXT_EXTENSIONS = {"csv", "txt"}

MAX_AMOUNT = Decimal("9999999999.99")

_WS_RE = re.compile(r"\s+")


def _normalize_header(value: Any) -> str:
    if value is None:
        return ""
    return _WS_RE.sub(" ", str(value).replace("\ufeff", "")).strip().lower()


_ALIAS_LOOKUP = {
    _normalize_header(alias): field
    for field, aliases in HEADER_ALIASES.items()
    for alias in aliases
}


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def parse_amount(value: Any) -> Decimal:
    """
    Parse a sheet amount into a two-place Decimal.

    Raises:
        ValueError: not a finite, non-negative number
    """
    if value is None or value == "":
        raise ValueError("ไม่มียอดเงิน")
    if isinstance(value, bool):
        raise ValueError("ยอดเงินต้องเป็นตัวเลข")
    if isinstance(value, (int, float, Decimal)):
        text = str(value)
    else:
        text = str(value).strip().replace(",", "").replace("฿", "").replace(" ", "")
    try:
        amount = Decimal(text)
    except InvalidOperation:
        raise ValueError("ยอดเงินต้องเป็นตัวเลข")
    if not amount.is_finite():
        raise ValueError("ยอดเงินต้องเป็นตัวเลข")
    if amount < 0:
        raise ValueError("ยอดเงินต้องไม่ติดลบ")
    amount = to_money(amount)
    if amount > MAX_AMOUNT:
        raise ValueError("ยอดเงินเกินกำหนด")
    return amount


@dataclass
class SheetRow:
    row_number: int
    house_no: str
    member_name: str
    total_price: Optional[Decimal]
    remark: Optional[str]
    error: Optional[str] = None

    @property
    def valid(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "row_number": self.row_number,
            "house_no": self.house_no,
            "member_name": self.member_name,
            "total_price": self.total_price,
            "total_price_formatted": format_price(self.total_price) if self.total_price is not None else None,
            "remark": self.remark,
            "status": "valid" if self.valid else "invalid",
            "error": self.error,
        }


def _map_headers(headers: List[Any]) -> Dict[str, int]:
    mapping: Dict[str, int] = {}
    for index, header in enumerate(headers):
        field = _ALIAS_LOOKUP.get(_normalize_header(header))
        if field and field not in mapping:
            mapping[field] = index
    missing = [DISPLAY_HEADERS[f] for f in REQUIRED_COLUMNS if f not in mapping]
    if missing:
        raise ValidationError(
            f"ไฟล์ต้องมีคอลัมน์: {', '.join(missing)}",
            message_key="SHEET_MISSING_COLUMNS",
            details={"missing_columns": missing},
        )
    return mapping


def _read_xlsx(content: bytes) -> List[Tuple[int, List[Any]]]:
    try:
        workbook = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, ValueError, OSError) as e:
        logger.warning("Unreadable workbook", extra={"error": str(e)})
        raise ValidationError(message_key="SHEET_UNREADABLE")
    try:
        sheet = workbook.worksheets[0]
        return [
            (row_number, list(values))
            for row_number, values in enumerate(sheet.iter_rows(values_only=True), start=1)
        ]
    finally:
        workbook.close()


def _read_delimited(content: bytes) -> List[Tuple[int, List[Any]]]:
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise ValidationError("Invalid file encoding. Use UTF-8.", message_key="SHEET_UNREADABLE")
    reader = csv.reader(io.StringIO(text))
    return [(reader.line_num, row) for row in reader]


def parse_sheet(content: bytes, file_ext: str) -> List[SheetRow]:
    """Read the first sheet (or delimited text) and validate every data row"""
    ext = (file_ext or "").lower().lstrip(".")
    if ext in SPREADSHEET_EXTENSIONS:
        raw_rows = _read_xlsx(content)
    elif ext in TEXT_EXTENSIONS:
        raw_rows = _read_delimited(content)
    else:
        raise ValidationError(message_key="SHEET_FORMAT", details={"file_ext": ext})

    raw_rows = [(n, values) for n, values in raw_rows if any(_cell_text(v) for v in values)]
    if not raw_rows:
        raise ValidationError(message_key="SHEET_EMPTY")

    _, header_values = raw_rows[0]
    mapping = _map_headers(header_values)

    def cell(values: List[Any], field: str) -> Any:
        index = mapping.get(field)
        if index is None or index >= len(values):
            return None
        return values[index]

    rows: List[SheetRow] = []
    for row_number, values in raw_rows[1:]:
        house_no = _cell_text(cell(values, "house_no"))
        member_name = _cell_text(cell(values, "member_name"))
        remark = _cell_text(cell(values, "remark")) or None
        amount: Optional[Decimal] = None
        error: Optional[str] = None
        try:
            amount = parse_amount(cell(values, "total_price"))
        except ValueError as e:
            error = str(e)
        if not member_name:
            error = "ไม่มีชื่อลูกบ้าน"
        if not house_no:
            error = "ไม่มีเลขที่ห้อง"
        rows.append(SheetRow(row_number, house_no, member_name, amount, remark, error))

    if not rows:
        raise ValidationError(message_key="SHEET_EMPTY")
    return rows


def summarize(rows: List[SheetRow]) -> Dict[str, Any]:
    valid = [r for r in rows if r.valid]
    total = sum((r.total_price for r in valid), Decimal("0.00"))
    return {
        "total_rows": len(rows),
        "valid_rows": len(valid),
        "invalid_rows": len(rows) - len(valid),
        "total_amount": to_money(total),
        "total_amount_formatted": format_price(total),
    }


class SheetImportService:
    @staticmethod
    async def load_rows(db: AsyncSession, upload_key: str) -> List[SheetRow]:
        attachment = await AttachmentService.latest_valid(db, upload_key.strip())
        if attachment is None:
            raise NotFoundError("attachment", upload_key, message_key="SHEET_NOT_FOUND")
        content = await storage_service.read(attachment.file_path)
        ext = attachment.file_ext or attachment.file_name.rsplit(".", 1)[-1]
        return await asyncio.to_thread(parse_sheet, content, ext)

    @staticmethod
    async def preview(db: AsyncSession, upload_key: str) -> Dict[str, Any]:
        """Parse and validate without writing anything"""
        rows = await SheetImportService.load_rows(db, upload_key)
        return {
            "upload_key": upload_key,
            "rows": [r.to_dict() for r in rows],
            "summary": summarize(rows),
        }

    @staticmethod
    async def commit(db: AsyncSession, data: BillSheetCommit, actor: str) -> Dict[str, Any]:
        """
        Create one bill and a line per selected valid row, atomically.
        The sheet is parsed again; preview results are not trusted.
        """
        try:
            excluded = set(parse_id_list(data.excluded_rows))
        except ValueError:
            raise ValidationError(fields=["excluded_rows"])

        rows = await SheetImportService.load_rows(db, data.upload_key)
        skipped_invalid = [r for r in rows if not r.valid and r.row_number not in excluded]
        excluded_rows = [r for r in rows if r.row_number in excluded]
        selected = [r for r in rows if r.valid and r.row_number not in excluded]
        if not selected:
            raise ValidationError(message_key="SHEET_NO_VALID_ROWS")

        await BillService.ensure_bill_type(db, data.bill_type_id)

        async def _insert(resync: bool) -> Tuple[Bill, List[BillLine]]:
            bill = await BillService.insert_bill(db, data, actor, resync=resync)
            numbers = await IdentifierService.allocate_many(
                db, LINE_PREFIX, data.customer_id, len(selected), resync=resync
            )
            lines = [
                BillLine(
                    customer_id=data.customer_id,
                    bill_id=bill.id,
                    bill_no=number,
                    house_no=row.house_no,
                    member_name=row.member_name,
                    total_price=row.total_price,
                    remark=row.remark,
                    status=BillLineStatus.UNPAID,
                    create_by=actor,
                )
                for row, number in zip(selected, numbers)
            ]
            db.add_all(lines)
            await db.flush()
            return bill, lines

        bill, lines = await IdentifierService.with_retry(db, _insert, "bill sheet")
        await BillService.append_audit(db, bill, actor)
        notified = 0
        if bill.status == BillStatus.SENT:
            notified = await NotificationService.record_for_lines(db, bill, lines, actor)
        await db.flush()

        logger.info(
            "Bill sheet committed",
            extra={
                "bill_id": bill.id,
                "bill_no": bill.bill_no,
                "customer_id": data.customer_id,
                "inserted": len(lines),
                "excluded": len(excluded_rows),
                "skipped_invalid": len(skipped_invalid),
            },
        )
        return {
            "bill_id": bill.id,
            "bill_no": bill.bill_no,
            "status": bill.status,
            "inserted": len(lines),
            "excluded": len(excluded_rows),
            "skipped_invalid": len(skipped_invalid),
            "notifications": notified,
        }
