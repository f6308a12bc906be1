"""Unit tests for bill sheet parsing, preview and commit."""

import io
from decimal import Decimal

import openpyxl
import pytest
from sqlalchemy import func, select

from app.config import settings
from app.core.errors import NotFoundError, ValidationError
from app.models.billing import Bill, BillAudit, BillLine
from app.models.notification import NotificationAudit
from app.schemas.billing import BillSheetCommit
from app.services import storage_service
from app.services.sheet_import_service import SheetImportService, parse_amount, parse_sheet, summarize
from app.utils.time import local_today
from factories import CUSTOMER_ID, seed_slip

SHEET_CSV = (
    "เลขที่ห้อง,ชื่อลูกบ้าน,ยอดเงิน,หมายเหตุ\n"
    "99/1,สมชาย,1500,\n"
    "99/2,สมหญิง,\"1,200.50\",ชั้น 2\n"
    "99/3,สมศักดิ์,abc,\n"
    "99/4,สมปอง,800,\n"
    "99/5,สมใจ,950.25,\n"
).encode("utf-8")


def _xlsx(rows) -> bytes:
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def test_parse_amount_variants():
    assert parse_amount("1,200.50") == Decimal("1200.50")
    assert parse_amount("฿ 300") == Decimal("300.00")
    assert parse_amount(1500) == Decimal("1500.00")
    assert parse_amount(99.999) == Decimal("100.00")


@pytest.mark.parametrize("value", ["abc", "", None, "-5", True, "NaN"])
def test_parse_amount_rejects(value):
    with pytest.raises(ValueError):
        parse_amount(value)


def test_parse_csv_marks_invalid_rows():
    rows = parse_sheet(SHEET_CSV, "csv")
    assert [r.row_number for r in rows] == [2, 3, 4, 5, 6]
    bad = rows[2]
    assert not bad.valid
    assert bad.error == "ยอดเงินต้องเป็นตัวเลข"
    assert rows[1].total_price == Decimal("1200.50")
    assert rows[1].remark == "ชั้น 2"

    summary = summarize(rows)
    assert summary["total_rows"] == 5
    assert summary["valid_rows"] == 4
    assert summary["invalid_rows"] == 1
    assert summary["total_amount"] == Decimal("4450.75")


def test_parse_xlsx_with_english_headers():
    content = _xlsx(
        [
            ["House No", "Name", "Amount"],
            ["10/1", "Alice", 1000],
            [None, None, None],
            ["10/2", "", 500],
        ]
    )
    rows = parse_sheet(content, "xlsx")
    assert [r.row_number for r in rows] == [2, 4]
    assert rows[0].valid and rows[0].total_price == Decimal("1000.00")
    assert rows[1].error == "ไม่มีชื่อลูกบ้าน"


def test_parse_sheet_missing_columns():
    with pytest.raises(ValidationError) as exc_info:
        parse_sheet("เลขที่ห้อง,ยอดเงิน\n1/1,100\n".encode("utf-8"), "csv")
    assert exc_info.value.message_key == "SHEET_MISSING_COLUMNS"
    assert exc_info.value.details["missing_columns"] == ["ชื่อลูกบ้าน"]


def test_parse_sheet_rejects_other_formats():
    with pytest.raises(ValidationError) as exc_info:
        parse_sheet(b"%PDF-1.4", "pdf")
    assert exc_info.value.message_key == "SHEET_FORMAT"


def test_parse_sheet_unreadable_workbook():
    with pytest.raises(ValidationError) as exc_info:
        parse_sheet(b"not a zip", "xlsx")
    assert exc_info.value.message_key == "SHEET_UNREADABLE"


def test_parse_sheet_header_only():
    with pytest.raises(ValidationError) as exc_info:
        parse_sheet("เลขที่ห้อง,ชื่อลูกบ้าน,ยอดเงิน\n".encode("utf-8"), "csv")
    assert exc_info.value.message_key == "SHEET_EMPTY"


@pytest.fixture
async def stored_sheet(db, tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "UPLOAD_BACKEND", "project")
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path))
    attachment = await seed_slip(db, menu="bill", file_name="bills.csv", file_path="bill/sheet/bills.csv")
    await storage_service.save(attachment.file_path, SHEET_CSV, "text/csv")
    return attachment


async def test_preview_writes_nothing(db, stored_sheet):
    preview = await SheetImportService.preview(db, stored_sheet.upload_key)
    assert preview["summary"]["valid_rows"] == 4
    assert preview["rows"][2]["status"] == "invalid"
    assert await db.scalar(select(func.count(Bill.id))) == 0


async def test_preview_unknown_upload_key(db):
    with pytest.raises(NotFoundError):
        await SheetImportService.preview(db, "missing-key")


async def test_commit_partial_selection(db, stored_sheet):
    data = BillSheetCommit(
        customer_id=CUSTOMER_ID,
        upload_key=stored_sheet.upload_key,
        title="ค่าส่วนกลาง",
        expire_date=local_today(),
        status=1,
        excluded_rows=[2],
    )
    outcome = await SheetImportService.commit(db, data, "42")

    today = local_today()
    stamp = f"{today:%Y}-{today:%m%d}"
    assert outcome["inserted"] == 3
    assert outcome["excluded"] == 1
    assert outcome["skipped_invalid"] == 1
    assert outcome["notifications"] == 3
    assert outcome["bill_no"] == f"BILL-{stamp}-000"

    bill = (await db.execute(select(Bill))).scalar_one()
    assert bill.status == 1
    assert bill.send_date is not None

    lines = (await db.execute(select(BillLine).order_by(BillLine.id))).scalars().all()
    assert [l.house_no for l in lines] == ["99/2", "99/4", "99/5"]
    assert [l.bill_no for l in lines] == [f"INV-{stamp}-000", f"INV-{stamp}-001", f"INV-{stamp}-002"]
    assert all(l.status == 0 for l in lines)

    audits = (await db.execute(select(BillAudit.status))).scalars().all()
    assert audits == [1]
    assert await db.scalar(select(func.count(NotificationAudit.id))) == 3


async def test_commit_draft_does_not_notify(db, stored_sheet):
    data = BillSheetCommit(
        customer_id=CUSTOMER_ID,
        upload_key=stored_sheet.upload_key,
        title="ค่าน้ำ",
        expire_date=local_today(),
        status=0,
        excluded_rows="2,3",
    )
    outcome = await SheetImportService.commit(db, data, "42")
    assert outcome["inserted"] == 2
    assert outcome["notifications"] == 0
    assert (await db.execute(select(Bill.send_date))).scalar_one() is None


async def test_commit_with_nothing_selected(db, stored_sheet):
    data = BillSheetCommit(
        customer_id=CUSTOMER_ID,
        upload_key=stored_sheet.upload_key,
        title="ค่าน้ำ",
        expire_date=local_today(),
        excluded_rows=[2, 3, 5, 6],
    )
    with pytest.raises(ValidationError) as exc_info:
        await SheetImportService.commit(db, data, "42")
    assert exc_info.value.message_key == "SHEET_NO_VALID_ROWS"
    assert await db.scalar(select(func.count(Bill.id))) == 0
