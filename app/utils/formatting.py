"""Display helpers: prices, Thai dates and bill status badges"""

from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_EVEN
from typing import Any, Dict, Optional, Union

from app.utils.time import to_local

THAI_MONTHS = [
    "มกราคม", "กุมภาพันธ์", "มีนาคม", "เมษายน", "พฤษภาคม", "มิถุนายน",
    "กรกฎาคม", "สิงหาคม", "กันยายน", "ตุลาคม", "พฤศจิกายน", "ธันวาคม",
]

THAI_MONTHS_SHORT = [
    "ม.ค.", "ก.พ.", "มี.ค.", "เม.ย.", "พ.ค.", "มิ.ย.",
    "ก.ค.", "ส.ค.", "ก.ย.", "ต.ค.", "พ.ย.", "ธ.ค.",
]

BUDDHIST_ERA_OFFSET = 543

CENT = Decimal("0.01")

STATUS_BADGES: Dict[int, Dict[str, Any]] = {
    0: {"id": 0, "text": "รอชำระ", "text_color": "#D27500", "background_color": "#FFECD5"},
    1: {"id": 1, "text": "ชำระแล้ว", "text_color": "#0F7D3E", "background_color": "#D5F5E3"},
    3: {"id": 3, "text": "เกินกำหนด", "text_color": "#C0392B", "background_color": "#FADBD8"},
    4: {"id": 4, "text": "ชำระบางส่วน", "text_color": "#8E44AD", "background_color": "#EBDEF0"},
    5: {"id": 5, "text": "รอตรวจสอบ", "text_color": "#0075FF", "background_color": "#DAEBFF"},
}

UNKNOWN_BADGE = {"text": "ไม่ทราบสถานะ", "text_color": "#000000", "background_color": "#FFFFFF"}

Number = Union[Decimal, int, float, str]


def to_money(value: Optional[Number]) -> Decimal:
    """Quantize to two places with banker's rounding"""
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_EVEN)


def format_number(value: Optional[Number]) -> str:
    amount = to_money(value)
    if amount == amount.to_integral_value():
        return f"{int(amount):,}"
    return f"{amount:,.2f}"


def format_price(value: Optional[Number]) -> str:
    """฿1,500 for whole amounts, ฿1,200.06 otherwise"""
    return f"฿{format_number(value)}"


def format_thai_date(value: Optional[Union[date, datetime]], short: bool = False) -> Optional[str]:
    """d MMMM BBBB with the Buddhist-era year; datetimes are shown in local time"""
    if value is None:
        return None
    if isinstance(value, datetime):
        value = to_local(value)
    months = THAI_MONTHS_SHORT if short else THAI_MONTHS
    return f"{value.day} {months[value.month - 1]} {value.year + BUDDHIST_ERA_OFFSET}"


def format_thai_datetime(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    local = to_local(value)
    return f"{format_thai_date(local)} {local:%H:%M:%S}"


def format_ddmmyyyy(value: Optional[date]) -> Optional[str]:
    if value is None:
        return None
    return f"{value:%d/%m/%Y}"


def thai_month_label(value: date) -> str:
    """Short month with two-digit Buddhist year, e.g. 'ต.ค. 68'"""
    return f"{THAI_MONTHS_SHORT[value.month - 1]} {(value.year + BUDDHIST_ERA_OFFSET) % 100:02d}"


def status_badge(status: int, overdue: bool = False) -> Dict[str, Any]:
    """Presentation object for a bill line; overdue lines present as status 3"""
    if overdue:
        return dict(STATUS_BADGES[3])
    badge = STATUS_BADGES.get(status)
    if badge is None:
        return {"id": status, **UNKNOWN_BADGE}
    return dict(badge)


def remain_date_text(expire_date: Optional[date], today: date) -> Optional[str]:
    if expire_date is None:
        return None
    diff = (expire_date - today).days
    if diff > 0:
        return f"เหลือ {diff} วัน"
    if diff == 0:
        return "วันนี้"
    return f"เกิน {abs(diff)} วัน"
