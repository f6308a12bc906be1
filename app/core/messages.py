"""User-facing message catalogue (Thai)

Error codes are stable English tags; the text shown to users lives here.
"""

MESSAGES = {
    # Generic
    "VALIDATION_ERROR": "ข้อมูลไม่ถูกต้อง",
    "NOT_FOUND": "ไม่พบข้อมูล",
    "STATE_PRECONDITION": "ไม่สามารถดำเนินการได้ในสถานะปัจจุบัน",
    "CONFLICT_RETRYABLE": "ระบบไม่ว่าง กรุณาลองใหม่อีกครั้ง",
    "EXTERNAL_SERVICE_ERROR": "ไม่สามารถเชื่อมต่อกับระบบภายนอกได้",
    "INTERNAL_ERROR": "เกิดข้อผิดพลาดภายในระบบ",
    "UNAUTHORIZED": "กรุณา Login เข้าสู่ระบบ",
    "TOKEN_INVALID": "Token ไม่ถูกต้อง กรุณา Login ใหม่",
    "TOKEN_EXPIRED": "Token หมดอายุ กรุณา Login ใหม่",
    "CUSTOMER_REQUIRED": "กรุณาระบุ customer_id",
    "RATE_LIMITED": "มีการเรียกใช้งานบ่อยเกินไป",

    # Bills
    "BILL_NOT_FOUND": "ไม่พบข้อมูลบิล",
    "BILL_LINE_NOT_FOUND": "ไม่พบรายการบิลนี้ในระบบ",
    "CURRENT_BILL_NOT_FOUND": "ไม่พบบิลปัจจุบัน",
    "BILL_TYPE_NOT_FOUND": "ไม่พบประเภทบิลนี้ในระบบ",
    "BILL_NOT_DRAFT": "บิลนี้ถูกส่งหรือยกเลิกไปแล้ว",
    "BILL_NOT_SENT": "บิลนี้ยังไม่ได้ส่ง",
    "BILL_STATUS_INVALID": "สถานะบิลไม่ถูกต้อง",

    # Sheet import
    "SHEET_NOT_FOUND": "ไม่พบไฟล์ Excel ที่ upload_key นี้",
    "SHEET_UNREADABLE": "ไม่สามารถอ่านไฟล์ Excel ได้ ไฟล์อาจเสียหาย",
    "SHEET_FORMAT": "ไฟล์ต้องเป็น Excel (.xlsx) หรือ CSV เท่านั้น",
    "SHEET_EMPTY": "ไฟล์ Excel ไม่มีข้อมูล",
    "SHEET_MISSING_COLUMNS": "ไฟล์ไม่มีคอลัมน์ที่จำเป็น",
    "SHEET_NO_VALID_ROWS": "ไม่มีข้อมูลที่ถูกต้องในไฟล์ Excel",
    "FILE_NOT_FOUND": "ไม่พบไฟล์บนเซิร์ฟเวอร์",

    # Payments
    "PAYMENT_NOT_FOUND": "ไม่พบข้อมูลการแจ้งชำระ",
    "PAYMENT_TYPE_NOT_FOUND": "ไม่พบวิธีการชำระเงินนี้ในระบบ",
    "PAYMENT_AMOUNT_INVALID": "จำนวนเงินที่ชำระต้องเป็นตัวเลขที่มากกว่า 0",
    "PAYABLE_TYPE_INVALID": "ประเภทรายการที่ชำระไม่ถูกต้อง",
    "SLIP_REQUIRED": "กรุณาแนบสลิป",
    "REVIEW_STATUS_INVALID": "สถานะต้องเป็น 1 (อนุมัติ) หรือ 3 (ปฏิเสธ) เท่านั้น",
    "REVIEW_REMARK_REQUIRED": "กรุณาระบุเหตุผลในการปฏิเสธ",
    "REVIEW_IDS_REQUIRED": "กรุณาระบุรายการที่ต้องการตรวจสอบ",

    # Transactions
    "TRANSACTION_NOT_FOUND": "ไม่พบรายการชำระเงิน",
    "TRANSACTION_TYPE_NOT_FOUND": "รหัสวิธีการชำระเงินไม่ถูกต้อง",
    "TRANSACTION_JSON_INVALID": "รูปแบบข้อมูล transaction_type_json ไม่ถูกต้อง (ต้องเป็น valid JSON)",
    "TRANSACTION_AMOUNT_INVALID": "จำนวนเงินต้องมากกว่า 0",

    # Attachments
    "FILE_TOO_LARGE": "ขนาดไฟล์เกินกำหนด",
    "FILE_TYPE_NOT_ALLOWED": "ไม่รองรับประเภทไฟล์นี้",
    "FILE_COUNT_EXCEEDED": "จำนวนไฟล์เกินกำหนด",

    # Dashboard
    "MONTH_DURATION_INVALID": "month_duration ต้องเป็น 3, 6 หรือ 12",

    # Portal
    "PORTAL_UNAVAILABLE": "ไม่สามารถเชื่อมต่อกับระบบ Portal ได้",
    "LOGIN_FAILED": "ชื่อผู้ใช้หรือรหัสผ่านไม่ถูกต้อง",
    "PDF_RENDER_FAILED": "ไม่สามารถสร้างไฟล์ PDF ได้",
}


def get_message(key: str, default: str = "") -> str:
    return MESSAGES.get(key, default or MESSAGES["INTERNAL_ERROR"])
