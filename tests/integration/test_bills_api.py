"""Integration tests for the bill and bill line endpoints"""

from datetime import timedelta
from decimal import Decimal

import pytest

from app.config import settings
from app.services import storage_service
from app.utils.time import local_today
from factories import CUSTOMER_ID, seed_bill, seed_line, seed_reference_data, seed_slip


@pytest.fixture
async def reference_data(session_factory):
    async with session_factory() as session:
        await seed_reference_data(session)
        await session.commit()


async def _create_bill(client, auth_headers, **overrides):
    payload = {
        "customer_id": CUSTOMER_ID,
        "title": "ค่าส่วนกลาง ต.ค.",
        "detail": "ประจำเดือนตุลาคม",
        "bill_type_id": 1,
        "expire_date": str(local_today() + timedelta(days=15)),
        **overrides,
    }
    response = await client.post("/bills", json=payload, headers=auth_headers)
    assert response.status_code == 200, response.text
    return response.json()["data"]


async def test_bill_lifecycle(client, auth_headers, reference_data, dispatch_mock):
    bill = await _create_bill(client, auth_headers)
    assert bill["status"] == 0
    assert bill["bill_no"].startswith("BILL-")
    assert bill["create_by"] == "42"

    response = await client.post(
        "/bill_lines",
        json={"customer_id": CUSTOMER_ID, "bill_id": bill["id"], "house_no": "99/1", "member_name": "สมชาย", "total_price": "1500.00"},
        headers=auth_headers,
    )
    assert response.status_code == 200, response.text
    line = response.json()["data"]
    assert line["bill_no"].startswith("INV-")
    dispatch_mock.assert_not_awaited()

    response = await client.post(f"/bills/{bill['id']}/send", json={"customer_id": CUSTOMER_ID}, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["data"]["status"] == 1
    dispatch_mock.assert_awaited_once_with(CUSTOMER_ID)

    response = await client.post(f"/bills/{bill['id']}/send", json={"customer_id": CUSTOMER_ID}, headers=auth_headers)
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "STATE_PRECONDITION"
    assert body["details"]["current_status"] == 1

    response = await client.post(
        f"/bills/{bill['id']}/cancel_send", json={"customer_id": CUSTOMER_ID}, headers=auth_headers
    )
    assert response.status_code == 200
    assert response.json()["data"]["status"] == 3
    assert response.json()["data"]["send_date"] is None

    response = await client.get(f"/bills/{bill['id']}", params={"customer_id": CUSTOMER_ID}, headers=auth_headers)
    detail = response.json()["data"]
    assert [a["status"] for a in detail["audit"]] == [0, 1, 3]
    assert detail["room_count"] == 1
    assert detail["bill_type_title"] == "ค่าส่วนกลาง"

    response = await client.delete(f"/bills/{bill['id']}", params={"customer_id": CUSTOMER_ID}, headers=auth_headers)
    assert response.status_code == 200
    response = await client.get(f"/bills/{bill['id']}", params={"customer_id": CUSTOMER_ID}, headers=auth_headers)
    assert response.status_code == 404
    assert response.json()["error"] == "NOT_FOUND"


async def test_list_bills_paginates(client, auth_headers, reference_data):
    for _ in range(3):
        await _create_bill(client, auth_headers)
    response = await client.get(
        "/bills", params={"customer_id": CUSTOMER_ID, "page": 1, "per_page": 2}, headers=auth_headers
    )
    assert response.status_code == 200
    body = response.json()
    assert len(body["data"]) == 2
    assert body["pagination"]["total"] == 3
    assert body["pagination"]["total_pages"] == 2
    assert body["pagination"]["has_next"] is True


async def test_list_requires_customer(client, auth_headers):
    response = await client.get("/bills", headers=auth_headers)
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "VALIDATION_ERROR"
    assert body["details"]["fields"] == ["customer_id"]


async def test_create_bill_validation_envelope(client, auth_headers):
    response = await client.post(
        "/bills", json={"customer_id": CUSTOMER_ID, "expire_date": "not-a-date"}, headers=auth_headers
    )
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "VALIDATION_ERROR"
    assert set(body["details"]["fields"]) == {"title", "expire_date"}


async def test_bills_require_auth(client):
    response = await client.get("/bills", params={"customer_id": CUSTOMER_ID})
    assert response.status_code == 401


async def test_bill_types(client, auth_headers, reference_data):
    response = await client.get("/bills/types", headers=auth_headers)
    assert [t["title"] for t in response.json()["data"]] == ["ค่าส่วนกลาง", "ค่าน้ำ"]


async def test_sheet_preview_and_commit(client, auth_headers, session_factory, tmp_path, monkeypatch, dispatch_mock):
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path))
    content = "เลขที่ห้อง,ชื่อลูกบ้าน,ยอดเงิน\n1/1,ก,100\n1/2,ข,abc\n1/3,ค,300\n".encode("utf-8")
    async with session_factory() as session:
        sheet = await seed_slip(session, menu="bill", file_name="sheet.csv")
        await session.commit()
    await storage_service.save(sheet.file_path, content)

    response = await client.post(
        "/bills/sheet/preview",
        json={"customer_id": CUSTOMER_ID, "upload_key": sheet.upload_key},
        headers=auth_headers,
    )
    assert response.status_code == 200
    summary = response.json()["data"]["summary"]
    assert (summary["total_rows"], summary["valid_rows"], summary["invalid_rows"]) == (3, 2, 1)

    response = await client.post(
        "/bills/sheet/commit",
        json={
            "customer_id": CUSTOMER_ID,
            "upload_key": sheet.upload_key,
            "title": "ค่าน้ำ",
            "expire_date": str(local_today()),
            "status": 1,
        },
        headers=auth_headers,
    )
    assert response.status_code == 200, response.text
    outcome = response.json()["data"]
    assert outcome["inserted"] == 2
    assert outcome["skipped_invalid"] == 1
    dispatch_mock.assert_awaited_once_with(CUSTOMER_ID)

    response = await client.get(f"/bills/{outcome['bill_id']}/lines", params={"customer_id": CUSTOMER_ID}, headers=auth_headers)
    assert [l["house_no"] for l in response.json()["data"]] == ["1/1", "1/3"]


async def test_resident_views(client, auth_headers, session_factory):
    async with session_factory() as session:
        bill = await seed_bill(session, expire_date=local_today() - timedelta(days=1))
        line = await seed_line(session, bill, house_no="100/10", total_price="1200.00")
        await session.commit()

    params = {"customer_id": CUSTOMER_ID, "house_no": "100-10"}
    response = await client.get("/bill_lines/current", params=params, headers=auth_headers)
    current = response.json()["data"]
    assert current["id"] == line.id
    assert current["overdue"] is True
    assert current["status_formatted"]["text"] == "เกินกำหนด"

    response = await client.get("/bill_lines/arrears", params=params, headers=auth_headers)
    assert Decimal(str(response.json()["data"]["outstanding_amount"])) == Decimal("1200.00")

    response = await client.get("/bill_lines/app", params={**params, "status": "0"}, headers=auth_headers)
    assert response.json()["pagination"]["total"] == 1

    response = await client.get(
        "/bill_lines/current", params={"customer_id": CUSTOMER_ID, "house_no": "1/404"}, headers=auth_headers
    )
    assert response.status_code == 200
    assert response.json()["data"] is None


async def test_pdf_requires_renderer(client, auth_headers, session_factory):
    async with session_factory() as session:
        line = await seed_line(session, await seed_bill(session))
        await session.commit()
    response = await client.get(f"/bill_lines/{line.id}/pdf", params={"customer_id": CUSTOMER_ID}, headers=auth_headers)
    assert response.status_code == 502
    assert response.json()["error"] == "EXTERNAL_SERVICE_ERROR"
