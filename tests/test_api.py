import pytest
from fastapi.testclient import TestClient

from app.common.deps import get_current_user, get_optional_user
from app.common.errors import CaptureFailed
from app.main import app


@pytest.fixture
def client(fake_db, fake_paypal):
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def _login(user):
    app.dependency_overrides[get_current_user] = lambda: user
    app.dependency_overrides[get_optional_user] = lambda: user


def test_root_and_health(client):
    assert client.get("/").json()["status"] == "ok"
    health = client.get("/healthz").json()
    assert health["components"]["paypal"] == "configured"


def test_catalog_lists_only_published_courses(client):
    slugs = {c["slug"] for c in client.get("/courses/").json()}
    assert slugs == {"project-management", "payroll-diploma", "workplace-safety"}
    detail = client.get("/courses/project-management").json()
    assert detail["price"] == "499.00"
    missing = client.get("/courses/unreleased")
    assert missing.status_code == 404
    assert missing.json() == {"error": "Course not found"}


def test_checkout_round_trip(client, fake_db, student):
    _login(student)
    created = client.post(
        "/payments/orders",
        json={"courseId": "C1", "courseTitle": "Project Management Fundamentals", "amount": 499},
        headers={"Idempotency-Key": "checkout-1"},
    )
    assert created.status_code == 200
    body = created.json()
    assert set(body) == {"orderId", "approvalUrl", "status"}

    pending = client.get(f"/payments/orders/{body['orderId']}").json()
    assert pending["courseSlug"] == "project-management"
    assert pending["status"] == "CREATED"

    captured = client.post("/payments/capture", json={"orderId": body["orderId"], "userId": student.id})
    assert captured.status_code == 200
    assert captured.json()["status"] == "COMPLETED"
    assert captured.json()["enrollmentStatus"] == "enrolled"

    mine = client.get("/enrollments/me/C1").json()
    assert mine["enrolled"] is True


def test_price_change_is_a_bad_request(client):
    resp = client.post("/payments/orders", json={"courseId": "C1", "amount": "10.00"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Course price has changed. Please refresh and try again."


def test_capture_without_order_id(client):
    resp = client.post("/payments/capture", json={})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Missing order ID"}


def test_invalid_body_maps_to_400(client):
    resp = client.post("/payments/orders", json={"courseId": "C1", "amount": "not-a-number"})
    assert resp.status_code == 400
    assert "error" in resp.json()


def test_admin_routes_require_admin(client, student):
    _login(student)
    resp = client.get("/admin/stats")
    assert resp.status_code == 403


def test_manual_enrollment_conflict(client, admin, fake_db):
    _login(admin)
    body = {"userId": "user-student", "courseId": "C1", "paymentReceived": True}
    first = client.post("/admin/enrollments", json=body)
    assert first.status_code == 201
    second = client.post("/admin/enrollments", json=body)
    assert second.status_code == 409
    assert second.json() == {"error": "This student is already enrolled in this course"}
    assert len(fake_db.rows("enrollments")) == 1

    stats = client.get("/admin/stats").json()
    assert stats == {"total_students": 3, "published_courses": 3, "total_enrollments": 1,
                     "completed_enrollments": 0}


def test_stats_refresh_after_enrollment(client, admin):
    _login(admin)
    assert client.get("/admin/stats").json()["total_enrollments"] == 0
    client.post("/admin/enrollments", json={"userId": "user-other", "courseId": "FREE1"})
    assert client.get("/admin/stats").json()["total_enrollments"] == 1


def test_payment_link_is_returned_to_the_admin_only(client, admin, fake_db, fake_paypal):
    _login(admin)
    resp = client.post("/admin/payment-links", json={"courseId": "C2"})
    assert resp.status_code == 200
    assert resp.json()["approvalUrl"] == "https://www.paypal.test/checkoutnow?token=ORDER-1"
    course = next(r for r in fake_db.rows("courses") if r["id"] == "C2")
    assert course.get("payment_link") is None
    assert fake_db.rows("pending_orders")[0]["user_id"] is None


def test_reconciliation_endpoints(client, admin):
    _login(admin)
    assert client.get("/admin/reconciliations").json() == []
    assert client.post("/admin/reconciliations/retry").json() == {"attempted": 0, "resolved": 0, "still_open": 0}
    assert client.post("/admin/orders/expire").json() == {"expired": 0}


def test_progress_gate_over_http(client, student):
    _login(student)
    resp = client.post("/progress/lessons/L1/complete")
    assert resp.status_code == 403
    assert resp.json() == {"error": "Enroll in this course to access its lessons"}


def test_admin_course_list_includes_drafts(client, admin):
    _login(admin)
    slugs = {c["slug"] for c in client.get("/admin/courses").json()}
    assert "unreleased" in slugs


def test_store_fault_keeps_error_shape(fake_db, fake_paypal, admin):
    fake_db.fail("enrollments")
    _login(admin)
    with TestClient(app, raise_server_exceptions=False) as c:
        resp = c.post("/admin/enrollments", json={"userId": "user-student", "courseId": "FREE1"})
    app.dependency_overrides.clear()
    assert resp.status_code == 500
    assert resp.json() == {"error": "Internal server error"}


def test_provider_failure_is_a_500_with_generic_message(client, fake_paypal):
    async def _declined(order_id, *, request_id=None):
        raise CaptureFailed(provider_status=422, provider_detail="INSTRUMENT_DECLINED")

    fake_paypal.capture_order = _declined
    resp = client.post("/payments/capture", json={"orderId": "ORDER-9"})
    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to capture payment"}
