import os
import sys

import pytest

# Ensure repo root on sys.path for imports like `app...`
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

os.environ.setdefault("SUPABASE_URL", "https://example.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "dummy-key")
os.environ.setdefault("PAYPAL_CLIENT_ID", "client-id")
os.environ.setdefault("PAYPAL_SECRET_KEY", "secret")
os.environ.setdefault("SITE_URL", "https://ccpq.test")
os.environ.setdefault("BEDROCK_MODEL_ID", "anthropic.test-model")

from app.DB import supabase as supabase_module  # noqa: E402
from app.common import cache  # noqa: E402
from app.common.deps import ROLE_CAPABILITIES, CurrentUser  # noqa: E402
from app.features.payments import service as payments_service  # noqa: E402

from fakesupabase import FakeSupabase  # noqa: E402

STUDENT_ID = "user-student"
OTHER_ID = "user-other"
ADMIN_ID = "user-admin"


def seed_tables():
    return {
        "courses": [
            {"id": "C1", "title": "Project Management Fundamentals", "slug": "project-management",
             "price": 499, "is_published": True, "course_type": "short_course",
             "learning_outcomes": "• Plan projects", "who_should_take": "• Managers"},
            {"id": "C2", "title": "Diploma in Payroll", "slug": "payroll-diploma",
             "price": "1250.50", "is_published": True, "course_type": "diploma"},
            {"id": "FREE1", "title": "Workplace Safety Basics", "slug": "workplace-safety",
             "price": 0, "is_published": True, "course_type": "short_course"},
            {"id": "DRAFT1", "title": "Unreleased Course", "slug": "unreleased",
             "price": 300, "is_published": False, "course_type": "short_course"},
        ],
        "course_categories": [],
        "modules": [{"id": "M1", "course_id": "C1", "title": "Getting started", "order_index": 0}],
        "lessons": [
            {"id": "L1", "module_id": "M1", "title": "Scope", "order_index": 0},
            {"id": "L2", "module_id": "M1", "title": "Schedule", "order_index": 1},
        ],
        "quizzes": [{"id": "Q1", "module_id": "M1", "title": "Module 1 quiz", "passing_score": 70, "order_index": 0}],
        "quiz_questions": [
            {"id": "QQ1", "quiz_id": "Q1", "question": "First?", "options": ["a", "b"], "correct_answer": 0,
             "order_index": 0},
            {"id": "QQ2", "quiz_id": "Q1", "question": "Second?", "options": ["a", "b"], "correct_answer": 1,
             "order_index": 1},
        ],
        "profiles": [
            {"id": "P1", "user_id": STUDENT_ID, "full_name": "Thandi Mokoena", "created_at": "2026-01-02T00:00:00+00:00"},
            {"id": "P2", "user_id": OTHER_ID, "full_name": "Pieter Botha", "created_at": "2026-01-03T00:00:00+00:00"},
            {"id": "P3", "user_id": ADMIN_ID, "full_name": "Admin", "created_at": "2026-01-01T00:00:00+00:00"},
        ],
        "user_roles": [
            {"id": "R1", "user_id": STUDENT_ID, "role": "student"},
            {"id": "R2", "user_id": ADMIN_ID, "role": "admin"},
        ],
        "enrollments": [],
        "lesson_progress": [],
        "quiz_attempts": [],
        "pending_orders": [],
        "enrollment_reconciliations": [],
    }


class FakePayPal:
    """Records calls; answers like the Orders v2 API."""

    def __init__(self):
        self.created = []
        self.captured = []
        self.capture_status = "COMPLETED"
        self._seq = 0
        self._reference = {}

    async def create_order(self, payload, *, request_id=None):
        self._seq += 1
        order_id = f"ORDER-{self._seq}"
        self.created.append((payload, request_id))
        self._reference[order_id] = payload["purchase_units"][0]["reference_id"]
        return {
            "id": order_id,
            "status": "PAYER_ACTION_REQUIRED",
            "links": [
                {"rel": "self", "href": f"https://api.paypal.test/v2/checkout/orders/{order_id}"},
                {"rel": "payer-action", "href": f"https://www.paypal.test/checkoutnow?token={order_id}"},
            ],
        }

    async def capture_order(self, order_id, *, request_id=None):
        self.captured.append((order_id, request_id))
        return {
            "id": order_id,
            "status": self.capture_status,
            "payer": {"email_address": "buyer@example.com"},
            "purchase_units": [{"reference_id": self._reference.get(order_id, "C1")}],
        }


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def fake_db(monkeypatch):
    db = FakeSupabase(seed_tables())
    monkeypatch.setattr(supabase_module, "_client", db)
    return db


@pytest.fixture
def fake_paypal(monkeypatch):
    paypal = FakePayPal()
    monkeypatch.setattr(payments_service, "get_paypal_client", lambda: paypal)
    return paypal


@pytest.fixture
def student():
    return CurrentUser(id=STUDENT_ID, email="thandi@example.com", role="student",
                       capabilities=ROLE_CAPABILITIES["student"])


@pytest.fixture
def other_student():
    return CurrentUser(id=OTHER_ID, email="sipho@example.com", role="student",
                       capabilities=ROLE_CAPABILITIES["student"])


@pytest.fixture
def admin():
    return CurrentUser(id=ADMIN_ID, email="admin@ccpq.test", role="admin",
                       capabilities=ROLE_CAPABILITIES["admin"])
