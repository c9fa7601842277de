from __future__ import annotations
from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from app.features.courses.schemas import Course


class EnrollmentSource(str, Enum):
    payment = "payment"
    admin = "admin"
    free = "free"


class Enrollment(BaseModel):
    id: Optional[str] = None
    user_id: str
    course_id: str
    enrolled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    source: Optional[EnrollmentSource] = None
    order_id: Optional[str] = None

    class Config:
        from_attributes = True


class EnrollmentWithCourse(Enrollment):
    course: Optional[Course] = None


class EnrollmentAdminView(Enrollment):
    course: Optional[dict] = None
    profile: Optional[dict] = None


class ManualEnrollmentRequest(BaseModel):
    """Admin override: enroll a student without a captured payment."""
    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[str] = Field(None, alias="userId")
    course_id: Optional[str] = Field(None, alias="courseId")
    payment_received: bool = Field(False, alias="paymentReceived")


class EnrollmentStatus(BaseModel):
    course_id: str
    enrolled: bool
    enrollment: Optional[Enrollment] = None
