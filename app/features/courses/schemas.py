from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, field_validator

from app.common.utils import to_money


class CourseType(str, Enum):
    diploma = "diploma"
    short_course = "short_course"


class CourseCategory(BaseModel):
    id: Optional[str] = None
    name: str
    slug: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[str] = None


class Course(BaseModel):
    id: str
    title: str
    slug: str
    price: Decimal = Field(Decimal("0.00"), examples=["499.00"])
    currency: str = "ZAR"
    course_type: CourseType = CourseType.short_course
    is_published: bool = False
    description: Optional[str] = None
    short_description: Optional[str] = None
    curriculum: Optional[str] = None
    learning_outcomes: Optional[str] = None
    who_should_take: Optional[str] = None
    duration: Optional[str] = None
    image_url: Optional[str] = None
    payment_link: Optional[str] = None
    category_id: Optional[str] = None
    category: Optional[CourseCategory] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("price", mode="before")
    @classmethod
    def _coerce_price(cls, v):
        return to_money(v if v is not None else 0)

    class Config:
        from_attributes = True

    @property
    def is_free(self) -> bool:
        return self.price <= 0


class CourseContentUpdate(BaseModel):
    description: Optional[str] = None
    short_description: Optional[str] = None
    curriculum: Optional[str] = None
    learning_outcomes: Optional[str] = None
    who_should_take: Optional[str] = None
