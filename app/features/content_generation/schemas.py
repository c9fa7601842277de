from __future__ import annotations
from typing import List, Optional
from pydantic import BaseModel, Field


class BulkGenerateRequest(BaseModel):
    limit: Optional[int] = Field(None, ge=1, examples=[50])


class BulkGenerateResult(BaseModel):
    message: str
    processed: int = 0
    updated: int = 0
    failed: int = 0
    errors: List[str] = []
    remaining: int = 0


class GeneratedContent(BaseModel):
    description: str
    short_description: str
    curriculum: str
    learning_outcomes: str
    who_should_take: str
