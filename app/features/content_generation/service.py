from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List

from jsonschema import ValidationError, validate

from app.adapters.text_generation import TextGenerationError, generate_json
from app.core.config import get_settings
from app.common.errors import NotFoundError
from app.features.courses.repository import course_repository
from app.features.courses.schemas import Course, CourseContentUpdate
from app.features.courses.service import get_course, update_course_content
from .schemas import BulkGenerateResult, GeneratedContent

logger = logging.getLogger("content.service")

DEFAULT_BULK_LIMIT = 50
MAX_BULK_LIMIT = 100
MAX_REPORTED_ERRORS = 10

CONTENT_SCHEMA = {
    "type": "object",
    "required": ["description", "short_description", "curriculum", "learning_outcomes", "who_should_take"],
    "properties": {
        "description": {"type": "string", "minLength": 1},
        "short_description": {"type": "string", "minLength": 1},
        "curriculum": {"type": "string", "minLength": 1},
        "learning_outcomes": {"type": "string", "minLength": 1},
        "who_should_take": {"type": "string", "minLength": 1},
    },
}

SYSTEM_PROMPT = (
    "You are an expert course content writer for CCPQ (Centre for Continuous Professional "
    "Qualifications), a professional training institution in South Africa.\n"
    "Use plain text with line breaks, NOT markdown. For lists use bullet points with a \"• \" prefix. "
    "Keep the tone professional and career oriented. Return ONLY valid JSON."
)


def build_prompt(title: str, existing: Dict[str, Any]) -> str:
    lines = [f'Generate complete course content for: "{title}"', ""]
    if existing.get("description"):
        lines.append(f"Existing description (improve if needed): {existing['description']}")
    if existing.get("curriculum"):
        lines.append(f"Existing curriculum (improve if needed): {existing['curriculum']}")
    if existing.get("duration"):
        lines.append(f"Course duration: {existing['duration']}")
    lines += [
        "",
        "Return JSON:",
        "{",
        '  "description": "150-250 word professional description",',
        '  "short_description": "1-2 sentence summary, max 150 characters",',
        '  "curriculum": "4-6 modules with 3-5 bullet points each",',
        '  "learning_outcomes": "5-8 specific, measurable outcomes as bullet points",',
        '  "who_should_take": "4-6 target audiences as bullet points"',
        "}",
    ]
    return "\n".join(lines)


async def generate_content(title: str, existing: Dict[str, Any]) -> GeneratedContent:
    reply = await generate_json(SYSTEM_PROMPT, build_prompt(title, existing))
    try:
        validate(instance=reply, schema=CONTENT_SCHEMA)
    except ValidationError as e:
        raise TextGenerationError(f"Generated content has the wrong shape: {e.message}") from e
    return GeneratedContent(**{k: reply[k] for k in CONTENT_SCHEMA["required"]})


async def generate_for_course(course_id: str) -> Course:
    course = await get_course(course_id)
    if course is None:
        raise NotFoundError("Course not found")
    content = await generate_content(course.title, course.model_dump())
    logger.info("content.generated course_id=%s", course_id)
    return await update_course_content(course_id, CourseContentUpdate(**content.model_dump()))


async def _process_one(row: Dict[str, Any]) -> None:
    logger.info("content.generating title=%s", row.get("title"))
    content = await generate_content(row["title"], row)
    await update_course_content(row["id"], CourseContentUpdate(**content.model_dump()))


async def bulk_generate(limit: int | None = None) -> BulkGenerateResult:
    """Fill in missing content for published courses, a fixed-size batch at a time."""
    limit = min(limit or DEFAULT_BULK_LIMIT, MAX_BULK_LIMIT)
    courses: List[Dict[str, Any]] = await course_repository.list_missing_content(limit)
    if not courses:
        return BulkGenerateResult(message="All courses have content!", processed=0)

    remaining = await course_repository.count_missing_content()
    result = BulkGenerateResult(message="Batch complete", remaining=remaining)
    batch_size = get_settings().content_batch_size

    for start in range(0, len(courses), batch_size):
        batch = courses[start:start + batch_size]
        # Each batch settles fully before the next one starts.
        outcomes = await asyncio.gather(*(_process_one(c) for c in batch), return_exceptions=True)
        for course, outcome in zip(batch, outcomes):
            result.processed += 1
            if isinstance(outcome, BaseException):
                result.failed += 1
                logger.error("content.failed title=%s err=%s", course.get("title"), outcome)
                if len(result.errors) < MAX_REPORTED_ERRORS:
                    result.errors.append(f"{course.get('title')}: {outcome}")
            else:
                result.updated += 1

    result.remaining = max(remaining - result.updated, 0)
    return result
