from fastapi import APIRouter, Depends

from app.common.deps import CurrentUser, require_admin
from app.features.courses.schemas import Course
from .schemas import BulkGenerateRequest, BulkGenerateResult
from . import service

router = APIRouter(prefix="/admin/content", tags=["Content generation"])


@router.post(
    "/courses/{course_id}/generate",
    response_model=Course,
    summary="Generate course content (Admin)",
    description="Writes description, curriculum, learning outcomes and audience for one course.",
)
async def generate_for_course(course_id: str, _: CurrentUser = Depends(require_admin())):
    return await service.generate_for_course(course_id)


@router.post(
    "/bulk-generate",
    response_model=BulkGenerateResult,
    summary="Fill in missing content for published courses (Admin)",
)
async def bulk_generate(body: BulkGenerateRequest = BulkGenerateRequest(), _: CurrentUser = Depends(require_admin())):
    return await service.bulk_generate(body.limit)
