"""Blog Posts API Routes

Accepts multipart post submissions; posts are summarized, not persisted.
"""
from fastapi import APIRouter
from pydantic import BaseModel

from core.logging import api_logger
from dtos import CreateBlogPostDTO
from mapper import DtoRoute

log = api_logger()

router = APIRouter(route_class=DtoRoute)


class AttachmentSummary(BaseModel):
    filename: str
    content_type: str | None
    size: int | None


class PostSummaryResponse(BaseModel):
    title: str
    category: str
    tags: list[str]
    published: bool
    publishDate: str | None
    featuredImage: AttachmentSummary | None
    attachments: list[AttachmentSummary]


def _summarize(upload) -> AttachmentSummary:
    return AttachmentSummary(
        filename=upload.filename,
        content_type=upload.content_type,
        size=upload.size,
    )


@router.post("/", response_model=PostSummaryResponse, status_code=201)
async def create_post(dto: CreateBlogPostDTO):
    """Validate a post submission and return what was received."""
    attachments = [_summarize(a) for a in dto.attachments or []]
    log.info(
        "post_received",
        category=dto.category,
        tags=len(dto.tags),
        attachments=len(attachments),
    )
    return PostSummaryResponse(
        title=dto.title,
        category=dto.category,
        tags=list(dto.tags),
        published=dto.published,
        publishDate=dto.publish_date,
        featuredImage=_summarize(dto.featured_image) if dto.featured_image else None,
        attachments=attachments,
    )
