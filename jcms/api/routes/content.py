"""
内容管理接口

editor/viewer 只能看到自己的内容，admin 可见本租户全部，superadmin 可见全部。
删除为软删除。
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from jcms.api.deps import get_db_session
from jcms.auth.dependencies import AuthContext, require_permission
from jcms.schemas.content import (
    ContentCreate,
    ContentListResponse,
    ContentResponse,
    ContentUpdate,
    ScheduleRequest,
)
from jcms.services import content as content_service

router = APIRouter(prefix="/api/content", tags=["content"])


@router.get("", response_model=ContentListResponse)
async def list_content(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    status_filter: str | None = Query(None, alias="status"),
    content_type: str | None = Query(None, alias="type"),
    search: str | None = Query(None, max_length=100),
    tag: str | None = Query(None),
    ctx: AuthContext = Depends(require_permission("content.read")),
    db: AsyncSession = Depends(get_db_session),
) -> ContentListResponse:
    items, total = await content_service.list_content(
        db,
        ctx.user,
        status=status_filter,
        content_type=content_type,
        search=search,
        tag=tag,
        skip=skip,
        limit=limit,
    )
    return ContentListResponse(
        items=[ContentResponse.model_validate(c) for c in items],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.post("", response_model=ContentResponse, status_code=status.HTTP_201_CREATED)
async def create_content(
    data: ContentCreate,
    ctx: AuthContext = Depends(require_permission("content.create")),
    db: AsyncSession = Depends(get_db_session),
) -> ContentResponse:
    content = await content_service.create_content(db, ctx.user, data)
    return ContentResponse.model_validate(content)


@router.get("/{content_id}", response_model=ContentResponse)
async def get_content(
    content_id: str,
    ctx: AuthContext = Depends(require_permission("content.read")),
    db: AsyncSession = Depends(get_db_session),
) -> ContentResponse:
    content = await content_service.get_visible_content(db, ctx.user, content_id)
    return ContentResponse.model_validate(content)


@router.put("/{content_id}", response_model=ContentResponse)
async def update_content(
    content_id: str,
    data: ContentUpdate,
    ctx: AuthContext = Depends(require_permission("content.update")),
    db: AsyncSession = Depends(get_db_session),
) -> ContentResponse:
    content = await content_service.get_visible_content(db, ctx.user, content_id)
    content = await content_service.update_content(db, ctx.user, content, data)
    return ContentResponse.model_validate(content)


@router.delete("/{content_id}")
async def delete_content(
    content_id: str,
    ctx: AuthContext = Depends(require_permission("content.delete")),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    content = await content_service.get_visible_content(db, ctx.user, content_id)
    await content_service.delete_content(db, ctx.user, content)
    return {"message": "Content deleted successfully", "id": content_id}


@router.post("/{content_id}/publish", response_model=ContentResponse)
async def publish_content(
    content_id: str,
    ctx: AuthContext = Depends(require_permission("content.publish")),
    db: AsyncSession = Depends(get_db_session),
) -> ContentResponse:
    content = await content_service.get_visible_content(db, ctx.user, content_id)
    content = await content_service.publish_content(db, ctx.user, content)
    return ContentResponse.model_validate(content)


@router.post("/{content_id}/unpublish", response_model=ContentResponse)
async def unpublish_content(
    content_id: str,
    ctx: AuthContext = Depends(require_permission("content.publish")),
    db: AsyncSession = Depends(get_db_session),
) -> ContentResponse:
    content = await content_service.get_visible_content(db, ctx.user, content_id)
    content = await content_service.unpublish_content(db, ctx.user, content)
    return ContentResponse.model_validate(content)


@router.post("/{content_id}/schedule", response_model=ContentResponse)
async def schedule_content(
    content_id: str,
    data: ScheduleRequest,
    ctx: AuthContext = Depends(require_permission("content.publish")),
    db: AsyncSession = Depends(get_db_session),
) -> ContentResponse:
    content = await content_service.get_visible_content(db, ctx.user, content_id)
    content = await content_service.schedule_content(db, ctx.user, content, data.scheduled_at)
    return ContentResponse.model_validate(content)
