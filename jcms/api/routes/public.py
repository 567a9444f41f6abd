"""
公开接口（无需登录）

只返回已发布且未删除的内容。
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from jcms.api.deps import get_db_session
from jcms.schemas.content import ContentResponse
from jcms.services.content import get_public_content

router = APIRouter(prefix="/api/public", tags=["public"])


@router.get("/content/{id_or_slug}", response_model=ContentResponse)
async def read_public_content(
    id_or_slug: str,
    db: AsyncSession = Depends(get_db_session),
) -> ContentResponse:
    """按 ID 或 slug 读取已发布内容，每次读取累加浏览量"""
    content = await get_public_content(db, id_or_slug)
    return ContentResponse.model_validate(content)
