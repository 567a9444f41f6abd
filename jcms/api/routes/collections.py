"""
集合接口

- 集合增删改查，列表附带统计和最近 4 个成员
- 成员添加/移除/重排，position 始终从 0 连续
- ZIP 打包下载
- 通过 Cloudflare Tunnel 公开/取消公开
"""

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from jcms.api.deps import get_db_session
from jcms.auth.dependencies import AuthContext, require_permission
from jcms.infra.tunnel import get_tunnel_manager
from jcms.models import Collection
from jcms.schemas.collection import (
    CollectionCreate,
    CollectionDetailResponse,
    CollectionItemResponse,
    CollectionItemsRequest,
    CollectionListResponse,
    CollectionResponse,
    CollectionStats,
    CollectionUpdate,
    PublishItemResult,
    PublishResponse,
    ReorderRequest,
)
from jcms.schemas.media import MediaResponse
from jcms.services import collections as collection_service

router = APIRouter(prefix="/api/collections", tags=["collections"])


async def _summary(db: AsyncSession, collection: Collection) -> CollectionResponse:
    response = CollectionResponse.model_validate(collection)
    response.stats = CollectionStats(**await collection_service.collection_stats(db, collection.id))
    response.recent_items = [
        MediaResponse.model_validate(m) for m in await collection_service.recent_media(db, collection.id)
    ]
    return response


@router.get("", response_model=CollectionListResponse)
async def list_collections(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    search: str | None = Query(None, max_length=100),
    visibility: str | None = Query(None, pattern="^(private|public)$"),
    ctx: AuthContext = Depends(require_permission("collections.read")),
    db: AsyncSession = Depends(get_db_session),
) -> CollectionListResponse:
    collections, total = await collection_service.list_collections(
        db, ctx.user, search=search, visibility=visibility, skip=skip, limit=limit
    )
    return CollectionListResponse(
        items=[await _summary(db, c) for c in collections],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.post("", response_model=CollectionResponse, status_code=status.HTTP_201_CREATED)
async def create_collection(
    data: CollectionCreate,
    ctx: AuthContext = Depends(require_permission("collections.create")),
    db: AsyncSession = Depends(get_db_session),
) -> CollectionResponse:
    collection = await collection_service.create_collection(db, ctx.user, data)
    await db.refresh(collection)
    return await _summary(db, collection)


@router.get("/{collection_id}", response_model=CollectionDetailResponse)
async def get_collection(
    collection_id: str,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    ctx: AuthContext = Depends(require_permission("collections.read")),
    db: AsyncSession = Depends(get_db_session),
) -> CollectionDetailResponse:
    """集合详情，成员按 position 排序并分页"""
    collection = await collection_service.get_collection(db, ctx.user, collection_id)
    summary = await _summary(db, collection)
    members = await collection_service.member_media(db, collection.id, skip=skip, limit=limit)
    return CollectionDetailResponse(
        **summary.model_dump(),
        items=[
            CollectionItemResponse(
                position=item.position,
                added_at=item.added_at,
                media=MediaResponse.model_validate(media),
            )
            for item, media in members
        ],
        items_total=summary.stats.total_items,
        skip=skip,
        limit=limit,
    )


@router.put("/{collection_id}", response_model=CollectionResponse)
async def update_collection(
    collection_id: str,
    data: CollectionUpdate,
    ctx: AuthContext = Depends(require_permission("collections.update")),
    db: AsyncSession = Depends(get_db_session),
) -> CollectionResponse:
    collection = await collection_service.get_collection(db, ctx.user, collection_id)
    collection = await collection_service.update_collection(db, collection, data)
    return await _summary(db, collection)


@router.delete("/{collection_id}")
async def delete_collection(
    collection_id: str,
    ctx: AuthContext = Depends(require_permission("collections.delete")),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """删除集合，成员文件保留"""
    collection = await collection_service.get_collection(db, ctx.user, collection_id)
    await collection_service.delete_collection(db, collection, get_tunnel_manager())
    return {"message": "Collection deleted successfully", "id": collection_id}


# ==================== 成员 ====================

@router.post("/{collection_id}/items")
async def add_items(
    collection_id: str,
    data: CollectionItemsRequest,
    ctx: AuthContext = Depends(require_permission("collections.update")),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """追加成员；重复或不属于本租户的文件会被跳过"""
    collection = await collection_service.get_collection(db, ctx.user, collection_id)
    result = await collection_service.add_items(db, collection, data.media_ids)
    stats = await collection_service.collection_stats(db, collection.id)
    return {**result, "total_items": stats["total_items"]}


@router.delete("/{collection_id}/items")
async def remove_items(
    collection_id: str,
    data: CollectionItemsRequest,
    ctx: AuthContext = Depends(require_permission("collections.update")),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    collection = await collection_service.get_collection(db, ctx.user, collection_id)
    removed = await collection_service.remove_items(db, collection, data.media_ids)
    return {"removed": removed}


@router.put("/{collection_id}/reorder")
async def reorder_items(
    collection_id: str,
    data: ReorderRequest,
    ctx: AuthContext = Depends(require_permission("collections.update")),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    collection = await collection_service.get_collection(db, ctx.user, collection_id)
    await collection_service.reorder_items(db, collection, data.media_ids)
    members = await collection_service.member_media(db, collection.id)
    return {"order": [media.id for _, media in members]}


# ==================== 下载与公开 ====================

@router.get("/{collection_id}/download")
async def download_collection(
    collection_id: str,
    ctx: AuthContext = Depends(require_permission("collections.read")),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    """打包下载全部成员文件和 collection_info.json"""
    collection = await collection_service.get_collection(db, ctx.user, collection_id)
    data, filename = await collection_service.export_zip(db, collection)
    return Response(
        content=data,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/{collection_id}/publish", response_model=PublishResponse)
async def publish_collection(
    collection_id: str,
    ctx: AuthContext = Depends(require_permission("collections.publish")),
    db: AsyncSession = Depends(get_db_session),
) -> PublishResponse:
    """通过隧道公开集合，逐个返回成员的公开结果"""
    collection = await collection_service.get_collection(db, ctx.user, collection_id)
    result = await collection_service.publish_collection(db, collection, get_tunnel_manager())
    return PublishResponse(
        collection=await _summary(db, collection),
        tunnel_url=result["tunnel_url"],
        published=result["published"],
        failed=result["failed"],
        results=[PublishItemResult(**r) for r in result["results"]],
    )


@router.post("/{collection_id}/unpublish", response_model=CollectionResponse)
async def unpublish_collection(
    collection_id: str,
    ctx: AuthContext = Depends(require_permission("collections.publish")),
    db: AsyncSession = Depends(get_db_session),
) -> CollectionResponse:
    collection = await collection_service.get_collection(db, ctx.user, collection_id)
    collection = await collection_service.unpublish_collection(db, collection, get_tunnel_manager())
    return await _summary(db, collection)
