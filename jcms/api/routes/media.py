"""
媒体文件接口

上传支持一次多个文件（multipart/form-data），单个文件失败不影响其他文件，
失败项在 errors 中返回；全部失败时直接返回第一个错误。

访问控制按 images.<action>.own|all 权限解析：
- all: 本租户全部文件（superadmin 全部）
- own: 只能操作自己上传的文件
"""

from pathlib import Path

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import FileResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from jcms.api.deps import get_db_session
from jcms.auth.dependencies import AuthContext, check_resource_access, require_permission
from jcms.auth.permissions import resolve_scope
from jcms.config import get_settings
from jcms.exceptions import DomainError
from jcms.infra.imaging import VARIANT_SIZES, render_variant, supported_conversions
from jcms.infra.logging import RequestTimer, get_logger
from jcms.infra.storage import get_storage
from jcms.models import MediaFile
from jcms.models.tenant import DEFAULT_ALLOWED_FORMATS
from jcms.schemas.media import (
    ConvertRequest,
    ExpiringResponse,
    MediaListResponse,
    MediaResponse,
    MediaUpdate,
    UploadError,
    UploadResponse,
)
from jcms.services import media as media_service
from jcms.services.subscriptions import get_limits

logger = get_logger(__name__)

router = APIRouter(prefix="/api/media", tags=["media"])


def _err(code: str, detail: str) -> dict:
    return {"code": code, "detail": detail}


def _parse_tags(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [t.strip() for t in raw.split(",") if t.strip()]


async def _load(db: AsyncSession, ctx: AuthContext, media_id: str, base_permission: str) -> MediaFile:
    media = await media_service.get_media(db, media_id)
    check_resource_access(ctx, base_permission, media.owner_id, media.tenant_id)
    return media


@router.post("/upload", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_media(
    files: list[UploadFile] = File(..., description="一个或多个文件"),
    title: str | None = Form(None, max_length=255),
    tags: str | None = Form(None, description="逗号分隔的标签"),
    ctx: AuthContext = Depends(require_permission("images.create")),
    db: AsyncSession = Depends(get_db_session),
) -> UploadResponse:
    settings = get_settings()
    if len(files) > settings.max_upload_files:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=_err("TOO_MANY_FILES", f"At most {settings.max_upload_files} files per upload"),
        )

    timer = RequestTimer()
    limits = await get_limits(db, ctx.tenant_id, is_superadmin=ctx.is_superadmin)
    tag_list = _parse_tags(tags)

    stored: list[MediaFile] = []
    errors: list[UploadError] = []
    first_error: DomainError | None = None
    try:
        for upload in files:
            try:
                media = await media_service.store_upload(
                    db,
                    ctx.user,
                    ctx.tenant,
                    upload,
                    limits,
                    title=title if len(files) == 1 else None,
                    tags=tag_list,
                )
            except DomainError as exc:
                first_error = first_error or exc
                errors.append(UploadError(filename=upload.filename or "", code=exc.code, detail=exc.detail))
                continue
            finally:
                await upload.close()
            stored.append(media)
    except Exception:
        # 意外错误时整批作废，已写盘的文件一并删除
        await db.rollback()
        storage = get_storage()
        for media in stored:
            storage.delete(media.storage_path)
        logger.exception(f"上传中断，已清理 {len(stored)} 个文件")
        raise
    timer.mark("store")

    if not stored and first_error is not None:
        raise first_error

    await db.commit()
    for media in stored:
        await db.refresh(media)

    metrics = timer.get_metrics()
    logger.info(
        f"上传完成: {len(stored)} 成功, {len(errors)} 失败, 耗时 {metrics['total_ms']:.0f}ms",
        extra={"uploaded": len(stored), "failed": len(errors)},
    )
    return UploadResponse(items=[MediaResponse.model_validate(m) for m in stored], errors=errors)


@router.get("", response_model=MediaListResponse)
async def list_media(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    kind: str | None = Query(None, pattern="^(image|file)$"),
    file_type: str | None = Query(None),
    visibility: str | None = Query(None, pattern="^(private|public)$"),
    search: str | None = Query(None, max_length=100),
    tag: str | None = Query(None),
    mine: bool = Query(False, description="只看自己上传的文件"),
    owner_id: str | None = Query(None),
    ctx: AuthContext = Depends(require_permission("images.read.own")),
    db: AsyncSession = Depends(get_db_session),
) -> MediaListResponse:
    scope = resolve_scope(ctx.permissions, "images.read")
    if mine:
        scope = "own"
    items, total = await media_service.list_media(
        db,
        ctx.user,
        scope=scope,
        kind=kind,
        file_type=file_type,
        visibility=visibility,
        search=search,
        tag=tag,
        owner_id=owner_id,
        skip=skip,
        limit=limit,
    )
    return MediaListResponse(
        items=[MediaResponse.model_validate(m) for m in items],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get("/expiring", response_model=ExpiringResponse)
async def list_expiring(
    days: int = Query(7, ge=1, le=365),
    ctx: AuthContext = Depends(require_permission("images.read.own")),
    db: AsyncSession = Depends(get_db_session),
) -> ExpiringResponse:
    """days 天内将要过期的文件"""
    scope = resolve_scope(ctx.permissions, "images.read")
    items = await media_service.list_expiring(db, ctx.user, scope=scope, days=days)
    return ExpiringResponse(
        items=[MediaResponse.model_validate(m) for m in items],
        total=len(items),
        days=days,
    )


@router.get("/formats")
async def list_formats(ctx: AuthContext = Depends(require_permission("images.read.own"))) -> dict:
    """允许上传的图片格式和支持的转换格式"""
    allowed = ctx.tenant.allowed_formats if ctx.tenant is not None else DEFAULT_ALLOWED_FORMATS
    return {
        "allowed_formats": allowed,
        "conversion_formats": supported_conversions(),
        "variant_sizes": VARIANT_SIZES,
    }


@router.get("/{media_id}", response_model=MediaResponse)
async def get_media(
    media_id: str,
    ctx: AuthContext = Depends(require_permission("images.read.own")),
    db: AsyncSession = Depends(get_db_session),
) -> MediaResponse:
    media = await _load(db, ctx, media_id, "images.read")
    return MediaResponse.model_validate(media)


@router.get("/{media_id}/download")
async def download_media(
    media_id: str,
    ctx: AuthContext = Depends(require_permission("images.read.own")),
    db: AsyncSession = Depends(get_db_session),
) -> FileResponse:
    """下载原文件并累加访问次数"""
    media = await _load(db, ctx, media_id, "images.read")
    if not Path(media.storage_path).is_file():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=_err("FILE_MISSING", "File is missing from storage"),
        )
    await media_service.record_access(db, media)
    return FileResponse(
        media.storage_path,
        media_type=media.mime_type or "application/octet-stream",
        filename=media.original_name,
    )


@router.get("/{media_id}/variants/{size}")
async def media_variant(
    media_id: str,
    size: str,
    fmt: str = Query("webp", alias="format"),
    ctx: AuthContext = Depends(require_permission("images.read.own")),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    """缩略图/中图/大图，只缩小不放大"""
    media = await _load(db, ctx, media_id, "images.read")
    if media.kind != "image":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=_err("NOT_AN_IMAGE", "Variants are only available for images"),
        )
    if size not in VARIANT_SIZES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=_err("INVALID_SIZE", f"Size must be one of: {', '.join(VARIANT_SIZES)}"),
        )
    data, mime_type = await run_in_threadpool(render_variant, media.storage_path, size, fmt)
    return Response(content=data, media_type=mime_type, headers={"Cache-Control": "private, max-age=3600"})


@router.put("/{media_id}", response_model=MediaResponse)
async def update_media(
    media_id: str,
    data: MediaUpdate,
    ctx: AuthContext = Depends(require_permission("images.update.own")),
    db: AsyncSession = Depends(get_db_session),
) -> MediaResponse:
    media = await _load(db, ctx, media_id, "images.update")
    media = await media_service.update_media(db, media, data)
    return MediaResponse.model_validate(media)


@router.delete("/{media_id}")
async def delete_media(
    media_id: str,
    ctx: AuthContext = Depends(require_permission("images.delete.own")),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    media = await _load(db, ctx, media_id, "images.delete")
    await media_service.delete_media(db, media)
    return {"message": "File deleted successfully", "id": media_id}


@router.post("/{media_id}/convert", response_model=MediaResponse, status_code=status.HTTP_201_CREATED)
async def convert_media(
    media_id: str,
    data: ConvertRequest,
    ctx: AuthContext = Depends(require_permission("images.create")),
    db: AsyncSession = Depends(get_db_session),
) -> MediaResponse:
    """转换图片格式，结果保存为新文件"""
    media = await _load(db, ctx, media_id, "images.read")
    limits = await get_limits(db, ctx.tenant_id, is_superadmin=ctx.is_superadmin)
    converted = await media_service.convert_media(db, ctx.user, media, data.format, data.quality, limits)
    await db.refresh(converted)
    return MediaResponse.model_validate(converted)
