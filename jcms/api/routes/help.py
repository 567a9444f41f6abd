"""
帮助中心接口

- 文章与常见问题：公开读取，超级管理员维护
- 联系支持：登录用户提交；管理员查看本租户的请求，超级管理员查看全部并处理
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from jcms.api.deps import get_db_session
from jcms.auth.dependencies import AuthContext, get_auth_context, require_admin_or_above, require_superadmin
from jcms.infra.logging import get_logger
from jcms.infra.text import slugify
from jcms.models import FAQ, ContactMessage, HelpArticle
from jcms.schemas.support import (
    ArticleCreate,
    ArticleResponse,
    ArticleUpdate,
    ContactCreate,
    ContactResponse,
    FAQCreate,
    FAQResponse,
    FAQUpdate,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/api/help", tags=["help"])


def _err(code: str, detail: str) -> dict:
    return {"code": code, "detail": detail}


# ==================== 联系支持 ====================

@router.post("/contact", response_model=ContactResponse, status_code=status.HTTP_201_CREATED)
async def create_contact(
    data: ContactCreate,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db_session),
) -> ContactResponse:
    message = ContactMessage(
        tenant_id=ctx.tenant_id,
        user_id=ctx.user_id,
        name=data.name or ctx.user.username,
        email=str(data.email) if data.email else ctx.user.email,
        subject=data.subject,
        message=data.message,
        category=data.category,
        status="open",
    )
    db.add(message)
    await db.commit()
    await db.refresh(message)
    logger.info("支持请求已提交", extra={"contact_id": message.id, "category": data.category})
    return ContactResponse.model_validate(message)


@router.get("/contact", response_model=list[ContactResponse])
async def list_contacts(
    status_filter: str | None = Query(None, alias="status", pattern="^(open|resolved)$"),
    ctx: AuthContext = Depends(require_admin_or_above),
    db: AsyncSession = Depends(get_db_session),
) -> list[ContactResponse]:
    conditions = []
    if not ctx.is_superadmin:
        conditions.append(ContactMessage.tenant_id == ctx.tenant_id)
    if status_filter:
        conditions.append(ContactMessage.status == status_filter)
    result = await db.execute(
        select(ContactMessage).where(*conditions).order_by(ContactMessage.created_at.desc())
    )
    return [ContactResponse.model_validate(m) for m in result.scalars().all()]


@router.post("/contact/{contact_id}/resolve", response_model=ContactResponse)
async def resolve_contact(
    contact_id: str,
    ctx: AuthContext = Depends(require_superadmin),
    db: AsyncSession = Depends(get_db_session),
) -> ContactResponse:
    message = await db.get(ContactMessage, contact_id)
    if message is None:
        raise HTTPException(status_code=404, detail=_err("CONTACT_NOT_FOUND", "Contact message not found"))
    message.status = "resolved"
    message.resolved_by = ctx.user_id
    await db.commit()
    await db.refresh(message)
    return ContactResponse.model_validate(message)


# ==================== 帮助文章 ====================

@router.get("/articles", response_model=list[ArticleResponse])
async def list_articles(
    search: str | None = Query(None, max_length=100),
    category: str | None = Query(None),
    db: AsyncSession = Depends(get_db_session),
) -> list[ArticleResponse]:
    conditions = [HelpArticle.is_published.is_(True)]
    if category:
        conditions.append(HelpArticle.category == category)
    if search:
        pattern = f"%{search.lower()}%"
        conditions.append(or_(func.lower(HelpArticle.title).like(pattern), func.lower(HelpArticle.body).like(pattern)))
    result = await db.execute(select(HelpArticle).where(*conditions).order_by(HelpArticle.title))
    return [ArticleResponse.model_validate(a) for a in result.scalars().all()]


@router.get("/articles/{slug}", response_model=ArticleResponse)
async def get_article(
    slug: str,
    db: AsyncSession = Depends(get_db_session),
) -> ArticleResponse:
    result = await db.execute(
        select(HelpArticle).where(HelpArticle.slug == slug, HelpArticle.is_published.is_(True))
    )
    article = result.scalar_one_or_none()
    if article is None:
        raise HTTPException(status_code=404, detail=_err("ARTICLE_NOT_FOUND", "Article not found"))
    article.views = (article.views or 0) + 1
    await db.commit()
    await db.refresh(article)
    return ArticleResponse.model_validate(article)


@router.post("/articles", response_model=ArticleResponse, status_code=status.HTTP_201_CREATED)
async def create_article(
    data: ArticleCreate,
    ctx: AuthContext = Depends(require_superadmin),
    db: AsyncSession = Depends(get_db_session),
) -> ArticleResponse:
    slug = slugify(data.slug or data.title, max_length=100)
    existing = await db.execute(select(HelpArticle.id).where(HelpArticle.slug == slug))
    if existing.first():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=_err("ARTICLE_SLUG_EXISTS", f"Article with slug '{slug}' already exists"),
        )
    article = HelpArticle(
        title=data.title,
        slug=slug,
        body=data.body,
        category=data.category,
        tags=data.tags,
        is_published=data.is_published,
    )
    db.add(article)
    await db.commit()
    await db.refresh(article)
    return ArticleResponse.model_validate(article)


@router.put("/articles/{article_id}", response_model=ArticleResponse)
async def update_article(
    article_id: str,
    data: ArticleUpdate,
    ctx: AuthContext = Depends(require_superadmin),
    db: AsyncSession = Depends(get_db_session),
) -> ArticleResponse:
    article = await db.get(HelpArticle, article_id)
    if article is None:
        raise HTTPException(status_code=404, detail=_err("ARTICLE_NOT_FOUND", "Article not found"))
    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(article, key, value)
    await db.commit()
    await db.refresh(article)
    return ArticleResponse.model_validate(article)


@router.delete("/articles/{article_id}")
async def delete_article(
    article_id: str,
    ctx: AuthContext = Depends(require_superadmin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    article = await db.get(HelpArticle, article_id)
    if article is None:
        raise HTTPException(status_code=404, detail=_err("ARTICLE_NOT_FOUND", "Article not found"))
    await db.delete(article)
    await db.commit()
    return {"message": "Article deleted successfully", "id": article_id}


# ==================== 常见问题 ====================

@router.get("/faq", response_model=list[FAQResponse])
async def list_faq(
    category: str | None = Query(None),
    db: AsyncSession = Depends(get_db_session),
) -> list[FAQResponse]:
    conditions = [FAQ.is_published.is_(True)]
    if category:
        conditions.append(FAQ.category == category)
    result = await db.execute(select(FAQ).where(*conditions).order_by(FAQ.sort_order, FAQ.created_at))
    return [FAQResponse.model_validate(f) for f in result.scalars().all()]


@router.post("/faq", response_model=FAQResponse, status_code=status.HTTP_201_CREATED)
async def create_faq(
    data: FAQCreate,
    ctx: AuthContext = Depends(require_superadmin),
    db: AsyncSession = Depends(get_db_session),
) -> FAQResponse:
    faq = FAQ(**data.model_dump())
    db.add(faq)
    await db.commit()
    await db.refresh(faq)
    return FAQResponse.model_validate(faq)


@router.put("/faq/{faq_id}", response_model=FAQResponse)
async def update_faq(
    faq_id: str,
    data: FAQUpdate,
    ctx: AuthContext = Depends(require_superadmin),
    db: AsyncSession = Depends(get_db_session),
) -> FAQResponse:
    faq = await db.get(FAQ, faq_id)
    if faq is None:
        raise HTTPException(status_code=404, detail=_err("FAQ_NOT_FOUND", "FAQ not found"))
    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(faq, key, value)
    await db.commit()
    await db.refresh(faq)
    return FAQResponse.model_validate(faq)


@router.delete("/faq/{faq_id}")
async def delete_faq(
    faq_id: str,
    ctx: AuthContext = Depends(require_superadmin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    faq = await db.get(FAQ, faq_id)
    if faq is None:
        raise HTTPException(status_code=404, detail=_err("FAQ_NOT_FOUND", "FAQ not found"))
    await db.delete(faq)
    await db.commit()
    return {"message": "FAQ deleted successfully", "id": faq_id}
