"""
订阅接口

- 套餐、状态、限制：所有登录用户
- 激活、取消、历史、发票：租户管理员
- 全部订阅、按租户查询/取消：超级管理员

支付在外部完成，激活时只记录 payment_reference。
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from jcms.api.deps import get_db_session
from jcms.auth.dependencies import (
    AuthContext,
    get_auth_context,
    require_roles,
    require_superadmin,
)
from jcms.auth.permissions import ADMIN
from jcms.models import Invoice, Subscription, Tenant
from jcms.schemas.subscription import (
    ActivateResponse,
    InvoiceResponse,
    LimitsResponse,
    PlanResponse,
    SubscriptionActivate,
    SubscriptionResponse,
    SubscriptionStatusResponse,
)
from jcms.services import subscriptions as subscription_service

router = APIRouter(prefix="/api/subscriptions", tags=["subscriptions"])


def _err(code: str, detail: str) -> dict:
    return {"code": code, "detail": detail}


async def _history(db: AsyncSession, tenant_id: str) -> list[SubscriptionResponse]:
    result = await db.execute(
        select(Subscription)
        .where(Subscription.tenant_id == tenant_id)
        .order_by(Subscription.created_at.desc())
    )
    return [SubscriptionResponse.model_validate(s) for s in result.scalars().all()]


async def _cancel(db: AsyncSession, tenant_id: str) -> SubscriptionResponse:
    subscription = await subscription_service.cancel_subscription(db, tenant_id)
    if subscription is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=_err("NO_ACTIVE_SUBSCRIPTION", "No active subscription found"),
        )
    return SubscriptionResponse.model_validate(subscription)


@router.get("/plans", response_model=list[PlanResponse])
async def list_plans(
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db_session),
) -> list[PlanResponse]:
    return [PlanResponse(**plan) for plan in await subscription_service.list_plans(db)]


@router.get("/status", response_model=SubscriptionStatusResponse)
async def subscription_status(
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db_session),
) -> SubscriptionStatusResponse:
    data = await subscription_service.subscription_status(db, ctx.tenant_id, ctx.is_superadmin)
    return SubscriptionStatusResponse(**data)


@router.get("/limits", response_model=LimitsResponse)
async def subscription_limits(
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db_session),
) -> LimitsResponse:
    limits = await subscription_service.get_limits(db, ctx.tenant_id, is_superadmin=ctx.is_superadmin)
    return LimitsResponse(**limits.to_dict())


@router.post("/activate", response_model=ActivateResponse, status_code=status.HTTP_201_CREATED)
async def activate(
    data: SubscriptionActivate,
    ctx: AuthContext = Depends(require_roles(ADMIN)),
    db: AsyncSession = Depends(get_db_session),
) -> ActivateResponse:
    """
    激活或续订

    当前订阅仍有效时，新订阅从当前结束时间开始。
    """
    subscription, invoice, cleared = await subscription_service.activate_subscription(
        db,
        tenant=ctx.tenant,
        user=ctx.user,
        subscription_type=data.subscription_type,
        payment_reference=data.payment_reference,
        billing_name=data.billing_name,
        billing_email=str(data.billing_email) if data.billing_email else None,
    )
    return ActivateResponse(
        subscription=SubscriptionResponse.model_validate(subscription),
        invoice=InvoiceResponse.model_validate(invoice),
        cleared_expirations=cleared,
    )


@router.get("/history", response_model=list[SubscriptionResponse])
async def subscription_history(
    ctx: AuthContext = Depends(require_roles(ADMIN)),
    db: AsyncSession = Depends(get_db_session),
) -> list[SubscriptionResponse]:
    return await _history(db, ctx.tenant_id)


@router.get("/invoices", response_model=list[InvoiceResponse])
async def list_invoices(
    ctx: AuthContext = Depends(require_roles(ADMIN)),
    db: AsyncSession = Depends(get_db_session),
) -> list[InvoiceResponse]:
    result = await db.execute(
        select(Invoice).where(Invoice.tenant_id == ctx.tenant_id).order_by(Invoice.created_at.desc())
    )
    return [InvoiceResponse.model_validate(i) for i in result.scalars().all()]


@router.post("/cancel", response_model=SubscriptionResponse)
async def cancel(
    ctx: AuthContext = Depends(require_roles(ADMIN)),
    db: AsyncSession = Depends(get_db_session),
) -> SubscriptionResponse:
    """取消当前订阅，租户文件重新开始计算过期时间"""
    return await _cancel(db, ctx.tenant_id)


# ==================== 超级管理员 ====================

@router.get("/all")
async def list_all_subscriptions(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    active_only: bool = Query(False),
    ctx: AuthContext = Depends(require_superadmin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    conditions = [Subscription.is_active.is_(True)] if active_only else []
    total = (await db.execute(select(func.count(Subscription.id)).where(*conditions))).scalar() or 0
    result = await db.execute(
        select(Subscription, Tenant.name)
        .join(Tenant, Tenant.id == Subscription.tenant_id)
        .where(*conditions)
        .order_by(Subscription.created_at.desc())
        .offset(skip)
        .limit(limit)
    )
    items = [
        {**SubscriptionResponse.model_validate(s).model_dump(mode="json"), "tenant_name": tenant_name}
        for s, tenant_name in result.all()
    ]
    return {"items": items, "total": total, "skip": skip, "limit": limit}


@router.get("/tenant/{tenant_id}")
async def tenant_subscription(
    tenant_id: str,
    ctx: AuthContext = Depends(require_superadmin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    tenant = await db.get(Tenant, tenant_id)
    if tenant is None:
        raise HTTPException(status_code=404, detail=_err("TENANT_NOT_FOUND", "Tenant not found"))
    data = await subscription_service.subscription_status(db, tenant_id, is_superadmin=False)
    return {
        "tenant": {"id": tenant.id, "name": tenant.name, "subdomain": tenant.subdomain},
        "status": SubscriptionStatusResponse(**data).model_dump(mode="json"),
        "history": [s.model_dump(mode="json") for s in await _history(db, tenant_id)],
    }


@router.post("/tenant/{tenant_id}/cancel", response_model=SubscriptionResponse)
async def cancel_tenant_subscription(
    tenant_id: str,
    ctx: AuthContext = Depends(require_superadmin),
    db: AsyncSession = Depends(get_db_session),
) -> SubscriptionResponse:
    tenant = await db.get(Tenant, tenant_id)
    if tenant is None:
        raise HTTPException(status_code=404, detail=_err("TENANT_NOT_FOUND", "Tenant not found"))
    return await _cancel(db, tenant_id)
