"""Coupon API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from backoffice.core.database import get_db
from backoffice.models.coupon import Coupon
from backoffice.schemas.coupon import (
    ApplyCouponRequest,
    CouponApplicationResponse,
    CouponCreate,
    CouponErrorResponse,
    CouponResponse,
    CouponStatsResponse,
    CouponUpdate,
    CouponUsageResponse,
    CouponValidationResponse,
)
from backoffice.services.coupon_service import CouponErrorCode, CouponService

router = APIRouter()


def _error_response(status_code: int, error: CouponErrorCode, message: str | None) -> JSONResponse:
    body = CouponErrorResponse(error=error.value, message=message or error.value)
    return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True))


@router.post(
    "/",
    response_model=CouponResponse,
    status_code=201,
    summary="Create coupon",
    responses={
        400: {"description": "Referenced plan does not exist"},
        409: {"description": "Coupon with this code already exists"},
        422: {"description": "Validation error"},
    },
)
async def create_coupon(
    data: CouponCreate,
    db: Session = Depends(get_db),
) -> Coupon:
    """Create a new coupon."""
    service = CouponService(db)
    if service.coupon_repo.get_by_code(data.code):
        raise HTTPException(status_code=409, detail="Coupon with this code already exists")
    try:
        return service.create_coupon(data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None


@router.get(
    "/stats",
    response_model=CouponStatsResponse,
    summary="Coupon statistics",
)
async def get_coupon_stats(db: Session = Depends(get_db)) -> CouponStatsResponse:
    """Counts of coupons by state and type."""
    return CouponStatsResponse(**CouponService(db).get_stats())


@router.post(
    "/apply",
    response_model=CouponApplicationResponse,
    summary="Apply coupon to a price",
    responses={400: {"model": CouponErrorResponse, "description": "Coupon cannot be applied"}},
)
async def apply_coupon(
    data: ApplyCouponRequest,
    db: Session = Depends(get_db),
) -> CouponApplicationResponse | JSONResponse:
    """Validate a coupon for a purchase and compute the discounted price."""
    result = CouponService(db).apply_coupon(
        data.code,
        data.original_price,
        plan_code=data.plan_code,
        variant_days=data.variant_days,
        upgrade_id=data.upgrade_id,
    )
    if not result.success:
        return _error_response(400, result.error, result.reason)  # type: ignore[arg-type]

    return CouponApplicationResponse(
        original_price=result.original_price,
        final_price=result.final_price,
        discount=result.discount,
        discount_percentage=result.discount_percentage,
        plan_code=result.assigned_plan_code,
        variant_days=result.variant_days,
    )


@router.get(
    "/{code}",
    response_model=CouponResponse,
    summary="Get coupon",
    responses={404: {"description": "Coupon not found"}},
)
async def get_coupon(
    code: str,
    db: Session = Depends(get_db),
) -> Coupon:
    """Get a coupon by code."""
    coupon = CouponService(db).coupon_repo.get_by_code(code)
    if not coupon:
        raise HTTPException(status_code=404, detail="Coupon not found")
    return coupon


@router.get(
    "/{code}/validate",
    response_model=CouponValidationResponse,
    summary="Validate coupon for a plan, variant or upgrade",
    responses={400: {"model": CouponErrorResponse, "description": "Coupon not usable"}},
)
async def validate_coupon(
    code: str,
    plan_code: str | None = Query(default=None, alias="planCode"),
    variant_days: int | None = Query(default=None, alias="variantDays", ge=1),
    upgrade_id: str | None = Query(default=None, alias="upgradeId"),
    db: Session = Depends(get_db),
) -> CouponValidationResponse | JSONResponse:
    """Check availability and applicability without consuming a use."""
    validation = CouponService(db).validate_coupon(
        code, plan_code=plan_code, variant_days=variant_days, upgrade_id=upgrade_id
    )
    if not validation.is_valid:
        return _error_response(400, validation.error, validation.reason)  # type: ignore[arg-type]
    return CouponValidationResponse(
        is_valid=True,
        coupon=CouponResponse.model_validate(validation.coupon),
    )


@router.post(
    "/{code}/usage",
    response_model=CouponUsageResponse,
    summary="Record coupon usage",
    responses={
        404: {"model": CouponErrorResponse, "description": "Coupon not found"},
        409: {"model": CouponErrorResponse, "description": "Coupon usage limit reached"},
    },
)
async def record_coupon_usage(
    code: str,
    db: Session = Depends(get_db),
) -> CouponUsageResponse | JSONResponse:
    """Count one successful use of the coupon."""
    record = CouponService(db).record_usage(code)
    if not record.success:
        status_code = 404 if record.error == CouponErrorCode.NOT_FOUND else 409
        return _error_response(status_code, record.error, record.reason)  # type: ignore[arg-type]
    return CouponUsageResponse(code=code.strip().upper(), current_uses=record.current_uses)  # type: ignore[arg-type]


@router.put(
    "/{coupon_id}",
    response_model=CouponResponse,
    summary="Update coupon",
    responses={
        400: {"description": "Invalid update"},
        404: {"description": "Coupon not found"},
        422: {"description": "Validation error"},
    },
)
async def update_coupon(
    coupon_id: UUID,
    data: CouponUpdate,
    db: Session = Depends(get_db),
) -> Coupon:
    """Update a coupon by ID."""
    try:
        return CouponService(db).update_coupon(coupon_id, data)
    except ValueError as e:
        detail = str(e)
        if "not found" in detail:
            raise HTTPException(status_code=404, detail=detail) from None
        raise HTTPException(status_code=400, detail=detail) from None


@router.delete(
    "/{coupon_id}",
    status_code=204,
    summary="Delete coupon",
    responses={404: {"description": "Coupon not found"}},
)
async def delete_coupon(
    coupon_id: UUID,
    db: Session = Depends(get_db),
) -> None:
    """Permanently delete a coupon."""
    if not CouponService(db).delete_coupon(coupon_id):
        raise HTTPException(status_code=404, detail="Coupon not found")
