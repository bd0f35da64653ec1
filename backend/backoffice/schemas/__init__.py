from backoffice.schemas.coupon import (
    ApplyCouponRequest,
    CouponApplicationResponse,
    CouponCreate,
    CouponResponse,
    CouponUpdate,
    PlanVariantCombination,
)
from backoffice.schemas.plan import PlanCreate, PlanResponse, PlanVariantInput

__all__ = [
    "ApplyCouponRequest",
    "CouponApplicationResponse",
    "CouponCreate",
    "CouponResponse",
    "CouponUpdate",
    "PlanCreate",
    "PlanResponse",
    "PlanVariantCombination",
    "PlanVariantInput",
]
