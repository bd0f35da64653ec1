from backoffice.models.coupon import Coupon, CouponType
from backoffice.models.plan import PlanDefinition

__all__ = [
    "Coupon",
    "CouponType",
    "PlanDefinition",
]
