from backoffice.repositories.coupon_repository import CouponRepository
from backoffice.repositories.plan_repository import PlanRepository

__all__ = [
    "CouponRepository",
    "PlanRepository",
]
