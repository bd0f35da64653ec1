"""Coupon validation, discount calculation and usage accounting."""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from backoffice.core.config import settings
from backoffice.models.coupon import DISCOUNT_TYPES, UNLIMITED_USES, Coupon, CouponType
from backoffice.models.shared import as_utc, utc_now
from backoffice.repositories.coupon_repository import CouponRepository
from backoffice.repositories.plan_repository import PlanRepository
from backoffice.schemas.coupon import CODE_PATTERN, CouponCreate, CouponUpdate
from backoffice.services.coupon_applicability import (
    RestrictionRequired,
    UpgradeOnly,
    derive_applicability,
    is_applicable,
)

logger = logging.getLogger(__name__)


class CouponErrorCode(str, Enum):
    INVALID_CODE = "COUPON_INVALID_CODE"
    NOT_FOUND = "COUPON_NOT_FOUND"
    INACTIVE = "COUPON_INACTIVE"
    NOT_STARTED = "COUPON_NOT_STARTED"
    EXPIRED = "COUPON_EXPIRED"
    EXHAUSTED = "COUPON_EXHAUSTED"
    PLAN_VARIANT_MISMATCH = "COUPON_PLAN_VARIANT_MISMATCH"
    UPGRADE_MISMATCH = "COUPON_UPGRADE_MISMATCH"
    RESTRICTION_REQUIRED = "COUPON_RESTRICTION_REQUIRED"
    FREE_ITEM_INELIGIBLE = "COUPON_FREE_ITEM_INELIGIBLE"


ERROR_MESSAGES: dict[CouponErrorCode, str] = {
    CouponErrorCode.INVALID_CODE: "Coupon code format is invalid",
    CouponErrorCode.NOT_FOUND: "Coupon not found",
    CouponErrorCode.INACTIVE: "Coupon is inactive",
    CouponErrorCode.NOT_STARTED: "Coupon is not valid yet",
    CouponErrorCode.EXPIRED: "Coupon has expired",
    CouponErrorCode.EXHAUSTED: "Coupon has reached its usage limit",
    CouponErrorCode.PLAN_VARIANT_MISMATCH: "Coupon is not valid for the selected plan or variant",
    CouponErrorCode.UPGRADE_MISMATCH: "Coupon is not valid for the selected upgrade",
    CouponErrorCode.RESTRICTION_REQUIRED: "Coupon has no applicable plans or upgrades configured",
    CouponErrorCode.FREE_ITEM_INELIGIBLE: "Coupons cannot be applied to free items",
}


@dataclass
class CouponValidation:
    """Outcome of availability plus applicability checks."""

    is_valid: bool
    coupon: Coupon | None = None
    error: CouponErrorCode | None = None

    @property
    def reason(self) -> str | None:
        return ERROR_MESSAGES[self.error] if self.error else None


@dataclass
class CouponApplication:
    """Result of a coupon discount calculation.

    ``success`` must be checked before reading the price fields; on failure
    ``final_price`` equals ``original_price`` and ``discount`` is zero.
    """

    success: bool
    original_price: Decimal
    final_price: Decimal
    discount: Decimal
    assigned_plan_code: str | None = None
    variant_days: int | None = None
    error: CouponErrorCode | None = None

    @property
    def reason(self) -> str | None:
        return ERROR_MESSAGES[self.error] if self.error else None

    @property
    def discount_percentage(self) -> int:
        if self.original_price <= 0:
            return 0
        ratio = self.discount / self.original_price * 100
        return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass
class UsageRecord:
    """Result of recording one successful coupon use."""

    success: bool
    current_uses: int | None = None
    error: CouponErrorCode | None = None

    @property
    def reason(self) -> str | None:
        return ERROR_MESSAGES[self.error] if self.error else None


def check_availability(coupon: Coupon | None, now: datetime) -> CouponErrorCode | None:
    """Lifecycle gate: existence, active flag, window, usage ceiling, in that order."""
    if coupon is None:
        return CouponErrorCode.NOT_FOUND
    if not coupon.is_active:
        return CouponErrorCode.INACTIVE
    if now < as_utc(coupon.valid_from):  # type: ignore[arg-type]
        return CouponErrorCode.NOT_STARTED
    if now > as_utc(coupon.valid_until):  # type: ignore[arg-type]
        return CouponErrorCode.EXPIRED
    if coupon.is_exhausted:
        return CouponErrorCode.EXHAUSTED
    return None


def _is_well_formed_code(code: str | None) -> bool:
    if not code:
        return False
    code = code.strip().upper()
    return len(code) <= settings.COUPON_CODE_MAX_LENGTH and bool(CODE_PATTERN.match(code))


class CouponService:
    """Service for coupon validation, discount calculation and usage."""

    def __init__(self, db: Session):
        self.db = db
        self.coupon_repo = CouponRepository(db)
        self.plan_repo = PlanRepository(db)

    # Administration

    def create_coupon(self, data: CouponCreate) -> Coupon:
        """Create a coupon after checking referenced plans exist.

        Raises:
            ValueError: If the code is taken or a referenced plan is unknown.
        """
        if self.coupon_repo.get_by_code(data.code):
            raise ValueError(f"Coupon '{data.code}' already exists")

        self._check_plans_exist(data.coupon_type.value, data.plan_code, data.applicable_plans)

        coupon = self.coupon_repo.create(data)
        logger.info("Coupon %s created by %s", coupon.code, coupon.created_by)
        return coupon

    def update_coupon(self, coupon_id: UUID, data: CouponUpdate) -> Coupon:
        """Update a coupon, re-running the same checks as creation.

        Raises:
            ValueError: If the coupon is not found or the update is invalid.
        """
        coupon = self.coupon_repo.get_by_id(coupon_id)
        if not coupon:
            raise ValueError(f"Coupon {coupon_id} not found")

        self._check_plans_exist(str(coupon.coupon_type), data.plan_code, data.applicable_plans)

        valid_from = data.valid_from or coupon.valid_from
        valid_until = data.valid_until or coupon.valid_until
        if as_utc(valid_from) >= as_utc(valid_until):  # type: ignore[arg-type]
            raise ValueError("validFrom must be earlier than validUntil")

        if coupon.coupon_type == CouponType.PLAN_ASSIGNMENT.value:
            fields_set = data.model_fields_set
            plan_code = data.plan_code if "plan_code" in fields_set else coupon.plan_code
            days = data.variant_days if "variant_days" in fields_set else coupon.variant_days
            if not plan_code:
                raise ValueError("planCode is required for plan_assignment coupons")
            if not days:
                raise ValueError("variantDays is required for plan_assignment coupons")

        if coupon.coupon_type == CouponType.PERCENTAGE.value and data.value is not None:
            if data.value > 100:
                raise ValueError("percentage value must be between 0 and 100")

        updated = self.coupon_repo.update(coupon_id, data)
        logger.info("Coupon %s updated", coupon.code)
        return updated  # type: ignore[return-value]

    def delete_coupon(self, coupon_id: UUID) -> bool:
        deleted = self.coupon_repo.delete(coupon_id)
        if deleted:
            logger.info("Coupon %s deleted", coupon_id)
        return deleted

    def _check_plans_exist(
        self,
        coupon_type: str,
        plan_code: str | None,
        applicable_plans: list[str] | None,
    ) -> None:
        if coupon_type == CouponType.PLAN_ASSIGNMENT.value and plan_code:
            if not self.plan_repo.get_by_code(plan_code):
                raise ValueError(f"Plan '{plan_code}' does not exist")
        for code in applicable_plans or []:
            if not self.plan_repo.get_by_code(code):
                raise ValueError(f"Plan '{code}' does not exist")

    # Validation

    def check_availability(
        self, coupon: Coupon | None, now: datetime | None = None
    ) -> CouponErrorCode | None:
        return check_availability(coupon, now or utc_now())

    def validate_coupon(
        self,
        code: str,
        plan_code: str | None = None,
        variant_days: int | None = None,
        upgrade_id: str | None = None,
        now: datetime | None = None,
    ) -> CouponValidation:
        """Check that a coupon exists, is available now and fits the purchase."""
        if not _is_well_formed_code(code):
            return CouponValidation(is_valid=False, error=CouponErrorCode.INVALID_CODE)

        coupon = self.coupon_repo.get_by_code(code)
        error = check_availability(coupon, now or utc_now())
        if error:
            return CouponValidation(is_valid=False, coupon=coupon, error=error)

        rule = derive_applicability(coupon)  # type: ignore[arg-type]
        if not is_applicable(rule, plan_code, variant_days, upgrade_id):
            if isinstance(rule, RestrictionRequired):
                error = CouponErrorCode.RESTRICTION_REQUIRED
            elif isinstance(rule, UpgradeOnly) or (upgrade_id and not plan_code):
                error = CouponErrorCode.UPGRADE_MISMATCH
            else:
                error = CouponErrorCode.PLAN_VARIANT_MISMATCH
            return CouponValidation(is_valid=False, coupon=coupon, error=error)

        return CouponValidation(is_valid=True, coupon=coupon)

    # Discount calculation

    def apply_coupon(
        self,
        code: str,
        original_price: Decimal,
        plan_code: str | None = None,
        variant_days: int | None = None,
        upgrade_id: str | None = None,
        now: datetime | None = None,
    ) -> CouponApplication:
        """Validate a coupon and compute the discounted price.

        Args:
            code: The coupon code, any case.
            original_price: Price before discount; must be positive.
            plan_code: Plan being purchased, if any.
            variant_days: Variant duration being purchased, if known.
            upgrade_id: Upgrade being purchased, if any.
            now: Clock override for the availability window.

        Returns:
            CouponApplication; business failures are reported through
            ``success``/``error`` rather than raised.
        """
        original_price = Decimal(str(original_price))

        if original_price <= 0:
            return self._failed(original_price, CouponErrorCode.FREE_ITEM_INELIGIBLE)

        validation = self.validate_coupon(code, plan_code, variant_days, upgrade_id, now)
        if not validation.is_valid or validation.coupon is None:
            return self._failed(original_price, validation.error)  # type: ignore[arg-type]

        coupon = validation.coupon
        coupon_type = str(coupon.coupon_type)
        value = Decimal(str(coupon.value or 0))
        assigned_plan_code: str | None = None
        assigned_days: int | None = None

        if coupon_type == CouponType.PLAN_ASSIGNMENT.value:
            final_price = Decimal("0")
            assigned_plan_code = str(coupon.plan_code)
            assigned_days = coupon.variant_days  # type: ignore[assignment]
        else:
            if coupon_type == CouponType.PERCENTAGE.value:
                discount = original_price * value / Decimal("100")
            else:
                discount = value
            final_price = original_price - discount

            if plan_code and coupon_type in DISCOUNT_TYPES:
                variant = self._select_variant(plan_code, variant_days)
                if variant is not None:
                    assigned_plan_code = plan_code.strip().upper()
                    assigned_days = variant["days"]

        final_price = max(Decimal("0"), final_price)
        discount = original_price - final_price

        return CouponApplication(
            success=True,
            original_price=original_price,
            final_price=final_price,
            discount=discount,
            assigned_plan_code=assigned_plan_code,
            variant_days=assigned_days,
        )

    def _select_variant(self, plan_code: str, variant_days: int | None) -> dict[str, Any] | None:
        """Requested variant if the plan has it, otherwise the cheapest one.

        Ties on price go to the first variant in catalog order. The variant
        price is informational; discounts are always computed on the price
        the caller supplied.
        """
        plan = self.plan_repo.get_by_code(plan_code)
        if plan is None:
            return None
        variants = plan.variant_list()
        if not variants:
            return None

        if variant_days is not None:
            for variant in variants:
                if variant["days"] == variant_days:
                    return variant

        return min(variants, key=lambda v: v["price"])

    @staticmethod
    def _failed(original_price: Decimal, error: CouponErrorCode) -> CouponApplication:
        return CouponApplication(
            success=False,
            original_price=original_price,
            final_price=original_price,
            discount=Decimal("0"),
            error=error,
        )

    # Usage accounting

    def record_usage(self, code: str) -> UsageRecord:
        """Count one successful use of a coupon.

        Call after the purchase that used the coupon has been committed. The
        ceiling check performed here is authoritative; the one done while
        calculating the discount is advisory only.
        """
        coupon = self.coupon_repo.increment_usage(code)
        if coupon is not None:
            logger.info(
                "Usage recorded for coupon %s (%d/%s)",
                coupon.code,
                coupon.current_uses,
                "unlimited" if coupon.max_uses == UNLIMITED_USES else coupon.max_uses,
            )
            return UsageRecord(success=True, current_uses=coupon.current_uses)  # type: ignore[arg-type]

        existing = self.coupon_repo.get_by_code(code)
        if existing is None:
            return UsageRecord(success=False, error=CouponErrorCode.NOT_FOUND)

        logger.warning("Coupon %s is exhausted, usage not recorded", existing.code)
        return UsageRecord(
            success=False,
            current_uses=existing.current_uses,  # type: ignore[arg-type]
            error=CouponErrorCode.EXHAUSTED,
        )

    # Reporting

    def get_stats(self, now: datetime | None = None) -> dict[str, Any]:
        """Coupon counts overall, active, expired, exhausted and by type."""
        now = now or utc_now()
        active = self.db.query(Coupon).filter(Coupon.is_active == True)  # noqa: E712

        expired = active.filter(Coupon.valid_until < now).count()
        exhausted = active.filter(
            Coupon.max_uses != UNLIMITED_USES,
            Coupon.current_uses >= Coupon.max_uses,
        ).count()
        by_type = dict(
            self.db.query(Coupon.coupon_type, func.count(Coupon.id))
            .filter(Coupon.is_active == True)  # noqa: E712
            .group_by(Coupon.coupon_type)
            .all()
        )

        return {
            "total": self.coupon_repo.count(),
            "active": active.count(),
            "expired": expired,
            "exhausted": exhausted,
            "by_type": by_type,
        }
