"""Coupon model for discounts and plan grants."""

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String, Text, func
from sqlalchemy.types import JSON

from backoffice.core.database import Base
from backoffice.models.shared import UUIDType, as_utc, generate_uuid, utc_now

UNLIMITED_USES = -1


class CouponType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"
    PLAN_ASSIGNMENT = "plan_assignment"


DISCOUNT_TYPES = (CouponType.PERCENTAGE.value, CouponType.FIXED_AMOUNT.value)


class Coupon(Base):
    """Coupon model.

    Applicability columns keep their historical camelCase names: the
    migration procedures locate legacy data by these names.
    """

    __tablename__ = "coupons"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    code = Column(String(50), unique=True, index=True, nullable=False)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)

    coupon_type = Column("type", String(20), nullable=False, index=True)
    value = Column(Numeric(12, 4), nullable=False, default=0)

    # plan_assignment only
    plan_code = Column("planCode", String(50), nullable=True)
    variant_days = Column("variantDays", Integer, nullable=True)

    # Applicability, highest precedence first
    valid_plan_variants = Column("validPlanVariants", JSON, nullable=False, default=list)
    valid_plan_codes = Column("validPlanCodes", JSON, nullable=False, default=list)
    valid_variant_days = Column("validVariantDays", JSON, nullable=False, default=list)
    valid_plan_ids = Column("validPlanIds", JSON, nullable=False, default=list)
    valid_upgrade_ids = Column("validUpgradeIds", JSON, nullable=False, default=list)
    applicable_plans = Column("applicablePlans", JSON, nullable=False, default=list)

    max_uses = Column("maxUses", Integer, nullable=False, default=UNLIMITED_USES)
    current_uses = Column("currentUses", Integer, nullable=False, default=0)

    valid_from = Column("validFrom", DateTime(timezone=True), nullable=False)
    valid_until = Column("validUntil", DateTime(timezone=True), nullable=False)
    is_active = Column("isActive", Boolean, nullable=False, default=True, index=True)

    created_by = Column("createdBy", String(64), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def is_exhausted(self) -> bool:
        return self.max_uses != UNLIMITED_USES and (self.current_uses or 0) >= self.max_uses

    @property
    def remaining_uses(self) -> int:
        if self.max_uses == UNLIMITED_USES:
            return UNLIMITED_USES
        return max(0, self.max_uses - (self.current_uses or 0))

    def is_valid_at(self, now: datetime) -> bool:
        """Active, inside the inclusive window and below the usage ceiling."""
        return (
            bool(self.is_active)
            and as_utc(self.valid_from) <= now <= as_utc(self.valid_until)
            and not self.is_exhausted
        )

    @property
    def is_valid(self) -> bool:
        return self.is_valid_at(utc_now())
