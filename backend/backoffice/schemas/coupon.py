"""Coupon request and response schemas.

Field names travel over the wire in camelCase (``validPlanVariants``,
``maxUses`` ...) to stay compatible with stored documents and existing
clients; Python code uses the snake_case names.
"""

import re
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from backoffice.models.coupon import UNLIMITED_USES, CouponType
from backoffice.models.shared import as_utc

CODE_PATTERN = re.compile(r"^[A-Z0-9_-]+$")


def _canonical_code(value: str, field: str) -> str:
    value = value.strip().upper()
    if not CODE_PATTERN.match(value):
        raise ValueError(f"{field} must match [A-Z0-9_-]+")
    return value


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PlanVariantCombination(CamelModel):
    plan_code: str = Field(min_length=1, max_length=50)
    variant_days: int = Field(ge=1)

    @field_validator("plan_code")
    @classmethod
    def _upper_plan_code(cls, value: str) -> str:
        return _canonical_code(value, "planCode")


class _CouponRules(CamelModel):
    """Applicability and usage fields shared by create and update payloads."""

    @field_validator("plan_code", check_fields=False)
    @classmethod
    def _upper_plan_code(cls, value: str | None) -> str | None:
        if value is None:
            return value
        return _canonical_code(value, "planCode")

    @field_validator("valid_plan_codes", "applicable_plans", check_fields=False)
    @classmethod
    def _upper_plan_codes(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return value
        return [_canonical_code(code, "plan code") for code in value]

    @field_validator("valid_upgrade_ids", check_fields=False)
    @classmethod
    def _check_upgrade_ids(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return value
        for upgrade_id in value:
            if not CODE_PATTERN.match(upgrade_id):
                raise ValueError("upgrade ids must match [A-Z0-9_-]+")
        return value

    @field_validator("valid_variant_days", check_fields=False)
    @classmethod
    def _check_variant_days(cls, value: list[int] | None) -> list[int] | None:
        if value is not None and any(days < 1 for days in value):
            raise ValueError("variant days must be positive")
        return value

    @field_validator("max_uses", check_fields=False)
    @classmethod
    def _check_max_uses(cls, value: int | None) -> int | None:
        if value is not None and value != UNLIMITED_USES and value <= 0:
            raise ValueError("maxUses must be -1 (unlimited) or greater than 0")
        return value


class CouponCreate(_CouponRules):
    code: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    coupon_type: CouponType = Field(alias="type")
    value: Decimal = Field(default=Decimal("0"), ge=0)
    plan_code: str | None = None
    variant_days: int | None = Field(default=None, ge=1)
    valid_plan_variants: list[PlanVariantCombination] = Field(default_factory=list)
    valid_plan_codes: list[str] = Field(default_factory=list)
    valid_variant_days: list[int] = Field(default_factory=list)
    valid_plan_ids: list[str] = Field(default_factory=list)
    valid_upgrade_ids: list[str] = Field(default_factory=list)
    applicable_plans: list[str] = Field(default_factory=list)
    max_uses: int = UNLIMITED_USES
    valid_from: datetime
    valid_until: datetime
    is_active: bool = True
    created_by: str = Field(min_length=1, max_length=64)

    @field_validator("code")
    @classmethod
    def _upper_code(cls, value: str) -> str:
        return _canonical_code(value, "code")

    @model_validator(mode="after")
    def _check_type_rules(self) -> "CouponCreate":
        if self.coupon_type == CouponType.PERCENTAGE and self.value > 100:
            raise ValueError("percentage value must be between 0 and 100")
        if self.coupon_type == CouponType.PLAN_ASSIGNMENT:
            if not self.plan_code:
                raise ValueError("planCode is required for plan_assignment coupons")
            if not self.variant_days:
                raise ValueError("variantDays is required for plan_assignment coupons")
        if as_utc(self.valid_from) >= as_utc(self.valid_until):
            raise ValueError("validFrom must be earlier than validUntil")
        return self


# Columns that may be left out of an update but never cleared.
_NON_NULLABLE_UPDATE_FIELDS = (
    "name",
    "value",
    "valid_plan_variants",
    "valid_plan_codes",
    "valid_variant_days",
    "valid_plan_ids",
    "valid_upgrade_ids",
    "applicable_plans",
    "max_uses",
    "valid_from",
    "valid_until",
    "is_active",
)


class CouponUpdate(_CouponRules):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    value: Decimal | None = Field(default=None, ge=0)
    plan_code: str | None = None
    variant_days: int | None = Field(default=None, ge=1)
    valid_plan_variants: list[PlanVariantCombination] | None = None
    valid_plan_codes: list[str] | None = None
    valid_variant_days: list[int] | None = None
    valid_plan_ids: list[str] | None = None
    valid_upgrade_ids: list[str] | None = None
    applicable_plans: list[str] | None = None
    max_uses: int | None = None
    valid_from: datetime | None = None
    valid_until: datetime | None = None
    is_active: bool | None = None

    @model_validator(mode="after")
    def _reject_cleared_required_fields(self) -> "CouponUpdate":
        for name in _NON_NULLABLE_UPDATE_FIELDS:
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{to_camel(name)} cannot be null")
        return self


class CouponResponse(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: UUID
    code: str
    name: str
    description: str | None = None
    coupon_type: str = Field(alias="type")
    value: Decimal
    plan_code: str | None = None
    variant_days: int | None = None
    valid_plan_variants: list[PlanVariantCombination] = Field(default_factory=list)
    valid_plan_codes: list[str] = Field(default_factory=list)
    valid_variant_days: list[int] = Field(default_factory=list)
    valid_plan_ids: list[str] = Field(default_factory=list)
    valid_upgrade_ids: list[str] = Field(default_factory=list)
    applicable_plans: list[str] = Field(default_factory=list)
    max_uses: int
    current_uses: int
    remaining_uses: int
    is_exhausted: bool
    is_valid: bool
    valid_from: datetime
    valid_until: datetime
    is_active: bool
    created_by: str
    created_at: datetime
    updated_at: datetime


class CouponValidationResponse(CamelModel):
    is_valid: bool
    error: str | None = None
    message: str | None = None
    coupon: CouponResponse | None = None


class ApplyCouponRequest(CamelModel):
    code: str = Field(min_length=1, max_length=50)
    original_price: Decimal
    plan_code: str | None = None
    variant_days: int | None = None
    upgrade_id: str | None = None


class CouponApplicationResponse(CamelModel):
    original_price: Decimal
    final_price: Decimal
    discount: Decimal
    discount_percentage: int
    plan_code: str | None = None
    variant_days: int | None = None


class CouponUsageResponse(CamelModel):
    code: str
    current_uses: int


class CouponStatsResponse(CamelModel):
    total: int
    active: int
    expired: int
    exhausted: int
    by_type: dict[str, int] = Field(default_factory=dict)


class CouponErrorResponse(CamelModel):
    error: str
    message: str
    details: dict[str, Any] | None = None
