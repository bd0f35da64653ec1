"""Coupon applicability: which plan, variant or upgrade a coupon may be used for.

Coupons have accumulated several overlapping ways of recording what they
apply to. :func:`derive_applicability` reads a coupon once and returns exactly
one of the rule types below, chosen by precedence:

1. ``PlanGrant`` for plan_assignment coupons.
2. ``ExactPairs`` when ``validPlanVariants`` is non-empty.
3. ``PlanCrossDays`` when ``validPlanCodes`` is non-empty.
4. ``LegacyIds`` when ``validPlanIds`` is non-empty.
5. ``UpgradeOnly`` when only ``validUpgradeIds`` is non-empty.
6. ``RestrictionRequired`` for discount coupons with none of the above.
7. ``LegacyApplicablePlans`` for any other coupon type.

:func:`resolve` then matches a purchase context against that single rule.
Lower-precedence fields are never consulted once a higher one is present,
and nothing here looks at dates, the active flag or usage counters.
"""

from dataclasses import dataclass
from typing import Any

from backoffice.models.coupon import DISCOUNT_TYPES, Coupon, CouponType


@dataclass(frozen=True)
class PlanVariant:
    """An exact plan code and variant duration pair."""

    plan_code: str
    variant_days: int

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "PlanVariant":
        return cls(
            plan_code=str(document["planCode"]).upper(),
            variant_days=int(document["variantDays"]),
        )

    def to_document(self) -> dict[str, Any]:
        return {"planCode": self.plan_code, "variantDays": self.variant_days}


@dataclass(frozen=True)
class PlanGrant:
    plan_code: str
    variant_days: int | None


@dataclass(frozen=True)
class ExactPairs:
    pairs: frozenset[PlanVariant]


@dataclass(frozen=True)
class PlanCrossDays:
    plan_codes: frozenset[str]
    variant_days: frozenset[int]
    upgrade_ids: frozenset[str]


@dataclass(frozen=True)
class LegacyIds:
    plan_ids: tuple[str, ...]
    upgrade_ids: frozenset[str]


@dataclass(frozen=True)
class UpgradeOnly:
    upgrade_ids: frozenset[str]


@dataclass(frozen=True)
class RestrictionRequired:
    """A discount coupon with no qualifying list; never applicable."""


@dataclass(frozen=True)
class LegacyApplicablePlans:
    """Oldest format. An empty list places no restriction on the plan."""

    plan_codes: frozenset[str]


Applicability = (
    PlanGrant
    | ExactPairs
    | PlanCrossDays
    | LegacyIds
    | UpgradeOnly
    | RestrictionRequired
    | LegacyApplicablePlans
)


def derive_applicability(coupon: Coupon) -> Applicability:
    """Pick the single applicability rule that governs ``coupon``."""
    coupon_type = str(coupon.coupon_type)

    if coupon_type == CouponType.PLAN_ASSIGNMENT.value:
        return PlanGrant(
            plan_code=str(coupon.plan_code or "").upper(),
            variant_days=coupon.variant_days,  # type: ignore[arg-type]
        )

    if coupon_type not in DISCOUNT_TYPES:
        return LegacyApplicablePlans(
            plan_codes=frozenset(str(code).upper() for code in coupon.applicable_plans or [])
        )

    if coupon.valid_plan_variants:
        return ExactPairs(
            pairs=frozenset(PlanVariant.from_document(pv) for pv in coupon.valid_plan_variants)
        )

    upgrade_ids = frozenset(coupon.valid_upgrade_ids or [])

    if coupon.valid_plan_codes:
        return PlanCrossDays(
            plan_codes=frozenset(str(code).upper() for code in coupon.valid_plan_codes),
            variant_days=frozenset(int(days) for days in coupon.valid_variant_days or []),
            upgrade_ids=upgrade_ids,
        )

    if coupon.valid_plan_ids:
        return LegacyIds(plan_ids=tuple(coupon.valid_plan_ids), upgrade_ids=upgrade_ids)

    if upgrade_ids:
        return UpgradeOnly(upgrade_ids=upgrade_ids)

    return RestrictionRequired()


def is_applicable(
    rule: Applicability,
    plan_code: str | None = None,
    variant_days: int | None = None,
    upgrade_id: str | None = None,
) -> bool:
    """Match a purchase context against an already derived rule."""
    plan_code = plan_code.strip().upper() if plan_code else None

    match rule:
        case PlanGrant():
            return plan_code is not None and plan_code == rule.plan_code

        case ExactPairs():
            if plan_code is None or variant_days is None:
                return False
            return PlanVariant(plan_code, variant_days) in rule.pairs

        case PlanCrossDays():
            if plan_code is not None and plan_code in rule.plan_codes:
                if not rule.variant_days:
                    return True
                return variant_days is not None and variant_days in rule.variant_days
            return _upgrade_matches(rule.upgrade_ids, upgrade_id)

        case LegacyIds():
            if plan_code is not None and any(
                plan_id.upper() == plan_code for plan_id in rule.plan_ids
            ):
                return True
            return _upgrade_matches(rule.upgrade_ids, upgrade_id)

        case UpgradeOnly():
            return _upgrade_matches(rule.upgrade_ids, upgrade_id)

        case RestrictionRequired():
            return False

        case LegacyApplicablePlans():
            if not rule.plan_codes:
                return True
            return plan_code is not None and plan_code in rule.plan_codes

    raise TypeError(f"Unknown applicability rule: {rule!r}")


def resolve(
    coupon: Coupon,
    plan_code: str | None = None,
    variant_days: int | None = None,
    upgrade_id: str | None = None,
) -> bool:
    """Whether ``coupon`` may be used for the given plan, variant or upgrade."""
    return is_applicable(derive_applicability(coupon), plan_code, variant_days, upgrade_id)


def _upgrade_matches(upgrade_ids: frozenset[str], upgrade_id: str | None) -> bool:
    return upgrade_id is not None and upgrade_id in upgrade_ids
