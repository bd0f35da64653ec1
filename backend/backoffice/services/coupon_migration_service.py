"""Batch migrations that fold legacy coupon applicability into newer formats.

Two procedures, both idempotent and both leaving every legacy field in place:

* ``migrate_legacy_plan_ids`` turns ``validPlanIds`` (``"<planId>-<days>"`` or
  a bare plan id/code) into ``validPlanCodes`` + ``validVariantDays``.
* ``migrate_to_plan_variants`` builds the canonical ``validPlanVariants`` from
  ``validPlanIds`` and/or ``validPlanCodes`` + ``validVariantDays``.

Crossing every plan code with every variant day can produce combinations
that were never intended, so coupons migrated that way are flagged for
manual review in the report.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from sqlalchemy.orm import Session

from backoffice.models.coupon import DISCOUNT_TYPES, Coupon
from backoffice.models.plan import PlanDefinition
from backoffice.repositories.coupon_repository import CouponRepository
from backoffice.repositories.plan_repository import PlanRepository
from backoffice.services.coupon_applicability import PlanVariant

logger = logging.getLogger(__name__)


class MigrationStatus(str, Enum):
    MIGRATED = "migrated"
    SKIPPED = "skipped"
    ERROR = "error"


@dataclass
class MigrationItem:
    code: str
    status: MigrationStatus
    message: str = ""
    before: dict[str, Any] | None = None
    after: dict[str, Any] | None = None
    needs_review: bool = False
    unresolved_ids: list[str] = field(default_factory=list)


@dataclass
class MigrationReport:
    """Per-coupon outcomes plus aggregate counts for operator review."""

    name: str
    details: list[MigrationItem] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.details)

    @property
    def migrated(self) -> int:
        return self._count(MigrationStatus.MIGRATED)

    @property
    def skipped(self) -> int:
        return self._count(MigrationStatus.SKIPPED)

    @property
    def errors(self) -> int:
        return self._count(MigrationStatus.ERROR)

    @property
    def needs_review(self) -> list[MigrationItem]:
        return [item for item in self.details if item.needs_review]

    def _count(self, status: MigrationStatus) -> int:
        return sum(1 for item in self.details if item.status == status)

    def add(self, item: MigrationItem) -> None:
        self.details.append(item)

    def summary_lines(self) -> list[str]:
        lines = [
            f"Migration: {self.name}",
            f"  Total coupons reviewed: {self.total}",
            f"  Migrated: {self.migrated}",
            f"  Skipped: {self.skipped}",
            f"  Errors: {self.errors}",
        ]
        for status in (MigrationStatus.MIGRATED, MigrationStatus.ERROR):
            items = [item for item in self.details if item.status == status]
            if items:
                lines.append(f"  {status.value.capitalize()} coupons:")
                lines.extend(f"    - {item.code}: {item.message}" for item in items)
        if self.needs_review:
            lines.append("  Needs manual review (plan codes crossed with variant days):")
            lines.extend(f"    - {item.code}" for item in self.needs_review)
        return lines


def parse_legacy_plan_id(value: str) -> tuple[str, int | None]:
    """Split ``"<identifier>-<days>"`` on the last dash.

    Returns ``(value, None)`` when there is no positive numeric suffix.
    """
    head, sep, tail = value.rpartition("-")
    if sep and head and tail.isdigit() and int(tail) > 0:
        return head, int(tail)
    return value, None


def _applicability_snapshot(coupon: Coupon) -> dict[str, Any]:
    return {
        "validPlanIds": list(coupon.valid_plan_ids or []),
        "validPlanCodes": list(coupon.valid_plan_codes or []),
        "validVariantDays": list(coupon.valid_variant_days or []),
        "validPlanVariants": list(coupon.valid_plan_variants or []),
    }


class CouponMigrationService:
    """Offline coupon migrations. Not safe to run concurrently."""

    def __init__(self, db: Session):
        self.db = db
        self.coupon_repo = CouponRepository(db)
        self.plan_repo = PlanRepository(db)

    def resolve_legacy_id(self, raw_id: str) -> tuple[PlanDefinition | None, int | None]:
        """Resolve a ``validPlanIds`` entry to a plan and optional variant days.

        Suffixed ids are looked up by raw plan id. When that misses, the whole
        string is retried as a plan code or id, since codes may themselves end
        in ``-<digits>``.
        """
        identifier, days = parse_legacy_plan_id(raw_id)
        if days is not None:
            plan = self.plan_repo.get_by_id(identifier)
            if plan is not None:
                return plan, days
        return self.plan_repo.get_by_code_or_id(raw_id), None

    def migrate_legacy_plan_ids(self) -> MigrationReport:
        """Populate ``validPlanCodes``/``validVariantDays`` from ``validPlanIds``."""
        report = MigrationReport(name="validPlanIds -> validPlanCodes + validVariantDays")

        for coupon in self.coupon_repo.get_all_by_types(DISCOUNT_TYPES):
            code = str(coupon.code)
            try:
                report.add(self._migrate_legacy_plan_ids_one(coupon))
            except Exception as exc:
                self.db.rollback()
                logger.exception("Failed to migrate coupon %s", code)
                report.add(MigrationItem(code=code, status=MigrationStatus.ERROR, message=str(exc)))

        logger.info(
            "Legacy plan id migration: %d migrated, %d skipped, %d errors",
            report.migrated,
            report.skipped,
            report.errors,
        )
        return report

    def _migrate_legacy_plan_ids_one(self, coupon: Coupon) -> MigrationItem:
        code = str(coupon.code)
        if not coupon.valid_plan_ids:
            return MigrationItem(code, MigrationStatus.SKIPPED, "No validPlanIds to migrate")
        if coupon.valid_plan_codes:
            return MigrationItem(code, MigrationStatus.SKIPPED, "Already has validPlanCodes")

        plan_codes: dict[str, None] = {}
        variant_days: dict[int, None] = {}
        unresolved: list[str] = []

        for raw_id in coupon.valid_plan_ids:
            plan, days = self.resolve_legacy_id(raw_id)
            if plan is None:
                logger.warning("Coupon %s: plan id %r did not resolve to any plan", code, raw_id)
                unresolved.append(raw_id)
                continue
            plan_codes[str(plan.code)] = None
            if days is not None:
                variant_days[days] = None

        if not plan_codes:
            return MigrationItem(
                code,
                MigrationStatus.ERROR,
                f"No plan ids could be resolved: {', '.join(unresolved)}",
                unresolved_ids=unresolved,
            )

        before = _applicability_snapshot(coupon)
        self.coupon_repo.update_fields(
            coupon.id,  # type: ignore[arg-type]
            {
                "valid_plan_codes": list(plan_codes),
                "valid_variant_days": list(variant_days),
            },
        )
        after = dict(
            before, validPlanCodes=list(plan_codes), validVariantDays=list(variant_days)
        )

        message = f"{len(plan_codes)} plans, {len(variant_days)} variants"
        if unresolved:
            message += f"; unresolved ids: {', '.join(unresolved)}"
        return MigrationItem(
            code,
            MigrationStatus.MIGRATED,
            message,
            before=before,
            after=after,
            unresolved_ids=unresolved,
        )

    def migrate_to_plan_variants(self) -> MigrationReport:
        """Populate the canonical ``validPlanVariants`` from the legacy fields."""
        report = MigrationReport(name="legacy applicability -> validPlanVariants")

        for coupon in self.coupon_repo.get_all_by_types(DISCOUNT_TYPES):
            code = str(coupon.code)
            try:
                report.add(self._migrate_to_plan_variants_one(coupon))
            except Exception as exc:
                self.db.rollback()
                logger.exception("Failed to migrate coupon %s", code)
                report.add(MigrationItem(code=code, status=MigrationStatus.ERROR, message=str(exc)))

        logger.info(
            "Plan variant migration: %d migrated, %d skipped, %d errors, %d need review",
            report.migrated,
            report.skipped,
            report.errors,
            len(report.needs_review),
        )
        return report

    def _migrate_to_plan_variants_one(self, coupon: Coupon) -> MigrationItem:
        code = str(coupon.code)
        if coupon.valid_plan_variants:
            return MigrationItem(code, MigrationStatus.SKIPPED, "Already has validPlanVariants")
        if not coupon.valid_plan_ids and not coupon.valid_plan_codes:
            return MigrationItem(code, MigrationStatus.SKIPPED, "No legacy applicability data")

        combinations: dict[PlanVariant, None] = {}
        unresolved: list[str] = []
        crossed = False

        for raw_id in coupon.valid_plan_ids or []:
            plan, days = self.resolve_legacy_id(raw_id)
            if plan is None:
                unresolved.append(raw_id)
            elif days is not None:
                combinations[PlanVariant(str(plan.code), days)] = None
            else:
                for plan_days in plan.variant_days():
                    combinations[PlanVariant(str(plan.code), plan_days)] = None

        plan_codes = [str(plan_code).upper() for plan_code in coupon.valid_plan_codes or []]
        if plan_codes and coupon.valid_variant_days:
            crossed = True
            logger.warning(
                "Coupon %s: crossing %d plan codes with %d variant days, review the result",
                code,
                len(plan_codes),
                len(coupon.valid_variant_days),
            )
            for plan_code in plan_codes:
                for days in coupon.valid_variant_days:
                    combinations[PlanVariant(plan_code, int(days))] = None
        else:
            for plan_code in plan_codes:
                plan = self.plan_repo.get_by_code(plan_code)
                if plan is None:
                    unresolved.append(plan_code)
                    continue
                for plan_days in plan.variant_days():
                    combinations[PlanVariant(str(plan.code), plan_days)] = None

        if unresolved:
            logger.warning("Coupon %s: unresolved plan references %s", code, unresolved)

        if not combinations:
            return MigrationItem(
                code,
                MigrationStatus.ERROR,
                "No plan/variant combinations generated",
                unresolved_ids=unresolved,
            )

        documents = [combination.to_document() for combination in combinations]
        before = _applicability_snapshot(coupon)
        self.coupon_repo.update_fields(
            coupon.id,  # type: ignore[arg-type]
            {"valid_plan_variants": documents},
        )

        message = f"{len(documents)} combinations"
        if crossed:
            message += " (cartesian product, review required)"
        if unresolved:
            message += f"; unresolved: {', '.join(unresolved)}"
        return MigrationItem(
            code,
            MigrationStatus.MIGRATED,
            message,
            before=before,
            after=dict(before, validPlanVariants=documents),
            needs_review=crossed,
            unresolved_ids=unresolved,
        )
