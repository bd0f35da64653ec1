"""Migrate coupons to the canonical validPlanVariants format.

Sources, in order: ``validPlanIds`` (suffixed ids give exact pairs, bare ids
expand to every variant of the plan), then ``validPlanCodes`` crossed with
``validVariantDays`` (or every variant of each plan when no days are listed).
Legacy fields are kept. Coupons built from a cross product are listed for
manual review because the cross product may include unintended pairs.

Run with: python scripts/migrate_coupons_to_plan_variants.py
"""

import json
import logging
import sys
from dataclasses import asdict

from backoffice.core.config import settings
from backoffice.core.database import session_scope
from backoffice.services.coupon_migration_service import CouponMigrationService, MigrationReport

logger = logging.getLogger(__name__)


def run() -> MigrationReport:
    with session_scope() as db:
        return CouponMigrationService(db).migrate_to_plan_variants()


def main() -> int:
    logging.basicConfig(level=settings.LOG_LEVEL)
    try:
        report = run()
    except Exception:
        logger.exception("Coupon migration aborted")
        return 1

    print("\n".join(report.summary_lines()))
    if "--json" in sys.argv[1:]:
        print(json.dumps([asdict(item) for item in report.details], default=str, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
