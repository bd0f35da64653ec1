"""Migrate coupons from validPlanIds to validPlanCodes + validVariantDays.

Each ``validPlanIds`` entry is either ``"<planId>-<days>"`` or a bare plan id
or code. ``validPlanIds`` is kept untouched for audit and rollback.

Run with: python scripts/migrate_coupons_to_plan_codes.py
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
        return CouponMigrationService(db).migrate_legacy_plan_ids()


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
