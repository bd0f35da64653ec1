"""Coupon repository for data access."""

from collections.abc import Iterable
from typing import Any
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from backoffice.models.coupon import UNLIMITED_USES, Coupon
from backoffice.schemas.coupon import CouponCreate, CouponUpdate


class CouponRepository:
    """Repository for Coupon model."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, coupon_id: UUID) -> Coupon | None:
        """Get a coupon by ID."""
        return self.db.query(Coupon).filter(Coupon.id == coupon_id).first()

    def get_by_code(self, code: str) -> Coupon | None:
        """Get a coupon by code, ignoring case."""
        return self.db.query(Coupon).filter(Coupon.code == code.strip().upper()).first()

    def get_all_by_types(self, coupon_types: Iterable[str]) -> list[Coupon]:
        """All coupons of the given types, oldest first."""
        return (
            self.db.query(Coupon)
            .filter(Coupon.coupon_type.in_(list(coupon_types)))
            .order_by(Coupon.created_at.asc(), Coupon.code.asc())
            .all()
        )

    def count(self) -> int:
        return self.db.query(func.count(Coupon.id)).scalar() or 0

    def create(self, data: CouponCreate) -> Coupon:
        """Create a new coupon."""
        coupon = Coupon(
            code=data.code,
            name=data.name,
            description=data.description,
            coupon_type=data.coupon_type.value,
            value=data.value,
            plan_code=data.plan_code,
            variant_days=data.variant_days,
            valid_plan_variants=[
                pv.model_dump(by_alias=True) for pv in data.valid_plan_variants
            ],
            valid_plan_codes=list(data.valid_plan_codes),
            valid_variant_days=list(data.valid_variant_days),
            valid_plan_ids=list(data.valid_plan_ids),
            valid_upgrade_ids=list(data.valid_upgrade_ids),
            applicable_plans=list(data.applicable_plans),
            max_uses=data.max_uses,
            current_uses=0,
            valid_from=data.valid_from,
            valid_until=data.valid_until,
            is_active=data.is_active,
            created_by=data.created_by,
        )
        self.db.add(coupon)
        self.db.commit()
        self.db.refresh(coupon)
        return coupon

    def update(self, coupon_id: UUID, data: CouponUpdate) -> Coupon | None:
        """Update a coupon by ID."""
        coupon = self.get_by_id(coupon_id)
        if not coupon:
            return None

        update_data = data.model_dump(exclude_unset=True)

        if "valid_plan_variants" in update_data and update_data["valid_plan_variants"] is not None:
            update_data["valid_plan_variants"] = [
                pv.model_dump(by_alias=True) for pv in data.valid_plan_variants or []
            ]

        for key, value in update_data.items():
            setattr(coupon, key, value)

        self.db.commit()
        self.db.refresh(coupon)
        return coupon

    def update_fields(self, coupon_id: UUID, patch: dict[str, Any]) -> int:
        """Set individual columns without rewriting the whole row.

        ``patch`` is keyed by attribute name. Returns the number of rows
        updated.
        """
        values = {getattr(Coupon, key): value for key, value in patch.items()}
        count = (
            self.db.query(Coupon)
            .filter(Coupon.id == coupon_id)
            .update(values, synchronize_session=False)
        )
        self.db.commit()
        return count

    def increment_usage(self, code: str) -> Coupon | None:
        """Atomically add one use if the coupon is still below its ceiling.

        The ceiling check and the increment are a single conditional UPDATE,
        so concurrent callers cannot both consume the last use. Returns the
        refreshed coupon, or None when no row qualified.
        """
        count = (
            self.db.query(Coupon)
            .filter(
                Coupon.code == code.strip().upper(),
                or_(
                    Coupon.max_uses == UNLIMITED_USES,
                    Coupon.current_uses < Coupon.max_uses,
                ),
            )
            .update(
                {Coupon.current_uses: Coupon.current_uses + 1},
                synchronize_session=False,
            )
        )
        self.db.commit()
        if not count:
            return None

        coupon = self.get_by_code(code)
        if coupon is not None:
            self.db.refresh(coupon)
        return coupon

    def delete(self, coupon_id: UUID) -> bool:
        """Hard delete a coupon by ID."""
        coupon = self.get_by_id(coupon_id)
        if not coupon:
            return False

        self.db.delete(coupon)
        self.db.commit()
        return True
