"""Plan catalog model: a plan code and its purchasable duration variants."""

from decimal import Decimal
from typing import Any

from sqlalchemy import Boolean, Column, DateTime, String, Text, func
from sqlalchemy.types import JSON

from backoffice.core.database import Base
from backoffice.models.shared import generate_legacy_id


class PlanDefinition(Base):
    """A purchasable plan.

    ``variants`` is stored in catalog order as a list of
    ``{"days": int, "price": number, "duration_rank": int}`` objects. Catalog
    order matters: it breaks ties when the cheapest variant is selected.
    """

    __tablename__ = "plans"

    # Opaque string ids so identifiers imported from the legacy store
    # ("abc123", hex object ids) remain addressable.
    id = Column(String(64), primary_key=True, default=generate_legacy_id)
    code = Column(String(50), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    variants = Column(JSON, nullable=False, default=list)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def variant_list(self) -> list[dict[str, Any]]:
        """Variants with prices as Decimal, in catalog order."""
        result = []
        for variant in self.variants or []:
            result.append(
                {
                    "days": int(variant["days"]),
                    "price": Decimal(str(variant["price"])),
                    "duration_rank": int(variant.get("duration_rank", 0)),
                }
            )
        return result

    def variant_days(self) -> list[int]:
        return [variant["days"] for variant in self.variant_list()]
