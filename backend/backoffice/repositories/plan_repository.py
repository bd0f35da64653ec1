from sqlalchemy.orm import Session

from backoffice.models.plan import PlanDefinition
from backoffice.schemas.plan import PlanCreate


class PlanRepository:
    """Plan catalog lookups used by coupon validation and migration."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, plan_id: str) -> PlanDefinition | None:
        return self.db.query(PlanDefinition).filter(PlanDefinition.id == plan_id).first()

    def get_by_code(self, code: str) -> PlanDefinition | None:
        return (
            self.db.query(PlanDefinition)
            .filter(PlanDefinition.code == code.strip().upper())
            .first()
        )

    def get_by_code_or_id(self, identifier: str) -> PlanDefinition | None:
        """Resolve a legacy reference: code first (case-insensitive), then raw id."""
        return self.get_by_code(identifier) or self.get_by_id(identifier)

    def create(self, data: PlanCreate) -> PlanDefinition:
        plan = PlanDefinition(
            code=data.code,
            name=data.name,
            description=data.description,
            variants=[
                {
                    "days": variant.days,
                    "price": str(variant.price),
                    "duration_rank": variant.duration_rank,
                }
                for variant in data.variants
            ],
            active=data.active,
        )
        if data.id:
            plan.id = data.id  # type: ignore[assignment]
        self.db.add(plan)
        self.db.commit()
        self.db.refresh(plan)
        return plan
