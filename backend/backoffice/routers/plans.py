"""Plan catalog endpoints used to seed plans that coupons reference."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from backoffice.core.database import get_db
from backoffice.models.plan import PlanDefinition
from backoffice.repositories.plan_repository import PlanRepository
from backoffice.schemas.plan import PlanCreate, PlanResponse

router = APIRouter()


@router.post(
    "/",
    response_model=PlanResponse,
    status_code=201,
    summary="Create plan",
    responses={409: {"description": "Plan with this code already exists"}},
)
async def create_plan(
    data: PlanCreate,
    db: Session = Depends(get_db),
) -> PlanDefinition:
    repo = PlanRepository(db)
    if repo.get_by_code(data.code):
        raise HTTPException(status_code=409, detail="Plan with this code already exists")
    if data.id and repo.get_by_id(data.id):
        raise HTTPException(status_code=409, detail="Plan with this id already exists")
    return repo.create(data)


@router.get(
    "/{code}",
    response_model=PlanResponse,
    summary="Get plan",
    responses={404: {"description": "Plan not found"}},
)
async def get_plan(
    code: str,
    db: Session = Depends(get_db),
) -> PlanDefinition:
    plan = PlanRepository(db).get_by_code(code)
    if not plan:
        raise HTTPException(status_code=404, detail="Plan not found")
    return plan
