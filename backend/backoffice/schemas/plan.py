from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator


class PlanVariantInput(BaseModel):
    days: int = Field(..., ge=1)
    price: Decimal = Field(..., ge=0)
    duration_rank: int = Field(default=0, ge=0)


class PlanCreate(BaseModel):
    id: str | None = Field(default=None, min_length=1, max_length=64)
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    variants: list[PlanVariantInput] = Field(default_factory=list)
    active: bool = True

    @field_validator("code")
    @classmethod
    def _upper_code(cls, value: str) -> str:
        return value.strip().upper()


class PlanVariantOutput(BaseModel):
    days: int
    price: Decimal
    duration_rank: int = 0


class PlanResponse(BaseModel):
    id: str
    code: str
    name: str
    description: str | None
    variants: list[PlanVariantOutput] = Field(default_factory=list)
    active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
