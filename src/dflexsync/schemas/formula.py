"""Formula schemas for request/response validation."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class FormulaUpsert(BaseModel):
    """Create or replace the formula of a column."""

    column_name: str = Field(..., min_length=1, max_length=200)
    expression: str = Field("", description="Empty means passthrough (no formula)")

    @field_validator("expression", mode="before")
    @classmethod
    def none_to_empty(cls, v: Optional[str]) -> str:
        return v or ""


class FormulaResponse(BaseModel):
    """Stored formula plus its compile status."""

    column_name: str
    expression: str
    updated_at: Optional[datetime] = None
    error: Optional[str] = Field(None, description="Compile error, if the expression is invalid")

    model_config = {"from_attributes": True}


class FormulaListResponse(BaseModel):
    """All formulas with compile diagnostics."""

    formulas: list[FormulaResponse]
    errors: dict[str, str] = Field(default_factory=dict)
    cyclic_columns: list[str] = Field(default_factory=list)
