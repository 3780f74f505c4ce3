"""
Formula endpoints.

Handles the per-column formula definitions.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from dflexsync.api.deps import DbSession
from dflexsync.formula import compile_formulas
from dflexsync.schemas.formula import FormulaListResponse, FormulaResponse, FormulaUpsert
from dflexsync.services.formula import FormulaService

router = APIRouter()


def get_formula_service(db: DbSession) -> FormulaService:
    """Get formula service instance."""
    return FormulaService(db)


FormulaServiceDep = Annotated[FormulaService, Depends(get_formula_service)]


@router.get("", response_model=FormulaListResponse)
async def list_formulas(service: FormulaServiceDep) -> FormulaListResponse:
    """All formula definitions, with compile errors and cyclic columns."""
    formulas = await service.list_formulas()
    formula_set = compile_formulas({f.column_name: f.expression for f in formulas})

    return FormulaListResponse(
        formulas=[
            FormulaResponse(
                column_name=f.column_name,
                expression=f.expression,
                updated_at=f.updated_at,
                error=formula_set.errors.get(f.column_name),
            )
            for f in formulas
        ],
        errors=formula_set.errors,
        cyclic_columns=formula_set.cyclic_columns,
    )


@router.post("", response_model=FormulaResponse)
async def upsert_formula(payload: FormulaUpsert, service: FormulaServiceDep) -> FormulaResponse:
    """
    Create or replace the formula of a column.

    Invalid expressions are saved and reported in ``error``; an empty
    expression turns the column back into a passthrough.
    """
    formula, error = await service.upsert_formula(payload.column_name, payload.expression)
    return FormulaResponse(
        column_name=formula.column_name,
        expression=formula.expression,
        updated_at=formula.updated_at,
        error=error,
    )
