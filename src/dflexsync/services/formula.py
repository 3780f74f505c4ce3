"""Formula service for business logic."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dflexsync.core.exceptions import ValidationError
from dflexsync.core.logging import get_logger
from dflexsync.db.upsert import upsert
from dflexsync.formula import FormulaSet, compile_formula, compile_formulas
from dflexsync.models.preproduccion import PreproduccionFormula

logger = get_logger(__name__)


class FormulaService:
    """Service for column formula definitions."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def list_formulas(self) -> list[PreproduccionFormula]:
        """All formula definitions ordered by column name."""
        result = await self.db.execute(
            select(PreproduccionFormula).order_by(PreproduccionFormula.column_name)
        )
        return list(result.scalars().all())

    async def get_definitions(self) -> dict[str, str]:
        """Formula definitions as ``column -> expression``."""
        return {f.column_name: f.expression for f in await self.list_formulas()}

    async def load_formula_set(self) -> FormulaSet:
        """Read every definition and compile it; bad columns are reported, not raised."""
        return compile_formulas(await self.get_definitions())

    async def upsert_formula(
        self,
        column_name: str,
        expression: str,
    ) -> tuple[PreproduccionFormula, str | None]:
        """
        Create or replace the formula of a column.

        Invalid expressions are stored anyway so the user can fix them
        later; they are skipped when formulas are compiled.

        Args:
            column_name: Target column (case-sensitive)
            expression: Expression text, empty for passthrough

        Returns:
            Tuple of (stored formula, compile error or None)

        Raises:
            ValidationError: If the column name is empty
        """
        if not column_name or not column_name.strip():
            raise ValidationError(
                "column_name is required",
                errors=[{"field": "column_name", "message": "must not be empty"}],
            )

        expression = expression or ""
        await upsert(
            self.db,
            PreproduccionFormula,
            {"column_name": column_name, "expression": expression},
            index_elements=["column_name"],
        )
        await self.db.commit()

        formula = await self.db.get(
            PreproduccionFormula, column_name, populate_existing=True
        )

        error = None
        if expression.strip():
            try:
                compile_formula(column_name, expression)
            except ValueError as e:
                error = str(e)
                logger.warning(f"Stored invalid formula for column {column_name}: {e}")

        logger.info(f"Formula for column {column_name} saved")
        return formula, error
