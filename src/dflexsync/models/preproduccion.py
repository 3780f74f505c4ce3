"""
Pre-production models.

Three stores keyed on the order number (NV):

- ``preproduccion_sql``: raw ERP snapshot, fully replaced on every sync.
- ``preproduccion_valores``: sparse overlay of manual edits and formula output.
- ``preproduccion_formulas``: one expression per target column.
"""

from typing import Any

from sqlalchemy import BigInteger, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from dflexsync.db.base import Base, JSONType, TimestampMixin


class PreproduccionSql(TimestampMixin, Base):
    """Raw snapshot row as last read from the ERP (plus ingestion-derived fields)."""

    __tablename__ = "preproduccion_sql"

    nv: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)

    # ERP ``ID`` column, kept as a secondary key
    erp_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True, index=True)

    data: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)

    def __repr__(self) -> str:
        return f"<PreproduccionSql nv={self.nv}>"


class PreproduccionValores(TimestampMixin, Base):
    """Overlay row: manual overrides plus computed columns, never a full copy."""

    __tablename__ = "preproduccion_valores"

    nv: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)

    data: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)

    def __repr__(self) -> str:
        return f"<PreproduccionValores nv={self.nv}>"


class PreproduccionFormula(TimestampMixin, Base):
    """Formula definition applied uniformly to every NV."""

    __tablename__ = "preproduccion_formulas"

    column_name: Mapped[str] = mapped_column(String(200), primary_key=True)

    # Empty expression means passthrough (no formula)
    expression: Mapped[str] = mapped_column(Text, nullable=False, default="")

    def __repr__(self) -> str:
        return f"<PreproduccionFormula {self.column_name}>"
