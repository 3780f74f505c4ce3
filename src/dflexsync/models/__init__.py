"""SQLAlchemy models for Dflex Sync."""

from dflexsync.models.preproduccion import (
    PreproduccionFormula,
    PreproduccionSql,
    PreproduccionValores,
)

__all__ = [
    "PreproduccionFormula",
    "PreproduccionSql",
    "PreproduccionValores",
]
