"""Finished orders (NV terminados).

A plain text file, one NV per line, lists orders that are already
finished. Their rows are marked ``Estado = "TERMINADO"`` and kept out of
synchronisation.
"""

from pathlib import Path
from typing import Any

from dflexsync.core.logging import get_logger

logger = get_logger(__name__)

ESTADO_TERMINADO = "TERMINADO"


class FinishedOrders:
    """Lazily loaded set of finished NV numbers, held for the app's lifetime."""

    def __init__(self, path: str | Path | None) -> None:
        self.path = Path(path) if path else None
        self._nvs: set[str] | None = None

    @property
    def nvs(self) -> set[str]:
        """NV numbers as stripped strings; loaded on first access."""
        if self._nvs is None:
            self._nvs = self._load()
        return self._nvs

    def _load(self) -> set[str]:
        if self.path is None:
            return set()
        try:
            content = self.path.read_text(encoding="utf-8")
        except OSError as e:
            logger.warning(f"Could not read {self.path}; assuming no finished orders: {e}")
            return set()

        nvs = {line.strip() for line in content.splitlines() if line.strip()}
        logger.info(f"Loaded {len(nvs)} finished NV numbers")
        return nvs

    def is_finished(self, nv: Any) -> bool:
        if nv is None:
            return False
        return str(nv).strip() in self.nvs

    def filter_rows(self, rows: list[dict[str, Any]]) -> tuple[list[dict[str, Any]], int]:
        """
        Drop rows of finished orders.

        Returns:
            Tuple of (remaining rows, number of rows dropped)
        """
        remaining = []
        finished = 0
        for row in rows:
            if self.is_finished(row.get("NV")):
                row["Estado"] = ESTADO_TERMINADO
                finished += 1
                continue
            remaining.append(row)
        return remaining, finished
