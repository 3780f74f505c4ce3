"""Fields derived from a raw ERP row at ingestion time.

Both values are attached to the raw payload before it is stored, and are
always treated as computed columns, never as manual overrides.
"""

import json
import math
import re
from typing import Any

from dflexsync.core.logging import get_logger

logger = get_logger(__name__)

LADO_MAS_ALTO = "lado_mas_alto"
CALC_ESPADA = "calc_espada"
DERIVED_COLUMNS = frozenset({LADO_MAS_ALTO, CALC_ESPADA})

_PROFILE_PATTERN = re.compile(r"(\d+(?:[.,]\d+)?)\s*[xX]\s*(\d+(?:[.,]\d+)?)")
_ESPADA_PATTERNS = (
    re.compile(r"espada\s*[:=]\s*(\d+(?:[.,]\d+)?)", re.IGNORECASE),
    re.compile(r"largo\s*espada\s*[:=]?\s*(\d+(?:[.,]\d+)?)", re.IGNORECASE),
)
_LEADING_NUMBER = re.compile(r"^\s*([+-]?\d+(?:[.,]\d+)?)")

# Looked up case-insensitively, in this order
_ESPADA_KEYS = ("espada", "largo_espada", "calc_espada")


def parse_nv(value: Any) -> int | None:
    """
    Parse an order number.

    Returns:
        A positive int, or None for missing, non-numeric, zero or negative values
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            return None
        value = int(value)
    if isinstance(value, str):
        value = value.strip()
        if not value.lstrip("+").isdigit():
            return None
    try:
        nv = int(value)
    except (TypeError, ValueError):
        return None
    return nv if nv > 0 else None


def _to_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str):
        match = _LEADING_NUMBER.match(value)
        if match:
            return float(match.group(1).replace(",", "."))
    return None


def lado_mayor_del_cano(perfil: Any) -> float | None:
    """
    Larger side of a tube profile such as ``"80x40"`` or ``"80 X 40,5"``.

    Returns:
        The larger of the two numbers, or None when no ``<n> x <n>`` pattern is found
    """
    if not perfil:
        return None
    match = _PROFILE_PATTERN.search(str(perfil).strip())
    if not match:
        return None
    a = float(match.group(1).replace(",", "."))
    b = float(match.group(2).replace(",", "."))
    return max(a, b)


def _espada_from_mapping(obj: dict[str, Any]) -> float | None:
    lowered = {str(k).lower(): v for k, v in obj.items()}
    for key in _ESPADA_KEYS:
        value = lowered.get(key)
        if value is None:
            continue
        number = _to_float(value)
        if number is not None:
            return number
    return None


def _espada_from_json(obj: Any) -> float | None:
    if isinstance(obj, dict):
        return _espada_from_mapping(obj)
    if isinstance(obj, list):
        for item in obj:
            if isinstance(item, dict):
                number = _espada_from_mapping(item)
                if number is not None:
                    return number
    return None


def calcular_largo_espada(datos_brazos: Any) -> float | None:
    """
    Best-effort blade length from the ``DATOS_Brazos`` column.

    Accepts a number, a JSON object/array (keys ``espada``,
    ``largo_espada`` or ``calc_espada``), or free text such as
    ``"espada: 120"`` or ``"largo espada 95,5"``.
    """
    if datos_brazos is None or isinstance(datos_brazos, bool):
        return None

    if isinstance(datos_brazos, (int, float)):
        return float(datos_brazos) if math.isfinite(datos_brazos) else None

    if isinstance(datos_brazos, (dict, list)):
        return _espada_from_json(datos_brazos)

    if not isinstance(datos_brazos, str):
        return None

    s = datos_brazos.strip()
    if (s.startswith("{") and s.endswith("}")) or (s.startswith("[") and s.endswith("]")):
        try:
            number = _espada_from_json(json.loads(s))
        except ValueError:
            number = None
        if number is not None:
            return number

    for pattern in _ESPADA_PATTERNS:
        match = pattern.search(s)
        if match:
            return float(match.group(1).replace(",", "."))

    return None


def add_derived_fields(row: dict[str, Any]) -> dict[str, Any]:
    """
    Attach ``lado_mas_alto`` and ``calc_espada`` to a raw row in place.

    A failure leaves both fields as None; ingestion of the row goes on.
    """
    try:
        row[LADO_MAS_ALTO] = lado_mayor_del_cano(row.get("PARANTES_Descripcion"))
        row[CALC_ESPADA] = calcular_largo_espada(row.get("DATOS_Brazos"))
    except Exception as e:
        logger.warning(f"Could not compute derived fields (NV={row.get('NV')}): {e}")
        row.setdefault(LADO_MAS_ALTO, None)
        row.setdefault(CALC_ESPADA, None)
    return row
