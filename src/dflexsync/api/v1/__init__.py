"""API v1 routes."""

from fastapi import APIRouter

from dflexsync.api.v1 import formulas, health, preproduccion

router = APIRouter()

router.include_router(health.router, tags=["health"])
router.include_router(preproduccion.router, tags=["pre-produccion"])
router.include_router(formulas.router, prefix="/formulas", tags=["formulas"])
