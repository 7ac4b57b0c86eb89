"""Routers package for MediQueue API."""

from .clinics import router as clinics_router
from .patients import router as patients_router
from .check_ins import router as check_ins_router
from .queue import router as queue_router
from .analytics import router as analytics_router

__all__ = [
    "clinics_router",
    "patients_router",
    "check_ins_router",
    "queue_router",
    "analytics_router"
]
