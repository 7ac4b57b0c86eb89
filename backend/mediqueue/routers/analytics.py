"""
Analytics API routes.
"""

from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query

from ..models.analytics import ClinicAnalytics, Overview, PatientHistory, RealtimeStats
from ..services.analytics_service import AnalyticsService
from .dependencies import get_analytics_service

router = APIRouter(prefix="/api/analytics", tags=["Analytics"])


@router.get("/overview", response_model=Overview)
async def get_overview(service: AnalyticsService = Depends(get_analytics_service)):
    """System-wide totals for today."""
    return await service.overview()


@router.get("/clinic/{clinic_id}", response_model=ClinicAnalytics)
async def get_clinic_analytics(
    clinic_id: str,
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    service: AnalyticsService = Depends(get_analytics_service)
):
    """Breakdowns for one clinic, optionally limited to a date range."""
    return await service.clinic_analytics(clinic_id, start_date, end_date)


@router.get("/patient/{patient_id}/history", response_model=PatientHistory)
async def get_patient_history(patient_id: str, service: AnalyticsService = Depends(get_analytics_service)):
    """A patient's most recent visits."""
    return await service.patient_history(patient_id)


@router.get("/realtime/{clinic_id}", response_model=RealtimeStats)
async def get_realtime_stats(clinic_id: str, service: AnalyticsService = Depends(get_analytics_service)):
    """Live counters for a clinic's current day."""
    return await service.realtime(clinic_id)
