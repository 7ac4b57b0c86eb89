"""
Clinic configuration models.
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import datetime

from ..config import get_settings


class Address(BaseModel):
    """Street address with optional coordinates for the geofence."""
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class ContactInfo(BaseModel):
    """Clinic contact details."""
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None


class OpeningHours(BaseModel):
    """Opening window for a single weekday."""
    open: Optional[str] = Field(None, pattern=r"^\d{2}:\d{2}$")
    close: Optional[str] = Field(None, pattern=r"^\d{2}:\d{2}$")
    is_open: bool = True


class ClinicSettings(BaseModel):
    """Per-clinic check-in policy."""
    enable_gps_verification: bool = False
    max_distance_meters: float = Field(default_factory=lambda: get_settings().DEFAULT_GEOFENCE_METERS, gt=0)
    enable_sms_notifications: bool = False
    notify_minutes_before: int = Field(10, ge=0)
    require_appointment: bool = False


class ClinicStatistics(BaseModel):
    """Running totals maintained by the queue counters."""
    total_check_ins: int = 0
    total_patients_served: int = 0
    avg_service_time: float = 0


class ClinicBase(BaseModel):
    """Base clinic model."""
    name: str = Field(..., min_length=1, max_length=200)
    address: Address = Field(default_factory=Address)
    contact_info: ContactInfo = Field(default_factory=ContactInfo)
    operating_hours: Dict[str, OpeningHours] = Field(default_factory=dict)
    specialties: List[str] = Field(default_factory=list)
    avg_wait_time: float = Field(
        default_factory=lambda: get_settings().DEFAULT_AVG_WAIT_MINUTES,
        gt=0,
        description="Average service minutes per patient"
    )
    max_queue_size: int = Field(default_factory=lambda: get_settings().DEFAULT_MAX_QUEUE_SIZE, ge=1)
    settings: ClinicSettings = Field(default_factory=ClinicSettings)


class ClinicCreate(ClinicBase):
    """Clinic creation model."""
    pass


class ClinicUpdate(BaseModel):
    """Clinic update model (all fields optional)."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    address: Optional[Address] = None
    contact_info: Optional[ContactInfo] = None
    operating_hours: Optional[Dict[str, OpeningHours]] = None
    specialties: Optional[List[str]] = None
    avg_wait_time: Optional[float] = Field(None, gt=0)
    max_queue_size: Optional[int] = Field(None, ge=1)
    settings: Optional[ClinicSettings] = None
    is_active: Optional[bool] = None


class Clinic(ClinicBase):
    """Clinic response model."""
    id: str = Field(..., alias="_id")
    current_queue_size: int = 0
    is_active: bool = True
    check_in_url: Optional[str] = None
    statistics: ClinicStatistics = Field(default_factory=ClinicStatistics)
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        populate_by_name = True

    @property
    def geofence_enabled(self) -> bool:
        return (
            self.settings.enable_gps_verification
            and self.address.latitude is not None
            and self.address.longitude is not None
        )


class QRCodeResponse(BaseModel):
    """Check-in QR code as a PNG data URL."""
    clinic_id: str
    check_in_url: str
    qr_code_url: str
