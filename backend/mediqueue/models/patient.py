"""
Patient models.
"""

from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List
from datetime import datetime


class PatientContact(BaseModel):
    """Patient contact information."""
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[EmailStr] = None


class EmergencyContact(BaseModel):
    """Person to call in an emergency."""
    name: Optional[str] = None
    phone: Optional[str] = None
    relationship: Optional[str] = None


class MedicalInfo(BaseModel):
    """Self-reported medical background."""
    blood_type: Optional[str] = None
    allergies: List[str] = Field(default_factory=list)
    current_medications: List[str] = Field(default_factory=list)
    chronic_conditions: List[str] = Field(default_factory=list)


class Insurance(BaseModel):
    """Insurance details."""
    provider: Optional[str] = None
    policy_number: Optional[str] = None
    group_number: Optional[str] = None


class Preferences(BaseModel):
    """Notification and language preferences."""
    preferred_language: str = "en"
    sms_notifications: bool = True
    email_notifications: bool = True


class PatientBase(BaseModel):
    """Base patient model."""
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    date_of_birth: Optional[datetime] = None
    contact_info: PatientContact = Field(default_factory=PatientContact)
    emergency_contact: Optional[EmergencyContact] = None
    medical_info: MedicalInfo = Field(default_factory=MedicalInfo)
    insurance: Optional[Insurance] = None
    preferences: Preferences = Field(default_factory=Preferences)


class PatientCreate(PatientBase):
    """Patient creation model."""
    pass


class PatientUpdate(BaseModel):
    """Patient update model (all fields optional)."""
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    date_of_birth: Optional[datetime] = None
    contact_info: Optional[PatientContact] = None
    emergency_contact: Optional[EmergencyContact] = None
    medical_info: Optional[MedicalInfo] = None
    insurance: Optional[Insurance] = None
    preferences: Optional[Preferences] = None


class Patient(PatientBase):
    """Patient response model."""
    id: str = Field(..., alias="_id")
    is_active: bool = True
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        populate_by_name = True

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class PatientPage(BaseModel):
    """One page of the patient list."""
    data: List[Patient]
    page: int
    limit: int
    total: int
    pages: int
