"""
Clinic management service.
"""

import base64
import logging
import uuid
from datetime import datetime, timezone
from io import BytesIO
from typing import List

import qrcode

from ..config import get_settings
from ..core.errors import ClinicNotFound
from ..models.clinic import Clinic, ClinicCreate, ClinicUpdate, QRCodeResponse
from ..repositories.base import ClinicDirectory

settings = get_settings()
logger = logging.getLogger(__name__)


def check_in_url_for(clinic_id: str) -> str:
    return f"{settings.PUBLIC_BASE_URL.rstrip('/')}/check-in?clinic={clinic_id}"


def render_qr_data_url(content: str) -> str:
    """Render ``content`` as a PNG QR code and return it as a data URL."""
    qr = qrcode.QRCode(version=1, box_size=10, border=5)
    qr.add_data(content)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buffer = BytesIO()
    img.save(buffer, format="PNG")
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"


class ClinicService:
    """Clinic management service."""

    def __init__(self, clinics: ClinicDirectory):
        self.clinics = clinics

    async def create_clinic(self, clinic_data: ClinicCreate) -> Clinic:
        """Register a new clinic with a fresh check-in URL."""
        clinic_id = uuid.uuid4().hex[:8]
        clinic = Clinic(
            _id=clinic_id,
            check_in_url=check_in_url_for(clinic_id),
            created_at=datetime.now(timezone.utc),
            **clinic_data.model_dump()
        )
        await self.clinics.create(clinic)
        logger.info("Created clinic %s (%s)", clinic.id, clinic.name)
        return clinic

    async def get_clinic(self, clinic_id: str) -> Clinic:
        clinic = await self.clinics.get_clinic(clinic_id)
        if clinic is None:
            raise ClinicNotFound(f"Clinic {clinic_id} not found")
        return clinic

    async def list_clinics(self) -> List[Clinic]:
        """Active clinics sorted by name."""
        return await self.clinics.list_active()

    async def update_clinic(self, clinic_id: str, updates: ClinicUpdate) -> Clinic:
        update_data = updates.model_dump(exclude_unset=True)
        if not update_data:
            return await self.get_clinic(clinic_id)

        update_data["updated_at"] = datetime.now(timezone.utc)
        clinic = await self.clinics.update(clinic_id, update_data)
        if clinic is None:
            raise ClinicNotFound(f"Clinic {clinic_id} not found")
        return clinic

    async def deactivate_clinic(self, clinic_id: str) -> Clinic:
        """Soft delete: the clinic stops accepting check-ins, history stays."""
        clinic = await self.update_clinic(clinic_id, ClinicUpdate(is_active=False))
        logger.info("Deactivated clinic %s", clinic_id)
        return clinic

    async def get_qr_code(self, clinic_id: str) -> QRCodeResponse:
        clinic = await self.get_clinic(clinic_id)
        url = clinic.check_in_url or check_in_url_for(clinic.id)
        return QRCodeResponse(
            clinic_id=clinic.id,
            check_in_url=url,
            qr_code_url=render_qr_data_url(url)
        )
