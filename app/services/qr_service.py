"""
QR ticket generation and decoding service
"""

import base64
import io
import json
import logging
from typing import Optional

import qrcode
from pydantic import ValidationError

from app.schemas.attendance import TicketPayload
from app.schemas.user import UserProfileResponse

logger = logging.getLogger(__name__)

class QRService:
    """Service for ticket QR codes"""

    @staticmethod
    def ticket_payload(event_id: str, profile: UserProfileResponse) -> TicketPayload:
        """Build the payload encoded in a user's ticket"""
        return TicketPayload(
            event_id=event_id,
            user_id=profile.id,
            user_name=profile.display_name or "Student",
            user_email=profile.email,
        )

    @staticmethod
    def generate_ticket_qr(payload: TicketPayload, format: str = 'PNG') -> bytes:
        """Render a ticket payload as a QR code image"""
        qr = qrcode.QRCode(
            version=None,
            error_correction=qrcode.constants.ERROR_CORRECT_M,
            box_size=10,
            border=4,
        )
        qr.add_data(json.dumps(payload.model_dump(by_alias=True)))
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")

        buffer = io.BytesIO()
        img.save(buffer, format=format)

        return buffer.getvalue()

    @staticmethod
    def to_data_url(image_bytes: bytes) -> str:
        """Encode PNG bytes as a base64 data URI for e-mail embedding"""
        return "data:image/png;base64," + base64.b64encode(image_bytes).decode("ascii")

    @staticmethod
    def decode_ticket_payload(raw: str) -> Optional[TicketPayload]:
        """Parse text read from a QR code.

        Returns None for anything that is not a ticket: invalid JSON, a
        non-object, or an object without eventId and userId.
        """
        try:
            data = json.loads(raw)
        except (TypeError, ValueError):
            return None
        if not isinstance(data, dict):
            return None
        if not data.get("eventId") or not data.get("userId"):
            return None
        try:
            return TicketPayload.model_validate(data)
        except ValidationError:
            logger.debug(f"Ignoring malformed ticket payload: {raw!r}")
            return None
