"""
Ticket notification dispatch
"""

import logging
from typing import Dict

logger = logging.getLogger(__name__)

class TicketNotifier:
    """Sends event tickets to attendees.

    No mail provider is wired in: the ticket is logged and reported as sent.
    """

    def send_ticket(
        self,
        recipient: str,
        recipient_name: str,
        event_name: str,
        qr_code_data_url: str
    ) -> Dict:
        logger.info(
            f"Pretending to send ticket for \"{event_name}\" to {recipient_name} <{recipient}> "
            f"({len(qr_code_data_url)} byte QR payload)"
        )
        return {"success": True, "message": "Email sending process simulated."}

# Global notifier instance
ticket_notifier = TicketNotifier()
