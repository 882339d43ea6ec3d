"""WhatsApp delivery of invoices through the Twilio Messages REST API."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Mapping, Optional

import requests

from . import config

logger = logging.getLogger(__name__)

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{account_sid}/Messages.json"
COUNTRY_CODE = "962"
LOCAL_NUMBER_DIGITS = 9

TWILIO_ERROR_MESSAGES = {
    21211: "Invalid phone number format",
    21408: "Permission to send to this number has not been granted (Sandbox requires join)",
    21610: "Phone number is not a valid WhatsApp number",
    21617: "Template content issue - check your template variables",
}


class RelayError(RuntimeError):
    def __init__(self, message: str, code: Optional[int] = None, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.code = code
        self.status = status


def format_whatsapp_number(phone_number: str) -> str:
    """``whatsapp:+962...`` address for a local or international number."""
    digits = re.sub(r"\D", "", phone_number or "")
    if digits.startswith("0"):
        digits = COUNTRY_CODE + digits[1:]
    if not digits.startswith(COUNTRY_CODE) and len(digits) == LOCAL_NUMBER_DIGITS:
        digits = COUNTRY_CODE + digits
    return f"whatsapp:+{digits}"


def format_items(items: Any) -> str:
    if not isinstance(items, list):
        return "Custom curated selection"
    lines = []
    for item in items:
        if not isinstance(item, Mapping) or not item.get("description"):
            continue
        qty = item.get("qty")
        try:
            pieces = f" ({qty} pieces)" if float(qty) > 1 else ""
        except (TypeError, ValueError):
            pieces = ""
        price = item.get("finalPrice") or item.get("price") or "0.00"
        lines.append(f"◦ {item['description']}{pieces}\n   ${price}")
    return "\n\n".join(lines) if lines else "Custom curated selection"


def template_variables(data: Mapping[str, Any], file_name: str) -> Dict[str, str]:
    def value(name: str, default: str) -> str:
        raw = data.get(name)
        return str(raw) if raw not in (None, "") else default

    return {
        "1": value("invoiceNumber", "N/A"),
        "2": value("date", ""),
        "3": value("clientName", "Valued Client"),
        "4": value("salesRepresentative", "Personal Consultant"),
        "5": format_items(data.get("items")),
        "6": value("totalAmount", "0.00"),
        "7": value("amountReceived", "0.00"),
        "8": value("remainingAmount", "0.00"),
        "9": value("deliveryDate", "As arranged"),
        "10": file_name,
    }


class WhatsAppRelay:
    def __init__(
        self,
        account_sid: str = config.TWILIO_ACCOUNT_SID,
        auth_token: str = config.TWILIO_AUTH_TOKEN,
        from_number: str = config.TWILIO_WHATSAPP_NUMBER,
        content_sid: str = config.TWILIO_CONTENT_SID,
        timeout_s: float = config.RELAY_TIMEOUT_S,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.content_sid = content_sid
        self.timeout_s = timeout_s
        self.session = session or requests.Session()

    @property
    def enabled(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number and self.content_sid)

    def send_invoice(self, data: Mapping[str, Any], file_name: str) -> Dict[str, str]:
        """Send the invoice template message; returns the message and template SIDs."""
        if not self.enabled:
            raise RelayError("WhatsApp relay is not configured")

        to_number = format_whatsapp_number(str(data.get("phoneNumber") or ""))
        payload = {
            "From": self.from_number,
            "To": to_number,
            "ContentSid": self.content_sid,
            "ContentVariables": json.dumps(template_variables(data, file_name), ensure_ascii=False),
        }
        url = TWILIO_MESSAGES_URL.format(account_sid=self.account_sid)
        try:
            response = self.session.post(
                url,
                data=payload,
                auth=(self.account_sid, self.auth_token),
                timeout=self.timeout_s,
            )
        except requests.RequestException as exc:
            raise RelayError(f"Failed to reach messaging service: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 400:
            code = body.get("code") if isinstance(body, dict) else None
            if response.status_code == 401:
                message = "Invalid Twilio credentials - check Account SID and Auth Token"
            else:
                message = TWILIO_ERROR_MESSAGES.get(code, "Failed to send WhatsApp message")
            raise RelayError(message, code=code, status=response.status_code)

        message_sid = str(body.get("sid", "")) if isinstance(body, dict) else ""
        logger.info("WhatsApp message sent to %s (sid %s)", to_number, message_sid)
        return {"messageSid": message_sid, "templateSid": self.content_sid, "whatsappNumber": to_number}
