from __future__ import annotations

from typing import Any, Mapping

import httpx

from teeds.errors import EmailDeliveryError

SENDGRID_API_URL = "https://api.sendgrid.com/v3/mail/send"
OTP_SUBJECT = "Your TEEDS Design Voting OTP"


class SendGridMailer:
    def __init__(
        self,
        api_key: str | None,
        sender_email: str | None,
        sender_name: str = "TEEDS Design Voting",
        api_url: str = SENDGRID_API_URL,
        http_client: httpx.Client | None = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        self.api_key = api_key
        self.sender_email = sender_email
        self.sender_name = sender_name
        self.api_url = api_url
        self.timeout_seconds = timeout_seconds
        self._owns_client = http_client is None
        self.client = http_client or httpx.Client(timeout=httpx.Timeout(timeout_seconds))

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.sender_email)

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def send_otp(self, recipient: str, code: str, ttl_minutes: int) -> None:
        text = f"Here is your 6-digit OTP: {code}\n\nIt expires in {ttl_minutes} minutes."
        self.send(recipient, OTP_SUBJECT, text)

    def send(self, recipient: str, subject: str, text: str) -> None:
        if not self.configured:
            raise EmailDeliveryError("Email provider is not configured")
        try:
            response = self.client.post(
                self.api_url,
                headers=self._headers(),
                json=self._build_payload(recipient, subject, text),
                timeout=self.timeout_seconds,
            )
        except httpx.TimeoutException as exc:
            raise EmailDeliveryError("Email provider timed out") from exc
        except httpx.HTTPError as exc:
            raise EmailDeliveryError(f"Email provider unreachable: {exc}") from exc

        if response.status_code >= 400:
            raise EmailDeliveryError(f"Email provider error {response.status_code}: {response.text[:200]}")

    def _headers(self) -> Mapping[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _build_payload(self, recipient: str, subject: str, text: str) -> Mapping[str, Any]:
        return {
            "personalizations": [{"to": [{"email": recipient}], "subject": subject}],
            "from": {"email": self.sender_email, "name": self.sender_name},
            "content": [{"type": "text/plain", "value": text}],
        }
