"""
Resend email client using httpx sync client.
Used from Celery workers; guarded by the "email" circuit breaker.
"""
import logging
import time

import httpx
import pybreaker

from gympay.core.config import settings
from gympay.services.circuit_breaker import get_circuit_breaker
from gympay.utils.metrics import email_request_duration_seconds, email_requests_total

logger = logging.getLogger(__name__)

SANDBOX_SENDER = "onboarding@resend.dev"
SANDBOX_RECIPIENT = "delivered@resend.dev"


class EmailDeliveryError(Exception):
    pass


class EmailClient:
    def __init__(self) -> None:
        self._client: httpx.Client | None = None
        self._breaker = get_circuit_breaker("email")

    @property
    def client(self) -> httpx.Client:
        """Lazy initialization of httpx client."""
        if self._client is None:
            self._client = httpx.Client(
                base_url=settings.resend_api_url,
                timeout=settings.email_timeout,
                headers={"Authorization": f"Bearer {settings.resend_api_key}"},
            )
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> "EmailClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @staticmethod
    def resolve_addresses(to: str) -> tuple[str, str]:
        """(sender, recipient); development mode always targets the Resend sandbox."""
        if settings.email_mode == "development":
            return SANDBOX_SENDER, SANDBOX_RECIPIENT
        return settings.email_sender, to

    def _post(self, payload: dict) -> dict:
        resp = self.client.post("/emails", json=payload)
        if resp.status_code >= 400:
            raise EmailDeliveryError(f"{resp.status_code}: {resp.text[:200]}")
        return resp.json()

    def send(self, to: str, subject: str, html: str, text: str, template: str = "generic") -> dict:
        if not settings.resend_api_key:
            raise EmailDeliveryError("RESEND_API_KEY is not configured")
        sender, recipient = self.resolve_addresses(to)
        payload = {"from": sender, "to": [recipient], "subject": subject, "html": html, "text": text}
        start = time.time()
        try:
            result = self._breaker.call(self._post, payload)
        except pybreaker.CircuitBreakerError as e:
            email_requests_total.labels(template=template, status="circuit_open").inc()
            raise EmailDeliveryError("email provider circuit is open") from e
        except (httpx.HTTPError, EmailDeliveryError) as e:
            email_requests_total.labels(template=template, status="error").inc()
            email_request_duration_seconds.observe(time.time() - start)
            logger.warning("email_send_failed", extra={"error": str(e)})
            raise EmailDeliveryError(str(e)) from e
        email_requests_total.labels(template=template, status="success").inc()
        email_request_duration_seconds.observe(time.time() - start)
        logger.info("email_sent", extra={"status": "sent"})
        return result
