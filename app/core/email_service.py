import html
import logging
from typing import Any

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)


class NotificationError(RuntimeError):
    pass


# ── Templates ─────────────────────────────────────────────────────────

_PURPOSE_LABELS = {
    "request": "submit your document request",
    "tracking": "track your document request",
    "dashboard": "open your request dashboard",
}


def _wrap(title: str, body: str) -> str:
    return f"""
    <div style="font-family:Arial,sans-serif;max-width:560px;margin:auto;padding:24px">
      <h2 style="margin:0 0 12px 0;">{html.escape(title)}</h2>
      {body}
      <p style="margin:18px 0 0 0;color:#666;font-size:12px;">
        This is an automated message from the {html.escape(settings.APP_NAME)}.
      </p>
    </div>
    """


def render(kind: str, payload: dict[str, Any]) -> tuple[str, str]:
    """Return (subject, html) for a notification kind."""
    if kind == "otp":
        purpose = _PURPOSE_LABELS.get(payload.get("purpose", ""), "continue")
        body = f"""
      <p style="color:#444;line-height:1.5;">Use this code to {purpose}:</p>
      <p style="font-size:28px;font-weight:700;letter-spacing:6px;margin:12px 0;">{html.escape(payload["code"])}</p>
      <p style="color:#444;">The code expires in {int(payload.get("ttl_minutes", settings.OTP_TTL_MINUTES))} minutes.
      If you did not request this, you can ignore this email.</p>
        """
        return "Your verification code", _wrap("Verification code", body)

    if kind == "request_submitted":
        body = f"""
      <p style="color:#444;line-height:1.5;">
        We received your request for <b>{html.escape(payload["document_type"])}</b>.
      </p>
      <p>Tracking ID: <b>{html.escape(payload["tracking_id"])}</b></p>
      <p style="color:#444;">Estimated completion: {html.escape(str(payload.get("estimated_completion_date") or "to be announced"))}</p>
        """
        return f"Request received: {payload['tracking_id']}", _wrap("Request received", body)

    if kind == "status_updated":
        notes = payload.get("admin_notes")
        notes_html = f'<p style="color:#444;">Notes: {html.escape(notes)}</p>' if notes else ""
        body = f"""
      <p style="color:#444;line-height:1.5;">
        Your request <b>{html.escape(payload["tracking_id"])}</b> moved from
        {html.escape(payload["old_status"])} to <b>{html.escape(payload["new_status"])}</b>.
      </p>
      {notes_html}
        """
        return f"Request {payload['tracking_id']} is now {payload['new_status']}", _wrap("Status update", body)

    raise ValueError(f"Unknown notification kind: {kind}")


# ── Dispatcher ────────────────────────────────────────────────────────

class EmailNotifier:
    """Sends transactional mail through the Brevo (Sendinblue) HTTP API."""

    def __init__(self, api_key: str | None = None, api_url: str | None = None):
        self.api_key = api_key if api_key is not None else settings.SENDINBLUE_API_KEY
        self.api_url = api_url or settings.EMAIL_API_URL

    async def send(self, to_email: str, kind: str, payload: dict[str, Any]) -> None:
        if not self.api_key:
            raise NotificationError("SENDINBLUE_API_KEY not configured")

        subject, html_content = render(kind, payload)
        body = {
            "sender": {"name": settings.EMAIL_FROM_NAME, "email": settings.EMAIL_FROM},
            "to": [{"email": to_email}],
            "subject": subject,
            "htmlContent": html_content,
        }

        async with httpx.AsyncClient(timeout=settings.EMAIL_TIMEOUT_SECONDS) as client:
            r = await client.post(
                self.api_url,
                headers={"api-key": self.api_key, "Content-Type": "application/json"},
                json=body,
            )
            if r.status_code >= 400:
                raise NotificationError(f"Sendinblue error {r.status_code}: {r.text}")

    async def dispatch(self, to_email: str, kind: str, payload: dict[str, Any]) -> bool:
        """Best-effort send: failures are logged, never raised."""
        try:
            await self.send(to_email, kind, payload)
        except Exception as exc:
            logger.error(
                "Failed to send %s email: %s",
                kind,
                exc,
                extra={"notification_kind": kind, "tracking_id": payload.get("tracking_id")},
            )
            return False
        return True


_notifier = EmailNotifier()


# ── FastAPI Dependency ────────────────────────────────────────────────
def get_notifier() -> EmailNotifier:
    return _notifier
