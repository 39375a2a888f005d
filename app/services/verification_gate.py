from __future__ import annotations

import enum
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, MutableMapping, Optional

from app.core import clock
from app.core.config import settings

logger = logging.getLogger(__name__)


class GateStatus(str, enum.Enum):
    VERIFIED = "verified"
    NOT_VERIFIED = "not_verified"
    EXPIRED = "expired"


class VerificationGate:
    """
    Proof that the current browser session verified an email by OTP.

    The stamp lives in whatever mapping is passed in (Starlette's
    ``request.session`` in the app, a plain dict in tests) under keys
    prefixed with ``scope``, so the request-form and dashboard flows keep
    separate stamps. A stamp is good for ``window_minutes`` from the moment
    it was made; checking it never moves that moment. The gate knows nothing
    about OTP codes, callers mark it after a successful verify.
    """

    def __init__(
        self,
        session: MutableMapping[str, Any],
        scope: str,
        window_minutes: Optional[int] = None,
    ):
        self.session = session
        self.scope = scope
        self.window = timedelta(
            minutes=window_minutes if window_minutes is not None else settings.VERIFICATION_WINDOW_MINUTES
        )

    @property
    def _email_key(self) -> str:
        return f"{self.scope}_verified_email"

    @property
    def _at_key(self) -> str:
        return f"{self.scope}_verified_at"

    @property
    def _context_key(self) -> str:
        return f"{self.scope}_context"

    def mark_verified(self, email: str, **context: Any) -> None:
        self.session[self._email_key] = email
        self.session[self._at_key] = clock.utcnow().isoformat()
        self.session[self._context_key] = context

    def clear(self) -> None:
        for key in (self._email_key, self._at_key, self._context_key):
            self.session.pop(key, None)

    @property
    def verified_email(self) -> Optional[str]:
        return self.session.get(self._email_key)

    @property
    def context(self) -> dict[str, Any]:
        return dict(self.session.get(self._context_key) or {})

    @property
    def verified_at(self) -> Optional[datetime]:
        raw = self.session.get(self._at_key)
        if not raw:
            return None
        try:
            stamp = datetime.fromisoformat(raw)
        except (TypeError, ValueError):
            return None
        if stamp.tzinfo is None:
            stamp = stamp.replace(tzinfo=timezone.utc)
        return stamp

    def check(self, required_email: Optional[str] = None) -> GateStatus:
        email = self.verified_email
        verified_at = self.verified_at
        if not email or verified_at is None:
            return GateStatus.NOT_VERIFIED

        if clock.utcnow() - verified_at > self.window:
            logger.info("Verification stamp expired", extra={"gate_scope": self.scope})
            self.clear()
            return GateStatus.EXPIRED

        if required_email is not None and required_email != email:
            return GateStatus.NOT_VERIFIED

        return GateStatus.VERIFIED
