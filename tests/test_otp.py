"""OTP store: issue, supersede, consume once, expire."""

import asyncio
import hashlib

import pytest
from fastapi import HTTPException
from sqlalchemy import func, select

from app.controllers import otp_controller
from app.controllers.otp_controller import issue_otp, send_otp, verify_otp
from app.models.otp_code import OtpCode, OtpPurpose

EMAIL = "learner@gmail.com"


def _fixed_codes(monkeypatch, *codes):
    monkeypatch.setattr(otp_controller, "generate_code", iter(codes).__next__)


async def _unused_count(db, email=EMAIL, purpose=OtpPurpose.REQUEST) -> int:
    return await db.scalar(
        select(func.count(OtpCode.id))
        .where(OtpCode.email == email)
        .where(OtpCode.purpose == purpose)
        .where(OtpCode.used.is_(False))
    )


class TestIssue:
    async def test_code_is_six_digits(self, db, frozen_clock):
        code, expires_at = await issue_otp(db, EMAIL, OtpPurpose.REQUEST)
        assert len(code) == 6 and code.isdigit()
        assert (expires_at - frozen_clock.now).total_seconds() == 10 * 60

    async def test_only_hash_is_stored(self, db, frozen_clock):
        code, _ = await issue_otp(db, EMAIL)
        row = (await db.execute(select(OtpCode))).scalar_one()
        assert row.code_hash == hashlib.sha256(code.encode()).hexdigest()
        assert code not in row.code_hash

    async def test_reissue_leaves_single_active_code(self, db, frozen_clock):
        for _ in range(3):
            await issue_otp(db, EMAIL)
        assert await _unused_count(db) == 1

    async def test_purposes_do_not_supersede_each_other(self, db, frozen_clock):
        await issue_otp(db, EMAIL, OtpPurpose.REQUEST)
        await issue_otp(db, EMAIL, OtpPurpose.DASHBOARD)
        assert await _unused_count(db, purpose=OtpPurpose.REQUEST) == 1
        assert await _unused_count(db, purpose=OtpPurpose.DASHBOARD) == 1


class TestVerify:
    async def test_newer_code_replaces_older(self, db, frozen_clock, monkeypatch):
        _fixed_codes(monkeypatch, "123456", "654321")
        await issue_otp(db, EMAIL)
        await issue_otp(db, EMAIL)

        assert await verify_otp(db, EMAIL, "123456") is False
        assert await verify_otp(db, EMAIL, "654321") is True

    async def test_code_verifies_only_once(self, db, frozen_clock):
        code, _ = await issue_otp(db, EMAIL)
        assert await verify_otp(db, EMAIL, code) is True
        assert await verify_otp(db, EMAIL, code) is False

    async def test_expired_code_fails_and_stays_unused(self, db, frozen_clock):
        code, _ = await issue_otp(db, EMAIL)
        frozen_clock.advance(minutes=11)

        assert await verify_otp(db, EMAIL, code) is False
        assert await _unused_count(db) == 1

    async def test_wrong_code_does_not_burn_the_real_one(self, db, frozen_clock, monkeypatch):
        _fixed_codes(monkeypatch, "111111")
        await issue_otp(db, EMAIL)

        assert await verify_otp(db, EMAIL, "999999") is False
        assert await verify_otp(db, EMAIL, "111111") is True

    async def test_code_is_bound_to_email_and_purpose(self, db, frozen_clock):
        code, _ = await issue_otp(db, EMAIL, OtpPurpose.REQUEST)
        assert await verify_otp(db, "someone.else@gmail.com", code, OtpPurpose.REQUEST) is False
        assert await verify_otp(db, EMAIL, code, OtpPurpose.DASHBOARD) is False
        assert await verify_otp(db, EMAIL, code, OtpPurpose.REQUEST) is True

    async def test_concurrent_verifies_succeed_once(self, session_factory, frozen_clock):
        async with session_factory() as db:
            code, _ = await issue_otp(db, EMAIL)

        async def attempt():
            async with session_factory() as session:
                return await verify_otp(session, EMAIL, code)

        results = await asyncio.gather(attempt(), attempt())
        assert sorted(results) == [False, True]

    async def test_failure_reason_is_logged(self, db, frozen_clock, caplog):
        code, _ = await issue_otp(db, EMAIL)
        await verify_otp(db, EMAIL, code)

        with caplog.at_level("WARNING", logger="app.controllers.otp_controller"):
            await verify_otp(db, EMAIL, code)
        assert "already_used" in caplog.text


class TestSend:
    async def test_code_goes_out_by_email(self, db, notifier, frozen_clock):
        await send_otp(db, notifier, EMAIL, OtpPurpose.TRACKING)
        to_email, kind, payload = notifier.sent[-1]
        assert (to_email, kind, payload["purpose"]) == (EMAIL, "otp", "tracking")
        assert await verify_otp(db, EMAIL, notifier.last_code(EMAIL), OtpPurpose.TRACKING) is True

    async def test_failed_delivery_is_a_gateway_error(self, db, notifier, frozen_clock):
        notifier.fail = True
        with pytest.raises(HTTPException) as exc:
            await send_otp(db, notifier, EMAIL)
        assert exc.value.status_code == 502
