"""Audit recorder: snapshots, diffs, auth events, isolation from failures."""

import pytest
from fastapi import HTTPException
from sqlalchemy import select

from app.controllers import auth_controller
from app.models.audit_log import AuditAction, AuditLog
from app.schemas.auth import LoginRequest
from app.services.audit_recorder import AuditRecorder, RequestContext, diff, prune_audit_logs, snapshot
from conftest import STAFF_PASSWORD


async def _entries(db) -> list[AuditLog]:
    return list((await db.execute(select(AuditLog).order_by(AuditLog.id))).scalars().all())


class TestSnapshot:
    async def test_password_hash_is_never_captured(self, registrar):
        snap = snapshot(registrar)
        assert "password_hash" not in snap
        assert snap["role"] == "registrar"
        assert snap["email"] == "registrar@bnhs.edu.ph"

    def test_diff_ignores_updated_at_and_unchanged_keys(self):
        before = {"name": "Diploma", "processing_days": 7, "updated_at": "2026-01-01T00:00:00"}
        after = {"name": "Diploma", "processing_days": 5, "updated_at": "2026-01-02T00:00:00"}
        assert diff(before, after) == ({"processing_days": 7}, {"processing_days": 5})


class TestRecord:
    async def test_single_field_change(self, db, staff_audit, document_type):
        before = snapshot(document_type)
        document_type.processing_days = 5
        await db.commit()

        entry = await staff_audit.record_update(document_type, before)

        assert entry is not None
        rows = await _entries(db)
        assert len(rows) == 1
        assert rows[0].action == "UPDATE"
        assert rows[0].old_values == {"processing_days": 3}
        assert rows[0].new_values == {"processing_days": 5}

    async def test_no_op_update_writes_nothing(self, db, staff_audit, document_type):
        before = snapshot(document_type)
        document_type.processing_days = 3
        await db.commit()

        assert await staff_audit.record_update(document_type, before) is None
        assert await _entries(db) == []

    async def test_actor_role_and_request_context(self, db, staff_audit, registrar, document_type):
        await staff_audit.record_create(document_type)
        entry = (await _entries(db))[0]
        assert (entry.user_id, entry.user_role) == (registrar.id, "registrar")
        assert entry.ip_address == "10.0.0.5"
        assert (entry.subject_type, entry.subject_id) == ("DocumentType", document_type.id)
        assert entry.new_values["name"] == "Good Moral Certificate"

    async def test_system_actor(self, db, audit, document_type):
        await audit.record_delete(document_type)
        entry = (await _entries(db))[0]
        assert entry.user_id is None
        assert entry.user_role == "system"
        assert entry.old_values["id"] == document_type.id
        assert entry.new_values is None

    async def test_storage_failure_is_swallowed(self, document_type, caplog):
        def broken_factory():
            raise RuntimeError("audit database unavailable")

        recorder = AuditRecorder(broken_factory, RequestContext())
        assert await recorder.record_create(document_type) is None
        assert "Failed to write audit entry" in caplog.text


class TestAuthEvents:
    async def test_successful_login(self, db, audit, registrar, frozen_clock):
        response = await auth_controller.login(
            LoginRequest(email=registrar.email, password=STAFF_PASSWORD), db, audit
        )
        assert response.user.role.value == "registrar"
        entry = (await _entries(db))[0]
        assert entry.action == AuditAction.LOGIN.value
        assert entry.user_id == registrar.id

    async def test_failed_login_for_unknown_email(self, db, audit, frozen_clock):
        with pytest.raises(HTTPException) as exc:
            await auth_controller.login(LoginRequest(email="ghost@gmail.com", password="whatever"), db, audit)
        assert exc.value.status_code == 401

        entry = (await _entries(db))[0]
        assert entry.action == "LOGIN_FAILED"
        assert entry.user_id is None
        assert entry.description == "Failed login attempt for ghost@gmail.com"

    async def test_failed_login_for_wrong_password(self, db, audit, registrar, frozen_clock):
        with pytest.raises(HTTPException):
            await auth_controller.login(LoginRequest(email=registrar.email, password="nope-nope"), db, audit)
        entry = (await _entries(db))[0]
        assert entry.action == "LOGIN_FAILED"
        assert (entry.subject_type, entry.subject_id) == ("User", registrar.id)

    async def test_deactivated_account(self, db, audit, registrar, frozen_clock):
        registrar.is_active = False
        await db.commit()
        with pytest.raises(HTTPException) as exc:
            await auth_controller.login(LoginRequest(email=registrar.email, password=STAFF_PASSWORD), db, audit)
        assert exc.value.status_code == 403


class TestRetention:
    async def test_prune_removes_only_old_entries(self, db, audit, document_type, frozen_clock):
        await audit.record_create(document_type)
        frozen_clock.advance(days=400)
        await audit.record_update(document_type, {**snapshot(document_type), "name": "Old name"})

        deleted = await prune_audit_logs(db, days=365)

        assert deleted == 1
        remaining = await _entries(db)
        assert [e.action for e in remaining] == ["UPDATE"]
