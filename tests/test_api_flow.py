"""End-to-end HTTP flows over the ASGI app."""

from sqlalchemy import select

from app.models.audit_log import AuditLog


async def _verify_for_form(client, notifier, email: str):
    r = await client.post("/api/requests/otp", json={"email": email})
    assert r.status_code == 200, r.text
    r = await client.post("/api/requests/verify-otp", json={"email": email, "otp": notifier.last_code(email)})
    assert r.status_code == 200, r.text


async def _submit(client, notifier, payload) -> dict:
    await _verify_for_form(client, notifier, payload.email)
    r = await client.post("/api/requests", json=payload.model_dump(mode="json"))
    assert r.status_code == 201, r.text
    return r.json()


class TestApplicantFlow:
    async def test_document_types_are_public(self, client, document_type):
        r = await client.get("/api/document-types")
        assert r.status_code == 200
        assert [t["name"] for t in r.json()] == ["Good Moral Certificate"]

    async def test_form_requires_verification(self, client, document_type):
        r = await client.get("/api/requests/form")
        assert r.status_code == 403

    async def test_submit_flow(self, client, notifier, make_payload):
        payload = make_payload()
        await _verify_for_form(client, notifier, payload.email)

        r = await client.get("/api/requests/form")
        assert r.status_code == 200
        assert r.json()["email"] == payload.email

        r = await client.post("/api/requests", json=payload.model_dump(mode="json"))
        assert r.status_code == 201, r.text
        body = r.json()
        assert body["status"] == "Pending"
        assert body["tracking_id"].startswith("BNHS-")
        assert "request_submitted" in notifier.kinds()

        # one submission per verification, the dashboard is open right away
        assert (await client.get("/api/requests/form")).status_code == 403
        r = await client.get("/api/dashboard")
        assert r.status_code == 200
        assert r.json()["latest_request"]["tracking_id"] == body["tracking_id"]

    async def test_wrong_otp(self, client, notifier, document_type):
        email = "learner@gmail.com"
        await client.post("/api/requests/otp", json={"email": email})
        wrong = "000000" if notifier.last_code(email) != "000000" else "111111"
        r = await client.post("/api/requests/verify-otp", json={"email": email, "otp": wrong})
        assert r.status_code == 422
        assert (await client.get("/api/requests/form")).status_code == 403

    async def test_verification_expires(self, client, notifier, frozen_clock, make_payload):
        payload = make_payload()
        await _verify_for_form(client, notifier, payload.email)

        frozen_clock.advance(minutes=31)
        r = await client.post("/api/requests", json=payload.model_dump(mode="json"))
        assert r.status_code == 403
        assert "expired" in r.json()["detail"]

    async def test_email_must_match_verified_email(self, client, notifier, make_payload):
        await _verify_for_form(client, notifier, "someone@gmail.com")
        r = await client.post("/api/requests", json=make_payload().model_dump(mode="json"))
        assert r.status_code == 403

    async def test_duplicate_submission(self, client, notifier, make_payload):
        payload = make_payload()
        await _submit(client, notifier, payload)

        await _verify_for_form(client, notifier, payload.email)
        r = await client.post("/api/requests", json=payload.model_dump(mode="json"))
        assert r.status_code == 409

    async def test_otp_delivery_failure(self, client, notifier):
        notifier.fail = True
        r = await client.post("/api/requests/otp", json={"email": "learner@gmail.com"})
        assert r.status_code == 502

    async def test_validation_errors_are_json(self, client):
        r = await client.post("/api/requests/verify-otp", json={"email": "not-an-email", "otp": "12"})
        assert r.status_code == 422
        assert isinstance(r.json()["detail"], list)


class TestTracking:
    async def test_quick_track(self, client, notifier, make_payload):
        submitted = await _submit(client, notifier, make_payload())

        r = await client.get(f"/api/tracking/{submitted['tracking_id'].lower()}")
        assert r.status_code == 200
        body = r.json()
        assert body["tracking_id"] == submitted["tracking_id"]
        assert body["status"] == "Pending"
        assert body["document_type"] == "Good Moral Certificate"
        assert "email" not in body

        assert (await client.get("/api/tracking/BNHS-NOPE2345")).status_code == 404

    async def test_verified_tracking_shows_history(self, client, notifier, make_payload):
        payload = make_payload()
        submitted = await _submit(client, notifier, payload)

        r = await client.post(
            "/api/tracking/otp", json={"email": "other@gmail.com", "tracking_id": submitted["tracking_id"]}
        )
        assert r.status_code == 404

        body = {"email": payload.email, "tracking_id": submitted["tracking_id"]}
        assert (await client.post("/api/tracking/otp", json=body)).status_code == 200
        r = await client.post("/api/tracking/verify", json={**body, "otp": notifier.last_code(payload.email)})
        assert r.status_code == 200, r.text
        assert [log["action"] for log in r.json()["logs"]] == ["request_created"]

    async def test_wrong_tracking_id_keeps_the_code_usable(self, client, notifier, make_payload):
        payload = make_payload()
        submitted = await _submit(client, notifier, payload)

        body = {"email": payload.email, "tracking_id": submitted["tracking_id"]}
        assert (await client.post("/api/tracking/otp", json=body)).status_code == 200
        code = notifier.last_code(payload.email)

        r = await client.post(
            "/api/tracking/verify", json={**body, "tracking_id": "BNHS-NOPE2345", "otp": code}
        )
        assert r.status_code == 404

        r = await client.post("/api/tracking/verify", json={**body, "otp": code})
        assert r.status_code == 200, r.text


class TestDashboard:
    async def test_unknown_email_gets_no_code(self, client, notifier):
        r = await client.post("/api/dashboard/otp", json={"email": "stranger@gmail.com"})
        assert r.status_code == 404
        assert notifier.sent == []

    async def test_dashboard_login_and_logout(self, client, notifier, make_payload):
        payload = make_payload()
        await _submit(client, notifier, payload)
        await client.post("/api/dashboard/logout")
        assert (await client.get("/api/dashboard")).status_code == 403

        assert (await client.post("/api/dashboard/otp", json={"email": payload.email})).status_code == 200
        r = await client.post(
            "/api/dashboard/verify-otp", json={"email": payload.email, "otp": notifier.last_code(payload.email)}
        )
        assert r.status_code == 200

        r = await client.get("/api/dashboard")
        data = r.json()
        assert data["has_requests"] is True
        assert len(data["request_history"]) == 1
        assert data["latest_request"]["status_description"] == "Your request is currently under review."

    async def test_otp_is_required_without_bypass(self, client, notifier, make_payload):
        payload = make_payload()
        await _submit(client, notifier, payload)
        r = await client.post("/api/dashboard/verify-otp", json={"email": payload.email})
        assert r.status_code == 422


class TestBackOffice:
    async def test_registrar_processes_a_request(self, client, notifier, make_payload, registrar, login):
        submitted = await _submit(client, notifier, make_payload())
        headers = await login(registrar.email)

        r = await client.get("/api/admin/requests", headers=headers)
        assert r.status_code == 200
        assert r.json()["total"] == 1
        request_id = r.json()["items"][0]["id"]

        r = await client.patch(
            f"/api/admin/requests/{request_id}/status",
            json={"status": "Processing", "notes": "Printing now"},
            headers=headers,
        )
        assert r.status_code == 200, r.text
        detail = r.json()
        assert detail["tracking_id"] == submitted["tracking_id"]
        assert detail["status"] == "Processing"
        assert detail["processed_by"] == "Ben Cruz"
        assert [log["action"] for log in detail["logs"]] == ["request_created", "status_change"]
        assert detail["logs"][-1]["user_name"] == "Ben Cruz"

    async def test_staff_routes_need_a_token(self, client):
        assert (await client.get("/api/admin/requests")).status_code == 401

    async def test_registrar_cannot_manage_users_or_delete(self, client, registrar, login):
        headers = await login(registrar.email)
        assert (await client.get("/api/admin/users", headers=headers)).status_code == 403
        assert (await client.get("/api/admin/audit-logs", headers=headers)).status_code == 403
        assert (await client.delete("/api/admin/requests/1", headers=headers)).status_code == 403

    async def test_failed_and_successful_logins_are_audited(self, client, superadmin, login, session_factory):
        r = await client.post("/api/auth/login", json={"email": superadmin.email, "password": "wrong-password"})
        assert r.status_code == 401
        headers = await login(superadmin.email)

        r = await client.get("/api/admin/audit-logs", headers=headers)
        assert r.status_code == 200
        actions = [item["action"] for item in r.json()["items"]]
        assert actions == ["LOGIN", "LOGIN_FAILED"]

        await client.post("/api/auth/logout", headers=headers)
        async with session_factory() as session:
            last = (await session.execute(select(AuditLog).order_by(AuditLog.id.desc()))).scalars().first()
        assert last.action == "LOGOUT"

    async def test_superadmin_manages_users(self, client, superadmin, login):
        headers = await login(superadmin.email)
        r = await client.post(
            "/api/admin/users",
            json={"name": "Cora Lim", "email": "cora@bnhs.edu.ph", "password": "Registrar#2026"},
            headers=headers,
        )
        assert r.status_code == 201, r.text
        user = r.json()
        assert user["role"] == "registrar"

        r = await client.post(
            "/api/admin/users",
            json={"name": "Cora Again", "email": "cora@bnhs.edu.ph", "password": "Registrar#2026"},
            headers=headers,
        )
        assert r.status_code == 409

        r = await client.delete(f"/api/admin/users/{superadmin.id}", headers=headers)
        assert r.status_code == 400

        r = await client.delete(f"/api/admin/users/{user['id']}", headers=headers)
        assert r.status_code == 200

    async def test_bulk_delete_and_trash(self, client, notifier, make_payload, superadmin, login):
        first = await _submit(client, notifier, make_payload())
        second = await _submit(client, notifier, make_payload())
        headers = await login(superadmin.email)

        listing = (await client.get("/api/admin/requests", headers=headers)).json()
        ids = [item["id"] for item in listing["items"]]

        r = await client.post(
            "/api/admin/requests/bulk", json={"action": "delete", "request_ids": ids}, headers=headers
        )
        assert r.status_code == 200
        assert r.json()["count"] == 2

        assert (await client.get("/api/admin/requests", headers=headers)).json()["total"] == 0
        trash = (await client.get("/api/admin/requests/trash", headers=headers)).json()
        assert {item["tracking_id"] for item in trash["items"]} == {first["tracking_id"], second["tracking_id"]}

        r = await client.post(f"/api/admin/requests/{ids[0]}/restore", headers=headers)
        assert r.status_code == 200
        assert r.json()["deleted_at"] is None

    async def test_bulk_status_needs_a_status(self, client, superadmin, login):
        headers = await login(superadmin.email)
        r = await client.post(
            "/api/admin/requests/bulk", json={"action": "status_update", "request_ids": [1]}, headers=headers
        )
        assert r.status_code == 422
