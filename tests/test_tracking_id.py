import re
from datetime import date

from app.controllers import document_request_controller as ctl
from app.controllers.document_request_controller import add_weekdays, generate_tracking_id, status_description
from app.models.document_request import DocumentRequest, RequestStatus

TRACKING_ID_RE = re.compile(r"^BNHS-[ABCDEFGHJKLMNPQRSTUVWXYZ23456789]{8}$")


class TestTrackingId:
    async def test_format(self, db, frozen_clock):
        for _ in range(20):
            assert TRACKING_ID_RE.match(await generate_tracking_id(db))

    async def test_custom_prefix(self, db, frozen_clock):
        assert (await generate_tracking_id(db, prefix="SHS")).startswith("SHS-")

    async def test_collision_retries(self, db, frozen_clock, make_payload, monkeypatch):
        db.add(_request_with_id(make_payload(), "BNHS-AAAAAAAA"))
        await db.commit()

        candidates = iter(["BNHS-AAAAAAAA", "BNHS-BBBBBBBB"])
        monkeypatch.setattr(ctl, "_random_tracking_id", lambda prefix: next(candidates))
        assert await generate_tracking_id(db) == "BNHS-BBBBBBBB"

    async def test_exhausted_attempts_fall_back_to_time_suffix(self, db, frozen_clock, make_payload, monkeypatch):
        db.add(_request_with_id(make_payload(), "BNHS-AAAAAAAA"))
        await db.commit()

        monkeypatch.setattr(ctl, "_random_tracking_id", lambda prefix: "BNHS-AAAAAAAA")
        tracking_id = await generate_tracking_id(db, max_attempts=3)
        assert tracking_id == f"BNHS-AAAAAAAA-{frozen_clock.now:%H%M%S}"

    async def test_time_suffix_is_checked_for_collisions(self, db, frozen_clock, make_payload, monkeypatch):
        fallback = f"BNHS-AAAAAAAA-{frozen_clock.now:%H%M%S}"
        db.add(_request_with_id(make_payload(), "BNHS-AAAAAAAA"))
        db.add(_request_with_id(make_payload(), fallback))
        await db.commit()

        monkeypatch.setattr(ctl, "_random_tracking_id", lambda prefix: "BNHS-AAAAAAAA")
        assert await generate_tracking_id(db, max_attempts=3) == f"{fallback}-2"

    async def test_exhausted_space_never_breaks_create(self, db, audit, frozen_clock, make_payload, monkeypatch):
        monkeypatch.setattr(ctl, "_random_tracking_id", lambda prefix: "BNHS-AAAAAAAA")
        monkeypatch.setattr(ctl.settings, "TRACKING_ID_MAX_ATTEMPTS", 3)

        created = [await ctl.create_request(db, make_payload(), audit=audit) for _ in range(3)]
        assert len({req.tracking_id for req in created}) == 3

    def test_bulk_sample_is_unique_and_well_formed(self):
        sample = [ctl._random_tracking_id("BNHS") for _ in range(100_000)]
        assert len(set(sample)) == len(sample)
        assert all(TRACKING_ID_RE.match(tid) for tid in sample)


class TestAddWeekdays:
    def test_skips_weekend(self):
        friday = date(2026, 3, 6)
        assert add_weekdays(friday, 1) == date(2026, 3, 9)

    def test_seven_weekdays_from_monday(self):
        assert add_weekdays(date(2026, 3, 2), 7) == date(2026, 3, 11)

    def test_zero_days(self):
        assert add_weekdays(date(2026, 3, 7), 0) == date(2026, 3, 7)


class TestStatusDescription:
    def test_every_status_has_text(self):
        for s in RequestStatus:
            assert status_description(s)

    def test_ready(self):
        assert status_description("Ready") == "Your document is ready for pickup!"

    def test_unknown_value(self):
        assert status_description("Archived") == "Status update available."


def _request_with_id(payload, tracking_id: str) -> DocumentRequest:
    return DocumentRequest(**payload.model_dump(), tracking_id=tracking_id, status=RequestStatus.PENDING)
