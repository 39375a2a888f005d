"""
Shared fixtures.

Every test gets its own SQLite file (aiosqlite) with the schema created from
the models, a recording notifier instead of the Brevo API, and a frozen clock
that tests move forward to simulate elapsed time.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test-unused.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "false")

from datetime import datetime, timedelta, timezone

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core import clock
from app.core.database import Base, get_db, get_session_factory
from app.core.email_service import EmailNotifier, NotificationError, get_notifier
from app.core.security import hash_password
from app.models import audit_log, otp_code, request_log  # noqa: F401
from app.models.document_type import DocumentType
from app.models.user import User, UserRole
from app.schemas.document_request import DocumentRequestCreate
from app.services.audit_recorder import AuditRecorder, RequestContext

STAFF_PASSWORD = "CorrectHorse9"


class FrozenClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now += timedelta(**delta)
        return self.now


class RecordingNotifier(EmailNotifier):
    def __init__(self):
        super().__init__(api_key="test-key", api_url="http://mail.invalid/send")
        self.sent: list[tuple[str, str, dict]] = []
        self.fail = False

    async def send(self, to_email, kind, payload):
        if self.fail:
            raise NotificationError("mail provider unavailable")
        self.sent.append((to_email, kind, payload))

    def kinds(self) -> list[str]:
        return [kind for _, kind, _ in self.sent]

    def last_code(self, email: str) -> str:
        for to_email, kind, payload in reversed(self.sent):
            if to_email == email and kind == "otp":
                return payload["code"]
        raise AssertionError(f"no OTP sent to {email}")


@pytest.fixture
def frozen_clock(monkeypatch):
    # real "now" so JWT expiry checks (wall clock) still pass
    fc = FrozenClock(datetime.now(timezone.utc).replace(microsecond=0))
    monkeypatch.setattr(clock, "utcnow", fc)
    return fc


@pytest.fixture
async def engine(tmp_path):
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'portal.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def audit(session_factory):
    return AuditRecorder(session_factory)


@pytest.fixture
def notifier():
    return RecordingNotifier()


# ── Data ──────────────────────────────────────────────────────────────

@pytest.fixture
async def document_type(db, frozen_clock):
    doc_type = DocumentType(name="Good Moral Certificate", category="Official", processing_days=3)
    db.add(doc_type)
    await db.commit()
    return doc_type


@pytest.fixture
async def other_document_type(db, frozen_clock):
    doc_type = DocumentType(name="Report Card (Form 138)", category="Official", processing_days=5)
    db.add(doc_type)
    await db.commit()
    return doc_type


@pytest.fixture
def make_payload(faker, document_type):
    def _make(**overrides) -> DocumentRequestCreate:
        data = {
            "email": faker.unique.free_email(),
            "first_name": faker.first_name(),
            "middle_name": faker.last_name(),
            "last_name": faker.last_name(),
            "lrn": faker.numerify("############"),
            "grade_level": "Grade 10",
            "section": "Rizal",
            "school_year_last_attended": "2024-2025",
            "document_type_id": document_type.id,
            "purpose": "Scholarship application",
            "quantity": 1,
        }
        data.update(overrides)
        return DocumentRequestCreate(**data)

    return _make


async def _make_user(db, name: str, email: str, role: UserRole) -> User:
    user = User(name=name, email=email, password_hash=hash_password(STAFF_PASSWORD), role=role)
    db.add(user)
    await db.commit()
    return user


@pytest.fixture
async def superadmin(db, frozen_clock):
    return await _make_user(db, "Ana Santos", "superadmin@bnhs.edu.ph", UserRole.SUPERADMIN)


@pytest.fixture
async def registrar(db, frozen_clock):
    return await _make_user(db, "Ben Cruz", "registrar@bnhs.edu.ph", UserRole.REGISTRAR)


@pytest.fixture
def staff_audit(session_factory, registrar):
    return AuditRecorder(session_factory, RequestContext(actor=registrar, ip_address="10.0.0.5"))


# ── HTTP ──────────────────────────────────────────────────────────────

@pytest.fixture
async def client(session_factory, notifier, frozen_clock):
    from app.main import app

    async def _get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_notifier] = lambda: notifier

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def login(client):
    """Log a staff user in and return the Authorization header."""

    async def _login(email: str, password: str = STAFF_PASSWORD) -> dict:
        r = await client.post("/api/auth/login", json={"email": email, "password": password})
        assert r.status_code == 200, r.text
        return {"Authorization": f"Bearer {r.json()['access_token']}"}

    return _login
