"""
seed_admin.py
─────────────
Creates the first superadmin account and the standard document types.
Run ONCE after the migration (safe to re-run, existing rows are kept):

    python seed_admin.py

Reads from .env. Change SEED_ADMIN_* values there, or edit defaults below.
"""
import asyncio
import os
from dotenv import load_dotenv

load_dotenv()

# ── Change these in .env or edit here ────────────────────────────────
ADMIN_NAME     = os.getenv("SEED_ADMIN_NAME",     "Super Admin")
ADMIN_EMAIL    = os.getenv("SEED_ADMIN_EMAIL",    "superadmin@bnhs.edu.ph")
ADMIN_PASSWORD = os.getenv("SEED_ADMIN_PASSWORD", "ChangeMe@2025")
# ─────────────────────────────────────────────────────────────────────

# (name, category, description, processing_days)
DOCUMENT_TYPES = [
    ("Grade Slip (Quarter 1)", "Informal", "Quarterly grade slip", 1),
    ("Grade Slip (Quarter 2)", "Informal", "Quarterly grade slip", 1),
    ("Grade Slip (Quarter 3)", "Informal", "Quarterly grade slip", 1),
    ("Grade Slip (Quarter 4)", "Informal", "Quarterly grade slip", 1),
    ("Good Moral Certificate", "Official", "Certificate of good moral character", 3),
    ("Enrollment Certificate", "Official", "Proof of current or past enrollment", 3),
    ("Certificate of Honors", "Official", "Certificate of academic honors received", 3),
    ("Report Card (Form 138)", "Official", "Learner's progress report card", 5),
    ("Permanent Record (Form 137)", "Official", "Learner's permanent academic record", 7),
    ("Diploma", "Official", "Diploma for completed level", 7),
    ("Certified True Copy of Report Card", "Certified", "Certified true copy of Form 138", 7),
    ("Certified True Copy of Diploma", "Certified", "Certified true copy of diploma", 7),
    ("Reconstructed Diploma", "Certified", "Reconstructed diploma for lost or damaged original", 14),
    ("Reconstructed Report Card", "Certified", "Reconstructed report card for lost or damaged original", 14),
    ("CAV (Certification, Authentication, Verification)", "Certified", "Official certification for document authentication", 10),
]


async def seed():
    from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
    from sqlalchemy import select
    from app.core.security import hash_password
    from app.models import audit_log, document_request, request_log  # noqa: F401
    from app.models.document_type import DocumentType
    from app.models.user import User, UserRole

    engine  = create_async_engine(os.environ["DATABASE_URL"], echo=False)
    Session = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

    async with Session() as db:
        existing = (await db.execute(
            select(User).where(User.email == ADMIN_EMAIL)
        )).scalar_one_or_none()

        if existing:
            print(f"⚠️  Superadmin already exists: {ADMIN_EMAIL}")
            admin = None
        else:
            admin = User(
                name=ADMIN_NAME,
                email=ADMIN_EMAIL,
                password_hash=hash_password(ADMIN_PASSWORD),
                role=UserRole.SUPERADMIN,
            )
            db.add(admin)

        known = set((await db.execute(select(DocumentType.name))).scalars().all())
        added = 0
        for name, category, description, days in DOCUMENT_TYPES:
            if name in known:
                continue
            db.add(DocumentType(name=name, category=category, description=description, processing_days=days))
            added += 1

        await db.commit()

    await engine.dispose()

    if admin is not None:
        print("\n✅  Superadmin created successfully!")
        print(f"    ID    : {admin.id}")
        print(f"    Name  : {admin.name}")
        print(f"    Email : {admin.email}")
        print()
        print("🔑  Login endpoint : POST /api/auth/login")
        print(f'    Body           : {{"email": "{ADMIN_EMAIL}", "password": "{ADMIN_PASSWORD}"}}')
        print()
        print("⚠️   Change the password after first login!")
    print(f"📄  Document types added: {added}")


if __name__ == "__main__":
    asyncio.run(seed())
