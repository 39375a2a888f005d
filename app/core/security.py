import hashlib
from datetime import timedelta

import bcrypt
from jose import jwt

from app.core import clock
from app.core.config import settings


# ── Bcrypt Password Hashing (staff accounts) ──────────────────────────

def hash_password(plain: str) -> str:
    """
    Hash a plaintext password with bcrypt.
    bcrypt generates a unique salt, the same password gives a different hash
    each time, which is correct and expected.
    """
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


# Used when no real hash exists so a lookup miss costs the same as a
# wrong password.
_DUMMY_HASH = hash_password("dummy-password-for-timing")


def verify_password(plain: str, hashed: str | None) -> bool:
    """
    Timing-safe bcrypt comparison.

    Guards against:
      - None hash  (unknown account)
      - Truncated / malformed hash  (bcrypt raises ValueError)
      - Timing attacks  (always runs a bcrypt check, even on dummy hash)
    """
    target = hashed if hashed and len(hashed) >= 59 else _DUMMY_HASH
    try:
        ok = bcrypt.checkpw(plain.encode("utf-8"), target.encode("utf-8"))
    except ValueError:
        bcrypt.checkpw(b"x", _DUMMY_HASH.encode("utf-8"))
        return False
    return ok and target is not _DUMMY_HASH


# ── OTP digests ───────────────────────────────────────────────────────

def hash_otp(code: str) -> str:
    return hashlib.sha256(code.encode("utf-8")).hexdigest()


# ── JWT Token ─────────────────────────────────────────────────────────
def create_access_token(user_id: int, email: str, role: str) -> str:
    """
    Creates a signed JWT for a staff user. Change SECRET_KEY in .env to
    invalidate all tokens.

    Payload contains:
      sub   : user ID (standard JWT claim)
      email : for frontend display
      role  : superadmin | registrar, re-checked against the DB on each call
      type  : guards against using wrong token types
      iat   : issued at
      exp   : expiry (set by ACCESS_TOKEN_EXPIRE_MINUTES in .env)
    """
    now = clock.utcnow()
    payload = {
        "sub":   str(user_id),
        "email": email,
        "role":  role,
        "type":  "access",
        "iat":   now,
        "exp":   now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict:
    """
    Decodes and verifies JWT signature + expiry.
    Raises jose.JWTError on any failure.
    """
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
