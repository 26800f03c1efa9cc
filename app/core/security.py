from __future__ import annotations

import base64
import hashlib
import hmac
import time
from typing import Optional

from app.core.config import settings


def hash_password(password: str, salt: bytes) -> str:
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, 120_000)
    return digest.hex()


def _sign(payload: str, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).hexdigest()


def issue_token(email: str, ttl_minutes: Optional[int] = None, now: Optional[float] = None) -> str:
    """Build a bearer token of the form ``<b64 email>.<expiry>.<signature>``."""
    ttl = settings.session_ttl_minutes if ttl_minutes is None else ttl_minutes
    issued = time.time() if now is None else now
    expires = int(issued + ttl * 60)
    subject = base64.urlsafe_b64encode(email.encode("utf-8")).decode("ascii").rstrip("=")
    payload = f"{subject}.{expires}"
    return f"{payload}.{_sign(payload, settings.auth_secret)}"


def verify_token(token: str, now: Optional[float] = None) -> Optional[str]:
    """Return the email carried by a valid token, or None."""
    parts = token.split(".")
    if len(parts) != 3:
        return None
    subject, expires, signature = parts
    expected = _sign(f"{subject}.{expires}", settings.auth_secret)
    if not hmac.compare_digest(expected, signature):
        return None
    try:
        expires_at = int(expires)
    except ValueError:
        return None
    current = time.time() if now is None else now
    if expires_at < current:
        return None
    padding = "=" * (-len(subject) % 4)
    try:
        return base64.urlsafe_b64decode(subject + padding).decode("utf-8")
    except (ValueError, UnicodeDecodeError):
        return None
