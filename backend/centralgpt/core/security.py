# centralgpt/core/security.py
"""
Access key helpers.
Access keys are bearer secrets: the plain text goes to the user once,
the database only keeps its sha256 digest plus a short display prefix/suffix.
"""
import datetime as dt
import hashlib
import secrets
import string

KEY_ALPHABET = string.ascii_uppercase + string.digits


def generate_access_key(prefix: str = "CGPT", groups: int = 4, group_len: int = 4) -> str:
    """
    Generate a human-friendly access key, e.g. CGPT-7K2Q-M9XA-0PLD-W3RT.
    """
    parts = ["".join(secrets.choice(KEY_ALPHABET) for _ in range(group_len)) for _ in range(groups)]
    return "-".join([prefix, *parts]) if prefix else "-".join(parts)


def hash_access_key(raw: str) -> str:
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def key_display_parts(raw: str) -> tuple[str | None, str | None]:
    """
    Split a plain key into (prefix, last4) for display.
    Keys without a dash have no prefix.
    """
    prefix = raw.split("-", 1)[0][:8] if "-" in raw else None
    last4 = raw[-4:] if len(raw) >= 4 else None
    return prefix, last4


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def as_utc(value: dt.datetime) -> dt.datetime:
    """Naive datetimes coming back from the database are UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc)


def is_key_expired(created_at: dt.datetime, now: dt.datetime, expiry_hours: int) -> bool:
    """
    Absolute cutoff measured from account creation.
    A key exactly expiry_hours old is already expired.
    """
    elapsed = as_utc(now) - as_utc(created_at)
    return elapsed >= dt.timedelta(hours=expiry_hours)


def generate_session_token() -> str:
    """Opaque bearer token for the HTTP client of the active session."""
    return secrets.token_urlsafe(32)


def tokens_match(presented: str | None, expected: str | None) -> bool:
    if not presented or not expected:
        return False
    return secrets.compare_digest(presented.encode("utf-8"), expected.encode("utf-8"))
