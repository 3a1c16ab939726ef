# Overview: Bearer-token sessions for register logins (issue, validate, revoke, purge).

"""
Register sessions.

A login issues an opaque random token. The client keeps the plaintext; the
database keeps only its SHA-256 digest. A session dies when it passes its
absolute lifetime, sits idle too long, is revoked at logout, or its user is
deactivated. Lifetimes come from SESSION_ABSOLUTE_HOURS and
SESSION_IDLE_MINUTES.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from ..validation import NotFoundError
from pos.time_utils import utcnow

logger = logging.getLogger(__name__)

STALE_SESSION_RETENTION = timedelta(days=30)


@dataclass
class SessionContext:
    user: User
    session: SessionToken


def _absolute_lifetime() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_ABSOLUTE_HOURS", 24))


def _idle_lifetime() -> timedelta:
    return timedelta(minutes=current_app.config.get("SESSION_IDLE_MINUTES", 120))


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _live_session(token: str) -> SessionToken | None:
    return (
        db.session.query(SessionToken)
        .filter(SessionToken.token_hash == hash_token(token), SessionToken.is_revoked.is_(False))
        .first()
    )


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Open a session for user_id. Returns (record, plaintext token); the
    plaintext is never persisted.
    """
    if db.session.get(User, user_id) is None:
        raise NotFoundError("User not found")

    token = generate_token()
    now = utcnow()
    record = SessionToken(
        user_id=user_id,
        token_hash=hash_token(token),
        created_at=now,
        last_used_at=now,
        expires_at=now + _absolute_lifetime(),
        user_agent=(user_agent or "")[:255] or None,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(record)
    db.session.commit()

    logger.info("Opened session %s for user %s", record.id, user_id)
    return record, token


def _revoke(record: SessionToken, reason: str) -> None:
    record.is_revoked = True
    record.revoked_at = utcnow()
    record.revoked_reason = reason
    db.session.commit()
    logger.info("Revoked session %s: %s", record.id, reason)


def validate_session(token: str) -> SessionContext | None:
    """
    Resolve a bearer token to its user, or None when it is unknown, expired,
    idle past the limit, revoked, or owned by a deactivated account.
    Touches last_used_at on success.
    """
    record = _live_session(token)
    if record is None:
        return None

    now = utcnow()
    if record.expires_at < now:
        return None
    if now - record.last_used_at > _idle_lifetime():
        _revoke(record, "Idle timeout")
        return None

    user = record.user
    if user is None or not user.is_active:
        _revoke(record, "User account deactivated")
        return None

    record.last_used_at = now
    db.session.commit()
    return SessionContext(user=user, session=record)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    record = _live_session(token)
    if record is None:
        return False
    _revoke(record, reason)
    return True


def cleanup_expired_sessions() -> int:
    """Purge expired or revoked sessions created more than 30 days ago."""
    now = utcnow()
    deleted = (
        db.session.query(SessionToken)
        .filter(
            db.or_(SessionToken.expires_at < now, SessionToken.is_revoked.is_(True)),
            SessionToken.created_at < now - STALE_SESSION_RETENTION,
        )
        .delete(synchronize_session=False)
    )
    db.session.commit()
    logger.info("Purged %s stale sessions", deleted)
    return deleted
