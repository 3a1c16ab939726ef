# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

Every product, cart line and transaction belongs to a user, so every action
is attributable. Uses bcrypt for password hashing and validates password
strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
"""

import logging
import re

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User
from ..validation import ConflictError, ValidationError
from pos.time_utils import utcnow

logger = logging.getLogger(__name__)


PASSWORD_MIN_LENGTH = 8
BCRYPT_ROUNDS = 12

_PASSWORD_RULES = (
    (re.compile(r"[A-Z]"), "uppercase letter"),
    (re.compile(r"[a-z]"), "lowercase letter"),
    (re.compile(r"\d"), "digit"),
    (re.compile(r"[!@#$%^&*(),.'\":{}|<>]"), "special character"),
)


class PasswordValidationError(Exception):
    """Password rejected by the strength rules."""


def validate_password_strength(password: str) -> None:
    """
    At least 8 characters with an uppercase letter, a lowercase letter,
    a digit and one of !@#$%^&*(),.'":{}|<>

    Raises PasswordValidationError naming the first unmet rule.
    """
    if not isinstance(password, str) or len(password) < PASSWORD_MIN_LENGTH:
        raise PasswordValidationError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")

    for pattern, label in _PASSWORD_RULES:
        if not pattern.search(password):
            raise PasswordValidationError(f"Password must contain at least one {label}")


def hash_password(password: str) -> str:
    validate_password_strength(password)
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Malformed stored hashes never match."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_user(
    username: str,
    password: str,
    email: str | None = None,
    full_name: str | None = None,
    role: str = "user",
) -> User:
    """
    Create a user with bcrypt password hashing and the configured store defaults
    (DEFAULT_CURRENCY, DEFAULT_TAX_RATE_BPS).

    Raises:
        ValidationError: missing username
        ConflictError: username already taken
        PasswordValidationError: password doesn't meet requirements
    """
    if not isinstance(username, str) or not username.strip():
        raise ValidationError("username is required", field="username")
    username = username.strip()
    if len(username) > 64:
        raise ValidationError("username exceeds max length 64", field="username")

    existing = db.session.query(User).filter(User.username == username).first()
    if existing:
        raise ConflictError("Username already exists")

    password_hash = hash_password(password)

    user = User(
        username=username,
        email=email,
        full_name=full_name,
        role=role,
        password_hash=password_hash,
        currency=current_app.config["DEFAULT_CURRENCY"],
        tax_rate_bps=current_app.config["DEFAULT_TAX_RATE_BPS"],
    )

    db.session.add(user)
    db.session.commit()

    logger.info("Created user %s (%s)", user.id, user.username)
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Authenticate user with username (or email) and password.

    Returns User if credentials valid, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    user = db.session.query(User).filter(
        db.or_(User.username == username, User.email == username),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None
