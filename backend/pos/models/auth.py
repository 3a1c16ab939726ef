from __future__ import annotations

from ..extensions import db
from pos.time_utils import to_utc_z

class User(db.Model):
    """
    User accounts for authentication and attribution.

    SCOPE: Every product, cart line, and transaction belongs to exactly one
    user. The store settings (currency, tax rate, receipt fields) live on the
    user record and are only written through settings_service.update_settings.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("username", name="uq_users_username"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    username = db.Column(db.String(64), nullable=False, index=True)
    email = db.Column(db.String(255), nullable=True)
    full_name = db.Column(db.String(255), nullable=True)
    role = db.Column(db.String(32), nullable=False, default="user")

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # Store settings
    currency = db.Column(db.String(3), nullable=False, default="USD")
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=800)  # Basis points (e.g., 825 = 8.25%)
    store_name = db.Column(db.String(120), nullable=False, default="My POS Store")
    store_address = db.Column(db.String(255), nullable=True)
    store_phone = db.Column(db.String(64), nullable=True)
    store_email = db.Column(db.String(255), nullable=True)
    receipt_footer = db.Column(db.String(500), nullable=True)
    show_logo = db.Column(db.Boolean, nullable=False, default=False)
    logo_url = db.Column(db.String(500), nullable=True)
    show_tax_on_receipt = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "full_name": self.full_name,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }

    def settings_dict(self) -> dict:
        return {
            "currency": self.currency,
            "tax_rate_bps": self.tax_rate_bps,
            "tax_rate_percent": self.tax_rate_bps / 100,
            "store_name": self.store_name,
            "store_address": self.store_address,
            "store_phone": self.store_phone,
            "store_email": self.store_email,
            "receipt_footer": self.receipt_footer,
            "show_logo": self.show_logo,
            "logo_url": self.logo_url,
            "show_tax_on_receipt": self.show_tax_on_receipt,
        }


class SessionToken(db.Model):
    """
    Session token record. Only the SHA-256 hash of the bearer token is stored.

    - 24-hour absolute timeout
    - 2-hour idle timeout
    - Revocable on logout
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.Index("ix_session_tokens_user_active", "user_id", "is_revoked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    token_hash = db.Column(db.String(255), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    user_agent = db.Column(db.String(255), nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)

    user = db.relationship("User", backref=db.backref("sessions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
            "is_revoked": self.is_revoked,
        }
