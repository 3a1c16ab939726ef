# Overview: Service-layer operations for store settings (per-user currency, tax rate, receipt fields).

from __future__ import annotations

import logging

from ..extensions import db
from ..models import User
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    enforce_rules_settings,
    validate_payload,
)

logger = logging.getLogger(__name__)

SETTINGS_POLICY = ModelValidationPolicy(
    writable_fields={
        "currency",
        "tax_rate_bps",
        "store_name",
        "store_address",
        "store_phone",
        "store_email",
        "receipt_footer",
        "show_logo",
        "logo_url",
        "show_tax_on_receipt",
    },
    required_on_create=set(),
)


def _get_user(user_id: int) -> User:
    user = db.session.query(User).filter_by(id=user_id).first()
    if user is None:
        raise NotFoundError("User not found")
    return user


def get_settings(user_id: int) -> dict:
    return _get_user(user_id).settings_dict()


def update_settings(user_id: int, payload: dict) -> dict:
    """
    Partial settings update. Unknown fields are rejected (ValidationError).

    A new tax rate applies to previews and settlements from now on;
    transactions already recorded keep the rate they were created with.
    """
    patch = validate_payload(model=User, payload=payload, policy=SETTINGS_POLICY, partial=True)
    enforce_rules_settings(patch)

    user = _get_user(user_id)
    for key, value in patch.items():
        setattr(user, key, value)
    db.session.commit()

    if patch:
        logger.info("Updated settings for user %s: %s", user_id, ", ".join(sorted(patch)))
    return user.settings_dict()
