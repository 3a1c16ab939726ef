# Overview: Maps service-layer exceptions to JSON error responses.

from __future__ import annotations

from flask import jsonify

from .services.auth_service import PasswordValidationError
from .services.checkout_service import EmptyCartError
from .services.inventory_service import InventoryError
from .services.transaction_service import TransactionStateError
from .validation import ConflictError, NotFoundError, ValidationError

_STATUS_BY_ERROR = (
    (ValidationError, 400, "VALIDATION_ERROR"),
    (PasswordValidationError, 400, "WEAK_PASSWORD"),
    (NotFoundError, 404, "NOT_FOUND"),
    (ConflictError, 409, "CONFLICT"),
    (InventoryError, 409, None),
    (EmptyCartError, 409, None),
    (TransactionStateError, 409, None),
)

KNOWN_ERRORS = tuple(cls for cls, _status, _code in _STATUS_BY_ERROR)


def error_response(exc: Exception):
    """JSON body + status for a known service error. Unknown errors propagate."""
    for cls, status, code in _STATUS_BY_ERROR:
        if isinstance(exc, cls):
            if hasattr(exc, "to_dict"):
                return jsonify(exc.to_dict()), status
            return jsonify({"error": str(exc), "code": code}), status
    raise exc
