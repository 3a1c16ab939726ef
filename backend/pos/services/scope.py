# Overview: Explicit caller scope passed into every scoped service call.

from __future__ import annotations

from dataclasses import dataclass

from ..models import User


@dataclass(frozen=True)
class Scope:
    """
    Owner boundary and store context for one request.

    Built once by the route layer from the authenticated user; services never
    read the current user or store settings from ambient state.
    """
    user_id: int
    cashier_id: int | None
    tax_rate_bps: int
    currency: str


def scope_for_user(user: User, cashier_id: int | None = None) -> Scope:
    return Scope(
        user_id=user.id,
        cashier_id=cashier_id if cashier_id is not None else user.id,
        tax_rate_bps=user.tax_rate_bps,
        currency=user.currency,
    )
