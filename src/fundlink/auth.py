"""Approval gate over a principal established by the external identity provider."""

import logging
from typing import Optional

from .errors import AccessDeniedError
from .models import Principal

logger = logging.getLogger(__name__)

PENDING = "pending"
APPROVED = "approved"
SUSPENDED = "suspended"
REJECTED = "rejected"

STATUSES = (PENDING, APPROVED, SUSPENDED, REJECTED)


def require_approved(principal: Optional[Principal]) -> Principal:
    """Return principal if approved, else raise AccessDeniedError."""
    if principal is None:
        raise AccessDeniedError("No signed-in user")
    if principal.is_approved:
        return principal
    if principal.status == PENDING:
        message = "Account is awaiting approval"
    elif principal.status in (SUSPENDED, REJECTED):
        message = f"Account is {principal.status}"
    else:
        message = f"Unknown account status {principal.status!r}"
    logger.warning(f"Access denied for {principal.email or principal.uid}: {message}")
    raise AccessDeniedError(message, status=principal.status)
