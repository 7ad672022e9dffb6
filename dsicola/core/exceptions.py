# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Exception hierarchy for the DSICOLA authorization engine.

Every refusal the engine can produce is one of these named errors:
- DsicolaError: Base exception, carries reason code and HTTP status
- UnauthenticatedError: Token missing, invalid, expired or carrying a bad tenant claim
- ForbiddenError: Role lacks permission, or cross-tenant access
- TenantRedirectError: Ordinary role on the central domain, carries redirect URL
- NotFoundError: Unknown subdomain, subject, period or student for the tenant
- InvalidTransitionError: Status does not support the requested change
- PreconditionFailedError: One or more validation rules unmet, all reported
- PolicyBlockedError: Financial or institutional gate refusal
"""

from typing import Any


class DsicolaError(Exception):
    """Base exception for all engine errors.

    Attributes:
        message: Human-readable error description.
        reason: Stable machine-readable reason code.
        status_code: HTTP status the API layer renders.
        details: Additional structured context.
    """

    status_code: int = 400
    default_reason: str = "ERROR"

    def __init__(
        self,
        message: str,
        reason: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error description.
            reason: Reason code, defaults to the class default.
            details: Optional dictionary with additional error context.
        """
        self.message = message
        self.reason = reason or self.default_reason
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation with the reason code."""
        return f"[{self.reason}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Render the error as a JSON-serialisable body."""
        return {"detail": self.message, "reason": self.reason, **self.details}


class UnauthenticatedError(DsicolaError):
    """Re-authentication required."""

    status_code = 401
    default_reason = "UNAUTHENTICATED"


class ForbiddenError(DsicolaError):
    """Operation refused for this caller."""

    status_code = 403
    default_reason = "FORBIDDEN"


class TenantRedirectError(ForbiddenError):
    """Central domain accessed by an institution user.

    Attributes:
        redirect_url: The caller's own institution URL, when known.
    """

    default_reason = "REDIRECT_TO_SUBDOMAIN"

    def __init__(self, message: str, redirect_url: str | None = None) -> None:
        self.redirect_url = redirect_url
        details = {"redirect_url": redirect_url} if redirect_url else {}
        super().__init__(message, details=details)


class NotFoundError(DsicolaError):
    """Resource does not exist for this tenant."""

    status_code = 404
    default_reason = "NOT_FOUND"


class InvalidTransitionError(DsicolaError):
    """Requested status change is not supported from the current status.

    Attributes:
        current_status: Status the subject is in.
    """

    default_reason = "INVALID_TRANSITION"

    def __init__(self, message: str, current_status: str, reason: str | None = None) -> None:
        self.current_status = current_status
        super().__init__(message, reason=reason, details={"current_status": current_status})


class PreconditionFailedError(DsicolaError):
    """Validation failed.

    Attributes:
        violations: Every unmet condition, in evaluation order.
    """

    default_reason = "PRECONDITION_FAILED"

    def __init__(
        self,
        message: str,
        violations: list[str] | None = None,
        reason: str | None = None,
    ) -> None:
        self.violations = list(violations or [message])
        super().__init__(message, reason=reason, details={"violations": self.violations})


class PolicyBlockedError(DsicolaError):
    """Gate refused the operation with a student-safe reason."""

    status_code = 403
    default_reason = "POLICY_BLOCKED"
