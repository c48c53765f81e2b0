from __future__ import annotations

__all__ = ["AuthError", "Unauthenticated", "Forbidden", "LookupDegraded"]


class AuthError(Exception):
    """Authorization failure with a stable code and the HTTP status it maps to."""

    code = "auth_error"
    status_code = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class Unauthenticated(AuthError):
    """No credential, or the identity provider did not accept it."""

    code = "unauthenticated"
    status_code = 401


class Forbidden(AuthError):
    """Valid credential, role not in the required set."""

    code = "forbidden"
    status_code = 403


class LookupDegraded(AuthError):
    """Role store unreachable while fail-open is disabled."""

    code = "role_lookup_unavailable"
    status_code = 503
