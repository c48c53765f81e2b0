from __future__ import annotations

from collections.abc import Collection

from .errors import LookupDegraded, Unauthenticated
from .identity_client import IdentityError, IdentityProviderClient
from .logging import get_logger
from .metrics import METRICS
from .models import AuthorizationVerdict, Principal, Role
from .role_store import PrivilegedReader, RoleLookupError

__all__ = ["FAIL_OPEN_ROLE", "SessionAuthorizer", "authorize"]

logger = get_logger("rxauth.authorizer")

# Role assumed when the role store cannot answer and fail-open is enabled.
# Keeps login and dashboards reachable at the lowest privilege; every
# occurrence is logged and counted so it can be reviewed.
FAIL_OPEN_ROLE: Role = "patient"


def authorize(principal: Principal | None, required_roles: Collection[str]) -> AuthorizationVerdict:
    """Pure decision over an already-resolved principal."""
    if principal is None:
        verdict = AuthorizationVerdict(allowed=False, principal=None, reason="unauthenticated")
    elif principal.role in required_roles:
        verdict = AuthorizationVerdict(allowed=True, principal=principal, reason="ok")
    else:
        verdict = AuthorizationVerdict(allowed=False, principal=principal, reason="forbidden")
    METRICS.inc("rxauth_authorize_total", labels={"reason": verdict.reason})
    return verdict


class SessionAuthorizer:
    """
    Resolves a credential into a Principal and decides on required roles.

    One identity call and one role read per resolution; no retries and no
    state kept between calls, so a single instance serves concurrent requests.
    """

    def __init__(
        self,
        identity: IdentityProviderClient,
        role_store: PrivilegedReader,
        *,
        fail_open: bool = True,
    ) -> None:
        self._identity = identity
        self._role_store = role_store
        self.fail_open = fail_open

    def resolve_principal(self, credential: str | None) -> Principal:
        if not credential or not credential.strip():
            raise Unauthenticated("Authentication credential is missing")

        with METRICS.timer("rxauth_resolve_duration_seconds"):
            try:
                identity = self._identity.validate_credential(credential.strip())
            except IdentityError as exc:
                METRICS.inc("rxauth_identity_error_total", labels={"kind": exc.kind})
                logger.info("identity_rejected", kind=exc.kind)
                raise Unauthenticated("Invalid or expired session") from exc

            role = self._lookup_role(identity.user_id)

        principal = Principal(user_id=identity.user_id, role=role, email=identity.email)
        logger.debug("principal_resolved", user_id=principal.user_id, role=principal.role)
        return principal

    def _lookup_role(self, user_id: str) -> Role:
        try:
            role = self._role_store.get_role(user_id)
        except RoleLookupError as exc:
            if not self.fail_open:
                logger.error("role_lookup_failed", user_id=user_id, kind=exc.kind, error=str(exc))
                raise LookupDegraded("Role lookup unavailable") from exc
            return self._degrade(user_id, cause=exc.kind, error=str(exc))
        except Exception as exc:
            if not self.fail_open:
                logger.exception("role_lookup_failed", user_id=user_id)
                raise LookupDegraded("Role lookup unavailable") from exc
            return self._degrade(user_id, cause="unexpected", error=repr(exc))

        if role is None:
            if not self.fail_open:
                raise Unauthenticated("No user record for this session")
            return self._degrade(user_id, cause="not_found")
        return role

    def _degrade(self, user_id: str, *, cause: str, error: str | None = None) -> Role:
        METRICS.inc("rxauth_role_lookup_degraded_total", labels={"cause": cause})
        logger.warning(
            "role_lookup_degraded",
            user_id=user_id,
            cause=cause,
            error=error,
            assumed_role=FAIL_OPEN_ROLE,
        )
        return FAIL_OPEN_ROLE

    def authorize(
        self, principal: Principal | None, required_roles: Collection[str]
    ) -> AuthorizationVerdict:
        return authorize(principal, required_roles)

    def evaluate(self, credential: str | None, required_roles: Collection[str]) -> AuthorizationVerdict:
        """Resolve then authorize; an unauthenticated caller yields a verdict, not an error."""
        try:
            principal = self.resolve_principal(credential)
        except Unauthenticated:
            principal = None
        return authorize(principal, required_roles)
