"""
Shared test helpers for rxauth.

  - FakeIdentity / FakeRoleStore (collaborator stand-ins)
  - get_client (module-reload based TestClient factory with an injected authorizer)

Import in tests as:
    from helpers import FakeIdentity, FakeRoleStore, get_client
"""

from __future__ import annotations

from importlib import reload

from fastapi.testclient import TestClient

from rxauth.authorizer import SessionAuthorizer
from rxauth.identity_client import IdentityError
from rxauth.models import Identity
from rxauth.role_store import RoleLookupError

# token -> (user_id, email)
USERS = {
    "tok-patient": ("u-patient", "patient@example.com"),
    "tok-doctor": ("u-doctor", "doctor@example.com"),
    "tok-admin": ("u-admin", "admin@example.com"),
    "tok-orphan": ("u-orphan", "orphan@example.com"),
}

ROLES_BY_USER = {
    "u-patient": "patient",
    "u-doctor": "doctor",
    "u-admin": "admin",
}


class FakeIdentity:
    """Accepts the tokens in USERS, rejects everything else."""

    def __init__(self, users: dict[str, tuple[str, str]] | None = None, error: IdentityError | None = None):
        self.users = USERS if users is None else users
        self.error = error
        self.calls: list[str] = []

    def validate_credential(self, token: str) -> Identity:
        self.calls.append(token)
        if self.error is not None:
            raise self.error
        if token not in self.users:
            raise IdentityError("rejected", "credential rejected (401)")
        user_id, email = self.users[token]
        return Identity(user_id=user_id, email=email)

    def ping(self) -> None:
        if self.error is not None:
            raise self.error


class FakeRoleStore:
    def __init__(self, roles: dict[str, str] | None = None, error: Exception | None = None):
        self.roles = ROLES_BY_USER if roles is None else roles
        self.error = error
        self.calls: list[str] = []

    def get_role(self, user_id: str):
        self.calls.append(user_id)
        if self.error is not None:
            raise self.error
        return self.roles.get(user_id)

    def ping(self) -> None:
        if self.error is not None:
            raise RoleLookupError("unavailable", str(self.error))


def make_authorizer(
    *,
    identity: FakeIdentity | None = None,
    role_store: FakeRoleStore | None = None,
    fail_open: bool = True,
) -> SessionAuthorizer:
    return SessionAuthorizer(
        identity or FakeIdentity(),  # type: ignore[arg-type]
        role_store or FakeRoleStore(),
        fail_open=fail_open,
    )


def get_client(authorizer: SessionAuthorizer | None = None) -> tuple[TestClient, object]:
    """
    Fresh TestClient over a reloaded app, with the authorizer dependency
    overridden. Returns (TestClient, main_mod) so tests can patch module globals.
    """
    import rxauth.settings as settings_mod

    reload(settings_mod)
    import rxauth.main as main_mod

    reload(main_mod)
    authz = authorizer or make_authorizer()
    main_mod.app.dependency_overrides[main_mod.get_authorizer] = lambda: authz
    return TestClient(main_mod.app), main_mod


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
