"""
Privileged role reads.

Row-level policies on ``public.users`` are themselves keyed on the caller's
role, so the role has to be read with a credential that is not subject to
them. Only SessionAuthorizer is given one of these readers.
"""

from __future__ import annotations

from typing import Protocol

import httpx
import psycopg2

from .models import ROLES, Role

__all__ = [
    "RoleLookupError",
    "PrivilegedReader",
    "RestRoleStore",
    "PostgresRoleStore",
    "build_role_store",
]


class RoleLookupError(Exception):
    """Role store failure with a kind label for metrics."""

    def __init__(self, kind: str, message: str) -> None:
        self.kind = kind
        super().__init__(message)


class PrivilegedReader(Protocol):
    def get_role(self, user_id: str) -> Role | None:
        """Role of *user_id*, or None when the user has no row."""

    def ping(self) -> None: ...


def _checked_role(value: object) -> Role:
    if value not in ROLES:
        raise RoleLookupError("bad_response", f"unknown role {value!r}")
    return value  # type: ignore[return-value]


class RestRoleStore:
    """Reads ``users.role`` through PostgREST using the service-role key."""

    def __init__(
        self,
        base_url: str,
        service_role_key: str,
        timeout_s: float = 2.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self._url = base_url.rstrip("/")
        self._headers = {
            "apikey": service_role_key,
            "Authorization": f"Bearer {service_role_key}",
            "Accept": "application/json",
        }
        self._timeout = timeout_s
        self._transport = transport

    def _get(self, path: str, params: dict[str, str]) -> httpx.Response:
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                return client.get(f"{self._url}{path}", params=params, headers=self._headers)
        except httpx.TimeoutException as exc:
            raise RoleLookupError("timeout", f"role store timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise RoleLookupError("unavailable", f"role store unreachable: {exc}") from exc

    def get_role(self, user_id: str) -> Role | None:
        r = self._get(
            "/rest/v1/users",
            {"id": f"eq.{user_id}", "select": "role", "limit": "1"},
        )
        if r.status_code >= 400:
            raise RoleLookupError("bad_status", f"role store returned {r.status_code}: {r.text[:200]}")
        try:
            rows = r.json()
        except ValueError as exc:
            raise RoleLookupError("bad_response", f"role store returned non-JSON: {exc}") from exc
        if not isinstance(rows, list):
            raise RoleLookupError("bad_response", "role store did not return a row list")
        if not rows:
            return None
        return _checked_role((rows[0] or {}).get("role"))

    def ping(self) -> None:
        r = self._get("/rest/v1/users", {"select": "id", "limit": "1"})
        if r.status_code >= 400:
            raise RoleLookupError("bad_status", f"role store returned {r.status_code}")


class PostgresRoleStore:
    """Reads ``users.role`` over a direct connection owned by the table owner."""

    def __init__(self, dsn: str, connect_timeout_s: float = 2.0):
        self._dsn = dsn
        self._connect_timeout = max(1, int(connect_timeout_s))

    def _connect(self) -> psycopg2.extensions.connection:
        try:
            return psycopg2.connect(self._dsn, connect_timeout=self._connect_timeout)
        except psycopg2.OperationalError as exc:
            raise RoleLookupError("unavailable", f"role store unreachable: {exc}") from exc

    def get_role(self, user_id: str) -> Role | None:
        conn = self._connect()
        try:
            with conn.cursor() as cur:
                cur.execute("SELECT role FROM public.users WHERE id = %s LIMIT 1;", (user_id,))
                row = cur.fetchone()
        except psycopg2.Error as exc:
            raise RoleLookupError("query_failed", f"role query failed: {exc}") from exc
        finally:
            conn.close()
        if row is None:
            return None
        return _checked_role(row[0])

    def ping(self) -> None:
        conn = self._connect()
        try:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
        except psycopg2.Error as exc:
            raise RoleLookupError("query_failed", f"role store ping failed: {exc}") from exc
        finally:
            conn.close()


def build_role_store(
    backend: str,
    *,
    base_url: str,
    service_role_key: str,
    pg_dsn: str | None,
    timeout_s: float,
) -> PrivilegedReader:
    if backend == "rest":
        return RestRoleStore(base_url, service_role_key, timeout_s=timeout_s)
    if backend == "postgres":
        if not pg_dsn:
            raise RuntimeError("PG_DSN env var is required for ROLE_STORE_BACKEND=postgres")
        return PostgresRoleStore(pg_dsn, connect_timeout_s=timeout_s)
    raise RuntimeError(f"unsupported ROLE_STORE_BACKEND {backend!r} (expected rest|postgres)")
