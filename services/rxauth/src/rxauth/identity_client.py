from __future__ import annotations

import httpx

from .models import Identity

__all__ = ["IdentityError", "IdentityProviderClient"]


class IdentityError(Exception):
    """Credential validation failure with a kind label for metrics."""

    def __init__(self, kind: str, message: str) -> None:
        self.kind = kind
        super().__init__(message)


class IdentityProviderClient:
    def __init__(
        self,
        base_url: str,
        anon_key: str,
        timeout_s: float = 2.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self._url = base_url.rstrip("/")
        self._anon_key = anon_key
        self._timeout = timeout_s
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self._timeout, transport=self._transport)

    def validate_credential(self, token: str) -> Identity:
        """
        Calls the auth API:
          GET {SUPABASE_URL}/auth/v1/user
        with the access token as bearer; expects {"id": ..., "email": ...}.

        Single attempt. Raises IdentityError with kind in
        {rejected, timeout, unavailable, bad_status, bad_response}.
        """
        headers = {"apikey": self._anon_key, "Authorization": f"Bearer {token}"}
        try:
            with self._client() as client:
                r = client.get(f"{self._url}/auth/v1/user", headers=headers)
        except httpx.TimeoutException as exc:
            raise IdentityError("timeout", f"identity provider timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise IdentityError("unavailable", f"identity provider unreachable: {exc}") from exc

        if r.status_code in (400, 401, 403, 404):
            raise IdentityError("rejected", f"credential rejected ({r.status_code})")
        if r.status_code >= 400:
            raise IdentityError("bad_status", f"identity provider returned {r.status_code}")

        try:
            body = r.json()
        except ValueError as exc:
            raise IdentityError("bad_response", f"identity provider returned non-JSON: {exc}") from exc

        user_id = body.get("id") if isinstance(body, dict) else None
        if not isinstance(user_id, str) or not user_id:
            raise IdentityError("bad_response", "identity provider response has no user id")
        email = body.get("email")
        return Identity(user_id=user_id, email=email if isinstance(email, str) else None)

    def ping(self) -> None:
        """Readiness check; raises IdentityError when the provider is not healthy."""
        try:
            with self._client() as client:
                r = client.get(f"{self._url}/auth/v1/health", headers={"apikey": self._anon_key})
        except httpx.HTTPError as exc:
            raise IdentityError("unavailable", f"identity provider unreachable: {exc}") from exc
        if r.status_code >= 400:
            raise IdentityError("bad_status", f"identity provider returned {r.status_code}")
