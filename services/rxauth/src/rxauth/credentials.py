"""Credential extraction from the Authorization header or the session cookie."""

from __future__ import annotations

import base64
import binascii
import json
from collections.abc import Mapping

from .models import CredentialSource

__all__ = ["extract_bearer_token", "extract_cookie_token", "credential_from_request"]

_BASE64_PREFIX = "base64-"
_MAX_COOKIE_CHUNKS = 32


def extract_bearer_token(header: str | None) -> str | None:
    """Return the token from ``Bearer <token>``, or None for any other shape."""
    if not header:
        return None
    parts = header.split(" ")
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1]:
        return None
    return parts[1]


def _read_cookie(cookies: Mapping[str, str], name: str) -> str | None:
    value = cookies.get(name)
    if value:
        return value
    # Large sessions are split across <name>.0, <name>.1, ...
    chunks: list[str] = []
    for i in range(_MAX_COOKIE_CHUNKS):
        chunk = cookies.get(f"{name}.{i}")
        if chunk is None:
            break
        chunks.append(chunk)
    return "".join(chunks) or None


def _decode_base64(value: str) -> str | None:
    padded = value + "=" * (-len(value) % 4)
    try:
        return base64.urlsafe_b64decode(padded).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None


def extract_cookie_token(cookies: Mapping[str, str], name: str) -> str | None:
    """
    Return the access token held in the session cookie *name*.

    Accepted values: a raw token, a JSON object with ``access_token``, a JSON
    array whose first item is the token, or any of those base64url-encoded
    behind a ``base64-`` prefix.
    """
    raw = _read_cookie(cookies, name)
    if not raw:
        return None

    if raw.startswith(_BASE64_PREFIX):
        decoded = _decode_base64(raw[len(_BASE64_PREFIX):])
        if decoded is None:
            return None
        raw = decoded

    if raw[:1] not in ("{", "["):
        return raw.strip() or None

    try:
        session = json.loads(raw)
    except ValueError:
        return None

    if isinstance(session, dict):
        token = session.get("access_token")
    elif isinstance(session, list) and session:
        token = session[0]
    else:
        token = None
    return token if isinstance(token, str) and token else None


def credential_from_request(
    source: CredentialSource,
    headers: Mapping[str, str],
    cookies: Mapping[str, str],
    cookie_name: str,
) -> str | None:
    """Pull the credential from the one place the caller chose; no fallback."""
    if source == "bearer":
        return extract_bearer_token(headers.get("authorization"))
    return extract_cookie_token(cookies, cookie_name)
