from __future__ import annotations

import hashlib
import json
from collections.abc import Collection, Sequence
from datetime import UTC, datetime
from typing import Any

import psycopg2
from pydantic import BaseModel

from .models import AuthorizationVerdict

__all__ = ["AuditEntry", "append_denial", "build_denial", "compute_hash", "verify_chain"]

# Advisory lock key serialising writers of the authz hash chain.
_AUDIT_LOCK_KEY = 7310


class AuditEntry(BaseModel):
    user_id: str | None
    action: str
    entity_type: str
    entity_id: str
    ip_address: str | None
    changes: dict[str, Any]


def _utc_now_iso() -> str:
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def _canonical_json(obj: object) -> str:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def compute_hash(body: dict[str, Any], prev_hash: str) -> str:
    """sha256(canonical_json(body) + prev_hash); prev_hash is "" for the first entry."""
    return hashlib.sha256((_canonical_json(body) + prev_hash).encode("utf-8")).hexdigest()


def _chain_body(entry: AuditEntry) -> dict[str, Any]:
    changes = {k: v for k, v in entry.changes.items() if k not in ("prev_hash", "hash")}
    return {
        "user_id": entry.user_id,
        "action": entry.action,
        "entity_type": entry.entity_type,
        "entity_id": entry.entity_id,
        "ip_address": entry.ip_address,
        "changes": changes,
    }


def verify_chain(entries: Sequence[AuditEntry]) -> tuple[bool, int | None]:
    """Check entries (oldest first). Returns (True, None) or (False, first_bad_index)."""
    for i, entry in enumerate(entries):
        expected_prev = entries[i - 1].changes.get("hash", "") if i > 0 else ""
        if entry.changes.get("prev_hash") != expected_prev:
            return False, i
        if entry.changes.get("hash") != compute_hash(_chain_body(entry), expected_prev):
            return False, i
    return True, None


def build_denial(
    verdict: AuthorizationVerdict,
    required_roles: Collection[str],
    route: str,
    ip_address: str | None,
) -> AuditEntry:
    principal = verdict.principal
    return AuditEntry(
        user_id=principal.user_id if principal else None,
        action=f"authz.{verdict.reason}",
        entity_type="route",
        entity_id=route,
        ip_address=ip_address,
        changes={
            "required_roles": sorted(required_roles),
            "role": principal.role if principal else None,
            "ts": _utc_now_iso(),
        },
    )


def append_denial(
    pg_dsn: str,
    verdict: AuthorizationVerdict,
    required_roles: Collection[str],
    route: str,
    ip_address: str | None = None,
) -> AuditEntry:
    """
    Append a denied authorization to audit_logs, chained to the previous
    authz entry. Raises on any database error; callers treat it as best-effort.
    """
    entry = build_denial(verdict, required_roles, route, ip_address)

    conn = psycopg2.connect(pg_dsn)
    try:
        conn.autocommit = False
        with conn.cursor() as cur:
            cur.execute("SELECT pg_advisory_xact_lock(%s);", (_AUDIT_LOCK_KEY,))
            # audit_logs ids are UUIDs and created_at is the transaction start, so
            # neither orders the chain; seq is assigned under the lock.
            cur.execute(
                """
                SELECT changes->>'hash', (changes->>'seq')::bigint FROM audit_logs
                 WHERE action LIKE 'authz.%'
                 ORDER BY (changes->>'seq')::bigint DESC NULLS LAST
                 LIMIT 1;
                """
            )
            row = cur.fetchone()
            prev_hash = (row[0] if row else None) or ""
            prev_seq = (row[1] if row else None) or 0

            entry.changes["seq"] = prev_seq + 1
            entry.changes["prev_hash"] = prev_hash
            entry.changes["hash"] = compute_hash(_chain_body(entry), prev_hash)

            cur.execute(
                """
                INSERT INTO audit_logs
                  (user_id, action, entity_type, entity_id, ip_address, changes, created_at)
                VALUES
                  (%s, %s, %s, %s, %s, %s::jsonb, clock_timestamp());
                """,
                (
                    entry.user_id,
                    entry.action,
                    entry.entity_type,
                    entry.entity_id,
                    entry.ip_address,
                    _canonical_json(entry.changes),
                ),
            )
        conn.commit()
        return entry
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
