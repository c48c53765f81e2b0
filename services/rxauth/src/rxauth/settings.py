import os
import re

__all__ = [
    "SUPABASE_URL",
    "SUPABASE_ANON_KEY",
    "SUPABASE_SERVICE_ROLE_KEY",
    "ROLE_STORE_BACKEND",
    "PG_DSN",
    "ROLE_LOOKUP_FAIL_OPEN",
    "SESSION_COOKIE_NAME",
    "IDP_TIMEOUT_S",
    "ROLE_STORE_TIMEOUT_S",
    "ORDER_NUMBER_PREFIX",
    "AUDIT_ENABLED",
]


def env(name: str, default: str | None = None) -> str:
    v = os.getenv(name, default)
    if v is None:
        raise RuntimeError(f"{name} env var is required")
    return v


def env_flag(name: str, default: str) -> bool:
    return env(name, default).lower() in ("1", "true", "yes")


SUPABASE_URL = env("SUPABASE_URL")
SUPABASE_ANON_KEY = env("SUPABASE_ANON_KEY")

# Role store: "rest" reads users through PostgREST with the service-role key,
# "postgres" reads them over a direct table-owner connection (PG_DSN).
ROLE_STORE_BACKEND = env("ROLE_STORE_BACKEND", "rest").lower()
SUPABASE_SERVICE_ROLE_KEY = env(
    "SUPABASE_SERVICE_ROLE_KEY", None if ROLE_STORE_BACKEND == "rest" else ""
)
PG_DSN = os.getenv("PG_DSN") or None

# Role lookup failure policy. "true" keeps the portals' historical behaviour
# (degrade to the patient role); "false" fails closed with a 503.
ROLE_LOOKUP_FAIL_OPEN = env_flag("ROLE_LOOKUP_FAIL_OPEN", "true")

SESSION_COOKIE_NAME = env("SESSION_COOKIE_NAME", "sb-auth-token")

IDP_TIMEOUT_S = float(env("IDP_TIMEOUT_S", "2.0"))
ROLE_STORE_TIMEOUT_S = float(env("ROLE_STORE_TIMEOUT_S", "2.0"))

ORDER_NUMBER_PREFIX = env("ORDER_NUMBER_PREFIX", "ORD")
if not re.fullmatch(r"[A-Z]+", ORDER_NUMBER_PREFIX):
    raise RuntimeError(f"ORDER_NUMBER_PREFIX must be uppercase A-Z, got {ORDER_NUMBER_PREFIX!r}")

# Audit trail needs Postgres; RXAUTH_DISABLE_AUDIT=1 turns it off explicitly.
AUDIT_ENABLED = PG_DSN is not None and os.getenv("RXAUTH_DISABLE_AUDIT") != "1"
