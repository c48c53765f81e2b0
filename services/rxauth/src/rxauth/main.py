from __future__ import annotations

import uuid
from collections.abc import Callable

import structlog
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from .audit import append_denial
from .authorizer import SessionAuthorizer, authorize
from .credentials import credential_from_request
from .errors import AuthError, Forbidden, Unauthenticated
from .identifiers import mint_identifier
from .identity_client import IdentityError, IdentityProviderClient
from .logging import get_logger, setup_logging
from .metrics import METRICS
from .models import (
    AdminCheckResponseV1,
    AuthorizationVerdict,
    AuthorizeRequestV1,
    CredentialSource,
    ErrorResponseV1,
    IdentifierResponseV1,
    Principal,
    UserRoleResponseV1,
)
from .role_store import RoleLookupError, build_role_store
from .settings import (
    AUDIT_ENABLED,
    IDP_TIMEOUT_S,
    ORDER_NUMBER_PREFIX,
    PG_DSN,
    ROLE_LOOKUP_FAIL_OPEN,
    ROLE_STORE_BACKEND,
    ROLE_STORE_TIMEOUT_S,
    SESSION_COOKIE_NAME,
    SUPABASE_ANON_KEY,
    SUPABASE_SERVICE_ROLE_KEY,
    SUPABASE_URL,
)

setup_logging()
logger = get_logger("rxauth.api")

identity = IdentityProviderClient(SUPABASE_URL, SUPABASE_ANON_KEY, timeout_s=IDP_TIMEOUT_S)
role_store = build_role_store(
    ROLE_STORE_BACKEND,
    base_url=SUPABASE_URL,
    service_role_key=SUPABASE_SERVICE_ROLE_KEY,
    pg_dsn=PG_DSN,
    timeout_s=ROLE_STORE_TIMEOUT_S,
)
authorizer = SessionAuthorizer(identity, role_store, fail_open=ROLE_LOOKUP_FAIL_OPEN)

app = FastAPI(title="rxauth", version="0.1")


@app.middleware("http")
async def request_context(request: Request, call_next):
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        request_id=request.headers.get("x-request-id") or str(uuid.uuid4()),
        route=request.url.path,
    )
    METRICS.inc("rxauth_requests_in_flight")
    try:
        return await call_next(request)
    finally:
        METRICS.dec("rxauth_requests_in_flight")


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    body = ErrorResponseV1(error=exc.code, detail=exc.message)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


# ── Dependencies ─────────────────────────────────────────


def get_authorizer() -> SessionAuthorizer:
    return authorizer


def _audit_denial(request: Request, verdict: AuthorizationVerdict, roles: frozenset[str]) -> None:
    if not AUDIT_ENABLED:
        return
    try:
        append_denial(
            PG_DSN,
            verdict,
            roles,
            route=request.url.path,
            ip_address=request.client.host if request.client else None,
        )
    except Exception as exc:
        METRICS.inc("rxauth_audit_error_total")
        logger.warning("audit_append_failed", error=str(exc))


def require_roles(*roles: str, source: CredentialSource = "bearer") -> Callable[..., Principal]:
    """
    Dependency for privileged routes: resolve the caller from *source* and
    require one of *roles*. Unauthenticated → 401, Forbidden → 403.
    """
    required = frozenset(roles)

    def dependency(
        request: Request,
        authz: SessionAuthorizer = Depends(get_authorizer),
    ) -> Principal:
        credential = credential_from_request(
            source, request.headers, request.cookies, SESSION_COOKIE_NAME
        )
        try:
            principal = authz.resolve_principal(credential)
        except Unauthenticated:
            _audit_denial(request, authorize(None, required), required)
            raise

        verdict = authz.authorize(principal, required)
        if not verdict.allowed:
            _audit_denial(request, verdict, required)
            raise Forbidden("Access denied")
        structlog.contextvars.bind_contextvars(user_id=principal.user_id)
        return principal

    return dependency


# ── Healthchecks ─────────────────────────────────────────


@app.get("/health")
def health():
    """Liveness probe."""
    return {"status": "ok"}


@app.get("/healthz")
def healthz():
    """Readiness probe: identity provider and role store both answer, else 503."""
    checks: dict[str, str] = {}

    try:
        identity.ping()
        checks["identity"] = "ok"
    except IdentityError as e:
        raise HTTPException(status_code=503, detail=f"identity: {e}") from None

    try:
        role_store.ping()
        checks["role_store"] = "ok"
    except RoleLookupError as e:
        raise HTTPException(status_code=503, detail=f"role_store: {e}") from None

    return {"status": "ok", "checks": checks}


@app.get("/metrics")
def metrics():
    return PlainTextResponse(METRICS.render(), media_type="text/plain; version=0.0.4; charset=utf-8")


# ── Auth ─────────────────────────────────────────────────


@app.get(
    "/api/auth/user-role",
    response_model=UserRoleResponseV1,
    responses={401: {"model": ErrorResponseV1}},
)
def user_role(request: Request, authz: SessionAuthorizer = Depends(get_authorizer)):
    """Role of the signed-in user, read from the session cookie."""
    credential = credential_from_request(
        "cookie", request.headers, request.cookies, SESSION_COOKIE_NAME
    )
    principal = authz.resolve_principal(credential)
    return UserRoleResponseV1(user_id=principal.user_id, email=principal.email, role=principal.role)


@app.post("/api/authorize", response_model=AuthorizationVerdict)
def authorize_request(
    req: AuthorizeRequestV1,
    request: Request,
    authz: SessionAuthorizer = Depends(get_authorizer),
):
    credential = credential_from_request(
        req.credential_source, request.headers, request.cookies, SESSION_COOKIE_NAME
    )
    return authz.evaluate(credential, set(req.required_roles))


@app.get(
    "/api/admin/verify",
    response_model=AdminCheckResponseV1,
    responses={401: {"model": ErrorResponseV1}, 403: {"model": ErrorResponseV1}},
)
def verify_admin(principal: Principal = Depends(require_roles("admin"))):
    return AdminCheckResponseV1(is_admin=True, role=principal.role)


# ── Identifiers ──────────────────────────────────────────


@app.post(
    "/api/orders/number",
    response_model=IdentifierResponseV1,
    responses={401: {"model": ErrorResponseV1}, 403: {"model": ErrorResponseV1}},
)
def new_order_number(principal: Principal = Depends(require_roles("patient", "admin"))):
    ident = mint_identifier("order", order_prefix=ORDER_NUMBER_PREFIX)
    return IdentifierResponseV1(
        kind=ident.kind, value=ident.value, generated_at=ident.generated_at, issued_to=principal.user_id
    )


@app.post(
    "/api/prescriptions/number",
    response_model=IdentifierResponseV1,
    responses={401: {"model": ErrorResponseV1}, 403: {"model": ErrorResponseV1}},
)
def new_prescription_number(principal: Principal = Depends(require_roles("doctor", "admin"))):
    ident = mint_identifier("prescription")
    return IdentifierResponseV1(
        kind=ident.kind, value=ident.value, generated_at=ident.generated_at, issued_to=principal.user_id
    )
