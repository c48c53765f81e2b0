"""rxauth: session authorization and identifier minting for the pharmacy portals."""

__all__ = [
    "audit",
    "authorizer",
    "credentials",
    "errors",
    "identifiers",
    "identity_client",
    "logging",
    "metrics",
    "models",
    "role_store",
    "settings",
]
