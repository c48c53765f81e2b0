"""
Tests for /healthz readiness probe. Collaborators are replaced with fakes;
no network access needed.
"""

from unittest.mock import patch

from helpers import FakeIdentity, FakeRoleStore, get_client
from rxauth.identity_client import IdentityError


def test_healthz_ok_when_all_deps_up():
    client, main_mod = get_client()
    with (
        patch.object(main_mod, "identity", FakeIdentity()),
        patch.object(main_mod, "role_store", FakeRoleStore()),
    ):
        r = client.get("/healthz")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "checks": {"identity": "ok", "role_store": "ok"}}


def test_healthz_503_when_identity_provider_down():
    client, main_mod = get_client()
    with (
        patch.object(main_mod, "identity", FakeIdentity(error=IdentityError("unavailable", "refused"))),
        patch.object(main_mod, "role_store", FakeRoleStore()),
    ):
        r = client.get("/healthz")
    assert r.status_code == 503
    assert r.json()["detail"].startswith("identity:")


def test_healthz_503_when_role_store_down():
    client, main_mod = get_client()
    with (
        patch.object(main_mod, "identity", FakeIdentity()),
        patch.object(main_mod, "role_store", FakeRoleStore(error=RuntimeError("pg down"))),
    ):
        r = client.get("/healthz")
    assert r.status_code == 503
    assert r.json()["detail"].startswith("role_store:")


def test_health_liveness_independent_of_deps():
    client, main_mod = get_client()
    with patch.object(main_mod, "identity", FakeIdentity(error=IdentityError("timeout", "slow"))):
        r = client.get("/health")
    assert r.status_code == 200
