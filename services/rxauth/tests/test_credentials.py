import base64
import json

import pytest

from rxauth.credentials import credential_from_request, extract_bearer_token, extract_cookie_token

COOKIE = "sb-auth-token"


def _b64(value: str) -> str:
    return "base64-" + base64.urlsafe_b64encode(value.encode()).decode().rstrip("=")


@pytest.mark.parametrize(
    "header,expected",
    [
        ("Bearer abc.def.ghi", "abc.def.ghi"),
        ("bearer abc", "abc"),
        (None, None),
        ("", None),
        ("Bearer", None),
        ("Bearer ", None),
        ("Basic dXNlcjpwdw==", None),
        ("Bearer a b", None),
    ],
)
def test_extract_bearer_token(header, expected):
    assert extract_bearer_token(header) == expected


def test_cookie_raw_token():
    assert extract_cookie_token({COOKIE: "raw-token"}, COOKIE) == "raw-token"


def test_cookie_json_session_object():
    value = json.dumps({"access_token": "jwt-1", "refresh_token": "r"})
    assert extract_cookie_token({COOKIE: value}, COOKIE) == "jwt-1"


def test_cookie_json_array():
    value = json.dumps(["jwt-2", "refresh", None, None, None])
    assert extract_cookie_token({COOKIE: value}, COOKIE) == "jwt-2"


def test_cookie_base64_prefixed_session():
    value = _b64(json.dumps({"access_token": "jwt-3"}))
    assert extract_cookie_token({COOKIE: value}, COOKIE) == "jwt-3"


def test_cookie_chunked_session():
    value = _b64(json.dumps({"access_token": "jwt-chunked", "user": {"id": "u1"}}))
    cookies = {f"{COOKIE}.0": value[:10], f"{COOKIE}.1": value[10:25], f"{COOKIE}.2": value[25:]}
    assert extract_cookie_token(cookies, COOKIE) == "jwt-chunked"


@pytest.mark.parametrize(
    "value",
    [
        "",
        "{not json",
        json.dumps({"refresh_token": "r"}),
        json.dumps([]),
        json.dumps({"access_token": 42}),
        "base64-%%%%",
    ],
)
def test_cookie_malformed_yields_none(value):
    assert extract_cookie_token({COOKIE: value}, COOKIE) is None


def test_cookie_missing():
    assert extract_cookie_token({"other": "x"}, COOKIE) is None


def test_bearer_source_ignores_cookie():
    assert credential_from_request("bearer", {}, {COOKIE: "cookie-token"}, COOKIE) is None


def test_cookie_source_ignores_header():
    headers = {"authorization": "Bearer header-token"}
    assert credential_from_request("cookie", headers, {}, COOKIE) is None
    assert credential_from_request("bearer", headers, {}, COOKIE) == "header-token"
