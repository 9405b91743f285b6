"""Tests for registry credential encoding."""

from __future__ import annotations

import base64
import json

from dockwire.auth import AUTH_HEADER, IdentityToken, RegistryAuth, auth_headers


def _decode(value: str) -> dict[str, str]:
    return json.loads(base64.urlsafe_b64decode(value))  # type: ignore[no-any-return]


def test_encode_omits_unset_fields() -> None:
    encoded = RegistryAuth("alice", "s3cret").encode()
    assert _decode(encoded) == {"username": "alice", "password": "s3cret"}


def test_encode_all_fields() -> None:
    auth = RegistryAuth("alice", "s3cret", email="a@example.com", serveraddress="registry.example.com:5000")
    assert _decode(auth.encode()) == {
        "username": "alice",
        "password": "s3cret",
        "email": "a@example.com",
        "serveraddress": "registry.example.com:5000",
    }


def test_encode_is_compact_json() -> None:
    raw = base64.urlsafe_b64decode(RegistryAuth("u", "p").encode())
    assert raw == b'{"username":"u","password":"p"}'


def test_encode_is_url_safe() -> None:
    encoded = RegistryAuth("~~~", "???>>>").encode()
    assert "+" not in encoded
    assert "/" not in encoded


def test_identity_token() -> None:
    assert _decode(IdentityToken("tok").encode()) == {"identitytoken": "tok"}


def test_repr_hides_secrets() -> None:
    assert "s3cret" not in repr(RegistryAuth("alice", "s3cret"))
    assert "x9-refresh-7q" not in repr(IdentityToken("x9-refresh-7q"))


def test_auth_headers() -> None:
    assert auth_headers(None) == {}
    headers = auth_headers(RegistryAuth("u", "p"))
    assert list(headers) == [AUTH_HEADER]
    assert AUTH_HEADER == "X-Registry-Auth"
