# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Registry credentials for the ``X-Registry-Auth`` header."""

from __future__ import annotations

import base64
import dataclasses
import json
from typing import Union

AUTH_HEADER = "X-Registry-Auth"


def _encode(payload: dict[str, str]) -> str:
    raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii")


@dataclasses.dataclass(frozen=True)
class RegistryAuth:
    """Username/password credentials."""

    username: str
    password: str
    email: str | None = None
    serveraddress: str | None = None

    def encode(self) -> str:
        """Return URL-safe base64 of the JSON object, omitting unset fields."""
        payload = {"username": self.username, "password": self.password}
        if self.email is not None:
            payload["email"] = self.email
        if self.serveraddress is not None:
            payload["serveraddress"] = self.serveraddress
        return _encode(payload)

    def __repr__(self) -> str:
        return f"RegistryAuth(username={self.username!r}, password='***', serveraddress={self.serveraddress!r})"


@dataclasses.dataclass(frozen=True)
class IdentityToken:
    """Identity token obtained from a registry login."""

    identitytoken: str

    def encode(self) -> str:
        return _encode({"identitytoken": self.identitytoken})

    def __repr__(self) -> str:
        return "IdentityToken(identitytoken='***')"


Auth = Union[RegistryAuth, IdentityToken]


def auth_headers(auth: Auth | None) -> dict[str, str]:
    """Header mapping for ``auth``; empty when there are no credentials."""
    if auth is None:
        return {}
    return {AUTH_HEADER: auth.encode()}
