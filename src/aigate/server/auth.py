"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Inbound API-key authentication for the HTTP gateway.
"""

from __future__ import annotations

import hashlib
import hmac
from collections.abc import Mapping


class AuthenticationError(PermissionError):
    """Raised when the request carries no API key (HTTP 401)."""


class AuthorizationError(PermissionError):
    """Raised when the request carries a wrong API key (HTTP 403)."""


class APIKeyAuthenticator:
    """Check one shared API key sent in a request header."""

    def __init__(self, api_key: str, *, header_name: str = "x-api-key") -> None:
        if not api_key:
            raise ValueError("api_key must be non-empty")
        self._header_name = header_name.lower()
        self._digest = self._hash_key(api_key)

    @property
    def header_name(self) -> str:
        return self._header_name

    def authenticate(self, headers: Mapping[str, str]) -> None:
        key = self._get_header(headers, self._header_name)
        if not key:
            raise AuthenticationError("Authentication required.")
        if not hmac.compare_digest(self._hash_key(key), self._digest):
            raise AuthorizationError("Invalid API key.")

    def _get_header(self, headers: Mapping[str, str], target: str) -> str | None:
        for key, value in headers.items():
            if key.lower() == target:
                return value
        return None

    def _hash_key(self, key: str) -> str:
        return hashlib.sha256(key.encode("utf-8")).hexdigest()
