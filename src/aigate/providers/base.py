"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Shared httpx plumbing for provider adapters.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, ClassVar

import httpx
from pydantic import BaseModel

from ..config import ProviderConfig
from ..errors import UnsupportedCapabilityError
from ..types import (
    JSON_CONTENT_TYPE,
    AdapterResult,
    Attachment,
    Capability,
    JSONObject,
    ProviderKind,
)
from .contracts import ProviderAdapter, ProviderAdapterError

logger = logging.getLogger("aigate.providers")


def form_fields(payload: Mapping[str, Any]) -> dict[str, str]:
    """Flatten a validated payload into multipart form values."""
    fields: dict[str, str] = {}
    for key, value in payload.items():
        if value is None:
            continue
        if isinstance(value, bool):
            fields[key] = "true" if value else "false"
        elif isinstance(value, (dict, list)):
            fields[key] = json.dumps(value, ensure_ascii=True)
        else:
            fields[key] = str(value)
    return fields


def _error_message(response: httpx.Response) -> str:
    """Best available upstream error message."""
    try:
        body = response.json()
    except ValueError:
        text = response.text.strip()
        return text or f"Upstream returned HTTP {response.status_code}"
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
        if isinstance(error, str):
            return error
        if isinstance(body.get("message"), str):
            return body["message"]
    return json.dumps(body, ensure_ascii=True)


class HTTPProviderAdapter(ProviderAdapter, ABC):
    """
    Base class for adapters that talk to an HTTP upstream with httpx.

    Subclasses declare `schemas` (one payload model per supported capability)
    and implement `invoke`. The `AsyncClient` is created lazily and closed by
    `aclose()`.
    """

    kind: ClassVar[ProviderKind]
    schemas: ClassVar[Mapping[Capability, type[BaseModel]]] = {}
    requires_deployment: ClassVar[bool] = False

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        timeout_s: float = 120.0,
    ) -> None:
        self._http = client
        self._owns_client = client is None
        self._timeout_s = timeout_s

    @property
    def capabilities(self) -> frozenset[Capability]:
        return frozenset(self.schemas)

    def schema_for(self, capability: Capability) -> type[BaseModel]:
        schema = self.schemas.get(capability)
        if schema is None:
            raise UnsupportedCapabilityError(
                f"Provider type '{self.kind}' does not support capability '{capability}'"
            )
        return schema

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self._timeout_s)
        return self._http

    async def aclose(self) -> None:
        if self._http is not None and self._owns_client:
            await self._http.aclose()
            self._http = None

    async def _post_json(
        self,
        url: str,
        *,
        headers: Mapping[str, str],
        body: JSONObject,
    ) -> AdapterResult:
        logger.debug("POST %s (json, %d fields)", url, len(body))
        return await self._send(
            "POST",
            url,
            headers={**headers, "Content-Type": JSON_CONTENT_TYPE},
            content=json.dumps(body, ensure_ascii=True).encode("utf-8"),
        )

    async def _post_multipart(
        self,
        url: str,
        *,
        headers: Mapping[str, str],
        fields: Mapping[str, Any],
        file_field: str,
        attachment: Attachment,
        default_content_type: str = JSON_CONTENT_TYPE,
    ) -> AdapterResult:
        logger.debug("POST %s (multipart, file=%s)", url, attachment.describe())
        return await self._send(
            "POST",
            url,
            headers=dict(headers),
            data=form_fields(fields),
            files={
                file_field: (
                    attachment.filename,
                    attachment.data,
                    attachment.content_type,
                )
            },
            default_content_type=default_content_type,
        )

    async def _send(
        self,
        method: str,
        url: str,
        *,
        default_content_type: str = JSON_CONTENT_TYPE,
        **kwargs: Any,
    ) -> AdapterResult:
        try:
            response = await self._client().request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise ProviderAdapterError(
                f"{self.kind} is unreachable: {exc.__class__.__name__}: {exc}"
            ) from exc

        if not response.is_success:
            raise ProviderAdapterError(
                _error_message(response),
                status=response.status_code,
                body=response.content,
            )

        content_type = response.headers.get("content-type") or default_content_type
        logger.debug(
            "%s responded %d (%s, %d bytes)",
            self.kind,
            response.status_code,
            content_type,
            len(response.content),
        )
        return AdapterResult(
            body=response.content,
            content_type=content_type,
            status=response.status_code,
        )

    @abstractmethod
    async def invoke(
        self,
        capability: Capability,
        provider: ProviderConfig,
        payload: JSONObject,
        attachment: Attachment | None = None,
        *,
        deployment_id: str | None = None,
    ) -> AdapterResult:
        ...
