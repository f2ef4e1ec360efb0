"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

FastAPI host exposing the gateway's capability endpoints.

Each endpoint maps an HTTP call onto one `CapabilityRequest`:

- provider from the body `provider` field or the `X-Provider` header
- Azure deployment from `Azure-OpenAI-Deployment-Id` or body `deploymentId`
- `Cache-Control: no-cache` bypasses cache lookups
- successful responses carry `X-Cache-Status: HIT|MISS`
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from starlette.datastructures import UploadFile

from ..cache.base import CacheStore
from ..cache.factory import create_cache_store
from ..config import GatewayConfig
from ..dispatcher import Dispatcher
from ..errors import GatewayError, ValidationError
from ..metrics import DispatchMetrics, PrometheusDispatchMetrics
from ..types import (
    JSON_CONTENT_TYPE,
    Attachment,
    CacheControl,
    Capability,
    CapabilityRequest,
    DispatchFailure,
    DispatchSuccess,
    JSONObject,
)
from .auth import APIKeyAuthenticator, AuthenticationError, AuthorizationError
from .rate_limit import FixedWindowRateLimiter

logger = logging.getLogger("aigate.server")

PROVIDER_HEADER = "X-Provider"
DEPLOYMENT_HEADER = "Azure-OpenAI-Deployment-Id"
CACHE_STATUS_HEADER = "X-Cache-Status"
HEALTH_PATH = "/health"
METRICS_PATH = "/metrics"
_UNGUARDED = (HEALTH_PATH, METRICS_PATH)

# path -> (capability, multipart file field or None for JSON bodies)
ROUTES: dict[str, tuple[Capability, str | None]] = {
    "/chat/completion": ("chat_completion", None),
    "/completion": ("completion", None),
    "/embeddings": ("embeddings", None),
    "/audio/transcriptions": ("audio_transcription", "file"),
    "/audio/translations": ("audio_translation", "file"),
    "/images/generations": ("image_generation", None),
    "/images/edits": ("image_edit", "image"),
    "/images/variations": ("image_variation", "image"),
}

_STATUS_BY_KIND = {
    "validation_error": 422,
    "unknown_provider": 400,
    "unsupported_capability": 400,
    "cache_unavailable": 503,
    "internal_error": 500,
}


def status_for(failure: DispatchFailure) -> int:
    """HTTP status used for one failure envelope."""
    if failure.kind == "upstream_error":
        status = failure.provider_status
        if status is not None and 400 <= status < 600:
            return status
        return 502
    return _STATUS_BY_KIND.get(failure.kind, 500)


def cache_control_from(value: str | None) -> CacheControl:
    if value and "no-cache" in value.lower():
        return "no-cache"
    return "default"


def _error_response(failure: DispatchFailure) -> JSONResponse:
    return JSONResponse(failure.to_envelope(), status_code=status_for(failure))


def _proxy_error(status: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message, "source": "proxy"}, status_code=status)


async def _json_payload(request: Request) -> JSONObject:
    try:
        data = await request.json()
    except ValueError as exc:
        raise ValidationError("Request body must be valid JSON") from exc
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


async def _multipart_payload(
    request: Request, file_field: str
) -> tuple[JSONObject, Attachment | None]:
    try:
        form = await request.form()
    except ValueError as exc:
        raise ValidationError(f"Request body must be multipart form data: {exc}") from exc

    payload: JSONObject = {}
    attachment: Attachment | None = None
    for key, value in form.multi_items():
        if isinstance(value, UploadFile):
            if key == file_field and attachment is None:
                attachment = Attachment(
                    data=await value.read(),
                    filename=value.filename or file_field,
                    content_type=value.content_type or "application/octet-stream",
                )
            continue
        payload[key] = value
    return payload, attachment


def build_request(
    request: Request,
    capability: Capability,
    payload: JSONObject,
    attachment: Attachment | None = None,
) -> CapabilityRequest:
    """Translate HTTP headers and body into a `CapabilityRequest`."""
    payload = dict(payload)
    body_provider = payload.pop("provider", None)
    provider = body_provider if isinstance(body_provider, str) and body_provider else None
    provider = provider or request.headers.get(PROVIDER_HEADER) or ""

    body_deployment = payload.pop("deploymentId", None)
    deployment = request.headers.get(DEPLOYMENT_HEADER) or (
        body_deployment if isinstance(body_deployment, str) and body_deployment else None
    )

    return CapabilityRequest(
        capability=capability,
        provider_name=provider,
        payload=payload,
        attachment=attachment,
        cache_control=cache_control_from(request.headers.get("Cache-Control")),
        deployment_id=deployment,
    )


def render_success(result: DispatchSuccess, *, response_format: str) -> Response:
    """Build the HTTP response for a successful dispatch."""
    headers = {CACHE_STATUS_HEADER: "HIT" if result.served_from_cache else "MISS"}
    if (
        result.served_from_cache
        and response_format == "aigate"
        and result.content_type.split(";")[0].strip() == JSON_CONTENT_TYPE
    ):
        body = json.loads(result.body)
        if isinstance(body, dict):
            return JSONResponse({**body, "cached": True}, headers=headers)
    return Response(content=result.body, media_type=result.content_type, headers=headers)


def create_app(
    config: GatewayConfig,
    *,
    dispatcher: Dispatcher | None = None,
    cache: CacheStore | None = None,
    redis_client: Any | None = None,
    metrics: DispatchMetrics | None = None,
    title: str = "aigate",
) -> FastAPI:
    """
    Create the gateway app.

    When no dispatcher is supplied one is built from `config`, with a cache
    store from `config.cache` unless `cache` is given. The app lifespan
    starts/stops the cache store and closes the dispatcher. With
    `config.metrics` set, Prometheus counters are served on `/metrics`.
    """
    if metrics is None and config.metrics:
        metrics = PrometheusDispatchMetrics()
    if dispatcher is None:
        if cache is None and config.cache_enabled:
            assert config.cache is not None
            cache = create_cache_store(config.cache, redis_client=redis_client)
        dispatcher = Dispatcher(config, cache=cache, metrics=metrics)
    store = dispatcher.cache

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        if store is not None:
            await store.start()
            logger.info("cache enabled (%s)", store.backend_id)
        try:
            yield
        finally:
            await dispatcher.aclose()
            if store is not None:
                await store.stop()

    app = FastAPI(title=title, lifespan=lifespan)
    app.state.dispatcher = dispatcher
    app.state.config = config

    limiter: FixedWindowRateLimiter | None = None
    if config.rate_limiting is not None and config.rate_limiting.enabled:
        limiter = FixedWindowRateLimiter(
            limit=config.rate_limiting.limit,
            window_s=config.rate_limiting.window_size,
        )
        logger.debug("rate limiting enabled")

    authenticator: APIKeyAuthenticator | None = None
    if config.authentication is not None and config.authentication.enabled:
        authenticator = APIKeyAuthenticator(config.authentication.api_key)
        logger.debug("authentication enabled")

    @app.middleware("http")
    async def guard(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        if request.url.path.rstrip("/") in _UNGUARDED:
            return await call_next(request)
        if limiter is not None:
            retry_after = await limiter.acquire()
            if retry_after is not None:
                response = _proxy_error(429, "Too many requests, please try again later.")
                response.headers["Retry-After"] = str(max(1, round(retry_after)))
                return response
        if authenticator is not None:
            try:
                authenticator.authenticate(request.headers)
            except AuthenticationError as exc:
                return _proxy_error(401, str(exc))
            except AuthorizationError as exc:
                return _proxy_error(403, str(exc))
        return await call_next(request)

    @app.get(HEALTH_PATH)
    async def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "providers": sorted(config.providers),
            "cache": store.backend_id if store is not None else None,
        }

    def _endpoint(capability: Capability, file_field: str | None):
        async def endpoint(request: Request) -> Response:
            try:
                if file_field is None:
                    payload, attachment = await _json_payload(request), None
                else:
                    payload, attachment = await _multipart_payload(request, file_field)
            except GatewayError as exc:
                return _error_response(exc.to_failure())

            req = build_request(request, capability, payload, attachment)
            logger.debug(
                "%s %s provider=%r cache_control=%s attachment=%s",
                request.method,
                request.url.path,
                req.provider_name,
                req.cache_control,
                attachment.describe() if attachment is not None else None,
            )
            result = await dispatcher.dispatch(req)
            if isinstance(result, DispatchFailure):
                return _error_response(result)
            return render_success(result, response_format=config.response_format)

        endpoint.__name__ = capability
        return endpoint

    for path, (capability, file_field) in ROUTES.items():
        app.add_api_route(path, _endpoint(capability, file_field), methods=["POST"])

    if isinstance(metrics, PrometheusDispatchMetrics):
        app.mount(METRICS_PATH, metrics.asgi_app())

    return app


def run(config: GatewayConfig, *, host: str = "0.0.0.0", port: int = 8080, **kwargs: Any) -> None:
    """Serve the gateway with uvicorn."""
    import uvicorn

    uvicorn.run(create_app(config), host=host, port=port, **kwargs)
