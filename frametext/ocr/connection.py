"""Reachability check for a configured provider.

Each built-in vendor is probed with a cheap authenticated call; custom
providers get a real request with a 1x1 PNG so the declared response path is
exercised too. Missing credentials raise ``ConfigurationError`` before any
network traffic; every other failure is reported in the returned
``ConnectionCheck`` rather than raised.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass

import httpx

from frametext.core.config import settings
from frametext.ocr.adapter import AZURE_KEY_HEADER, build_request, decode_json
from frametext.ocr.base_ocr import OcrRequest
from frametext.ocr.errors import ConfigurationError, OcrError
from frametext.ocr.normalizer import extract_custom_text
from frametext.ocr.registry import ProviderDescriptor, ProviderKind

logger = logging.getLogger(__name__)

TEST_IMAGE = (
    "data:image/png;base64,"
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


@dataclass(frozen=True)
class ConnectionCheck:
    provider: str
    success: bool
    response_time_ms: int | None = None
    error: str | None = None
    text: str | None = None


def _probe(descriptor: ProviderDescriptor) -> tuple[str, str, dict]:
    """Return ``(method, url, kwargs)`` for a built-in vendor's probe call."""
    if descriptor.kind is ProviderKind.CLOUD_VISION_ASYNC:
        return "GET", descriptor.endpoint.rstrip("/") + "/vision/v3.2/models", {
            "headers": {AZURE_KEY_HEADER: descriptor.api_key},
        }
    if descriptor.kind is ProviderKind.KEY_JSON:
        return "GET", f"{settings.google_vision_url.rstrip('/')}/models", {
            "params": {"key": descriptor.api_key},
        }
    if descriptor.kind is ProviderKind.DUAL_CREDENTIAL:
        return "GET", f"{settings.mathpix_url.rstrip('/')}/app_info", {
            "headers": {"app_id": descriptor.app_id, "app_key": descriptor.app_key},
        }
    return "POST", f"{settings.ocr_space_url.rstrip('/')}/parse/image", {
        "headers": {"apikey": descriptor.api_key or settings.fallback_api_key},
    }


async def check_connection(
    descriptor: ProviderDescriptor,
    client: httpx.AsyncClient | None = None,
) -> ConnectionCheck:
    missing = descriptor.missing_fields()
    if missing:
        raise ConfigurationError(
            f"{descriptor.provider_id}: fill in {', '.join(missing)} first",
            provider=descriptor.provider_id,
        )

    owned = client is None
    client = client or httpx.AsyncClient(timeout=settings.http_timeout_seconds)
    t0 = time.monotonic()
    try:
        if descriptor.kind is ProviderKind.CUSTOM:
            return await _check_custom(descriptor, client, t0)

        method, url, kwargs = _probe(descriptor)
        response = await client.request(method, url, **kwargs)
        elapsed = int((time.monotonic() - t0) * 1000)
        # OCR.space answers 400 to an image-less request, which still proves it is up
        reachable = response.is_success or (
            descriptor.kind is ProviderKind.FREE_TIER and response.status_code == 400
        )
        logger.info(
            "connection_checked",
            extra={"provider": descriptor.provider_id, "status": response.status_code, "duration_ms": elapsed},
        )
        if reachable:
            return ConnectionCheck(descriptor.provider_id, True, elapsed)
        return ConnectionCheck(descriptor.provider_id, False, elapsed, error=f"HTTP {response.status_code}")
    except httpx.HTTPError as exc:
        logger.warning("connection_check_failed", extra={"provider": descriptor.provider_id, "error": repr(exc)})
        return ConnectionCheck(descriptor.provider_id, False, error=str(exc) or repr(exc))
    finally:
        if owned:
            await client.aclose()


async def _check_custom(
    descriptor: ProviderDescriptor,
    client: httpx.AsyncClient,
    t0: float,
) -> ConnectionCheck:
    prepared = build_request(descriptor, OcrRequest(image=TEST_IMAGE))
    response = await client.request(prepared.method, prepared.url, **prepared.send_kwargs())
    elapsed = int((time.monotonic() - t0) * 1000)
    if not response.is_success:
        return ConnectionCheck(descriptor.provider_id, False, elapsed, error=f"HTTP {response.status_code}")
    try:
        body = decode_json(descriptor, response)
        text = extract_custom_text(body, descriptor.custom.response_path)
    except OcrError as exc:
        return ConnectionCheck(descriptor.provider_id, False, elapsed, error=str(exc))
    except LookupError:
        return ConnectionCheck(
            descriptor.provider_id,
            False,
            elapsed,
            error=f"response path {descriptor.custom.response_path!r} not found",
        )
    return ConnectionCheck(descriptor.provider_id, True, elapsed, text=text)
