"""Request adapter: turn a provider descriptor and an image into an HTTP request.

``build_request`` is pure: it validates the descriptor and returns a
``PreparedRequest`` without touching the network, so a missing URL or
credential surfaces as ``ConfigurationError`` before anything is sent.

Polling vendors answer the submission with an operation handle instead of a
result; ``read_submission`` returns an ``OperationHandle`` for those and the
decoded JSON body for everyone else.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from frametext.core.config import settings
from frametext.ocr.base_ocr import OcrRequest
from frametext.ocr.errors import ConfigurationError, ResponseShapeError, TransportError
from frametext.ocr.registry import ProviderDescriptor, ProviderKind

logger = logging.getLogger(__name__)

AZURE_READ_PATH = "/vision/v3.2/read/analyze"
AZURE_KEY_HEADER = "Ocp-Apim-Subscription-Key"

# OCR.space multipart constants
OCR_SPACE_FORM_FIELDS: dict[str, str] = {
    "language": "chs",
    "isOverlayRequired": "false",
    "detectOrientation": "true",
    "scale": "true",
    "OCREngine": "2",
}

GOOGLE_FEATURES = [{"type": "DOCUMENT_TEXT_DETECTION", "maxResults": 10}]
MATHPIX_FORMATS = ["text", "latex_styled"]


@dataclass(frozen=True)
class PreparedRequest:
    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, str] = field(default_factory=dict)
    json: Any = None
    data: dict[str, str] | None = None
    files: dict[str, tuple[str, bytes, str]] | None = None
    content: bytes | None = None
    polling: bool = False

    def send_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {"headers": self.headers}
        if self.params:
            kwargs["params"] = self.params
        if self.json is not None:
            kwargs["json"] = self.json
        if self.data is not None:
            kwargs["data"] = self.data
        if self.files is not None:
            kwargs["files"] = self.files
        if self.content is not None:
            kwargs["content"] = self.content
        return kwargs


@dataclass(frozen=True)
class OperationHandle:
    """Where to poll for an asynchronous vendor's result."""

    url: str
    provider: str


def _require(descriptor: ProviderDescriptor) -> None:
    if descriptor.kind is ProviderKind.CUSTOM and descriptor.custom is None:
        raise ConfigurationError(
            f"{descriptor.provider_id}: custom provider has no API description",
            provider=descriptor.provider_id,
        )
    missing = descriptor.missing_fields()
    if missing:
        raise ConfigurationError(
            f"{descriptor.provider_id}: missing required field(s) {', '.join(missing)}",
            provider=descriptor.provider_id,
        )


def _file_name(request: OcrRequest) -> str:
    subtype = request.mime_type.split("/", 1)[-1].split("+", 1)[0]
    return f"image.{subtype or 'png'}"


# ---------------------------------------------------------------------------
# Per-kind builders
# ---------------------------------------------------------------------------

def _build_azure(descriptor: ProviderDescriptor, request: OcrRequest) -> PreparedRequest:
    return PreparedRequest(
        method="POST",
        url=descriptor.endpoint.rstrip("/") + AZURE_READ_PATH,
        headers={
            AZURE_KEY_HEADER: descriptor.api_key,
            "Content-Type": "application/octet-stream",
        },
        content=request.image_bytes,
        polling=True,
    )


def _build_google(descriptor: ProviderDescriptor, request: OcrRequest) -> PreparedRequest:
    return PreparedRequest(
        method="POST",
        url=f"{settings.google_vision_url.rstrip('/')}/images:annotate",
        params={"key": descriptor.api_key},
        headers={"Content-Type": "application/json"},
        json={
            "requests": [{
                "image": {"content": request.base64_payload},
                "features": GOOGLE_FEATURES,
            }]
        },
    )


def _build_mathpix(descriptor: ProviderDescriptor, request: OcrRequest) -> PreparedRequest:
    return PreparedRequest(
        method="POST",
        url=f"{settings.mathpix_url.rstrip('/')}/text",
        headers={
            "app_id": descriptor.app_id,
            "app_key": descriptor.app_key,
            "Content-Type": "application/json",
        },
        json={"src": request.image, "formats": MATHPIX_FORMATS},
    )


def _build_ocr_space(descriptor: ProviderDescriptor, request: OcrRequest) -> PreparedRequest:
    api_key = descriptor.api_key or settings.fallback_api_key
    return PreparedRequest(
        method="POST",
        url=f"{settings.ocr_space_url.rstrip('/')}/parse/image",
        params={"apikey": api_key},
        data=dict(OCR_SPACE_FORM_FIELDS),
        files={"file": (_file_name(request), request.image_bytes, request.mime_type)},
    )


def _build_custom(descriptor: ProviderDescriptor, request: OcrRequest) -> PreparedRequest:
    custom = descriptor.custom
    method = custom.method.upper()
    if method not in {"GET", "POST"}:
        raise ConfigurationError(
            f"{descriptor.provider_id}: unsupported method {custom.method!r}",
            provider=descriptor.provider_id,
        )
    if not custom.url.startswith(("http://", "https://")):
        raise ConfigurationError(
            f"{descriptor.provider_id}: url must be http(s), got {custom.url!r}",
            provider=descriptor.provider_id,
        )

    headers = dict(custom.extra_headers)
    params: dict[str, str] = {}
    # Key-less endpoints (self-hosted OCR) send no credential at all
    if custom.api_key and custom.key_location == "query":
        params[custom.key_header or "key"] = custom.api_key
    elif custom.api_key:
        if not custom.key_header:
            raise ConfigurationError(
                f"{descriptor.provider_id}: key header name is empty",
                provider=descriptor.provider_id,
            )
        headers[custom.key_header] = custom.api_key

    if custom.body_format == "form-data":
        # httpx sets the multipart boundary itself
        headers = {k: v for k, v in headers.items() if k.lower() != "content-type"}
        return PreparedRequest(
            method=method,
            url=custom.url,
            headers=headers,
            params=params,
            files={custom.image_field: (_file_name(request), request.image_bytes, request.mime_type)},
        )
    if custom.body_format == "json":
        image = request.base64_payload if custom.image_encoding == "base64" else request.image
        headers.setdefault("Content-Type", "application/json")
        return PreparedRequest(
            method=method,
            url=custom.url,
            headers=headers,
            params=params,
            json={custom.image_field: image},
        )
    raise ConfigurationError(
        f"{descriptor.provider_id}: unsupported body format {custom.body_format!r}",
        provider=descriptor.provider_id,
    )


_BUILDERS = {
    ProviderKind.CLOUD_VISION_ASYNC: _build_azure,
    ProviderKind.KEY_JSON: _build_google,
    ProviderKind.DUAL_CREDENTIAL: _build_mathpix,
    ProviderKind.FREE_TIER: _build_ocr_space,
    ProviderKind.CUSTOM: _build_custom,
}


def build_request(descriptor: ProviderDescriptor, request: OcrRequest) -> PreparedRequest:
    _require(descriptor)
    prepared = _BUILDERS[descriptor.kind](descriptor, request)
    logger.debug(
        "ocr_request_built",
        extra={"provider": descriptor.provider_id, "method": prepared.method, "url": prepared.url},
    )
    return prepared


def build_poll_request(descriptor: ProviderDescriptor, handle: OperationHandle) -> PreparedRequest:
    return PreparedRequest(
        method="GET",
        url=handle.url,
        headers={AZURE_KEY_HEADER: descriptor.api_key},
    )


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

def raise_for_status(descriptor: ProviderDescriptor, response: httpx.Response) -> None:
    if response.is_success:
        return
    body = response.text[:500]
    raise TransportError(
        f"{descriptor.spec.display_name} API error: {response.status_code} - {body}",
        provider=descriptor.provider_id,
        status_code=response.status_code,
    )


def decode_json(descriptor: ProviderDescriptor, response: httpx.Response) -> Any:
    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ResponseShapeError(
            f"{descriptor.provider_id}: response is not JSON",
            provider=descriptor.provider_id,
        ) from exc


def read_submission(descriptor: ProviderDescriptor, response: httpx.Response) -> OperationHandle | Any:
    raise_for_status(descriptor, response)
    if descriptor.kind is ProviderKind.CLOUD_VISION_ASYNC:
        location = response.headers.get("Operation-Location")
        if not location:
            raise ResponseShapeError(
                f"{descriptor.provider_id}: submission returned no Operation-Location header",
                provider=descriptor.provider_id,
            )
        return OperationHandle(url=location, provider=descriptor.provider_id)
    return decode_json(descriptor, response)
