"""Provider registry: static description of every supported OCR provider.

The registry is configuration data only. ``PROVIDER_SPECS`` says which
credential fields each provider shape requires and which confidence to report
when the vendor does not return one; ``descriptors_from_config`` turns a stored
configuration snapshot into immutable ``ProviderDescriptor`` objects for one
invocation.
"""
from __future__ import annotations

import enum
import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

from frametext.ocr.errors import ConfigurationError
from frametext.schemas import CustomApiIn, ProviderConfigIn

logger = logging.getLogger(__name__)


class ProviderKind(str, enum.Enum):
    CLOUD_VISION_ASYNC = "cloud_vision_async"   # key + endpoint, polled operation
    KEY_JSON = "key_json"                       # single key, synchronous JSON
    DUAL_CREDENTIAL = "dual_credential"         # app id + app key, math markup
    FREE_TIER = "free_tier"                     # public demo key
    CUSTOM = "custom"                           # described entirely by the user


AZURE = "azure"
GOOGLE = "google"
MATHPIX = "mathpix"
OCR_SPACE = "ocr_space"
FALLBACK_PROVIDER_ID = OCR_SPACE
CUSTOM_PREFIX = "custom_"


@dataclass(frozen=True)
class ProviderSpec:
    kind: ProviderKind
    display_name: str
    required_fields: tuple[str, ...]
    default_confidence: float


PROVIDER_SPECS: Mapping[ProviderKind, ProviderSpec] = MappingProxyType({
    ProviderKind.CLOUD_VISION_ASYNC: ProviderSpec(
        kind=ProviderKind.CLOUD_VISION_ASYNC,
        display_name="Azure Computer Vision (Read)",
        required_fields=("api_key", "endpoint"),
        default_confidence=0.9,
    ),
    ProviderKind.KEY_JSON: ProviderSpec(
        kind=ProviderKind.KEY_JSON,
        display_name="Google Cloud Vision",
        required_fields=("api_key",),
        default_confidence=0.95,
    ),
    ProviderKind.DUAL_CREDENTIAL: ProviderSpec(
        kind=ProviderKind.DUAL_CREDENTIAL,
        display_name="Mathpix",
        required_fields=("app_id", "app_key"),
        default_confidence=0.9,
    ),
    ProviderKind.FREE_TIER: ProviderSpec(
        kind=ProviderKind.FREE_TIER,
        display_name="OCR.space",
        required_fields=(),
        default_confidence=0.8,
    ),
    ProviderKind.CUSTOM: ProviderSpec(
        kind=ProviderKind.CUSTOM,
        display_name="Custom API",
        required_fields=("url", "image_field", "response_path"),
        default_confidence=0.9,
    ),
})

BUILTIN_PROVIDERS: Mapping[str, ProviderKind] = MappingProxyType({
    AZURE: ProviderKind.CLOUD_VISION_ASYNC,
    GOOGLE: ProviderKind.KEY_JSON,
    MATHPIX: ProviderKind.DUAL_CREDENTIAL,
    OCR_SPACE: ProviderKind.FREE_TIER,
})

# Declared selection order; custom providers slot in before the free tier.
PRIORITY_ORDER: tuple[str, ...] = (AZURE, GOOGLE, MATHPIX, OCR_SPACE)


@dataclass(frozen=True)
class CustomApiConfig:
    url: str
    method: str = "POST"
    api_key: str = ""
    key_header: str = "Authorization"
    key_location: str = "header"        # header | query
    body_format: str = "json"           # json | form-data
    image_field: str = "image"
    image_encoding: str = "data-uri"    # data-uri | base64
    response_path: str = "result.text"
    extra_headers: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ProviderDescriptor:
    provider_id: str
    kind: ProviderKind
    enabled: bool = False
    api_key: str = ""
    endpoint: str = ""
    app_id: str = ""
    app_key: str = ""
    custom: CustomApiConfig | None = None

    @property
    def spec(self) -> ProviderSpec:
        return PROVIDER_SPECS[self.kind]

    @property
    def is_fallback(self) -> bool:
        return self.kind is ProviderKind.FREE_TIER

    def credential(self, name: str) -> str:
        if self.custom is not None and hasattr(self.custom, name):
            return getattr(self.custom, name) or ""
        return getattr(self, name, "") or ""

    def missing_fields(self) -> list[str]:
        return [name for name in self.spec.required_fields if not self.credential(name).strip()]

    @property
    def has_credentials(self) -> bool:
        return not self.missing_fields()

    @property
    def usable(self) -> bool:
        return self.enabled and self.has_credentials


# ---------------------------------------------------------------------------
# Custom API presets offered on the options page
# ---------------------------------------------------------------------------

CUSTOM_API_TEMPLATES: Mapping[str, Mapping[str, Any]] = MappingProxyType({
    "zai": {
        "name": "ZAI OCR",
        "url": "https://api.zai.ai/v1/ocr",
        "method": "POST",
        "keyHeader": "Authorization",
        "dataFormat": "json",
        "imageField": "image",
        "responsePath": "result.text",
        "headers": {"Content-Type": "application/json"},
    },
    "baidu": {
        "name": "Baidu OCR",
        "url": "https://aip.baidubce.com/rest/2.0/ocr/v1/general_basic",
        "method": "POST",
        "keyHeader": "access_token",
        "keyLocation": "query",
        "dataFormat": "form-data",
        "imageField": "image",
        "responsePath": "words_result",
        "headers": {},
    },
    "tencent": {
        "name": "Tencent OCR",
        "url": "https://ocr.tencentcloudapi.com/",
        "method": "POST",
        "keyHeader": "Authorization",
        "dataFormat": "json",
        "imageField": "ImageBase64",
        "imageEncoding": "base64",
        "responsePath": "Response.TextDetections",
        "headers": {"Content-Type": "application/json"},
    },
    "aliyun": {
        "name": "Aliyun OCR",
        "url": "https://ocr-api.cn-hangzhou.aliyuncs.com/api/v1/ocr/general/text",
        "method": "POST",
        "keyHeader": "Authorization",
        "dataFormat": "json",
        "imageField": "body",
        "responsePath": "Data.content",
        "headers": {"Content-Type": "application/json"},
    },
    "huawei": {
        "name": "Huawei Cloud OCR",
        "url": "https://ocr.cn-north-4.myhuaweicloud.com/v2.0/ocr/general-text",
        "method": "POST",
        "keyHeader": "X-Auth-Token",
        "dataFormat": "json",
        "imageField": "image",
        "imageEncoding": "base64",
        "responsePath": "result.words_region_list",
        "headers": {"Content-Type": "application/json"},
    },
    "aws": {
        "name": "Amazon Textract",
        "url": "https://textract.us-east-1.amazonaws.com/",
        "method": "POST",
        "keyHeader": "Authorization",
        "dataFormat": "json",
        "imageField": "Document",
        "imageEncoding": "base64",
        "responsePath": "Blocks",
        "headers": {
            "Content-Type": "application/x-amz-json-1.1",
            "X-Amz-Target": "Textract.DetectDocumentText",
        },
    },
})


def custom_provider_id(name: str) -> str:
    """``"My OCR"`` -> ``"custom_my_ocr"``; ids already prefixed are kept."""
    slug = re.sub(r"\s+", "_", name.strip().lower())
    return slug if slug.startswith(CUSTOM_PREFIX) else f"{CUSTOM_PREFIX}{slug}"


def custom_descriptor(provider_id: str, cfg: CustomApiIn) -> ProviderDescriptor:
    return ProviderDescriptor(
        provider_id=provider_id,
        kind=ProviderKind.CUSTOM,
        enabled=cfg.enabled,
        api_key=cfg.api_key,
        endpoint=cfg.url,
        custom=CustomApiConfig(
            url=cfg.url.strip(),
            method=cfg.method.upper(),
            api_key=cfg.api_key,
            key_header=cfg.key_header,
            key_location=cfg.key_location,
            body_format=cfg.body_format,
            image_field=cfg.image_field,
            image_encoding=cfg.image_encoding,
            response_path=cfg.response_path,
            extra_headers=MappingProxyType(dict(cfg.extra_headers)),
        ),
    )


def custom_template(name: str, **overrides: Any) -> CustomApiIn:
    """Return a ``CustomApiIn`` prefilled from one of ``CUSTOM_API_TEMPLATES``."""
    try:
        template = dict(CUSTOM_API_TEMPLATES[name])
    except KeyError:
        raise KeyError(f"Unknown custom API template {name!r}") from None
    template.update(overrides)
    return CustomApiIn.model_validate(template)


def descriptors_from_config(config: ProviderConfigIn) -> dict[str, ProviderDescriptor]:
    """Build the immutable descriptor snapshot for one invocation."""
    descriptors: dict[str, ProviderDescriptor] = {
        AZURE: ProviderDescriptor(
            provider_id=AZURE,
            kind=ProviderKind.CLOUD_VISION_ASYNC,
            enabled=config.azure.enabled,
            api_key=config.azure.api_key,
            endpoint=config.azure.endpoint,
        ),
        GOOGLE: ProviderDescriptor(
            provider_id=GOOGLE,
            kind=ProviderKind.KEY_JSON,
            enabled=config.google.enabled,
            api_key=config.google.api_key,
        ),
        MATHPIX: ProviderDescriptor(
            provider_id=MATHPIX,
            kind=ProviderKind.DUAL_CREDENTIAL,
            enabled=config.mathpix.enabled,
            app_id=config.mathpix.app_id,
            app_key=config.mathpix.app_key,
        ),
        OCR_SPACE: ProviderDescriptor(
            provider_id=OCR_SPACE,
            kind=ProviderKind.FREE_TIER,
            enabled=config.ocr_space.enabled,
            api_key=config.ocr_space.api_key,
        ),
    }
    for name, cfg in config.custom_apis.items():
        provider_id = custom_provider_id(name)
        descriptors[provider_id] = custom_descriptor(provider_id, cfg)
    return descriptors


def fallback_descriptor(api_key: str | None = None) -> ProviderDescriptor:
    """The designated free-tier provider, always enabled."""
    if api_key is None:
        from frametext.core.config import settings
        api_key = settings.fallback_api_key
    return ProviderDescriptor(
        provider_id=FALLBACK_PROVIDER_ID,
        kind=ProviderKind.FREE_TIER,
        enabled=True,
        api_key=api_key,
    )


def load_provider_config(path: str | None = None) -> ProviderConfigIn:
    """Read a stored configuration snapshot, or the defaults (free tier only).

    An unreadable or invalid file raises ``ConfigurationError``.
    """
    if path is None:
        from frametext.core.config import settings
        path = settings.provider_config_path
    if not path:
        return ProviderConfigIn()
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise ValueError("top level must be a JSON object")
        # The extension stored the built-ins under "apiConfig" and customs beside it
        if "apiConfig" in raw:
            raw = {**raw["apiConfig"], "customAPIs": raw.get("customAPIs", {})}
        config = ProviderConfigIn.model_validate(raw)
    except (OSError, ValueError) as exc:
        raise ConfigurationError(f"provider config {path!r} is unreadable: {exc}") from exc
    logger.info("provider_config_loaded", extra={"path": path})
    return config
