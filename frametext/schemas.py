from __future__ import annotations

from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ---------------------------------------------------------------------------
# Stored provider configuration (the shape the options page persisted)
# ---------------------------------------------------------------------------

class KeyProviderIn(_CamelModel):
    enabled: bool = False
    api_key: str = Field(default="", alias="apiKey")
    endpoint: str = ""


class MathpixProviderIn(_CamelModel):
    enabled: bool = False
    app_id: str = Field(default="", alias="appId")
    app_key: str = Field(default="", alias="appKey")


class CustomApiIn(_CamelModel):
    enabled: bool = True
    name: str | None = None
    url: str = ""
    method: Literal["GET", "POST"] = "POST"
    api_key: str = Field(default="", validation_alias=AliasChoices("apiKey", "api_key"))
    key_header: str = Field(
        default="Authorization",
        validation_alias=AliasChoices("keyHeaderName", "keyHeader", "key_header"),
    )
    key_location: Literal["header", "query"] = Field(
        default="header", validation_alias=AliasChoices("keyLocation", "key_location")
    )
    body_format: Literal["json", "form-data"] = Field(
        default="json", validation_alias=AliasChoices("bodyFormat", "dataFormat", "body_format")
    )
    image_field: str = Field(
        default="image", validation_alias=AliasChoices("imageFieldName", "imageField", "image_field")
    )
    image_encoding: Literal["data-uri", "base64"] = Field(
        default="data-uri", validation_alias=AliasChoices("imageEncoding", "image_encoding")
    )
    response_path: str = Field(
        default="result.text", validation_alias=AliasChoices("responsePath", "response_path")
    )
    extra_headers: dict[str, str] = Field(
        default_factory=dict, validation_alias=AliasChoices("extraHeaders", "headers", "extra_headers")
    )


class ProviderConfigIn(_CamelModel):
    azure: KeyProviderIn = Field(default_factory=KeyProviderIn)
    google: KeyProviderIn = Field(default_factory=KeyProviderIn)
    mathpix: MathpixProviderIn = Field(default_factory=MathpixProviderIn)
    ocr_space: KeyProviderIn = Field(
        default_factory=lambda: KeyProviderIn(enabled=True),
        validation_alias=AliasChoices("ocrSpace", "ocr_space"),
    )
    custom_apis: dict[str, CustomApiIn] = Field(
        default_factory=dict, validation_alias=AliasChoices("customAPIs", "customApis", "custom_apis")
    )


# ---------------------------------------------------------------------------
# HTTP surface
# ---------------------------------------------------------------------------

class OcrRequestIn(_CamelModel):
    image: str
    has_math_content: bool = Field(
        default=False, validation_alias=AliasChoices("hasMathContent", "has_math_content")
    )
    providers: ProviderConfigIn | None = None
    provider_id: str | None = Field(default=None, validation_alias=AliasChoices("providerId", "provider_id"))
    # Text around the video; a math keyword there sets the hint too
    page_text: str | None = Field(default=None, validation_alias=AliasChoices("pageText", "page_text"))
    format: bool = True


class OcrResultOut(_CamelModel):
    text: str
    formatted: str | None
    confidence: float
    confidence_reported: bool = Field(alias="confidenceReported")
    provider: str
    fallback_from: str | None = Field(default=None, alias="fallbackFrom")
    extras: dict[str, Any] = Field(default_factory=dict)


class OcrErrorOut(BaseModel):
    kind: str
    message: str
    provider: str | None = None


class ProviderSpecOut(BaseModel):
    kind: str
    display_name: str
    required_fields: list[str]
    default_confidence: float


class ProvidersOut(BaseModel):
    providers: dict[str, ProviderSpecOut]
    priority: list[str]
    custom_templates: dict[str, dict[str, Any]]


class ConnectionTestIn(_CamelModel):
    providers: ProviderConfigIn | None = None


class ConnectionTestOut(BaseModel):
    provider: str
    success: bool
    response_time_ms: int | None = None
    error: str | None = None
    text: str | None = None
