from __future__ import annotations

import logging
from collections.abc import AsyncIterator

import httpx
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from frametext.core.config import settings
from frametext.ocr.base_ocr import OcrRequest, OcrResult
from frametext.ocr.connection import check_connection
from frametext.ocr.errors import ConfigurationError, OcrError
from frametext.ocr.hints import detect_math_content
from frametext.ocr.registry import (
    BUILTIN_PROVIDERS,
    CUSTOM_API_TEMPLATES,
    PROVIDER_SPECS,
    descriptors_from_config,
    load_provider_config,
)
from frametext.ocr.selector import priority_order
from frametext.pipeline.orchestrator import OcrOrchestrator
from frametext.schemas import (
    ConnectionTestIn,
    ConnectionTestOut,
    OcrErrorOut,
    OcrRequestIn,
    OcrResultOut,
    ProviderConfigIn,
    ProviderSpecOut,
    ProvidersOut,
)

logger = logging.getLogger(__name__)
router = APIRouter()


async def get_http_client() -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
        yield client


def get_orchestrator(client: httpx.AsyncClient = Depends(get_http_client)) -> OcrOrchestrator:
    return OcrOrchestrator(client=client)


def _error_response(exc: OcrError) -> JSONResponse:
    status = 422 if isinstance(exc, ConfigurationError) else 502
    body = OcrErrorOut(kind=exc.kind, message=exc.message, provider=exc.provider)
    return JSONResponse(status_code=status, content=body.model_dump())


def _to_out(result: OcrResult, formatted: bool) -> OcrResultOut:
    return OcrResultOut(
        text=result.text,
        formatted=result.formatted if formatted else None,
        confidence=result.confidence,
        confidence_reported=result.confidence_reported,
        provider=result.provider,
        fallback_from=result.fallback_from,
        extras=result.extras,
    )


def _snapshot(config: ProviderConfigIn | None):
    if config is not None:
        return descriptors_from_config(config)
    try:
        stored = load_provider_config()
    except ConfigurationError as exc:
        logger.error("provider_config_unreadable", extra={"error": exc.message})
        raise HTTPException(status_code=503, detail=exc.message) from exc
    return descriptors_from_config(stored)


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/providers", response_model=ProvidersOut)
async def list_providers() -> ProvidersOut:
    providers = {
        provider_id: ProviderSpecOut(
            kind=kind.value,
            display_name=PROVIDER_SPECS[kind].display_name,
            required_fields=list(PROVIDER_SPECS[kind].required_fields),
            default_confidence=PROVIDER_SPECS[kind].default_confidence,
        )
        for provider_id, kind in BUILTIN_PROVIDERS.items()
    }
    return ProvidersOut(
        providers=providers,
        priority=priority_order({}),
        custom_templates={name: dict(t) for name, t in CUSTOM_API_TEMPLATES.items()},
    )


@router.post(
    "/ocr",
    response_model=OcrResultOut,
    responses={422: {"model": OcrErrorOut}, 502: {"model": OcrErrorOut}},
)
async def extract_text(
    payload: OcrRequestIn,
    orchestrator: OcrOrchestrator = Depends(get_orchestrator),
):
    try:
        has_math = payload.has_math_content or detect_math_content(payload.page_text)
        request = OcrRequest(image=payload.image, has_math_content=has_math)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    providers = _snapshot(payload.providers)
    try:
        if payload.provider_id:
            descriptor = providers.get(payload.provider_id)
            if descriptor is None:
                raise HTTPException(status_code=404, detail=f"Unknown provider {payload.provider_id!r}")
            if not descriptor.enabled:
                raise HTTPException(status_code=409, detail=f"Provider {payload.provider_id!r} is disabled")
            result = await orchestrator.invoke(descriptor, request)
        else:
            result = await orchestrator.extract(providers, request)
    except OcrError as exc:
        return _error_response(exc)

    logger.info(
        "ocr_request_served",
        extra={"provider": result.provider, "fallback_from": result.fallback_from},
    )
    return _to_out(result, payload.format)


@router.post("/providers/{provider_id}/test", response_model=ConnectionTestOut)
async def check_provider(
    provider_id: str,
    payload: ConnectionTestIn | None = None,
    client: httpx.AsyncClient = Depends(get_http_client),
):
    providers = _snapshot(payload.providers if payload else None)
    descriptor = providers.get(provider_id)
    if descriptor is None:
        raise HTTPException(status_code=404, detail=f"Unknown provider {provider_id!r}")
    try:
        check = await check_connection(descriptor, client)
    except ConfigurationError as exc:
        return _error_response(exc)
    return ConnectionTestOut(
        provider=check.provider,
        success=check.success,
        response_time_ms=check.response_time_ms,
        error=check.error,
        text=check.text,
    )
