"""Invocation orchestrator: SELECT → BUILD → SEND → (POLL)* → NORMALIZE → DONE.

Any ``OcrError`` on the first attempt takes the single FALLBACK transition:
the descriptor is replaced by the free-tier provider and the pipeline restarts
from BUILD. A failure of the fallback attempt is surfaced unchanged.

Polling is bounded (``poll_max_attempts`` × ``poll_interval_seconds``) and
raises ``OcrTimeoutError`` when the vendor never reports ``succeeded``.
Cancellation is never caught, so a caller that goes away stops the flow
before NORMALIZE and receives no partial result.
"""
from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import Any, Mapping

import httpx
from tenacity import AsyncRetrying, RetryError, retry_if_result, stop_after_attempt, wait_fixed

from frametext.core.config import Settings, settings as default_settings
from frametext.ocr.adapter import (
    OperationHandle,
    PreparedRequest,
    build_poll_request,
    build_request,
    decode_json,
    raise_for_status,
    read_submission,
)
from frametext.ocr.base_ocr import OcrRequest, OcrResult
from frametext.ocr.errors import OcrError, OcrTimeoutError, TransportError
from frametext.ocr.normalizer import normalize
from frametext.ocr.registry import ProviderDescriptor, fallback_descriptor
from frametext.ocr.selector import select_provider

logger = logging.getLogger(__name__)

_POLL_SUCCEEDED = "succeeded"
_POLL_FAILED = "failed"


def _still_running(body: Any) -> bool:
    return body is None


class OcrOrchestrator:
    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._settings = settings or default_settings
        self._client = client

    # ------------------------------------------------------------------ #
    #  Public entry points                                                 #
    # ------------------------------------------------------------------ #

    async def extract(
        self,
        providers: Mapping[str, ProviderDescriptor],
        request: OcrRequest,
    ) -> OcrResult:
        """SELECT a provider from the snapshot, then ``invoke`` it."""
        descriptor = select_provider(providers, request.has_math_content)
        return await self.invoke(descriptor, request)

    async def invoke(
        self,
        descriptor: ProviderDescriptor | None,
        request: OcrRequest,
    ) -> OcrResult:
        if descriptor is None:
            logger.info("no_configured_provider_using_fallback")
            descriptor = self._fallback()

        try:
            return await self._attempt(descriptor, request)
        except OcrError as exc:
            if descriptor.is_fallback:
                logger.error(
                    "ocr_failed",
                    extra={"provider": descriptor.provider_id, "kind": exc.kind, "error": str(exc)},
                )
                raise
            logger.warning(
                "ocr_attempt_failed_fallback",
                extra={"provider": descriptor.provider_id, "kind": exc.kind, "error": str(exc)},
            )

        fallback = self._fallback()
        try:
            result = await self._attempt(fallback, request)
        except OcrError as exc:
            logger.error(
                "fallback_ocr_failed",
                extra={"provider": fallback.provider_id, "kind": exc.kind, "error": str(exc)},
            )
            raise
        return replace(result, fallback_from=descriptor.provider_id)

    # ------------------------------------------------------------------ #
    #  One attempt: BUILD → SEND → (POLL)* → NORMALIZE                     #
    # ------------------------------------------------------------------ #

    async def _attempt(self, descriptor: ProviderDescriptor, request: OcrRequest) -> OcrResult:
        prepared = build_request(descriptor, request)
        t0 = time.monotonic()
        async with self._client_scope() as client:
            response = await self._send(client, descriptor, prepared)
            submitted = read_submission(descriptor, response)
            if isinstance(submitted, OperationHandle):
                raw = await self._poll(client, descriptor, submitted)
            else:
                raw = submitted
        result = normalize(raw, descriptor)
        logger.info(
            "ocr_complete",
            extra={
                "provider": descriptor.provider_id,
                "duration_ms": int((time.monotonic() - t0) * 1000),
                "confidence": result.confidence,
            },
        )
        return result

    async def _send(
        self,
        client: httpx.AsyncClient,
        descriptor: ProviderDescriptor,
        prepared: PreparedRequest,
    ) -> httpx.Response:
        try:
            return await client.request(prepared.method, prepared.url, **prepared.send_kwargs())
        except httpx.HTTPError as exc:
            raise TransportError(
                f"{descriptor.spec.display_name} request failed: {exc!r}",
                provider=descriptor.provider_id,
            ) from exc

    async def _poll(
        self,
        client: httpx.AsyncClient,
        descriptor: ProviderDescriptor,
        handle: OperationHandle,
    ) -> Any:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._settings.poll_max_attempts),
            wait=wait_fixed(self._settings.poll_interval_seconds),
            retry=retry_if_result(_still_running),
        )
        try:
            return await retrying(self._poll_once, client, descriptor, handle)
        except RetryError as exc:
            raise OcrTimeoutError(
                f"OCR operation timeout after {self._settings.poll_max_attempts} polls",
                provider=descriptor.provider_id,
            ) from exc

    async def _poll_once(
        self,
        client: httpx.AsyncClient,
        descriptor: ProviderDescriptor,
        handle: OperationHandle,
    ) -> Any:
        """Return the finished body, or None while the operation is still running."""
        response = await self._send(client, descriptor, build_poll_request(descriptor, handle))
        raise_for_status(descriptor, response)
        body = decode_json(descriptor, response)
        status = body.get("status") if isinstance(body, Mapping) else None
        logger.debug("ocr_poll", extra={"provider": descriptor.provider_id, "status": status})
        if status == _POLL_SUCCEEDED:
            return body
        if status == _POLL_FAILED:
            raise TransportError(
                f"{descriptor.spec.display_name} operation failed",
                provider=descriptor.provider_id,
            )
        return None

    # ------------------------------------------------------------------ #
    #  Helpers                                                             #
    # ------------------------------------------------------------------ #

    def _fallback(self) -> ProviderDescriptor:
        return fallback_descriptor(self._settings.fallback_api_key)

    @asynccontextmanager
    async def _client_scope(self) -> AsyncIterator[httpx.AsyncClient]:
        """Borrow the injected client, or own a short-lived one for one attempt."""
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self._settings.http_timeout_seconds) as client:
            yield client
