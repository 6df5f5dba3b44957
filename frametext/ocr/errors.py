"""Error taxonomy of the OCR provider layer.

Every failure the orchestrator can see is one of the ``OcrError`` subclasses
below. All of them are eligible for the single fallback substitution; the
second occurrence is surfaced to the caller unchanged.
"""
from __future__ import annotations


class OcrError(Exception):
    kind = "ocr_error"

    def __init__(self, message: str, *, provider: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.provider = provider

    def __str__(self) -> str:
        return self.message


class ConfigurationError(OcrError):
    """A structurally required descriptor field is missing or invalid."""

    kind = "configuration_error"


class TransportError(OcrError):
    """Non-2xx status, network-level failure, or a vendor-reported error."""

    kind = "transport_error"

    def __init__(
        self,
        message: str,
        *,
        provider: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, provider=provider)
        self.status_code = status_code


class OcrTimeoutError(OcrError, TimeoutError):
    """An asynchronous operation never reached the succeeded state."""

    kind = "timeout_error"


class NoTextDetectedError(OcrError):
    kind = "no_text_detected"


class ResponseShapeError(OcrError):
    """The expected (or user-declared) path could not be walked."""

    kind = "response_shape_error"
