"""Map each vendor's JSON into the canonical ``OcrResult``."""
from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Sequence

from frametext.ocr.base_ocr import OcrResult
from frametext.ocr.errors import NoTextDetectedError, ResponseShapeError, TransportError
from frametext.ocr.registry import ProviderDescriptor, ProviderKind

logger = logging.getLogger(__name__)

_MISSING = object()


def _dig(raw: Any, *path: str | int) -> Any:
    """Follow a fixed path of keys/indices; ``_MISSING`` when any step fails."""
    node = raw
    for step in path:
        if isinstance(step, int):
            if not isinstance(node, Sequence) or isinstance(node, str) or not -len(node) <= step < len(node):
                return _MISSING
            node = node[step]
        else:
            if not isinstance(node, Mapping) or step not in node:
                return _MISSING
            node = node[step]
    return node


def _shape_error(descriptor: ProviderDescriptor, what: str) -> ResponseShapeError:
    return ResponseShapeError(f"{descriptor.provider_id}: {what}", provider=descriptor.provider_id)


def _no_text(descriptor: ProviderDescriptor) -> NoTextDetectedError:
    return NoTextDetectedError(
        f"{descriptor.spec.display_name}: No text detected in image",
        provider=descriptor.provider_id,
    )


def _result(
    descriptor: ProviderDescriptor,
    text: str,
    extras: dict[str, Any],
    confidence: Any = None,
) -> OcrResult:
    reported = isinstance(confidence, (int, float)) and not isinstance(confidence, bool)
    value = float(confidence) if reported else descriptor.spec.default_confidence
    return OcrResult(
        text=text,
        confidence=max(0.0, min(1.0, value)),
        provider=descriptor.provider_id,
        extras=extras,
        confidence_reported=reported,
    )


# ---------------------------------------------------------------------------
# Fixed-shape vendors
# ---------------------------------------------------------------------------

def _all_mappings(items: Any) -> bool:
    return isinstance(items, list) and all(isinstance(item, Mapping) for item in items)


def _text_field(item: Mapping, key: str) -> str | None:
    value = item.get(key)
    if value is None:
        return ""
    return value if isinstance(value, str) else None


def _normalize_azure(raw: Any, descriptor: ProviderDescriptor) -> OcrResult:
    read_results = _dig(raw, "analyzeResult", "readResults")
    if read_results is _MISSING or not isinstance(read_results, list):
        raise _shape_error(descriptor, "missing analyzeResult.readResults")
    lines = _dig(read_results, 0, "lines")
    if lines is _MISSING or not lines:
        raise _no_text(descriptor)
    if not _all_mappings(lines):
        raise _shape_error(descriptor, "readResults[0].lines is not a list of objects")
    texts = [_text_field(line, "text") for line in lines]
    if None in texts:
        raise _shape_error(descriptor, "line text is not a string")
    return _result(
        descriptor,
        "\n".join(texts),
        {
            "lines": [
                {"text": text, "bounding_box": line.get("boundingBox"), "words": line.get("words")}
                for text, line in zip(texts, lines)
            ]
        },
    )


def _normalize_google(raw: Any, descriptor: ProviderDescriptor) -> OcrResult:
    response = _dig(raw, "responses", 0)
    if response is _MISSING or not isinstance(response, Mapping):
        raise _shape_error(descriptor, "missing responses[0]")
    if "error" in response:
        error = response["error"]
        if not isinstance(error, Mapping):
            error = {"message": error}
        code = error.get("code")
        raise TransportError(
            f"Google Vision API error: {error.get('message', error)}",
            provider=descriptor.provider_id,
            status_code=code if isinstance(code, int) else None,
        )
    annotations = response.get("textAnnotations") or []
    if not _all_mappings(annotations):
        raise _shape_error(descriptor, "textAnnotations is not a list of objects")
    if not annotations:
        raise _no_text(descriptor)
    text = _text_field(annotations[0], "description")
    if text is None:
        raise _shape_error(descriptor, "textAnnotations[0].description is not a string")
    if not text.strip():
        raise _no_text(descriptor)
    words = []
    for annotation in annotations[1:]:
        poly = annotation.get("boundingPoly")
        words.append({
            "text": annotation.get("description", ""),
            "bounding_box": poly.get("vertices") if isinstance(poly, Mapping) else None,
        })
    return _result(descriptor, text, {"words": words})


def _normalize_mathpix(raw: Any, descriptor: ProviderDescriptor) -> OcrResult:
    if not isinstance(raw, Mapping):
        raise _shape_error(descriptor, "response is not an object")
    if raw.get("error"):
        raise TransportError(
            f"Mathpix API error: {raw.get('error')}",
            provider=descriptor.provider_id,
        )
    text = _text_field(raw, "text")
    latex = _text_field(raw, "latex_styled")
    if text is None or latex is None:
        raise _shape_error(descriptor, "text/latex_styled is not a string")
    if not text.strip() and not latex:
        raise _no_text(descriptor)
    extras: dict[str, Any] = {"is_math": bool(latex)}
    if latex:
        extras["latex"] = latex
    return _result(descriptor, text or latex, extras, raw.get("confidence"))


def _normalize_ocr_space(raw: Any, descriptor: ProviderDescriptor) -> OcrResult:
    if not isinstance(raw, Mapping):
        raise _shape_error(descriptor, "response is not an object")
    if raw.get("IsErroredOnProcessing"):
        message = raw.get("ErrorMessage") or "unknown error"
        if isinstance(message, list):
            message = "; ".join(str(m) for m in message)
        raise TransportError(
            f"OCR.space processing error: {message}",
            provider=descriptor.provider_id,
        )
    parsed = raw.get("ParsedResults") or []
    if not _all_mappings(parsed):
        raise _shape_error(descriptor, "ParsedResults is not a list of objects")
    if not parsed:
        raise _no_text(descriptor)
    text = _text_field(parsed[0], "ParsedText")
    if text is None:
        raise _shape_error(descriptor, "ParsedResults[0].ParsedText is not a string")
    if not text.strip():
        raise _no_text(descriptor)
    return _result(
        descriptor,
        text,
        {"processing_time_ms": raw.get("ProcessingTimeInMilliseconds", 0)},
    )


# ---------------------------------------------------------------------------
# Custom providers: user-declared dotted path
# ---------------------------------------------------------------------------

def walk_response_path(raw: Any, path: str) -> Any:
    """Descend ``raw`` along ``a.b.0.c``; raise ``LookupError`` on a dead end."""
    node = raw
    for part in path.split("."):
        if isinstance(node, Mapping):
            if part not in node:
                raise LookupError(part)
            node = node[part]
        elif isinstance(node, list) and part.lstrip("-").isdigit():
            index = int(part)
            if not -len(node) <= index < len(node):
                raise LookupError(part)
            node = node[index]
        else:
            raise LookupError(part)
    return node


def _element_text(item: Any) -> str:
    if isinstance(item, Mapping):
        for key in ("words", "text"):
            value = item.get(key)
            if value:
                return str(value)
        return json.dumps(item, ensure_ascii=False)
    return str(item)


def extract_custom_text(raw: Any, path: str) -> str:
    node = walk_response_path(raw, path)
    if node is None:
        raise LookupError(path)
    if isinstance(node, list):
        return "\n".join(_element_text(item) for item in node)
    if isinstance(node, Mapping):
        return _element_text(node)
    return str(node)


def _normalize_custom(raw: Any, descriptor: ProviderDescriptor) -> OcrResult:
    if descriptor.custom is None:
        raise _shape_error(descriptor, "custom provider has no response path")
    path = descriptor.custom.response_path
    try:
        text = extract_custom_text(raw, path)
    except LookupError as exc:
        raise _shape_error(descriptor, f"response path {path!r} not found (stopped at {exc.args[0]!r})") from exc
    if not text.strip():
        raise _no_text(descriptor)
    return _result(descriptor, text, {"response_path": path})


_NORMALIZERS = {
    ProviderKind.CLOUD_VISION_ASYNC: _normalize_azure,
    ProviderKind.KEY_JSON: _normalize_google,
    ProviderKind.DUAL_CREDENTIAL: _normalize_mathpix,
    ProviderKind.FREE_TIER: _normalize_ocr_space,
    ProviderKind.CUSTOM: _normalize_custom,
}


def normalize(raw: Any, descriptor: ProviderDescriptor) -> OcrResult:
    result = _NORMALIZERS[descriptor.kind](raw, descriptor)
    logger.info(
        "ocr_normalized",
        extra={
            "provider": descriptor.provider_id,
            "chars": len(result.text),
            "confidence": round(result.confidence, 4),
        },
    )
    return result
