"""Response normalizer tests: one canonical result from every vendor shape."""
from __future__ import annotations

import pytest

from frametext.ocr.errors import NoTextDetectedError, ResponseShapeError, TransportError
from frametext.ocr.normalizer import normalize, walk_response_path
from frametext.ocr.registry import (
    AZURE,
    GOOGLE,
    MATHPIX,
    OCR_SPACE,
    CustomApiConfig,
    ProviderDescriptor,
    ProviderKind,
)

AZURE_D = ProviderDescriptor(AZURE, ProviderKind.CLOUD_VISION_ASYNC, True, api_key="k", endpoint="https://az")
GOOGLE_D = ProviderDescriptor(GOOGLE, ProviderKind.KEY_JSON, True, api_key="k")
MATHPIX_D = ProviderDescriptor(MATHPIX, ProviderKind.DUAL_CREDENTIAL, True, app_id="i", app_key="k")
OCR_SPACE_D = ProviderDescriptor(OCR_SPACE, ProviderKind.FREE_TIER, True)


def _custom(path: str) -> ProviderDescriptor:
    return ProviderDescriptor(
        "custom_test",
        ProviderKind.CUSTOM,
        True,
        api_key="k",
        custom=CustomApiConfig(url="https://ocr.example.com", api_key="k", response_path=path),
    )


# ---------------------------------------------------------------------------
# Custom dotted path
# ---------------------------------------------------------------------------

def test_custom_path_returns_text() -> None:
    result = normalize({"result": {"text": "hello"}}, _custom("result.text"))
    assert result.text == "hello"
    assert result.provider == "custom_test"
    assert result.confidence == 0.9
    assert result.confidence_reported is False


def test_custom_path_missing_key_is_shape_error() -> None:
    with pytest.raises(ResponseShapeError):
        normalize({"result": {}}, _custom("result.text"))


def test_custom_path_through_scalar_is_shape_error() -> None:
    with pytest.raises(ResponseShapeError):
        normalize({"result": "flat"}, _custom("result.text"))


def test_custom_path_null_terminal_is_shape_error() -> None:
    with pytest.raises(ResponseShapeError):
        normalize({"result": {"text": None}}, _custom("result.text"))


def test_custom_sequence_joins_words_text_or_element() -> None:
    raw = {"words_result": [{"words": "line one"}, {"text": "line two"}, "line three"]}
    result = normalize(raw, _custom("words_result"))
    assert result.text == "line one\nline two\nline three"


def test_custom_path_indexes_into_lists() -> None:
    raw = {"Response": {"TextDetections": [{"DetectedText": "a"}, {"DetectedText": "b"}]}}
    assert walk_response_path(raw, "Response.TextDetections.1.DetectedText") == "b"


def test_custom_empty_sequence_is_no_text() -> None:
    with pytest.raises(NoTextDetectedError):
        normalize({"words_result": []}, _custom("words_result"))


def test_custom_numeric_terminal_is_stringified() -> None:
    assert normalize({"a": {"b": 42}}, _custom("a.b")).text == "42"


# ---------------------------------------------------------------------------
# Azure
# ---------------------------------------------------------------------------

def test_azure_joins_lines() -> None:
    raw = {
        "status": "succeeded",
        "analyzeResult": {
            "readResults": [{
                "lines": [
                    {"text": "first", "boundingBox": [0, 0, 1, 1], "words": []},
                    {"text": "second", "boundingBox": [0, 2, 1, 3], "words": []},
                ]
            }]
        },
    }
    result = normalize(raw, AZURE_D)
    assert result.text == "first\nsecond"
    assert result.confidence == 0.9
    assert result.confidence_reported is False
    assert result.extras["lines"][1]["bounding_box"] == [0, 2, 1, 3]


def test_azure_no_lines_is_no_text() -> None:
    with pytest.raises(NoTextDetectedError):
        normalize({"analyzeResult": {"readResults": [{"lines": []}]}}, AZURE_D)


def test_azure_missing_analyze_result_is_shape_error() -> None:
    with pytest.raises(ResponseShapeError):
        normalize({"status": "succeeded"}, AZURE_D)


# ---------------------------------------------------------------------------
# Google
# ---------------------------------------------------------------------------

def test_google_first_annotation_is_full_text() -> None:
    raw = {
        "responses": [{
            "textAnnotations": [
                {"description": "Hello world"},
                {"description": "Hello", "boundingPoly": {"vertices": [{"x": 1, "y": 2}]}},
                {"description": "world"},
            ]
        }]
    }
    result = normalize(raw, GOOGLE_D)
    assert result.text == "Hello world"
    assert result.confidence == 0.95
    assert result.extras["words"][0] == {"text": "Hello", "bounding_box": [{"x": 1, "y": 2}]}
    assert result.extras["words"][1]["bounding_box"] is None


def test_google_empty_annotations_is_no_text() -> None:
    with pytest.raises(NoTextDetectedError):
        normalize({"responses": [{}]}, GOOGLE_D)


def test_google_inline_error_is_transport_error() -> None:
    raw = {"responses": [{"error": {"code": 7, "message": "API key not valid"}}]}
    with pytest.raises(TransportError, match="API key not valid"):
        normalize(raw, GOOGLE_D)


def test_google_missing_responses_is_shape_error() -> None:
    with pytest.raises(ResponseShapeError):
        normalize({}, GOOGLE_D)


# ---------------------------------------------------------------------------
# Mathpix
# ---------------------------------------------------------------------------

def test_mathpix_carries_latex_and_vendor_confidence() -> None:
    raw = {"text": "\\( x^2 \\)", "latex_styled": "x^{2}", "confidence": 0.73}
    result = normalize(raw, MATHPIX_D)
    assert result.text == "\\( x^2 \\)"
    assert result.extras == {"is_math": True, "latex": "x^{2}"}
    assert result.confidence == 0.73
    assert result.confidence_reported is True


def test_mathpix_without_confidence_uses_default() -> None:
    result = normalize({"text": "plain"}, MATHPIX_D)
    assert result.confidence == 0.9
    assert result.confidence_reported is False
    assert result.extras == {"is_math": False}


def test_mathpix_error_is_transport_error() -> None:
    with pytest.raises(TransportError):
        normalize({"error": "Invalid credentials", "error_info": {}}, MATHPIX_D)


def test_mathpix_empty_is_no_text() -> None:
    with pytest.raises(NoTextDetectedError):
        normalize({"text": ""}, MATHPIX_D)


# ---------------------------------------------------------------------------
# OCR.space
# ---------------------------------------------------------------------------

def test_ocr_space_parsed_text() -> None:
    raw = {
        "ParsedResults": [{"ParsedText": "Frame text\r\n", "TextOrientation": "0"}],
        "IsErroredOnProcessing": False,
        "ProcessingTimeInMilliseconds": "312",
    }
    result = normalize(raw, OCR_SPACE_D)
    assert result.text == "Frame text\r\n"
    assert result.confidence == 0.8
    assert result.confidence_reported is False
    assert result.extras["processing_time_ms"] == "312"


def test_ocr_space_processing_error_is_transport_error() -> None:
    raw = {"IsErroredOnProcessing": True, "ErrorMessage": ["E101: Timed out", "retry"]}
    with pytest.raises(TransportError, match="E101: Timed out; retry"):
        normalize(raw, OCR_SPACE_D)


def test_ocr_space_no_results_is_no_text() -> None:
    with pytest.raises(NoTextDetectedError):
        normalize({"ParsedResults": [], "IsErroredOnProcessing": False}, OCR_SPACE_D)


# ---------------------------------------------------------------------------
# Malformed elements inside an otherwise valid envelope
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "raw, descriptor",
    [
        ({"analyzeResult": {"readResults": [{"lines": ["oops"]}]}}, AZURE_D),
        ({"analyzeResult": {"readResults": [{"lines": [{"text": 7}]}]}}, AZURE_D),
        ({"responses": [{"textAnnotations": ["Hello"]}]}, GOOGLE_D),
        ({"responses": [{"textAnnotations": [{"description": ["Hello"]}]}]}, GOOGLE_D),
        ({"responses": [{"textAnnotations": {"description": "Hello"}}]}, GOOGLE_D),
        ({"text": 42}, MATHPIX_D),
        ({"text": "", "latex_styled": {"x": 1}}, MATHPIX_D),
        ({"ParsedResults": [None]}, OCR_SPACE_D),
        ({"ParsedResults": [{"ParsedText": 3}]}, OCR_SPACE_D),
        ({"ParsedResults": "text"}, OCR_SPACE_D),
    ],
)
def test_malformed_elements_are_shape_errors(raw, descriptor) -> None:
    with pytest.raises(ResponseShapeError) as excinfo:
        normalize(raw, descriptor)
    assert excinfo.value.provider == descriptor.provider_id


def test_google_non_object_error_is_transport_error() -> None:
    with pytest.raises(TransportError, match="quota"):
        normalize({"responses": [{"error": "quota exceeded"}]}, GOOGLE_D)


def test_google_non_object_bounding_poly_is_ignored() -> None:
    raw = {"responses": [{"textAnnotations": [{"description": "a"}, {"description": "a", "boundingPoly": []}]}]}
    assert normalize(raw, GOOGLE_D).extras["words"] == [{"text": "a", "bounding_box": None}]
