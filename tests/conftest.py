"""Shared pytest configuration and fixtures for the OCR provider layer tests."""
from __future__ import annotations

import base64
import os

import pytest

# Provide env defaults before any frametext module is imported
os.environ.setdefault("POLL_INTERVAL_SECONDS", "0")
os.environ.setdefault("POLL_MAX_ATTEMPTS", "3")
os.environ.setdefault("FALLBACK_API_KEY", "helloworld")

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-frame"
IMAGE_DATA_URI = "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode()


@pytest.fixture
def image_data_uri() -> str:
    return IMAGE_DATA_URI


@pytest.fixture
def ocr_request():
    from frametext.ocr.base_ocr import OcrRequest

    return OcrRequest(image=IMAGE_DATA_URI)


@pytest.fixture
def png_bytes() -> bytes:
    return PNG_BYTES
