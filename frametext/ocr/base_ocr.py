from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass, field
from typing import Any

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<payload>.+)$", re.DOTALL)


@dataclass(frozen=True)
class OcrRequest:
    """A captured still frame plus the content hint. Single use."""

    image: str  # base64 data URI
    has_math_content: bool = False
    mime_type: str = field(init=False, repr=False)
    base64_payload: str = field(init=False, repr=False)
    image_bytes: bytes = field(init=False, repr=False)

    def __post_init__(self) -> None:
        match = _DATA_URI_RE.match(self.image.strip())
        if not match:
            raise ValueError("image must be a base64 data URI (data:<mime>;base64,...)")
        payload = match.group("payload").strip()
        try:
            decoded = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError("image data URI does not carry valid base64") from exc
        object.__setattr__(self, "mime_type", match.group("mime"))
        object.__setattr__(self, "base64_payload", payload)
        object.__setattr__(self, "image_bytes", decoded)


@dataclass(frozen=True)
class OcrResult:
    text: str
    confidence: float  # 0.0 to 1.0
    provider: str
    extras: dict[str, Any] = field(default_factory=dict)
    # False when the vendor did not report a confidence and the documented default was used
    confidence_reported: bool = True
    fallback_from: str | None = None

    @property
    def formatted(self) -> str:
        from frametext.formatting.text_format import format_text

        return format_text(self.text)
