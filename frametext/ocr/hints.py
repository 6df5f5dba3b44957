from __future__ import annotations

# Words on the surrounding page that suggest the frame shows formulas
MATH_KEYWORDS: tuple[str, ...] = (
    "formula",
    "equation",
    "integral",
    "derivative",
    "公式",
    "方程",
    "积分",
    "导数",
    "∫",
    "∑",
    "∂",
)


def detect_math_content(page_text: str | None) -> bool:
    """Case-insensitive keyword match over the text around the video."""
    if not page_text:
        return False
    lowered = page_text.lower()
    return any(keyword in lowered for keyword in MATH_KEYWORDS)
