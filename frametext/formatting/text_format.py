"""Deterministic post-processing of recognized text.

``format_text`` runs five rewrite steps in a fixed order:

1. LaTeX-style commands (``\\int``, ``\\sum``, Greek letters ...) to glyphs
2. plain-digit chemical formulas to subscripted forms (``H2O`` -> ``H₂O``)
3. ``^<digits>`` / ``_<digits>`` to Unicode super/subscripts
4. CJK punctuation to ASCII, plus a few OCR misread fixes
5. whitespace cleanup

Every step is a total function over ``str``; the pipeline never raises.
The raw text of an ``OcrResult`` is left untouched, callers keep both.
"""
from __future__ import annotations

import re
from typing import Callable, Union

Replacement = Union[str, Callable[[re.Match], str]]
Rule = tuple[re.Pattern, Replacement]


def _literal_rules(table: list[tuple[str, str]]) -> tuple[Rule, ...]:
    return tuple((re.compile(re.escape(src)), dst) for src, dst in table)


# ---------------------------------------------------------------------------
# 1. Symbols
# ---------------------------------------------------------------------------

SYMBOL_RULES: tuple[Rule, ...] = _literal_rules([
    ("\\int", "∫"),
    ("\\sum", "∑"),
    ("\\prod", "∏"),
    ("\\sqrt", "√"),
    ("\\infty", "∞"),
    ("\\alpha", "α"),
    ("\\beta", "β"),
    ("\\gamma", "γ"),
    ("\\delta", "δ"),
    ("\\theta", "θ"),
    ("\\lambda", "λ"),
    ("\\mu", "μ"),
    ("\\pi", "π"),
    ("\\sigma", "σ"),
    ("\\phi", "φ"),
    ("\\omega", "ω"),
])

# ---------------------------------------------------------------------------
# 2. Chemical formulas (longer formulas first: "CO2" before "O2")
# ---------------------------------------------------------------------------

CHEMICAL_RULES: tuple[Rule, ...] = _literal_rules([
    ("H2O", "H₂O"),
    ("CO2", "CO₂"),
    ("SO2", "SO₂"),
    ("NO2", "NO₂"),
    ("NH3", "NH₃"),
    ("CH4", "CH₄"),
    ("O2", "O₂"),
    ("N2", "N₂"),
])

# ---------------------------------------------------------------------------
# 3. Super/subscripts
# ---------------------------------------------------------------------------

_SUPERSCRIPTS = str.maketrans("0123456789-+", "⁰¹²³⁴⁵⁶⁷⁸⁹⁻⁺")
_SUBSCRIPTS = str.maketrans("0123456789-+", "₀₁₂₃₄₅₆₇₈₉₋₊")

SCRIPT_RULES: tuple[Rule, ...] = (
    (re.compile(r"\^([-+]?\d+)"), lambda m: m.group(1).translate(_SUPERSCRIPTS)),
    (re.compile(r"_([-+]?\d+)"), lambda m: m.group(1).translate(_SUBSCRIPTS)),
)

# ---------------------------------------------------------------------------
# 4. Punctuation
# ---------------------------------------------------------------------------

PUNCTUATION_RULES: tuple[Rule, ...] = _literal_rules([
    ("，", ","),
    ("。", "."),
    ("；", ";"),
    ("：", ":"),
    ("？", "?"),
    ("！", "!"),
    ("（", "("),
    ("）", ")"),
]) + (
    # A stray "l" glued to a bracket or digit, not the start of a word
    (re.compile(r"([\[\]()])l(?![A-Za-z])"), r"\1"),
    (re.compile(r"(?<=1)l(?![A-Za-z])"), "1"),
    (re.compile(r"(?<=0)l(?![A-Za-z])"), "0"),
)

# ---------------------------------------------------------------------------
# 5. Whitespace
# ---------------------------------------------------------------------------

WHITESPACE_RULES: tuple[Rule, ...] = (
    (re.compile(r"\n[ \t]*\n(?:[ \t]*\n)+"), "\n\n"),
    (re.compile(r"^[ \t]+|[ \t]+$", re.MULTILINE), ""),
    (re.compile(r" {2,}"), " "),
)

PIPELINE: tuple[tuple[str, tuple[Rule, ...]], ...] = (
    ("symbols", SYMBOL_RULES),
    ("chemical", CHEMICAL_RULES),
    ("scripts", SCRIPT_RULES),
    ("punctuation", PUNCTUATION_RULES),
    ("whitespace", WHITESPACE_RULES),
)


def apply_rules(text: str, rules: tuple[Rule, ...]) -> str:
    for pattern, replacement in rules:
        text = pattern.sub(replacement, text)
    return text


def format_text(raw: str | None) -> str:
    if not raw:
        return ""
    text = raw.replace("\r\n", "\n")
    for _, rules in PIPELINE:
        text = apply_rules(text, rules)
    return text.strip()
