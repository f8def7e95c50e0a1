"""Title normalisation for TITLE_INITIAL hard-confirm questions."""

from __future__ import annotations

import re
import unicodedata

TITLE_INITIAL_LENGTH = 3
UNKNOWN_INITIAL = "?"

_LEADING_SPACE = re.compile(r"^[\s　\t]+")

_BRACKET_PREFIXES = [
    re.compile(p)
    for p in (
        r"^【[^】]*】",
        r"^\([^)]*\)",
        r"^\[[^\]]*\]",
        r"^\{[^}]*\}",
        r"^＜[^＞]*＞",
        r"^<[^>]*>",
        r"^「[^」]*」",
        r"^『[^』]*』",
        r"^（[^）]*）",
        r"^［[^］]*］",
        r"^｛[^｝]*｝",
    )
]

_SYMBOL_PREFIXES = [
    re.compile(r"^[!\"#$%&'()*+,\-./:;<=>?@\[\\\]^_`{|}~]"),
    re.compile(r"^[！＂＃＄％＆＇（）＊＋，－．／：；＜＝＞？＠［＼］＾＿｀｛｜｝～]"),
    re.compile(r"^[★☆◆◇■□・…〜ー—–]"),
]


def _strip_prefixes(text: str, patterns: list[re.Pattern[str]], max_rounds: int) -> str:
    for _ in range(max_rounds):
        for pattern in patterns:
            stripped = pattern.sub("", text, count=1)
            if stripped != text:
                text = _LEADING_SPACE.sub("", stripped)
                break
        else:
            break
    return text


def normalize_title_for_initial(title: str | None) -> str:
    """First three characters of a title, after dropping decorations.

    NFKC-normalises, strips up to three leading bracketed tags (``【…】``,
    ``[…]`` and friends) and up to ten leading symbols.  Returns ``"?"``
    if nothing is left.
    """
    if not isinstance(title, str):
        return UNKNOWN_INITIAL

    normalized = unicodedata.normalize("NFKC", title)
    normalized = _strip_prefixes(normalized, _BRACKET_PREFIXES, 3)
    normalized = _strip_prefixes(normalized, _SYMBOL_PREFIXES, 10)

    trimmed = normalized.strip()
    if not trimmed:
        return UNKNOWN_INITIAL
    return trimmed[:TITLE_INITIAL_LENGTH]
