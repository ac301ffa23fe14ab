from __future__ import annotations

import re
from typing import List, Pattern

PRICING_DISCLOSURE_REFUSAL = (
    "I'm sorry, but our unit rates and the way individual amounts are calculated are confidential. "
    "I can share the estimated total and the cost categories it covers."
)

_PRICE_NOUN = r"(?:price|prices|cost|costs|quote|quotes|estimate|estimates|total|amount|fare|fee|fees|figure|number)"

_PATTERNS: List[Pattern[str]] = [
    # "how's the price calculated", "explain how you got this quote"
    re.compile(r"\bhow(?:'s|’s)?\s+(?:[\w'’-]+\s+){0,5}?(?:calculated|computed|derived|worked\s+out|determined)\b", re.IGNORECASE),
    re.compile(r"\bhow\s+(?:do|did|would)\s+you\s+(?:calculate|compute|price|work\s+out|derive)", re.IGNORECASE),
    re.compile(r"\bhow\s+(?:do|did)\s+you\s+(?:arrive\s+at|come\s+up\s+with|get\s+to|reach)\b", re.IGNORECASE),
    re.compile(rf"\bexplain\s+(?:to\s+me\s+)?how\s+(?!to\b)(?:[\w'’-]+\s+){{0,4}}?{_PRICE_NOUN}\b", re.IGNORECASE),
    re.compile(rf"\bbreak\s*down\s+(?:of\s+)?how\s+(?:[\w'’-]+\s+){{0,4}}?{_PRICE_NOUN}\b", re.IGNORECASE),
    re.compile(r"\b(?:unit|base)\s+(?:price|rate)s?\b", re.IGNORECASE),
    re.compile(r"\brate\s+(?:table|card|sheet)\b", re.IGNORECASE),
    re.compile(r"\b(?:pricing|price|cost|calculation)\s+(?:formula|formulas|logic|model)\b", re.IGNORECASE),
    re.compile(r"\b(?:show|reveal|tell)\s+me\s+(?:the\s+)?(?:formula|formulas|calculation)\b", re.IGNORECASE),
    re.compile(r"per[\s-]?(?:km|kilometer|kilometre)\s+(?:rate|price|charge)", re.IGNORECASE),
    re.compile(r"단가"),
    re.compile(r"계산\s*식"),
    re.compile(r"산출\s*(?:근거|방식|방법)"),
    re.compile(r"어떻게\s*계산"),
]


def requests_pricing_internals(message: str) -> bool:
    text = message or ""
    return any(pattern.search(text) for pattern in _PATTERNS)
