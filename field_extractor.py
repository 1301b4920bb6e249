"""Best-effort extraction of inventory fields from free-form text.

Two passes run over the text. The labelled pass looks for ``label: value``
style fragments (``name: Brake Pads``, ``location A-12``), which is how
the chat model answers and how people dictate structured entries. The
phrase pass fills whatever is still missing from command-style sentences
such as ``add 10 brake pads to A-12 at 45.99 each``. Every field has a
default, so ``extract`` always returns a complete record.
"""

from __future__ import annotations

import math
import re
import string
from typing import Dict, Optional

from models import ExtractedFields, InventoryCategory

DEFAULT_NAME = "Unknown Item"
DEFAULT_QUANTITY = 1
DEFAULT_PRICE = 0.0
DEFAULT_CATEGORY = InventoryCategory.OTHER.value

LABEL_PATTERNS: Dict[str, str] = {
    "name": r"name",
    "part_number": r"part[\s_]*(?:number|num|no\.?|#)|partnumber",
    "quantity": r"quantity|qty",
    "location": r"location",
    "price": r"price",
    "category": r"category",
}

_LABEL_RES = {
    field: re.compile(
        rf"(?<!\w)(?:{pattern})(?!\w)[*_]*(?P<sep>\s*[:=]?\s*)[*_]*(?P<value>[^,\n]+)",
        re.IGNORECASE,
    )
    for field, pattern in LABEL_PATTERNS.items()
}

# A spoken value ends where the next clause starts.
_CLAUSE_BREAK_RE = re.compile(r"\s+(?:at|for|priced|costing|each)\b.*$", re.IGNORECASE | re.DOTALL)

_ADD_PHRASE_RE = re.compile(
    r"\b(?:add|new|restock|received|put|store)\b\s+"
    r"(?:(?P<qty>\d+)\s+)?"
    r"(?:(?:new|more)\s+)?"
    r"(?P<name>[a-z][\w'\- ]*?)\s*"
    r"(?=\b(?:to|at|in|into|on|for|from|priced|costing|each|with)\b|[,.;\n]|$)",
    re.IGNORECASE,
)

_PRICE_PHRASE_RE = re.compile(
    r"\$\s*(?P<dollars>\d+(?:\.\d+)?)"
    r"|\b(?:at|for|costing|priced(?:\s+at)?)\s+"
    r"(?P<amount>\d+\.\d+|\d+(?=\s*(?:each|apiece|dollars?|bucks|per)\b))",
    re.IGNORECASE,
)

_LOCATION_PHRASE_RE = re.compile(
    r"\b(?:to|in|into|at|on)\s+(?:(?:the\s+)?(?:bin|shelf|rack|aisle|slot)\s+)?"
    r"(?P<loc>[a-z]{1,3}-?\d+[a-z0-9\-]*)\b",
    re.IGNORECASE,
)

_VALUE_STRIP = " \t*_:=\"'"
_TRAILING_PUNCT = ".;!?"


def extract(text: Optional[str]) -> ExtractedFields:
    """Parse ``text`` into an :class:`ExtractedFields`. Never raises."""
    text = text or ""
    labelled = {field: _find_label(text, field) for field in LABEL_PATTERNS}

    name = labelled["name"]
    quantity: Optional[int] = None
    if labelled["quantity"] is not None:
        quantity = _parse_int(labelled["quantity"])

    phrase = _ADD_PHRASE_RE.search(text)
    if phrase:
        if name is None and phrase.group("name").strip():
            name = string.capwords(phrase.group("name").strip())
        if labelled["quantity"] is None and phrase.group("qty"):
            quantity = _parse_int(phrase.group("qty"))

    price: Optional[float] = None
    if labelled["price"] is not None:
        price = _parse_float(labelled["price"])
    else:
        match = _PRICE_PHRASE_RE.search(text)
        if match:
            price = _parse_float(match.group("dollars") or match.group("amount"))

    location = labelled["location"]
    if location is None:
        match = _LOCATION_PHRASE_RE.search(text)
        if match:
            location = match.group("loc").upper()

    category = labelled["category"]

    return ExtractedFields(
        name=name or DEFAULT_NAME,
        part_number=labelled["part_number"] or "",
        quantity=DEFAULT_QUANTITY if quantity is None else quantity,
        location=location or "",
        price=DEFAULT_PRICE if price is None else price,
        category=category.lower() if category else DEFAULT_CATEGORY,
    )


def _find_label(text: str, field: str) -> Optional[str]:
    match = _LABEL_RES[field].search(text)
    if not match:
        return None
    value = match.group("value")
    sep = match.group("sep")
    if ":" not in sep and "=" not in sep:
        value = _CLAUSE_BREAK_RE.sub("", value)
    value = value.strip(_VALUE_STRIP).rstrip(_TRAILING_PUNCT).strip(_VALUE_STRIP)
    return value or None


def _parse_int(value: str) -> Optional[int]:
    token = value.split()[0] if value.split() else ""
    try:
        return int(token)
    except ValueError:
        return None


def _parse_float(value: str) -> Optional[float]:
    token = value.split()[0] if value.split() else ""
    token = token.lstrip("$€£")
    try:
        number = float(token)
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return number
