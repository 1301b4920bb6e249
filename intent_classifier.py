"""Keyword intent classification and inventory relevance filtering."""

from __future__ import annotations

from typing import Iterable, List, Sequence, Tuple

from field_extractor import extract
from models import Intent, IntentResult, InventoryItem, SuggestedAction

MAX_RELEVANT_ITEMS = 5

# Evaluated top to bottom; the first rule with a matching keyword wins.
INTENT_RULES: Tuple[Tuple[Intent, Tuple[str, ...]], ...] = (
    (Intent.SEARCH, ("search", "find", "show")),
    (Intent.ADD, ("add", "new")),
    (Intent.UPDATE, ("update", "change")),
    (Intent.DELETE, ("delete", "remove")),
    (Intent.CHECK_STOCK, ("stock", "quantity", "how many")),
)


def classify(transcript: str) -> Intent:
    lowered = transcript.lower()
    for intent, keywords in INTENT_RULES:
        if any(keyword in lowered for keyword in keywords):
            return intent
    return Intent.GENERAL_QUERY


def relevant_items(
    transcript: str,
    inventory: Iterable[InventoryItem],
    limit: int = MAX_RELEVANT_ITEMS,
) -> List[InventoryItem]:
    """Items whose name, part number or category contains any spoken word.

    Inventory order is preserved and the result is cut to ``limit``.
    """
    tokens = transcript.lower().split()
    if not tokens or limit <= 0:
        return []
    matches: List[InventoryItem] = []
    for item in inventory:
        haystacks = (item.name.lower(), item.part_number.lower(), item.category.lower())
        if any(token in hay for token in tokens for hay in haystacks):
            matches.append(item)
            if len(matches) >= limit:
                break
    return matches


def build_intent_result(
    transcript: str,
    inventory: Sequence[InventoryItem],
    response_text: str = "",
) -> IntentResult:
    intent = classify(transcript)
    action = None
    if intent == Intent.ADD:
        item = extract(transcript).to_item()
        action = SuggestedAction(
            type=Intent.ADD.value,
            parameters={
                "name": item.name,
                "part_number": item.part_number,
                "quantity": item.quantity,
                "location": item.location,
                "price": item.price,
                "category": item.category,
            },
        )
    return IntentResult(
        intent=intent,
        transcript=transcript,
        relevant_items=tuple(relevant_items(transcript, inventory)),
        response_text=response_text,
        suggested_action=action,
    )
