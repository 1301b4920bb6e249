"""Chat-model backend built on DashScope text generation."""

from __future__ import annotations

import logging
import os
from http import HTTPStatus
from typing import Iterator, Optional, Sequence

from errors import AIBackendError
from field_extractor import extract
from intent_classifier import build_intent_result
from models import ExtractedFields, IntentResult, InventoryItem

try:
    import dashscope
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore

logger = logging.getLogger(__name__)

CONTEXT_ITEM_LIMIT = 10
FALLBACK_REPLY = "I couldn't process that command."

COMMAND_PROMPT = """You are an AI assistant for a motorparts inventory management system.

Current Inventory Summary:
{inventory}

User Command: "{command}"

Analyze the user's command and provide:
1. The intent (search, add, update, delete, check_stock, general_query)
2. Relevant items from inventory (if applicable)
3. A natural language response
4. Suggested actions (if any)

Respond in a concise, helpful manner focused on inventory management."""

ITEM_PROMPT = """Extract inventory item details from this natural language description:
"{description}"

Return one field per line in the form "field: value" with:
- name: (item name)
- partNumber: (if mentioned)
- quantity: (if mentioned, default to 1)
- location: (if mentioned)
- price: (if mentioned)
- category: (engine, brake, suspension, electrical, transmission, body, accessories, fluids, other)

Example: "Add 10 brake pads to location A-12 at $45.99 each"
Should extract: name: Brake Pads, quantity: 10, location: A-12, price: 45.99, category: brake"""

INSIGHTS_PROMPT = """Analyze this motorparts inventory and provide insights:

Total Items: {total}
Low Stock Items ({low_count}): {low_names}
Out of Stock ({out_count}): {out_names}

Provide:
1. Key observations
2. Recommendations for restocking
3. Inventory health assessment"""


def build_inventory_context(inventory: Sequence[InventoryItem], limit: int = CONTEXT_ITEM_LIMIT) -> str:
    lines = [
        f"{item.name} ({item.part_number}): {item.quantity} in stock at {item.location}"
        for item in inventory[:limit]
    ]
    context = "\n".join(lines)
    if len(inventory) > limit:
        context += f"\n...and {len(inventory) - limit} more items"
    return context


def build_insights_prompt(inventory: Sequence[InventoryItem]) -> str:
    low = [item for item in inventory if item.is_low_stock]
    out = [item for item in inventory if item.is_out_of_stock]
    return INSIGHTS_PROMPT.format(
        total=len(inventory),
        low_count=len(low),
        low_names=", ".join(item.name for item in low),
        out_count=len(out),
        out_names=", ".join(item.name for item in out),
    )


class DashscopeAIBackend:
    def __init__(
        self,
        api_key: str,
        model: str = "qwen-plus",
        request_timeout_s: float = 30.0,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._request_timeout_s = request_timeout_s

    def classify_and_respond(
        self,
        transcript: str,
        inventory: Sequence[InventoryItem],
    ) -> IntentResult:
        prompt = COMMAND_PROMPT.format(
            inventory=build_inventory_context(inventory),
            command=transcript,
        )
        reply = self._complete(prompt) or FALLBACK_REPLY
        return build_intent_result(transcript, inventory, response_text=reply)

    def parse_item(self, description: str) -> ExtractedFields:
        reply = self._complete(ITEM_PROMPT.format(description=description))
        return extract(reply)

    def stream_insights(self, inventory: Sequence[InventoryItem]) -> Iterator[str]:
        responses = self._call(build_insights_prompt(inventory), stream=True)
        try:
            for chunk in responses:
                self._check_status(chunk)
                yield _message_text(chunk)
        except AIBackendError:
            raise
        except Exception as exc:
            raise AIBackendError(str(exc)) from exc

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _complete(self, prompt: str) -> str:
        response = self._call(prompt, stream=False)
        self._check_status(response)
        return _message_text(response)

    def _call(self, prompt: str, stream: bool) -> object:
        if dashscope is None:
            raise AIBackendError("dashscope is not installed")
        api_key = self._api_key or os.getenv("DASHSCOPE_API_KEY", "")
        if not api_key:
            raise AIBackendError("No API key configured")
        kwargs = {}
        if stream:
            kwargs = {"stream": True, "incremental_output": True}
        try:
            return dashscope.Generation.call(
                api_key=api_key,
                model=self._model,
                messages=[{"role": "user", "content": prompt}],
                result_format="message",
                timeout=self._request_timeout_s,
                **kwargs,
            )
        except Exception as exc:
            logger.warning("chat request failed: %s", exc)
            raise AIBackendError(str(exc)) from exc

    def _check_status(self, response: object) -> None:
        status = _get(response, "status_code")
        if status is not None and status != HTTPStatus.OK:
            message = _get(response, "message") or _get(response, "code") or f"HTTP {status}"
            logger.warning("chat model returned %s: %s", status, message)
            raise AIBackendError(str(message))


def _get(obj: object, key: str) -> Optional[object]:
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def _message_text(response: object) -> str:
    output = _get(response, "output") or {}
    choices = _get(output, "choices") or []
    if choices:
        message = _get(choices[0], "message") or {}
        content = _get(message, "content")
        if isinstance(content, str):
            return content
        if isinstance(content, list) and content and isinstance(content[0], dict):
            return str(content[0].get("text", ""))
        return ""
    text = _get(output, "text")
    return str(text) if text else ""
