"""
Category suggestions for new items.

Wraps AIService.categorize_item with:
- a minimum-detail gate (short names/descriptions never reach the model)
- a bounded in-process cache keyed by normalised name|description
- confidence clamping to [0, 1]
- user-facing messages for rate limited responses
"""

import logging
import math
from collections import OrderedDict
from dataclasses import dataclass
from typing import Optional, Union

logger = logging.getLogger(__name__)

MIN_NAME_LENGTH = 3
MIN_DESCRIPTION_LENGTH = 5
CACHE_MAX_ENTRIES = 512

NOT_ENOUGH_DETAIL = "Not enough detail to suggest a category"
GENERIC_ERROR_MESSAGE = "Unable to fetch category suggestions right now."


@dataclass(frozen=True)
class CategorySuggestion:
    category: Optional[str]
    confidence: float
    reasoning: str


def cache_key(name: str, description: Optional[str]) -> str:
    return f"{(name or '').strip().lower()}|{(description or '').strip().lower()}"


def has_enough_detail(name: str, description: Optional[str]) -> bool:
    return len((name or "").strip()) >= MIN_NAME_LENGTH or len((description or "").strip()) >= MIN_DESCRIPTION_LENGTH


def clamp_confidence(value) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(v):
        return 0.0
    return max(0.0, min(1.0, v))


def format_rate_limit_message(retry_after: Union[int, float, str, None]) -> str:
    """Cool-down message for a 429 from the AI provider."""
    if retry_after is None or retry_after == "":
        return "Too many AI requests. Please wait a moment and try again."
    seconds: Optional[float] = None
    if isinstance(retry_after, (int, float)):
        seconds = float(retry_after)
    else:
        try:
            seconds = float(str(retry_after).strip())
        except ValueError:
            return f"AI suggestions paused. Try again after {retry_after}."
    minutes = max(1, math.ceil(seconds / 60))
    if minutes > 1:
        return f"AI suggestions are cooling down. Try again in about {minutes} minutes."
    return "AI suggestions are cooling down. Try again in about a minute."


class CategorySuggestionCache:
    def __init__(self, max_entries: int = CACHE_MAX_ENTRIES):
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, CategorySuggestion]" = OrderedDict()

    def get(self, key: str) -> Optional[CategorySuggestion]:
        hit = self._entries.get(key)
        if hit is not None:
            self._entries.move_to_end(key)
        return hit

    def put(self, key: str, value: CategorySuggestion) -> None:
        self._entries[key] = value
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


suggestion_cache = CategorySuggestionCache()


async def suggest_category(ai_service, name: str, description: Optional[str] = None,
                           cache: CategorySuggestionCache = suggestion_cache) -> CategorySuggestion:
    if not has_enough_detail(name, description):
        return CategorySuggestion(category=None, confidence=0.0, reasoning=NOT_ENOUGH_DETAIL)

    key = cache_key(name, description)
    cached = cache.get(key)
    if cached is not None:
        return cached

    result = await ai_service.categorize_item(name.strip(), (description or "").strip() or None)
    suggestion = CategorySuggestion(
        category=result.get("category") or "OTHER",
        confidence=clamp_confidence(result.get("confidence")),
        reasoning=result.get("reasoning") or "No reasoning provided",
    )
    # failed categorisations are not cached so the next keystroke can retry
    if suggestion.reasoning != "Failed to categorize":
        cache.put(key, suggestion)
    else:
        logger.info(f"Not caching failed category suggestion for {key!r}")
    return suggestion
