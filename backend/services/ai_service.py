"""
OpenAI-backed helpers: item embeddings, category suggestions and natural-language query parsing.

Embeddings feed the items.vector_desc column (pgvector); the chat helpers degrade to safe
fallbacks when the model call or its JSON fails, except for rate limiting which callers
need to surface as 429.
"""

import json
import logging
from typing import Any, List, Optional, Sequence

import openai
from openai import AsyncOpenAI

from core.config import settings

logger = logging.getLogger(__name__)

CATEGORIES = ("FURNITURE", "AV_EQUIPMENT", "DECOR", "SUPPLIES", "FOOD_BEVERAGE", "OTHER")

CATEGORIZE_SYSTEM_PROMPT = "You are an inventory categorization expert. Always respond with valid JSON."

CATEGORIZE_PROMPT = """Categorize this inventory item into ONE of these categories:
- FURNITURE (chairs, tables, desks, etc.)
- AV_EQUIPMENT (audio/visual equipment, microphones, projectors, speakers, etc.)
- DECOR (decorations, plants, artwork, etc.)
- SUPPLIES (general supplies, materials, consumables, etc.)
- FOOD_BEVERAGE (food, drinks, catering items, etc.)
- OTHER (anything that doesn't fit above)

Item Name: {name}
{description_line}

Respond in JSON format with: category, confidence (0-1), reasoning"""

PARSE_QUERY_SYSTEM_PROMPT = """You are a search query parser. Convert natural language queries into structured search parameters.

Available fields:
- searchTerm: the main search keywords (string)
- category: FURNITURE, AV_EQUIPMENT, DECOR, SUPPLIES, FOOD_BEVERAGE, OTHER
- status: AVAILABLE, RESERVED, OUT_OF_STOCK, MAINTENANCE, DAMAGED, RETIRED
- location: storage location (string)
- isAlcohol: true/false for alcoholic beverages
- isPerishable: true/false for perishable items

Important rules:
- ONLY include fields that are explicitly mentioned or clearly implied in the query
- For "non-alcoholic", "no alcohol", "alcohol-free" -> set isAlcohol: false
- For "alcoholic", "with alcohol", "beer", "wine", "spirits" -> set isAlcohol: true
- For "perishable" or "needs refrigeration" -> set isPerishable: true
- For "non-perishable" or "shelf-stable" -> set isPerishable: false
- Extract the semantic search term (what the user is looking for), NOT negations or filters
- DO NOT include category, status, location unless explicitly mentioned
- DO NOT make assumptions - only extract what's clearly stated

Examples:
- "list all non alcohol" -> {"searchTerm": "beverages", "isAlcohol": false}
- "find beer" -> {"searchTerm": "beer", "isAlcohol": true}
- "available chairs" -> {"searchTerm": "chairs", "status": "AVAILABLE", "category": "FURNITURE"}
- "water" -> {"searchTerm": "water"}

Return JSON with only the relevant extracted parameters."""

# model JSON keys -> API field names
_PARSED_FIELDS = {
    "searchTerm": "search_term",
    "category": "category",
    "status": "status",
    "location": "location",
    "isAlcohol": "is_alcohol",
    "isPerishable": "is_perishable",
}


class AIServiceError(Exception):
    pass


class AIConfigurationError(AIServiceError):
    pass


def build_item_text(item: Any) -> str:
    """Text that gets embedded for an item: name, description and category/alcohol/perishable hints."""
    parts = [item.name]
    if item.description:
        parts.append(item.description)
    parts.append(f"Category: {(item.category or '').lower().replace('_', ' ', 1)}")
    if item.is_alcohol:
        parts.append("alcoholic beverage contains alcohol")
    else:
        parts.append("non-alcoholic beverage no alcohol alcohol-free")
    if item.is_perishable:
        parts.append("perishable requires refrigeration")
    else:
        parts.append("non-perishable shelf-stable")
    return " ".join(parts)


def _coerce_bool(value):
    if value == "true":
        return True
    if value == "false":
        return False
    return value


class AIService:
    def __init__(self, client: Optional[AsyncOpenAI] = None):
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            if not settings.openai_api_key:
                raise AIConfigurationError("OPENAI_API_KEY environment variable is not set")
            self._client = AsyncOpenAI(
                api_key=settings.openai_api_key,
                timeout=settings.openai_timeout_seconds,
                max_retries=settings.openai_max_retries,
            )
        return self._client

    async def generate_embedding(self, text: str) -> List[float]:
        try:
            response = await self.client.embeddings.create(
                model=settings.openai_embedding_model,
                input=text,
                dimensions=settings.embedding_dimensions,
            )
        except openai.OpenAIError as e:
            logger.exception("Error generating embedding")
            raise AIServiceError("Failed to generate embedding") from e
        return list(response.data[0].embedding)

    async def generate_item_embedding(self, item: Any) -> List[float]:
        return await self.generate_embedding(build_item_text(item))

    async def generate_batch_embeddings(self, items: Sequence[Any]) -> List[List[float]]:
        if not items:
            return []
        try:
            response = await self.client.embeddings.create(
                model=settings.openai_embedding_model,
                input=[build_item_text(i) for i in items],
                dimensions=settings.embedding_dimensions,
            )
        except openai.OpenAIError as e:
            logger.exception("Error generating batch embeddings")
            raise AIServiceError("Failed to generate batch embeddings") from e
        ordered = sorted(response.data, key=lambda d: d.index)
        return [list(d.embedding) for d in ordered]

    async def _chat_json(self, messages: list, temperature: float) -> dict:
        response = await self.client.chat.completions.create(
            model=settings.openai_chat_model,
            messages=messages,
            response_format={"type": "json_object"},
            temperature=temperature,
        )
        content = response.choices[0].message.content or "{}"
        data = json.loads(content)
        if not isinstance(data, dict):
            raise ValueError("model did not return a JSON object")
        return data

    async def categorize_item(self, name: str, description: Optional[str] = None) -> dict:
        prompt = CATEGORIZE_PROMPT.format(
            name=name,
            description_line=f"Description: {description}" if description else "",
        )
        try:
            result = await self._chat_json(
                [
                    {"role": "system", "content": CATEGORIZE_SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=0.3,
            )
        except openai.RateLimitError:
            raise
        except (openai.OpenAIError, AIConfigurationError, ValueError) as e:
            logger.warning(f"Categorization failed for {name!r}: {e}")
            return {"category": "OTHER", "confidence": 0, "reasoning": "Failed to categorize"}

        category = str(result.get("category") or "OTHER").upper()
        if category not in CATEGORIES:
            category = "OTHER"
        return {
            "category": category,
            "confidence": result.get("confidence") or 0,
            "reasoning": result.get("reasoning") or "No reasoning provided",
        }

    async def parse_search_query(self, query: str) -> dict:
        try:
            raw = await self._chat_json(
                [
                    {"role": "system", "content": PARSE_QUERY_SYSTEM_PROMPT},
                    {"role": "user", "content": query},
                ],
                temperature=0.2,
            )
        except (openai.OpenAIError, AIConfigurationError, ValueError) as e:
            logger.warning(f"Query parsing failed for {query!r}: {e}")
            return {"search_term": query}

        parsed = {}
        for src, dst in _PARSED_FIELDS.items():
            if raw.get(src) is not None:
                parsed[dst] = raw[src]
        for flag in ("is_alcohol", "is_perishable"):
            if flag in parsed:
                parsed[flag] = _coerce_bool(parsed[flag])
        return parsed

    async def health_check(self) -> dict:
        if not settings.openai_api_key and self._client is None:
            return {"status": "error", "message": "OpenAI API key not configured"}
        try:
            await self.generate_embedding("test")
        except AIServiceError as e:
            return {"status": "error", "message": str(e.__cause__ or e)}
        return {"status": "ok", "message": "OpenAI API is working"}


ai_service = AIService()


def get_ai_service() -> AIService:
    return ai_service
