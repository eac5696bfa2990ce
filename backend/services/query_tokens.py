from dataclasses import asdict, dataclass
from typing import List

from services.labels import enum_label


@dataclass(frozen=True)
class QueryToken:
    type: str  # 'category' | 'status' | 'location' | 'keyword'
    value: str
    label: str


def build_query_tokens(parsed: dict) -> List[QueryToken]:
    """Turn a parsed natural-language query into display chips."""
    tokens: List[QueryToken] = []

    category = parsed.get("category")
    if category:
        tokens.append(QueryToken("category", category, enum_label(category)))

    status = parsed.get("status")
    if status:
        tokens.append(QueryToken("status", status, enum_label(status)))

    location = parsed.get("location")
    if location:
        tokens.append(QueryToken("location", location, location))

    term = (parsed.get("search_term") or "").strip()
    if term:
        tokens.append(QueryToken("keyword", term, term))

    if parsed.get("is_alcohol") is True:
        tokens.append(QueryToken("keyword", "alcoholic", "Alcoholic"))
    elif parsed.get("is_alcohol") is False:
        tokens.append(QueryToken("keyword", "non-alcoholic", "Non-alcoholic"))

    if parsed.get("is_perishable") is True:
        tokens.append(QueryToken("keyword", "perishable", "Perishable"))
    elif parsed.get("is_perishable") is False:
        tokens.append(QueryToken("keyword", "non-perishable", "Non-perishable"))

    return tokens


def tokens_as_dicts(tokens: List[QueryToken]) -> List[dict]:
    return [asdict(t) for t in tokens]
