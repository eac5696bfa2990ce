from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from schemas.items import ItemRead


class SemanticSearchRequest(BaseModel):
    query: str = Field(min_length=1, max_length=500)
    limit: int = Field(default=10, ge=1, le=50)
    threshold: float = Field(default=0.7, ge=0, le=1)
    event_id: Optional[UUID] = None


class SemanticResult(ItemRead):
    similarity: float


class SemanticSearchResponse(BaseModel):
    results: List[SemanticResult]
    query: str
    count: int


class EmbeddingGenerated(BaseModel):
    success: bool
    item_id: UUID
    message: str


class BatchEmbeddingsRequest(BaseModel):
    event_id: UUID
    limit: int = Field(default=100, ge=1, le=1000)


class BatchEmbeddingsResult(BaseModel):
    success: bool
    processed: int
    message: str


class AutoCategorizeRequest(BaseModel):
    name: str = Field(max_length=255)
    description: Optional[str] = Field(default=None, max_length=2000)


class AutoCategorizeResponse(BaseModel):
    category: Optional[str] = None
    confidence: float
    reasoning: str


class ParseQueryRequest(BaseModel):
    query: str = Field(min_length=1, max_length=500)


class QueryTokenRead(BaseModel):
    type: str
    value: str
    label: str


class ParseQueryResponse(BaseModel):
    search_term: Optional[str] = None
    category: Optional[str] = None
    status: Optional[str] = None
    location: Optional[str] = None
    is_alcohol: Optional[bool] = None
    is_perishable: Optional[bool] = None
    tokens: List[QueryTokenRead] = []


class AIHealth(BaseModel):
    status: str
    message: str
