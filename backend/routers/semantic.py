import logging
from uuid import UUID

import openai
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import AuthUser, get_current_user
from core.config import settings
from core.event_access import check_event_role, get_member_role
from core.permissions import EventRole
from core.rate_limit import get_user_or_ip, limiter
from db.database import get_async_session, EventMember as EventMemberModel, Item as ItemModel
from schemas.items import ItemRead
from schemas.semantic import (
    AIHealth,
    AutoCategorizeRequest,
    AutoCategorizeResponse,
    BatchEmbeddingsRequest,
    BatchEmbeddingsResult,
    EmbeddingGenerated,
    ParseQueryRequest,
    ParseQueryResponse,
    QueryTokenRead,
    SemanticResult,
    SemanticSearchRequest,
    SemanticSearchResponse,
)
from services.ai_service import AIConfigurationError, AIService, AIServiceError, get_ai_service
from services.auto_category import GENERIC_ERROR_MESSAGE, format_rate_limit_message, suggest_category
from services.query_tokens import build_query_tokens, tokens_as_dicts
from services.semantic_search import items_missing_embeddings, search_similar_items

logger = logging.getLogger(__name__)

router = APIRouter()


def _ai_unavailable(e: Exception) -> HTTPException:
    if isinstance(e, AIConfigurationError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))


def _retry_after(e: openai.RateLimitError):
    response = getattr(e, "response", None)
    if response is None:
        return None
    return response.headers.get("retry-after")


@router.get("/ai/health", response_model=AIHealth)
async def ai_health(
    user: AuthUser = Depends(get_current_user),
    ai: AIService = Depends(get_ai_service),
):
    result = await ai.health_check()
    if result.get("status") != "ok":
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=result)
    return AIHealth(**result)


@router.post("/items/semantic-search", response_model=SemanticSearchResponse)
async def semantic_search(
    payload: SemanticSearchRequest,
    db: AsyncSession = Depends(get_async_session),
    user: AuthUser = Depends(get_current_user),
    ai: AIService = Depends(get_ai_service),
):
    if payload.event_id:
        if not await get_member_role(db, payload.event_id, user.id):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You do not have access to this event")
        event_ids = [payload.event_id]
    else:
        res = await db.execute(select(EventMemberModel.event_id).where(EventMemberModel.user_id == user.id))
        event_ids = list(res.scalars().all())

    try:
        embedding = await ai.generate_embedding(payload.query)
    except (AIServiceError, AIConfigurationError) as e:
        raise _ai_unavailable(e)

    matches = await search_similar_items(db, embedding, event_ids, payload.limit, payload.threshold)
    results = [
        SemanticResult(**ItemRead.model_validate(item).model_dump(), similarity=round(similarity, 4))
        for item, similarity in matches
    ]
    logger.info(f"Semantic search {payload.query!r} returned {len(results)} result(s)")
    return SemanticSearchResponse(results=results, query=payload.query, count=len(results))


@router.post("/items/batch-generate-embeddings", response_model=BatchEmbeddingsResult)
async def batch_generate_embeddings(
    payload: BatchEmbeddingsRequest,
    db: AsyncSession = Depends(get_async_session),
    user: AuthUser = Depends(get_current_user),
    ai: AIService = Depends(get_ai_service),
):
    await check_event_role(
        db,
        payload.event_id,
        user,
        EventRole.EDITOR,
        role_detail="Only editors, admins, and owners can modify items",
    )

    items = await items_missing_embeddings(db, payload.event_id, payload.limit)
    if not items:
        return BatchEmbeddingsResult(success=True, processed=0, message="No items need embeddings")

    try:
        embeddings = await ai.generate_batch_embeddings(items)
    except (AIServiceError, AIConfigurationError) as e:
        raise _ai_unavailable(e)

    for item, embedding in zip(items, embeddings):
        item.vector_desc = embedding
    await db.commit()
    logger.info(f"Generated {len(items)} embedding(s) for event {payload.event_id}")
    return BatchEmbeddingsResult(
        success=True,
        processed=len(items),
        message=f"Generated embeddings for {len(items)} items",
    )


@router.post("/items/auto-categorize", response_model=AutoCategorizeResponse)
@limiter.limit(settings.ai_rate_limit, key_func=get_user_or_ip)
async def auto_categorize(
    request: Request,
    payload: AutoCategorizeRequest,
    user: AuthUser = Depends(get_current_user),
    ai: AIService = Depends(get_ai_service),
):
    try:
        suggestion = await suggest_category(ai, payload.name, payload.description)
    except openai.RateLimitError as e:
        logger.warning(f"AI provider rate limited category suggestion for {user.id}")
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=format_rate_limit_message(_retry_after(e)),
        )
    except openai.OpenAIError:
        logger.exception("Category suggestion failed")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=GENERIC_ERROR_MESSAGE)

    return AutoCategorizeResponse(
        category=suggestion.category,
        confidence=suggestion.confidence,
        reasoning=suggestion.reasoning,
    )


@router.post("/items/parse-query", response_model=ParseQueryResponse)
async def parse_query(
    payload: ParseQueryRequest,
    user: AuthUser = Depends(get_current_user),
    ai: AIService = Depends(get_ai_service),
):
    parsed = await ai.parse_search_query(payload.query)
    # the model occasionally answers with non-boolean flags
    for flag in ("is_alcohol", "is_perishable"):
        if flag in parsed and not isinstance(parsed[flag], bool):
            parsed.pop(flag)
    for field in ("search_term", "category", "status", "location"):
        if field in parsed and parsed[field] is not None:
            parsed[field] = str(parsed[field])

    tokens = tokens_as_dicts(build_query_tokens(parsed))
    return ParseQueryResponse(**parsed, tokens=[QueryTokenRead(**t) for t in tokens])


@router.post("/items/{item_id}/generate-embedding", response_model=EmbeddingGenerated)
async def generate_item_embedding(
    item_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user: AuthUser = Depends(get_current_user),
    ai: AIService = Depends(get_ai_service),
):
    item = (await db.execute(select(ItemModel).where(ItemModel.id == item_id))).scalar_one_or_none()
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")
    await check_event_role(
        db,
        item.event_id,
        user,
        EventRole.EDITOR,
        role_detail="Only editors, admins, and owners can modify items",
    )

    try:
        item.vector_desc = await ai.generate_item_embedding(item)
    except (AIServiceError, AIConfigurationError) as e:
        raise _ai_unavailable(e)
    await db.commit()
    return EmbeddingGenerated(success=True, item_id=item.id, message="Embedding generated and stored")
