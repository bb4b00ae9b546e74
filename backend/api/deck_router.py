"""API routes for learners, deck items and backup import/export."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from backend.api.schemas import (
    AddItemRequest,
    ItemResponse,
    LearnerCreateRequest,
    LearnerResponse,
)
from backend.config import now_ms
from backend.database import get_session
from backend.models.learner import Learner
from backend.srs.queue import add_item, get_item
from backend.srs.serialization import DeckFormatError
from backend.storage import (
    create_learner,
    export_data,
    get_learner,
    import_data,
    load_deck,
    open_deck,
    reset_learner,
    save_deck,
    unlocked_levels,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/deck", tags=["deck"])


def _learner_response(learner: Learner) -> LearnerResponse:
    return LearnerResponse(
        id=learner.id,
        name=learner.name,
        current_level=learner.current_level,
        unlocked_levels=unlocked_levels(learner),
    )


async def _require_learner(db: AsyncSession, learner_id: int) -> Learner:
    learner = await get_learner(db, learner_id)
    if learner is None:
        raise HTTPException(status_code=404, detail="Learner not found")
    return learner


@router.post("/learners", response_model=LearnerResponse)
async def learner_create(
    request: LearnerCreateRequest,
    db: AsyncSession = Depends(get_session),
) -> LearnerResponse:
    """Create a learner and seed their first level."""
    learner = await create_learner(db, request.name)
    await open_deck(db, learner, now_ms())
    return _learner_response(learner)


@router.post("/{learner_id}/items", response_model=ItemResponse)
async def item_add(
    learner_id: int,
    request: AddItemRequest,
    db: AsyncSession = Depends(get_session),
) -> ItemResponse:
    """Add an item to the deck; adding an existing key is a no-op."""
    await _require_learner(db, learner_id)
    deck = await load_deck(db, learner_id)
    before = len(deck.items)
    item = add_item(deck, request.key, now_ms())
    if len(deck.items) != before:
        await save_deck(db, learner_id, deck)
    return ItemResponse.from_item(item)


@router.get("/{learner_id}/items/{key}", response_model=ItemResponse)
async def item_get(
    learner_id: int,
    key: str,
    db: AsyncSession = Depends(get_session),
) -> ItemResponse:
    """Get one item's memory state."""
    await _require_learner(db, learner_id)
    item = get_item(await load_deck(db, learner_id), key)
    if item is None:
        raise HTTPException(status_code=404, detail="Item not found")
    return ItemResponse.from_item(item)


@router.get("/{learner_id}/export")
async def deck_export(
    learner_id: int,
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Download the learner's progress as a JSON backup."""
    learner = await _require_learner(db, learner_id)
    content = await export_data(db, learner)
    return Response(content=content, media_type="application/json")


@router.post("/{learner_id}/import", response_model=LearnerResponse)
async def deck_import(
    learner_id: int,
    request: Request,
    db: AsyncSession = Depends(get_session),
) -> LearnerResponse:
    """Replace the learner's progress with an uploaded JSON backup."""
    learner = await _require_learner(db, learner_id)
    body = await request.body()
    try:
        await import_data(db, learner, body.decode("utf-8"))
    except (DeckFormatError, UnicodeDecodeError) as exc:
        logger.warning("Rejected import for learner %d: %s", learner_id, exc)
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _learner_response(learner)


@router.post("/{learner_id}/reset", response_model=LearnerResponse)
async def deck_reset(
    learner_id: int,
    db: AsyncSession = Depends(get_session),
) -> LearnerResponse:
    """Clear all progress and reseed level 1."""
    learner = await _require_learner(db, learner_id)
    await reset_learner(db, learner)
    await open_deck(db, learner, now_ms())
    return _learner_response(learner)
