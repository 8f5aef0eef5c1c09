from __future__ import annotations

from typing import NoReturn
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from nihilism.api.deps import get_session_store
from nihilism.api.models import (
    ChoiceRequest,
    CreateGameRequest,
    EndingCheckResponse,
    GameStateResponse,
    ListSavesResponse,
    LoadGameResponse,
    NewGameResponse,
    ResetResponse,
    SaveGameResponse,
    TurnResult,
)
from nihilism.errors import EngineError
from nihilism.session_store import SessionStore

router = APIRouter()

_STATUS_BY_KIND: dict[str, int] = {
    "not_found": status.HTTP_404_NOT_FOUND,
    "invalid_state": status.HTTP_409_CONFLICT,
    "validation_error": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "upstream_error": status.HTTP_502_BAD_GATEWAY,
    "upstream_timeout": status.HTTP_504_GATEWAY_TIMEOUT,
    "persistence_error": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _raise_http(e: EngineError) -> NoReturn:
    code = _STATUS_BY_KIND.get(e.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    raise HTTPException(status_code=code, detail={"kind": e.kind, "message": str(e)}) from e


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok", "message": "The loop continues..."}


@router.post("/game", response_model=NewGameResponse, status_code=status.HTTP_201_CREATED)
async def create_game_route(
    payload: CreateGameRequest | None = None,
    store: SessionStore = Depends(get_session_store),
) -> NewGameResponse:
    player = await store.create_player(name=payload.name if payload else None)
    return NewGameResponse(
        player=player,
        message="Welcome to the loop. You've been here before, even if you don't remember.",
    )


@router.get("/game", response_model=ListSavesResponse)
async def list_saves_route(store: SessionStore = Depends(get_session_store)) -> ListSavesResponse:
    try:
        return ListSavesResponse(saves=await store.list())
    except EngineError as e:
        _raise_http(e)


@router.get("/game/{player_id}", response_model=GameStateResponse)
async def get_game_route(player_id: UUID, store: SessionStore = Depends(get_session_store)) -> GameStateResponse:
    try:
        player = await store.get(player_id)
        ending = await store.ending(player_id)
        moment = await store.current_moment(player_id)
    except EngineError as e:
        _raise_http(e)
    return GameStateResponse(player=player, current_moment=moment, ending=ending)


@router.post("/game/{player_id}/start", response_model=TurnResult)
async def start_route(player_id: UUID, store: SessionStore = Depends(get_session_store)) -> TurnResult:
    try:
        return await store.start(player_id)
    except EngineError as e:
        _raise_http(e)


@router.post("/game/{player_id}/choice", response_model=TurnResult)
async def choice_route(
    player_id: UUID,
    payload: ChoiceRequest,
    store: SessionStore = Depends(get_session_store),
) -> TurnResult:
    try:
        return await store.make_choice(player_id, payload.choice_id)
    except EngineError as e:
        _raise_http(e)


@router.post("/game/{player_id}/reset", response_model=ResetResponse)
async def reset_route(player_id: UUID, store: SessionStore = Depends(get_session_store)) -> ResetResponse:
    try:
        player = await store.reset(player_id)
    except EngineError as e:
        _raise_http(e)
    return ResetResponse(
        player=player,
        message=f"Loop #{player.current_loop.number} begins. Despite everything... it's still you.",
    )


@router.post("/game/{player_id}/save", response_model=SaveGameResponse)
async def save_route(player_id: UUID, store: SessionStore = Depends(get_session_store)) -> SaveGameResponse:
    try:
        await store.save(player_id)
    except EngineError as e:
        _raise_http(e)
    return SaveGameResponse(success=True, message="Your journey has been etched into the void.")


@router.post("/game/{player_id}/load", response_model=LoadGameResponse)
async def load_route(player_id: UUID, store: SessionStore = Depends(get_session_store)) -> LoadGameResponse:
    try:
        player = await store.load(player_id)
    except EngineError as e:
        _raise_http(e)
    return LoadGameResponse(player=player, message="I remember you... welcome back to the loop.")


@router.get("/game/{player_id}/ending", response_model=EndingCheckResponse)
async def ending_route(player_id: UUID, store: SessionStore = Depends(get_session_store)) -> EndingCheckResponse:
    try:
        ending = await store.ending(player_id)
    except EngineError as e:
        _raise_http(e)
    return EndingCheckResponse(has_ending=ending is not None, ending=ending)
