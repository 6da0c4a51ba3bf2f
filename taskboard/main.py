from __future__ import annotations

import logging
import threading
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Request, Response
from fastapi.responses import JSONResponse

from .config import VERSION
from .context import BoardContext
from .db import SqlKeyValueStore
from .errors import NotFoundError
from .persistence import Persistence
from .schemas import (
    BoardIn,
    BoardPatch,
    BoardSchema,
    CardIn,
    CardMove,
    CardPatch,
    CardView,
    CurrentBoardIn,
    DragResult,
    ErrorEnvelope,
    ListIn,
    ListMove,
    ListPatch,
    ListSchema,
    StateOut,
    board_to_schema,
    card_view,
    list_to_schema,
    state_out,
)
from .utils import now_utc

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1")

_context_lock = threading.Lock()


def get_context(request: Request) -> BoardContext:
    context = request.app.state.context
    if context is None:
        with _context_lock:
            context = request.app.state.context
            if context is None:
                logger.info("Opening board storage")
                context = BoardContext(Persistence(SqlKeyValueStore()))
                request.app.state.context = context
    return context


async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    body = ErrorEnvelope(
        code="not_found",
        message=str(exc),
        details={"kind": exc.kind, "id": exc.entity_id},
    )
    return JSONResponse(status_code=404, content=body.model_dump())


# === Health & metadata ===


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.get("/version")
def version() -> dict:
    return {"version": VERSION}


# === State & selection ===


@router.get("/state", response_model=StateOut)
def get_state(ctx: BoardContext = Depends(get_context)):
    return state_out(ctx.state)


@router.put("/current-board", response_model=StateOut)
def set_current_board(payload: CurrentBoardIn, ctx: BoardContext = Depends(get_context)):
    ctx.set_current_board(payload.boardId)
    return state_out(ctx.state)


@router.post("/drag")
def apply_drag(payload: DragResult, ctx: BoardContext = Depends(get_context)) -> dict:
    return {"moved": ctx.apply_drag(payload)}


# === Boards ===


@router.post("/boards", response_model=BoardSchema, status_code=201)
def create_board(payload: BoardIn, ctx: BoardContext = Depends(get_context)):
    board = ctx.add_board(payload.title, payload.background)
    return board_to_schema(board)


@router.patch("/boards/{board_id}", response_model=BoardSchema)
def update_board(board_id: str, payload: BoardPatch, ctx: BoardContext = Depends(get_context)):
    return board_to_schema(ctx.update_board(board_id, payload))


@router.delete("/boards/{board_id}", status_code=204)
def delete_board(board_id: str, ctx: BoardContext = Depends(get_context)):
    ctx.delete_board(board_id)
    return Response(status_code=204)


# === Lists ===


@router.post("/boards/{board_id}/lists", response_model=ListSchema, status_code=201)
def create_list(board_id: str, payload: ListIn, ctx: BoardContext = Depends(get_context)):
    lst = ctx.add_list(board_id, payload.title)
    return list_to_schema(lst)


@router.post("/boards/{board_id}/lists:move", response_model=BoardSchema)
def move_list(board_id: str, payload: ListMove, ctx: BoardContext = Depends(get_context)):
    return board_to_schema(ctx.move_list(board_id, payload.sourceIndex, payload.destinationIndex))


@router.patch("/lists/{list_id}", response_model=ListSchema)
def update_list(list_id: str, payload: ListPatch, ctx: BoardContext = Depends(get_context)):
    return list_to_schema(ctx.update_list(list_id, payload))


@router.post("/lists/{list_id}:archive", response_model=ListSchema)
def archive_list(list_id: str, ctx: BoardContext = Depends(get_context)):
    return list_to_schema(ctx.archive_list(list_id))


@router.post("/lists/{list_id}:restore", response_model=ListSchema)
def restore_list(list_id: str, ctx: BoardContext = Depends(get_context)):
    return list_to_schema(ctx.restore_list(list_id))


@router.delete("/lists/{list_id}", status_code=204)
def delete_list(list_id: str, ctx: BoardContext = Depends(get_context)):
    ctx.delete_list(list_id)
    return Response(status_code=204)


# === Cards ===


@router.post("/lists/{list_id}/cards", response_model=CardView, status_code=201)
def create_card(list_id: str, payload: CardIn, ctx: BoardContext = Depends(get_context)):
    card = ctx.add_card(list_id, payload.title)
    return card_view(card, now_utc())


@router.post("/cards:move", response_model=StateOut)
def move_card(payload: CardMove, ctx: BoardContext = Depends(get_context)):
    ctx.move_card(
        payload.sourceListId,
        payload.destinationListId,
        payload.sourceIndex,
        payload.destinationIndex,
    )
    return state_out(ctx.state)


@router.get("/cards/{card_id}", response_model=CardView)
def get_card(card_id: str, ctx: BoardContext = Depends(get_context)):
    return card_view(ctx.store.get_card(card_id), now_utc())


@router.patch("/cards/{card_id}", response_model=CardView)
def update_card(card_id: str, payload: CardPatch, ctx: BoardContext = Depends(get_context)):
    return card_view(ctx.update_card(card_id, payload), now_utc())


@router.post("/cards/{card_id}:archive", response_model=CardView)
def archive_card(card_id: str, ctx: BoardContext = Depends(get_context)):
    return card_view(ctx.archive_card(card_id), now_utc())


@router.post("/cards/{card_id}:restore", response_model=CardView)
def restore_card(card_id: str, ctx: BoardContext = Depends(get_context)):
    return card_view(ctx.restore_card(card_id), now_utc())


@router.delete("/cards/{card_id}", status_code=204)
def delete_card(card_id: str, ctx: BoardContext = Depends(get_context)):
    ctx.delete_card(card_id)
    return Response(status_code=204)


def create_app(context: Optional[BoardContext] = None) -> FastAPI:
    """Build the local command API.

    Without an explicit context, one backed by the configured database is
    created on the first request.
    """
    app = FastAPI(title="Taskboard API", version=VERSION)
    app.state.context = context
    app.add_exception_handler(NotFoundError, not_found_handler)
    app.include_router(router)
    return app


app = create_app()
