from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Any, Callable, Optional, TypeVar, Union

from .config import (
    BOARDS_STORAGE_KEY,
    CURRENT_BOARD_KEY,
    DEFAULT_BOARD_BACKGROUND,
    DEFAULT_BOARD_TITLE,
    NEW_BOARD_BACKGROUND,
)
from .errors import TaskboardError
from .models import Board, BoardList, BoardState, Card
from .persistence import Persistence
from .resolver import resolve_drag
from .schemas import (
    BoardCollection,
    BoardId,
    BoardPatch,
    CardPatch,
    DragResult,
    ListPatch,
    board_from_schema,
    board_to_schema,
)
from .store import BoardStore, normalize

logger = logging.getLogger(__name__)

T = TypeVar("T")
Subscriber = Callable[[BoardState], None]


class BoardContext:
    """Board state shared by every consumer of a session.

    All commands run through ``_commit``: the store computes and installs the
    new tree, the full snapshot is written through to storage, then
    subscribers receive the new ``BoardState``. A command issued from inside
    a subscriber is queued and runs once the current notification round ends,
    so subscribers see snapshots whole and in order. Queued commands return
    ``None``.

    Commits are serialized by a reentrant lock, so commands from different
    threads (FastAPI runs sync endpoints in a threadpool) never interleave.
    """

    def __init__(
        self,
        persistence: Persistence,
        boards_key: str = BOARDS_STORAGE_KEY,
        current_board_key: str = CURRENT_BOARD_KEY,
    ) -> None:
        self.persistence = persistence
        self.boards_key = boards_key
        self.current_board_key = current_board_key
        self._subscribers: list[Subscriber] = []
        self._pending: deque[Callable[[], Any]] = deque()
        self._notifying = False
        self._lock = threading.RLock()

        stored = persistence.load(boards_key, [], BoardCollection)
        boards, fixes = normalize(board_from_schema(b) for b in stored)
        if fixes:
            logger.warning("Repaired %d stale positions or parent ids in stored boards", fixes)
        self.store = BoardStore(boards)

        current = persistence.load(current_board_key, "", BoardId)
        if not self.store.boards:
            board = self.store.add_board(DEFAULT_BOARD_TITLE, DEFAULT_BOARD_BACKGROUND)
            current = board.id
            logger.info("No stored boards, created default board %s", board.id)
        elif not any(b.id == current for b in self.store.boards):
            current = self.store.boards[0].id
        self._current_board_id = current
        self._state = BoardState(self.store.boards, current)
        self._persist()

    # === Reading ===

    @property
    def state(self) -> BoardState:
        return self._state

    @property
    def boards(self) -> tuple[Board, ...]:
        return self._state.boards

    @property
    def current_board_id(self) -> str:
        return self._state.current_board_id

    @property
    def current_board(self) -> Optional[Board]:
        return self._state.current_board

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback`` for new snapshots; returns an unsubscribe function."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    # === Commands ===

    def set_current_board(self, board_id: str) -> None:
        def command() -> None:
            self.store.get_board(board_id)
            self._current_board_id = board_id

        self._commit(command)

    def add_board(self, title: str, background: Optional[str] = None) -> Optional[Board]:
        title = title.strip()
        if not title:
            logger.debug("Skipped board with blank title")
            return None
        return self._commit(lambda: self.store.add_board(title, background or NEW_BOARD_BACKGROUND))

    def update_board(self, board_id: str, patch: BoardPatch) -> Optional[Board]:
        def command() -> Board:
            self.store.update_board(board_id, patch)
            return self.store.get_board(board_id)

        return self._commit(command)

    def delete_board(self, board_id: str) -> None:
        def command() -> None:
            self.store.delete_board(board_id)
            if self._current_board_id == board_id:
                boards = self.store.boards
                self._current_board_id = boards[0].id if boards else ""

        self._commit(command)

    def add_list(self, board_id: str, title: str) -> Optional[BoardList]:
        title = title.strip()
        if not title:
            logger.debug("Skipped list with blank title on board %s", board_id)
            return None
        return self._commit(lambda: self.store.add_list(board_id, title))

    def update_list(self, list_id: str, patch: ListPatch) -> Optional[BoardList]:
        return self._commit_list(list_id, lambda: self.store.update_list(list_id, patch))

    def delete_list(self, list_id: str) -> None:
        self._commit(lambda: self.store.delete_list(list_id))

    def archive_list(self, list_id: str) -> Optional[BoardList]:
        return self._commit_list(list_id, lambda: self.store.archive_list(list_id))

    def restore_list(self, list_id: str) -> Optional[BoardList]:
        return self._commit_list(list_id, lambda: self.store.restore_list(list_id))

    def move_list(
        self, board_id: str, source_index: int, destination_index: int
    ) -> Optional[Board]:
        def command() -> Board:
            self.store.move_list(board_id, source_index, destination_index)
            return self.store.get_board(board_id)

        return self._commit(command)

    def add_card(self, list_id: str, title: str) -> Optional[Card]:
        title = title.strip()
        if not title:
            logger.debug("Skipped card with blank title on list %s", list_id)
            return None
        return self._commit(lambda: self.store.add_card(list_id, title))

    def update_card(self, card_id: str, patch: CardPatch) -> Optional[Card]:
        return self._commit_card(card_id, lambda: self.store.update_card(card_id, patch))

    def delete_card(self, card_id: str) -> None:
        self._commit(lambda: self.store.delete_card(card_id))

    def archive_card(self, card_id: str) -> Optional[Card]:
        return self._commit_card(card_id, lambda: self.store.archive_card(card_id))

    def restore_card(self, card_id: str) -> Optional[Card]:
        return self._commit_card(card_id, lambda: self.store.restore_card(card_id))

    def move_card(
        self,
        source_list_id: str,
        destination_list_id: str,
        source_index: int,
        destination_index: int,
    ) -> None:
        self._commit(
            lambda: self.store.move_card(
                source_list_id, destination_list_id, source_index, destination_index
            )
        )

    def apply_drag(self, result: Union[DragResult, dict]) -> bool:
        if isinstance(result, dict):
            result = DragResult.model_validate(result)
        return bool(self._commit(lambda: resolve_drag(self.store, result)))

    # === Single writer ===

    def _commit_list(self, list_id: str, change: Callable[[], None]) -> Optional[BoardList]:
        def command() -> BoardList:
            change()
            return self.store.get_list(list_id)

        return self._commit(command)

    def _commit_card(self, card_id: str, change: Callable[[], None]) -> Optional[Card]:
        def command() -> Card:
            change()
            return self.store.get_card(card_id)

        return self._commit(command)

    def _commit(self, command: Callable[[], T]) -> Optional[T]:
        with self._lock:
            if self._notifying:
                self._pending.append(command)
                return None
            result = command()
            try:
                self._publish()
                while self._pending:
                    queued = self._pending.popleft()
                    try:
                        queued()
                    except TaskboardError as e:
                        logger.warning("Queued command failed: %s", e)
                    except Exception:
                        logger.exception("Queued command failed")
                    self._publish()
            finally:
                self._pending.clear()
            return result

    def _publish(self) -> None:
        boards = self.store.boards
        previous = self._state
        if boards is previous.boards and self._current_board_id == previous.current_board_id:
            return
        state = BoardState(boards, self._current_board_id)
        self._state = state
        self._persist()
        self._notifying = True
        try:
            for callback in list(self._subscribers):
                try:
                    callback(state)
                except Exception:
                    logger.exception("Board subscriber %r failed", callback)
        finally:
            self._notifying = False

    def _persist(self) -> None:
        self.persistence.save(
            self.boards_key, [board_to_schema(b) for b in self._state.boards], BoardCollection
        )
        self.persistence.save(self.current_board_key, self._state.current_board_id, BoardId)
