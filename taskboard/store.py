from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Iterable, Iterator, Optional, TypeVar, Union

from .config import NEW_BOARD_BACKGROUND
from .errors import NotFoundError
from .models import Board, BoardList, Card
from .schemas import BoardPatch, CardPatch, ListPatch, board_changes, card_changes, list_changes
from .utils import MonotonicClock, clamp, move_between, new_id, reorder

logger = logging.getLogger(__name__)

Positioned = TypeVar("Positioned", BoardList, Card)


class BoardStore:
    """In-memory store for boards, lists and cards.

    The tree is immutable. Every command builds the new tuple of boards
    first and installs it with a single assignment, so a command that raises
    leaves the previous tree in place.

    Move indices address the displayed sequence (archived items skipped).
    Positions are always rewritten from the post-splice order over the full
    sequence, archived items included.
    """

    def __init__(
        self, boards: Iterable[Board] = (), clock: Optional[MonotonicClock] = None
    ) -> None:
        self._boards: tuple[Board, ...] = tuple(boards)
        self._clock = clock or MonotonicClock()
        for stamp in _stamps(self._boards):
            self._clock.observe(stamp)

    @property
    def boards(self) -> tuple[Board, ...]:
        return self._boards

    # === Lookups ===

    def get_board(self, board_id: str) -> Board:
        for board in self._boards:
            if board.id == board_id:
                return board
        raise NotFoundError("Board", board_id)

    def find_board_for_list(self, list_id: str) -> Board:
        for board in self._boards:
            if any(lst.id == list_id for lst in board.lists):
                return board
        raise NotFoundError("List", list_id)

    def get_list(self, list_id: str) -> BoardList:
        board = self.find_board_for_list(list_id)
        return next(lst for lst in board.lists if lst.id == list_id)

    def get_card(self, card_id: str) -> Card:
        return self._locate_card(card_id)[1]

    def _locate_card(self, card_id: str) -> tuple[BoardList, Card]:
        for board in self._boards:
            for lst in board.lists:
                for card in lst.cards:
                    if card.id == card_id:
                        return lst, card
        raise NotFoundError("Card", card_id)

    @staticmethod
    def visible_lists(board: Board) -> tuple[BoardList, ...]:
        return tuple(lst for lst in board.lists if not lst.archived)

    @staticmethod
    def visible_cards(lst: BoardList) -> tuple[Card, ...]:
        return tuple(card for card in lst.cards if not card.archived)

    @staticmethod
    def archived_lists(board: Board) -> tuple[BoardList, ...]:
        return tuple(lst for lst in board.lists if lst.archived)

    @staticmethod
    def archived_cards(board: Board) -> tuple[Card, ...]:
        return tuple(card for lst in board.lists for card in lst.cards if card.archived)

    # === Board operations ===

    def add_board(self, title: str, background: str = NEW_BOARD_BACKGROUND) -> Board:
        now = self._clock.now()
        board = Board(
            id=new_id(),
            title=title,
            background=background,
            created_at=now,
            updated_at=now,
        )
        self._boards = self._boards + (board,)
        logger.debug("Added board %s", board.id)
        return board

    def update_board(self, board_id: str, patch: BoardPatch) -> None:
        board = self.get_board(board_id)
        updated = replace(board, **board_changes(patch), updated_at=self._clock.now())
        self._boards = tuple(updated if b.id == board_id else b for b in self._boards)

    def delete_board(self, board_id: str) -> None:
        remaining = tuple(b for b in self._boards if b.id != board_id)
        if len(remaining) == len(self._boards):
            logger.debug("Delete skipped, board %s does not exist", board_id)
            return
        self._boards = remaining
        logger.debug("Deleted board %s", board_id)

    # === List operations ===

    def add_list(self, board_id: str, title: str) -> BoardList:
        board = self.get_board(board_id)
        now = self._clock.now()
        new_list = BoardList(
            id=new_id(),
            board_id=board.id,
            title=title,
            position=len(board.lists),
            created_at=now,
            updated_at=now,
        )
        self._install_board(replace(board, lists=board.lists + (new_list,), updated_at=now))
        logger.debug("Added list %s to board %s", new_list.id, board.id)
        return new_list

    def update_list(self, list_id: str, patch: ListPatch) -> None:
        self._update_list(list_id, list_changes(patch))

    def archive_list(self, list_id: str) -> None:
        self._update_list(list_id, {"archived": True})

    def restore_list(self, list_id: str) -> None:
        self._update_list(list_id, {"archived": False})

    def _update_list(self, list_id: str, changes: dict) -> None:
        lst = self.get_list(list_id)
        now = self._clock.now()
        self._install_lists({list_id: replace(lst, **changes, updated_at=now)}, now)

    def delete_list(self, list_id: str) -> None:
        try:
            board = self.find_board_for_list(list_id)
        except NotFoundError:
            logger.debug("Delete skipped, list %s does not exist", list_id)
            return
        now = self._clock.now()
        lists = _reindex(tuple(lst for lst in board.lists if lst.id != list_id), now)
        self._install_board(replace(board, lists=lists, updated_at=now))
        logger.debug("Deleted list %s from board %s", list_id, board.id)

    def move_list(self, board_id: str, source_index: int, destination_index: int) -> None:
        board = self.get_board(board_id)
        if source_index == destination_index:
            return
        at = _displayed_to_full(board.lists, source_index)
        if at is None:
            logger.debug("Move skipped, board %s has no list at %d", board_id, source_index)
            return
        remaining = board.lists[:at] + board.lists[at + 1 :]
        to = _insertion_point(remaining, destination_index)
        now = self._clock.now()
        lists = _reindex(reorder(board.lists, at, to), now)
        self._install_board(replace(board, lists=lists, updated_at=now))

    # === Card operations ===

    def add_card(self, list_id: str, title: str) -> Card:
        lst = self.get_list(list_id)
        now = self._clock.now()
        card = Card(
            id=new_id(),
            list_id=lst.id,
            title=title,
            position=len(lst.cards),
            created_at=now,
            updated_at=now,
        )
        self._install_lists({lst.id: replace(lst, cards=lst.cards + (card,), updated_at=now)}, now)
        logger.debug("Added card %s to list %s", card.id, lst.id)
        return card

    def update_card(self, card_id: str, patch: CardPatch) -> None:
        self._update_card(card_id, card_changes(patch))

    def archive_card(self, card_id: str) -> None:
        self._update_card(card_id, {"archived": True})

    def restore_card(self, card_id: str) -> None:
        self._update_card(card_id, {"archived": False})

    def _update_card(self, card_id: str, changes: dict) -> None:
        lst, card = self._locate_card(card_id)
        now = self._clock.now()
        updated = replace(card, **changes, updated_at=now)
        cards = tuple(updated if c.id == card_id else c for c in lst.cards)
        self._install_lists({lst.id: replace(lst, cards=cards, updated_at=now)}, now)

    def delete_card(self, card_id: str) -> None:
        try:
            lst, _ = self._locate_card(card_id)
        except NotFoundError:
            logger.debug("Delete skipped, card %s does not exist", card_id)
            return
        now = self._clock.now()
        cards = _reindex(tuple(c for c in lst.cards if c.id != card_id), now)
        self._install_lists({lst.id: replace(lst, cards=cards, updated_at=now)}, now)

    def move_card(
        self,
        source_list_id: str,
        destination_list_id: str,
        source_index: int,
        destination_index: int,
    ) -> None:
        source = self.get_list(source_list_id)
        destination = self.get_list(destination_list_id)
        same_list = source_list_id == destination_list_id
        if same_list and source_index == destination_index:
            return
        at = _displayed_to_full(source.cards, source_index)
        if at is None:
            logger.debug("Move skipped, list %s has no card at %d", source_list_id, source_index)
            return
        now = self._clock.now()
        if same_list:
            remaining = source.cards[:at] + source.cards[at + 1 :]
            to = _insertion_point(remaining, destination_index)
            cards = _reindex(reorder(source.cards, at, to), now)
            replacements = {source.id: replace(source, cards=cards, updated_at=now)}
        else:
            to = _insertion_point(destination.cards, destination_index)
            remaining, received = move_between(source.cards, destination.cards, at, to)
            moved = replace(received[to], list_id=destination.id, updated_at=now)
            received = received[:to] + (moved,) + received[to + 1 :]
            replacements = {
                source.id: replace(source, cards=_reindex(remaining, now), updated_at=now),
                destination.id: replace(destination, cards=_reindex(received, now), updated_at=now),
            }
        self._install_lists(replacements, now)

    # === Installation ===

    def _install_board(self, board: Board) -> None:
        self._boards = tuple(board if b.id == board.id else b for b in self._boards)

    def _install_lists(self, replacements: dict[str, BoardList], now: datetime) -> None:
        boards = []
        for board in self._boards:
            if any(lst.id in replacements for lst in board.lists):
                lists = tuple(replacements.get(lst.id, lst) for lst in board.lists)
                board = replace(board, lists=lists, updated_at=now)
            boards.append(board)
        self._boards = tuple(boards)


# === Sequence helpers ===


def _reindex(items: tuple[Positioned, ...], now: datetime) -> tuple[Positioned, ...]:
    return tuple(
        item if item.position == index else replace(item, position=index, updated_at=now)
        for index, item in enumerate(items)
    )


def _displayed_indices(items: tuple[Positioned, ...]) -> list[int]:
    return [i for i, item in enumerate(items) if not item.archived]


def _displayed_to_full(items: tuple[Positioned, ...], index: int) -> Optional[int]:
    displayed = _displayed_indices(items)
    if not 0 <= index < len(displayed):
        return None
    return displayed[index]


def _insertion_point(items: tuple[Positioned, ...], index: int) -> int:
    """Full index at which an inserted item lands at displayed ``index``.

    The index is clamped to the displayed range. Past the end of the
    displayed sequence the item goes right after the last displayed item;
    archived items trailing it keep their place.
    """
    displayed = _displayed_indices(items)
    index = clamp(index, 0, len(displayed))
    if index < len(displayed):
        return displayed[index]
    if displayed:
        return displayed[-1] + 1
    return len(items)


def _stamps(boards: tuple[Board, ...]) -> Iterator[datetime]:
    for board in boards:
        yield board.updated_at
        for lst in board.lists:
            yield lst.updated_at
            for card in lst.cards:
                yield card.updated_at


def normalize(boards: Iterable[Board]) -> tuple[tuple[Board, ...], int]:
    """Repair positions and back-references of a loaded tree.

    Containment is the source of truth: positions are rewritten from sequence
    order and ``board_id``/``list_id`` from the containing entity. Timestamps
    are left alone. Returns the repaired tree and the number of fixes.
    """
    fixes = 0

    def fix(entity: Union[BoardList, Card], **expected) -> Union[BoardList, Card]:
        nonlocal fixes
        stale = {k: v for k, v in expected.items() if getattr(entity, k) != v}
        if not stale:
            return entity
        fixes += 1
        return replace(entity, **stale)

    repaired = []
    for board in boards:
        lists = []
        for list_index, lst in enumerate(board.lists):
            cards = tuple(
                fix(card, list_id=lst.id, position=card_index)
                for card_index, card in enumerate(lst.cards)
            )
            lst = fix(lst, board_id=board.id, position=list_index)
            lists.append(replace(lst, cards=cards) if cards != lst.cards else lst)
        lists = tuple(lists)
        repaired.append(replace(board, lists=lists) if lists != board.lists else board)
    return tuple(repaired), fixes
