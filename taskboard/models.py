from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .utils import as_utc


# === Card attachments ===


@dataclass(frozen=True)
class User:
    id: str
    name: str
    email: str = ""
    avatar: str = ""


@dataclass(frozen=True)
class Label:
    id: str
    name: str
    color: str


@dataclass(frozen=True)
class Attachment:
    id: str
    name: str
    url: str
    type: str
    size: int
    created_at: datetime


@dataclass(frozen=True)
class ChecklistItem:
    id: str
    text: str
    completed: bool = False


@dataclass(frozen=True)
class Checklist:
    id: str
    title: str
    items: tuple[ChecklistItem, ...] = ()


@dataclass(frozen=True)
class Comment:
    id: str
    text: str
    user_id: str
    created_at: datetime
    user: User


# === Board tree ===


@dataclass(frozen=True)
class Card:
    id: str
    list_id: str
    title: str
    position: int
    created_at: datetime
    updated_at: datetime
    description: str = ""
    due_date: Optional[datetime] = None
    labels: tuple[Label, ...] = ()
    checklists: tuple[Checklist, ...] = ()
    attachments: tuple[Attachment, ...] = ()
    comments: tuple[Comment, ...] = ()
    assigned_users: tuple[User, ...] = ()
    archived: bool = False


@dataclass(frozen=True)
class BoardList:
    id: str
    board_id: str
    title: str
    position: int
    created_at: datetime
    updated_at: datetime
    cards: tuple[Card, ...] = ()
    archived: bool = False


@dataclass(frozen=True)
class Board:
    id: str
    title: str
    background: str
    created_at: datetime
    updated_at: datetime
    lists: tuple[BoardList, ...] = ()


@dataclass(frozen=True)
class BoardState:
    """Snapshot published to subscribers after every committed command."""

    boards: tuple[Board, ...] = ()
    current_board_id: str = ""

    @property
    def current_board(self) -> Optional[Board]:
        for board in self.boards:
            if board.id == self.current_board_id:
                return board
        return None


# === Derived views ===


def due_date_status(due_date: Optional[datetime], now: datetime) -> str:
    """Classify a due date against ``now`` by calendar day (UTC).

    Returns one of ``overdue``, ``dueToday``, ``dueSoon`` (within three
    days), ``upcoming`` or ``none``.
    """
    if due_date is None:
        return "none"
    diff_days = (as_utc(due_date).date() - as_utc(now).date()).days
    if diff_days < 0:
        return "overdue"
    if diff_days == 0:
        return "dueToday"
    if diff_days <= 3:
        return "dueSoon"
    return "upcoming"


def checklist_completion(card: Card) -> int:
    total = sum(len(checklist.items) for checklist in card.checklists)
    if total == 0:
        return 0
    done = sum(
        1 for checklist in card.checklists for item in checklist.items if item.completed
    )
    return round(done / total * 100)
