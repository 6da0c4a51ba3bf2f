from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from .models import (
    Attachment,
    Board,
    BoardList,
    BoardState,
    Card,
    Checklist,
    ChecklistItem,
    Comment,
    Label,
    User,
    checklist_completion,
    due_date_status,
)
from .utils import as_utc


# === Stored representation ===
# Field names follow the browser build so existing local storage loads as is.


class UserSchema(BaseModel):
    id: str
    name: str
    email: str = ""
    avatar: str = ""


class LabelSchema(BaseModel):
    id: str
    name: str
    color: str


class AttachmentSchema(BaseModel):
    id: str
    name: str
    url: str
    type: str
    size: int = 0
    createdAt: datetime


class ChecklistItemSchema(BaseModel):
    id: str
    text: str
    completed: bool = False


class ChecklistSchema(BaseModel):
    id: str
    title: str
    items: list[ChecklistItemSchema] = []


class CommentSchema(BaseModel):
    id: str
    text: str
    userId: str
    createdAt: datetime
    user: UserSchema


class CardSchema(BaseModel):
    id: str
    listId: str
    title: str
    description: str = ""
    position: int
    dueDate: Optional[datetime] = None
    labels: list[LabelSchema] = []
    checklists: list[ChecklistSchema] = []
    attachments: list[AttachmentSchema] = []
    comments: list[CommentSchema] = []
    assignedUsers: list[UserSchema] = []
    archived: bool = False
    createdAt: datetime
    updatedAt: datetime


class ListSchema(BaseModel):
    id: str
    boardId: str
    title: str
    cards: list[CardSchema] = []
    position: int
    archived: bool = False
    createdAt: datetime
    updatedAt: datetime


class BoardSchema(BaseModel):
    id: str
    title: str
    background: str = "bg-gray-100"
    lists: list[ListSchema] = []
    createdAt: datetime
    updatedAt: datetime


BoardCollection = TypeAdapter(list[BoardSchema])
BoardId = TypeAdapter(str)


# === Typed patches ===


class BoardPatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    background: Optional[str] = None


class ListPatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    archived: Optional[bool] = None


class CardPatch(BaseModel):
    """Fields a card editor may replace.

    ``dueDate`` is the only nullable field: setting it to ``None`` clears the
    due date. For every other field an explicit ``None`` leaves the value as is.
    """

    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    description: Optional[str] = None
    dueDate: Optional[datetime] = None
    labels: Optional[list[LabelSchema]] = None
    checklists: Optional[list[ChecklistSchema]] = None
    attachments: Optional[list[AttachmentSchema]] = None
    comments: Optional[list[CommentSchema]] = None
    assignedUsers: Optional[list[UserSchema]] = None
    archived: Optional[bool] = None


# === Gesture input ===


class DragResult(BaseModel):
    sourceContainerId: str
    destinationContainerId: Optional[str] = None
    sourceIndex: int = Field(ge=0)
    destinationIndex: int = Field(ge=0)
    itemType: Literal["list", "card"]


# === API bodies ===


class BoardIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=140)
    background: Optional[str] = None


class ListIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=140)


class CardIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=200)


class ListMove(BaseModel):
    sourceIndex: int = Field(ge=0)
    destinationIndex: int = Field(ge=0)


class CardMove(BaseModel):
    sourceListId: str
    destinationListId: str
    sourceIndex: int = Field(ge=0)
    destinationIndex: int = Field(ge=0)


class CurrentBoardIn(BaseModel):
    boardId: str


class StateOut(BaseModel):
    boards: list[BoardSchema]
    currentBoardId: str


class CardView(CardSchema):
    """A card as the HTTP layer returns it, with its derived display fields."""

    dueStatus: Literal["overdue", "dueToday", "dueSoon", "upcoming", "none"]
    checklistCompletion: int = Field(ge=0, le=100)


class ErrorEnvelope(BaseModel):
    code: str
    message: str
    details: Optional[dict[str, Any]] = None


# === Conversions ===


def user_from_schema(s: UserSchema) -> User:
    return User(id=s.id, name=s.name, email=s.email, avatar=s.avatar)


def user_to_schema(u: User) -> UserSchema:
    return UserSchema(id=u.id, name=u.name, email=u.email, avatar=u.avatar)


def label_from_schema(s: LabelSchema) -> Label:
    return Label(id=s.id, name=s.name, color=s.color)


def label_to_schema(label: Label) -> LabelSchema:
    return LabelSchema(id=label.id, name=label.name, color=label.color)


def attachment_from_schema(s: AttachmentSchema) -> Attachment:
    return Attachment(
        id=s.id,
        name=s.name,
        url=s.url,
        type=s.type,
        size=s.size,
        created_at=as_utc(s.createdAt),
    )


def attachment_to_schema(a: Attachment) -> AttachmentSchema:
    return AttachmentSchema(
        id=a.id, name=a.name, url=a.url, type=a.type, size=a.size, createdAt=a.created_at
    )


def checklist_from_schema(s: ChecklistSchema) -> Checklist:
    return Checklist(
        id=s.id,
        title=s.title,
        items=tuple(
            ChecklistItem(id=i.id, text=i.text, completed=i.completed) for i in s.items
        ),
    )


def checklist_to_schema(c: Checklist) -> ChecklistSchema:
    return ChecklistSchema(
        id=c.id,
        title=c.title,
        items=[
            ChecklistItemSchema(id=i.id, text=i.text, completed=i.completed)
            for i in c.items
        ],
    )


def comment_from_schema(s: CommentSchema) -> Comment:
    return Comment(
        id=s.id,
        text=s.text,
        user_id=s.userId,
        created_at=as_utc(s.createdAt),
        user=user_from_schema(s.user),
    )


def comment_to_schema(c: Comment) -> CommentSchema:
    return CommentSchema(
        id=c.id,
        text=c.text,
        userId=c.user_id,
        createdAt=c.created_at,
        user=user_to_schema(c.user),
    )


def card_from_schema(s: CardSchema) -> Card:
    return Card(
        id=s.id,
        list_id=s.listId,
        title=s.title,
        description=s.description,
        position=s.position,
        due_date=as_utc(s.dueDate) if s.dueDate else None,
        labels=tuple(label_from_schema(x) for x in s.labels),
        checklists=tuple(checklist_from_schema(x) for x in s.checklists),
        attachments=tuple(attachment_from_schema(x) for x in s.attachments),
        comments=tuple(comment_from_schema(x) for x in s.comments),
        assigned_users=tuple(user_from_schema(x) for x in s.assignedUsers),
        archived=s.archived,
        created_at=as_utc(s.createdAt),
        updated_at=as_utc(s.updatedAt),
    )


def card_to_schema(c: Card) -> CardSchema:
    return CardSchema(
        id=c.id,
        listId=c.list_id,
        title=c.title,
        description=c.description,
        position=c.position,
        dueDate=c.due_date,
        labels=[label_to_schema(x) for x in c.labels],
        checklists=[checklist_to_schema(x) for x in c.checklists],
        attachments=[attachment_to_schema(x) for x in c.attachments],
        comments=[comment_to_schema(x) for x in c.comments],
        assignedUsers=[user_to_schema(x) for x in c.assigned_users],
        archived=c.archived,
        createdAt=c.created_at,
        updatedAt=c.updated_at,
    )


def card_view(c: Card, now: datetime) -> CardView:
    return CardView(
        **card_to_schema(c).model_dump(),
        dueStatus=due_date_status(c.due_date, now),
        checklistCompletion=checklist_completion(c),
    )


def list_from_schema(s: ListSchema) -> BoardList:
    return BoardList(
        id=s.id,
        board_id=s.boardId,
        title=s.title,
        cards=tuple(card_from_schema(c) for c in s.cards),
        position=s.position,
        archived=s.archived,
        created_at=as_utc(s.createdAt),
        updated_at=as_utc(s.updatedAt),
    )


def list_to_schema(lst: BoardList) -> ListSchema:
    return ListSchema(
        id=lst.id,
        boardId=lst.board_id,
        title=lst.title,
        cards=[card_to_schema(c) for c in lst.cards],
        position=lst.position,
        archived=lst.archived,
        createdAt=lst.created_at,
        updatedAt=lst.updated_at,
    )


def board_from_schema(s: BoardSchema) -> Board:
    return Board(
        id=s.id,
        title=s.title,
        background=s.background,
        lists=tuple(list_from_schema(x) for x in s.lists),
        created_at=as_utc(s.createdAt),
        updated_at=as_utc(s.updatedAt),
    )


def board_to_schema(b: Board) -> BoardSchema:
    return BoardSchema(
        id=b.id,
        title=b.title,
        background=b.background,
        lists=[list_to_schema(x) for x in b.lists],
        createdAt=b.created_at,
        updatedAt=b.updated_at,
    )


def state_out(state: BoardState) -> StateOut:
    return StateOut(
        boards=[board_to_schema(b) for b in state.boards],
        currentBoardId=state.current_board_id,
    )


# === Patch application ===


def board_changes(patch: BoardPatch) -> dict[str, Any]:
    changes: dict[str, Any] = {}
    fields = patch.model_fields_set
    if "title" in fields and patch.title is not None:
        changes["title"] = patch.title
    if "background" in fields and patch.background is not None:
        changes["background"] = patch.background
    return changes


def list_changes(patch: ListPatch) -> dict[str, Any]:
    changes: dict[str, Any] = {}
    fields = patch.model_fields_set
    if "title" in fields and patch.title is not None:
        changes["title"] = patch.title
    if "archived" in fields and patch.archived is not None:
        changes["archived"] = patch.archived
    return changes


def card_changes(patch: CardPatch) -> dict[str, Any]:
    changes: dict[str, Any] = {}
    fields = patch.model_fields_set
    if "dueDate" in fields:
        changes["due_date"] = as_utc(patch.dueDate) if patch.dueDate else None
    if "title" in fields and patch.title is not None:
        changes["title"] = patch.title
    if "description" in fields and patch.description is not None:
        changes["description"] = patch.description
    if "labels" in fields and patch.labels is not None:
        changes["labels"] = tuple(label_from_schema(x) for x in patch.labels)
    if "checklists" in fields and patch.checklists is not None:
        changes["checklists"] = tuple(checklist_from_schema(x) for x in patch.checklists)
    if "attachments" in fields and patch.attachments is not None:
        changes["attachments"] = tuple(attachment_from_schema(x) for x in patch.attachments)
    if "comments" in fields and patch.comments is not None:
        changes["comments"] = tuple(comment_from_schema(x) for x in patch.comments)
    if "assignedUsers" in fields and patch.assignedUsers is not None:
        changes["assigned_users"] = tuple(user_from_schema(x) for x in patch.assignedUsers)
    if "archived" in fields and patch.archived is not None:
        changes["archived"] = patch.archived
    return changes
