from __future__ import annotations

import logging
from typing import Protocol

from .schemas import DragResult

logger = logging.getLogger(__name__)


class MoveTarget(Protocol):
    def move_list(self, board_id: str, source_index: int, destination_index: int) -> None: ...

    def move_card(
        self,
        source_list_id: str,
        destination_list_id: str,
        source_index: int,
        destination_index: int,
    ) -> None: ...


def resolve_drag(target: MoveTarget, result: DragResult) -> bool:
    """Route a finished drag gesture to ``move_list`` or ``move_card``.

    Dropping outside any container, or back onto the starting slot, does
    nothing. Returns True when a move was dispatched.
    """
    if result.destinationContainerId is None:
        logger.debug("Drop cancelled for %s %d", result.itemType, result.sourceIndex)
        return False
    if (
        result.destinationContainerId == result.sourceContainerId
        and result.destinationIndex == result.sourceIndex
    ):
        return False

    if result.itemType == "list":
        # lists only move within their board; the container id is the board id
        target.move_list(result.sourceContainerId, result.sourceIndex, result.destinationIndex)
    else:
        target.move_card(
            result.sourceContainerId,
            result.destinationContainerId,
            result.sourceIndex,
            result.destinationIndex,
        )
    return True
