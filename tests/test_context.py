"""
Tests for the board context: startup selection, write-through, subscribers.
"""
import json
import logging
import threading

import pytest

from conftest import titles
from taskboard.config import BOARDS_STORAGE_KEY, CURRENT_BOARD_KEY, DEFAULT_BOARD_TITLE
from taskboard.context import BoardContext
from taskboard.errors import NotFoundError
from taskboard.persistence import MemoryKeyValueStore, Persistence
from taskboard.schemas import BoardPatch, CardPatch, ListPatch


def stored_boards(kv):
    return json.loads(kv.items[BOARDS_STORAGE_KEY])


def stored_current(kv):
    return json.loads(kv.items[CURRENT_BOARD_KEY])


def reopen(kv):
    return BoardContext(Persistence(kv))


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Startup
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_empty_storage_creates_default_board(context, kv):
    assert len(context.boards) == 1
    board = context.current_board
    assert board.title == DEFAULT_BOARD_TITLE
    assert board.background == "bg-blue-100"
    assert stored_current(kv) == board.id
    assert stored_boards(kv)[0]["id"] == board.id


def test_unknown_selection_falls_back_to_first_board(context, kv):
    second = context.add_board("Second")
    kv.items[CURRENT_BOARD_KEY] = json.dumps("gone")
    reopened = reopen(kv)
    assert reopened.current_board_id == context.boards[0].id
    assert [b.id for b in reopened.boards] == [context.boards[0].id, second.id]


def test_valid_selection_is_kept(context, kv):
    second = context.add_board("Second")
    context.set_current_board(second.id)
    assert reopen(kv).current_board_id == second.id


def test_corrupt_storage_starts_fresh(kv, caplog):
    kv.items[BOARDS_STORAGE_KEY] = "]]"
    with caplog.at_level(logging.WARNING):
        context = reopen(kv)
    assert len(context.boards) == 1
    assert "Failed to load" in caplog.text


def test_loading_repairs_stale_positions(context, kv):
    board = context.current_board
    context.add_list(board.id, "A")
    context.add_list(board.id, "B")
    raw = stored_boards(kv)
    raw[0]["lists"][1]["position"] = 7
    kv.items[BOARDS_STORAGE_KEY] = json.dumps(raw)

    reopened = reopen(kv)

    assert [lst.position for lst in reopened.current_board.lists] == [0, 1]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Commands
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_commands_write_through(context, kv):
    board = context.current_board
    lst = context.add_list(board.id, "Todo")
    card = context.add_card(lst.id, "Write tests")
    context.update_card(card.id, CardPatch(description="all of them"))

    reopened = reopen(kv)
    stored = reopened.store.get_card(card.id)
    assert stored.description == "all of them"
    assert reopened.store.get_list(lst.id).title == "Todo"


def test_titles_are_stripped_and_blank_titles_skipped(context):
    board = context.current_board
    before = context.state
    assert context.add_board("   ") is None
    assert context.add_list(board.id, "") is None
    assert context.state is before

    lst = context.add_list(board.id, "  Todo  ")
    assert lst.title == "Todo"
    assert context.add_card(lst.id, " \t") is None
    assert context.store.get_list(lst.id).cards == ()


def test_add_card_to_missing_list_raises(context):
    before = context.state
    with pytest.raises(NotFoundError):
        context.add_card("missing-list", "x")
    assert context.state is before


def test_set_current_board_requires_existing_board(context):
    with pytest.raises(NotFoundError):
        context.set_current_board("nope")


def test_deleting_selected_board_selects_first_remaining(context, kv):
    first = context.current_board
    second = context.add_board("Second")
    third = context.add_board("Third")
    context.set_current_board(second.id)

    context.delete_board(second.id)
    assert context.current_board_id == first.id

    context.delete_board(third.id)
    assert context.current_board_id == first.id

    context.delete_board(first.id)
    assert context.current_board_id == ""
    assert context.current_board is None
    assert stored_current(kv) == ""
    assert stored_boards(kv) == []


def test_move_and_archive_commands(context):
    board = context.current_board
    todo = context.add_list(board.id, "Todo")
    done = context.add_list(board.id, "Done")
    a = context.add_card(todo.id, "A")
    context.add_card(todo.id, "B")

    context.move_card(todo.id, done.id, 0, 0)
    context.move_list(board.id, 1, 0)
    context.archive_card(a.id)
    context.archive_list(todo.id)

    lists = context.current_board.lists
    assert titles(lists) == ["Done", "Todo"]
    assert lists[0].cards[0].archived is True
    assert lists[1].archived is True

    context.restore_card(a.id)
    context.restore_list(todo.id)
    context.update_list(todo.id, ListPatch(title="Later"))
    assert titles(context.current_board.lists) == ["Done", "Later"]


def test_apply_drag_accepts_raw_gesture_payload(context):
    board = context.current_board
    todo = context.add_list(board.id, "Todo")
    done = context.add_list(board.id, "Done")
    context.add_card(todo.id, "A")

    moved = context.apply_drag(
        {
            "sourceContainerId": todo.id,
            "destinationContainerId": done.id,
            "sourceIndex": 0,
            "destinationIndex": 0,
            "itemType": "card",
        }
    )

    assert moved is True
    assert titles(context.store.get_list(done.id).cards) == ["A"]
    assert context.apply_drag(
        {"sourceContainerId": done.id, "sourceIndex": 0, "destinationIndex": 0, "itemType": "card"}
    ) is False


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Subscribers
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_subscribers_receive_snapshots(context):
    seen = []
    unsubscribe = context.subscribe(seen.append)
    board = context.current_board

    context.update_board(board.id, BoardPatch(title="Renamed"))
    assert len(seen) == 1
    assert seen[0].current_board.title == "Renamed"
    assert seen[0] is context.state

    unsubscribe()
    context.update_board(board.id, BoardPatch(title="Again"))
    assert len(seen) == 1


def test_noop_commands_do_not_notify(context):
    seen = []
    context.subscribe(seen.append)
    board = context.current_board
    context.add_list(board.id, "A")
    context.add_list(board.id, "B")
    seen.clear()

    context.move_list(board.id, 1, 1)
    context.delete_card("nope")
    assert seen == []


def test_failing_subscriber_does_not_abort_command(context, caplog):
    def broken(state):
        raise RuntimeError("render failed")

    seen = []
    context.subscribe(broken)
    context.subscribe(seen.append)
    with caplog.at_level(logging.ERROR):
        lst = context.add_list(context.current_board_id, "Todo")
    assert lst is not None
    assert len(seen) == 1
    assert "render failed" in caplog.text


def test_commands_from_subscribers_are_queued(context):
    seen = []

    def on_change(state):
        seen.append(state)
        lists = state.current_board.lists
        if len(lists) == 1 and not lists[0].cards:
            assert context.add_card(lists[0].id, "follow-up") is None

    context.subscribe(on_change)
    lst = context.add_list(context.current_board_id, "Todo")

    assert lst.title == "Todo"
    assert len(seen) == 2
    assert seen[0].current_board.lists[0].cards == ()
    assert titles(seen[1].current_board.lists[0].cards) == ["follow-up"]


def test_failed_queued_command_is_logged(context, caplog):
    def on_change(state):
        context.add_card("missing-list", "x")

    unsubscribe = context.subscribe(on_change)
    with caplog.at_level(logging.WARNING):
        context.add_board("Other")
    unsubscribe()
    assert "Queued command failed" in caplog.text


def test_unexpected_error_in_queued_command_does_not_strand_the_queue(context, caplog):
    lst = context.add_list(context.current_board_id, "Todo")
    card = context.add_card(lst.id, "A")
    queued = []

    def on_change(state):
        if not queued:
            queued.append(True)
            context.update_card(card.id, object())
            context.add_card(lst.id, "after")

    unsubscribe = context.subscribe(on_change)
    with caplog.at_level(logging.ERROR):
        context.add_board("Other")
    unsubscribe()

    assert titles(context.store.get_list(lst.id).cards) == ["A", "after"]
    assert "Queued command failed" in caplog.text
    context.add_board("Third")
    assert titles(context.store.get_list(lst.id).cards) == ["A", "after"]


def test_storage_failures_do_not_break_commands(caplog):
    class FullStore(MemoryKeyValueStore):
        def set_item(self, key, value):
            raise OSError("quota exceeded")

    with caplog.at_level(logging.ERROR):
        context = BoardContext(Persistence(FullStore()))
        lst = context.add_list(context.current_board_id, "Todo")
    assert context.store.get_list(lst.id).title == "Todo"
    assert "quota exceeded" in caplog.text


def test_update_commands_return_the_committed_entity(context):
    board = context.current_board
    lst = context.add_list(board.id, "Todo")
    card = context.add_card(lst.id, "A")

    assert context.update_board(board.id, BoardPatch(title="Renamed")).title == "Renamed"
    assert context.update_list(lst.id, ListPatch(title="Doing")).title == "Doing"
    assert context.archive_list(lst.id).archived is True
    assert context.restore_list(lst.id).archived is False
    assert context.update_card(card.id, CardPatch(description="d")).description == "d"
    assert context.archive_card(card.id).archived is True
    assert context.restore_card(card.id).archived is False
    context.add_list(board.id, "Done")
    assert titles(context.move_list(board.id, 1, 0).lists) == ["Done", "Doing"]


def test_commands_from_many_threads_are_all_applied(context, kv):
    lst = context.add_list(context.current_board_id, "Todo")
    seen = []
    context.subscribe(seen.append)
    created = []

    def create_cards(worker):
        for n in range(50):
            created.append(context.add_card(lst.id, f"w{worker}-{n}"))

    threads = [threading.Thread(target=create_cards, args=(w,)) for w in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(created) == 400
    assert None not in created
    cards = context.store.get_list(lst.id).cards
    assert {c.id for c in cards} == {c.id for c in created}
    assert [c.position for c in cards] == list(range(400))
    assert len(seen) == 400
    assert len(stored_boards(kv)[0]["lists"][0]["cards"]) == 400
