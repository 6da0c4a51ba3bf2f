"""Shared fixtures for the taskboard tests."""
from types import SimpleNamespace

import pytest

from taskboard.context import BoardContext
from taskboard.persistence import MemoryKeyValueStore, Persistence
from taskboard.store import BoardStore


def positions(items):
    return [item.position for item in items]


def titles(items):
    return [item.title for item in items]


def assert_consistent(boards):
    """Positions are 0..n-1, back-references match containment, ids unique."""
    ids = []
    for board in boards:
        ids.append(board.id)
        assert positions(board.lists) == list(range(len(board.lists)))
        for lst in board.lists:
            ids.append(lst.id)
            assert lst.board_id == board.id
            assert positions(lst.cards) == list(range(len(lst.cards)))
            for card in lst.cards:
                ids.append(card.id)
                assert card.list_id == lst.id
    assert len(ids) == len(set(ids))


@pytest.fixture
def store():
    return BoardStore()


@pytest.fixture
def tree(store):
    """Board B with L1=[C1, C2, C3] and L2=[C4]."""
    board = store.add_board("B")
    l1 = store.add_list(board.id, "L1")
    l2 = store.add_list(board.id, "L2")
    c1, c2, c3 = (store.add_card(l1.id, t) for t in ("C1", "C2", "C3"))
    c4 = store.add_card(l2.id, "C4")
    return SimpleNamespace(board=board, l1=l1, l2=l2, c1=c1, c2=c2, c3=c3, c4=c4)


@pytest.fixture
def kv():
    return MemoryKeyValueStore()


@pytest.fixture
def context(kv):
    return BoardContext(Persistence(kv))
