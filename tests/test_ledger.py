"""Tests for the action ledger: costs, gating, undo and flush."""

import pytest

from gossip_village.ledger import ActionLedger, cost_of
from gossip_village.models import Character, GameState


@pytest.fixture
def state() -> GameState:
    return GameState(npcs=[Character(id="n1", name="Lin Yue")], action_points=3)


def test_costs():
    assert cost_of("WHISPER") == 1
    assert cost_of("BROADCAST") == 1
    assert cost_of("INTERROGATE") == 2


def test_record_queues_action_and_spends(state):
    ledger = ActionLedger(state)
    assert ledger.record("WHISPER", "Your master lies", "n1") == 1
    assert state.action_points == 2
    assert len(state.pending_actions) == 1
    assert state.logs[-1].content == 'You cast Secret Whisper upon [Lin Yue]: "Your master lies".'
    assert state.pending_actions[0].log_id == state.logs[-1].id


def test_broadcast_targets_everyone(state):
    ActionLedger(state).record("BROADCAST", "The well is poisoned", "n1")
    assert "[all villagers]" in state.logs[-1].content


def test_unknown_target_label(state):
    ActionLedger(state).record("INCEPTION", "Doubt", "ghost")
    assert "[unknown target]" in state.logs[-1].content


def test_record_rejected_without_points(state):
    state.action_points = 0
    ledger = ActionLedger(state)
    assert ledger.record("WHISPER", "x", "n1") == 0
    assert state.pending_actions == []
    assert state.logs == []


def test_points_never_go_negative(state):
    ledger = ActionLedger(state)
    for _ in range(5):
        ledger.record("WHISPER", "x", "n1")
    assert state.action_points == 0
    assert len(state.pending_actions) == 3


def test_interrogate_is_not_queued(state):
    with pytest.raises(ValueError):
        ActionLedger(state).record("INTERROGATE", "why?", "n1")


def test_spend(state):
    ledger = ActionLedger(state)
    assert ledger.spend("INTERROGATE") == 2
    assert state.action_points == 1
    assert not ledger.can_afford("INTERROGATE")
    assert ledger.spend("INTERROGATE") == 0
    assert state.action_points == 1


def test_undo_refunds_and_removes_log_line(state):
    ledger = ActionLedger(state)
    ledger.record("WHISPER", "first", "n1")
    ledger.record("FABRICATE", "second")
    assert ledger.undo_last() == 1
    assert state.action_points == 2
    assert [a.content for a in state.pending_actions] == ["first"]
    assert all("second" not in e.content for e in state.logs)
    assert any("first" in e.content for e in state.logs)


def test_undo_refund_capped_at_max(state):
    ledger = ActionLedger(state)
    ledger.record("WHISPER", "x", "n1")
    state.action_points = 3  # e.g. a phase advance refilled the pool
    assert ledger.undo_last() == 0
    assert state.action_points == 3


def test_undo_with_empty_queue(state):
    assert ActionLedger(state).undo_last() == 0
    assert state.action_points == 3


def test_undo_keeps_identical_log_lines(state):
    ledger = ActionLedger(state)
    ledger.record("WHISPER", "same", "n1")
    ledger.record("WHISPER", "same", "n1")
    ledger.undo_last()
    assert sum(1 for e in state.logs if "same" in e.content) == 1


def test_flush_shape(state):
    ledger = ActionLedger(state)
    ledger.record("WHISPER", "psst", "n1")
    ledger.record("BROADCAST", "news")
    assert ledger.flush() == [
        {"type": "WHISPER", "content": "psst", "targetId": "n1"},
        {"type": "BROADCAST", "content": "news"},
    ]
    ledger.clear()
    assert state.pending_actions == []
