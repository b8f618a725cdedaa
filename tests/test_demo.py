"""Tests for demo session creation."""

from backend import sessions
from backend.demo import DEMO_SESSION_ID, create_demo_data


def test_create_demo_data():
    session_id = create_demo_data()
    assert session_id == DEMO_SESSION_ID

    state = sessions.storage().get_state(DEMO_SESSION_ID)
    assert [n.name for n in state.npcs] == ["Li Fu", "Qiu Yeqing"]
    li, qiu = state.npcs
    assert li.relationship_to(qiu.id).type == "Lover"
    assert qiu.relationship_to(li.id).type == "Lover"
    assert len(state.intel) == 2
    assert state.objective.mode == "Sandbox"


def test_demo_is_replaced_not_duplicated():
    create_demo_data()
    create_demo_data()
    assert sessions.list_sessions() == [DEMO_SESSION_ID]


def test_demo_session_is_playable():
    create_demo_data()
    engine = sessions.get_engine(DEMO_SESSION_ID)
    assert engine is not None
    assert engine.state.action_points == 3
    assert not engine.state.is_simulating
