"""Create a demo session without contacting the LLM.

Usage: python main.py --demo

Seeds a "demo" session from a canned two-villager roster that goes through
the regular placement pipeline, so the map, reciprocal relationships and
secret intel look exactly like a generated game.
"""

import logging
import random

from backend import sessions
from gossip_village.config import LOCATION_MAP, MAX_ACTION_POINTS
from gossip_village.models import Character, GameState, IntelCard, LogEntry
from gossip_village.objectives import generate_objective
from gossip_village.placement import setup_village

logger = logging.getLogger(__name__)

DEMO_SESSION_ID = "demo"

DEMO_VILLAGERS = [
    Character(
        id="demo-1",
        name="Li Fu",
        age=28,
        gender="Male",
        role="Strategist",
        public_persona="A wandering scholar who always has a plan.",
        deep_secret="He is plotting to overturn the whole martial world.",
        life_goal="Find the Nine Heavens Armory Manual.",
        current_mood="Brooding",
        hp=90,
        mp=95,
        san=10,
        spawn_zone="Secluded",
        initial_connection_name="Qiu Yeqing",
        initial_connection_type="Lover",
    ),
    Character(
        id="demo-2",
        name="Qiu Yeqing",
        age=24,
        gender="Female",
        role="Swordswoman",
        public_persona="Gentle and attentive, never far from Li Fu.",
        deep_secret="She suspects Li Fu's scheme and is torn inside.",
        life_goal="Retire to the mountains with Li Fu.",
        current_mood="Worried",
        hp=80,
        mp=60,
        san=20,
        spawn_zone="Secluded",
    ),
]


def create_demo_data(seed: int = 7) -> str:
    """Write the demo session to storage, replacing any previous one."""
    rng = random.Random(seed)
    sessions.delete_session(DEMO_SESSION_ID)

    npcs, grid = setup_village(DEMO_VILLAGERS, LOCATION_MAP, rng)
    objective = generate_objective("Sandbox", npcs, rng)
    state = GameState(
        npcs=npcs,
        grid_map=grid,
        objective=objective,
        action_points=MAX_ACTION_POINTS,
        intel=[
            IntelCard(
                type="Secret",
                content=f"{npc.name}'s secret: {npc.deep_secret}",
                source_id=npc.id,
                timestamp=1,
            )
            for npc in npcs
        ],
        logs=[LogEntry(day=1, phase="Morning", content="A quiet morning in the demo village.", type="System")],
    )
    sessions.storage().save_state(DEMO_SESSION_ID, state)
    logger.info("demo session written to %s", sessions.data_dir())
    return DEMO_SESSION_ID
