"""Session objectives and local win/loss evaluation."""

from __future__ import annotations

import logging
import random
from collections.abc import Sequence

from gossip_village.config import OBJECTIVE_DEADLINE_DAY
from gossip_village.models import Character, GameMode, GameObjective, GameOutcome

logger = logging.getLogger(__name__)

_SANDBOX = GameObjective(
    mode="Sandbox",
    description="Free sandbox. Watch the many faces of the jianghu.",
)


def generate_objective(
    mode: GameMode, roster: Sequence[Character], rng: random.Random | None = None
) -> GameObjective:
    """Pick the single active objective for a new session.

    Targets come from a shuffled copy of the roster. A roster too small for
    the chosen mode falls back to the sandbox objective.
    """
    rng = rng or random.Random()
    shuffled = list(roster)
    rng.shuffle(shuffled)

    if mode == "Matchmaker":
        if len(shuffled) < 2:
            logger.warning("Matchmaker needs two villagers, got %d; using sandbox", len(shuffled))
            return _SANDBOX
        a, b = shuffled[0], shuffled[1]
        return GameObjective(
            mode="Matchmaker",
            target_ids=(a.id, b.id),
            description=(
                f"Matchmaker: bring {a.name} and {b.name} together as "
                "immortal sweethearts (relationship: Lover)."
            ),
            deadline_day=OBJECTIVE_DEADLINE_DAY,
        )

    if mode == "Detective":
        if not shuffled:
            logger.warning("Detective needs a culprit, roster is empty; using sandbox")
            return _SANDBOX
        culprit = shuffled[0]
        return GameObjective(
            mode="Detective",
            target_ids=(culprit.id,),
            description=(
                "Detective: unmask the Villain Valley spy. "
                f"{culprit.name} is the infiltrator. Flush out the truth with rumors, "
                "then broadcast the correct accusation."
            ),
            deadline_day=OBJECTIVE_DEADLINE_DAY,
        )

    if mode == "Chaos":
        return GameObjective(
            mode="Chaos",
            description=(
                f"Chaos: within {OBJECTIVE_DEADLINE_DAY} days, leave more than half of the "
                "villagers dead, jailed, or gone from the jianghu."
            ),
            deadline_day=OBJECTIVE_DEADLINE_DAY,
        )

    return _SANDBOX


def _are_lovers(a: Character, b: Character) -> bool:
    ab = a.relationship_to(b.id)
    ba = b.relationship_to(a.id)
    return ab is not None and ba is not None and ab.type == "Lover" and ba.type == "Lover"


def evaluate_objective(
    objective: GameObjective | None, roster: Sequence[Character], day: int
) -> GameOutcome | None:
    """Return the outcome the roster already decides, or None to keep playing.

    Detective victories depend on the player's accusation and are left to
    the oracle.
    """
    if objective is None or objective.mode == "Sandbox":
        return None

    if objective.mode == "Chaos" and roster:
        fallen = sum(1 for c in roster if c.is_inactive)
        if fallen * 2 > len(roster):
            return GameOutcome(
                result="Victory",
                reason=f"{fallen} of {len(roster)} villagers have fallen. Chaos reigns.",
            )

    if objective.mode == "Matchmaker" and len(objective.target_ids) == 2:
        by_id = {c.id: c for c in roster}
        a = by_id.get(objective.target_ids[0])
        b = by_id.get(objective.target_ids[1])
        if a is not None and b is not None and _are_lovers(a, b):
            return GameOutcome(
                result="Victory",
                reason=f"{a.name} and {b.name} are now lovers.",
            )

    if objective.deadline_day is not None and day > objective.deadline_day:
        return GameOutcome(
            result="Defeat",
            reason=f"Day {objective.deadline_day} has passed and the objective is unmet.",
        )
    return None
