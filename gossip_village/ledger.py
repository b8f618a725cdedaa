"""Action ledger: player interventions queued during the current phase.

Each queued action costs action points, appends a System log line, and
remembers that line's id so undo can remove exactly that entry.
Interrogation is never queued; the engine resolves it immediately and
pays for it through spend().
"""

from __future__ import annotations

import logging
from typing import Any

from gossip_village.config import ACTION_COSTS, DEFAULT_ACTION_COST, MAX_ACTION_POINTS
from gossip_village.models import ActionType, GameState, LogEntry, PendingAction

logger = logging.getLogger(__name__)

ACTION_LABELS: dict[str, str] = {
    "WHISPER": "Secret Whisper",
    "BROADCAST": "Jianghu Rumor",
    "FABRICATE": "Spread Falsehood",
    "INCEPTION": "Plant Inner Demon",
    "INTERROGATE": "Interrogation",
}

# These reach the whole village even when a target is given
_VILLAGE_WIDE = ("BROADCAST", "FABRICATE")


def cost_of(action_type: ActionType) -> int:
    return ACTION_COSTS.get(action_type, DEFAULT_ACTION_COST)


class ActionLedger:
    """Queue of pending player actions, operating on one GameState in place."""

    def __init__(self, state: GameState) -> None:
        self._state = state

    @property
    def pending(self) -> list[PendingAction]:
        return self._state.pending_actions

    def can_afford(self, action_type: ActionType) -> bool:
        return self._state.action_points >= cost_of(action_type)

    def target_label(self, action_type: ActionType, target_id: str | None) -> str:
        if action_type in _VILLAGE_WIDE or not target_id:
            return "all villagers"
        npc = self._state.find_npc(target_id)
        return npc.name if npc else "unknown target"

    def record(self, action_type: ActionType, content: str, target_id: str | None = None) -> int:
        """Queue an action. Returns the points spent, 0 when it was rejected."""
        if action_type == "INTERROGATE":
            raise ValueError("INTERROGATE is resolved immediately, use spend()")
        cost = cost_of(action_type)
        if self._state.action_points < cost:
            logger.debug("rejected %s: %d points left, needs %d",
                         action_type, self._state.action_points, cost)
            return 0

        target = self.target_label(action_type, target_id)
        entry = LogEntry(
            day=self._state.day,
            phase=self._state.phase,
            content=f'You cast {ACTION_LABELS[action_type]} upon [{target}]: "{content}".',
            type="System",
        )
        self._state.logs.append(entry)
        self._state.pending_actions.append(PendingAction(
            type=action_type, content=content, target_id=target_id,
            cost=cost, log_id=entry.id,
        ))
        self._state.action_points -= cost
        return cost

    def spend(self, action_type: ActionType) -> int:
        """Deduct the cost of an immediately resolved action. Returns 0 if unaffordable."""
        cost = cost_of(action_type)
        if self._state.action_points < cost:
            return 0
        self._state.action_points -= cost
        return cost

    def undo_last(self) -> int:
        """Drop the most recent queued action. Returns the points refunded."""
        if not self._state.pending_actions:
            return 0
        action = self._state.pending_actions.pop()
        before = self._state.action_points
        self._state.action_points = min(MAX_ACTION_POINTS, before + action.cost)
        if action.log_id:
            self._state.logs = [e for e in self._state.logs if e.id != action.log_id]
        return self._state.action_points - before

    def flush(self) -> list[dict[str, Any]]:
        """The queue as the oracle receives it: {type, content, targetId?}."""
        return [
            a.model_dump(by_alias=True, include={"type", "content", "target_id"}, exclude_none=True)
            for a in self._state.pending_actions
        ]

    def clear(self) -> None:
        self._state.pending_actions = []
