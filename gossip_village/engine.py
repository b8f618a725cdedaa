"""Game engine: the single owner of one session's GameState.

Operations mirror what the player can do:

    start_game(mode)                        generate and place the village
    perform_action(type, content, target)   queue an intervention, or
                                            interrogate immediately
    undo_last_action()                      pop the last queued intervention
    end_phase()                             ask the oracle, merge, advance time
    close_newspaper() / dismiss_interaction()

Completion is signalled through state changes, not return values; only an
interrogation also returns its one-shot InteractionResult.

The only suspension points are oracle calls. While one is in flight
`is_simulating` is set and start/end-phase/actions are refused. State is
replaced only after a successful oracle reply, so a failed call leaves the
roster, the log and the pending queue exactly as they were.
"""

from __future__ import annotations

import logging
import random

from gossip_village.config import ERROR_MESSAGES, LOCATION_MAP, MAX_ACTION_POINTS, WELCOME_MESSAGE
from gossip_village.ledger import ActionLedger
from gossip_village.llm import LLMError
from gossip_village.merger import merge
from gossip_village.models import (
    ActionType,
    ErrorKind,
    GameError,
    GameMode,
    GameState,
    IntelCard,
    InteractionResult,
    LogEntry,
)
from gossip_village.objectives import evaluate_objective, generate_objective
from gossip_village.oracle import Oracle
from gossip_village.placement import setup_village
from gossip_village.prompts import PromptError
from gossip_village.proposals import OracleError

logger = logging.getLogger(__name__)

_ORACLE_FAILURES = (LLMError, OracleError, PromptError)


def initial_state() -> GameState:
    return GameState(
        grid_map=[list(row) for row in LOCATION_MAP],
        action_points=MAX_ACTION_POINTS,
        logs=[LogEntry(day=0, phase="Morning", content=WELCOME_MESSAGE, type="System")],
    )


class GameEngine:
    def __init__(
        self,
        oracle: Oracle,
        *,
        rng: random.Random | None = None,
        state: GameState | None = None,
        villager_count: int = 10,
    ) -> None:
        self.oracle = oracle
        self._rng = rng or random.Random()
        self.villager_count = villager_count
        self.state = state or initial_state()

    @property
    def ledger(self) -> ActionLedger:
        return ActionLedger(self.state)

    @property
    def can_undo(self) -> bool:
        return bool(self.state.pending_actions) and not self.state.is_simulating

    def snapshot(self) -> GameState:
        return self.state.model_copy(deep=True)

    def _fail(self, kind: ErrorKind) -> None:
        self.state.error = GameError(kind=kind, message=ERROR_MESSAGES[kind])
        self.state.is_simulating = False

    # ------------------------------------------------------------------
    # Game start
    # ------------------------------------------------------------------

    async def start_game(self, mode: GameMode) -> None:
        if self.state.is_simulating:
            return
        self.state.is_simulating = True
        self.state.error = None
        try:
            raw = await self.oracle.generate_village(self.villager_count)
        except _ORACLE_FAILURES as e:
            logger.warning("village generation failed: %s", e)
            self._fail("generation_failed")
            return
        finally:
            self.state.is_simulating = False

        npcs, grid = setup_village(raw, LOCATION_MAP, self._rng)
        objective = generate_objective(mode, npcs, self._rng)
        intel = [
            IntelCard(
                type="Secret",
                content=f"{npc.name}'s secret: {npc.deep_secret}",
                source_id=npc.id,
                timestamp=1,
            )
            for npc in npcs
        ]
        welcome = [e for e in self.state.logs if e.day == 0]
        self.state = GameState(
            npcs=npcs,
            intel=intel,
            grid_map=grid,
            mode=mode,
            objective=objective,
            action_points=MAX_ACTION_POINTS,
            logs=welcome + [LogEntry(
                day=1,
                phase="Morning",
                content=f"The village stirs. Objective: {objective.description}",
                type="System",
            )],
        )
        logger.info("game started mode=%s villagers=%d", mode, len(npcs))

    # ------------------------------------------------------------------
    # Player actions
    # ------------------------------------------------------------------

    async def perform_action(
        self, action_type: ActionType, content: str, target_id: str | None = None
    ) -> InteractionResult | None:
        if self.state.is_simulating or self.state.outcome is not None:
            return None
        if not self.ledger.can_afford(action_type):
            return None
        if action_type == "INTERROGATE":
            return await self._interrogate(content, target_id)
        if self.ledger.record(action_type, content, target_id):
            self.state.error = None
        return None

    async def _interrogate(self, question: str, target_id: str | None) -> InteractionResult | None:
        npc = self.state.find_npc(target_id) if target_id else None
        if npc is None:
            logger.debug("interrogation without a known target %r ignored", target_id)
            return None

        self.state.is_simulating = True
        try:
            reply = await self.oracle.interact_with_npc(npc, question)
        except _ORACLE_FAILURES as e:
            logger.warning("interrogation of %s failed: %s", npc.name, e)
            self._fail("interaction_failed")
            return None
        finally:
            self.state.is_simulating = False

        self.ledger.spend("INTERROGATE")
        if reply.mood_change:
            npc.current_mood = reply.mood_change
        if reply.revealed_info:
            content = f"[Confession] {npc.name}: {reply.revealed_info}"
            if all(card.content != content for card in self.state.intel):
                self.state.intel.append(IntelCard(
                    type="Confession",
                    content=content,
                    source_id=npc.id,
                    timestamp=self.state.day,
                ))
        self.state.logs.append(LogEntry(
            day=self.state.day,
            phase=self.state.phase,
            content=f"You interrogated {npc.name}. They now seem {reply.mood_change or 'unmoved'}.",
            type="System",
        ))
        result = InteractionResult(npc_name=npc.name, question=question, reply=reply.reply)
        self.state.interaction = result
        self.state.error = None
        return result

    def undo_last_action(self) -> None:
        if self.state.is_simulating:
            return
        self.ledger.undo_last()
        self.state.error = None

    # ------------------------------------------------------------------
    # Phase advance
    # ------------------------------------------------------------------

    async def end_phase(self) -> None:
        if self.state.outcome is not None or self.state.is_simulating:
            return
        self.state.is_simulating = True
        self.state.error = None
        pending = self.ledger.flush()
        try:
            result = await self.oracle.simulate_phase(self.snapshot(), pending)
        except _ORACLE_FAILURES as e:
            logger.warning("simulation of day %d %s failed: %s", self.state.day, self.state.phase, e)
            self._fail("simulation_failed")
            return
        finally:
            self.state.is_simulating = False

        merged = merge(self.state.npcs, self.state.intel, result, self.state.day, self.state.phase)
        outcome = merged.outcome or evaluate_objective(self.state.objective, merged.npcs, merged.day)

        self.state = self.state.model_copy(update={
            "npcs": merged.npcs,
            "logs": self.state.logs + merged.logs,
            "intel": self.state.intel + merged.intel,
            "day": merged.day,
            "phase": merged.phase,
            "action_points": merged.action_points,
            "last_newspaper": merged.newspaper,
            "outcome": outcome,
            "pending_actions": [],
            "is_simulating": False,
            "error": None,
        })
        if outcome is not None:
            logger.info("game over: %s (%s)", outcome.result, outcome.reason)

    def close_newspaper(self) -> None:
        self.state.last_newspaper = None
        self.state.error = None

    def dismiss_interaction(self) -> None:
        self.state.interaction = None
        self.state.error = None
