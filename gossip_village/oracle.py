"""Oracle client - the three LLM calls the game makes.

    generate_village(count)            once per game start
    simulate_phase(state, actions)     once per phase advance
    interact_with_npc(npc, question)   once per interrogation

Each call renders a Handlebars prompt, sends it to the injected LLM with
retry and exponential backoff, and validates the reply through
gossip_village.proposals. A call that still fails after the last attempt
raises LLMError (transport) or OracleError (unusable payload); the engine
turns either into a retryable error state.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from typing import Any

from gossip_village.llm import LLM, LLMError, with_retry
from gossip_village.models import Character, GameState
from gossip_village.placement import ZONES
from gossip_village.prompts import (
    INTERROGATION_PROMPT,
    INTERROGATION_SCHEMA,
    SIMULATION_PROMPT,
    SIMULATION_SCHEMA,
    VILLAGE_PROMPT,
    VILLAGE_SCHEMA,
    render_prompt,
)
from gossip_village.proposals import (
    InteractionReply,
    OracleError,
    SimulationResult,
    VillagerDraft,
    parse_interaction,
    parse_simulation,
    parse_village,
)

logger = logging.getLogger(__name__)


def draft_to_character(draft: VillagerDraft, char_id: str) -> Character:
    """A freshly generated villager: placeholder position, no relationships."""
    return Character(
        id=char_id,
        status="Normal",
        relationships=[],
        **draft.model_dump(),
    )


class Oracle:
    def __init__(self, llm: LLM, retries: int = 3, retry_delay: float = 1.0) -> None:
        self._llm = llm
        self._retries = retries
        self._retry_delay = retry_delay

    async def _ask(self, stage: str, prompt: str, parse):
        async def attempt():
            return parse(await self._llm(stage, prompt))

        return await with_retry(
            attempt,
            retries=self._retries,
            delay=self._retry_delay,
            retry_on=(LLMError, OracleError),
        )

    # ------------------------------------------------------------------
    # Village generation
    # ------------------------------------------------------------------

    async def generate_village(self, count: int) -> list[Character]:
        prompt = render_prompt(VILLAGE_PROMPT, {
            "count": count,
            "zones": ", ".join(f'"{z}"' for z in ZONES),
            "schema": VILLAGE_SCHEMA,
        })
        drafts: list[VillagerDraft] = await self._ask("village", prompt, parse_village)
        batch = uuid.uuid4().hex[:8]
        villagers = [draft_to_character(d, f"npc-{batch}-{i}") for i, d in enumerate(drafts)]
        logger.info("generated %d villagers (asked for %d)", len(villagers), count)
        return villagers

    # ------------------------------------------------------------------
    # Phase simulation
    # ------------------------------------------------------------------

    async def simulate_phase(
        self, state: GameState, pending_actions: Sequence[dict[str, Any]]
    ) -> SimulationResult:
        prompt = render_prompt(SIMULATION_PROMPT, simulation_context(state, pending_actions))
        return await self._ask("simulation", prompt, parse_simulation)

    # ------------------------------------------------------------------
    # Interrogation
    # ------------------------------------------------------------------

    async def interact_with_npc(self, npc: Character, question: str) -> InteractionReply:
        prompt = render_prompt(INTERROGATION_PROMPT, {
            "name": npc.name,
            "role": npc.role,
            "secret": npc.deep_secret,
            "status": npc.status,
            "hp": npc.hp,
            "mp": npc.mp,
            "san": npc.san,
            "relationships": [r.model_dump() for r in npc.relationships],
            "question": question,
            "schema": INTERROGATION_SCHEMA,
        })
        return await self._ask("interrogation", prompt, parse_interaction)


def simulation_context(state: GameState, pending_actions: Sequence[dict[str, Any]]) -> dict:
    """Template context for one phase: roster summary plus queued player actions."""
    npcs = []
    for npc in state.npcs:
        x, y = npc.position.x, npc.position.y
        location = state.grid_map[y][x] if state.grid_map else ""
        npcs.append({
            "name": npc.name,
            "role": npc.role,
            "status": npc.status,
            "hp": npc.hp,
            "mp": npc.mp,
            "san": npc.san,
            "x": x,
            "y": y,
            "location": location,
            "relationships": ", ".join(
                f"{r.target_name}[{r.type}:{r.affinity}]" for r in npc.relationships
            ),
        })

    actions = []
    for action in pending_actions:
        target_id = action.get("targetId")
        target = state.find_npc(target_id) if target_id else None
        actions.append({
            "type": action["type"],
            "target": target.name if target else (target_id or "Global"),
            "content": action["content"],
        })

    return {
        "day": state.day,
        "phase": state.phase,
        "npcs": npcs,
        "actions": actions,
        "objective": state.objective.description if state.objective else "Sandbox",
        "schema": SIMULATION_SCHEMA,
    }
