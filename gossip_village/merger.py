"""Simulation result merger.

Turns one validated SimulationResult into the next authoritative roster,
log stream and intel list. The oracle only proposes; this module decides:

  relationships  update the existing edge to a target (clamped) or create
                 one; a "None" type never erases an established bond
  stats          hp/mp/san deltas clamped to [0, 100]; mp growth is logged
  status         terminal statuses are locked forever; otherwise hp and san
                 thresholds override whatever status the oracle suggested
  position       frozen for inactive characters; off-grid moves dropped
  mood           replaced when proposed

merge() is pure: it never mutates its inputs and never raises on unknown
names or missing fields, those proposals are simply skipped.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from pydantic import BaseModel, Field

from gossip_village import clock
from gossip_village.config import (
    INJURY_HP,
    MAX_ACTION_POINTS,
    QI_DEVIATION_SAN,
    QI_RECOVERY_SAN,
)
from gossip_village.models import (
    GRID_SIZE,
    INACTIVE_STATUSES,
    Character,
    DailyNews,
    GameOutcome,
    IntelCard,
    LogEntry,
    Phase,
    Position,
    Relationship,
    Status,
    clamp,
)
from gossip_village.proposals import (
    RelationshipDelta,
    SimulationResult,
    StatDelta,
    StatusProposal,
)

logger = logging.getLogger(__name__)


class MergeResult(BaseModel):
    npcs: list[Character]
    logs: list[LogEntry] = Field(default_factory=list)
    intel: list[IntelCard] = Field(default_factory=list)
    day: int
    phase: Phase
    action_points: int = MAX_ACTION_POINTS
    newspaper: DailyNews | None = None
    outcome: GameOutcome | None = None


def compute_status(previous: Status, proposed: Status | None, hp: int, san: int) -> tuple[Status, int]:
    """Resolve a character's status. Returns (status, hp).

    Strict priority, exactly one rule applies: terminal lock, death,
    injury, qi deviation, then the two recoveries.
    """
    if previous in INACTIVE_STATUSES:
        return previous, hp
    status = proposed or previous
    if hp <= 0:
        return "Dead", 0
    if hp < INJURY_HP:
        return "Injured", hp
    if san >= QI_DEVIATION_SAN:
        return "QiDeviated", hp
    if status == "Injured":
        return "Normal", hp
    if status == "QiDeviated" and san < QI_RECOVERY_SAN:
        return "Normal", hp
    return status, hp


def _merge_relationships(
    npc: Character, deltas: Sequence[RelationshipDelta], by_name: dict[str, Character]
) -> list[Relationship]:
    relationships = [r.model_copy(deep=True) for r in npc.relationships]
    for delta in deltas:
        target = by_name.get(delta.target_name)
        if target is None or target.id == npc.id:
            logger.debug("skipped relationship %s -> %r", npc.name, delta.target_name)
            continue
        proposed_type = delta.new_type or "None"
        existing = next((r for r in relationships if r.target_id == target.id), None)
        if existing is not None:
            existing.affinity = clamp(existing.affinity + delta.affinity_change, -100, 100)
            existing.trust = clamp(existing.trust + delta.trust_change, 0, 100)
            if proposed_type != "None":
                existing.type = proposed_type
        else:
            relationships.append(Relationship(
                target_id=target.id,
                target_name=target.name,
                type=proposed_type,
                affinity=delta.affinity_change,
                trust=50 + delta.trust_change,
            ))
    return relationships


def _merge_position(
    npc: Character, status: Status, proposal: StatusProposal | None
) -> Position:
    if npc.status in INACTIVE_STATUSES or status in INACTIVE_STATUSES:
        return npc.position
    if proposal is None or proposal.new_position is None:
        return npc.position
    x, y = proposal.new_position.x, proposal.new_position.y
    if 0 <= x < GRID_SIZE and 0 <= y < GRID_SIZE:
        return Position(x=x, y=y)
    logger.debug("dropped off-grid move for %s to (%d, %d)", npc.name, x, y)
    return npc.position


def _growth_log(npc: Character, stats: StatDelta | None, day: int, phase: Phase) -> LogEntry | None:
    if stats is None or stats.mp_change <= 0:
        return None
    return LogEntry(
        day=day,
        phase=phase,
        npc_name=npc.name,
        content=(
            f"{npc.name} makes a breakthrough in the martial arts! "
            f"Martial power +{stats.mp_change}."
        ),
        type="System",
    )


def _narrative_logs(result: SimulationResult, day: int, phase: Phase) -> list[LogEntry]:
    entries = []
    for item in result.logs:
        if item.thought and item.action:
            content = f"{item.thought} (Action: {item.action})"
        else:
            content = item.thought or item.action
        if not content:
            continue
        entries.append(LogEntry(
            day=day,
            phase=phase,
            npc_name=item.npc_name or None,
            content=content,
            type="Thought" if item.thought else "Action",
        ))
    return entries


def _new_intel(
    result: SimulationResult,
    history: Sequence[IntelCard],
    by_name: dict[str, Character],
    day: int,
) -> list[IntelCard]:
    seen = {card.content for card in history}
    cards = []
    for item in result.new_intel:
        if item.content in seen:
            continue
        seen.add(item.content)
        source = by_name.get(item.source_name or "")
        cards.append(IntelCard(
            type=item.type or "Rumor",
            content=item.content,
            source_id=source.id if source else "simulation",
            timestamp=day,
        ))
    return cards


def merge(
    npcs: Sequence[Character],
    intel: Sequence[IntelCard],
    result: SimulationResult,
    day: int,
    phase: Phase,
) -> MergeResult:
    """Apply one phase of oracle proposals and advance the clock."""
    by_name: dict[str, Character] = {}
    for npc in npcs:
        by_name.setdefault(npc.name, npc)

    logs = _narrative_logs(result, day, phase)
    growth: list[LogEntry] = []
    updated: list[Character] = []

    for npc in npcs:
        proposal = result.status_for(npc.name)
        stats = result.stats_for(npc.name)

        relationships = _merge_relationships(npc, result.relationships_from(npc.name), by_name)

        hp, mp, san = npc.hp, npc.mp, npc.san
        if stats is not None:
            hp = clamp(hp + stats.hp_change, 0, 100)
            mp = clamp(mp + stats.mp_change, 0, 100)
            san = clamp(san + stats.san_change, 0, 100)
            entry = _growth_log(npc, stats, day, phase)
            if entry is not None:
                growth.append(entry)

        status, hp = compute_status(npc.status, proposal.status if proposal else None, hp, san)
        if status != npc.status:
            logger.info("%s: %s -> %s", npc.name, npc.status, status)

        mood = proposal.mood if proposal and proposal.mood else npc.current_mood

        updated.append(npc.model_copy(update={
            "status": status,
            "hp": hp,
            "mp": mp,
            "san": san,
            "current_mood": mood,
            "position": _merge_position(npc, status, proposal),
            "relationships": relationships,
        }, deep=True))

    newspaper = result.newspaper
    if newspaper is not None and not newspaper.headline.strip():
        newspaper = None

    next_day, next_phase = clock.advance(day, phase)

    return MergeResult(
        npcs=updated,
        logs=logs + growth,
        intel=_new_intel(result, intel, by_name, day),
        day=next_day,
        phase=next_phase,
        action_points=MAX_ACTION_POINTS,
        newspaper=newspaper,
        outcome=result.game_outcome,
    )
