"""Placement engine - puts freshly generated villagers on the 4x4 map.

Three ordered passes, each touching only characters not yet placed:

  1. Fixed roles   - a role keyword (chief, smith, doctor, ...) pins the
                     character to that role's canonical cell.
  2. Relationships - run twice so chains (A -> B -> C) resolve. A character
                     whose initial connection is already placed lands in the
                     same cell or next to it, depending on the bond.
                     Enemies are never pulled together here.
  3. Zone fallback - everyone left goes to the least-occupied cell of their
                     spawn zone (whole grid when no zone). A connection target
                     still unplaced at this point is placed first.

Afterwards each resident's cell may be renamed after them ("Chief's
Residence", "Li's Smithy"). Residents sharing a cell overwrite each other in
roster order; the last one wins.

setup_village() runs placement and then materialises the initial
relationship edges on both ends.

All randomness comes from the injected random.Random so tests can seed it.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable, Sequence

from gossip_village.models import GRID_SIZE, Character, Position, Relationship

logger = logging.getLogger(__name__)

Cell = tuple[int, int]  # (x, y)

ZONES: dict[str, list[Cell]] = {
    "Market": [(0, 2), (1, 2), (2, 2), (3, 2)],
    "Official": [(2, 1), (1, 1), (0, 0)],
    "Temple": [(0, 1), (3, 1), (3, 0)],
    "Secluded": [(3, 3), (1, 3), (2, 0), (2, 3)],
}

ALL_CELLS: list[Cell] = [(x, y) for y in range(GRID_SIZE) for x in range(GRID_SIZE)]

# First match wins. Chinese keywords cover villagers generated in Chinese.
ROLE_LOCATIONS: list[tuple[tuple[str, ...], Cell]] = [
    (("chief", "leader", "村长", "盟主"), (2, 1)),
    (("smith", "铁匠", "藏剑"), (0, 2)),
    (("doctor", "physician", "healer", "herbalist", "医", "万花", "药"), (3, 1)),
    (("tavern", "innkeeper", "waiter", "酒", "栈", "小二"), (1, 2)),
    (("hunter", "猎"), (0, 3)),
    (("taoist", "priest", "道", "纯阳"), (0, 1)),
]


def _surname(name: str) -> str:
    name = name.strip()
    if " " in name:
        return name.split()[0]
    return name[:1]


CELL_RENAMES: list[tuple[tuple[str, ...], Callable[[Character], str]]] = [
    (("chief", "leader", "村长", "盟主"), lambda c: "Chief's Residence"),
    (("smith", "铁匠", "藏剑"), lambda c: f"{_surname(c.name)}'s Smithy"),
    (("doctor", "physician", "healer", "医", "万花"), lambda c: "Herbal Clinic"),
    (("tavern", "innkeeper", "酒", "栈"), lambda c: "Rice Fragrance Tavern"),
    (("beggar", "丐"), lambda c: "Ruined Shrine"),
    (("soldier", "general", "天策", "军"), lambda c: "Drill Ground"),
    (("five venoms", "五毒"), lambda c: "Miao Forbidden Grounds"),
    (("taoist", "priest", "纯阳", "道"), lambda c: "Taoist Temple"),
]

# (affinity, trust) seeds for initial connections
RELATIONSHIP_SEEDS: dict[str, tuple[int, int]] = {
    "Lover": (80, 90),
    "Enemy": (-80, 0),
    "Master": (50, 80),
    "Disciple": (50, 60),
    "Family": (60, 80),
}
DEFAULT_SEED = (0, 50)

RECIPROCAL_TYPES: dict[str, str] = {
    "Lover": "Lover",
    "Enemy": "Enemy",
    "Family": "Family",
    "Master": "Disciple",
    "Disciple": "Master",
}

_CLOSE_BONDS = ("Lover", "Master", "Disciple")


def _matches(role: str, keywords: Sequence[str]) -> bool:
    role = role.lower()
    return any(k in role for k in keywords)


class _Placer:
    """Occupancy bookkeeping for a single placement run."""

    def __init__(self, rng: random.Random) -> None:
        self.rng = rng
        self.assignments: dict[str, Cell] = {}
        self.occupancy: dict[Cell, int] = {}

    def place(self, char_id: str, cell: Cell) -> None:
        self.assignments[char_id] = cell
        self.occupancy[cell] = self.occupancy.get(cell, 0) + 1

    def is_placed(self, char_id: str) -> bool:
        return char_id in self.assignments

    def best_slot(self, zone: str | None) -> Cell:
        """Least-occupied cell of the zone; ties broken randomly."""
        candidates = ZONES.get(zone or "") or ALL_CELLS
        lowest = min(self.occupancy.get(c, 0) for c in candidates)
        return self.rng.choice([c for c in candidates if self.occupancy.get(c, 0) == lowest])

    def near(self, center: Cell, same: bool) -> Cell:
        if same:
            return center
        x, y = center
        neighbours = [
            (x + dx, y + dy)
            for dx, dy in ((0, 1), (0, -1), (1, 0), (-1, 0))
            if 0 <= x + dx < GRID_SIZE and 0 <= y + dy < GRID_SIZE
        ]
        if not neighbours:
            return center
        return self.rng.choice(neighbours)


def _connection_target(char: Character, roster: Sequence[Character]) -> Character | None:
    if not char.initial_connection_name:
        return None
    for other in roster:
        if other.name == char.initial_connection_name and other.id != char.id:
            return other
    return None


def assign_positions(
    roster: Sequence[Character],
    base_grid: Sequence[Sequence[str]],
    rng: random.Random | None = None,
) -> tuple[list[Character], list[list[str]]]:
    """Place every character on the grid and rename cells after their residents.

    Returns copies; neither the roster nor the grid passed in is modified.
    """
    rng = rng or random.Random()
    grid = [list(row) for row in base_grid]
    chars = [c.model_copy(deep=True) for c in roster]
    placer = _Placer(rng)

    # Pass 1: fixed roles
    for char in chars:
        for keywords, cell in ROLE_LOCATIONS:
            if _matches(char.role, keywords):
                placer.place(char.id, cell)
                break

    # Pass 2: relationships, twice to resolve chains
    for _ in range(2):
        for char in chars:
            if placer.is_placed(char.id):
                continue
            target = _connection_target(char, chars)
            if target is None or not placer.is_placed(target.id):
                continue
            anchor = placer.assignments[target.id]
            bond = char.initial_connection_type
            if bond in _CLOSE_BONDS:
                placer.place(char.id, placer.near(anchor, same=rng.random() < 0.8))
            elif bond == "Family":
                placer.place(char.id, placer.near(anchor, same=rng.random() < 0.5))
            elif bond == "Enemy":
                continue  # enemies spawn by zone in pass 3
            else:
                placer.place(char.id, placer.near(anchor, same=False))

    # Pass 3: zone fallback
    for char in chars:
        if placer.is_placed(char.id):
            continue
        target = _connection_target(char, chars)
        if target is None:
            placer.place(char.id, placer.best_slot(char.spawn_zone))
            continue
        if not placer.is_placed(target.id):
            placer.place(target.id, placer.best_slot(target.spawn_zone))
        anchor = placer.assignments[target.id]
        bond = char.initial_connection_type
        if bond in _CLOSE_BONDS:
            placer.place(char.id, anchor)
        elif bond == "Family":
            placer.place(char.id, placer.near(anchor, same=rng.random() < 0.5))
        elif bond == "Enemy":
            placer.place(char.id, placer.best_slot(char.spawn_zone))
        else:
            placer.place(char.id, placer.near(anchor, same=False))

    for char in chars:
        x, y = placer.assignments[char.id]
        char.position = Position(x=x, y=y)

    for char in chars:
        for keywords, rename in CELL_RENAMES:
            if _matches(char.role, keywords):
                grid[char.position.y][char.position.x] = rename(char)
                break

    logger.debug("placed %d villagers on %d cells", len(chars), len(placer.occupancy))
    return chars, grid


def setup_village(
    roster: Sequence[Character],
    base_grid: Sequence[Sequence[str]],
    rng: random.Random | None = None,
) -> tuple[list[Character], list[list[str]]]:
    """Place the roster and create initial relationship edges on both ends."""
    chars, grid = assign_positions(roster, base_grid, rng)

    for char in chars:
        bond = char.initial_connection_type
        if not bond or bond == "None":
            continue
        target = _connection_target(char, chars)
        if target is None:
            logger.warning(
                "%s names unknown connection %r, skipped", char.name, char.initial_connection_name
            )
            continue
        affinity, trust = RELATIONSHIP_SEEDS.get(bond, DEFAULT_SEED)

        if char.relationship_to(target.id) is None:
            char.relationships.append(Relationship(
                target_id=target.id, target_name=target.name,
                type=bond, affinity=affinity, trust=trust,
            ))
        if target.relationship_to(char.id) is None:
            target.relationships.append(Relationship(
                target_id=char.id, target_name=char.name,
                type=RECIPROCAL_TYPES.get(bond, "Friend"), affinity=affinity, trust=trust,
            ))

    return chars, grid
