"""Turn/phase clock.

A day has four phases. Advancing from Night wraps to the next day's Morning;
every other transition keeps the day and moves one phase forward.
"""

from gossip_village.models import Phase

PHASES: tuple[Phase, ...] = ("Morning", "Afternoon", "Evening", "Night")


def advance(day: int, phase: Phase) -> tuple[int, Phase]:
    index = PHASES.index(phase)
    if index == len(PHASES) - 1:
        return day + 1, PHASES[0]
    return day, PHASES[index + 1]
