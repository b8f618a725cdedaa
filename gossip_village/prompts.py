"""Handlebars prompt templates for the three oracle calls.

Templates are rendered with pybars. Free text coming from game state (names,
secrets, player words) goes through triple-stash ``{{{...}}}`` so it reaches
the model unescaped.
"""

from collections.abc import Callable
from typing import Any

import pybars

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


VILLAGE_PROMPT = """\
Generate {{count}} unique, complex characters for a high-stakes wuxia drama game.
The setting is "Rice Fragrance Village".

Current task: create the initial villagers, including their social web, \
location and RPG stats.

CRITICAL DESIGN INSTRUCTIONS:
1. Conflict & connection: some villagers must already be connected via \
"initialConnectionName" (the exact name of another villager in this list).
2. RPG stats must match each background:
   - hp (health): 85-100 young warriors, smiths, laborers; 60-80 ordinary \
adults; 30-55 elderly, children, scholars, the sick or poisoned.
   - mp (martial power): 80-100 sect leaders and hidden masters; 50-79 \
guards, disciples, bandits; 0-20 merchants, farmers, scholars.
   - san (corruption): 40-60 cultists, spies, guilty secrets; 10-30 the \
ambitious and the resentful; 0-9 the pure-hearted.
3. spawnZone follows the role strictly.
4. Roles are classic wuxia roles (village chief, blacksmith, doctor, \
tavern keeper, hunter, taoist, beggar, ...).

Field rules:
- "gender": "Male" or "Female".
- "spawnZone": one of {{{zones}}}.
- "initialConnectionType": one of "Lover", "Enemy", "Master", "Disciple", \
"Family", or null.

Return only JSON of the form:
{{{schema}}}
"""


SIMULATION_PROMPT = """\
Director mode: simulate the next time phase in "Rice Fragrance Village".

CONTEXT
Day: {{day}}, Time: {{phase}}
Villagers:
{{#each npcs}}
[{{{name}}}|{{{role}}}] Status:{{status}} HP:{{hp}} MP(Martial):{{mp}} \
SAN(Corruption):{{san}} Loc:({{x}},{{y}}) {{{location}}}
{{/each}}
Relationships:
{{#each npcs}}
{{{name}}} Rels: [{{{relationships}}}]
{{/each}}

{{#if actions}}
PLAYER ACTIONS:
{{#each actions}}
- TYPE: {{type}} TARGET: {{{target}}} CONTENT: "{{{content}}}"
{{/each}}
{{else}}
No player intervention.
{{/if}}

RULES OF THE JIANGHU
1. Combat: if Enemy or QiDeviated villagers share a location, a fight breaks \
out. Winner: (attacker MP + 1d20) vs (defender MP + 1d20). Loser: hp -25, \
mp +1. Winner: mp +3, hp -5. Spectators: san +10.
2. Training: villagers at the Martial Field, the Back Mountain Cave or the \
Reed Marsh during Morning or Afternoon train: mp +3 to +5.
3. Injury: a villager with hp below 20 cannot attack and seeks healing at the \
temple or the doctor (hp +15 there). Attacking an injured villager kills them.
4. Corruption: san above 80 makes a villager attack the nearest person; above \
95 means self-destruction or massacre.
5. Dead, jailed, escaped or departed villagers take no actions.

OUTPUT
- statUpdates: exact numeric changes.
- logs: one thought and one action per active villager.
- npcStatusUpdates: status, mood and optional newPosition {x, y} in 0..3.
- newspaper: only for deaths or massacres, otherwise null.
- gameOutcome: only when the objective "{{{objective}}}" is decided, otherwise null.

Return only JSON of the form:
{{{schema}}}
"""


INTERROGATION_PROMPT = """\
Roleplay simulation (high-drama wuxia).

You are {{{name}}} ({{{role}}}).
Secret: {{{secret}}}
Current state: {{status}}.
Stats: HP {{hp}}, Martial {{mp}}, Corruption {{san}}.
Social circle:
{{#if relationships}}
{{#each relationships}}
- {{{target_name}}}: [{{type}}] (Affinity: {{affinity}})
{{/each}}
{{else}}
None.
{{/if}}

The player, a mysterious inner voice, asks: "{{{question}}}"

Directives:
1. Tone follows your relationships and corruption. SAN above 60: unstable, \
violent murmurs. SAN above 90: completely insane. HP below 20: weak, \
coughing, begging for help.
2. Under 40 words.

Return only JSON of the form: {{{schema}}}
"""


# JSON shapes appended to the prompts. Kept out of the templates because
# literal braces would collide with Handlebars syntax.

VILLAGE_SCHEMA = (
    '{"npcs": [{"name": "", "age": 0, "gender": "", "role": "", "publicPersona": "", '
    '"deepSecret": "", "lifeGoal": "", "currentMood": "", "hp": 0, "mp": 0, "san": 0, '
    '"spawnZone": "", "initialConnectionName": null, "initialConnectionType": null}]}'
)

SIMULATION_SCHEMA = (
    '{"logs": [{"npcName": "", "thought": "", "action": ""}], '
    '"relationshipUpdates": [{"sourceName": "", "targetName": "", "affinityChange": 0, '
    '"trustChange": 0, "newType": null}], '
    '"statUpdates": [{"npcName": "", "hpChange": 0, "mpChange": 0, "sanChange": 0}], '
    '"newIntel": [{"content": "", "type": "Rumor", "sourceName": ""}], '
    '"newspaper": {"headline": "", "articles": [""]}, '
    '"npcStatusUpdates": [{"npcName": "", "status": "Normal", "mood": "", '
    '"newPosition": {"x": 0, "y": 0}}], '
    '"gameOutcome": {"result": "Victory", "reason": ""}}'
)

INTERROGATION_SCHEMA = '{"reply": "", "revealedInfo": null, "moodChange": ""}'
