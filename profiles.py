from __future__ import annotations
import logging
import random
from dataclasses import replace
from typing import List, Optional, Sequence

from budget import apply_selection
from errors import BudgetExceeded
from models import Agent, PolicyCategory, Selector

logger = logging.getLogger(__name__)

# Stance -> preferred option id; anything missing picks 1 or 2 at random.
STANCE_PREFERENCES = {
    "conservative": 1,
    "progressive": 2,
    "liberal": 2,
    "liberal/progressive": 2,
    "socialist": 3,
}


def preferred_option_id(stance: str, rng: random.Random) -> int:
    pref = STANCE_PREFERENCES.get((stance or "").strip().lower())
    if pref is not None:
        return pref
    return rng.choice((1, 2))


def generate_profile(agent: Agent, categories: Sequence[PolicyCategory], rng: random.Random) -> Agent:
    """
    Rebuild the agent's selector from scratch, category by category in catalog
    order. A preference the remaining budget cannot cover leaves that category
    without a selection.
    """
    selector = Selector()
    for cat in categories:
        option_id = preferred_option_id(agent.political_stance, rng)
        try:
            selector = apply_selection(selector, cat, option_id)
        except BudgetExceeded:
            logger.debug(
                "Agent %s skips %s: option %s over budget (%s left)",
                agent.name, cat.name, option_id, selector.remaining_budget,
            )
    logger.info(
        "Agent %s (%s) selections: %s, remaining=%s",
        agent.name, agent.political_stance, selector.policy_choices, selector.remaining_budget,
    )
    return replace(agent, selector=selector)


def generate_profiles(
    agents: Sequence[Agent],
    categories: Sequence[PolicyCategory],
    rng: Optional[random.Random] = None,
) -> List[Agent]:
    rng = rng or random.Random()
    return [generate_profile(a, categories, rng) for a in agents]
