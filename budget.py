from __future__ import annotations
from typing import Mapping, Optional, Sequence

from errors import BudgetExceeded, UnknownPolicyOption
from models import TOTAL_BUDGET, PolicyCategory, Selector


def _cost_of(category: PolicyCategory, option_id: Optional[int]) -> int:
    if option_id is None:
        return 0
    opt = category.option(option_id)
    return opt.cost if opt else 0


def apply_selection(selector: Selector, category: PolicyCategory, option_id: int) -> Selector:
    """
    Pure budget check for one (category, option) pick.
    Returns a new Selector; raises BudgetExceeded / UnknownPolicyOption and
    leaves `selector` untouched otherwise. Re-picking the same option is a no-op
    (delta 0), so the call is idempotent.
    """
    new_option = category.option(option_id)
    if new_option is None:
        raise UnknownPolicyOption(category.id, option_id)

    previous = selector.policy_choices.get(category.id)
    delta = new_option.cost - _cost_of(category, previous)
    candidate = selector.remaining_budget - delta
    if candidate < 0:
        raise BudgetExceeded(category.id, option_id, selector.remaining_budget, delta)

    choices = dict(selector.policy_choices)
    choices[category.id] = option_id
    return Selector(policy_choices=choices, remaining_budget=candidate)


def spent(choices: Mapping[int, int], categories: Sequence[PolicyCategory]) -> int:
    by_id = {c.id: c for c in categories}
    total = 0
    for cat_id, opt_id in choices.items():
        cat = by_id.get(cat_id)
        if cat is not None:
            total += _cost_of(cat, opt_id)
    return total


def is_consistent(selector: Selector, categories: Sequence[PolicyCategory], total: int = TOTAL_BUDGET) -> bool:
    return (
        selector.remaining_budget >= 0
        and selector.remaining_budget == total - spent(selector.policy_choices, categories)
    )


def single_option_index(choices: Mapping[int, int], categories: Sequence[PolicyCategory]) -> Optional[int]:
    """
    Option id shared by every category when all of them were answered with the
    same option index, else None. Advisory only: nothing rejects such a set.
    """
    if not categories or any(c.id not in choices for c in categories):
        return None
    picked = {choices[c.id] for c in categories}
    return picked.pop() if len(picked) == 1 else None
