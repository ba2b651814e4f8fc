from __future__ import annotations
import logging
import random
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional, Sequence, Union

from budget import apply_selection
from catalog import POLICY_CATALOG, default_agents, find_category
from errors import BudgetExceeded, UnknownPolicyOption
from models import USER_INFO_FIELDS, Agent, Phase, PolicyCategory, SessionState, User
from profiles import generate_profiles

logger = logging.getLogger(__name__)

# The only legal forward edges; REPORT -> INTRO is the reset edge.
NEXT_PHASE: Dict[Phase, Phase] = {
    Phase.INTRO: Phase.COLLECTING_USER_INFO,
    Phase.COLLECTING_USER_INFO: Phase.INDIVIDUAL_SELECTION,
    Phase.INDIVIDUAL_SELECTION: Phase.GROUP_NEGOTIATION,
    Phase.GROUP_NEGOTIATION: Phase.REFLECTION,
    Phase.REFLECTION: Phase.REPORT,
    Phase.REPORT: Phase.INTRO,
}


# ---------- Actions ----------
@dataclass(frozen=True)
class SetPhase:
    phase: Phase


@dataclass(frozen=True)
class UpdateUserInfo:
    fields: Dict[str, Optional[str]] = field(default_factory=dict)


@dataclass(frozen=True)
class SelectPolicyOption:
    category_id: int
    option_id: int


@dataclass(frozen=True)
class InitializeAgentProfiles:
    pass


@dataclass(frozen=True)
class SetGroupDecision:
    category_id: int
    option_id: int


@dataclass(frozen=True)
class SaveReflectionAnswer:
    question_id: str
    answer: str


@dataclass(frozen=True)
class ResetSession:
    pass


Action = Union[
    SetPhase,
    UpdateUserInfo,
    SelectPolicyOption,
    InitializeAgentProfiles,
    SetGroupDecision,
    SaveReflectionAnswer,
    ResetSession,
]


class SessionStore:
    """
    Owns one SessionState. Every mutation goes through the methods below
    (or `dispatch`), so callers never touch the aggregate directly.
    """

    def __init__(
        self,
        session_id: str,
        categories: Sequence[PolicyCategory] = POLICY_CATALOG,
        agent_factory: Callable[[], List[Agent]] = default_agents,
        rng: Optional[random.Random] = None,
    ):
        self.session_id = session_id
        self._categories = tuple(categories)
        self._agent_factory = agent_factory
        self._rng = rng or random.Random()
        self._state = self._fresh_state()
        self._handlers: Dict[type, Callable[[Action], object]] = {
            SetPhase: lambda a: self.advance(a.phase),
            UpdateUserInfo: lambda a: self.record_user_info(**a.fields),
            SelectPolicyOption: lambda a: self.record_selection(a.category_id, a.option_id),
            InitializeAgentProfiles: lambda a: self.initialize_agent_profiles(),
            SetGroupDecision: lambda a: self.record_group_decision(a.category_id, a.option_id),
            SaveReflectionAnswer: lambda a: self.record_reflection_answer(a.question_id, a.answer),
            ResetSession: lambda a: self.reset(),
        }

    def _fresh_state(self) -> SessionState:
        return SessionState(
            session_id=self.session_id,
            phase=Phase.INTRO,
            user=User(),
            agents=self._agent_factory(),
            categories=self._categories,
        )

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def phase(self) -> Phase:
        return self._state.phase

    @property
    def categories(self) -> Sequence[PolicyCategory]:
        return self._categories

    def dispatch(self, action: Action) -> object:
        handler = self._handlers.get(type(action))
        if handler is None:
            raise TypeError(f"Unhandled action kind: {type(action).__name__}")
        return handler(action)

    # ---------- Phase machine ----------
    def advance(self, target: Phase) -> Phase:
        """Move to `target` if it is the legal next phase; otherwise leave the phase alone."""
        current = self._state.phase
        if NEXT_PHASE.get(current) != target:
            logger.debug("Ignoring transition %s -> %s for %s", current.value, target.value, self.session_id)
            return current
        if current is Phase.REPORT:
            self.reset()
            return self._state.phase
        if target is Phase.GROUP_NEGOTIATION:
            self.initialize_agent_profiles()
        self._state.phase = target
        logger.info("Session %s phase %s -> %s", self.session_id, current.value, target.value)
        return target

    def can_advance_to(self, target: Phase) -> bool:
        return NEXT_PHASE.get(self._state.phase) == target

    # ---------- User ----------
    def record_user_info(self, **fields: Optional[str]) -> User:
        # Unknown keys are dropped; values are not validated here.
        user = self._state.user
        updates = {k: v for k, v in fields.items() if k in USER_INFO_FIELDS}
        self._state.user = replace(user, **updates)
        return self._state.user

    def record_selection(self, category_id: int, option_id: int) -> bool:
        cat = find_category(category_id, self._categories)
        if cat is None:
            logger.debug("Selection for unknown category %s ignored", category_id)
            return False
        user = self._state.user
        try:
            selector = apply_selection(user.selector, cat, option_id)
        except (BudgetExceeded, UnknownPolicyOption) as e:
            logger.debug("Selection rejected for %s: %s", self.session_id, e)
            return False
        self._state.user = replace(user, selector=selector)
        return True

    @property
    def has_selected_all_categories(self) -> bool:
        return all(c.id in self._state.user.policy_choices for c in self._categories)

    # ---------- Agents ----------
    def initialize_agent_profiles(self) -> List[Agent]:
        # generate_profile starts every agent from an empty selector, so
        # repeated calls never double-charge a budget.
        self._state.agents = generate_profiles(self._state.agents, self._categories, self._rng)
        return self._state.agents

    # ---------- Group + reflection ----------
    def record_group_decision(self, category_id: int, option_id: int) -> None:
        self._state.group_decisions[category_id] = option_id

    @property
    def all_categories_decided(self) -> bool:
        return all(c.id in self._state.group_decisions for c in self._categories)

    def record_reflection_answer(self, question_id: str, answer: str) -> None:
        self._state.reflection_answers[question_id] = answer

    def reset(self) -> SessionState:
        self._state = self._fresh_state()
        logger.info("Session %s reset", self.session_id)
        return self._state
