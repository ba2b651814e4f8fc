from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple

TOTAL_BUDGET = 14


class Phase(str, Enum):
    INTRO = "intro"
    COLLECTING_USER_INFO = "collectingUserInfo"
    INDIVIDUAL_SELECTION = "individualSelection"
    GROUP_NEGOTIATION = "groupNegotiation"
    REFLECTION = "reflection"
    REPORT = "report"


class CharacterRole(str, Enum):
    GUIDE = "guide"
    OPPONENT = "opponent"
    ALLY = "ally"
    NEUTRAL = "neutral"


class NegotiationStep(str, Enum):
    OPENING = "opening"
    DISCUSSING = "discussing"
    VOTING_OPEN = "votingOpen"
    DECIDED = "decided"
    SUMMARY = "summary"


class ConsensusRule(str, Enum):
    USER_SELECTION = "user_selection"
    MAJORITY = "majority"


# ---------- Catalog ----------
@dataclass(frozen=True)
class PolicyOption:
    id: int
    title: str
    description: str
    advantages: str
    disadvantages: str
    cost: int


@dataclass(frozen=True)
class PolicyCategory:
    id: int
    name: str
    options: Tuple[PolicyOption, ...]

    def option(self, option_id: int) -> Optional[PolicyOption]:
        for opt in self.options:
            if opt.id == option_id:
                return opt
        return None


@dataclass(frozen=True)
class ReflectionQuestion:
    id: str
    question: str


# ---------- Actors ----------
@dataclass(frozen=True)
class Selector:
    """Budget-and-choices state shared by the user and every agent.

    Never mutated in place; budget.apply_selection returns a new instance.
    """
    policy_choices: Dict[int, int] = field(default_factory=dict)
    remaining_budget: int = TOTAL_BUDGET


@dataclass
class Agent:
    id: int
    name: str
    age: int
    occupation: str
    education: str
    socioeconomic_status: str
    political_stance: str
    bio: str = ""
    is_ally: bool = False
    selector: Selector = field(default_factory=Selector)

    @property
    def policy_choices(self) -> Dict[int, int]:
        return self.selector.policy_choices

    @property
    def remaining_budget(self) -> int:
        return self.selector.remaining_budget


@dataclass
class User:
    age: Optional[str] = None
    nationality: Optional[str] = None
    occupation: Optional[str] = None
    education: Optional[str] = None
    displacement_experience: Optional[str] = None
    location: Optional[str] = None
    selector: Selector = field(default_factory=Selector)

    @property
    def policy_choices(self) -> Dict[int, int]:
        return self.selector.policy_choices

    @property
    def remaining_budget(self) -> int:
        return self.selector.remaining_budget


USER_INFO_FIELDS = (
    "age",
    "nationality",
    "occupation",
    "education",
    "displacement_experience",
    "location",
)


# ---------- Dialogue ----------
@dataclass
class Message:
    id: int
    sender: str
    text: str
    is_user: bool = False
    agent_id: Optional[int] = None
    is_consensus: bool = False
    category_id: Optional[int] = None
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class SessionState:
    session_id: str
    phase: Phase = Phase.INTRO
    user: User = field(default_factory=User)
    agents: List[Agent] = field(default_factory=list)
    categories: Tuple[PolicyCategory, ...] = ()
    group_decisions: Dict[int, int] = field(default_factory=dict)
    reflection_answers: Dict[str, str] = field(default_factory=dict)
