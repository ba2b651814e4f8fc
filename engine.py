from __future__ import annotations
import logging
import random
import uuid
from typing import Callable, Dict, List, Optional, Sequence, Union

from catalog import POLICY_CATALOG, default_agents, find_question
from config import Settings
from errors import SessionNotFound
from gateway import DialogueGateway
from models import Agent, ConsensusRule, Message, Phase, PolicyCategory, SessionState, User
from negotiation import NegotiationOrchestrator
from report import build_report_snapshot, generate_guide_reflection
from state import SessionStore

logger = logging.getLogger(__name__)


class NegotiationEngine:
    """
    Composition root: owns the gateway, one SessionStore per session and the
    live NegotiationOrchestrator of each session.
    - Sessions share no mutable state.
    - Resetting or closing a session cancels its in-flight negotiation first.
    """
    def __init__(
        self,
        gateway: DialogueGateway,
        rng: Optional[random.Random] = None,
        message_threshold: int = 2,
        pacing: float = 0.0,
        consensus_rule: Union[ConsensusRule, str] = ConsensusRule.USER_SELECTION,
        categories: Sequence[PolicyCategory] = POLICY_CATALOG,
        agent_factory: Callable[[], List[Agent]] = default_agents,
    ):
        self.gateway = gateway
        self.rng = rng or random.Random()
        self.message_threshold = message_threshold
        self.pacing = pacing
        self.consensus_rule = ConsensusRule(consensus_rule)
        self.categories = tuple(categories)
        self.agent_factory = agent_factory
        self._sessions: Dict[str, SessionStore] = {}
        self._negotiations: Dict[str, NegotiationOrchestrator] = {}

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "NegotiationEngine":
        settings = settings or Settings.from_env()
        try:
            rule = ConsensusRule(settings.consensus_rule)
        except ValueError:
            logger.warning("Unknown consensus rule %r; using user_selection", settings.consensus_rule)
            rule = ConsensusRule.USER_SELECTION
        return cls(
            gateway=DialogueGateway.from_settings(settings),
            message_threshold=settings.message_threshold,
            pacing=settings.pacing_seconds,
            consensus_rule=rule,
        )

    # ---------- Session lifecycle ----------
    def start_session(self) -> SessionState:
        sid = str(uuid.uuid4())
        store = SessionStore(
            sid,
            categories=self.categories,
            agent_factory=self.agent_factory,
            rng=random.Random(self.rng.random()),
        )
        self._sessions[sid] = store
        logger.info("Session %s started", sid)
        return store.state

    def get_session(self, session_id: str) -> Optional[SessionStore]:
        return self._sessions.get(session_id)

    def get_state(self, session_id: str) -> Optional[SessionState]:
        store = self._sessions.get(session_id)
        return store.state if store else None

    def _require_session(self, session_id: str) -> SessionStore:
        store = self._sessions.get(session_id)
        if store is None:
            raise SessionNotFound(session_id)
        return store

    def advance_phase(self, session_id: str, phase: Union[Phase, str]) -> Phase:
        store = self._require_session(session_id)
        target = Phase(phase)
        before = store.phase
        after = store.advance(target)
        if before is Phase.REPORT and after is Phase.INTRO:
            self._discard_negotiation(session_id)
        return after

    def update_user_info(self, session_id: str, **fields: Optional[str]) -> User:
        return self._require_session(session_id).record_user_info(**fields)

    def select_policy(self, session_id: str, category_id: int, option_id: int) -> bool:
        return self._require_session(session_id).record_selection(category_id, option_id)

    def save_reflection(self, session_id: str, question_id: str, answer: str) -> None:
        store = self._require_session(session_id)
        if find_question(question_id) is None:
            raise ValueError(f"Unknown reflection question: {question_id}")
        store.record_reflection_answer(question_id, answer)

    # ---------- Negotiation ----------
    def get_negotiation(self, session_id: str) -> Optional[NegotiationOrchestrator]:
        self._require_session(session_id)
        return self._negotiations.get(session_id)

    def _require_negotiation(self, session_id: str) -> NegotiationOrchestrator:
        orch = self.get_negotiation(session_id)
        if orch is None or orch.closed:
            raise ValueError("Negotiation has not been started for this session")
        return orch

    async def start_negotiation(self, session_id: str) -> List[Message]:
        store = self._require_session(session_id)
        if store.phase is not Phase.GROUP_NEGOTIATION:
            raise ValueError(f"Negotiation requires phase {Phase.GROUP_NEGOTIATION.value}, not {store.phase.value}")
        orch = self._negotiations.get(session_id)
        if orch is not None and not orch.closed:
            # Re-entrant start: opening is idempotent.
            await orch.open()
            return orch.messages
        orch = NegotiationOrchestrator(
            store,
            self.gateway,
            rng=random.Random(self.rng.random()),
            message_threshold=self.message_threshold,
            pacing=self.pacing,
            consensus_rule=self.consensus_rule,
        )
        self._negotiations[session_id] = orch
        return await orch.open()

    async def send_message(self, session_id: str, text: str) -> List[Message]:
        return await self._require_negotiation(session_id).submit_user_message(text)

    async def resolve_vote(self, session_id: str) -> List[Message]:
        return await self._require_negotiation(session_id).resolve_vote()

    def _discard_negotiation(self, session_id: str) -> None:
        orch = self._negotiations.pop(session_id, None)
        if orch is not None:
            orch.cancel()

    async def close_negotiation(self, session_id: str) -> None:
        orch = self._negotiations.pop(session_id, None)
        if orch is not None:
            await orch.close()

    # ---------- Report ----------
    def report(self, session_id: str) -> Dict:
        return build_report_snapshot(self._require_session(session_id).state)

    async def generate_reflection(self, session_id: str) -> str:
        store = self._require_session(session_id)
        return await generate_guide_reflection(self.gateway, store.state)

    # ---------- Reset / teardown ----------
    async def reset_session(self, session_id: str) -> SessionState:
        store = self._require_session(session_id)
        await self.close_negotiation(session_id)
        return store.reset()

    async def close_session(self, session_id: str) -> None:
        self._require_session(session_id)
        await self.close_negotiation(session_id)
        self._sessions.pop(session_id, None)
        logger.info("Session %s closed", session_id)
