from __future__ import annotations
import asyncio
import itertools
import logging
import random
import re
from collections import Counter
from typing import Any, Callable, Coroutine, Dict, Iterator, List, Optional, Sequence, Set, Tuple

from budget import spent
from gateway import DialogueGateway, GenerationRequest
from models import (
    TOTAL_BUDGET, Agent, CharacterRole, ConsensusRule, Message, NegotiationStep, PolicyCategory,
)
from prompts import (
    FIRST_CATEGORY_INTRO, NEXT_CATEGORY_INTRO, SUMMARY_MESSAGE, WELCOME_MESSAGE,
    agent_prompt, consensus_message, opening_statement, position_statement, stance_reply, voting_message,
)
from state import SessionStore

logger = logging.getLogger(__name__)

SYSTEM_SENDER = "System"
USER_SENDER = "You"
DEFAULT_OPTION_ID = 2
HISTORY_LIMIT = 10

INTENT_KEYWORDS: Tuple[str, ...] = ("vote", "proceed", "decide", "consensus", "moving on", "okay")
_INTENT = re.compile(r"\b(?:" + "|".join(re.escape(k) for k in INTENT_KEYWORDS) + r")\b", re.IGNORECASE)

AgentPicker = Callable[[Sequence[Agent]], Agent]


def has_voting_intent(text: str) -> bool:
    return bool(_INTENT.search(text or ""))


def role_for(agent: Agent) -> CharacterRole:
    if agent.is_ally:
        return CharacterRole.ALLY
    if agent.political_stance.strip().lower() == "conservative":
        return CharacterRole.OPPONENT
    return CharacterRole.NEUTRAL


class MessageLog:
    """
    Append-only negotiation transcript.

    `append` is synchronous, so two coroutines can never interleave a partial
    write. A (sender, text) pair already present anywhere in the log is
    dropped and `append` returns None.
    """

    def __init__(self) -> None:
        self._messages: List[Message] = []
        self._seen: Set[Tuple[str, str]] = set()
        self._ids = itertools.count(1)

    def append(self, sender: str, text: str, **kwargs) -> Optional[Message]:
        key = (sender, text)
        if key in self._seen:
            logger.debug("Duplicate message from %s dropped", sender)
            return None
        msg = Message(id=next(self._ids), sender=sender, text=text, **kwargs)
        self._seen.add(key)
        self._messages.append(msg)
        return msg

    @property
    def messages(self) -> List[Message]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages))


class NegotiationOrchestrator:
    """
    Per-category sub-machine over the groupNegotiation phase:
    opening -> discussing -> votingOpen -> decided, then summary after the
    last category.

    Public coroutines run as tracked tasks; `close()` cancels whatever is still
    pending (pacing sleeps, generation calls) and nothing is appended after it.
    Group decisions are written only through the SessionStore.
    """

    def __init__(
        self,
        store: SessionStore,
        gateway: DialogueGateway,
        rng: Optional[random.Random] = None,
        message_threshold: int = 2,
        pacing: float = 0.0,
        consensus_rule: ConsensusRule = ConsensusRule.USER_SELECTION,
        agent_picker: Optional[AgentPicker] = None,
    ):
        self.store = store
        self.gateway = gateway
        self.rng = rng or random.Random()
        self.message_threshold = max(1, message_threshold)
        self.pacing = pacing
        self.consensus_rule = ConsensusRule(consensus_rule)
        self.agent_picker = agent_picker

        self.log = MessageLog()
        self.step = NegotiationStep.OPENING
        self.category_index = 0
        self._user_counts: Dict[int, int] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

    # ---------- Introspection ----------
    @property
    def categories(self) -> Sequence[PolicyCategory]:
        return self.store.categories

    @property
    def current_category(self) -> Optional[PolicyCategory]:
        if self.step is NegotiationStep.SUMMARY or self.category_index >= len(self.categories):
            return None
        return self.categories[self.category_index]

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def messages(self) -> List[Message]:
        return self.log.messages

    # ---------- Public steps ----------
    async def open(self) -> List[Message]:
        return await self._guarded(self._open_category())

    async def submit_user_message(self, text: str) -> List[Message]:
        return await self._guarded(self._handle_user_message(text))

    async def resolve_vote(self) -> List[Message]:
        return await self._guarded(self._resolve_vote())

    def cancel(self) -> None:
        """Stop accepting work and cancel pending tasks without waiting for them."""
        self._closed = True
        for task in list(self._tasks):
            if not task.done():
                task.cancel()

    async def close(self) -> None:
        pending = [t for t in self._tasks if not t.done()]
        self.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        logger.info("Negotiation for %s closed", self.store.session_id)

    # ---------- Task plumbing ----------
    async def _guarded(self, coro: Coroutine[Any, Any, List[Message]]) -> List[Message]:
        if self._closed:
            coro.close()
            return []
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        try:
            return await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            logger.info("Pending negotiation step for %s cancelled", self.store.session_id)
            return []
        finally:
            self._tasks.discard(task)

    async def _pace(self) -> None:
        if self.pacing > 0:
            await asyncio.sleep(self.pacing)

    def _emit(self, sender: str, text: str, **kwargs) -> Optional[Message]:
        if self._closed:
            return None
        return self.log.append(sender, text, **kwargs)

    @staticmethod
    def _collect(out: List[Message], msg: Optional[Message]) -> None:
        if msg is not None:
            out.append(msg)

    # ---------- opening ----------
    async def _open_category(self) -> List[Message]:
        cat = self.current_category
        if self.step is not NegotiationStep.OPENING or cat is None:
            return []
        out: List[Message] = []
        first = self.category_index == 0
        if first:
            intro = WELCOME_MESSAGE + "\n\n" + FIRST_CATEGORY_INTRO.format(category=cat.name)
        else:
            intro = NEXT_CATEGORY_INTRO.format(category=cat.name)
        self._collect(out, self._emit(SYSTEM_SENDER, intro, category_id=cat.id))

        for agent in self.store.state.agents:
            await self._pace()
            text = opening_statement(agent) if first else position_statement(agent, cat)
            self._collect(out, self._emit(agent.name, text, agent_id=agent.id, category_id=cat.id))

        if not self._closed and self.current_category is cat:
            self.step = NegotiationStep.DISCUSSING
        return out

    # ---------- discussing ----------
    def _pick_agent(self) -> Agent:
        agents = self.store.state.agents
        if self.agent_picker is not None:
            return self.agent_picker(agents)
        return self.rng.choice(agents)

    def _history(self, category_id: int, agent: Agent, exclude_id: int) -> List[Dict[str, str]]:
        recent = [m for m in self.log if m.category_id == category_id and m.id != exclude_id][-HISTORY_LIMIT:]
        history = []
        for m in recent:
            if m.agent_id == agent.id:
                history.append({"role": "assistant", "content": m.text})
            else:
                history.append({"role": "user", "content": f"{m.sender}: {m.text}"})
        return history

    async def _handle_user_message(self, text: str) -> List[Message]:
        cat = self.current_category
        text = (text or "").strip()
        if self.step is not NegotiationStep.DISCUSSING or cat is None or not text:
            return []
        user_msg = self._emit(USER_SENDER, text, is_user=True, category_id=cat.id)
        if user_msg is None:
            return []
        out = [user_msg]
        self._user_counts[cat.id] = self._user_counts.get(cat.id, 0) + 1

        agents = self.store.state.agents
        if agents:
            agent = self._pick_agent()
            user_option_id = self.store.state.user.policy_choices.get(cat.id)
            # First exchange per category falls back to an agree/disagree line.
            fallback = stance_reply(agent, cat, user_option_id) if self._user_counts[cat.id] == 1 else None
            request = GenerationRequest(
                prompt_text=agent_prompt(agent, cat, text, user_option_id),
                character_role=role_for(agent),
                prior_messages=self._history(cat.id, agent, user_msg.id),
                persona_name=agent.name,
                stance=agent.political_stance,
                fallback_text=fallback,
            )
            await self._pace()
            reply = await self.gateway.respond(request)
            self._collect(out, self._emit(agent.name, reply, agent_id=agent.id, category_id=cat.id))

        # Replies may land after the category moved on; only the live one opens voting.
        if self.step is NegotiationStep.DISCUSSING and self.current_category is cat:
            if self._user_counts[cat.id] >= self.message_threshold or has_voting_intent(text):
                out.extend(self._open_voting(cat))
        return out

    # ---------- votingOpen ----------
    def _open_voting(self, cat: PolicyCategory) -> List[Message]:
        if self._closed:
            return []
        self.step = NegotiationStep.VOTING_OPEN
        out: List[Message] = []
        self._collect(out, self._emit(SYSTEM_SENDER, voting_message(cat), category_id=cat.id))
        return out

    def decide(self, cat: PolicyCategory) -> int:
        user_choice = self.store.state.user.policy_choices.get(cat.id)
        if self.consensus_rule is ConsensusRule.USER_SELECTION:
            return user_choice if user_choice is not None else DEFAULT_OPTION_ID

        votes = Counter()
        if user_choice is not None:
            votes[user_choice] += 1
        for agent in self.store.state.agents:
            choice = agent.policy_choices.get(cat.id)
            if choice is not None:
                votes[choice] += 1
        if not votes:
            return DEFAULT_OPTION_ID
        top = max(votes.values())
        return self.rng.choice(sorted(o for o, n in votes.items() if n == top))

    # ---------- decided ----------
    async def _resolve_vote(self) -> List[Message]:
        cat = self.current_category
        if cat is None or self._closed:
            return []
        out: List[Message] = []
        if self.step is NegotiationStep.DISCUSSING:
            out.extend(self._open_voting(cat))
        if self.step is not NegotiationStep.VOTING_OPEN:
            return out

        option_id = self.decide(cat)
        option = cat.option(option_id)
        self.store.record_group_decision(cat.id, option_id)
        self.step = NegotiationStep.DECIDED
        logger.info("Session %s decided %s -> option %s", self.store.session_id, cat.name, option_id)
        text = consensus_message(cat.name, option.title, option.cost, self.rng)
        self._collect(out, self._emit(SYSTEM_SENDER, text, is_consensus=True, category_id=cat.id))

        self.category_index += 1
        if self.category_index >= len(self.categories):
            self.step = NegotiationStep.SUMMARY
            total = spent(self.store.state.group_decisions, self.categories)
            summary = SUMMARY_MESSAGE.format(spent=total, budget=TOTAL_BUDGET)
            self._collect(out, self._emit(SYSTEM_SENDER, summary))
            return out

        self.step = NegotiationStep.OPENING
        out.extend(await self._open_category())
        return out

    async def run_to_completion(self) -> List[Message]:
        """Resolve every remaining category in order."""
        out: List[Message] = []
        if self.step is NegotiationStep.OPENING:
            out.extend(await self.open())
        while self.current_category is not None and not self._closed:
            out.extend(await self.resolve_vote())
        return out
