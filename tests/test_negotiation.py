import asyncio
import random

from catalog import POLICY_CATALOG
from gateway import DialogueGateway
from models import Agent, ConsensusRule, NegotiationStep, Phase, Selector
from openrouter_client import OpenRouterClient
from negotiation import MessageLog, NegotiationOrchestrator, has_voting_intent
from prompts import stance_reply
from state import SessionStore


def _store(agent_factory=None, picks=None):
    kwargs = {"rng": random.Random(5)}
    if agent_factory is not None:
        kwargs["agent_factory"] = agent_factory
    store = SessionStore("neg-test", **kwargs)
    store.advance(Phase.COLLECTING_USER_INFO)
    store.advance(Phase.INDIVIDUAL_SELECTION)
    for cat_id, opt_id in (picks or {}).items():
        assert store.record_selection(cat_id, opt_id)
    store.advance(Phase.GROUP_NEGOTIATION)
    return store


def _orch(store, **kwargs):
    kwargs.setdefault("rng", random.Random(0))
    kwargs.setdefault("agent_picker", lambda agents: agents[1])
    return NegotiationOrchestrator(store, DialogueGateway(rng=random.Random(0)), **kwargs)


def test_message_log_dedup_and_ids():
    log = MessageLog()
    a = log.append("You", "I agree")
    assert log.append("You", "I agree") is None
    b = log.append("Thomas Reynolds", "I agree")
    assert len(log) == 2
    assert b.id > a.id


def test_intent_keywords():
    assert has_voting_intent("Okay, let's move")
    assert has_voting_intent("I think we should VOTE now")
    assert has_voting_intent("we are moving on")
    assert not has_voting_intent("She is devoted to the cause")


def test_opening_has_one_system_message_then_agents():
    store = _store()
    orch = _orch(store)
    msgs = asyncio.run(orch.open())
    agents = store.state.agents
    assert len(msgs) == 1 + len(agents)
    assert msgs[0].sender == "System"
    assert [m.sender for m in msgs[1:]] == [a.name for a in agents]
    assert [m.id for m in msgs] == sorted({m.id for m in msgs})
    assert orch.step is NegotiationStep.DISCUSSING


def test_duplicate_user_message_is_dropped():
    orch = _orch(_store())
    asyncio.run(orch.open())
    asyncio.run(orch.submit_user_message("I agree"))
    size = len(orch.log)
    assert asyncio.run(orch.submit_user_message("I agree")) == []
    assert len(orch.log) == size
    assert sum(1 for m in orch.log if m.is_user and m.text == "I agree") == 1


def test_user_message_gets_one_agent_reply():
    store = _store()
    orch = _orch(store)
    asyncio.run(orch.open())
    new = asyncio.run(orch.submit_user_message("Refugee children need school places now."))
    assert new[0].is_user
    assert new[1].agent_id == store.state.agents[1].id
    assert orch.step is NegotiationStep.DISCUSSING


def test_first_reply_falls_back_to_agree_or_disagree():
    store = _store(picks={1: 2})
    orch = _orch(store)
    asyncio.run(orch.open())
    new = asyncio.run(orch.submit_user_message("Refugee children need school places now."))
    agent = store.state.agents[1]
    cat = next(c for c in POLICY_CATALOG if c.id == 1)
    assert new[1].text == stance_reply(agent, cat, 2)
    assert cat.option(agent.policy_choices[1]).title in new[1].text


def test_threshold_opens_voting():
    orch = _orch(_store(), message_threshold=2)
    asyncio.run(orch.open())
    asyncio.run(orch.submit_user_message("First thought on access."))
    assert orch.step is NegotiationStep.DISCUSSING
    asyncio.run(orch.submit_user_message("Second thought on access."))
    assert orch.step is NegotiationStep.VOTING_OPEN


def test_keyword_opens_voting_early():
    orch = _orch(_store(), message_threshold=5)
    asyncio.run(orch.open())
    new = asyncio.run(orch.submit_user_message("Let's vote on this one."))
    assert orch.step is NegotiationStep.VOTING_OPEN
    assert "vote" in new[-1].text.lower()


def test_full_loop_records_seven_decisions():
    picks = {1: 3, 2: 2, 3: 2, 4: 1, 5: 2, 6: 1, 7: 2}
    store = _store(picks=picks)
    orch = _orch(store)
    asyncio.run(orch.run_to_completion())
    assert orch.step is NegotiationStep.SUMMARY
    assert store.state.group_decisions == picks
    assert sorted(store.state.group_decisions) == [c.id for c in POLICY_CATALOG]
    consensus = [m for m in orch.log if m.is_consensus]
    assert len(consensus) == 7
    assert "13 of our 14" in orch.log.messages[-1].text


def test_missing_user_selection_defaults_to_middle_option():
    store = _store(picks={1: 1})
    orch = _orch(store)
    asyncio.run(orch.run_to_completion())
    assert store.state.group_decisions[1] == 1
    assert all(store.state.group_decisions[c.id] == 2 for c in POLICY_CATALOG[1:])


def test_majority_rule_counts_agents():
    def trio():
        base = dict(age=40, occupation="Member", education="BA", socioeconomic_status="Middle class")
        return [
            Agent(id=1, name="Cons", political_stance="Conservative", **base),
            Agent(id=2, name="Prog", political_stance="Progressive", **base),
            Agent(id=3, name="Soc", political_stance="Socialist", **base),
        ]

    store = _store(agent_factory=trio, picks={1: 3})
    orch = _orch(store, consensus_rule=ConsensusRule.MAJORITY)
    cats = store.categories
    assert orch.decide(cats[0]) == 3
    # Socialist cannot afford category 5: one vote each for 1 and 2.
    assert orch.decide(cats[4]) in (1, 2)


def test_close_cancels_pending_pacing():
    async def scenario():
        orch = _orch(_store(), pacing=10)
        task = asyncio.create_task(orch.open())
        for _ in range(3):
            await asyncio.sleep(0)
        assert len(orch.log) == 1
        await orch.close()
        assert await task == []
        assert len(orch.log) == 1
        assert await orch.submit_user_message("anyone there?") == []
        assert await orch.resolve_vote() == []
        return orch

    orch = asyncio.run(scenario())
    assert orch.closed
    assert len(orch.log) == 1


def test_decisions_only_through_store():
    store = _store(picks={1: 2})
    orch = _orch(store)
    asyncio.run(orch.open())
    asyncio.run(orch.resolve_vote())
    assert store.state.group_decisions == {1: 2}
    assert orch.current_category.id == 2
    assert orch.step is NegotiationStep.DISCUSSING


def test_stance_reply_agrees_or_disagrees():
    cat = POLICY_CATALOG[0]
    cons = Agent(id=1, name="Cons", age=50, occupation="Member", education="BA",
                 socioeconomic_status="Upper class", political_stance="Conservative",
                 selector=Selector(policy_choices={cat.id: 1}, remaining_budget=13))
    agree = stance_reply(cons, cat, 1)
    disagree = stance_reply(cons, cat, 3)
    assert agree.startswith("I agree") and "fiscal" in agree
    assert disagree.startswith("I disagree") and cat.option(1).title in disagree
    assert stance_reply(cons, cat, None) is None


class RaisingClient(OpenRouterClient):
    configured = True

    def __init__(self):
        pass

    def chat(self, messages, **kwargs):
        raise TypeError("unexpected client failure")


def test_broken_transport_still_yields_agent_reply():
    store = _store()
    orch = NegotiationOrchestrator(store, DialogueGateway(primary=RaisingClient(), rng=random.Random(0)),
                                   rng=random.Random(0), agent_picker=lambda agents: agents[0])
    asyncio.run(orch.open())
    size = len(orch.log)
    new = asyncio.run(orch.submit_user_message("Equal access matters."))
    assert [m.is_user for m in new] == [True, False]
    assert new[1].agent_id == store.state.agents[0].id
    assert len(orch.log) == size + 2
