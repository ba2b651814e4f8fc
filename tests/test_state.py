import random
from dataclasses import dataclass

import pytest

from models import Phase
from state import (
    InitializeAgentProfiles, ResetSession, SaveReflectionAnswer, SelectPolicyOption,
    SessionStore, SetGroupDecision, SetPhase, UpdateUserInfo,
)


def _store():
    return SessionStore("s-test", rng=random.Random(7))


def _walk_to(store, target):
    order = [Phase.COLLECTING_USER_INFO, Phase.INDIVIDUAL_SELECTION, Phase.GROUP_NEGOTIATION,
             Phase.REFLECTION, Phase.REPORT]
    for phase in order:
        store.advance(phase)
        if phase is target:
            return


def test_legal_transitions_in_order():
    store = _store()
    assert store.phase is Phase.INTRO
    _walk_to(store, Phase.REPORT)
    assert store.phase is Phase.REPORT


def test_illegal_transition_is_noop():
    store = _store()
    assert store.advance(Phase.GROUP_NEGOTIATION) is Phase.INTRO
    assert store.phase is Phase.INTRO
    assert not store.can_advance_to(Phase.REPORT)


def test_entering_negotiation_builds_agent_profiles():
    store = _store()
    _walk_to(store, Phase.INDIVIDUAL_SELECTION)
    assert all(not a.policy_choices for a in store.state.agents)
    store.advance(Phase.GROUP_NEGOTIATION)
    assert all(a.policy_choices for a in store.state.agents)


def test_selection_rejection_is_silent():
    store = _store()
    for cat_id in (1, 2, 3, 4):
        assert store.record_selection(cat_id, 3)
    before = store.state.user.selector
    assert not store.record_selection(5, 3)
    assert not store.record_selection(99, 1)
    assert not store.record_selection(5, 7)
    assert store.state.user.selector == before
    assert store.state.user.remaining_budget == 2


def test_user_info_ignores_unknown_fields():
    store = _store()
    store.record_user_info(age="30", location="Bean City", favourite_colour="red")
    assert store.state.user.age == "30"
    assert store.state.user.location == "Bean City"
    assert not hasattr(store.state.user, "favourite_colour")


def test_report_to_intro_resets():
    store = _store()
    store.record_selection(1, 2)
    _walk_to(store, Phase.REPORT)
    store.record_group_decision(1, 2)
    assert store.advance(Phase.INTRO) is Phase.INTRO
    assert store.state.group_decisions == {}
    assert store.state.user.policy_choices == {}


def test_reset_purity():
    fresh = SessionStore("s-test").state
    store = _store()
    store.record_user_info(age="30")
    store.record_selection(1, 3)
    _walk_to(store, Phase.REFLECTION)
    store.record_group_decision(1, 3)
    store.record_reflection_answer("emotions", "uneasy")
    store.reset()
    st = store.state
    assert st.phase == fresh.phase
    assert st.user == fresh.user
    assert st.group_decisions == {} and st.reflection_answers == {}
    assert all(a.remaining_budget == 14 and a.policy_choices == {} for a in st.agents)
    assert [a.name for a in st.agents] == [a.name for a in fresh.agents]


def test_dispatch_covers_every_action():
    store = _store()
    store.dispatch(SetPhase(Phase.COLLECTING_USER_INFO))
    store.dispatch(UpdateUserInfo({"nationality": "Bean"}))
    store.dispatch(SelectPolicyOption(2, 2))
    store.dispatch(InitializeAgentProfiles())
    store.dispatch(SetGroupDecision(2, 1))
    store.dispatch(SaveReflectionAnswer("power", "less than I thought"))
    assert store.phase is Phase.COLLECTING_USER_INFO
    assert store.state.user.nationality == "Bean"
    assert store.state.user.policy_choices == {2: 2}
    assert store.state.group_decisions == {2: 1}
    assert store.state.reflection_answers == {"power": "less than I thought"}
    assert all(a.policy_choices for a in store.state.agents)
    store.dispatch(ResetSession())
    assert store.phase is Phase.INTRO


def test_dispatch_rejects_unknown_action():
    @dataclass(frozen=True)
    class Bogus:
        pass

    with pytest.raises(TypeError):
        _store().dispatch(Bogus())


def test_completion_flags():
    store = _store()
    assert not store.has_selected_all_categories
    for cat_id in range(1, 8):
        store.record_selection(cat_id, 2)
    assert store.has_selected_all_categories
    assert not store.all_categories_decided
    for cat_id in range(1, 8):
        store.record_group_decision(cat_id, 1)
    assert store.all_categories_decided
