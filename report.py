from __future__ import annotations
from dataclasses import asdict
from typing import Any, Dict, List, Mapping, Sequence

from budget import single_option_index, spent
from catalog import find_question
from gateway import DialogueGateway, GenerationRequest
from models import TOTAL_BUDGET, USER_INFO_FIELDS, CharacterRole, PolicyCategory, SessionState
from prompts import GUIDE_REFLECTION_PROMPT, REFLECTION_FALLBACK, REFLECTION_MAX_TOKENS, decisions_text


def _choice_rows(choices: Mapping[int, int], categories: Sequence[PolicyCategory]) -> List[Dict[str, Any]]:
    rows = []
    for cat in categories:
        option = cat.option(choices.get(cat.id, 0))
        if option is None:
            continue
        rows.append({
            "category_id": cat.id,
            "category_name": cat.name,
            "option_id": option.id,
            "option_title": option.title,
            "cost": option.cost,
        })
    return rows


def build_report_snapshot(state: SessionState) -> Dict[str, Any]:
    """
    Complete, consistent view of a session for an external renderer.
    Nothing here formats or sends the report.
    """
    categories = state.categories
    user = state.user
    user_choices = user.policy_choices
    decisions = state.group_decisions

    answers = []
    for qid, answer in state.reflection_answers.items():
        q = find_question(qid)
        answers.append({"question_id": qid, "question": q.question if q else qid, "answer": answer})

    return {
        "session_id": state.session_id,
        "phase": state.phase.value,
        "user": {f: getattr(user, f) for f in USER_INFO_FIELDS},
        "user_choices": _choice_rows(user_choices, categories),
        "user_budget_spent": spent(user_choices, categories),
        "user_remaining_budget": user.remaining_budget,
        "total_budget": TOTAL_BUDGET,
        "group_decisions": _choice_rows(decisions, categories),
        "group_budget_spent": spent(decisions, categories),
        "negotiation_complete": all(c.id in decisions for c in categories),
        "agreement_count": sum(1 for cid, oid in decisions.items() if user_choices.get(cid) == oid),
        # Product rule "not every category from one option index"; reported, never enforced.
        "single_option_index": single_option_index(user_choices, categories),
        "agents": [
            {
                "id": a.id,
                "name": a.name,
                "political_stance": a.political_stance,
                "is_ally": a.is_ally,
                "policy_choices": dict(a.policy_choices),
                "remaining_budget": a.remaining_budget,
            }
            for a in state.agents
        ],
        "reflection_answers": answers,
        "catalog": [asdict(c) for c in categories],
    }


def reflection_request(state: SessionState) -> GenerationRequest:
    return GenerationRequest(
        prompt_text=decisions_text(state.user.policy_choices, state.categories),
        character_role=CharacterRole.GUIDE,
        system_prompt=GUIDE_REFLECTION_PROMPT,
        fallback_text=REFLECTION_FALLBACK,
        max_tokens=REFLECTION_MAX_TOKENS,
    )


async def generate_guide_reflection(gateway: DialogueGateway, state: SessionState) -> str:
    return await gateway.respond(reflection_request(state))
