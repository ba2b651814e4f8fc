from __future__ import annotations
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

from catalog import POLICY_CATALOG, REFLECTION_QUESTIONS
from config import Settings
from engine import NegotiationEngine
from errors import SessionNotFound
from logging_config import setup_logging
from models import Message, Phase, SessionState


# ---------- Pydantic IO models ----------
class SelectorOut(BaseModel):
    policy_choices: Dict[int, int]
    remaining_budget: int
    selections_complete: bool


class UserOut(BaseModel):
    age: Optional[str] = None
    nationality: Optional[str] = None
    occupation: Optional[str] = None
    education: Optional[str] = None
    displacement_experience: Optional[str] = None
    location: Optional[str] = None
    policy_choices: Dict[int, int]
    remaining_budget: int


class AgentOut(BaseModel):
    id: int
    name: str
    age: int
    occupation: str
    education: str
    socioeconomic_status: str
    political_stance: str
    bio: str
    is_ally: bool
    policy_choices: Dict[int, int]
    remaining_budget: int


class SessionStateOut(BaseModel):
    session_id: str
    phase: str
    user: UserOut
    agents: List[AgentOut]
    group_decisions: Dict[int, int]
    reflection_answers: Dict[str, str]


class PhaseIn(BaseModel):
    phase: str = Field(..., examples=["collectingUserInfo"])


class PhaseOut(BaseModel):
    phase: str
    changed: bool


class UserInfoIn(BaseModel):
    age: Optional[str] = None
    nationality: Optional[str] = None
    occupation: Optional[str] = None
    education: Optional[str] = None
    displacement_experience: Optional[str] = None
    location: Optional[str] = None


class SelectionIn(BaseModel):
    category_id: int = Field(..., examples=[1])
    option_id: int = Field(..., examples=[2])


class MessageIn(BaseModel):
    text: str = Field(..., min_length=1, examples=["I think equal access matters most."])


class MessageOut(BaseModel):
    id: int
    sender: str
    text: str
    is_user: bool
    agent_id: Optional[int] = None
    is_consensus: bool
    category_id: Optional[int] = None


class NegotiationOut(BaseModel):
    step: str
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    group_decisions: Dict[int, int]
    complete: bool
    messages: List[MessageOut]


class ReflectionIn(BaseModel):
    question_id: str = Field(..., examples=["emotions"])
    answer: str


class ReflectionTextOut(BaseModel):
    text: str


# ---------- Helpers ----------
def get_engine(request: Request) -> NegotiationEngine:
    return request.app.state.engine


def _to_state_out(st: SessionState) -> SessionStateOut:
    u = st.user
    return SessionStateOut(
        session_id=st.session_id,
        phase=st.phase.value,
        user=UserOut(
            age=u.age, nationality=u.nationality, occupation=u.occupation,
            education=u.education, displacement_experience=u.displacement_experience,
            location=u.location, policy_choices=u.policy_choices, remaining_budget=u.remaining_budget,
        ),
        agents=[
            AgentOut(
                id=a.id, name=a.name, age=a.age, occupation=a.occupation, education=a.education,
                socioeconomic_status=a.socioeconomic_status, political_stance=a.political_stance,
                bio=a.bio, is_ally=a.is_ally, policy_choices=a.policy_choices,
                remaining_budget=a.remaining_budget,
            )
            for a in st.agents
        ],
        group_decisions=st.group_decisions,
        reflection_answers=st.reflection_answers,
    )


def _to_messages_out(messages: List[Message]) -> List[MessageOut]:
    return [
        MessageOut(
            id=m.id, sender=m.sender, text=m.text, is_user=m.is_user,
            agent_id=m.agent_id, is_consensus=m.is_consensus, category_id=m.category_id,
        )
        for m in messages
    ]


def _require_state(engine: NegotiationEngine, session_id: str) -> SessionState:
    st = engine.get_state(session_id)
    if st is None:
        raise HTTPException(404, "Session not found")
    return st


# ---------- Routes ----------
router = APIRouter(prefix="/v1/negotiation")


@router.post("/sessions", response_model=SessionStateOut)
def start_session(engine: NegotiationEngine = Depends(get_engine)):
    return _to_state_out(engine.start_session())


@router.get("/sessions/{session_id}", response_model=SessionStateOut)
def get_state(session_id: str, engine: NegotiationEngine = Depends(get_engine)):
    return _to_state_out(_require_state(engine, session_id))


@router.post("/sessions/{session_id}/phase", response_model=PhaseOut)
def advance_phase(session_id: str, payload: PhaseIn, engine: NegotiationEngine = Depends(get_engine)):
    st = _require_state(engine, session_id)
    before = st.phase
    try:
        after = engine.advance_phase(session_id, payload.phase)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return PhaseOut(phase=after.value, changed=after is not before)


@router.post("/sessions/{session_id}/user-info", response_model=SessionStateOut)
def update_user_info(session_id: str, payload: UserInfoIn, engine: NegotiationEngine = Depends(get_engine)):
    _require_state(engine, session_id)
    engine.update_user_info(session_id, **payload.model_dump(exclude_unset=True))
    return _to_state_out(_require_state(engine, session_id))


@router.post("/sessions/{session_id}/selections", response_model=SelectorOut)
def select_policy(session_id: str, payload: SelectionIn, engine: NegotiationEngine = Depends(get_engine)):
    st = _require_state(engine, session_id)
    if not engine.select_policy(session_id, payload.category_id, payload.option_id):
        raise HTTPException(
            status_code=400,
            detail=f"Selection rejected: category {payload.category_id}, option {payload.option_id}, "
                   f"remaining budget {st.user.remaining_budget}",
        )
    store = engine.get_session(session_id)
    user = store.state.user
    return SelectorOut(
        policy_choices=user.policy_choices,
        remaining_budget=user.remaining_budget,
        selections_complete=store.has_selected_all_categories,
    )


def _negotiation_out(engine: NegotiationEngine, session_id: str) -> NegotiationOut:
    st = _require_state(engine, session_id)
    orch = engine.get_negotiation(session_id)
    if orch is None:
        raise HTTPException(404, "Negotiation not started")
    cat = orch.current_category
    return NegotiationOut(
        step=orch.step.value,
        category_id=cat.id if cat else None,
        category_name=cat.name if cat else None,
        group_decisions=st.group_decisions,
        complete=engine.get_session(session_id).all_categories_decided,
        messages=_to_messages_out(orch.messages),
    )


@router.post("/sessions/{session_id}/negotiation/start", response_model=NegotiationOut)
async def start_negotiation(session_id: str, engine: NegotiationEngine = Depends(get_engine)):
    _require_state(engine, session_id)
    try:
        await engine.start_negotiation(session_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _negotiation_out(engine, session_id)


@router.get("/sessions/{session_id}/negotiation", response_model=NegotiationOut)
def get_negotiation(session_id: str, engine: NegotiationEngine = Depends(get_engine)):
    return _negotiation_out(engine, session_id)


@router.post("/sessions/{session_id}/negotiation/messages", response_model=List[MessageOut])
async def send_message(session_id: str, payload: MessageIn, engine: NegotiationEngine = Depends(get_engine)):
    _require_state(engine, session_id)
    try:
        new = await engine.send_message(session_id, payload.text)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _to_messages_out(new)


@router.post("/sessions/{session_id}/negotiation/vote", response_model=List[MessageOut])
async def resolve_vote(session_id: str, engine: NegotiationEngine = Depends(get_engine)):
    _require_state(engine, session_id)
    try:
        new = await engine.resolve_vote(session_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _to_messages_out(new)


@router.post("/sessions/{session_id}/reflections", response_model=SessionStateOut)
def save_reflection(session_id: str, payload: ReflectionIn, engine: NegotiationEngine = Depends(get_engine)):
    _require_state(engine, session_id)
    try:
        engine.save_reflection(session_id, payload.question_id, payload.answer)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _to_state_out(_require_state(engine, session_id))


@router.get("/sessions/{session_id}/report")
def get_report(session_id: str, engine: NegotiationEngine = Depends(get_engine)) -> Dict[str, Any]:
    try:
        return engine.report(session_id)
    except SessionNotFound:
        raise HTTPException(404, "Session not found")


@router.post("/sessions/{session_id}/report/reflection", response_model=ReflectionTextOut)
async def generate_reflection(session_id: str, engine: NegotiationEngine = Depends(get_engine)):
    _require_state(engine, session_id)
    return ReflectionTextOut(text=await engine.generate_reflection(session_id))


@router.post("/sessions/{session_id}/reset", response_model=SessionStateOut)
async def reset_session(session_id: str, engine: NegotiationEngine = Depends(get_engine)):
    _require_state(engine, session_id)
    return _to_state_out(await engine.reset_session(session_id))


@router.get("/catalog")
def get_catalog() -> Dict[str, Any]:
    return {
        "categories": [
            {
                "id": c.id,
                "name": c.name,
                "options": [
                    {"id": o.id, "title": o.title, "description": o.description,
                     "advantages": o.advantages, "disadvantages": o.disadvantages, "cost": o.cost}
                    for o in c.options
                ],
            }
            for c in POLICY_CATALOG
        ],
        "reflection_questions": [{"id": q.id, "question": q.question} for q in REFLECTION_QUESTIONS],
        "phases": [p.value for p in Phase],
    }


# ---------- App ----------
def create_app(engine: Optional[NegotiationEngine] = None) -> FastAPI:
    if engine is None:
        settings = Settings.from_env()
        setup_logging(settings.log_level, log_file=settings.log_file)
        engine = NegotiationEngine.from_settings(settings)
    app = FastAPI(title="Policy Negotiation API", version="1.0.0")
    app.state.engine = engine
    app.include_router(router)
    return app


app = create_app()
