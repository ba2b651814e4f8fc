from __future__ import annotations
import random
from typing import Dict, Optional, Sequence, Tuple

from models import TOTAL_BUDGET, Agent, CharacterRole, PolicyCategory

# ---------- Personas ----------
PERSONA_NAMES: Dict[CharacterRole, Optional[str]] = {
    CharacterRole.GUIDE: "Professor Beanington",
    CharacterRole.OPPONENT: "Minister Grapeson",
    CharacterRole.ALLY: "Councilor Curlyhair",
    CharacterRole.NEUTRAL: None,
}

PERSONA_PROMPTS: Dict[CharacterRole, str] = {
    CharacterRole.GUIDE: """You are Professor Beanington, a wise and helpful guide in the CHALLENGE Game.
You speak in a friendly but authoritative tone, using academic language occasionally.
Your goal is to help the player understand the game mechanics and make informed decisions.
Occasionally use bean-related puns or metaphors to lighten the mood.
Keep your responses concise and helpful, focusing on guiding the player.""",
    CharacterRole.OPPONENT: """You are Minister Grapeson, a conservative politician from the majority Grapes group.
You speak in a formal, sometimes condescending tone.
You believe in preserving traditional values and maintaining the status quo.
You are skeptical about changes that might threaten the Grapes' dominance.
Keep your responses concise but show your character's perspective.""",
    CharacterRole.ALLY: """You are Councilor Curlyhair, an advocate for the Curly Hairs minority group.
You speak passionately about inclusion, diversity, and equal rights.
You are supportive of progressive policies that help minorities and refugees.
Keep your responses concise but show your unique perspective.""",
    CharacterRole.NEUTRAL: """You are a member of the refugee-education policy committee of the Republic of Bean.
You weigh costs against benefits and speak plainly.
Keep your responses concise.""",
}

COMMITTEE_MEMBER_PROMPT = """You are {name}, a {stance} member of the refugee-education policy committee of the Republic of Bean.
{role_hint}
RULES
- Speak only as {name}, in the first person, in 2-4 sentences.
- Never describe yourself as an AI, a model or an assistant, and never speak for another committee member.
- Do not prefix your reply with your name or any speaker label.
- The committee shares a budget of {budget} units; option costs are 1, 2 or 3 units."""

ROLE_HINTS: Dict[CharacterRole, str] = {
    CharacterRole.GUIDE: "You help the player understand the trade-offs.",
    CharacterRole.OPPONENT: "You are skeptical of costly changes and defend the existing system.",
    CharacterRole.ALLY: "You champion inclusion and equal rights for refugee students.",
    CharacterRole.NEUTRAL: "You look for workable middle ground.",
}


def system_prompt(role: CharacterRole, persona_name: Optional[str] = None, stance: Optional[str] = None) -> str:
    if not persona_name:
        return PERSONA_PROMPTS[role]
    return COMMITTEE_MEMBER_PROMPT.format(
        name=persona_name,
        stance=(stance or "independent").lower(),
        role_hint=ROLE_HINTS[role],
        budget=TOTAL_BUDGET,
    )


def stance_key(stance: Optional[str]) -> str:
    """Normalize a free-form stance to one of the template keys."""
    s = (stance or "").strip().lower()
    if s == "conservative":
        return "conservative"
    if s in ("progressive", "liberal", "liberal/progressive"):
        return "liberal"
    if s == "socialist":
        return "socialist"
    if s == "moderate":
        return "moderate"
    if s == "guide":
        return "guide"
    return "default"


# ---------- Static replies (last transport tier) ----------
# Every conservative line mentions "fiscal"; every line is non-empty.
STATIC_REPLIES: Dict[str, Tuple[str, ...]] = {
    "conservative": (
        "We have to stay fiscally responsible here. Every unit we spend on this comes out of something else our schools already need.",
        "I cannot support a plan that ignores fiscal reality. Let us fund what keeps the system stable before we promise more.",
        "Gradual integration is the prudent course. A fiscal overreach now would only heighten tensions later.",
    ),
    "liberal": (
        "I think we can find a balance between real inclusion and what our schools can actually deliver.",
        "Let's aim for sustainable progress: a balanced option that refugee families can rely on and that we can implement well.",
        "There is merit on both sides, and a balanced, middle-cost approach seems like the responsible way forward.",
    ),
    "socialist": (
        "Education is a right, not a privilege to be rationed. Refugee children deserve equal access to everything citizens receive.",
        "We should stop treating equal rights as a budget line. Anything less than full support entrenches the inequality we claim to fight.",
        "Our first duty is equal opportunity for every student, whatever their origin, and the policy has to reflect that.",
    ),
    "moderate": (
        "I see good arguments on both sides. Perhaps a compromise would gain the broadest support.",
        "Let's look for a compromise that is affordable and can actually be carried out by the people in our schools.",
        "A pragmatic compromise is better than a perfect plan that never gets implemented.",
    ),
    "guide": (
        "Take a moment to weigh each option against the budget. Every bean counts, and every choice shapes someone's future.",
        "Remember that you have 14 units in total. Think about who gains and who waits under each option.",
    ),
    "default": (
        "That is an important point. Let's consider how each option affects both refugees and the wider community.",
        "I am listening to everyone's views before I settle on a position for this category.",
    ),
}

FILLER = "That is a fair point, and I want to think about how it fits our shared budget."


def static_reply(stance: Optional[str], rng: Optional[random.Random] = None) -> str:
    rng = rng or random.Random()
    return rng.choice(STATIC_REPLIES[stance_key(stance)])


# ---------- Negotiation script ----------
WELCOME_MESSAGE = (
    "Welcome to Phase II: Group Discussion & Consensus Building. You'll now discuss your policy "
    "choices with the committee members representing different perspectives. For each policy "
    "category, you'll debate and then vote on a final decision."
)

FIRST_CATEGORY_INTRO = "Let's begin our discussion with the first policy category: {category}. What are your thoughts on this issue?"
NEXT_CATEGORY_INTRO = "Let's move on to the next policy category: {category}. What are your thoughts on this issue?"

VOTING_MESSAGE = (
    "Thank you for sharing your perspectives on {category}. "
    "Let's now vote on our final decision for this category. The options are: {options}."
)

SUMMARY_MESSAGE = (
    "We've completed our discussion of all policy categories. Our final decisions use {spent} of our "
    "{budget} budget units. Thank you for your participation in this important dialogue about refugee education."
)

OPENING_STATEMENTS: Dict[str, str] = {
    "conservative": (
        "As a {age}-year-old {occupation} with a background in {education}, I believe we need to approach "
        "refugee education with fiscal responsibility and careful integration. We should prioritize solutions "
        "that maintain stability while providing necessary support."
    ),
    "liberal": (
        "From my perspective as a {age}-year-old {occupation} with {education}, I believe we should find balanced "
        "solutions that promote inclusion while acknowledging practical constraints. I'll support progressive "
        "policies that can be effectively implemented."
    ),
    "socialist": (
        "With my experience as a {age}-year-old {occupation} and my {education} background, I'm advocating for "
        "transformative policies that prioritize equal access and comprehensive support for refugees. "
        "Education is a right, not a privilege to be rationed."
    ),
    "moderate": (
        "Drawing on my experiences as a {age}-year-old {occupation} with {education}, I'm looking for pragmatic "
        "solutions that can gain broad support. I believe in finding common ground and a compromise that works "
        "in practice, not just in theory."
    ),
    "default": (
        "As a {age}-year-old {occupation}, I'm approaching this discussion with an open mind. My background in "
        "{education} has taught me to consider multiple perspectives before making decisions."
    ),
}

POSITION_STATEMENTS: Dict[str, str] = {
    "conservative": "On {category}, I favor \"{option}\". It keeps us fiscally sound at {cost} unit(s).",
    "liberal": "On {category}, I lean toward \"{option}\" ({cost} unit(s)) as a balance between ambition and practicality.",
    "socialist": "On {category}, I back \"{option}\" ({cost} unit(s)) because refugees deserve equal treatment.",
    "moderate": "On {category}, \"{option}\" ({cost} unit(s)) looks like a workable compromise to me.",
    "default": "On {category}, I chose \"{option}\" ({cost} unit(s)).",
}

NO_POSITION_STATEMENT = "On {category}, my budget was already committed, so I'll listen before taking a side."


def opening_statement(agent: Agent) -> str:
    return OPENING_STATEMENTS[_agent_key(agent)].format(
        age=agent.age, occupation=agent.occupation, education=agent.education,
    )


def position_statement(agent: Agent, category: PolicyCategory) -> str:
    option = category.option(agent.policy_choices.get(category.id, 0))
    if option is None:
        return NO_POSITION_STATEMENT.format(category=category.name)
    return POSITION_STATEMENTS[_agent_key(agent)].format(
        category=category.name, option=option.title, cost=option.cost,
    )


# Static committee replies keyed on whether the player picked the member's own option.
AGREEMENT_REPLIES: Dict[str, str] = {
    "conservative": "I agree with choosing \"{option}\" for {category}. It is the fiscally sound path.",
    "liberal": "We agree on \"{option}\" for {category}. It strikes the balance I was hoping for.",
    "socialist": "I'm glad we agree on \"{option}\" for {category}. It moves us toward equal access.",
    "moderate": "We both chose \"{option}\" for {category}, which makes it a natural compromise.",
    "default": "I also chose \"{option}\" for {category}, so we are on the same page.",
}

DISAGREEMENT_REPLIES: Dict[str, str] = {
    "conservative": "I disagree. For {category} I still prefer \"{option}\", which is the fiscally responsible choice.",
    "liberal": "I see it differently. \"{option}\" gives {category} a better balance between ambition and cost.",
    "socialist": "I can't support that. \"{option}\" is what equal treatment in {category} actually requires.",
    "moderate": "I understand your view, but for {category} I think \"{option}\" is the better compromise.",
    "default": "I went another way on {category}: \"{option}\" still seems right to me.",
}


def stance_reply(agent: Agent, category: PolicyCategory, user_option_id: Optional[int]) -> Optional[str]:
    """Agreement or disagreement line, or None when either side has no pick."""
    own = category.option(agent.policy_choices.get(category.id, 0))
    if own is None or user_option_id is None:
        return None
    templates = AGREEMENT_REPLIES if own.id == user_option_id else DISAGREEMENT_REPLIES
    return templates[_agent_key(agent)].format(category=category.name, option=own.title)


def _agent_key(agent: Agent) -> str:
    key = stance_key(agent.political_stance)
    return key if key in OPENING_STATEMENTS else "default"


def voting_message(category: PolicyCategory) -> str:
    options = "; ".join(f"{o.id}) {o.title} (cost {o.cost})" for o in category.options)
    return VOTING_MESSAGE.format(category=category.name, options=options)


CONSENSUS_MESSAGES: Tuple[str, ...] = (
    "After careful consideration and weighing all perspectives, the group has reached a consensus on {category}. We will implement \"{option}\" as our collective decision.",
    "For {category}, the majority vote supports \"{option}\". This represents our joint commitment to a balanced approach.",
    "The final decision for {category} is \"{option}\". This reflects our collaborative effort to find a solution that addresses various concerns.",
    "We've agreed to move forward with \"{option}\" for {category}. This approach incorporates input from diverse perspectives in our discussion.",
    "Our collective decision on {category} is to implement \"{option}\". This represents the majority view after thorough deliberation.",
)


def consensus_message(category_name: str, option_title: str, cost: int, rng: random.Random) -> str:
    text = rng.choice(CONSENSUS_MESSAGES).format(category=category_name, option=option_title)
    return f"{text} It costs {cost} budget unit{'s' if cost != 1 else ''}."


def agent_prompt(
    agent: Agent,
    category: PolicyCategory,
    user_text: str,
    user_option_id: Optional[int] = None,
) -> str:
    """
    Prompt for one committee reply. The Persona/Stance header lines are read
    back by the gateway to build the system instruction.
    """
    lines = [
        f"Persona: {agent.name}",
        f"Stance: {agent.political_stance}",
        f"Category under discussion: {category.name}",
        "Options: " + "; ".join(f"{o.id}) {o.title} (cost {o.cost}): {o.description}" for o in category.options),
    ]
    own = category.option(agent.policy_choices.get(category.id, 0))
    lines.append(f"Your own preference: {own.title}" if own else "Your own preference: none (budget exhausted)")
    user_opt = category.option(user_option_id or 0)
    if user_opt:
        lines.append(f"The player selected: {user_opt.title}")
    lines.append(f"The player just said: {user_text}")
    lines.append("Respond to the player in character.")
    return "\n".join(lines)


# ---------- Guide reflection ----------
GUIDE_REFLECTION_PROMPT = """You are Professor Beanington, an expert in refugee education policy from the Republic of Bean.
Analyze the player's policy choices and provide a thoughtful, educational reflection on their impact.
Focus on how these choices might affect refugees, social cohesion, and the education system.
Include both positive aspects and potential challenges of their approach.
Keep your tone professional but friendly, and make references to the game's fictional setting.
Limit your response to about 250 words and ensure it feels like an expert assessment rather than generic praise."""

REFLECTION_FALLBACK = (
    "Thank you for your participation in the CHALLENGE Game. Your policy choices reflect a unique approach "
    "to the refugee education challenge in the Republic of Bean. Continue reflecting on these complex issues "
    "in your real-world context."
)

REFLECTION_MAX_TOKENS = 500


def decisions_text(choices: Dict[int, int], categories: Sequence[PolicyCategory]) -> str:
    lines = ["User selected the following policies:"]
    for cat in categories:
        option = cat.option(choices.get(cat.id, 0))
        if option:
            lines.append(f"- {cat.name}: {option.title} (Cost: {option.cost})")
    lines.append("")
    lines.append("Provide a reflection on these policy choices and their potential impacts.")
    return "\n".join(lines)
