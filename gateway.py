"""
Dialogue generation with tiered fallback.

Tier 1 is the primary transport, tier 2 the secondary one, tier 3 a static
stance template. Output from tiers 1 and 2 passes through the sanitizer; a
reply that cannot be corrected is replaced by a fixed filler sentence.
The gateway holds no session state and never writes to a message log.
"""
from __future__ import annotations
import asyncio
import logging
import random
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from config import Settings
from errors import ContentPolicyViolation, GenerationTransportFailure
from models import CharacterRole
from openrouter_client import AsyncOpenRouterClient, BaseOpenRouterClient, OpenRouterClient
from prompts import FILLER, PERSONA_NAMES, static_reply, system_prompt
from sanitizer import MIN_LENGTH, ensure_in_character

logger = logging.getLogger(__name__)

TIER_PRIMARY = "primary"
TIER_SECONDARY = "secondary"
TIER_STATIC = "static"
TIER_FILLER = "filler"

_HEADER = re.compile(r"^\s*(Persona|Stance)\s*:\s*(.+?)\s*$", re.IGNORECASE | re.MULTILINE)

# Stance used for the static tier when the request carries none.
ROLE_DEFAULT_STANCE: Dict[CharacterRole, str] = {
    CharacterRole.GUIDE: "guide",
    CharacterRole.OPPONENT: "Conservative",
    CharacterRole.ALLY: "Progressive",
    CharacterRole.NEUTRAL: "",
}


@dataclass
class GenerationRequest:
    prompt_text: str
    character_role: CharacterRole = CharacterRole.NEUTRAL
    prior_messages: List[Dict[str, str]] = field(default_factory=list)
    persona_name: Optional[str] = None
    stance: Optional[str] = None
    # Overrides for one-off requests such as the guide's reflection.
    system_prompt: Optional[str] = None
    fallback_text: Optional[str] = None
    max_tokens: Optional[int] = None

    def __post_init__(self) -> None:
        self.character_role = CharacterRole(self.character_role)
        headers = {k.lower(): v for k, v in _HEADER.findall(self.prompt_text or "")}
        if self.persona_name is None:
            self.persona_name = headers.get("persona") or PERSONA_NAMES.get(self.character_role)
        if self.stance is None:
            self.stance = headers.get("stance") or ROLE_DEFAULT_STANCE[self.character_role]


@dataclass(frozen=True)
class GenerationResult:
    text: str
    tier: str


class DialogueGateway:
    def __init__(
        self,
        primary: Optional[BaseOpenRouterClient] = None,
        secondary: Optional[BaseOpenRouterClient] = None,
        rng: Optional[random.Random] = None,
        max_tokens: int = 300,
        temperature: float = 0.7,
        timeout: Optional[float] = None,
        min_length: int = MIN_LENGTH,
    ):
        self.primary = primary
        self.secondary = secondary
        self.rng = rng or random.Random()
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout
        self.min_length = min_length

    @classmethod
    def from_settings(cls, settings: Settings, rng: Optional[random.Random] = None) -> "DialogueGateway":
        return cls(
            primary=OpenRouterClient.from_settings(settings),
            secondary=AsyncOpenRouterClient.from_settings(settings),
            rng=rng,
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
            # Outer bound a little above the per-request transport timeout.
            timeout=settings.timeout + 5.0,
        )

    def _tiers(self) -> Sequence[Tuple[str, Optional[BaseOpenRouterClient]]]:
        return ((TIER_PRIMARY, self.primary), (TIER_SECONDARY, self.secondary))

    def build_messages(self, request: GenerationRequest) -> List[Dict[str, str]]:
        system = request.system_prompt or system_prompt(
            request.character_role, request.persona_name, request.stance,
        )
        return [
            {"role": "system", "content": system},
            *request.prior_messages,
            {"role": "user", "content": request.prompt_text},
        ]

    async def _call(self, client: BaseOpenRouterClient, messages: List[Dict[str, str]], max_tokens: int) -> str:
        call = client.achat(messages, temperature=self.temperature, max_tokens=max_tokens)
        if self.timeout is None:
            return await call
        return await asyncio.wait_for(call, self.timeout)

    def _static(self, request: GenerationRequest) -> GenerationResult:
        text = request.fallback_text or static_reply(request.stance, self.rng)
        return GenerationResult(text=text, tier=TIER_STATIC)

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        messages = self.build_messages(request)
        max_tokens = request.max_tokens or self.max_tokens

        for tier, client in self._tiers():
            if client is None or not client.configured:
                continue
            try:
                raw = await self._call(client, messages, max_tokens)
            except GenerationTransportFailure as e:
                logger.warning("Tier %s failed: %s", tier, e)
                continue
            except asyncio.TimeoutError:
                logger.warning("Tier %s timed out after %ss", tier, self.timeout)
                continue
            except Exception as e:
                # Any transport bug degrades to the next tier; the static tier always answers.
                logger.warning("Tier %s raised %s: %s", tier, type(e).__name__, e, exc_info=True)
                continue

            try:
                text = ensure_in_character(raw, request.persona_name, self.min_length)
            except ContentPolicyViolation as e:
                logger.info("Tier %s reply discarded (%s); using filler", tier, ", ".join(e.violations))
                return GenerationResult(text=FILLER, tier=TIER_FILLER)
            return GenerationResult(text=text, tier=tier)

        logger.debug("No transport available for %s; static reply", request.persona_name or request.character_role.value)
        return self._static(request)

    async def respond(self, request: GenerationRequest) -> str:
        return (await self.generate(request)).text
