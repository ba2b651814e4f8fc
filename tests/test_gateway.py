import asyncio

from errors import GenerationTransportFailure
from gateway import DialogueGateway, GenerationRequest
from models import CharacterRole
from openrouter_client import AsyncOpenRouterClient, OpenRouterClient
from prompts import FILLER, STATIC_REPLIES


class DummyClient(OpenRouterClient):
    configured = True

    def __init__(self, reply):
        self.reply = reply
        self.calls = []

    def chat(self, messages, **kwargs):
        self.calls.append(messages)
        return self.reply


class FailingClient(OpenRouterClient):
    configured = True

    def __init__(self):
        self.calls = 0

    def chat(self, messages, **kwargs):
        self.calls += 1
        raise GenerationTransportFailure("openrouter", "error 503: unavailable", 503)


class SlowAsyncClient(AsyncOpenRouterClient):
    configured = True

    def __init__(self):
        pass

    async def achat(self, messages, **kwargs):
        await asyncio.sleep(5)
        return "too late to matter for anyone"


def _conservative_request():
    return GenerationRequest(
        prompt_text="Persona: Thomas Reynolds\nStance: Conservative\nThe player just said: equal access now.",
        character_role=CharacterRole.OPPONENT,
    )


def test_request_reads_persona_headers():
    req = _conservative_request()
    assert req.persona_name == "Thomas Reynolds"
    assert req.stance == "Conservative"


def test_request_defaults_from_role():
    req = GenerationRequest(prompt_text="What now?", character_role="guide")
    assert req.character_role is CharacterRole.GUIDE
    assert req.persona_name == "Professor Beanington"


def test_no_credential_goes_straight_to_static_tier():
    gw = DialogueGateway(
        primary=OpenRouterClient(api_key=None, model="m", api_url="http://localhost"),
        secondary=AsyncOpenRouterClient(api_key=None, model="m", api_url="http://localhost"),
    )
    for _ in range(5):
        result = asyncio.run(gw.generate(_conservative_request()))
        assert result.tier == "static"
        assert result.text
        assert "fiscal" in result.text.lower()


def test_both_tiers_failing_falls_back_to_template():
    primary, secondary = FailingClient(), FailingClient()
    gw = DialogueGateway(primary=primary, secondary=secondary)
    result = asyncio.run(gw.generate(_conservative_request()))
    assert result.tier == "static"
    assert result.text in STATIC_REPLIES["conservative"]
    assert primary.calls == 1 and secondary.calls == 1


def test_secondary_used_when_primary_fails():
    gw = DialogueGateway(primary=FailingClient(), secondary=DummyClient("We should keep the budget modest and steady."))
    result = asyncio.run(gw.generate(_conservative_request()))
    assert result.tier == "secondary"
    assert result.text == "We should keep the budget modest and steady."


def test_primary_reply_is_sanitized():
    client = DummyClient("Minister Grapeson: We should protect our schools and keep spending under control.")
    gw = DialogueGateway(primary=client)
    result = asyncio.run(gw.generate(_conservative_request()))
    assert result.tier == "primary"
    assert result.text == "We should protect our schools and keep spending under control."
    system = client.calls[0][0]
    assert system["role"] == "system" and "Thomas Reynolds" in system["content"]


def test_unrepairable_reply_becomes_filler():
    gw = DialogueGateway(primary=DummyClient("As an AI, I can't."))
    result = asyncio.run(gw.generate(_conservative_request()))
    assert result.tier == "filler"
    assert result.text == FILLER


def test_timeout_falls_through():
    gw = DialogueGateway(secondary=SlowAsyncClient(), timeout=0.01)
    result = asyncio.run(gw.generate(_conservative_request()))
    assert result.tier == "static"


def test_fallback_text_override():
    gw = DialogueGateway()
    req = GenerationRequest(prompt_text="x", character_role=CharacterRole.GUIDE, fallback_text="Thanks for playing along today.")
    assert asyncio.run(gw.respond(req)) == "Thanks for playing along today."


def test_prior_messages_are_forwarded():
    client = DummyClient("I hear you, and I still think balance matters here.")
    gw = DialogueGateway(primary=client)
    prior = [{"role": "user", "content": "You: hello"}]
    req = GenerationRequest(prompt_text="Persona: Dr. Sarah Chen\nStance: Progressive", prior_messages=prior)
    asyncio.run(gw.respond(req))
    sent = client.calls[0]
    assert sent[1] == prior[0]
    assert sent[-1]["role"] == "user"


class BrokenClient(OpenRouterClient):
    configured = True

    def __init__(self, error):
        self.error = error

    def chat(self, messages, **kwargs):
        raise self.error


def test_unexpected_transport_errors_fall_back_to_template():
    encode_error = UnicodeEncodeError("latin-1", "sk-or-v1-abc—123", 12, 13, "ordinal not in range(256)")
    gw = DialogueGateway(primary=BrokenClient(encode_error), secondary=BrokenClient(RuntimeError("boom")))
    result = asyncio.run(gw.generate(_conservative_request()))
    assert result.tier == "static"
    assert result.text in STATIC_REPLIES["conservative"]


def test_short_clean_reply_is_not_replaced():
    gw = DialogueGateway(primary=DummyClient("I agree with you."))
    result = asyncio.run(gw.generate(_conservative_request()))
    assert result.tier == "primary"
    assert result.text == "I agree with you."
