import pytest

from errors import ContentPolicyViolation
from sanitizer import ensure_in_character, sanitize

# (raw text, persona, expected text, expected violations)
BAD = [
    (
        "As an AI language model, I think equal access is essential for every child.",
        "Maria González",
        "I think equal access is essential for every child.",
        ["role_disclaimer"],
    ),
    (
        "Minister Grapeson: We must protect the budget for our own citizens first.",
        "Thomas Reynolds",
        "We must protect the budget for our own citizens first.",
        ["speaker_label"],
    ),
    (
        "As Minister Grapeson, I must object to this plan entirely.",
        "Thomas Reynolds",
        "I must object to this plan entirely.",
        ["persona_lead_in"],
    ),
    (
        "I am an AI and cannot hold opinions. Still, language support should come first for refugee pupils.",
        "Dr. Sarah Chen",
        "Still, language support should come first for refugee pupils.",
        ["ai_self_reference"],
    ),
    (
        "I'm Councilor Curlyhair, and I believe refugees deserve equal access.",
        "Maria González",
        "I'm Maria González, and I believe refugees deserve equal access.",
        ["foreign_identity"],
    ),
]

GOOD = [
    ("Separate schools would isolate children from their peers.", "Dr. Sarah Chen"),
    ("My name is Maria, and education is a right for everyone.", "Maria González"),
    ("As a conservative, I think we must be careful with money.", "Thomas Reynolds"),
    ("As Conservatives, we value prudence in public spending.", "Thomas Reynolds"),
    ("I am against rationing education by origin.", "Maria González"),
    ("Absolutely: we cannot afford separate schools this year.", "Thomas Reynolds"),
    ("Note: the budget is tight, so we should phase this in.", "Dr. Sarah Chen"),
    ("I agree with you.", "Maria González"),
]


@pytest.mark.parametrize("raw,persona,expected,violations", BAD)
def test_leaks_are_repaired(raw, persona, expected, violations):
    result = sanitize(raw, persona)
    assert result.text == expected
    assert result.violations == violations
    assert result.acceptable


@pytest.mark.parametrize("raw,persona", GOOD)
def test_clean_text_passes_unchanged(raw, persona):
    result = sanitize(raw, persona)
    assert result.text == raw
    assert result.violations == []


def test_stacked_lead_ins_are_peeled():
    result = sanitize("Minister Grapeson: As an AI, I would still keep spending modest this year.", "Thomas Reynolds")
    assert result.text == "I would still keep spending modest this year."
    assert result.violations == ["speaker_label", "role_disclaimer"]


def test_too_short_after_repair_raises():
    with pytest.raises(ContentPolicyViolation) as exc:
        ensure_in_character("As an AI, I cannot.", "Thomas Reynolds")
    assert "role_disclaimer" in exc.value.violations


def test_empty_text_raises():
    with pytest.raises(ContentPolicyViolation):
        ensure_in_character("", "Thomas Reynolds")


def test_short_clean_reply_is_kept():
    assert ensure_in_character("I agree with you.", "Maria González") == "I agree with you."
