"""
Identity-leak scrubbing for generated dialogue.

Backends sometimes answer "as an AI", label the line with another speaker's
name, or introduce themselves as a different character. Each leak kind is one
row of LEAK_PATTERNS; `sanitize` applies the table and reports what it found,
`ensure_in_character` raises ContentPolicyViolation when too little survives.
"""
from __future__ import annotations
import re
from dataclasses import dataclass, field
from typing import List, Optional, Pattern, Tuple

from errors import ContentPolicyViolation

MIN_LENGTH = 20

STRIP_LEAD = "strip_lead"
DROP_SENTENCE = "drop_sentence"
RENAME = "rename"

_NAME = r"(?:(?:Dr|Mr|Mrs|Ms|Prof)\.?\s+|Professor\s+|Minister\s+|Councilor\s+)?[A-Z][\w'-]+(?:\s+[A-Z][\w'-]+){0,2}"
# Speaker labels need a title or at least two capitalized words, so "Note:" stays.
_LABEL_NAME = (
    r"(?:(?:Dr|Mr|Mrs|Ms|Prof)\.?\s+|Professor\s+|Minister\s+|Councilor\s+)[A-Z][\w'-]+(?:\s+[A-Z][\w'-]+){0,2}"
    r"|[A-Z][\w'-]+(?:\s+[A-Z][\w'-]+){1,2}"
)
_AI_NOUN = r"(?:AI|A\.I\.|artificial intelligence|(?:large\s+)?language model|LLM|chatbot|virtual assistant|AI assistant|computer program|bot)"

# Capitalized words that follow "I am" / "As" without being a persona name.
_NOT_NAMES = {
    "conservative", "progressive", "liberal", "socialist", "moderate",
    "teanish", "bean", "grape", "grapes", "citizens", "refugees", "educators",
    "parents", "teachers", "policymakers", "someone", "a", "an", "the",
}


@dataclass(frozen=True)
class LeakPattern:
    name: str
    regex: Pattern[str]
    action: str


LEAK_PATTERNS: Tuple[LeakPattern, ...] = (
    LeakPattern(
        "role_disclaimer",
        re.compile(r"^\s*as\s+an?\s+" + _AI_NOUN + r"\b[^,.!?:]*[,.!?:]\s*", re.IGNORECASE),
        STRIP_LEAD,
    ),
    LeakPattern(
        "speaker_label",
        re.compile(r"^\s*\**(?P<name>" + _LABEL_NAME + r")\**\s*:\s+"),
        STRIP_LEAD,
    ),
    LeakPattern(
        "persona_lead_in",
        re.compile(r"^\s*(?:[Ss]peaking\s+)?[Aa]s\s+(?P<name>" + _NAME + r")\s*,\s*"),
        STRIP_LEAD,
    ),
    LeakPattern(
        "ai_self_reference",
        re.compile(
            r"[^.!?]*\b(?:I\s+am|I'm|I’m)\s+(?:just\s+|only\s+|merely\s+|not\s+a\s+person,?\s+)?(?:an?\s+)?"
            + _AI_NOUN + r"\b[^.!?]*[.!?]?",
            re.IGNORECASE,
        ),
        DROP_SENTENCE,
    ),
    LeakPattern(
        "model_disclosure",
        re.compile(
            r"[^.!?]*\b(?:language model|trained by OpenAI|my training data|knowledge cutoff|as an AI)\b[^.!?]*[.!?]?",
            re.IGNORECASE,
        ),
        DROP_SENTENCE,
    ),
    LeakPattern(
        "foreign_identity",
        re.compile(r"\b(?P<lead>(?:I\s+am|I'm|I’m|[Mm]y\s+name\s+is)\s+)(?P<name>" + _NAME + r")"),
        RENAME,
    ),
)


@dataclass
class SanitizeResult:
    text: str
    violations: List[str] = field(default_factory=list)
    acceptable: bool = True


def _is_persona(name: str, persona_name: Optional[str]) -> bool:
    if not persona_name:
        return False
    name_l = name.strip().lower()
    persona_l = persona_name.strip().lower()
    if name_l == persona_l or name_l in persona_l:
        return True
    persona_tokens = {t.strip(".") for t in persona_l.split()}
    return all(t.strip(".") in persona_tokens for t in name_l.split())


def _looks_like_name(name: str) -> bool:
    first = name.split()[0].lower().strip(".")
    return first not in _NOT_NAMES and first.rstrip("s") not in _NOT_NAMES


def _tidy(text: str) -> str:
    text = re.sub(r"\s+", " ", text).strip()
    text = text.lstrip(",;:-–— ").strip()
    if text and text[0].islower():
        text = text[0].upper() + text[1:]
    return text


def sanitize(text: str, persona_name: Optional[str] = None, min_length: int = MIN_LENGTH) -> SanitizeResult:
    violations: List[str] = []
    out = (text or "").strip()

    # Lead-ins can stack ("Minister Grapeson: As an AI, ..."), so peel until stable.
    leads = [p for p in LEAK_PATTERNS if p.action == STRIP_LEAD]
    changed = True
    while changed and out:
        changed = False
        for pat in leads:
            m = pat.regex.match(out)
            if not m:
                continue
            name = m.groupdict().get("name")
            if name is not None and not _looks_like_name(name):
                continue
            out = out[m.end():]
            violations.append(pat.name)
            changed = True

    for pat in LEAK_PATTERNS:
        if pat.action == DROP_SENTENCE and pat.regex.search(out):
            out = pat.regex.sub(" ", out)
            violations.append(pat.name)

    rename = [p for p in LEAK_PATTERNS if p.action == RENAME]
    for pat in rename:
        def _swap(m: "re.Match[str]") -> str:
            name = m.group("name")
            if not _looks_like_name(name) or _is_persona(name, persona_name):
                return m.group(0)
            violations.append(pat.name)
            if persona_name:
                return m.group("lead") + persona_name
            return ""
        out = pat.regex.sub(_swap, out)

    out = _tidy(out)
    return SanitizeResult(text=out, violations=violations, acceptable=_acceptable(out, violations, min_length))


def _acceptable(text: str, violations: List[str], min_length: int) -> bool:
    # Length only matters once something was cut out.
    return bool(text) and (not violations or len(text) >= min_length)


def ensure_in_character(text: str, persona_name: Optional[str] = None, min_length: int = MIN_LENGTH) -> str:
    result = sanitize(text, persona_name, min_length)
    if not result.acceptable:
        raise ContentPolicyViolation(result.violations or ["too_short"], result.text)
    return result.text
