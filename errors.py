from __future__ import annotations
from typing import Optional


class NegotiationError(Exception):
    """Base class for everything the negotiation core raises."""


class UnknownPolicyOption(NegotiationError, ValueError):
    def __init__(self, category_id: int, option_id: int):
        self.category_id = category_id
        self.option_id = option_id
        super().__init__(f"Category {category_id} has no option {option_id}")


class BudgetExceeded(NegotiationError, ValueError):
    """A selection would push the remaining budget below zero."""

    def __init__(self, category_id: int, option_id: int, remaining: int, delta: int):
        self.category_id = category_id
        self.option_id = option_id
        self.remaining = remaining
        self.delta = delta
        super().__init__(
            f"Option {option_id} in category {category_id} needs {delta} more units, "
            f"only {remaining} left"
        )


class GenerationTransportFailure(NegotiationError, RuntimeError):
    """Tier 1/2 backend unreachable, misconfigured or answered with an error status."""

    def __init__(self, transport: str, message: str, status_code: Optional[int] = None):
        self.transport = transport
        self.status_code = status_code
        super().__init__(f"{transport}: {message}")


class ContentPolicyViolation(NegotiationError):
    """Generated text leaked a foreign identity and could not be repaired."""

    def __init__(self, violations: list[str], text: str = ""):
        self.violations = list(violations)
        self.text = text
        super().__init__("Identity leakage: " + ", ".join(self.violations))


class SessionNotFound(NegotiationError, LookupError):
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Unknown session_id: {session_id}")
