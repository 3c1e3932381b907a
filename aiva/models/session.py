"""Conversation state and per-turn result models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ConversationMode(str, Enum):
    """Controller state: idle, or active in guided / free-order capture."""
    IDLE = "idle"
    GUIDED = "guided"
    FREE = "free"


@dataclass
class ConversationState:
    """
    Per-session controller state.

    Attributes:
        mode: Current controller mode
        step: Index of the next unanswered guided field (guided mode only)
        loading: Set while a submission is in flight for this session
        last_claim_id: Reference returned by the most recent successful submission
    """
    mode: ConversationMode = ConversationMode.IDLE
    step: int = 0
    loading: bool = False
    last_claim_id: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.mode != ConversationMode.IDLE

    @property
    def is_guided(self) -> bool:
        return self.mode == ConversationMode.GUIDED


@dataclass
class ExtractionResult:
    """
    Outcome of one extraction attempt.

    Attributes:
        candidate: Partial field map (the extraction candidate); empty on failure
        reason: Human-readable explanation when the candidate is empty
        source: Which rule set or strategy produced the candidate
        failed: True when the attempt broke (timeout, provider or file error)
    """
    candidate: Dict[str, Any] = field(default_factory=dict)
    reason: Optional[str] = None
    source: Optional[str] = None
    failed: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.candidate

    @classmethod
    def empty(cls, reason: str, source: Optional[str] = None) -> "ExtractionResult":
        return cls(candidate={}, reason=reason, source=source)

    @classmethod
    def failure(cls, reason: str, source: Optional[str] = None) -> "ExtractionResult":
        return cls(candidate={}, reason=reason, source=source, failed=True)


@dataclass
class TurnResult:
    """
    What the controller reports back for one user turn.

    Attributes:
        reply: Assistant message to show, or None for a silent turn
        changed: Keys whose draft value changed during the turn
        mode: Controller mode after the turn
        step: Guided step pointer after the turn
        ready_to_submit: True once guided mode has asked every question
        claim_id: Claim reference after a successful submission
        error: Short error text when the turn degraded
    """
    reply: Optional[str] = None
    changed: List[str] = field(default_factory=list)
    mode: ConversationMode = ConversationMode.IDLE
    step: int = 0
    ready_to_submit: bool = False
    claim_id: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reply": self.reply,
            "changed": list(self.changed),
            "mode": self.mode.value,
            "step": self.step,
            "ready_to_submit": self.ready_to_submit,
            "claim_id": self.claim_id,
            "error": self.error,
        }
