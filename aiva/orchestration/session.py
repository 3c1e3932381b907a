"""Session-scoped state for one form-assist conversation."""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from ..models.session import ConversationMode, ConversationState
from .conversation import ConversationHistory
from .draft_store import DraftStore


@dataclass
class FormSession:
    """
    Everything one conversation owns: draft, controller state and transcript.

    Passed by reference to the controller on every turn; nothing here is
    shared between sessions.
    """
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    draft: DraftStore = field(default_factory=DraftStore)
    state: ConversationState = field(default_factory=ConversationState)
    history: ConversationHistory = field(default_factory=ConversationHistory)
    created_at: datetime = field(default_factory=datetime.now)
    last_active: datetime = field(default_factory=datetime.now)
    # Serializes turns of this session
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    def __post_init__(self):
        if self.history.session_id is None:
            self.history.session_id = self.session_id

    @classmethod
    def create(cls, extra_aliases: Optional[Dict[str, str]] = None) -> "FormSession":
        return cls(draft=DraftStore(extra_aliases=extra_aliases))

    def touch(self) -> None:
        self.last_active = datetime.now()

    def idle_seconds(self, now: Optional[datetime] = None) -> float:
        return ((now or datetime.now()) - self.last_active).total_seconds()

    @property
    def mode(self) -> ConversationMode:
        return self.state.mode

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "mode": self.state.mode.value,
            "step": self.state.step,
            "loading": self.state.loading,
            "last_claim_id": self.state.last_claim_id,
            "draft": self.draft.snapshot(),
            "missing_required": self.draft.missing_required(),
            "messages": self.history.to_records(),
        }
