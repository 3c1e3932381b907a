"""Orchestration layer for form-assist conversations."""

from .conversation import ConversationHistory
from .draft_store import DraftStore
from .session import FormSession
from .controller import ConversationController

__all__ = [
    "ConversationHistory",
    "DraftStore",
    "FormSession",
    "ConversationController"
]
