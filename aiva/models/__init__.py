"""Data models for the claim form and conversation state."""

from .claim_form import Attachment, FieldSchema, FieldSpec, FieldType, TRAVEL_CLAIM_SCHEMA
from .session import ConversationMode, ConversationState, ExtractionResult, TurnResult

__all__ = [
    "Attachment",
    "FieldSchema",
    "FieldSpec",
    "FieldType",
    "TRAVEL_CLAIM_SCHEMA",
    "ConversationMode",
    "ConversationState",
    "ExtractionResult",
    "TurnResult",
]
