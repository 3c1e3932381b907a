"""Storage layer for claim records, attachments and chat history."""

from .claim_store import ClaimRecordStore
from .history_store import ChatHistoryStore
from .submission import MultipartPayload, build_payload

__all__ = ['ClaimRecordStore', 'ChatHistoryStore', 'MultipartPayload', 'build_payload']
