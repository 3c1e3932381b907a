"""Conversation transcript for one form-assist session."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Dict, Any, Optional

logger = logging.getLogger(__name__)

ROLES = ("user", "assistant")


@dataclass
class Message:
    """Lightweight chat message used for Bedrock conversations."""
    role: str  # "user" | "assistant"
    content: str
    timestamp: datetime = field(default_factory=datetime.now)


class ConversationHistory:
    """
    Ordered user/assistant transcript of one session.

    Kept for chat continuity only: the transcript is replayed to the model
    and persisted by ChatHistoryStore, but it never feeds the claim draft.

    Attributes:
        session_id: Optional session identifier for logging
    """

    def __init__(self, session_id: Optional[str] = None):
        self.session_id = session_id
        self._messages: List[Message] = []

    def add_message(self, role: str, content: str) -> Optional[Message]:
        """
        Append a message.

        Args:
            role: "user" or "assistant"
            content: Message text; empty messages are not recorded

        Returns:
            The recorded Message, or None when skipped

        Raises:
            ValueError: If role is not a chat role
        """
        if role not in ROLES:
            raise ValueError(f"Unknown chat role '{role}'")
        if not content or not content.strip():
            return None

        message = Message(role=role, content=content)
        self._messages.append(message)
        logger.debug(f"Added {role} message {len(self._messages)}: {content[:100]}...")
        return message

    def get_message_history(self) -> List[Dict[str, Any]]:
        """
        Transcript formatted for the Bedrock Converse API.

        Consecutive messages from the same role are joined, since Converse
        requires alternating roles.

        Returns:
            List of message dicts with 'role' and 'content'
        """
        formatted: List[Dict[str, Any]] = []
        for m in self._messages:
            if formatted and formatted[-1]["role"] == m.role:
                formatted[-1]["content"][0]["text"] += f"\n\n{m.content}"
                continue
            formatted.append({"role": m.role, "content": [{"text": m.content}]})
        return formatted

    def to_records(self) -> List[Dict[str, str]]:
        """Plain ``{"role", "content"}`` records as stored by the history store."""
        return [{"role": m.role, "content": m.content} for m in self._messages]

    def export_to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "messages": [
                {
                    "role": m.role,
                    "content": m.content,
                    "timestamp": m.timestamp.isoformat(),
                }
                for m in self._messages
            ],
        }

    @staticmethod
    def from_export(data: Dict[str, Any]) -> "ConversationHistory":
        """Rehydrate from export_to_dict output or a list of plain records."""
        hist = ConversationHistory(session_id=data.get("session_id"))
        for md in data.get("messages", []):
            role = md.get("role")
            content = md.get("content") or ""
            if role not in ROLES or not content.strip():
                continue
            try:
                ts = datetime.fromisoformat(md["timestamp"]) if md.get("timestamp") else datetime.now()
            except (TypeError, ValueError):
                ts = datetime.now()
            hist._messages.append(Message(role=role, content=content, timestamp=ts))
        return hist

    def clear(self):
        """Clear the transcript."""
        self._messages.clear()
        logger.info(f"Cleared conversation history for session: {self.session_id or 'unknown'}")

    def __len__(self) -> int:
        return len(self._messages)

    def __str__(self) -> str:
        return f"ConversationHistory(session_id={self.session_id}, messages={len(self._messages)})"
