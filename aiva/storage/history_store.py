"""Single-row chat transcript store."""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

ROW_ID = "default"


class ChatHistoryStore:
    """
    Keeps one shared chat transcript as a JSON document.

    Messages are ``{"role": "user" | "assistant", "content": str}`` records.
    """

    def __init__(self, path: str = "data/chathistory.json"):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"Initialized ChatHistoryStore: path={self.path}")

    def load(self) -> Tuple[List[Dict[str, str]], Optional[str]]:
        """
        Read the stored transcript.

        Returns:
            (messages, error); on any read failure the messages are empty and
            error holds the reason
        """
        if not self.path.exists():
            return [], None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                row = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to load chat history: {str(e)}")
            return [], str(e)

        messages = row.get("messages") if isinstance(row, dict) else None
        return _clean(messages or []), None

    def save(self, messages: Any) -> None:
        """
        Replace the stored transcript.

        Raises:
            OSError: If the file cannot be written
        """
        cleaned = _clean(messages if isinstance(messages, list) else [])
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump({"id": ROW_ID, "messages": cleaned}, f, ensure_ascii=False, indent=2)
        tmp_path.replace(self.path)
        logger.debug(f"Saved {len(cleaned)} chat messages")


def _clean(messages: List[Any]) -> List[Dict[str, str]]:
    result = []
    for m in messages:
        if isinstance(m, dict) and m.get("role") in ("user", "assistant") and isinstance(m.get("content"), str):
            result.append({"role": m["role"], "content": m["content"]})
    return result
