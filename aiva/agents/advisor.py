"""Advisor agent: general chat and informational answers during form filling."""

import logging
from typing import Any, Dict, List, Optional

from .base import BaseAssistantAgent
from ..utils.bedrock_client import BedrockClient

logger = logging.getLogger(__name__)


ADVISOR_INSTRUCTIONS = (
    "You are AIVA, an insurance assistant for Aetherion Dataworks. Be concise, helpful, "
    "and accurate about claims, policies, appointments, and documents. "
    "If unsure, ask for clarification."
)

FORM_CONTEXT_NOTE = (
    "The customer is filling in a travel insurance claim form. Answer their question "
    "briefly. Do not ask for form fields and do not claim to have changed the form."
)

# Transcript turns replayed to the model per request
HISTORY_WINDOW = 10


class AdvisorAgent(BaseAssistantAgent):
    """Answers questions and small talk with the AIVA persona."""

    def __init__(self, bedrock: Optional[BedrockClient] = None):
        super().__init__(
            name="advisor",
            instructions=ADVISOR_INSTRUCTIONS,
            bedrock=bedrock,
        )

    async def chat(self, history: Optional[List[Dict[str, Any]]], message: str) -> str:
        """
        General assistant reply outside form mode.

        Raises:
            ModelAPIError: Propagated to the controller, which degrades it to a chat message
        """
        return await self.get_response(
            _window(history), message, temperature=0.3, operation="general_chat"
        )

    async def answer(
        self,
        history: Optional[List[Dict[str, Any]]],
        question: str,
        missing_fields: Optional[List[str]] = None,
    ) -> str:
        """Informational answer while a form is in progress."""
        prompt = f"{FORM_CONTEXT_NOTE}\n\nQuestion: {question}"
        if missing_fields:
            prompt += f"\n\nFields not filled in yet: {', '.join(missing_fields)}"
        return await self.get_response(
            _window(history), prompt, temperature=0.3, operation="informational_answer"
        )


def _window(history: Optional[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    # Converse requires the first message to come from the user
    recent = list(history or [])[-HISTORY_WINDOW:]
    while recent and recent[0].get("role") != "user":
        recent.pop(0)
    return recent
