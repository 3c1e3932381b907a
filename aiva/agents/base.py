"""Base class for the AIVA assistant agents (AWS Bedrock)."""

import logging
from typing import Dict, Any, List, Optional

from ..utils.bedrock_client import BedrockClient
from ..utils.config import Config

logger = logging.getLogger(__name__)


class BaseAssistantAgent:
    """
    Base class for model-backed agents using AWS Bedrock.

    Attributes:
        name: Agent name/identifier
        instructions: System instructions for the agent
        plugins: List of plugin names (for bookkeeping)
        bedrock: BedrockClient for LLM calls
    """

    def __init__(
        self,
        name: str,
        instructions: str,
        plugins: Optional[List[str]] = None,
        bedrock: Optional[BedrockClient] = None,
    ):
        self.name = name
        self.instructions = instructions
        self.plugins = plugins or []
        self.bedrock = bedrock if bedrock is not None else BedrockClient.from_config(Config.load())

        logger.info(
            f"Initialized {self.__class__.__name__}: {name} with {len(self.plugins)} plugins"
        )

    async def get_response(
        self,
        conversation_history: Optional[List[Dict[str, Any]]],
        user_message: str,
        temperature: float = 0.0,
        max_tokens: int = 2048,
        operation: Optional[str] = None,
    ) -> str:
        """
        Get a text response from Bedrock using the Converse API.
        - conversation_history: list of dicts [{'role': 'user'|'assistant', 'content': [{'text': str}]}]
        - user_message: the current prompt to append as the final user turn

        Raises:
            ModelAPIError: Propagated from the client; callers degrade it to a chat message
        """
        messages: List[Dict[str, Any]] = [
            {"role": m["role"], "content": list(m.get("content", []))}
            for m in (conversation_history or [])
        ]
        if messages and messages[-1]["role"] == "user":
            # Converse rejects two user turns in a row
            last = messages[-1]
            joined = "\n\n".join(
                [block["text"] for block in last["content"] if "text" in block] + [user_message]
            )
            messages[-1] = BedrockClient.text_message(joined)
        else:
            messages.append(BedrockClient.text_message(user_message))

        result = await self.bedrock.converse(
            messages=messages,
            system_prompts=[{"text": self.instructions}],
            temperature=temperature,
            max_tokens=max_tokens,
            operation=operation or self.name,
        )

        response_text = result.get("text", "")
        logger.debug(f"{self.name} generated response: {response_text[:100]}...")
        return response_text

    def __str__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name})"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name}, plugins={self.plugins})"
