"""AWS Bedrock client wrapper with timeout, retry and error handling."""

import asyncio
import logging
import os
from typing import Dict, List, Optional, Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from dotenv import load_dotenv

from .errors import ModelAPIError, ErrorType, ErrorContext

# Ensure environment variables are loaded
load_dotenv()

logger = logging.getLogger(__name__)

# Image formats accepted by the Converse API image block
CONVERSE_IMAGE_FORMATS = {"png", "jpeg", "gif", "webp"}


class BedrockClient:
    """
    Wrapper for the AWS Bedrock Runtime Converse API.

    Provides methods for:
    - Text, document and image (vision) requests through one Converse call
    - A wall-clock budget per call, enforced with asyncio cancellation
    - Retry with exponential backoff on throttling (off by default)
    """

    def __init__(
        self,
        region: str = "us-east-1",
        model_id: str = "amazon.nova-pro-v1:0",
        vision_model_id: Optional[str] = None,
        timeout: int = 60,
        max_retries: int = 1,
        call_timeout: float = 30.0,
        runtime: Any = None
    ):
        """
        Initialize Bedrock client.

        Args:
            region: AWS region for Bedrock service
            model_id: Model ID used for text requests
            vision_model_id: Model ID used for document/image requests
            timeout: botocore connect/read timeout in seconds
            max_retries: Maximum number of attempts on throttling errors
            call_timeout: Wall-clock budget for one call, in seconds
            runtime: Optional pre-built bedrock-runtime client
        """
        self.region = region
        self.model_id = model_id
        self.vision_model_id = vision_model_id or model_id
        self.max_retries = max(1, max_retries)
        self.call_timeout = call_timeout

        if runtime is not None:
            self.runtime = runtime
        else:
            config_kwargs: Dict[str, Any] = {
                "region_name": region,
                "connect_timeout": timeout,
                "read_timeout": timeout,
                "retries": {"max_attempts": 0},  # We handle retries manually
            }
            # botocore honours AWS_BEARER_TOKEN_BEDROCK for API-key auth
            if os.getenv("AWS_BEARER_TOKEN_BEDROCK"):
                config_kwargs["signature_version"] = "bearer"
                logger.info("BedrockClient configured to use Amazon Bedrock API key authentication")
            else:
                logger.info("BedrockClient configured to use AWS IAM credentials (SigV4)")

            self.runtime = boto3.client("bedrock-runtime", config=Config(**config_kwargs))

        logger.info(
            f"Initialized BedrockClient: region={region}, "
            f"model={model_id}, vision_model={self.vision_model_id}, "
            f"call_timeout={call_timeout}s"
        )

    @classmethod
    def from_config(cls, config) -> "BedrockClient":
        """Build a client from a loaded Config."""
        return cls(
            region=config.aws_region,
            model_id=config.bedrock.model_id,
            vision_model_id=config.bedrock.vision_model_id,
            timeout=config.bedrock.timeout,
            max_retries=config.bedrock.max_retries,
            call_timeout=config.form_assist.call_timeout_seconds,
        )

    # Content block helpers

    @staticmethod
    def text_message(text: str, role: str = "user") -> Dict[str, Any]:
        return {"role": role, "content": [{"text": text}]}

    @staticmethod
    def document_message(
        document_bytes: bytes,
        prompt: str,
        document_format: str = "pdf",
        name: str = "document"
    ) -> Dict[str, Any]:
        """Build a user message carrying a document block followed by a prompt."""
        return {
            "role": "user",
            "content": [
                {
                    "document": {
                        "format": document_format,
                        "name": name,
                        "source": {"bytes": document_bytes}
                    }
                },
                {"text": prompt}
            ]
        }

    @staticmethod
    def image_message(image_bytes: bytes, prompt: str, image_format: str = "png") -> Dict[str, Any]:
        """Build a user message carrying an image block followed by a prompt."""
        # boto3's converse API expects raw bytes, not base64-encoded strings
        return {
            "role": "user",
            "content": [
                {
                    "image": {
                        "format": image_format,
                        "source": {"bytes": image_bytes}
                    }
                },
                {"text": prompt}
            ]
        }

    async def converse(
        self,
        messages: List[Dict[str, Any]],
        system_prompts: Optional[List[Dict[str, Any]]] = None,
        temperature: float = 0.0,
        max_tokens: int = 2048,
        model_id: Optional[str] = None,
        operation: str = "converse"
    ) -> Dict[str, Any]:
        """
        Invoke a model via the Converse API.

        Args:
            messages: List of message dicts with 'role' and 'content'
            system_prompts: Optional system prompts
            temperature: Sampling temperature (0.0 = deterministic)
            max_tokens: Maximum tokens to generate
            model_id: Optional model override (defaults to the text model)
            operation: Name used in logs and errors

        Returns:
            Dict containing 'text', 'content', 'stop_reason' and 'usage'

        Raises:
            ModelAPIError: On timeout, provider error or unexpected failure
        """
        params: Dict[str, Any] = {
            "modelId": model_id or self.model_id,
            "messages": messages,
            "inferenceConfig": {
                "temperature": temperature,
                "maxTokens": max_tokens
            }
        }

        if system_prompts:
            params["system"] = system_prompts

        for attempt in range(self.max_retries):
            try:
                logger.debug(f"Invoking {params['modelId']} for {operation} (attempt {attempt + 1}/{self.max_retries})")

                response = await asyncio.wait_for(
                    asyncio.to_thread(self.runtime.converse, **params),
                    timeout=self.call_timeout
                )

                logger.info(
                    f"{operation} successful: "
                    f"stop_reason={response.get('stopReason')}, "
                    f"usage={response.get('usage')}"
                )

                return self._parse_converse_response(response)

            except asyncio.TimeoutError:
                logger.warning(f"{operation} exceeded {self.call_timeout}s budget, cancelled")
                raise ModelAPIError.timeout(operation, self.call_timeout)

            except ClientError as e:
                error_code = e.response.get("Error", {}).get("Code", "Unknown")
                error_message = e.response.get("Error", {}).get("Message", str(e))

                logger.warning(
                    f"Bedrock API error (attempt {attempt + 1}/{self.max_retries}): "
                    f"code={error_code}, message={error_message}"
                )

                if self._is_retryable_error(error_code) and attempt < self.max_retries - 1:
                    # Exponential backoff: 1s, 2s, 4s, ...
                    wait_time = 2 ** attempt
                    logger.info(f"Retrying in {wait_time} seconds...")
                    await asyncio.sleep(wait_time)
                    continue

                raise ModelAPIError.from_client_error(
                    error=e,
                    operation=operation,
                    recoverable=self._is_retryable_error(error_code),
                )

            except BotoCoreError as e:
                logger.error(f"Transport error during {operation}: {str(e)}")
                raise ModelAPIError(ErrorContext(
                    error_type=ErrorType.MODEL_SERVICE_ERROR,
                    message=f"Transport error during {operation}: {str(e)}",
                    recoverable=True,
                    original_exception=e
                ))

        # Only reached when max_retries attempts were all throttled
        raise ModelAPIError(ErrorContext(
            error_type=ErrorType.MODEL_RATE_LIMIT,
            message=f"{operation} failed after {self.max_retries} attempts",
            recoverable=True
        ))

    async def complete(
        self,
        system: str,
        prompt: str,
        temperature: float = 0.0,
        max_tokens: int = 2048,
        history: Optional[List[Dict[str, Any]]] = None,
        operation: str = "complete"
    ) -> str:
        """Send one user prompt (after optional history) and return the reply text."""
        messages: List[Dict[str, Any]] = list(history or [])
        messages.append(self.text_message(prompt))
        result = await self.converse(
            messages=messages,
            system_prompts=[{"text": system}] if system else None,
            temperature=temperature,
            max_tokens=max_tokens,
            operation=operation
        )
        return result.get("text", "")

    def _parse_converse_response(self, response: Dict[str, Any]) -> Dict[str, Any]:
        output = response.get("output", {})
        message = output.get("message", {})

        parsed = {
            "content": message.get("content", []),
            "role": message.get("role", "assistant"),
            "stop_reason": response.get("stopReason", "unknown"),
            "usage": response.get("usage", {}),
        }

        text_parts = [block["text"] for block in parsed["content"] if "text" in block]
        parsed["text"] = "\n".join(text_parts) if text_parts else ""

        return parsed

    def _is_retryable_error(self, error_code: str) -> bool:
        retryable_errors = {
            "ThrottlingException",
            "TooManyRequestsException",
            "ServiceUnavailableException",
            "InternalServerException",
        }

        return error_code in retryable_errors
