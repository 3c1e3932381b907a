"""Response formatting utilities for JSON handling and extraction."""

import json
import logging
import re
from typing import Dict, Any, Optional, Union

logger = logging.getLogger(__name__)


class ResponseFormatter:
    """
    Utility class for formatting and extracting JSON responses.

    Provides methods for:
    - Wrapping JSON data with delimiters for reliable extraction
    - Extracting JSON from model replies in various shapes
    - Handling malformed responses gracefully
    """

    JSON_START_DELIMITER = "<<<JSON_START>>>"
    JSON_END_DELIMITER = "<<<JSON_END>>>"

    @staticmethod
    def format_json_response(data: Union[Dict[str, Any], str]) -> str:
        """
        Format JSON data with delimiters for reliable extraction.

        Args:
            data: Dictionary to format as JSON, or JSON string

        Returns:
            Formatted string with JSON wrapped in delimiters

        Raises:
            ValueError: If data cannot be serialized to JSON
        """
        try:
            if isinstance(data, str):
                json.loads(data)
                json_str = data
            else:
                json_str = json.dumps(data, indent=2, ensure_ascii=False)

            return (
                f"{ResponseFormatter.JSON_START_DELIMITER}\n"
                f"{json_str}\n"
                f"{ResponseFormatter.JSON_END_DELIMITER}"
            )

        except (TypeError, ValueError) as e:
            logger.error(f"Failed to format JSON response: {str(e)}")
            raise ValueError(f"Cannot format data as JSON: {str(e)}") from e

    @staticmethod
    def extract_json_from_response(response_text: str) -> Optional[Dict[str, Any]]:
        """
        Extract the first JSON object from a model reply.

        Tries, in order: delimited JSON, a markdown code block, the whole
        reply, then the first balanced ``{...}`` span in the text.

        Args:
            response_text: Raw response text that may contain JSON

        Returns:
            Parsed JSON dictionary, or None if no valid object found
        """
        if not response_text or not response_text.strip():
            logger.warning("Empty response text provided")
            return None

        text = response_text.strip()

        for method in (
            ResponseFormatter._extract_delimited_json,
            ResponseFormatter._extract_markdown_json,
            ResponseFormatter._extract_raw_json,
            ResponseFormatter._extract_embedded_json,
        ):
            json_data = method(text)
            if isinstance(json_data, dict):
                logger.debug(f"Extracted JSON via {method.__name__}")
                return json_data

        logger.warning(f"Failed to extract JSON from response: {text[:200]}...")
        return None

    @staticmethod
    def _extract_delimited_json(text: str) -> Optional[Dict[str, Any]]:
        start_idx = text.find(ResponseFormatter.JSON_START_DELIMITER)
        end_idx = text.find(ResponseFormatter.JSON_END_DELIMITER)

        if start_idx == -1 or end_idx == -1 or end_idx < start_idx:
            return None

        start_idx += len(ResponseFormatter.JSON_START_DELIMITER)
        json_text = text[start_idx:end_idx].strip()

        try:
            return json.loads(json_text)
        except (json.JSONDecodeError, ValueError) as e:
            logger.debug(f"Failed to parse delimited JSON: {str(e)}")
            # The delimited body may still hold an object amid stray text
            return ResponseFormatter._extract_embedded_json(json_text)

    @staticmethod
    def _extract_markdown_json(text: str) -> Optional[Dict[str, Any]]:
        patterns = [
            r'```json\s*\n(.*?)\n?```',
            r'```\s*\n(.*?)\n?```'
        ]

        for pattern in patterns:
            match = re.search(pattern, text, re.DOTALL)
            if match:
                try:
                    return json.loads(match.group(1).strip())
                except json.JSONDecodeError:
                    continue

        return None

    @staticmethod
    def _extract_raw_json(text: str) -> Optional[Dict[str, Any]]:
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return None

    @staticmethod
    def _extract_embedded_json(text: str) -> Optional[Dict[str, Any]]:
        """
        Find and extract the first JSON object embedded in text using brace counting.

        Args:
            text: Response text

        Returns:
            Parsed JSON dict or None
        """
        start_idx = text.find('{')
        if start_idx == -1:
            return None

        brace_count = 0
        in_string = False
        escape_next = False

        for i, char in enumerate(text[start_idx:], start_idx):
            if escape_next:
                escape_next = False
                continue

            if char == '\\':
                escape_next = True
                continue

            if char == '"':
                in_string = not in_string
                continue

            if in_string:
                continue

            if char == '{':
                brace_count += 1
            elif char == '}':
                brace_count -= 1
                if brace_count == 0:
                    json_text = text[start_idx:i + 1]
                    try:
                        return json.loads(json_text)
                    except json.JSONDecodeError:
                        return ResponseFormatter._extract_embedded_json(text[i + 1:])

        return None

    @staticmethod
    def sanitize_json_response(response_text: str) -> str:
        """
        Clean up response text before JSON extraction.

        Removes "Here's the JSON:"-style lead-ins some models add.
        """
        if not response_text:
            return ""

        text = response_text.strip()

        prefixes_to_remove = [
            "here's the json:",
            "here is the json:",
            "the json response is:",
            "json response:",
            "response:",
            "result:"
        ]

        text_lower = text.lower()
        for prefix in prefixes_to_remove:
            if text_lower.startswith(prefix):
                text = text[len(prefix):].strip()
                break

        return text
