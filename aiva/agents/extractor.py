"""Extraction engine: turns free text or an uploaded file into a claim candidate."""

import json
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .base import BaseAssistantAgent
from ..models.claim_form import Attachment, FieldSchema, FieldType, TRAVEL_CLAIM_SCHEMA
from ..models.session import ExtractionResult
from ..plugins.document_extractor import DocumentExtractorPlugin
from ..plugins.field_patterns import extract_fields
from ..plugins.pdf_extractor import PDFExtractorPlugin
from ..utils.bedrock_client import BedrockClient
from ..utils.errors import FormAssistError, user_message
from ..utils.natural_dates import normalize_date
from ..utils.response_formatter import ResponseFormatter

logger = logging.getLogger(__name__)


EXTRACTOR_INSTRUCTIONS = """You read travel insurance claim details out of customer messages and documents.

You only ever answer with one JSON object. You never invent values: a key
whose value is not clearly stated is left out."""

STRICT_RETRY_NOTE = (
    "Your previous answer could not be parsed. Reply with the JSON object only, "
    "between the delimiters, with no prose and no markdown."
)

NOTHING_FOUND = "I couldn't find any claim details in that."


class ExtractionEngine(BaseAssistantAgent):
    """
    Local-first extraction with a remote model fallback.

    Text goes through the ordered field rules first; only when they recover
    nothing is the model asked for strictly delimited JSON over the fixed key
    set (retried once with a stricter instruction if the reply is
    unparseable). Files are handled by DocumentExtractorPlugin strategies.

    The engine never touches a draft and never raises: every failure comes
    back as an empty ExtractionResult with a reason.
    """

    def __init__(
        self,
        bedrock: Optional[BedrockClient] = None,
        schema: FieldSchema = TRAVEL_CLAIM_SCHEMA,
        pdf_extractor: Optional[PDFExtractorPlugin] = None,
        max_pdf_pages: int = 5,
        max_document_chars: int = 15000,
    ):
        super().__init__(
            name="claim-extractor",
            instructions=EXTRACTOR_INSTRUCTIONS,
            plugins=["field_patterns", "document_extractor", "pdf_extractor"],
            bedrock=bedrock,
        )
        self.schema = schema
        self.documents = DocumentExtractorPlugin(
            bedrock=self.bedrock,
            engine=self,
            pdf_extractor=pdf_extractor or PDFExtractorPlugin(max_pages=max_pdf_pages),
            max_document_chars=max_document_chars,
        )

    @property
    def extraction_keys(self) -> List[str]:
        return [spec.key for spec in self.schema.scalar_fields]

    def build_prompt(self, strict: bool = False) -> str:
        """Extraction instruction over the fixed key set."""
        choices = next(
            (spec.choices for spec in self.schema.scalar_fields if spec.field_type == FieldType.CHOICES),
            ()
        )
        prompt = (
            "Extract the travel claim details below.\n"
            f"Allowed keys: {json.dumps(self.extraction_keys)}\n"
            "Rules:\n"
            "- Omit any key whose value is not stated.\n"
            "- Dates as YYYY-MM-DD; incidentDateTime as YYYY-MM-DD HH:mm.\n"
            f"- claimTypes is a list drawn from {json.dumps(list(choices))}.\n"
            "- declaration is true only if the person explicitly declares the details are true.\n"
            f"Return the JSON object between {ResponseFormatter.JSON_START_DELIMITER} "
            f"and {ResponseFormatter.JSON_END_DELIMITER}."
        )
        if strict:
            prompt = f"{STRICT_RETRY_NOTE}\n\n{prompt}"
        return prompt

    def clean_candidate(self, raw: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Keep known, non-empty keys and normalize date-typed values.

        Args:
            raw: Parsed model output
            now: Reference moment for relative dates

        Returns:
            Extraction candidate
        """
        candidate: Dict[str, Any] = {}
        for key, value in raw.items():
            spec = self.schema.get(key)
            if spec is None or spec.is_file or value is None:
                continue
            if isinstance(value, str):
                value = value.strip()
                if not value:
                    continue
            if spec.field_type in (FieldType.DATE, FieldType.DATETIME) and isinstance(value, str):
                normalized = normalize_date(value, now)
                if normalized:
                    value = normalized[:10] if spec.field_type == FieldType.DATE else normalized
            if spec.field_type == FieldType.CHOICES and isinstance(value, list):
                value = ", ".join(str(v) for v in value if v)
            candidate[key] = value

        dropped = set(raw) - set(candidate)
        if dropped:
            logger.debug(f"Dropped keys from model candidate: {sorted(dropped)}")
        return candidate

    async def request_candidate(
        self,
        build_message: Callable[[str], Dict[str, Any]],
        source: str,
        operation: str,
        model_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ExtractionResult:
        """
        Ask the model for a JSON candidate, retrying once with a stricter prompt.

        Args:
            build_message: Builds the user message around the given prompt
            source: Strategy name recorded on the result
            operation: Name used in logs and errors
            model_id: Optional model override (vision requests)
            now: Reference moment for relative dates

        Returns:
            ExtractionResult (empty with a reason when nothing parseable came back)

        Raises:
            ModelAPIError: On timeout or provider failure
        """
        for strict in (False, True):
            result = await self.bedrock.converse(
                messages=[build_message(self.build_prompt(strict))],
                system_prompts=[{"text": self.instructions}],
                temperature=0.0,
                max_tokens=1024,
                model_id=model_id,
                operation=operation,
            )
            parsed = ResponseFormatter.extract_json_from_response(
                ResponseFormatter.sanitize_json_response(result.get("text", ""))
            )
            if parsed is not None:
                candidate = self.clean_candidate(parsed, now)
                if candidate:
                    return ExtractionResult(candidate=candidate, source=source)
                return ExtractionResult.empty(NOTHING_FOUND, source)
            logger.warning(f"{operation}: unparseable model reply (strict={strict})")

        return ExtractionResult.empty(NOTHING_FOUND, source)

    async def extract_text(
        self,
        text: str,
        now: Optional[datetime] = None,
        source: str = "text",
    ) -> ExtractionResult:
        """
        Extract a candidate from one utterance or a document's text.

        Args:
            text: Free-form text
            now: Reference moment for relative dates
            source: Label recorded on the result

        Returns:
            ExtractionResult; never raises
        """
        if not text or not text.strip():
            return ExtractionResult.empty("There was no text to read.", source)

        now = now or datetime.now()
        candidate = extract_fields(text, now)
        if candidate:
            logger.info(f"Text rules recovered {len(candidate)} field(s)")
            return ExtractionResult(candidate=candidate, source=f"{source}:rules")

        prompt_text = text
        try:
            return await self.request_candidate(
                lambda prompt: BedrockClient.text_message(f"{prompt}\n\nText:\n{prompt_text}"),
                source=f"{source}:model",
                operation="extract_fields",
                now=now,
            )
        except FormAssistError as e:
            logger.warning(f"Model extraction unavailable: {e}")
            return ExtractionResult.failure(user_message(e), f"{source}:model")
        except Exception as e:
            logger.error(f"Unexpected extraction failure: {str(e)}", exc_info=True)
            return ExtractionResult.failure(user_message(e), f"{source}:model")

    async def extract_file(self, attachment: Attachment, now: Optional[datetime] = None) -> ExtractionResult:
        """Run the file strategies for one upload; never raises."""
        try:
            return await self.documents.extract(attachment, now=now)
        except Exception as e:
            logger.error(f"File extraction failed for {attachment.filename}: {str(e)}", exc_info=True)
            return ExtractionResult.failure(user_message(e), "file")
