"""Document field extraction plugin for Semantic Kernel.

Uploaded files are read by an ordered list of capability-tagged strategies.
The first strategy that yields a non-empty candidate wins; candidates are
never merged across strategies.
"""

import asyncio
import io
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from PIL import Image
from semantic_kernel.functions import kernel_function

from ..models.claim_form import Attachment
from ..models.session import ExtractionResult
from ..utils.bedrock_client import BedrockClient, CONVERSE_IMAGE_FORMATS
from ..utils.errors import DocumentProcessingError, FormAssistError, user_message
from .pdf_extractor import PDFExtractorPlugin

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp", "bmp", "tif", "tiff"}
TEXT_EXTENSIONS = {"txt", "md", "csv"}


def document_kind(filename: str, content_type: str) -> Optional[str]:
    """
    Classify an upload as "pdf", "image" or "text".

    Returns:
        Kind string, or None when the file type is unsupported
    """
    content_type = (content_type or "").lower()
    extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""

    if content_type == "application/pdf" or extension == "pdf":
        return "pdf"
    if content_type.startswith("image/") or extension in IMAGE_EXTENSIONS:
        return "image"
    if content_type.startswith("text/") or extension in TEXT_EXTENSIONS:
        return "text"
    return None


def detect_image_format(image_bytes: bytes) -> Optional[str]:
    """Image format from magic bytes ("jpeg", "png", "gif", "webp"), or None."""
    if image_bytes.startswith(b'\xff\xd8\xff'):
        return "jpeg"
    if image_bytes.startswith(b'\x89PNG\r\n\x1a\n'):
        return "png"
    if image_bytes.startswith(b'GIF87a') or image_bytes.startswith(b'GIF89a'):
        return "gif"
    if image_bytes.startswith(b'RIFF') and b'WEBP' in image_bytes[:12]:
        return "webp"
    return None


def to_model_image(image_bytes: bytes, filename: str = "image") -> Dict[str, Any]:
    """
    Return ``{"format", "bytes"}`` in a format the vision model accepts.

    Formats outside the Converse set (BMP, TIFF, ...) are re-encoded as PNG
    with Pillow.

    Raises:
        DocumentProcessingError: If Pillow cannot decode the image
    """
    image_format = detect_image_format(image_bytes)
    if image_format in CONVERSE_IMAGE_FORMATS:
        return {"format": image_format, "bytes": image_bytes}

    try:
        with Image.open(io.BytesIO(image_bytes)) as image:
            if image.mode not in ("RGB", "RGBA", "L"):
                image = image.convert("RGB")
            buffer = io.BytesIO()
            image.save(buffer, format="PNG")
    except Exception as e:
        raise DocumentProcessingError.image_analysis_failed(filename, e)

    logger.debug(f"Re-encoded {filename} as PNG for the vision model")
    return {"format": "png", "bytes": buffer.getvalue()}


def _document_name(filename: str) -> str:
    # Converse document names allow letters, digits, spaces, hyphens, parentheses and brackets
    stem = filename.rsplit(".", 1)[0]
    cleaned = re.sub(r"[^A-Za-z0-9 \-\(\)\[\]]", " ", stem)
    return " ".join(cleaned.split())[:60] or "document"


@dataclass(frozen=True)
class ExtractionStrategy:
    """
    One way of reading a file.

    Attributes:
        name: Strategy name recorded on results ("retrieval", "document", ...)
        capability: What the strategy needs ("local_text", "model_document", "model_vision")
        handler: Coroutine producing an ExtractionResult
    """
    name: str
    capability: str
    handler: Callable[[Attachment, datetime], Awaitable[ExtractionResult]]


class DocumentExtractorPlugin:
    """
    Semantic Kernel plugin for pulling claim fields out of uploaded files.

    Strategy order:
    - PDF: retrieval (local text layer + text path) -> document block -> page vision
    - Image: vision
    - Text: plain text (text path)

    The engine passed in supplies the text path (``extract_text``) and the
    model JSON request (``request_candidate``).
    """

    def __init__(
        self,
        bedrock: BedrockClient,
        engine: Any,
        pdf_extractor: PDFExtractorPlugin,
        max_document_chars: int = 15000,
    ):
        self.bedrock = bedrock
        self.engine = engine
        self.pdf = pdf_extractor
        self.max_document_chars = max_document_chars
        logger.info("Initialized DocumentExtractorPlugin")

    def strategies_for(self, attachment: Attachment) -> List[ExtractionStrategy]:
        kind = document_kind(attachment.filename, attachment.content_type)
        if kind == "pdf":
            return [
                ExtractionStrategy("retrieval", "local_text", self._from_pdf_text),
                ExtractionStrategy("document", "model_document", self._from_pdf_document),
                ExtractionStrategy("vision", "model_vision", self._from_pdf_pages),
            ]
        if kind == "image":
            return [ExtractionStrategy("vision", "model_vision", self._from_image)]
        if kind == "text":
            return [ExtractionStrategy("plain_text", "local_text", self._from_plain_text)]
        return []

    @kernel_function(
        name="extract_claim_fields_from_document",
        description=(
            "Read a travel claim document (PDF, image or text) and return the claim "
            "fields it contains. Strategies are tried in order until one finds details."
        )
    )
    async def extract(self, attachment: Attachment, now: Optional[datetime] = None) -> ExtractionResult:
        """
        Run the strategies for one file until one yields a candidate.

        Args:
            attachment: Uploaded file
            now: Reference moment for relative dates

        Returns:
            ExtractionResult; empty with the last failure reason when every strategy fails
        """
        now = now or datetime.now()
        strategies = self.strategies_for(attachment)
        if not strategies:
            error = DocumentProcessingError.unsupported_document(attachment.filename, attachment.content_type)
            logger.warning(str(error))
            return ExtractionResult.failure(user_message(error), "file")

        last = ExtractionResult.empty("I couldn't find any claim details in that file.", "file")
        for strategy in strategies:
            logger.info(f"Trying {strategy.name} strategy for {attachment.filename}")
            try:
                result = await strategy.handler(attachment, now)
            except FormAssistError as e:
                logger.warning(f"{strategy.name} strategy failed for {attachment.filename}: {e}")
                last = ExtractionResult.failure(user_message(e), strategy.name)
                continue

            if not result.is_empty:
                logger.info(
                    f"{strategy.name} strategy recovered {len(result.candidate)} field(s) "
                    f"from {attachment.filename}"
                )
                return result
            if result.reason:
                last = result

        return ExtractionResult(reason=last.reason, source="file", failed=last.failed)

    # Strategies

    async def _from_pdf_text(self, attachment: Attachment, now: datetime) -> ExtractionResult:
        try:
            text = await asyncio.to_thread(self.pdf.extract_text, attachment.data)
        except (RuntimeError, ValueError) as e:
            raise DocumentProcessingError.pdf_extraction_failed(attachment.filename, e)

        if not text.strip():
            return ExtractionResult.empty("The PDF has no readable text layer.", "retrieval")
        return await self.engine.extract_text(text[:self.max_document_chars], now=now, source="retrieval")

    async def _from_pdf_document(self, attachment: Attachment, now: datetime) -> ExtractionResult:
        name = _document_name(attachment.filename)
        return await self.engine.request_candidate(
            lambda prompt: BedrockClient.document_message(attachment.data, prompt, "pdf", name),
            source="document",
            operation="extract_document",
            model_id=self.bedrock.vision_model_id,
            now=now,
        )

    async def _from_pdf_pages(self, attachment: Attachment, now: datetime) -> ExtractionResult:
        try:
            pages = await asyncio.to_thread(self.pdf.render_pages_png, attachment.data)
        except RuntimeError as e:
            raise DocumentProcessingError.pdf_extraction_failed(attachment.filename, e)
        if not pages:
            return ExtractionResult.empty("The PDF has no pages to read.", "vision")

        def build(prompt: str) -> Dict[str, Any]:
            content: List[Dict[str, Any]] = [
                {"image": {"format": "png", "source": {"bytes": page}}} for page in pages
            ]
            content.append({"text": prompt})
            return {"role": "user", "content": content}

        return await self.engine.request_candidate(
            build,
            source="vision",
            operation="extract_pdf_pages",
            model_id=self.bedrock.vision_model_id,
            now=now,
        )

    async def _from_image(self, attachment: Attachment, now: datetime) -> ExtractionResult:
        image = to_model_image(attachment.data, attachment.filename)
        return await self.engine.request_candidate(
            lambda prompt: BedrockClient.image_message(image["bytes"], prompt, image["format"]),
            source="vision",
            operation="extract_image",
            model_id=self.bedrock.vision_model_id,
            now=now,
        )

    async def _from_plain_text(self, attachment: Attachment, now: datetime) -> ExtractionResult:
        text = attachment.data.decode("utf-8", errors="replace")
        return await self.engine.extract_text(text[:self.max_document_chars], now=now, source="plain_text")
