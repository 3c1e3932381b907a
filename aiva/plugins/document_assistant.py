"""Document assistant plugin: chat about, summarize or translate a file or text."""

import asyncio
import logging
import re
from typing import Dict, List, Optional

from semantic_kernel.functions import kernel_function

from ..models.claim_form import Attachment
from ..utils.bedrock_client import BedrockClient
from ..utils.errors import DocumentProcessingError, FormAssistError, user_message
from .document_extractor import document_kind, to_model_image
from .pdf_extractor import PDFExtractorPlugin

logger = logging.getLogger(__name__)

MODES = ("chat", "summarize", "translate")

NO_TEXT = "No text provided."
UNREADABLE = "Could not read any text from the attachment."

OCR_PROMPT = "Extract all readable text from this image. Return plain text only."

# Translation splits long text on paragraph breaks into requests of this size
TRANSLATE_CHUNK_CHARS = 6000


class DocumentAssistantPlugin:
    """
    Semantic Kernel plugin answering requests about one document.

    Modes:
    - translate: translate into the target language, translation only
    - summarize: concise factual bullet points
    - chat: answer a question using only the document text

    Results are ``{"content": str}`` or ``{"error": str}``.
    """

    def __init__(
        self,
        bedrock: BedrockClient,
        pdf_extractor: Optional[PDFExtractorPlugin] = None,
        max_chars: int = 15000,
        default_target_language: str = "English",
        translate_chunk_chars: int = TRANSLATE_CHUNK_CHARS,
    ):
        self.bedrock = bedrock
        self.pdf = pdf_extractor or PDFExtractorPlugin()
        self.max_chars = max_chars
        self.default_target_language = default_target_language
        self.translate_chunk_chars = translate_chunk_chars
        logger.info("Initialized DocumentAssistantPlugin")

    @kernel_function(
        name="analyze_document_file",
        description="Chat about, summarize or translate an uploaded PDF, image or text file."
    )
    async def analyze_file(
        self,
        attachment: Attachment,
        mode: str = "chat",
        question: str = "",
        target_lang: Optional[str] = None,
    ) -> Dict[str, str]:
        """
        Read the file's text and run the requested mode over it.

        Args:
            attachment: Uploaded file
            mode: "chat", "summarize" or "translate"
            question: Question for chat mode
            target_lang: Target language for translate mode

        Returns:
            {"content": ...} on success, {"error": ...} otherwise
        """
        try:
            text = await self.read_text(attachment)
        except FormAssistError as e:
            logger.warning(f"Could not read {attachment.filename}: {e}")
            return {"error": user_message(e)}

        if not text.strip():
            return {"error": UNREADABLE}
        return await self.process_text(text, mode=mode, question=question, target_lang=target_lang)

    @kernel_function(
        name="process_document_text",
        description="Chat about, summarize or translate pasted text."
    )
    async def process_text(
        self,
        text: str,
        mode: str = "chat",
        question: str = "",
        target_lang: Optional[str] = None,
    ) -> Dict[str, str]:
        """Run one mode over plain text (capped at ``max_chars`` except for translation)."""
        if not text or not text.strip():
            return {"error": NO_TEXT}

        mode = mode if mode in MODES else "chat"
        if mode == "translate":
            return await self.translate(text, target_lang or self.default_target_language)

        excerpt = text[:self.max_chars]
        if mode == "summarize":
            system = "Summarize the document in concise bullet points. Be factual and short."
            prompt, temperature = excerpt, 0.3
        else:
            system = (
                "Answer the user's question using only the provided text. "
                "If information is missing, state what is missing succinctly."
            )
            prompt = f"Text:\n\n{excerpt}\n\nQuestion: {question or 'Explain this.'}"
            temperature = 0.3

        try:
            content = await self.bedrock.complete(
                system=system,
                prompt=prompt,
                temperature=temperature,
                max_tokens=4096,
                operation=f"assistant_{mode}",
            )
        except FormAssistError as e:
            logger.warning(f"Document assistant {mode} failed: {e}")
            return {"error": user_message(e)}

        logger.info(f"Document assistant {mode}: {len(excerpt)} chars in, {len(content)} chars out")
        return {"content": content}

    async def translate(self, text: str, target: str) -> Dict[str, str]:
        """
        Translate text chunk by chunk and join the translated parts.

        Args:
            text: Source text (not truncated)
            target: Target language name

        Returns:
            {"content": ...} on success, {"error": ...} if any chunk fails
        """
        system = (
            f"Translate the provided document text into {target}. Preserve section breaks "
            "and lists as readable plain text. Do not add commentary; output only the translation."
        )
        chunks = split_paragraph_chunks(text, self.translate_chunk_chars)
        outputs: List[str] = []
        for index, chunk in enumerate(chunks):
            try:
                outputs.append(await self.bedrock.complete(
                    system=system,
                    prompt=chunk,
                    temperature=0.2,
                    max_tokens=4096,
                    operation="assistant_translate",
                ))
            except FormAssistError as e:
                logger.warning(f"Translation of chunk {index + 1}/{len(chunks)} failed: {e}")
                return {"error": user_message(e)}

        content = "\n\n".join(part for part in outputs if part)
        logger.info(f"Document assistant translate: {len(text)} chars in {len(chunks)} chunk(s)")
        return {"content": content}

    async def read_text(self, attachment: Attachment) -> str:
        """
        Text of a PDF (text layer), image (vision OCR) or text file.

        Raises:
            DocumentProcessingError: On unsupported or unreadable files
            ModelAPIError: When image OCR fails at the provider
        """
        kind = document_kind(attachment.filename, attachment.content_type)

        if kind == "pdf":
            try:
                return await asyncio.to_thread(self.pdf.extract_text, attachment.data)
            except (RuntimeError, ValueError) as e:
                raise DocumentProcessingError.pdf_extraction_failed(attachment.filename, e)

        if kind == "image":
            image = to_model_image(attachment.data, attachment.filename)
            result = await self.bedrock.converse(
                messages=[BedrockClient.image_message(image["bytes"], OCR_PROMPT, image["format"])],
                temperature=0.2,
                max_tokens=4096,
                model_id=self.bedrock.vision_model_id,
                operation="image_ocr",
            )
            return result.get("text", "")

        if kind == "text":
            return attachment.data.decode("utf-8", errors="replace")

        raise DocumentProcessingError.unsupported_document(attachment.filename, attachment.content_type)


def split_paragraph_chunks(text: str, max_chunk: int) -> List[str]:
    """Group paragraphs into chunks of at most ``max_chunk`` characters (a longer paragraph stays whole)."""
    if len(text) <= max_chunk:
        return [text]

    chunks: List[str] = []
    current = ""
    for para in re.split(r"\n\s*\n", text):
        if current and len(current) + 2 + len(para) > max_chunk:
            chunks.append(current)
            current = para
        else:
            current = f"{current}\n\n{para}" if current else para
    if current:
        chunks.append(current)
    return chunks
