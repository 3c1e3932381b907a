"""PDF text extraction plugin for Semantic Kernel."""

import importlib.util
import io
import logging
from typing import List

from semantic_kernel.functions import kernel_function

logger = logging.getLogger(__name__)


class PDFExtractorPlugin:
    """
    Semantic Kernel plugin for reading uploaded claim PDFs.

    Uses PyPDF2 as primary extractor with pdfplumber as fallback
    for better handling of complex layouts. pdfplumber also renders
    pages to PNG for the vision strategy.
    """

    def __init__(self, max_pages: int = 5):
        """
        Initialize PDF extractor plugin.

        Args:
            max_pages: Maximum number of pages rendered for vision requests
        """
        self.max_pages = max_pages
        self._validate_dependencies()
        logger.info("Initialized PDFExtractorPlugin")

    def _validate_dependencies(self):
        """Validate that required libraries are available."""
        self.has_pypdf2 = importlib.util.find_spec("PyPDF2") is not None
        if not self.has_pypdf2:
            logger.warning("PyPDF2 not available")

        self.has_pdfplumber = importlib.util.find_spec("pdfplumber") is not None
        if not self.has_pdfplumber:
            logger.warning("pdfplumber not available, page rendering disabled")

        if not self.has_pypdf2 and not self.has_pdfplumber:
            raise ImportError(
                "Neither PyPDF2 nor pdfplumber is available. "
                "Install at least one: pip install PyPDF2 pdfplumber"
            )

    @kernel_function(
        name="extract_pdf_text",
        description="Extract the text layer of a PDF document, page by page."
    )
    def extract_text(self, pdf_bytes: bytes, include_page_numbers: bool = False) -> str:
        """
        Extract text from PDF bytes.

        Args:
            pdf_bytes: Raw PDF bytes
            include_page_numbers: Whether to include page number markers

        Returns:
            Extracted text (empty for scanned PDFs without a text layer)

        Raises:
            ValueError: If pdf_bytes is empty
            RuntimeError: If every extractor fails
        """
        if not pdf_bytes:
            raise ValueError("pdf_bytes must not be empty")

        # Try PyPDF2 first (faster)
        if self.has_pypdf2:
            try:
                text = self._extract_with_pypdf2(pdf_bytes, include_page_numbers)
                if text.strip():
                    logger.info(f"Extracted {len(text)} characters using PyPDF2")
                    return text
                logger.warning("PyPDF2 returned empty text, trying pdfplumber")
            except Exception as e:
                logger.warning(f"PyPDF2 extraction failed: {str(e)}, trying pdfplumber")

        if self.has_pdfplumber:
            try:
                text = self._extract_with_pdfplumber(pdf_bytes, include_page_numbers)
                logger.info(f"Extracted {len(text)} characters using pdfplumber")
                return text
            except Exception as e:
                logger.error(f"pdfplumber extraction failed: {str(e)}")
                raise RuntimeError(f"Failed to extract text from PDF: {str(e)}") from e

        raise RuntimeError("PDF text layer could not be read")

    def _extract_with_pypdf2(self, pdf_bytes: bytes, include_page_numbers: bool) -> str:
        import PyPDF2

        reader = PyPDF2.PdfReader(io.BytesIO(pdf_bytes))
        text_parts = []
        for page_num, page in enumerate(reader.pages, start=1):
            page_text = page.extract_text()
            if page_text:
                if include_page_numbers:
                    text_parts.append(f"\n--- Page {page_num} ---\n")
                text_parts.append(page_text)
        return "\n".join(text_parts)

    def _extract_with_pdfplumber(self, pdf_bytes: bytes, include_page_numbers: bool) -> str:
        import pdfplumber

        text_parts = []
        with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
            for page_num, page in enumerate(pdf.pages, start=1):
                page_text = page.extract_text()
                if page_text:
                    if include_page_numbers:
                        text_parts.append(f"\n--- Page {page_num} ---\n")
                    text_parts.append(page_text)
        return "\n".join(text_parts)

    @kernel_function(
        name="render_pdf_pages",
        description="Render the first pages of a PDF to PNG images for vision analysis."
    )
    def render_pages_png(self, pdf_bytes: bytes, resolution: int = 150) -> List[bytes]:
        """
        Render up to ``max_pages`` pages to PNG.

        Args:
            pdf_bytes: Raw PDF bytes
            resolution: Render resolution in DPI

        Returns:
            PNG bytes per rendered page

        Raises:
            RuntimeError: If pdfplumber is unavailable or rendering fails
        """
        if not self.has_pdfplumber:
            raise RuntimeError("pdfplumber required for page rendering")

        import pdfplumber

        images: List[bytes] = []
        try:
            with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
                for page in pdf.pages[:self.max_pages]:
                    buffer = io.BytesIO()
                    page.to_image(resolution=resolution).original.save(buffer, format="PNG")
                    images.append(buffer.getvalue())
        except Exception as e:
            logger.error(f"Failed to render PDF pages: {str(e)}")
            raise RuntimeError(f"Page rendering failed: {str(e)}") from e

        logger.debug(f"Rendered {len(images)} page(s) to PNG")
        return images
