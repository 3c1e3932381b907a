"""Semantic Kernel plugins for document reading and field extraction."""

from .pdf_extractor import PDFExtractorPlugin
from .document_extractor import DocumentExtractorPlugin
from .document_assistant import DocumentAssistantPlugin
from .field_patterns import extract_fields

__all__ = [
    'PDFExtractorPlugin',
    'DocumentExtractorPlugin',
    'DocumentAssistantPlugin',
    'extract_fields'
]
