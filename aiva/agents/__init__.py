"""Model-backed agents for extraction and assistant replies."""

from .base import BaseAssistantAgent
from .extractor import ExtractionEngine
from .advisor import AdvisorAgent

__all__ = [
    'BaseAssistantAgent',
    'ExtractionEngine',
    'AdvisorAgent'
]
