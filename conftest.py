"""Shared fixtures: a scripted Bedrock stand-in and a wired-up controller."""

from datetime import datetime

import pytest

from aiva.agents.advisor import AdvisorAgent
from aiva.agents.extractor import ExtractionEngine
from aiva.orchestration.controller import ConversationController
from aiva.orchestration.session import FormSession
from aiva.storage.claim_store import ClaimRecordStore
from aiva.utils.response_formatter import ResponseFormatter

# Wednesday
NOW = datetime(2025, 9, 17, 10, 0)


def delimited(payload: str) -> str:
    """Wrap a JSON body the way the extraction prompt asks for it."""
    return f"{ResponseFormatter.JSON_START_DELIMITER}{payload}{ResponseFormatter.JSON_END_DELIMITER}"


class FakeBedrock:
    """
    Scripted replacement for BedrockClient.

    Each converse call pops the next scripted reply; an Exception in the
    script is raised instead of returned.
    """

    def __init__(self, replies=None):
        self.replies = list(replies or [])
        self.calls = []
        self.model_id = "fake-text-model"
        self.vision_model_id = "fake-vision-model"
        self.call_timeout = 1.0

    def queue(self, *replies):
        self.replies.extend(replies)

    async def converse(self, messages, system_prompts=None, temperature=0.0, max_tokens=2048,
                       model_id=None, operation="converse"):
        self.calls.append({
            "messages": messages,
            "system_prompts": system_prompts,
            "temperature": temperature,
            "model_id": model_id or self.model_id,
            "operation": operation,
        })
        reply = self.replies.pop(0) if self.replies else ""
        if isinstance(reply, Exception):
            raise reply
        return {
            "text": reply,
            "content": [{"text": reply}],
            "role": "assistant",
            "stop_reason": "end_turn",
            "usage": {},
        }

    async def complete(self, system, prompt, temperature=0.0, max_tokens=2048, history=None,
                       operation="complete"):
        messages = list(history or [])
        messages.append({"role": "user", "content": [{"text": prompt}]})
        result = await self.converse(
            messages,
            system_prompts=[{"text": system}] if system else None,
            temperature=temperature,
            max_tokens=max_tokens,
            operation=operation,
        )
        return result["text"]

    def prompt_text(self, index: int = -1) -> str:
        """All text blocks of the last user message of one recorded call."""
        message = self.calls[index]["messages"][-1]
        return "\n".join(block["text"] for block in message["content"] if "text" in block)


class FakePDF:
    """PDFExtractorPlugin stand-in with a fixed text layer and page renders."""

    def __init__(self, text="", pages=None, error=None):
        self.text = text
        self.pages = pages if pages is not None else [b"\x89PNG\r\n\x1a\npage1"]
        self.error = error

    def extract_text(self, pdf_bytes, include_page_numbers=False):
        if self.error:
            raise self.error
        return self.text

    def render_pages_png(self, pdf_bytes, resolution=150):
        return list(self.pages)


@pytest.fixture
def bedrock():
    return FakeBedrock()


@pytest.fixture
def fake_pdf():
    return FakePDF()


@pytest.fixture
def engine(bedrock, fake_pdf):
    return ExtractionEngine(bedrock=bedrock, pdf_extractor=fake_pdf)


@pytest.fixture
def store(tmp_path):
    return ClaimRecordStore(uploads_dir=str(tmp_path / "uploads"), records_dir=str(tmp_path / "claims"))


@pytest.fixture
def controller(engine, bedrock, store):
    return ConversationController(
        extractor=engine,
        advisor=AdvisorAgent(bedrock=bedrock),
        store=store,
        call_timeout=2.0,
        clock=lambda: NOW,
    )


@pytest.fixture
def session():
    return FormSession.create()
