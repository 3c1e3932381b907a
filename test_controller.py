"""Tests for the conversation controller."""

import pytest

from aiva.agents.advisor import AdvisorAgent
from aiva.models.claim_form import Attachment, TRAVEL_CLAIM_SCHEMA
from aiva.models.session import ConversationMode
from aiva.orchestration.controller import (
    NOTHING_TO_SUBMIT,
    REVIEW_PROMPT,
    ConversationController,
    looks_like_question,
)
from aiva.utils.errors import ModelAPIError, user_message
from conftest import NOW, delimited


class RejectingStore:
    """Persistence collaborator that refuses every claim."""

    def __init__(self, message="Policy number not recognised"):
        self.message = message
        self.payloads = []

    def submit(self, payload):
        self.payloads.append(payload)
        return {"error": self.message}


def _fill_required(controller, session):
    controller.start(session, guided=False)
    session.draft.merge({
        "fullName": "Jane Tan",
        "policyNo": "TP-2025-001",
        "email": "jane@example.com",
        "declaration": True,
    })


def test_guided_start_asks_the_first_question(controller, session):
    turn = controller.start(session, guided=True)

    assert turn.mode == ConversationMode.GUIDED
    assert turn.step == 0
    assert turn.reply.endswith(TRAVEL_CLAIM_SCHEMA.guided_fields[0].question)


@pytest.mark.asyncio
async def test_guided_mode_walks_every_required_field(controller, session, bedrock):
    guided = TRAVEL_CLAIM_SCHEMA.guided_fields
    controller.start(session, guided=True)

    turn = None
    for i, spec in enumerate(guided):
        turn = await controller.handle_turn(session, f"answer {i}")
        assert turn.changed == [spec.key]
        if i < len(guided) - 1:
            assert turn.reply == guided[i + 1].question
            assert not turn.ready_to_submit

    assert session.state.step == len(guided)
    assert turn.reply == REVIEW_PROMPT
    assert turn.ready_to_submit
    assert session.draft.get(guided[0].key) == "answer 0"
    assert bedrock.calls == []


@pytest.mark.asyncio
async def test_guided_date_validation_when_enabled(engine, bedrock, store, session):
    controller = ConversationController(
        extractor=engine,
        advisor=AdvisorAgent(bedrock=bedrock),
        store=store,
        validate_guided_answers=True,
        clock=lambda: NOW,
    )
    controller.start(session, guided=True)
    session.state.step = [s.key for s in TRAVEL_CLAIM_SCHEMA.guided_fields].index("departureDate")

    turn = await controller.handle_turn(session, "sometime soon")
    assert turn.changed == []
    assert "couldn't read that as a date" in turn.reply

    turn = await controller.handle_turn(session, "last monday")
    assert turn.changed == ["departureDate"]
    assert session.draft.get("departureDate") == "2025-09-15"


@pytest.mark.asyncio
async def test_set_command_changes_exactly_one_field(controller, session):
    turn = await controller.handle_turn(session, "set phone=0123456789")

    assert turn.changed == ["phone"]
    assert session.draft.get("phone") == "0123456789"
    assert session.state.mode == ConversationMode.FREE


@pytest.mark.asyncio
async def test_set_unknown_field(controller, session):
    turn = await controller.handle_turn(session, "set shoe size = 42")

    assert turn.changed == []
    assert turn.error
    assert session.draft.is_empty


@pytest.mark.asyncio
async def test_free_order_turn_confirms_changes(controller, session, bedrock):
    controller.start(session, guided=False)

    turn = await controller.handle_turn(session, "email is jane@example.com, policy ABC-123")

    assert turn.changed == ["email", "policyNo"]
    assert turn.reply.startswith("Updated Email, Policy No.")
    assert bedrock.calls == []


@pytest.mark.asyncio
async def test_question_goes_to_the_advisor(controller, session, bedrock):
    controller.start(session, guided=False)
    bedrock.queue(delimited("{}"), "You'll need a copy of your passport.")

    turn = await controller.handle_turn(session, "what documents do I need?")

    assert turn.reply == "You'll need a copy of your passport."
    assert turn.changed == []
    assert bedrock.calls[1]["operation"] == "informational_answer"


@pytest.mark.asyncio
async def test_statement_with_nothing_found_is_silent(controller, session, bedrock):
    controller.start(session, guided=False)
    bedrock.queue(delimited("{}"))

    turn = await controller.handle_turn(session, "ok thanks")

    assert turn.reply is None
    assert turn.error is None


@pytest.mark.asyncio
async def test_question_after_a_silent_turn_keeps_roles_alternating(controller, session, bedrock):
    controller.start(session, guided=False)
    bedrock.queue(delimited("{}"), delimited("{}"), "Medical expenses and delays are covered.")

    await controller.handle_turn(session, "ok thanks")
    turn = await controller.handle_turn(session, "what is covered?")

    assert turn.reply == "Medical expenses and delays are covered."
    messages = bedrock.calls[-1]["messages"]
    roles = [m["role"] for m in messages]
    assert roles[0] == "user"
    assert all(a != b for a, b in zip(roles, roles[1:]))
    last_text = messages[-1]["content"][0]["text"]
    assert last_text.startswith("ok thanks")
    assert "Question: what is covered?" in last_text


@pytest.mark.asyncio
async def test_model_timeout_is_shown_as_a_message(controller, session, bedrock):
    controller.start(session, guided=False)
    error = ModelAPIError.timeout("extract_fields", 30.0)
    bedrock.queue(error)

    turn = await controller.handle_turn(session, "the thing with the bag")

    assert turn.reply == user_message(error)
    assert turn.error
    assert session.draft.is_empty


@pytest.mark.asyncio
async def test_idle_turn_is_general_chat(controller, session, bedrock):
    bedrock.queue("Hello! I can help with travel claims.")

    turn = await controller.handle_turn(session, "hello")

    assert turn.reply == "Hello! I can help with travel claims."
    assert turn.mode == ConversationMode.IDLE
    assert session.draft.is_empty


@pytest.mark.asyncio
async def test_history_excludes_the_current_turn(controller, session, bedrock):
    bedrock.queue("Hi there.", "Sure.")
    await controller.handle_turn(session, "hello")

    await controller.handle_turn(session, "tell me more")

    messages = bedrock.calls[1]["messages"]
    texts = [block["text"] for m in messages for block in m["content"]]
    assert texts.count("tell me more") == 1
    assert messages[-1]["content"][0]["text"].endswith("tell me more")


@pytest.mark.asyncio
async def test_submit_success_resets_the_session(controller, session, store):
    _fill_required(controller, session)

    turn = await controller.handle_turn(session, "submit")

    assert turn.claim_id
    assert turn.reply == f"Submitted! Your claim reference is {turn.claim_id}."
    assert session.state.mode == ConversationMode.IDLE
    assert session.state.last_claim_id == turn.claim_id
    assert session.draft.is_empty

    record = store.get_record(turn.claim_id)
    assert record["full_name"] == "Jane Tan"
    assert record["policy_no"] == "TP-2025-001"
    assert record["declaration"] is True


@pytest.mark.asyncio
async def test_submit_with_missing_required_fields_still_goes_through(controller, session):
    controller.start(session, guided=False)
    session.draft.merge({"fullName": "Jane Tan"})

    turn = await controller.submit(session)

    assert turn.claim_id


@pytest.mark.asyncio
async def test_submit_error_is_shown_verbatim_and_draft_kept(engine, bedrock, session):
    store = RejectingStore()
    controller = ConversationController(
        extractor=engine, advisor=AdvisorAgent(bedrock=bedrock), store=store, clock=lambda: NOW
    )
    _fill_required(controller, session)

    turn = await controller.submit(session)

    assert turn.reply == "Policy number not recognised"
    assert turn.claim_id is None
    assert session.draft.get("fullName") == "Jane Tan"
    assert session.state.mode == ConversationMode.FREE
    assert not session.state.loading
    assert store.payloads[0].fields["policyNo"] == "TP-2025-001"


class BrokenStore:
    """Persistence collaborator that fails with an unexpected error."""

    def submit(self, payload):
        raise ValueError("disk quota exceeded")


@pytest.mark.asyncio
async def test_unexpected_store_error_becomes_a_message(engine, bedrock, session):
    controller = ConversationController(
        extractor=engine, advisor=AdvisorAgent(bedrock=bedrock), store=BrokenStore(), clock=lambda: NOW
    )
    _fill_required(controller, session)

    turn = await controller.submit(session)

    assert turn.reply == "disk quota exceeded"
    assert turn.claim_id is None
    assert session.draft.get("fullName") == "Jane Tan"
    assert not session.state.loading


@pytest.mark.asyncio
async def test_submit_is_refused_while_loading(engine, bedrock, session):
    store = RejectingStore()
    controller = ConversationController(
        extractor=engine, advisor=AdvisorAgent(bedrock=bedrock), store=store, clock=lambda: NOW
    )
    _fill_required(controller, session)
    session.state.loading = True

    turn = await controller.submit(session)

    assert turn.error
    assert store.payloads == []


@pytest.mark.asyncio
async def test_empty_draft_is_not_submitted(controller, session):
    turn = await controller.submit(session)

    assert turn.reply == NOTHING_TO_SUBMIT
    assert turn.claim_id is None


@pytest.mark.asyncio
async def test_reset_command(controller, session):
    _fill_required(controller, session)

    turn = await controller.handle_turn(session, "start over")

    assert turn.mode == ConversationMode.IDLE
    assert session.draft.is_empty


@pytest.mark.asyncio
async def test_file_upload_attaches_and_extracts(controller, session):
    attachment = Attachment(
        filename="details.txt",
        content_type="text/plain",
        data=b"Passport No: A1234567",
    )

    turn = await controller.handle_file(session, attachment, category="passportCopy")

    assert turn.changed == ["passportCopy", "passportNo"]
    assert session.state.mode == ConversationMode.FREE
    assert len(session.draft.attachments("passportCopy")) == 1
    assert session.draft.get("passportNo") == "A1234567"


@pytest.mark.parametrize("text, expected", [
    ("what documents do I need?", True),
    ("Can I claim for a taxi", True),
    ("my bag was lost", False),
    ("", False),
])
def test_looks_like_question(text, expected):
    assert looks_like_question(text) is expected
