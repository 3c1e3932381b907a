"""Conversation controller: routes each form-assist turn."""

import asyncio
import logging
import re
from datetime import datetime
from typing import Callable, List, Optional

from ..agents.advisor import AdvisorAgent
from ..agents.extractor import ExtractionEngine
from ..models.claim_form import Attachment, FieldSchema, FieldType, TRAVEL_CLAIM_SCHEMA
from ..models.session import ConversationMode, TurnResult
from ..storage.claim_store import ClaimRecordStore
from ..storage.submission import build_payload
from ..utils.bedrock_client import BedrockClient
from ..utils.errors import ErrorContext, ErrorType, FormAssistError, SubmissionError, user_message
from ..utils.logging import set_context
from ..utils.natural_dates import normalize_date
from .session import FormSession

logger = logging.getLogger(__name__)

SET_RE = re.compile(r"^\s*set\s+(?P<field>[^=:]+?)\s*[=:]\s*(?P<value>.*?)\s*$", re.IGNORECASE | re.DOTALL)
SUBMIT_RE = re.compile(r"^\s*submit(?:\s+(?:the\s+)?(?:claim|form|it))?\s*[.!]*\s*$", re.IGNORECASE)
RESET_RE = re.compile(r"^\s*(?:reset|start\s+over|clear\s+(?:the\s+)?form)\s*[.!]*\s*$", re.IGNORECASE)
GUIDED_RE = re.compile(r"^\s*(?:start\s+)?guided(?:\s+mode)?\s*[.!]*\s*$", re.IGNORECASE)
FREE_RE = re.compile(r"^\s*(?:start|fill)\s+(?:the\s+|a\s+)?(?:claim\s+)?form\s*[.!]*\s*$", re.IGNORECASE)

QUESTION_WORDS = {
    "what", "why", "how", "when", "where", "who", "which", "whose",
    "can", "could", "do", "does", "did", "is", "are", "should", "will", "would", "may",
}

GUIDED_INTRO = (
    "Let's fill in your travel claim one question at a time. "
    "You can type 'set <field>=<value>' to change an answer at any point."
)
FREE_INTRO = (
    "Sure, tell me about your trip and the incident in your own words, or upload "
    "documents, and I'll fill in the claim form as we go. Type 'submit' when you're done."
)
REVIEW_PROMPT = "That's everything I need. Please review the draft and type 'submit' when you're ready."
RESET_REPLY = "The claim form has been cleared. Say 'start form' or 'start guided' whenever you want to begin again."
NOTHING_TO_SUBMIT = "There's nothing to submit yet. Tell me about your claim first."


def looks_like_question(text: str) -> bool:
    """Interrogative lead word or a trailing question mark."""
    stripped = text.strip()
    if stripped.endswith("?"):
        return True
    words = stripped.split()
    return bool(words) and words[0].lower().strip(",.!") in QUESTION_WORDS


class ConversationController:
    """
    Per-turn routing for Conversational Form Drafting.

    Idle turns get a general assistant reply; commands switch modes; guided
    turns fill the next required field; free-order turns run the extraction
    engine and confirm what changed. Every model or storage failure becomes
    a chat message; the controller itself does not raise on a turn.
    """

    def __init__(
        self,
        extractor: ExtractionEngine,
        advisor: AdvisorAgent,
        store: ClaimRecordStore,
        schema: FieldSchema = TRAVEL_CLAIM_SCHEMA,
        call_timeout: float = 30.0,
        validate_guided_answers: bool = False,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.extractor = extractor
        self.advisor = advisor
        self.store = store
        self.schema = schema
        self.call_timeout = call_timeout
        self.validate_guided_answers = validate_guided_answers
        self.clock = clock
        logger.info(
            f"Initialized ConversationController: {len(self.guided_fields)} guided steps, "
            f"call_timeout={call_timeout}s"
        )

    @classmethod
    def from_config(cls, config, bedrock: Optional[BedrockClient] = None,
                    store: Optional[ClaimRecordStore] = None) -> "ConversationController":
        bedrock = bedrock or BedrockClient.from_config(config)
        fa = config.form_assist
        return cls(
            extractor=ExtractionEngine(
                bedrock=bedrock,
                max_pdf_pages=fa.max_pdf_pages,
                max_document_chars=fa.max_document_chars,
            ),
            advisor=AdvisorAgent(bedrock=bedrock),
            store=store or ClaimRecordStore.from_config(config),
            call_timeout=fa.call_timeout_seconds,
            validate_guided_answers=fa.validate_guided_answers,
        )

    @property
    def guided_fields(self):
        return self.schema.guided_fields

    # Entry points

    def start(self, session: FormSession, guided: bool = False) -> TurnResult:
        """Enter guided or free-order mode (the draft is kept when switching)."""
        state = session.state
        if guided:
            state.mode = ConversationMode.GUIDED
            state.step = 0
            reply = f"{GUIDED_INTRO}\n\n{self.guided_fields[0].question}"
        else:
            state.mode = ConversationMode.FREE
            reply = FREE_INTRO
        logger.info(f"Session {session.session_id} entered {state.mode.value} mode")
        session.history.add_message("assistant", reply)
        return self._result(session, reply)

    async def handle_turn(self, session: FormSession, text: str) -> TurnResult:
        """
        Process one user utterance.

        Args:
            session: Session state, mutated in place
            text: User message

        Returns:
            TurnResult with the reply (None for a silent turn) and changed keys
        """
        set_context(session_id=session.session_id)
        text = text or ""

        command = self._match_command(text)
        if command == "submit":
            session.history.add_message("user", text)
            return await self.submit(session)
        if command == "reset":
            session.history.add_message("user", text)
            return self.reset(session)
        if command in ("guided", "free"):
            session.history.add_message("user", text)
            return self.start(session, guided=command == "guided")

        set_match = SET_RE.match(text)
        if set_match:
            session.history.add_message("user", text)
            return self._override(session, set_match.group("field"), set_match.group("value"))

        # Replayed history excludes the current utterance
        history = session.history.get_message_history()
        session.history.add_message("user", text)

        if session.state.mode == ConversationMode.GUIDED and session.state.step < len(self.guided_fields):
            result = self._guided_answer(session, text)
        elif session.state.is_active:
            result = await self._free_turn(session, text, history)
        else:
            result = await self._idle_turn(session, text, history)

        if result.reply:
            session.history.add_message("assistant", result.reply)
        return result

    async def handle_file(
        self,
        session: FormSession,
        attachment: Attachment,
        category: Optional[str] = None,
    ) -> TurnResult:
        """
        Process an uploaded file: optional attachment to the draft, then extraction.

        Args:
            session: Session state, mutated in place
            attachment: Uploaded file
            category: Attachment field key (e.g. "passportCopy"), or None

        Returns:
            TurnResult describing what was attached and filled in
        """
        set_context(session_id=session.session_id)
        session.history.add_message("user", f"[Uploaded {attachment.filename}]")
        if not session.state.is_active:
            session.state.mode = ConversationMode.FREE

        changed: List[str] = []
        notes: List[str] = []
        error: Optional[str] = None

        if category:
            try:
                changed.extend(session.draft.attach(category, [attachment]))
                notes.append(f"Attached {attachment.filename} as {self.schema.label(category)}.")
            except ValueError as e:
                error = str(e)
                notes.append(error)

        result = await self.extractor.extract_file(attachment, now=self.clock())
        filled = session.draft.merge(result.candidate)
        changed.extend(filled)

        if filled:
            notes.append(f"From {attachment.filename} I filled in: {self._labels(filled)}.")
            notes.append(self._missing_note(session))
        elif result.failed:
            error = error or result.reason
            notes.append(result.reason)
        elif not category:
            notes.append(result.reason or f"I couldn't find any claim details in {attachment.filename}.")

        reply = " ".join(n for n in notes if n)
        session.history.add_message("assistant", reply)
        return self._result(session, reply, changed=changed, error=error)

    async def submit(self, session: FormSession) -> TurnResult:
        """
        Serialize the draft and hand it to the persistence collaborator.

        Guarded by the session loading flag. On success the claim reference is
        reported and the session returns to idle; on failure the
        collaborator's message is shown and the draft is kept.
        """
        state = session.state
        if state.loading:
            error = FormAssistError(ErrorContext(
                error_type=ErrorType.SUBMISSION_IN_PROGRESS,
                message=f"Submission already running for session {session.session_id}",
                recoverable=True,
            ))
            return self._reply(session, user_message(error), error=user_message(error))

        if session.draft.is_empty:
            return self._reply(session, NOTHING_TO_SUBMIT)

        missing = session.draft.missing_required()
        if missing:
            # Required fields are validated by the collaborator, not here
            logger.warning(f"Submitting with {len(missing)} required field(s) empty: {missing}")

        state.loading = True
        try:
            payload = build_payload(session.draft.draft, self.schema)
            response = await asyncio.wait_for(
                asyncio.to_thread(self.store.submit, payload),
                timeout=self.call_timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"Submission exceeded {self.call_timeout}s budget")
            response = {"error": "The submission timed out. Please try again."}
        except Exception as e:
            logger.error(f"Submission failed: {str(e)}")
            response = {"error": str(e)}
        finally:
            state.loading = False

        if response.get("error") or not response.get("id"):
            failure = SubmissionError.rejected(
                response.get("error") or "Submission failed",
                details={"session_id": session.session_id},
            )
            logger.warning(f"Submission rejected: {failure}")
            return self._reply(session, user_message(failure), error=user_message(failure))

        claim_id = str(response["id"])
        state.last_claim_id = claim_id
        session.draft.reset()
        state.mode = ConversationMode.IDLE
        state.step = 0
        logger.info(f"Claim submitted: {claim_id}")
        return self._reply(session, f"Submitted! Your claim reference is {claim_id}.", claim_id=claim_id)

    def reset(self, session: FormSession) -> TurnResult:
        """Discard the draft and return to idle."""
        session.draft.reset()
        session.state.mode = ConversationMode.IDLE
        session.state.step = 0
        logger.info(f"Session {session.session_id} reset")
        return self._reply(session, RESET_REPLY)

    # Turn handlers

    def _match_command(self, text: str) -> Optional[str]:
        if SUBMIT_RE.match(text):
            return "submit"
        if RESET_RE.match(text):
            return "reset"
        if GUIDED_RE.match(text):
            return "guided"
        if FREE_RE.match(text):
            return "free"
        return None

    def _override(self, session: FormSession, name: str, value: str) -> TurnResult:
        try:
            changed = session.draft.override(name, value)
        except ValueError as e:
            logger.info(f"Rejected override: {str(e)}")
            return self._reply(session, f"{e}. Try one of: {', '.join(self.schema.keys[:6])}, ...", error=str(e))

        if not session.state.is_active:
            session.state.mode = ConversationMode.FREE

        key = session.draft.resolve_field(name)
        label = self.schema.label(key)
        if changed:
            reply = f"Set {label} to {session.draft.get(key)}."
        else:
            reply = f"{label} is unchanged."
        return self._reply(session, reply, changed=changed)

    def _guided_answer(self, session: FormSession, text: str) -> TurnResult:
        state = session.state
        spec = self.guided_fields[state.step]
        answer = text.strip()

        if self.validate_guided_answers and answer and spec.field_type in (FieldType.DATE, FieldType.DATETIME):
            normalized = normalize_date(answer, self.clock())
            if normalized is None:
                return self._result(
                    session,
                    f"Sorry, I couldn't read that as a date. {spec.question}",
                )
            answer = normalized[:10] if spec.field_type == FieldType.DATE else normalized

        changed = session.draft.merge({spec.key: answer})
        state.step += 1
        logger.debug(f"Guided step {state.step}/{len(self.guided_fields)}: {spec.key} changed={bool(changed)}")

        if state.step < len(self.guided_fields):
            reply = self.guided_fields[state.step].question
        else:
            reply = REVIEW_PROMPT
        return self._result(session, reply, changed=changed)

    async def _free_turn(self, session: FormSession, text: str, history) -> TurnResult:
        result = await self.extractor.extract_text(text, now=self.clock())
        changed = session.draft.merge(result.candidate)

        if changed:
            reply = f"Updated {self._labels(changed)}. {self._missing_note(session)}".strip()
            return self._result(session, reply, changed=changed)

        if looks_like_question(text):
            try:
                answer = await self.advisor.answer(
                    history, text, [self.schema.label(k) for k in session.draft.missing_required()]
                )
            except FormAssistError as e:
                logger.warning(f"Informational answer failed: {e}")
                return self._result(session, user_message(e), error=user_message(e))
            return self._result(session, answer)

        if result.failed:
            return self._result(session, result.reason, error=result.reason)

        logger.debug(f"Silent turn: {result.reason}")
        return self._result(session, None)

    async def _idle_turn(self, session: FormSession, text: str, history) -> TurnResult:
        try:
            reply = await self.advisor.chat(history, text)
        except FormAssistError as e:
            logger.warning(f"General chat failed: {e}")
            return self._result(session, user_message(e), error=user_message(e))
        return self._result(session, reply)

    # Helpers

    def _labels(self, keys: List[str]) -> str:
        return ", ".join(self.schema.label(k) for k in keys)

    def _missing_note(self, session: FormSession) -> str:
        missing = session.draft.missing_required()
        if not missing:
            return "All required fields are filled in. Type 'submit' when you're ready."
        return f"{len(missing)} required field(s) still to go."

    def _reply(self, session: FormSession, reply: Optional[str], **kwargs) -> TurnResult:
        if reply:
            session.history.add_message("assistant", reply)
        return self._result(session, reply, **kwargs)

    def _result(
        self,
        session: FormSession,
        reply: Optional[str],
        changed: Optional[List[str]] = None,
        error: Optional[str] = None,
        claim_id: Optional[str] = None,
    ) -> TurnResult:
        state = session.state
        return TurnResult(
            reply=reply,
            changed=list(changed or []),
            mode=state.mode,
            step=state.step,
            ready_to_submit=state.is_guided and state.step >= len(self.guided_fields),
            claim_id=claim_id,
            error=error,
        )
