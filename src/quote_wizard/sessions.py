"""State machine for a single interview-and-quote run."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Set, Tuple, TypeVar

from .config import DEFAULT_MAX_QUESTIONS, AppSettings, QuoteLanguage
from .extraction import ExtractionError
from .llm_client import ChatCompletionGateway, GatewayError
from .models import (
    AnswerSet,
    InterviewRecord,
    Question,
    Quote,
    parse_questions,
    parse_quote,
)
from .prompts import LanguagePack, build_quote_prompt, get_language_pack
from .record_store import NocoDBRecordSink

logger = logging.getLogger(__name__)

ParsedT = TypeVar("ParsedT")


class SessionStage(str, Enum):
    """Stages of the interview flow."""

    INPUT = "input"
    ANALYZING = "analyzing"
    QUESTIONS = "questions"
    CALCULATING = "calculating"
    QUOTE = "quote"


class ValidationError(ValueError):
    """Raised for local input problems that never reach the network."""


class SessionStateError(RuntimeError):
    """Raised when an action is not available in the current stage."""


class GenerationError(RuntimeError):
    """Unified failure of a model round trip, carrying a readable message."""


def _empty_answers() -> AnswerSet:
    return AnswerSet(())


@dataclass(slots=True)
class QuoteSession:
    """Owns the request, questions, answers and quote of one user.

    Only ``begin_interview`` and ``generate_quote`` suspend. ``restart``
    bumps an epoch counter so a model response that lands after the user
    started over is dropped rather than applied.
    """

    gateway: ChatCompletionGateway
    sink: Optional[NocoDBRecordSink] = None
    language: QuoteLanguage = QuoteLanguage.ZH
    max_questions: int = DEFAULT_MAX_QUESTIONS
    stage: SessionStage = SessionStage.INPUT
    request_text: str = ""
    questions: Tuple[Question, ...] = ()
    answers: AnswerSet = field(default_factory=_empty_answers)
    quote: Optional[Quote] = None
    error_message: str = ""
    _epoch: int = field(default=0, init=False, repr=False)
    _background: Set["asyncio.Task[None]"] = field(
        default_factory=set, init=False, repr=False
    )

    @classmethod
    def create(
        cls,
        settings: AppSettings,
        *,
        gateway: Optional[ChatCompletionGateway] = None,
        sink: Optional[NocoDBRecordSink] = None,
    ) -> "QuoteSession":
        return cls(
            gateway=gateway or ChatCompletionGateway(settings.model),
            sink=sink or NocoDBRecordSink(settings.record_store),
            language=settings.language,
            max_questions=settings.max_questions,
        )

    @property
    def pack(self) -> LanguagePack:
        return get_language_pack(self.language)[1]

    @property
    def saving(self) -> bool:
        return bool(self._background)

    def set_request_text(self, request_text: str) -> None:
        self._require_stage(SessionStage.INPUT)
        self.request_text = request_text

    def dismiss_error(self) -> None:
        self.error_message = ""

    async def begin_interview(self, request_text: Optional[str] = None) -> bool:
        """Ask the model for clarifying questions about the request."""

        self._require_stage(SessionStage.INPUT)
        if request_text is not None:
            self.request_text = request_text
        try:
            self._validate_request()
        except ValidationError as exc:
            logger.debug("Interview not started: %s", exc)
            return False

        pack = self.pack
        self.stage = SessionStage.ANALYZING
        self.error_message = ""
        epoch = self._epoch
        try:
            questions = await self._generate(
                self.request_text,
                pack.question_instruction,
                lambda payload: parse_questions(
                    payload, max_questions=self.max_questions
                ),
                pack.missing_questions,
            )
        except GenerationError as exc:
            if self._is_stale(epoch):
                return False
            self.error_message = f"{pack.analyze_failure_prefix}{exc}"
            self.stage = SessionStage.INPUT
            return False
        if self._is_stale(epoch):
            return False

        self.questions = questions
        self.answers = AnswerSet(questions)
        self.stage = SessionStage.QUESTIONS
        logger.info("Interview started with %s questions", len(questions))
        return True

    def select_option(self, question_id: int, option: str) -> None:
        self._require_stage(SessionStage.QUESTIONS)
        self.answers.select(question_id, option)

    def enable_custom_input(self, question_id: int) -> None:
        self._require_stage(SessionStage.QUESTIONS)
        self.answers.enable_custom(question_id)

    def set_custom_text(self, question_id: int, value: str) -> bool:
        self._require_stage(SessionStage.QUESTIONS)
        return self.answers.set_custom_text(question_id, value)

    async def generate_quote(self) -> bool:
        """Price the request from the collected answers."""

        self._require_stage(SessionStage.QUESTIONS)
        pack = self.pack
        try:
            self._validate_answers()
        except ValidationError as exc:
            self.error_message = str(exc)
            return False

        self.stage = SessionStage.CALCULATING
        self.error_message = ""
        epoch = self._epoch
        prompt = build_quote_prompt(
            pack, self.request_text, self.answers.resolved_pairs()
        )
        try:
            quote = await self._generate(
                prompt,
                pack.quote_instruction,
                lambda payload: parse_quote(
                    payload, price_sentinel=pack.price_sentinel
                ),
                pack.missing_tiers,
            )
        except GenerationError as exc:
            if self._is_stale(epoch):
                return False
            self.error_message = f"{pack.quote_failure_prefix}{exc}"
            self.stage = SessionStage.QUESTIONS
            return False
        if self._is_stale(epoch):
            return False

        self.quote = quote
        self.stage = SessionStage.QUOTE
        logger.info("Quote generated with %s tiers", len(quote.tiers))
        self._spawn_record(
            InterviewRecord.capture(
                self.request_text, self.questions, self.answers, quote
            )
        )
        return True

    def restart(self) -> None:
        """Drop everything and return to the request input stage."""

        self._epoch += 1
        self.stage = SessionStage.INPUT
        self.request_text = ""
        self.questions = ()
        self.answers = _empty_answers()
        self.quote = None
        self.error_message = ""

    async def wait_for_background(self) -> None:
        """Wait until pending record-store saves have finished."""

        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def share_message(self) -> str:
        """Plain-text summary the user can send to the seller."""

        self._require_stage(SessionStage.QUOTE)
        assert self.quote is not None
        pack = self.pack
        lines = [
            pack.share_greeting,
            "",
            f"{pack.share_request_label}{self.request_text[:15]}...",
        ]
        for question in self.questions:
            answer = self.answers[question.id].resolved()
            lines.append(f"• {question.text[:10]}... : {answer}")
        lines.extend(["", pack.share_tiers_header])
        for tier in self.quote.tiers:
            price = (
                f"{pack.currency_symbol}{tier.price}"
                if tier.is_numeric_price
                else tier.price
            )
            lines.append(f"【{tier.name}】 {price}")
        lines.extend(["", pack.share_closing])
        return "\n".join(lines)

    def snapshot(self) -> Dict[str, Any]:
        """JSON-ready view of the session for a presentation layer."""

        return {
            "stage": self.stage.value,
            "request": self.request_text,
            "questions": [question.to_dict() for question in self.questions],
            "answers": self.answers.to_dict(),
            "answers_complete": bool(self.questions) and self.answers.is_complete,
            "custom_option_label": self.pack.custom_option_label,
            "quote": self.quote.to_dict() if self.quote else None,
            "error": self.error_message or None,
            "saving": self.saving,
        }

    async def _generate(
        self,
        prompt: str,
        instruction: str,
        parse: Callable[[Mapping[str, Any]], ParsedT],
        invalid_message: str,
    ) -> ParsedT:
        try:
            payload = await self.gateway.complete(prompt, instruction)
            return parse(payload)
        except GatewayError as exc:
            raise GenerationError(str(exc)) from exc
        except ExtractionError as exc:
            logger.warning("Unusable model payload: %s", exc.reason)
            raise GenerationError(invalid_message) from exc
        except Exception as exc:
            logger.exception("Unexpected failure while generating a response")
            raise GenerationError(invalid_message) from exc

    def _spawn_record(self, record: InterviewRecord) -> None:
        if self.sink is None:
            return
        task = asyncio.create_task(self.sink.record(record))
        self._background.add(task)
        task.add_done_callback(self._on_record_done)

    def _on_record_done(self, task: "asyncio.Task[None]") -> None:
        self._background.discard(task)
        if task.cancelled():
            logger.warning("Record store save was cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Record store save crashed", exc_info=exc)

    def _validate_request(self) -> None:
        if not self.request_text.strip():
            raise ValidationError("Request text is empty")

    def _validate_answers(self) -> None:
        if not self.answers.is_complete:
            raise ValidationError(self.pack.incomplete_answers)

    def _is_stale(self, epoch: int) -> bool:
        if epoch != self._epoch:
            logger.info("Discarding model response for a restarted session")
            return True
        return False

    def _require_stage(self, stage: SessionStage) -> None:
        if self.stage is not stage:
            raise SessionStateError(
                f"Action requires stage '{stage.value}', "
                f"session is in '{self.stage.value}'"
            )
