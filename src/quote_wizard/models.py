"""Typed entities for questions, answers and quotes.

Model output arrives as loosely shaped JSON. The ``parse_*`` helpers check
every required field and either return frozen dataclasses or raise
:class:`~quote_wizard.extraction.ExtractionError`, so nothing downstream has
to trust the shape of what the model sent.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from .extraction import ExtractionError
from .prompts import PRICE_SENTINELS

logger = logging.getLogger(__name__)

_CURRENCY_MARKS = ("¥", "￥", "元", "RMB", "CNY", "$", ",", "，", " ")
_NUMERIC_PRICE = re.compile(r"^\d+(?:\.\d+)?(?:[-~]\d+(?:\.\d+)?)?$")


@dataclass(frozen=True, slots=True)
class Question:
    """Single-choice clarifying question produced by the model."""

    id: int
    text: str
    options: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "text": self.text, "options": list(self.options)}


class AnswerMode(str, Enum):
    """Which kind of answer a question currently holds."""

    UNANSWERED = "unanswered"
    SELECTED = "selected"
    CUSTOM = "custom"


@dataclass(frozen=True, slots=True)
class AnswerState:
    """Answer for one question: nothing, a listed option, or free text."""

    mode: AnswerMode = AnswerMode.UNANSWERED
    value: str = ""

    @classmethod
    def selected(cls, option: str) -> "AnswerState":
        return cls(mode=AnswerMode.SELECTED, value=option)

    @classmethod
    def custom(cls, text: str = "") -> "AnswerState":
        return cls(mode=AnswerMode.CUSTOM, value=text)

    @property
    def custom_active(self) -> bool:
        return self.mode is AnswerMode.CUSTOM

    @property
    def is_complete(self) -> bool:
        if self.mode is AnswerMode.SELECTED:
            return bool(self.value)
        if self.mode is AnswerMode.CUSTOM:
            return bool(self.value.strip())
        return False

    def resolved(self) -> str:
        """Answer text as sent to the model and the record store."""
        if self.mode is AnswerMode.CUSTOM:
            return self.value.strip()
        return self.value


class AnswerSet:
    """Ordered answers keyed by question id.

    Every question starts unanswered. Switching a question between a listed
    option and free text replaces its state wholesale, so no value from the
    previous mode survives.
    """

    def __init__(self, questions: Sequence[Question]) -> None:
        self._questions: Dict[int, Question] = {q.id: q for q in questions}
        self._states: Dict[int, AnswerState] = {
            q.id: AnswerState() for q in questions
        }

    def __getitem__(self, question_id: int) -> AnswerState:
        return self._states[question_id]

    def __contains__(self, question_id: object) -> bool:
        return question_id in self._states

    def __iter__(self) -> Iterator[int]:
        return iter(self._states)

    def __len__(self) -> int:
        return len(self._states)

    def items(self) -> List[Tuple[int, AnswerState]]:
        return list(self._states.items())

    def select(self, question_id: int, option: str) -> None:
        question = self._question(question_id)
        if option not in question.options:
            raise ValueError(
                f"Option {option!r} is not offered for question {question_id}"
            )
        self._states[question_id] = AnswerState.selected(option)

    def enable_custom(self, question_id: int) -> None:
        self._question(question_id)
        self._states[question_id] = AnswerState.custom()

    def set_custom_text(self, question_id: int, value: str) -> bool:
        """Overwrite the free text; ignored unless custom mode is active."""
        self._question(question_id)
        if not self._states[question_id].custom_active:
            return False
        self._states[question_id] = AnswerState.custom(value)
        return True

    @property
    def is_complete(self) -> bool:
        return all(state.is_complete for state in self._states.values())

    def resolved_pairs(self) -> List[Tuple[str, str]]:
        """(question text, answer text) in question order."""
        return [
            (self._questions[qid].text, state.resolved())
            for qid, state in self._states.items()
        ]

    def to_dict(self) -> Dict[str, Dict[str, str]]:
        return {
            str(qid): {"mode": state.mode.value, "value": state.value}
            for qid, state in self._states.items()
        }

    def _question(self, question_id: int) -> Question:
        try:
            return self._questions[question_id]
        except KeyError:
            raise KeyError(f"Unknown question id: {question_id}") from None


@dataclass(frozen=True, slots=True)
class QuoteTier:
    """One priced package option."""

    name: str
    price: str
    features: Tuple[str, ...] = ()
    desc: str = ""

    @property
    def is_numeric_price(self) -> bool:
        return self.price not in PRICE_SENTINELS


@dataclass(frozen=True, slots=True)
class Quote:
    """Priced tiers plus caveats and the consultant's analysis."""

    tiers: Tuple[QuoteTier, ...]
    notes: Tuple[str, ...] = ()
    analysis: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tiers": [
                {
                    "name": tier.name,
                    "price": tier.price,
                    "features": list(tier.features),
                    "desc": tier.desc,
                }
                for tier in self.tiers
            ],
            "notes": list(self.notes),
            "analysis": self.analysis,
        }


@dataclass(frozen=True, slots=True)
class InterviewRecord:
    """Snapshot of a finished interview handed to the record store."""

    request: str
    questions: Tuple[Question, ...]
    answers: Tuple[AnswerState, ...]
    quote: Quote
    qa_pairs: Tuple[Dict[str, str], ...] = field(default=())

    @classmethod
    def capture(
        cls,
        request: str,
        questions: Sequence[Question],
        answers: AnswerSet,
        quote: Quote,
    ) -> "InterviewRecord":
        states = tuple(answers[q.id] for q in questions)
        pairs = tuple(
            {"question": question.text, "answer": state.resolved()}
            for question, state in zip(questions, states)
        )
        return cls(
            request=request,
            questions=tuple(questions),
            answers=states,
            quote=quote,
            qa_pairs=pairs,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "request": self.request,
            "questions": [q.to_dict() for q in self.questions],
            "answers": [asdict(state) for state in self.answers],
            "quote": self.quote.to_dict(),
        }


def parse_questions(
    payload: Mapping[str, Any], *, max_questions: int
) -> Tuple[Question, ...]:
    """Validate the ``questions`` field of a model response."""

    raw_questions = payload.get("questions")
    if not isinstance(raw_questions, list) or not raw_questions:
        raise ExtractionError("Response has no questions", _dump(payload))

    questions: List[Question] = []
    seen_ids: set[int] = set()
    for entry in raw_questions:
        if not isinstance(entry, dict):
            raise ExtractionError("Question entry is not an object", _dump(payload))
        question_id = _coerce_id(entry.get("id"))
        if question_id is None:
            raise ExtractionError(
                f"Question has an invalid id: {entry.get('id')!r}", _dump(payload)
            )
        if question_id in seen_ids:
            raise ExtractionError(
                f"Duplicate question id: {question_id}", _dump(payload)
            )
        text = entry.get("text")
        if not isinstance(text, str) or not text.strip():
            raise ExtractionError(
                f"Question {question_id} has no text", _dump(payload)
            )
        options = _string_list(entry.get("options"))
        if not options:
            raise ExtractionError(
                f"Question {question_id} has no options", _dump(payload)
            )
        seen_ids.add(question_id)
        questions.append(
            Question(
                id=question_id,
                text=text.strip(),
                options=tuple(dict.fromkeys(options)),
            )
        )

    if len(questions) > max_questions:
        logger.warning(
            "Model returned %s questions; keeping the first %s",
            len(questions),
            max_questions,
        )
        questions = questions[:max_questions]
    return tuple(questions)


def parse_quote(payload: Mapping[str, Any], *, price_sentinel: str) -> Quote:
    """Validate the ``tiers``/``notes``/``analysis`` fields of a quote."""

    raw_tiers = payload.get("tiers")
    if not isinstance(raw_tiers, list) or not raw_tiers:
        raise ExtractionError("Response has no tiers", _dump(payload))

    tiers: List[QuoteTier] = []
    for entry in raw_tiers:
        if not isinstance(entry, dict):
            raise ExtractionError("Tier entry is not an object", _dump(payload))
        name = entry.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ExtractionError("Tier has no name", _dump(payload))
        desc = entry.get("desc")
        tiers.append(
            QuoteTier(
                name=name.strip(),
                price=normalize_price(entry.get("price"), price_sentinel),
                features=tuple(_string_list(entry.get("features"))),
                desc=desc.strip() if isinstance(desc, str) else "",
            )
        )

    analysis = payload.get("analysis")
    return Quote(
        tiers=tuple(tiers),
        notes=tuple(_string_list(payload.get("notes"))),
        analysis=analysis.strip() if isinstance(analysis, str) else "",
    )


def normalize_price(value: Any, sentinel: str) -> str:
    """Return a numeric-looking price string or a known sentinel.

    Anything else collapses to ``sentinel`` so the presentation layer never
    shows an arbitrary string as an amount.
    """
    if isinstance(value, bool):
        text: Optional[str] = None
    elif isinstance(value, int):
        text = str(value)
    elif isinstance(value, float):
        text = str(int(value)) if value.is_integer() else str(value)
    elif isinstance(value, str):
        text = value.strip()
    else:
        text = None

    if text in PRICE_SENTINELS:
        return text
    if text:
        cleaned = text
        for mark in _CURRENCY_MARKS:
            cleaned = cleaned.replace(mark, "")
        if _NUMERIC_PRICE.match(cleaned):
            return cleaned
    logger.warning("Tier price %r is not numeric; using %s", value, sentinel)
    return sentinel


def _coerce_id(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdecimal():
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    items: List[str] = []
    for entry in value:
        if isinstance(entry, (str, int, float)) and not isinstance(entry, bool):
            text = str(entry).strip()
            if text:
                items.append(text)
    return items


def _dump(payload: Mapping[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, default=str)
