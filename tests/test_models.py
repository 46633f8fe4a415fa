"""Tests for boundary validation and answer bookkeeping."""

import copy

import pytest

from conftest import QUESTIONS_PAYLOAD, QUOTE_PAYLOAD
from quote_wizard.extraction import ExtractionError
from quote_wizard.models import (
    AnswerMode,
    AnswerSet,
    AnswerState,
    InterviewRecord,
    Question,
    normalize_price,
    parse_questions,
    parse_quote,
)


def _questions():
    return parse_questions(QUESTIONS_PAYLOAD, max_questions=5)


class TestParseQuestions:
    """Tests for parse_questions."""

    def test_valid_payload_keeps_order(self):
        questions = _questions()
        assert [q.id for q in questions] == [1, 2, 3]
        assert questions[0].options[0] == "有现成的文档/文字稿"
        assert isinstance(questions[0].options, tuple)

    def test_missing_field_fails(self):
        with pytest.raises(ExtractionError):
            parse_questions({"items": []}, max_questions=5)

    def test_empty_list_fails(self):
        with pytest.raises(ExtractionError):
            parse_questions({"questions": []}, max_questions=5)

    def test_duplicate_ids_fail(self):
        payload = copy.deepcopy(QUESTIONS_PAYLOAD)
        payload["questions"][1]["id"] = 1
        with pytest.raises(ExtractionError) as excinfo:
            parse_questions(payload, max_questions=5)
        assert "Duplicate" in excinfo.value.reason

    def test_question_without_options_fails(self):
        payload = {"questions": [{"id": 1, "text": "Q?", "options": []}]}
        with pytest.raises(ExtractionError):
            parse_questions(payload, max_questions=5)

    def test_string_ids_are_coerced(self):
        payload = {"questions": [{"id": "7", "text": "Q?", "options": ["a"]}]}
        assert parse_questions(payload, max_questions=5)[0].id == 7

    def test_superscript_digit_id_is_rejected(self):
        payload = {"questions": [{"id": "²", "text": "Q?", "options": ["a"]}]}
        with pytest.raises(ExtractionError):
            parse_questions(payload, max_questions=5)

    def test_boolean_id_is_rejected(self):
        payload = {"questions": [{"id": True, "text": "Q?", "options": ["a"]}]}
        with pytest.raises(ExtractionError):
            parse_questions(payload, max_questions=5)

    def test_duplicate_options_collapse(self):
        payload = {"questions": [{"id": 1, "text": "Q?", "options": ["a", "a", " b "]}]}
        assert parse_questions(payload, max_questions=5)[0].options == ("a", "b")

    def test_extra_questions_are_truncated(self, caplog):
        payload = {
            "questions": [
                {"id": i, "text": f"Q{i}?", "options": ["yes", "no"]}
                for i in range(1, 8)
            ]
        }
        questions = parse_questions(payload, max_questions=5)
        assert [q.id for q in questions] == [1, 2, 3, 4, 5]
        assert "keeping the first 5" in caplog.text


class TestParseQuote:
    """Tests for parse_quote."""

    def test_valid_payload(self):
        quote = parse_quote(QUOTE_PAYLOAD, price_sentinel="咨询报价")
        assert [tier.name for tier in quote.tiers] == ["基础版", "标准版", "高级版"]
        assert quote.tiers[2].price == "咨询报价"
        assert quote.notes == ("报价不含服务器及 AI API 调用费用。",)
        assert quote.analysis.startswith("您的需求")

    def test_missing_tiers_fails(self):
        with pytest.raises(ExtractionError):
            parse_quote({"notes": [], "analysis": "x"}, price_sentinel="咨询报价")

    def test_optional_fields_default(self):
        quote = parse_quote(
            {"tiers": [{"name": "Basic", "price": 199}]}, price_sentinel="ask for quote"
        )
        assert quote.tiers[0].features == ()
        assert quote.tiers[0].desc == ""
        assert quote.notes == ()
        assert quote.analysis == ""

    def test_round_trips_through_to_dict(self):
        quote = parse_quote(QUOTE_PAYLOAD, price_sentinel="咨询报价")
        assert quote.to_dict() == QUOTE_PAYLOAD


class TestNormalizePrice:
    """Tests for the price policy."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("599", "599"),
            (599, "599"),
            (599.0, "599"),
            (12.5, "12.5"),
            ("¥1,299", "1299"),
            ("1499元", "1499"),
            ("599-1299", "599-1299"),
            ("咨询报价", "咨询报价"),
            ("ask for quote", "ask for quote"),
        ],
    )
    def test_accepted_values(self, raw, expected):
        assert normalize_price(raw, "咨询报价") == expected

    @pytest.mark.parametrize("raw", ["面议", "", None, True, ["599"]])
    def test_unrecognised_values_fall_back_to_sentinel(self, raw):
        assert normalize_price(raw, "咨询报价") == "咨询报价"


class TestAnswerSet:
    """Tests for answer state transitions."""

    def test_starts_unanswered_in_question_order(self):
        answers = AnswerSet(_questions())
        assert list(answers) == [1, 2, 3]
        assert all(answers[qid].mode is AnswerMode.UNANSWERED for qid in answers)
        assert not answers.is_complete

    def test_select_rejects_unknown_option(self):
        answers = AnswerSet(_questions())
        with pytest.raises(ValueError):
            answers.select(1, "not offered")

    def test_unknown_question_id(self):
        answers = AnswerSet(_questions())
        with pytest.raises(KeyError):
            answers.enable_custom(99)

    def test_blank_custom_text_is_incomplete(self):
        state = AnswerState.custom("   ")
        assert not state.is_complete

    def test_padded_custom_text_is_complete(self):
        state = AnswerState.custom("  x ")
        assert state.is_complete
        assert state.resolved() == "x"

    def test_switching_back_to_option_clears_custom_text(self):
        questions = _questions()
        answers = AnswerSet(questions)
        option_a, option_b = questions[0].options[:2]
        answers.select(1, option_a)
        answers.enable_custom(1)
        assert answers.set_custom_text(1, "我自己写")
        answers.select(1, option_b)
        assert answers[1] == AnswerState.selected(option_b)
        assert not answers[1].custom_active

    def test_custom_text_ignored_without_custom_mode(self):
        answers = AnswerSet(_questions())
        assert not answers.set_custom_text(1, "text")
        assert answers[1].mode is AnswerMode.UNANSWERED

    def test_custom_mode_is_distinct_from_matching_option(self):
        questions = (Question(id=1, text="Q?", options=("其他情况 (手动输入)", "B")),)
        answers = AnswerSet(questions)
        answers.enable_custom(1)
        assert answers[1].custom_active
        assert not answers.is_complete


class TestInterviewRecord:
    """Tests for the persisted snapshot."""

    def test_capture_resolves_answers(self):
        questions = _questions()
        answers = AnswerSet(questions)
        answers.select(1, questions[0].options[0])
        answers.select(2, questions[1].options[1])
        answers.enable_custom(3)
        answers.set_custom_text(3, "  每周三发 ")
        quote = parse_quote(QUOTE_PAYLOAD, price_sentinel="咨询报价")

        record = InterviewRecord.capture("写文案", questions, answers, quote)

        assert record.qa_pairs == (
            {"question": questions[0].text, "answer": questions[0].options[0]},
            {"question": questions[1].text, "answer": questions[1].options[1]},
            {"question": questions[2].text, "answer": "每周三发"},
        )
        assert record.to_dict()["quote"] == QUOTE_PAYLOAD
