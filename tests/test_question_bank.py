"""
Tests for the fixed LLN question bank (question_bank.py).
"""
import pytest
from factories import MARKED_IDS, OPEN_IDS

from nca_enrolment.models import (
    MultiChoiceQuestion,
    NumberQuestion,
    ResponseKind,
    Section,
    SingleChoiceQuestion,
    TextQuestion,
)
from nca_enrolment.question_bank import QUESTION_BANK, question_by_id, questions_for, sections


class TestBankShape:
    def test_has_22_questions(self):
        assert len(QUESTION_BANK) == 22

    def test_ids_are_q1_to_q22_in_order(self):
        assert [q.id for q in QUESTION_BANK] == [f"q{i}" for i in range(1, 23)]

    def test_ids_unique(self):
        assert len({q.id for q in QUESTION_BANK}) == 22

    def test_sections_in_presentation_order(self):
        assert sections() == [
            Section.LEARNING, Section.READING, Section.WRITING,
            Section.NUMERACY, Section.DIGITAL_LITERACY,
        ]

    @pytest.mark.parametrize("section,count", [
        (Section.LEARNING, 2),
        (Section.READING, 4),
        (Section.WRITING, 5),
        (Section.NUMERACY, 5),
        (Section.DIGITAL_LITERACY, 6),
    ])
    def test_section_sizes(self, section, count):
        assert len(questions_for(section)) == count

    def test_section_label_is_digital_literacy(self):
        assert Section.DIGITAL_LITERACY.value == "Digital Literacy"

    def test_eleven_marked_and_eleven_open(self):
        assert len(MARKED_IDS) == 11
        assert len(OPEN_IDS) == 11

    def test_all_questions_required(self):
        assert all(q.required for q in QUESTION_BANK)


class TestQuestionVariants:
    def test_q1_is_multi_choice(self):
        q = question_by_id("q1")
        assert isinstance(q, MultiChoiceQuestion)
        assert q.response_kind == ResponseKind.MULTI_CHOICE
        assert "Doing it yourself" in q.options

    def test_q4_expected_no_smoking_sign(self):
        q = question_by_id("q4")
        assert isinstance(q, SingleChoiceQuestion)
        assert q.expected_answer == "🚭"
        assert q.expected_answer in q.options

    def test_numeracy_answers(self):
        expected = {q.id: q.expected_answer for q in questions_for(Section.NUMERACY)}
        assert expected == {"q12": "15", "q13": "6", "q14": "6", "q15": "42", "q16": "49"}
        assert all(isinstance(q, NumberQuestion) for q in questions_for(Section.NUMERACY))

    def test_reading_text_answers(self):
        assert question_by_id("q3").expected_answer == "wash your hands"
        assert question_by_id("q6").expected_answer == "mandatory"
        assert isinstance(question_by_id("q6"), TextQuestion)

    def test_choice_expected_answers_are_options(self):
        for q in QUESTION_BANK:
            if isinstance(q, SingleChoiceQuestion) and q.expected_answer:
                assert q.expected_answer in q.options, q.id

    def test_q3_has_reading_hint(self):
        assert "wash your hands" in question_by_id("q3").hint

    def test_unknown_id_returns_none(self):
        assert question_by_id("q99") is None

    def test_questions_are_frozen(self):
        q = question_by_id("q12")
        with pytest.raises(Exception):
            q.expected_answer = "16"
