"""
question_bank.py — The fixed 22-question LLN assessment
=======================================================
Language, Literacy and Numeracy (LLN) questions shown to every applicant
before enrolment.  The tuple order is the presentation order and also
defines how questions group into sections:

  Learning          q1–q2    (2)
  Reading           q3–q6    (4)
  Writing           q7–q11   (5)
  Numeracy          q12–q16  (5)
  Digital Literacy  q17–q22  (6)

Questions with an ``expected_answer`` are marked for correctness by
``scoring.score``; open-ended questions earn credit for any non-blank answer.

Consumers
---------
  scoring.py          — default question set for score()
  validation.py       — required-answer check per section
  streamlit_app.py    — renders one section at a time on the LLN page
"""

from __future__ import annotations

from typing import Optional

from nca_enrolment.models import (
    MultiChoiceQuestion,
    NumberQuestion,
    Question,
    Section,
    SingleChoiceQuestion,
    TextQuestion,
)


QUESTION_BANK: tuple[Question, ...] = (
    # ── Learning ────────────────────────────────────────────────────────────
    MultiChoiceQuestion(
        id="q1", section=Section.LEARNING,
        prompt="How do you prefer to learn new skills?",
        options=("Watching videos", "Reading", "Doing it yourself", "Listening to others"),
    ),
    TextQuestion(
        id="q2", section=Section.LEARNING,
        prompt="What do you do if you don't understand something the first time?",
    ),

    # ── Reading ─────────────────────────────────────────────────────────────
    TextQuestion(
        id="q3", section=Section.READING,
        prompt="What should you do before preparing food?",
        hint='Read: "Always wash your hands before preparing food."',
        expected_answer="wash your hands",
    ),
    SingleChoiceQuestion(
        id="q4", section=Section.READING,
        prompt="Which sign means 'No Smoking'?",
        options=("🚬", "🚭", "🛑", "🔥"),
        expected_answer="🚭",
    ),
    TextQuestion(
        id="q5", section=Section.READING,
        prompt='If a label says "Keep away from children", what does it mean?',
    ),
    TextQuestion(
        id="q6", section=Section.READING,
        prompt="Find a word in this sentence that means 'required' "
               "('It is mandatory to wear safety boots.')",
        expected_answer="mandatory",
    ),

    # ── Writing ─────────────────────────────────────────────────────────────
    TextQuestion(
        id="q7", section=Section.WRITING,
        prompt="Write one sentence explaining why you want to do this course.",
    ),
    TextQuestion(id="q8",  section=Section.WRITING, prompt="Fill in the form: Name:"),
    TextQuestion(id="q9",  section=Section.WRITING, prompt="Fill in the form: Date of Birth:"),
    TextQuestion(id="q10", section=Section.WRITING, prompt="Fill in the form: Phone Number:"),
    TextQuestion(
        id="q11", section=Section.WRITING,
        prompt="Write a short message to your trainer if you are going to be late.",
    ),

    # ── Numeracy ────────────────────────────────────────────────────────────
    NumberQuestion(id="q12", section=Section.NUMERACY,
                   prompt="What is 10 + 5?", expected_answer="15"),
    NumberQuestion(id="q13", section=Section.NUMERACY,
                   prompt="A carton of milk costs $2. If you buy 3, how much do you spend?",
                   expected_answer="6"),
    NumberQuestion(id="q14", section=Section.NUMERACY,
                   prompt="You start work at 9:00 AM and finish at 3:00 PM. "
                          "How many hours did you work?",
                   expected_answer="6"),
    NumberQuestion(id="q15", section=Section.NUMERACY,
                   prompt="Write the larger number: 42 or 24", expected_answer="42"),
    NumberQuestion(id="q16", section=Section.NUMERACY,
                   prompt="What is half of 98?", expected_answer="49"),

    # ── Digital Literacy ────────────────────────────────────────────────────
    TextQuestion(
        id="q17", section=Section.DIGITAL_LITERACY,
        prompt="What is the purpose of a password?",
    ),
    SingleChoiceQuestion(
        id="q18", section=Section.DIGITAL_LITERACY,
        prompt="Which one is a web browser?",
        options=("Microsoft Word", "Google Chrome", "Excel", "Zoom"),
        expected_answer="Google Chrome",
    ),
    SingleChoiceQuestion(
        id="q19", section=Section.DIGITAL_LITERACY,
        prompt="You can attach a file to an email.",
        options=("True", "False"),
        expected_answer="True",
    ),
    TextQuestion(
        id="q20", section=Section.DIGITAL_LITERACY,
        prompt="You need to join an online class. What should you do?",
    ),
    TextQuestion(
        id="q21", section=Section.DIGITAL_LITERACY,
        prompt="List one thing you can do on a computer.",
    ),
    SingleChoiceQuestion(
        id="q22", section=Section.DIGITAL_LITERACY,
        prompt="Which of these is the safest way to create a password?",
        options=(
            "Use your pet's name and birthday",
            "Use 'password123'",
            "Use a mix of letters, numbers, and symbols",
            "Use only your date of birth",
        ),
        expected_answer="Use a mix of letters, numbers, and symbols",
    ),
)


def sections(questions: tuple[Question, ...] = QUESTION_BANK) -> list[Section]:
    """Sections in first-appearance order."""
    seen: list[Section] = []
    for q in questions:
        if q.section not in seen:
            seen.append(q.section)
    return seen


def questions_for(section: Section, questions: tuple[Question, ...] = QUESTION_BANK) -> list[Question]:
    return [q for q in questions if q.section == section]


def question_by_id(question_id: str) -> Optional[Question]:
    return next((q for q in QUESTION_BANK if q.id == question_id), None)
