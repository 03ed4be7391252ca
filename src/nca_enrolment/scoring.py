"""
scoring.py — LLN scoring engine
===============================
Turns a ResponseSet into a ScoreResult.  Pure function: no I/O, no state,
never raises for missing or oddly-typed answers.

  Credit rules (1 point per question)
  -----------------------------------
  expected answer + text question    case-insensitive *contains* match
  expected answer + any other kind   exact string equality (whitespace-trimmed)
  no expected answer                 any non-blank response
                                     (multi-choice: ≥1 non-blank option)

  Percentages
  -----------
  per_section[s] = round(100 × earned_s / total_s)
  overall        = round(100 × earned / total)       round half up

  Rating ladder (first match wins)
  --------------------------------
  overall < 40   Needs Significant Support
  overall < 60   Needs Some Support
  overall < 80   Good
  otherwise      Excellent

  eligible = overall ≥ 60

Consumers
---------
  enrolment.py  — EnrolmentService.submit_assessment()
  reports.py    — ScoreResult feeds the LLN report PDF
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Optional

from nca_enrolment.models import (
    Question,
    Rating,
    ResponseSet,
    ScoreResult,
    TextQuestion,
)
from nca_enrolment.question_bank import QUESTION_BANK


PASS_MARK = 60


def percent(earned: int, total: int) -> int:
    """Integer percentage rounded half up; 0 when there is nothing to score."""
    if total <= 0:
        return 0
    return (200 * earned + total) // (2 * total)


def rating_for(overall: int) -> Rating:
    if overall < 40:
        return Rating.NEEDS_SIGNIFICANT_SUPPORT
    if overall < 60:
        return Rating.NEEDS_SOME_SUPPORT
    if overall < 80:
        return Rating.GOOD
    return Rating.EXCELLENT


def is_answered(response) -> bool:
    if response is None:
        return False
    if isinstance(response, (list, tuple, set)):
        return any(str(item).strip() for item in response)
    return bool(str(response).strip())


def is_credited(question: Question, response) -> bool:
    """True when ``response`` earns the point for ``question``."""
    expected = getattr(question, "expected_answer", None)
    if not expected:
        return is_answered(response)
    if not isinstance(response, str):
        return False
    if isinstance(question, TextQuestion):
        return expected.lower() in response.lower()
    return response.strip() == expected.strip()


def score(
    responses: ResponseSet,
    questions: Iterable[Question] = QUESTION_BANK,
    *,
    completed_at: Optional[datetime] = None,
    pass_mark: int = PASS_MARK,
) -> ScoreResult:
    """Score one LLN submission.

    ``completed_at`` defaults to now (UTC); pass it explicitly to make the
    result reproducible for identical inputs.
    """
    responses = responses or {}
    earned_by_section: dict[str, int] = {}
    total_by_section: dict[str, int] = {}
    credited: list[str] = []

    for q in questions:
        label = q.section.value
        total_by_section[label] = total_by_section.get(label, 0) + 1
        earned_by_section.setdefault(label, 0)
        if is_credited(q, responses.get(q.id)):
            earned_by_section[label] += 1
            credited.append(q.id)

    total = sum(total_by_section.values())
    overall = percent(len(credited), total)

    return ScoreResult(
        per_section={
            label: percent(earned_by_section[label], total_by_section[label])
            for label in total_by_section
        },
        overall=overall,
        rating=rating_for(overall),
        eligible=overall >= pass_mark,
        completed_at=completed_at or datetime.now(timezone.utc),
        correct_count=len(credited),
        total_count=total,
        credited=credited,
    )
