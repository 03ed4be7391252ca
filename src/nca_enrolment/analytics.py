"""
analytics.py — Admin dashboard figures
======================================
Aggregates the record store into the numbers shown on the admin Analytics
tab.  Everything is computed with pandas from the three listing calls of
the record store, so the function works unchanged on an empty database.

  total_students            rows in students
  total_enrolments          rows in enrolments
  total_assessments         rows in lln_assessments
  today_submissions         enrolments submitted today (UTC)
  weekly_submissions        enrolments submitted in the last 7 days
  eligibility_rate          % of LLN assessments that were eligible
  students_at_max_attempts  students whose attempt_count ≥ max
  popular_courses           [(course, enrolments)] most popular first
  rating_distribution       {rating: assessments}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

import pandas as pd

from nca_enrolment.database import SqliteRecordStore


@dataclass
class AnalyticsSummary:
    total_students:           int = 0
    total_enrolments:         int = 0
    total_assessments:        int = 0
    today_submissions:        int = 0
    weekly_submissions:       int = 0
    eligibility_rate:         float = 0.0
    students_at_max_attempts: int = 0
    popular_courses:          list[tuple[str, int]] = field(default_factory=list)
    rating_distribution:      dict[str, int] = field(default_factory=dict)


def students_frame(store: SqliteRecordStore) -> pd.DataFrame:
    return pd.DataFrame([r.model_dump(mode="json") for r in store.list_records()])


def assessments_frame(store: SqliteRecordStore) -> pd.DataFrame:
    return pd.DataFrame(store.list_assessments())


def enrolments_frame(store: SqliteRecordStore) -> pd.DataFrame:
    return pd.DataFrame(store.list_enrolments())


def daily_assessments(store: SqliteRecordStore, days: int = 30) -> pd.DataFrame:
    """Per-day assessment counts (eligible / not eligible) for the trend chart."""
    df = assessments_frame(store)
    if df.empty:
        return pd.DataFrame(columns=["day", "eligible", "count"])
    df["day"] = pd.to_datetime(df["completed_at"], utc=True, format="ISO8601").dt.date
    cutoff = (datetime.now(timezone.utc) - timedelta(days=days)).date()
    df = df[df["day"] >= cutoff].copy()
    df["eligible"] = df["eligible"].astype(bool).map({True: "Eligible", False: "Not eligible"})
    return df.groupby(["day", "eligible"]).size().reset_index(name="count")


def compute_analytics(
    store: SqliteRecordStore,
    max_attempts: int = 3,
    now: Optional[datetime] = None,
) -> AnalyticsSummary:
    now = now or datetime.now(timezone.utc)
    students = students_frame(store)
    assessments = assessments_frame(store)
    enrolments = enrolments_frame(store)

    summary = AnalyticsSummary(
        total_students    = len(students),
        total_enrolments  = len(enrolments),
        total_assessments = len(assessments),
    )

    if not enrolments.empty:
        submitted = pd.to_datetime(enrolments["submitted_at"], utc=True, format="ISO8601")
        summary.today_submissions = int((submitted.dt.date == now.date()).sum())
        summary.weekly_submissions = int((submitted >= now - timedelta(days=7)).sum())
        courses = enrolments["course"].fillna("").replace("", pd.NA).dropna().value_counts()
        summary.popular_courses = [(str(c), int(n)) for c, n in courses.items()]

    if not assessments.empty:
        summary.eligibility_rate = round(float(assessments["eligible"].astype(bool).mean() * 100), 1)
        summary.rating_distribution = {
            str(k): int(v) for k, v in assessments["rating"].value_counts().items()
        }

    if not students.empty:
        summary.students_at_max_attempts = int((students["attempt_count"] >= max_attempts).sum())

    return summary
