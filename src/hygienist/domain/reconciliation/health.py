"""Aggregate data-health score."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from hygienist.domain.model import OrphanKind

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from hygienist.domain.model import Person

    from .references import OrphanIssue
    from .snapshot import Snapshot


@dataclass(frozen=True, slots=True, kw_only=True)
class MissingData:
    email: int = 0
    phone: int = 0
    office: int = 0
    job_title: int = 0

    @property
    def total(self) -> int:
        return self.email + self.phone + self.office + self.job_title


@dataclass(frozen=True, slots=True, kw_only=True)
class HealthReport:
    counts: Mapping[str, int] = field(hash=False)
    duplicates: int
    orphaned: int
    missing_data: MissingData
    health_score: int
    generated_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    @property
    def issues(self) -> dict[str, int]:
        return {
            "duplicates": self.duplicates,
            "orphaned": self.orphaned,
            "missing_data": self.missing_data.total,
        }


def count_missing(people: Iterable[Person]) -> MissingData:
    email = phone = office = job_title = 0
    for person in people:
        email += not person.email
        phone += not person.phone and not person.has_no_phone
        office += not person.office and not person.has_no_office
        job_title += not person.job_title
    return MissingData(email=email, phone=phone, office=office, job_title=job_title)


def health_score(*, total: int, duplicates: int, orphaned: int, missing_email: int) -> int:
    """``100 - issues / total * 100`` clamped at zero, rounded half up; empty stores score 100."""

    if total <= 0:
        return 100
    issues = duplicates + orphaned + missing_email
    return math.floor(max(0.0, 100 - issues / total * 100) + 0.5)


def build_health_report(
    snapshot: Snapshot,
    *,
    duplicates: int,
    orphan_issues: Iterable[OrphanIssue],
) -> HealthReport:
    counts = snapshot.counts()
    orphaned = sum(1 for issue in orphan_issues if issue.kind is OrphanKind.ORPHANED_SCHEDULE)
    missing = count_missing(snapshot.people)
    return HealthReport(
        counts=counts,
        duplicates=duplicates,
        orphaned=orphaned,
        missing_data=missing,
        health_score=health_score(
            total=sum(counts.values()),
            duplicates=duplicates,
            orphaned=orphaned,
            missing_email=missing.email,
        ),
    )
