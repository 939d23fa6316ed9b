"""
Verification domain types (``compliance_kernel.domain.verification``).

Responsibility
--------------
The letter-grade scale, the immutable snapshot of an external security-grade
report (``CheckFixVerification``), and ``VerificationPolicy``, which turns a
snapshot into a pass/fail verdict against a requirement's minimum grade and
maximum report age.

Architecture position
---------------------
**Kernel domain layer** -- pure functions and value objects.  ZERO I/O.
The report itself is fetched by ``integrations.checkfix_client``; this
module only judges it.

Invariants enforced
-------------------
* Grades are totally ordered A > B > C > D > F (scores 5..1);
  ``meets_minimum`` is reflexive.
* A verification is valid only when ALL of: the provider's validity flag is
  set, it is not past ``expires_at``, and the report domain matches the
  organization's registered domain.
* A verification passes a requirement only when it is valid, the grade meets
  the minimum, and the report is not older than the maximum age.  A maximum
  age of 0 or less disables the age check.
* ``needs_refresh`` is advisory; nothing here mutates a snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from functools import total_ordering
from uuid import UUID, uuid4

from compliance_kernel.domain.workflow import parse_enum

DEFAULT_MAX_REPORT_AGE_DAYS = 90
DEFAULT_VALIDITY_DAYS = 30


@total_ordering
class Grade(Enum):
    """Letter grade from the external verification provider.

    Deliberately not a ``str`` mixin: string comparison would order "A"
    below "F".
    """

    A = "A"
    B = "B"
    C = "C"
    D = "D"
    F = "F"

    @property
    def score(self) -> int:
        return _GRADE_SCORES[self]

    def meets_minimum(self, minimum: Grade) -> bool:
        return self.score >= minimum.score

    @property
    def is_passing(self) -> bool:
        return self.meets_minimum(Grade.C)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Grade):
            return NotImplemented
        return self.score < other.score

    @classmethod
    def parse(cls, value: Grade | str) -> Grade:
        """Parse a letter (case-insensitive); raise InvalidEnumValueError otherwise."""
        return parse_enum(cls, value)


_GRADE_SCORES = {
    Grade.A: 5,
    Grade.B: 4,
    Grade.C: 3,
    Grade.D: 2,
    Grade.F: 1,
}


def domains_match(registered: str, reported: str) -> bool:
    """Case-insensitive host comparison; an empty side never matches."""
    left = registered.strip().rstrip(".").lower()
    right = reported.strip().rstrip(".").lower()
    return bool(left) and left == right


def _whole_days(delta: timedelta) -> int:
    return int(delta / timedelta(days=1))


# =========================================================================
# Report data (as returned by the verification client)
# =========================================================================


@dataclass(frozen=True)
class CategoryGrade:
    category: str
    grade: str
    score: int


@dataclass(frozen=True)
class CheckFixReport:
    """Report data as returned by the verification client."""

    report_hash: str
    domain: str
    overall_grade: Grade
    overall_score: int
    report_date: datetime
    valid: bool
    categories: tuple[CategoryGrade, ...] = ()
    critical_findings: int = 0
    high_findings: int = 0
    medium_findings: int = 0
    low_findings: int = 0


# =========================================================================
# Verification snapshot
# =========================================================================


@dataclass(frozen=True)
class CheckFixVerification:
    """Immutable snapshot of a verified report, bound to one response."""

    verification_id: UUID
    response_id: UUID
    supplier_id: UUID
    registered_domain: str
    verified_domain: str
    domain_match: bool
    report_hash: str
    report_date: datetime
    overall_grade: Grade
    overall_score: int
    verified_at: datetime
    expires_at: datetime
    verification_valid: bool
    category_grades: tuple[CategoryGrade, ...] = ()
    critical_findings: int = 0
    high_findings: int = 0
    medium_findings: int = 0
    low_findings: int = 0

    @classmethod
    def from_report(
        cls,
        report: CheckFixReport,
        *,
        response_id: UUID,
        supplier_id: UUID,
        registered_domain: str,
        verified_at: datetime,
        validity_days: int = DEFAULT_VALIDITY_DAYS,
        verification_id: UUID | None = None,
    ) -> CheckFixVerification:
        return cls(
            verification_id=verification_id or uuid4(),
            response_id=response_id,
            supplier_id=supplier_id,
            registered_domain=registered_domain,
            verified_domain=report.domain,
            domain_match=domains_match(registered_domain, report.domain),
            report_hash=report.report_hash,
            report_date=report.report_date,
            overall_grade=report.overall_grade,
            overall_score=report.overall_score,
            verified_at=verified_at,
            expires_at=verified_at + timedelta(days=validity_days),
            verification_valid=report.valid,
            category_grades=report.categories,
            critical_findings=report.critical_findings,
            high_findings=report.high_findings,
            medium_findings=report.medium_findings,
            low_findings=report.low_findings,
        )

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def is_valid(self, now: datetime) -> bool:
        return self.verification_valid and not self.is_expired(now) and self.domain_match

    def report_age_days(self, now: datetime) -> int:
        return _whole_days(now - self.report_date)

    def days_until_expiry(self, now: datetime) -> int:
        return _whole_days(self.expires_at - now)

    def needs_refresh(self, days_before_expiry: int, now: datetime) -> bool:
        return self.is_expired(now) or self.days_until_expiry(now) <= days_before_expiry

    @property
    def total_findings(self) -> int:
        return (
            self.critical_findings + self.high_findings
            + self.medium_findings + self.low_findings
        )

    @property
    def has_critical_findings(self) -> bool:
        return self.critical_findings > 0

    def category_grade(self, category: str) -> CategoryGrade | None:
        for item in self.category_grades:
            if item.category == category:
                return item
        return None


# =========================================================================
# Policy
# =========================================================================


@dataclass(frozen=True)
class VerificationOutcome:
    """Verdict of ``VerificationPolicy.evaluate`` with the reasons it failed."""

    passed: bool
    grade: Grade
    minimum_grade: Grade
    max_report_age_days: int
    report_age_days: int
    failures: tuple[str, ...] = ()

    @property
    def message(self) -> str:
        if self.passed:
            return "Verification meets requirement"
        return "; ".join(self.failures)


class VerificationPolicy:
    """Judges a verification against a minimum grade and maximum report age."""

    def __init__(
        self,
        default_minimum_grade: Grade = Grade.C,
        default_max_report_age_days: int = DEFAULT_MAX_REPORT_AGE_DAYS,
    ):
        self.default_minimum_grade = default_minimum_grade
        self.default_max_report_age_days = default_max_report_age_days

    def evaluate(
        self,
        verification: CheckFixVerification,
        now: datetime,
        minimum_grade: Grade | None = None,
        max_report_age_days: int | None = None,
    ) -> VerificationOutcome:
        minimum = minimum_grade or self.default_minimum_grade
        max_age = (
            self.default_max_report_age_days
            if max_report_age_days is None else max_report_age_days
        )
        age = verification.report_age_days(now)

        failures: list[str] = []
        if not verification.verification_valid:
            failures.append("Verification is not valid")
        if verification.is_expired(now):
            failures.append(
                f"Verification expired on {verification.expires_at.date().isoformat()}"
            )
        if not verification.domain_match:
            failures.append("Domain does not match organization")
        if not verification.overall_grade.meets_minimum(minimum):
            failures.append(
                f"Grade {verification.overall_grade.value} does not meet "
                f"minimum {minimum.value}"
            )
        if max_age > 0 and age > max_age:
            failures.append(f"Report is {age} days old, maximum is {max_age} days")

        return VerificationOutcome(
            passed=not failures,
            grade=verification.overall_grade,
            minimum_grade=minimum,
            max_report_age_days=max_age,
            report_age_days=age,
            failures=tuple(failures),
        )

    def passes_requirement(
        self,
        verification: CheckFixVerification,
        now: datetime,
        minimum_grade: Grade | None = None,
        max_report_age_days: int | None = None,
    ) -> bool:
        return self.evaluate(
            verification, now, minimum_grade, max_report_age_days,
        ).passed
