"""
Module: compliance_kernel.integrations.checkfix_client
Responsibility: The verification-report client the grade path calls: a
    ``CheckFixClient`` protocol, an HTTP implementation over ``requests``,
    and a deterministic stand-in for tests and offline development.
Architecture position: Kernel > Integrations.  May import from domain/ and
    exceptions.  Services receive a client instance; they never construct
    HTTP sessions themselves.

Invariants enforced:
    - Fail fast: network failures and non-success statuses surface as
      CheckFixAPIError (404 on a report as ReportNotFoundError).  Nothing
      here retries.
    - Every HTTP call is bounded by the configured timeout.
    - Payload parsing is strict: an unknown grade letter raises
      InvalidEnumValueError, a missing field raises CheckFixAPIError.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Protocol, runtime_checkable

import requests

from compliance_kernel.domain.clock import Clock, SystemClock
from compliance_kernel.domain.verification import CategoryGrade, CheckFixReport, Grade
from compliance_kernel.exceptions import CheckFixAPIError, ReportNotFoundError
from compliance_kernel.logging_config import get_logger

logger = get_logger("integrations.checkfix")

DEFAULT_TIMEOUT_SECONDS = 30.0


@runtime_checkable
class CheckFixClient(Protocol):
    """What the kernel needs from the external grading provider."""

    def verify_report(self, report_hash: str) -> CheckFixReport: ...

    def get_account_domain(self, account_id: str) -> str: ...

    def validate_account_access(self, account_id: str) -> bool: ...


def _parse_datetime(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_report(payload: dict[str, Any]) -> CheckFixReport:
    """Build a CheckFixReport from the provider's JSON body."""
    try:
        return CheckFixReport(
            report_hash=payload["report_hash"],
            domain=payload["domain"],
            overall_grade=Grade.parse(payload["overall_grade"]),
            overall_score=int(payload["overall_score"]),
            report_date=_parse_datetime(payload["report_date"]),
            valid=bool(payload.get("valid", True)),
            categories=tuple(
                CategoryGrade(
                    category=c["category"], grade=c["grade"], score=int(c["score"]),
                )
                for c in payload.get("category_grades") or ()
            ),
            critical_findings=int(payload.get("critical_findings", 0)),
            high_findings=int(payload.get("high_findings", 0)),
            medium_findings=int(payload.get("medium_findings", 0)),
            low_findings=int(payload.get("low_findings", 0)),
        )
    except KeyError as exc:
        raise CheckFixAPIError(
            "verify_report", f"response is missing field {exc.args[0]!r}",
        ) from exc


class HttpCheckFixClient:
    """CheckFix REST API client.  Bearer-token auth, JSON bodies."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
        })

    def _get(self, operation: str, path: str) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            return self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning(
                "checkfix_request_failed",
                extra={"operation": operation, "error": str(e)},
            )
            raise CheckFixAPIError(operation, str(e)) from e

    def verify_report(self, report_hash: str) -> CheckFixReport:
        response = self._get("verify_report", f"/api/v1/reports/{report_hash}/verify")
        if response.status_code == 404:
            raise ReportNotFoundError(report_hash)
        if not response.ok:
            raise CheckFixAPIError("verify_report", response.text, response.status_code)
        try:
            payload = response.json()
        except ValueError as e:
            raise CheckFixAPIError("verify_report", "response is not JSON") from e
        report = parse_report(payload)
        logger.info(
            "checkfix_report_verified",
            extra={
                "report_hash": report_hash,
                "domain": report.domain,
                "grade": report.overall_grade.value,
            },
        )
        return report

    def get_account_domain(self, account_id: str) -> str:
        response = self._get("get_account_domain", f"/api/v1/accounts/{account_id}")
        if not response.ok:
            raise CheckFixAPIError("get_account_domain", response.text, response.status_code)
        try:
            return response.json()["domain"]
        except (ValueError, KeyError) as e:
            raise CheckFixAPIError("get_account_domain", "response has no domain") from e

    def validate_account_access(self, account_id: str) -> bool:
        response = self._get(
            "validate_account_access", f"/api/v1/accounts/{account_id}/validate",
        )
        if response.status_code == 200:
            return True
        if response.status_code in (401, 403, 404):
            return False
        raise CheckFixAPIError(
            "validate_account_access", response.text, response.status_code,
        )


class StaticCheckFixClient:
    """Deterministic stand-in: every report is a 7-day-old grade B for example.com."""

    DEFAULT_CATEGORIES = (
        CategoryGrade(category="ssl", grade="A", score=92),
        CategoryGrade(category="headers", grade="B", score=78),
        CategoryGrade(category="dns", grade="B", score=74),
        CategoryGrade(category="email", grade="C", score=61),
    )

    def __init__(
        self,
        domain: str = "example.com",
        grade: Grade = Grade.B,
        score: int = 75,
        report_age_days: int = 7,
        valid: bool = True,
        clock: Clock | None = None,
    ):
        self.domain = domain
        self.grade = grade
        self.score = score
        self.report_age_days = report_age_days
        self.valid = valid
        self.clock = clock or SystemClock()

    def verify_report(self, report_hash: str) -> CheckFixReport:
        return CheckFixReport(
            report_hash=report_hash,
            domain=self.domain,
            overall_grade=self.grade,
            overall_score=self.score,
            report_date=self.clock.now() - timedelta(days=self.report_age_days),
            valid=self.valid,
            categories=self.DEFAULT_CATEGORIES,
            critical_findings=0,
            high_findings=2,
            medium_findings=5,
            low_findings=10,
        )

    def get_account_domain(self, account_id: str) -> str:
        return self.domain

    def validate_account_access(self, account_id: str) -> bool:
        return True

