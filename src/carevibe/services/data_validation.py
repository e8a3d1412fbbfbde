"""Data-quality checks over raw health metric documents."""
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from dateutil import parser as dateutil_parser

from carevibe.core.logging import logger


# Inclusive reasonable ranges per document field
RANGE_CHECKS: Dict[str, Tuple[float, float]] = {
    "weightKg": (20, 300),
    "bmi": (10, 60),
    "sleepDurationHr": (0, 24),
    "restingHeartRateBpm": (30, 200),
    "spo2Percent": (50, 100),
}

DERIVED_FIELDS = ("stepCount", "sleepDurationHr", "stressLevel")


@dataclass(frozen=True)
class MetricValidationIssue:
    index: int
    field: str
    message: str
    value: Any = None


@dataclass
class ValidationReport:
    total: int = 0
    issues: List[MetricValidationIssue] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.issues


def _parse_date(value: Any) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return dateutil_parser.isoparse(str(value)).date()
    except (ValueError, OverflowError):
        return None


def validate_documents(documents: Iterable[Dict[str, Any]]) -> ValidationReport:
    """Flag documents missing keys or carrying out-of-range values."""
    report = ValidationReport()
    for idx, doc in enumerate(documents):
        report.total += 1
        if not doc.get("date"):
            report.issues.append(MetricValidationIssue(idx, "date", "missing date field"))
        if not doc.get("userUid"):
            report.issues.append(MetricValidationIssue(idx, "userUid", "missing userUid field"))

        for name, (low, high) in RANGE_CHECKS.items():
            value = doc.get(name)
            if value is None:
                continue
            if not isinstance(value, (int, float)) or not low <= value <= high:
                report.issues.append(
                    MetricValidationIssue(idx, name, f"{name} out of reasonable range ({value})", value)
                )

    for issue in report.issues:
        logger.warning(f"[DataValidation] Document {issue.index}: {issue.message}")
    logger.info(f"[DataValidation] Checked {report.total} documents, {len(report.issues)} issues")
    return report


def rolling_averages(
    documents: Iterable[Dict[str, Any]],
    user_id: str,
    today: date,
    days: int = 7,
) -> Dict[str, Optional[float]]:
    """Average steps, sleep and stress for one user over the last `days` days."""
    cutoff = today - timedelta(days=days)
    values: Dict[str, List[float]] = {name: [] for name in DERIVED_FIELDS}

    for doc in documents:
        if doc.get("userUid") != user_id:
            continue
        recorded = _parse_date(doc.get("date"))
        if recorded is None or recorded < cutoff:
            continue
        for name in DERIVED_FIELDS:
            value = doc.get(name)
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                values[name].append(float(value))

    return {
        name: (sum(samples) / len(samples) if samples else None)
        for name, samples in values.items()
    }
