"""Metric lookups over stored health documents.

`MetricsStore` is the interface the chat handlers query; `InMemoryMetricsStore`
keeps the documents in a list and is what the CLI and tests use.
"""
import json
from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from pydantic import ValidationError

from carevibe.core.config import settings
from carevibe.core.logging import logger
from carevibe.models.metrics import (
    HealthMetricDocument,
    MetricAggregateResult,
    MetricAverageResult,
    MetricField,
    MetricReading,
    MetricRecord,
    MetricTrendResult,
    Number,
    as_date,
)


AGGREGATIONS = ("avg", "min", "max", "last")

# Minimum per-sample change before a series counts as moving
TREND_THRESHOLDS: Dict[MetricField, float] = {
    MetricField.STEPS: 100,
    MetricField.CALORIES_BURNED: 100,
    MetricField.WEIGHT: 0.3,
    MetricField.BMI: 0.3,
    MetricField.SLEEP_DURATION: 0.2,
    MetricField.REM_SLEEP: 0.2,
    MetricField.RESTING_HEART_RATE: 2,
    MetricField.STRESS_LEVEL: 2,
}
DEFAULT_TREND_THRESHOLD = 0.1


def trend_threshold(metric: MetricField) -> float:
    return TREND_THRESHOLDS.get(metric, DEFAULT_TREND_THRESHOLD)


def _user_today() -> date:
    return datetime.now(settings.user_timezone).date()


def _as_number(value: Any) -> Optional[Number]:
    """Numbers pass through unchanged; numeric strings become floats."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class MetricsStore(ABC):
    """Read-only metric queries for one user at a time.

    Every method returns None when there is no data; lookups never raise for
    missing fields.
    """

    @abstractmethod
    def get_latest(self, metric: MetricField, user_id: str) -> Optional[MetricReading]:
        pass

    @abstractmethod
    def get_on_date(self, metric: MetricField, on: date, user_id: str) -> Optional[MetricReading]:
        pass

    @abstractmethod
    def get_nearest_to_date(
        self, metric: MetricField, on: date, user_id: str, window_days: int = 3
    ) -> Optional[MetricReading]:
        pass

    @abstractmethod
    def get_in_range(
        self, metric: MetricField, start: date, end: date, user_id: str
    ) -> Optional[List[MetricReading]]:
        pass

    @abstractmethod
    def get_average(self, metric: MetricField, days: int, user_id: str) -> Optional[MetricAverageResult]:
        pass

    @abstractmethod
    def get_trend(self, metric: MetricField, days: int, user_id: str) -> Optional[MetricTrendResult]:
        pass

    @abstractmethod
    def get_daily_aggregate(
        self,
        metric: MetricField,
        start: date,
        end: date,
        user_id: str,
        aggregation: str = "avg",
    ) -> Optional[MetricAggregateResult]:
        pass


class InMemoryMetricsStore(MetricsStore):
    """Metrics store holding parsed documents in memory."""

    def __init__(
        self,
        records: Optional[Iterable[MetricRecord]] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self._records: List[MetricRecord] = []
        self._today = today or _user_today
        for record in records or []:
            self.add(record)

    @classmethod
    def from_documents(
        cls,
        documents: Iterable[Union[Dict[str, Any], HealthMetricDocument]],
        today: Optional[Callable[[], date]] = None,
    ) -> "InMemoryMetricsStore":
        """Build a store from raw documents, skipping ones that cannot be keyed."""
        store = cls(today=today)
        for raw in documents:
            try:
                doc = raw if isinstance(raw, HealthMetricDocument) else HealthMetricDocument.model_validate(raw)
                store.add(MetricRecord.from_document(doc))
            except (ValidationError, ValueError) as e:
                logger.warning(f"[MetricsStore] Skipping document: {e}")
        return store

    @classmethod
    def from_json_file(cls, path: Union[str, Path], today: Optional[Callable[[], date]] = None) -> "InMemoryMetricsStore":
        """Load a JSON list of documents, or an object with a "metrics" list."""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, dict):
            data = data.get("metrics", [])
        store = cls.from_documents(data, today=today)
        logger.info(f"[MetricsStore] Loaded {len(store)} documents from {path}")
        return store

    def add(self, record: MetricRecord) -> None:
        recorded_at = record.recorded_at
        if recorded_at.tzinfo is not None:
            recorded_at = recorded_at.astimezone(timezone.utc).replace(tzinfo=None)
            record = MetricRecord(user_uid=record.user_uid, recorded_at=recorded_at, values=record.values)
        self._records.append(record)

    def __len__(self) -> int:
        return len(self._records)

    def _readings(self, metric: MetricField, user_id: str) -> List[MetricReading]:
        """All readings of a metric for a user, newest first."""
        readings = [
            MetricReading(value=r.get(metric), date=r.recorded_at)
            for r in self._records
            if r.user_uid == user_id and r.get(metric) is not None
        ]
        readings.sort(key=lambda r: r.date, reverse=True)
        return readings

    def _since(self, metric: MetricField, days: int, user_id: str) -> List[MetricReading]:
        cutoff = self._today() - timedelta(days=days)
        return [r for r in self._readings(metric, user_id) if as_date(r.date) >= cutoff]

    def get_latest(self, metric: MetricField, user_id: str) -> Optional[MetricReading]:
        readings = self._readings(metric, user_id)
        return readings[0] if readings else None

    def get_on_date(self, metric: MetricField, on: date, user_id: str) -> Optional[MetricReading]:
        for reading in self._readings(metric, user_id):
            if as_date(reading.date) == on:
                return reading
        return None

    def get_nearest_to_date(
        self, metric: MetricField, on: date, user_id: str, window_days: int = 3
    ) -> Optional[MetricReading]:
        exact = self.get_on_date(metric, on, user_id)
        if exact:
            return exact

        candidates = [
            r for r in self._readings(metric, user_id)
            if abs((as_date(r.date) - on).days) <= window_days
        ]
        if not candidates:
            return None

        closest = min(candidates, key=lambda r: abs((as_date(r.date) - on).days))
        offset = (as_date(closest.date) - on).days
        return MetricReading(value=closest.value, date=closest.date, offset=offset)

    def get_in_range(
        self, metric: MetricField, start: date, end: date, user_id: str
    ) -> Optional[List[MetricReading]]:
        readings = [r for r in self._readings(metric, user_id) if start <= as_date(r.date) <= end]
        return readings or None

    def get_average(self, metric: MetricField, days: int, user_id: str) -> Optional[MetricAverageResult]:
        values = [v for v in (_as_number(r.value) for r in self._since(metric, days, user_id)) if v is not None]
        if not values:
            return None
        return MetricAverageResult(average=sum(values) / len(values), count=len(values), days=days)

    def get_trend(self, metric: MetricField, days: int, user_id: str) -> Optional[MetricTrendResult]:
        values = [v for v in (_as_number(r.value) for r in self._since(metric, days, user_id)) if v is not None]
        if len(values) < 2:
            return None

        latest, oldest = values[0], values[-1]
        delta = latest - oldest
        slope = delta / len(values)

        trend = "stable"
        if abs(slope) > trend_threshold(metric):
            trend = "increasing" if delta > 0 else "decreasing"

        return MetricTrendResult(
            trend=trend,
            slope=slope,
            latest=latest,
            oldest=oldest,
            count=len(values),
            days=days,
        )

    def get_daily_aggregate(
        self,
        metric: MetricField,
        start: date,
        end: date,
        user_id: str,
        aggregation: str = "avg",
    ) -> Optional[MetricAggregateResult]:
        readings = self.get_in_range(metric, start, end, user_id)
        if not readings:
            return None
        values = [v for v in (_as_number(r.value) for r in readings) if v is not None]
        if not values:
            return None

        if aggregation not in AGGREGATIONS:
            aggregation = "avg"

        if aggregation == "min":
            result = min(values)
        elif aggregation == "max":
            result = max(values)
        elif aggregation == "last":
            result = values[0]
        else:
            result = sum(values) / len(values)

        return MetricAggregateResult(value=result, count=len(values), aggregation=aggregation)
