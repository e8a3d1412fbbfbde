"""Intent types produced by the intent classifier.

Exactly one intent (or none) is produced per chat message. Intents are frozen
so handlers and the session context can share them safely.
"""
import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from carevibe.models.metrics import MetricField


class IntentType(str, Enum):
    GREETING = "greeting"
    SYMPTOM_REPORT = "symptom_report"
    LIFESTYLE_GOAL = "lifestyle_goal"
    LATEST_METRIC = "latest_metric"
    METRIC_ON_DATE = "metric_on_date"
    METRIC_IN_RANGE = "metric_in_range"
    METRIC_AVERAGE = "metric_average"
    METRIC_TREND = "metric_trend"


class SymptomCategory(str, Enum):
    PAIN = "pain"
    GASTROINTESTINAL = "gastrointestinal"
    CARDIAC = "cardiac"
    NEUROLOGICAL = "neurological"
    INFECTION = "infection"
    RESPIRATORY = "respiratory"
    GENERAL = "general"
    DERMATOLOGICAL = "dermatological"
    MENTAL_HEALTH = "mental_health"


class Urgency(str, Enum):
    URGENT = "urgent"
    MODERATE = "moderate"
    LOW = "low"


class GoalKind(str, Enum):
    WEIGHT_LOSS = "weight_loss"
    WEIGHT_GAIN = "weight_gain"
    IMPROVE_SLEEP = "improve_sleep"
    INCREASE_ACTIVITY = "increase_activity"
    LOWER_STRESS = "lower_stress"


@dataclass(frozen=True)
class Intent:
    """Base class; `raw` keeps the original message for diagnostics."""
    raw: str

    intent_type = None  # set by subclasses

    def to_dict(self) -> dict:
        """Serialize for logging and API payloads."""
        data = {"type": self.intent_type.value, "raw": self.raw}
        for name, value in self.__dict__.items():
            if name == "raw":
                continue
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, datetime.date):
                value = value.isoformat()
            elif isinstance(value, tuple):
                value = [v.value if isinstance(v, Enum) else v for v in value]
            data[name] = value
        return data


@dataclass(frozen=True)
class GreetingIntent(Intent):
    intent_type = IntentType.GREETING


@dataclass(frozen=True)
class SymptomReportIntent(Intent):
    symptom: str = ""
    category: SymptomCategory = SymptomCategory.GENERAL
    urgency: Urgency = Urgency.MODERATE

    intent_type = IntentType.SYMPTOM_REPORT


@dataclass(frozen=True)
class LifestyleGoalIntent(Intent):
    goal: GoalKind = GoalKind.INCREASE_ACTIVITY
    relevant_metrics: Tuple[MetricField, ...] = field(default_factory=tuple)

    intent_type = IntentType.LIFESTYLE_GOAL


@dataclass(frozen=True)
class MetricIntent(Intent):
    """Shared fields of every metric query shape."""
    metric: MetricField = MetricField.WEIGHT
    follow_up: bool = False
    # "deterministic" or "model-assisted" when the date came from the resolver
    date_strategy: Optional[str] = None


@dataclass(frozen=True)
class LatestMetricIntent(MetricIntent):
    intent_type = IntentType.LATEST_METRIC


@dataclass(frozen=True)
class MetricOnDateIntent(MetricIntent):
    date: Optional[datetime.date] = None

    intent_type = IntentType.METRIC_ON_DATE


@dataclass(frozen=True)
class MetricInRangeIntent(MetricIntent):
    start_date: Optional[datetime.date] = None
    end_date: Optional[datetime.date] = None

    intent_type = IntentType.METRIC_IN_RANGE


@dataclass(frozen=True)
class MetricAverageIntent(MetricIntent):
    days: int = 30

    intent_type = IntentType.METRIC_AVERAGE


@dataclass(frozen=True)
class MetricTrendIntent(MetricIntent):
    days: int = 30

    intent_type = IntentType.METRIC_TREND


METRIC_INTENT_TYPES = frozenset({
    IntentType.LATEST_METRIC,
    IntentType.METRIC_ON_DATE,
    IntentType.METRIC_IN_RANGE,
    IntentType.METRIC_AVERAGE,
    IntentType.METRIC_TREND,
})
