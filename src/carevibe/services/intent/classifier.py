"""Keyword-based intent detection for wellness chat messages.

Rules are evaluated in a fixed order and the first one that produces an intent
wins. Only the natural-language date rule can reach the remote model (through
the DateResolver); everything else is plain substring and regex matching.
"""
import re
from datetime import date, datetime, timedelta
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from carevibe.core.config import settings
from carevibe.core.logging import logger
from carevibe.models.intents import (
    GoalKind,
    GreetingIntent,
    Intent,
    LatestMetricIntent,
    LifestyleGoalIntent,
    MetricAverageIntent,
    MetricInRangeIntent,
    MetricOnDateIntent,
    MetricTrendIntent,
    SymptomCategory,
    SymptomReportIntent,
    Urgency,
)
from carevibe.models.metrics import MetricField
from carevibe.services.date_resolver import DateResolver, date_resolver as default_date_resolver
from carevibe.services.session_context import SessionContext


SYMPTOM_KEYWORDS: Dict[str, Tuple[SymptomCategory, Urgency]] = {
    "pain": (SymptomCategory.PAIN, Urgency.MODERATE),
    "ache": (SymptomCategory.PAIN, Urgency.LOW),
    "stomach pain": (SymptomCategory.GASTROINTESTINAL, Urgency.MODERATE),
    "chest pain": (SymptomCategory.CARDIAC, Urgency.URGENT),
    "headache": (SymptomCategory.NEUROLOGICAL, Urgency.LOW),
    "migraine": (SymptomCategory.NEUROLOGICAL, Urgency.MODERATE),
    "dizzy": (SymptomCategory.NEUROLOGICAL, Urgency.MODERATE),
    "dizziness": (SymptomCategory.NEUROLOGICAL, Urgency.MODERATE),
    "nausea": (SymptomCategory.GASTROINTESTINAL, Urgency.MODERATE),
    "vomiting": (SymptomCategory.GASTROINTESTINAL, Urgency.MODERATE),
    "fever": (SymptomCategory.INFECTION, Urgency.MODERATE),
    "cough": (SymptomCategory.RESPIRATORY, Urgency.LOW),
    "shortness of breath": (SymptomCategory.RESPIRATORY, Urgency.URGENT),
    "fatigue": (SymptomCategory.GENERAL, Urgency.LOW),
    "tired": (SymptomCategory.GENERAL, Urgency.LOW),
    "exhausted": (SymptomCategory.GENERAL, Urgency.MODERATE),
    "difficulty breathing": (SymptomCategory.RESPIRATORY, Urgency.URGENT),
    "rash": (SymptomCategory.DERMATOLOGICAL, Urgency.LOW),
    "itching": (SymptomCategory.DERMATOLOGICAL, Urgency.LOW),
    "swelling": (SymptomCategory.GENERAL, Urgency.MODERATE),
    "anxiety": (SymptomCategory.MENTAL_HEALTH, Urgency.MODERATE),
    "depression": (SymptomCategory.MENTAL_HEALTH, Urgency.MODERATE),
    "panic attack": (SymptomCategory.MENTAL_HEALTH, Urgency.URGENT),
}

# Longest first so "chest pain" is tried before "pain"
_SYMPTOMS_BY_LENGTH = sorted(SYMPTOM_KEYWORDS.items(), key=lambda item: len(item[0]), reverse=True)

_WEIGHT_METRICS = (MetricField.WEIGHT, MetricField.BMI, MetricField.CALORIES_BURNED)
_SLEEP_METRICS = (MetricField.SLEEP_DURATION, MetricField.REM_SLEEP, MetricField.SLEEP_INTERRUPTIONS)
_ACTIVITY_METRICS = (MetricField.STEPS, MetricField.EXERCISE_DURATION, MetricField.CALORIES_BURNED)
_STRESS_METRICS = (MetricField.STRESS_LEVEL, MetricField.SLEEP_DURATION)

GOAL_KEYWORDS: Dict[str, Tuple[GoalKind, Tuple[MetricField, ...]]] = {
    "lose weight": (GoalKind.WEIGHT_LOSS, _WEIGHT_METRICS),
    "weight loss": (GoalKind.WEIGHT_LOSS, _WEIGHT_METRICS),
    "gain weight": (GoalKind.WEIGHT_GAIN, _WEIGHT_METRICS),
    "better sleep": (GoalKind.IMPROVE_SLEEP, _SLEEP_METRICS),
    "sleep better": (GoalKind.IMPROVE_SLEEP, _SLEEP_METRICS),
    "improve sleep": (GoalKind.IMPROVE_SLEEP, _SLEEP_METRICS),
    "more active": (GoalKind.INCREASE_ACTIVITY, _ACTIVITY_METRICS),
    "be active": (GoalKind.INCREASE_ACTIVITY, _ACTIVITY_METRICS),
    "get fit": (GoalKind.INCREASE_ACTIVITY, _ACTIVITY_METRICS),
    "reduce stress": (GoalKind.LOWER_STRESS, _STRESS_METRICS),
    "manage stress": (GoalKind.LOWER_STRESS, _STRESS_METRICS),
    "lower stress": (GoalKind.LOWER_STRESS, _STRESS_METRICS),
}

FOLLOWUP_PHRASES = [
    "then",
    "that day",
    "that date",
    "same day",
    "same time",
    "what about",
    "how about",
    "also",
]

GREETING_KEYWORDS = [
    "hi",
    "hello",
    "hey",
    "good morning",
    "good afternoon",
    "good evening",
    "greetings",
    "howdy",
    "what's up",
    "whats up",
]

# Checked in insertion order; the first alias found anywhere in the text wins
METRIC_ALIASES: Dict[str, MetricField] = {
    "weight": MetricField.WEIGHT,
    "body weight": MetricField.WEIGHT,
    "weight kg": MetricField.WEIGHT,
    "bmi": MetricField.BMI,
    "body mass index": MetricField.BMI,
    "sleep": MetricField.SLEEP_DURATION,
    "sleep duration": MetricField.SLEEP_DURATION,
    "sleep hours": MetricField.SLEEP_DURATION,
    "hours of sleep": MetricField.SLEEP_DURATION,
    "rem sleep": MetricField.REM_SLEEP,
    "rem": MetricField.REM_SLEEP,
    "sleep interruptions": MetricField.SLEEP_INTERRUPTIONS,
    "interruptions": MetricField.SLEEP_INTERRUPTIONS,
    "steps": MetricField.STEPS,
    "step count": MetricField.STEPS,
    "daily steps": MetricField.STEPS,
    "steps count": MetricField.STEPS,
    "exercise": MetricField.EXERCISE_DURATION,
    "exercise duration": MetricField.EXERCISE_DURATION,
    "exercise time": MetricField.EXERCISE_DURATION,
    "workout duration": MetricField.EXERCISE_DURATION,
    "stress": MetricField.STRESS_LEVEL,
    "stress level": MetricField.STRESS_LEVEL,
    "heart rate": MetricField.RESTING_HEART_RATE,
    "resting heart rate": MetricField.RESTING_HEART_RATE,
    "hr": MetricField.RESTING_HEART_RATE,
    "bpm": MetricField.RESTING_HEART_RATE,
    "blood pressure": MetricField.BLOOD_PRESSURE,
    "bp": MetricField.BLOOD_PRESSURE,
    "spo2": MetricField.SPO2,
    "oxygen saturation": MetricField.SPO2,
    "blood oxygen": MetricField.SPO2,
    "temperature": MetricField.BODY_TEMPERATURE,
    "body temperature": MetricField.BODY_TEMPERATURE,
    "body temp": MetricField.BODY_TEMPERATURE,
    "calories": MetricField.CALORIES_BURNED,
    "calories burned": MetricField.CALORIES_BURNED,
    "activity level": MetricField.ACTIVITY_LEVEL,
    "smoking": MetricField.SMOKING_STATUS,
    "alcohol": MetricField.ALCOHOL_CONSUMPTION,
}

RECENCY_WORDS = ("latest", "current", "today", "most recent")
AVERAGE_WORDS = ("average", "avg", "mean")
TREND_WORDS = (
    "trend",
    "trending",
    "increasing",
    "decreasing",
    "rising",
    "falling",
    "going up",
    "going down",
    "change",
)
DEFAULT_TREND_DAYS = 30


def _user_today() -> date:
    return datetime.now(settings.user_timezone).date()


def is_greeting(message: str) -> bool:
    """True for a bare greeting, or a short message opening with one."""
    if not message or not isinstance(message, str):
        return False
    lower = message.lower().strip()
    clean = re.sub(r"[!?.]", "", lower).strip()
    if clean in GREETING_KEYWORDS:
        return True
    if len(clean) < 20:
        return any(lower.startswith(greeting) for greeting in GREETING_KEYWORDS)
    return False


def detect_symptom(message: str) -> Optional[SymptomReportIntent]:
    if not message or not isinstance(message, str):
        return None
    lower = message.lower()
    for keyword, (category, urgency) in _SYMPTOMS_BY_LENGTH:
        if keyword in lower:
            return SymptomReportIntent(raw=message, symptom=keyword, category=category, urgency=urgency)
    return None


def detect_goal(message: str) -> Optional[LifestyleGoalIntent]:
    if not message or not isinstance(message, str):
        return None
    lower = message.lower()
    for phrase, (goal, metrics) in GOAL_KEYWORDS.items():
        if phrase in lower:
            return LifestyleGoalIntent(raw=message, goal=goal, relevant_metrics=metrics)
    return None


def is_follow_up(message: str) -> bool:
    if not message or not isinstance(message, str):
        return False
    lower = message.lower()
    return any(phrase in lower for phrase in FOLLOWUP_PHRASES)


def extract_metric(text: str) -> Optional[MetricField]:
    lower = text.lower()
    for alias, metric in METRIC_ALIASES.items():
        if alias in lower:
            return metric
    return None


def extract_date(text: str, today: Optional[date] = None) -> Optional[str]:
    """Fast literal date patterns only; returns an ISO date string.

    Recognises ISO dates, "yesterday", "today", "N days ago" and "last week".
    """
    match = re.search(r"\b(\d{4})-(\d{2})-(\d{2})\b", text)
    if match:
        try:
            return date.fromisoformat(match.group(0)).isoformat()
        except ValueError:
            pass

    lower = text.lower()
    today = today or _user_today()

    if "yesterday" in lower:
        return (today - timedelta(days=1)).isoformat()
    if "today" in lower:
        return today.isoformat()

    match = re.search(r"(\d+)\s*days?\s*ago", lower)
    if match:
        return (today - timedelta(days=int(match.group(1)))).isoformat()

    if "last week" in lower:
        return (today - timedelta(days=7)).isoformat()
    return None


def extract_days(text: str) -> Optional[int]:
    """Day count for averages and trends ("last 14 days", "past week")."""
    lower = text.lower()

    for pattern in (r"last\s+(\d+)\s+days?", r"past\s+(\d+)\s+days?", r"(\d+)\s*day\s*average"):
        match = re.search(pattern, lower)
        if match:
            return int(match.group(1))

    if "last week" in lower or "past week" in lower:
        return 7
    if "last month" in lower or "past month" in lower:
        return 30
    if "last 2 weeks" in lower:
        return 14
    return None


Rule = Callable[[str, Optional[SessionContext]], Awaitable[Optional[Intent]]]


class IntentClassifier:
    """Produces at most one intent per message.

    `rules` is the ordered (name, rule) list; each rule is a coroutine taking
    the message and the session context and returning an Intent or None.
    """

    def __init__(
        self,
        date_resolver: Optional[DateResolver] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self.date_resolver = date_resolver or default_date_resolver
        self.today = today or _user_today
        self.rules: List[Tuple[str, Rule]] = [
            ("greeting", self._greeting),
            ("symptom", self._symptom),
            ("goal", self._goal),
            ("follow_up", self._follow_up),
            ("latest_metric", self._latest_metric),
            ("literal_date", self._literal_date),
            ("resolved_date", self._resolved_date),
            ("average", self._average),
            ("trend", self._trend),
        ]

    async def detect(self, message: str, context: Optional[SessionContext] = None) -> Optional[Intent]:
        """
        Detect the intent of a chat message.

        Args:
            message: The user's message
            context: Unexpired session context for follow-ups, if any

        Returns:
            The first intent produced by the ordered rules, or None
        """
        if not message or not isinstance(message, str):
            return None

        for name, rule in self.rules:
            intent = await rule(message, context)
            if intent is not None:
                logger.debug(f"[IntentClassifier] Rule '{name}' matched: {intent.intent_type.value}")
                return intent
        return None

    async def _greeting(self, message: str, context: Optional[SessionContext]) -> Optional[Intent]:
        return GreetingIntent(raw=message) if is_greeting(message) else None

    async def _symptom(self, message: str, context: Optional[SessionContext]) -> Optional[Intent]:
        return detect_symptom(message)

    async def _goal(self, message: str, context: Optional[SessionContext]) -> Optional[Intent]:
        return detect_goal(message)

    async def _follow_up(self, message: str, context: Optional[SessionContext]) -> Optional[Intent]:
        if context is None or not is_follow_up(message):
            return None

        metric = extract_metric(message) or context.last_metric
        literal = extract_date(message, today=self.today())
        on = date.fromisoformat(literal) if literal else context.last_date

        if metric and on:
            return MetricOnDateIntent(raw=message, metric=metric, date=on, follow_up=True)
        if metric:
            return LatestMetricIntent(raw=message, metric=metric, follow_up=True)
        return None

    async def _latest_metric(self, message: str, context: Optional[SessionContext]) -> Optional[Intent]:
        metric = extract_metric(message)
        lower = message.lower()
        if metric and any(word in lower for word in RECENCY_WORDS):
            return LatestMetricIntent(raw=message, metric=metric)
        return None

    async def _literal_date(self, message: str, context: Optional[SessionContext]) -> Optional[Intent]:
        metric = extract_metric(message)
        if not metric:
            return None
        literal = extract_date(message, today=self.today())
        if literal:
            return MetricOnDateIntent(raw=message, metric=metric, date=date.fromisoformat(literal))
        return None

    async def _resolved_date(self, message: str, context: Optional[SessionContext]) -> Optional[Intent]:
        metric = extract_metric(message)
        if not metric:
            return None

        resolution = await self.date_resolver.resolve(message, reference_date=self.today())
        if resolution is None:
            return None
        if resolution.is_point:
            return MetricOnDateIntent(
                raw=message,
                metric=metric,
                date=resolution.start,
                date_strategy=resolution.strategy,
            )
        if resolution.kind == "range":
            return MetricInRangeIntent(
                raw=message,
                metric=metric,
                start_date=resolution.start,
                end_date=resolution.end,
                date_strategy=resolution.strategy,
            )
        return None

    async def _average(self, message: str, context: Optional[SessionContext]) -> Optional[Intent]:
        metric = extract_metric(message)
        days = extract_days(message)
        lower = message.lower()
        if metric and days and any(word in lower for word in AVERAGE_WORDS):
            return MetricAverageIntent(raw=message, metric=metric, days=days)
        return None

    async def _trend(self, message: str, context: Optional[SessionContext]) -> Optional[Intent]:
        metric = extract_metric(message)
        lower = message.lower()
        if metric and any(word in lower for word in TREND_WORDS):
            days = extract_days(message) or DEFAULT_TREND_DAYS
            return MetricTrendIntent(raw=message, metric=metric, days=days)
        return None


intent_classifier = IntentClassifier()
