"""Unit tests for IntentClassifier rule ordering and helper extractors."""
from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest

from carevibe.models.intents import (
    GoalKind,
    IntentType,
    SymptomCategory,
    Urgency,
)
from carevibe.models.metrics import MetricField
from carevibe.services.date_resolver import DateResolution, DateResolver
from carevibe.services.intent.classifier import (
    GREETING_KEYWORDS,
    IntentClassifier,
    detect_goal,
    detect_symptom,
    extract_date,
    extract_days,
    extract_metric,
    is_follow_up,
    is_greeting,
)
from carevibe.services.session_context import SessionContext


REF = date(2025, 11, 3)


@pytest.fixture
def resolver():
    """DateResolver double that finds nothing unless told otherwise."""
    mock = MagicMock(spec=DateResolver)
    mock.resolve = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def classifier(resolver):
    return IntentClassifier(date_resolver=resolver, today=lambda: REF)


class TestHelpers:
    """Tests for the standalone matching helpers."""

    @pytest.mark.parametrize("greeting", GREETING_KEYWORDS)
    @pytest.mark.parametrize("suffix", ["", "!", "?", "."])
    def test_greeting_phrases(self, greeting, suffix):
        assert is_greeting(f"{greeting}{suffix}")

    def test_short_message_starting_with_greeting(self):
        assert is_greeting("Hello there!")

    def test_long_message_is_not_greeting(self):
        assert not is_greeting("hey, what was my weight last week?")

    def test_longest_symptom_wins(self):
        intent = detect_symptom("I have chest pain since this morning")
        assert intent.symptom == "chest pain"
        assert intent.category == SymptomCategory.CARDIAC
        assert intent.urgency == Urgency.URGENT

    def test_multiword_symptom_beats_single_word(self):
        assert detect_symptom("my stomach pain is back").symptom == "stomach pain"
        assert detect_symptom("lower back pain").symptom == "pain"

    def test_goal_metrics(self):
        intent = detect_goal("I want to sleep better")
        assert intent.goal == GoalKind.IMPROVE_SLEEP
        assert intent.relevant_metrics == (
            MetricField.SLEEP_DURATION,
            MetricField.REM_SLEEP,
            MetricField.SLEEP_INTERRUPTIONS,
        )

    def test_follow_up(self):
        assert is_follow_up("what about my steps")
        assert not is_follow_up("my steps please")

    def test_extract_metric_first_alias_wins(self):
        assert extract_metric("What is my BMI?") == MetricField.BMI
        assert extract_metric("resting heart rate") == MetricField.RESTING_HEART_RATE
        assert extract_metric("how is my mood") is None

    def test_extract_date_iso(self):
        assert extract_date("2025-10-26") == "2025-10-26"
        assert extract_date("my weight on 2025-10-26 please", today=REF) == "2025-10-26"

    @pytest.mark.parametrize("text,expected", [
        ("weight yesterday", "2025-11-02"),
        ("weight today", "2025-11-03"),
        ("weight 5 days ago", "2025-10-29"),
        ("weight last week", "2025-10-27"),
        ("weight a month ago", None),
    ])
    def test_extract_date_literals(self, text, expected):
        assert extract_date(text, today=REF) == expected

    @pytest.mark.parametrize("text,expected", [
        ("last 14 days", 14),
        ("past 3 days", 3),
        ("7 day average", 7),
        ("last week", 7),
        ("past month", 30),
        ("recently", None),
    ])
    def test_extract_days(self, text, expected):
        assert extract_days(text) == expected

    def test_extract_days_is_stable(self):
        assert extract_days("last 14 days") == extract_days("last 14 days") == 14


@pytest.mark.asyncio
class TestDetect:
    """Tests for the ordered rule cascade."""

    async def test_rule_order(self, classifier):
        names = [name for name, _ in classifier.rules]
        assert names == [
            "greeting", "symptom", "goal", "follow_up", "latest_metric",
            "literal_date", "resolved_date", "average", "trend",
        ]

    async def test_greeting_short_circuits(self, classifier, resolver):
        intent = await classifier.detect("Hi!")
        assert intent.intent_type == IntentType.GREETING
        assert intent.raw == "Hi!"
        resolver.resolve.assert_not_awaited()

    async def test_symptom_before_metric(self, classifier):
        intent = await classifier.detect("my sleep is bad and I feel tired")
        assert intent.intent_type == IntentType.SYMPTOM_REPORT
        assert intent.symptom == "tired"

    async def test_goal(self, classifier):
        intent = await classifier.detect("I need to lose weight before summer")
        assert intent.intent_type == IntentType.LIFESTYLE_GOAL
        assert intent.goal == GoalKind.WEIGHT_LOSS

    async def test_latest_metric(self, classifier):
        intent = await classifier.detect("what is my current weight")
        assert intent.intent_type == IntentType.LATEST_METRIC
        assert intent.metric == MetricField.WEIGHT

    async def test_literal_date_does_not_call_resolver(self, classifier, resolver):
        intent = await classifier.detect("how many steps did I do on 2025-10-26")
        assert intent.intent_type == IntentType.METRIC_ON_DATE
        assert intent.date == date(2025, 10, 26)
        resolver.resolve.assert_not_awaited()

    async def test_resolver_point(self, classifier, resolver):
        resolver.resolve.return_value = DateResolution(
            kind="point", start=date(2025, 10, 3), end=date(2025, 10, 3),
            strategy="deterministic", confidence=0.9,
        )

        intent = await classifier.detect("what was my bmi a month ago")

        assert intent.intent_type == IntentType.METRIC_ON_DATE
        assert intent.metric == MetricField.BMI
        assert intent.date == date(2025, 10, 3)
        assert intent.date_strategy == "deterministic"
        resolver.resolve.assert_awaited_once_with("what was my bmi a month ago", reference_date=REF)

    async def test_resolver_range(self, classifier, resolver):
        resolver.resolve.return_value = DateResolution(
            kind="range", start=date(2025, 10, 1), end=date(2025, 10, 5),
            strategy="model-assisted", confidence=0.8,
        )

        intent = await classifier.detect("my sleep from Oct 1 to Oct 5")

        assert intent.intent_type == IntentType.METRIC_IN_RANGE
        assert intent.start_date == date(2025, 10, 1)
        assert intent.end_date == date(2025, 10, 5)
        assert intent.date_strategy == "model-assisted"

    async def test_average(self, classifier):
        intent = await classifier.detect("average steps over the last 14 days")
        assert intent.intent_type == IntentType.METRIC_AVERAGE
        assert intent.metric == MetricField.STEPS
        assert intent.days == 14

    async def test_average_needs_day_count(self, classifier):
        intent = await classifier.detect("what is the average of my stress")
        assert intent is None or intent.intent_type != IntentType.METRIC_AVERAGE

    async def test_trend_default_days(self, classifier):
        intent = await classifier.detect("is my weight going up")
        assert intent.intent_type == IntentType.METRIC_TREND
        assert intent.days == 30

    async def test_trend_with_days(self, classifier):
        intent = await classifier.detect("stress trend for the past 10 days")
        assert intent.intent_type == IntentType.METRIC_TREND
        assert intent.days == 10

    async def test_no_intent(self, classifier):
        assert await classifier.detect("tell me something interesting") is None

    async def test_empty_message(self, classifier):
        assert await classifier.detect("") is None


@pytest.mark.asyncio
class TestFollowUp:
    """Tests for follow-ups that reuse the session context."""

    async def test_inherits_metric_and_date(self, classifier):
        context = SessionContext(last_metric=MetricField.WEIGHT, last_date=date(2025, 10, 20))

        intent = await classifier.detect("and what about sleep then", context)

        assert intent.intent_type == IntentType.METRIC_ON_DATE
        assert intent.metric == MetricField.SLEEP_DURATION
        assert intent.date == date(2025, 10, 20)
        assert intent.follow_up

    async def test_metric_only_becomes_latest(self, classifier):
        context = SessionContext(last_metric=MetricField.STEPS)

        intent = await classifier.detect("what about that", context)

        assert intent.intent_type == IntentType.LATEST_METRIC
        assert intent.metric == MetricField.STEPS
        assert intent.follow_up

    async def test_fresh_date_overrides_context(self, classifier):
        context = SessionContext(last_metric=MetricField.BMI, last_date=date(2025, 10, 1))

        intent = await classifier.detect("what about yesterday", context)

        assert intent.date == date(2025, 11, 2)

    async def test_without_context_is_not_follow_up(self, classifier):
        intent = await classifier.detect("what about that")
        assert intent is None
