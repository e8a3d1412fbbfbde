"""Deterministic plain-text sentences built from looked-up data.

These sentences are handed to the model as verified facts to paraphrase, so
their numbers and dates must come straight from the lookup result.
"""
import datetime
import re
from typing import Any, Dict, List, Optional, Union

from carevibe.models.intents import GoalKind, LifestyleGoalIntent, SymptomReportIntent, Urgency
from carevibe.models.metrics import (
    MetricAggregateResult,
    MetricAverageResult,
    MetricField,
    MetricReading,
    MetricTrendResult,
)


URGENCY_RESPONSES = {
    Urgency.URGENT: (
        "This could be serious. If your symptoms are severe or worsening, please seek "
        "immediate medical attention or call emergency services."
    ),
    Urgency.MODERATE: (
        "I understand you are experiencing discomfort. If symptoms persist or worsen, "
        "please consult a healthcare professional."
    ),
    Urgency.LOW: (
        "I hear that you are not feeling well. Here are some general wellness suggestions, "
        "but if symptoms continue, consider seeing a doctor."
    ),
}

GOAL_MESSAGES = {
    GoalKind.WEIGHT_LOSS: "Weight loss requires a combination of balanced nutrition and regular physical activity.",
    GoalKind.WEIGHT_GAIN: "Healthy weight gain involves eating nutrient-dense foods and strength training.",
    GoalKind.IMPROVE_SLEEP: (
        "Improving sleep quality often involves maintaining a consistent schedule and "
        "creating a calming bedtime routine."
    ),
    GoalKind.INCREASE_ACTIVITY: (
        "Increasing your activity level can start with small steps, like adding short "
        "walks throughout the day."
    ),
    GoalKind.LOWER_STRESS: (
        "Managing stress effectively involves relaxation techniques, regular exercise, "
        "and adequate sleep."
    ),
}

TREND_WORDS = {
    "increasing": "trending upward",
    "decreasing": "trending downward",
}

OUTSIDE_RANGE_NOTE = "That date may be outside the available data range."


def friendly_metric_name(metric: Union[MetricField, str]) -> str:
    """weightKg -> "weight kg", for use mid-sentence."""
    name = metric.value if isinstance(metric, MetricField) else str(metric)
    spaced = re.sub(r"([A-Z])", r" \1", name).strip()
    return (spaced[:1].upper() + spaced[1:]).lower()


def format_value(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:.1f}"
    return str(value)


def format_long_date(value: Union[datetime.date, datetime.datetime, str]) -> str:
    """October 3, 2025"""
    if isinstance(value, str):
        value = datetime.date.fromisoformat(value[:10])
    return f"{value.strftime('%B')} {value.day}, {value.year}"


def build_latest_metric_template(result: Optional[MetricReading], metric: MetricField) -> str:
    name = friendly_metric_name(metric)
    if result is None:
        return f"I could not find any recorded {name} readings. Your data may not include this metric yet."
    return f"Your latest {name} reading is {format_value(result.value)}, recorded on {format_long_date(result.date)}."


def build_metric_on_date_template(
    result: Optional[MetricReading],
    metric: MetricField,
    requested_date: Union[datetime.date, str],
    nearest: Optional[MetricReading] = None,
) -> str:
    name = friendly_metric_name(metric)
    if result is not None:
        return f"On {format_long_date(result.date)}, your {name} was {format_value(result.value)}."

    template = f"I could not find data for {name} on {format_long_date(requested_date)}. {OUTSIDE_RANGE_NOTE}"
    if nearest is not None:
        days = abs(nearest.offset)
        template += (
            f" The closest reading was {format_value(nearest.value)} on {format_long_date(nearest.date)}, "
            f"{days} day{'s' if days != 1 else ''} {'after' if nearest.offset > 0 else 'before'}."
        )
    return template


def build_metric_in_range_template(
    readings: Optional[List[MetricReading]],
    metric: MetricField,
    start: datetime.date,
    end: datetime.date,
    aggregate: Optional[MetricAggregateResult] = None,
) -> str:
    name = friendly_metric_name(metric)
    period = f"{format_long_date(start)} to {format_long_date(end)}"
    if not readings:
        return f"I could not find data for {name} between {period}. That period may be outside the available data range."

    template = f"From {period}, I found {len(readings)} {name} readings."
    if aggregate is not None:
        template += f" The average was {format_value(float(aggregate.value))}."
    newest = readings[0]
    template += f" The most recent was {format_value(newest.value)} on {format_long_date(newest.date)}."
    return template


def build_metric_average_template(result: Optional[MetricAverageResult], metric: MetricField, days: int) -> str:
    name = friendly_metric_name(metric)
    if result is None:
        return f"I could not find any {name} data for the past {days} days. That period may be outside the available data range."
    return (
        f"Over the past {result.days} days, your average {name} was {result.average:.1f} "
        f"(based on {result.count} data points)."
    )


def build_metric_trend_template(result: Optional[MetricTrendResult], metric: MetricField, days: int) -> str:
    name = friendly_metric_name(metric)
    if result is None:
        return (
            f"I could not find enough {name} data to analyze a trend over the past {days} days. "
            "That period may be outside the available data range."
        )
    trend_word = TREND_WORDS.get(result.trend, "remaining stable")
    return (
        f"Your {name} is {trend_word} over the past {result.days} days. "
        f"It was {format_value(result.oldest)} at the start of the period and is now "
        f"{format_value(result.latest)} (analyzed {result.count} data points)."
    )


def build_symptom_template(intent: SymptomReportIntent) -> str:
    urgency_text = URGENCY_RESPONSES.get(intent.urgency, URGENCY_RESPONSES[Urgency.MODERATE])
    return f"You mentioned experiencing {intent.symptom}. {urgency_text}"


def build_goal_template(intent: LifestyleGoalIntent, recent_data: Optional[Dict[str, Any]] = None) -> str:
    message = GOAL_MESSAGES.get(intent.goal, "I can help you work toward your wellness goals.")
    template = f"You want to work on {intent.goal.value.replace('_', ' ')}. {message}"
    if recent_data:
        template += " Based on your recent data, I can provide personalized recommendations."
    return template
