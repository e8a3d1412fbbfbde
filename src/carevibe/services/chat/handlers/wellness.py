"""Greeting, symptom and lifestyle goal handlers."""
from typing import Any, Dict, List

from carevibe.models.intents import IntentType
from carevibe.services import template_builder
from carevibe.services.chat.handlers.base import ChatContext, ChatResponse, IntentHandler


GREETING_REPLY = "Hi! I'm CareVibe. Ask me about your health data or tell me how you are feeling today."


class GreetingHandler(IntentHandler):
    """Greetings get a fixed reply without calling the model."""

    actions = [IntentType.GREETING.value]

    def handle(self, context: ChatContext) -> ChatResponse:
        return self._final_response(context, GREETING_REPLY)


class SymptomHandler(IntentHandler):
    actions = [IntentType.SYMPTOM_REPORT.value]

    def handle(self, context: ChatContext) -> ChatResponse:
        template = template_builder.build_symptom_template(context.intent)
        return self._template_response(context, template)


class GoalHandler(IntentHandler):
    """Lifestyle goals, personalised with the latest readings of related metrics."""

    actions = [IntentType.LIFESTYLE_GOAL.value]

    def handle(self, context: ChatContext) -> ChatResponse:
        intent = context.intent
        recent_data: Dict[str, Any] = {}
        lines: List[str] = []

        if context.metrics_store is not None:
            for metric in intent.relevant_metrics:
                reading = context.metrics_store.get_latest(metric, context.user_id)
                if reading is None:
                    continue
                recent_data[metric.value] = reading.value
                lines.append(
                    f"- Latest {template_builder.friendly_metric_name(metric)}: "
                    f"{template_builder.format_value(reading.value)} "
                    f"({template_builder.format_long_date(reading.date)})"
                )

        template = template_builder.build_goal_template(intent, recent_data)
        if lines:
            template += "\n" + "\n".join(lines)
        return self._template_response(context, template, has_resolved_data=bool(recent_data))
