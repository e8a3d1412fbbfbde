"""Metric query handler - looks up data and renders the verified sentence."""
from carevibe.core.logging import logger
from carevibe.models.intents import (
    METRIC_INTENT_TYPES,
    LatestMetricIntent,
    MetricAverageIntent,
    MetricInRangeIntent,
    MetricOnDateIntent,
    MetricTrendIntent,
)
from carevibe.services import template_builder
from carevibe.services.chat.handlers.base import ChatContext, ChatResponse, IntentHandler


class MetricQueryHandler(IntentHandler):
    """Handle latest / on-date / in-range / average / trend metric questions."""

    actions = sorted(t.value for t in METRIC_INTENT_TYPES)

    # Days either side of a requested date to look for a substitute reading
    nearest_window_days = 3

    def handle(self, context: ChatContext) -> ChatResponse:
        intent = context.intent
        store = context.metrics_store
        if store is None:
            logger.warning("[MetricQueryHandler] No metrics store configured")
            return self._template_response(context, "")

        user_id = context.user_id
        metric = intent.metric
        found = False

        if isinstance(intent, LatestMetricIntent):
            result = store.get_latest(metric, user_id)
            found = result is not None
            template = template_builder.build_latest_metric_template(result, metric)

        elif isinstance(intent, MetricOnDateIntent):
            result = store.get_on_date(metric, intent.date, user_id)
            nearest = None
            if result is None:
                nearest = store.get_nearest_to_date(metric, intent.date, user_id, self.nearest_window_days)
            found = result is not None or nearest is not None
            template = template_builder.build_metric_on_date_template(result, metric, intent.date, nearest)

        elif isinstance(intent, MetricInRangeIntent):
            readings = store.get_in_range(metric, intent.start_date, intent.end_date, user_id)
            aggregate = None
            if readings:
                aggregate = store.get_daily_aggregate(metric, intent.start_date, intent.end_date, user_id, "avg")
            found = bool(readings)
            template = template_builder.build_metric_in_range_template(
                readings, metric, intent.start_date, intent.end_date, aggregate
            )

        elif isinstance(intent, MetricAverageIntent):
            result = store.get_average(metric, intent.days, user_id)
            found = result is not None
            template = template_builder.build_metric_average_template(result, metric, intent.days)

        elif isinstance(intent, MetricTrendIntent):
            result = store.get_trend(metric, intent.days, user_id)
            found = result is not None
            template = template_builder.build_metric_trend_template(result, metric, intent.days)

        else:
            return self._template_response(context, "")

        logger.info(f"[MetricQueryHandler] {context.action} {metric.value}: {'found' if found else 'no data'}")
        return self._template_response(context, template, has_resolved_data=found)
