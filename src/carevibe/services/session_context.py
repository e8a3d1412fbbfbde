"""Short-lived per-user memory of the last detected intent.

Entries live in an injected key-value store. Expiry is lazy: a read that finds
an entry older than the TTL deletes it and reports nothing. There is no sweep,
so entries for users who never come back stay until the process exits.
"""
import datetime
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Optional, Protocol

from carevibe.core.config import settings
from carevibe.core.logging import logger
from carevibe.models.intents import (
    Intent,
    IntentType,
    LifestyleGoalIntent,
    MetricInRangeIntent,
    MetricIntent,
    MetricOnDateIntent,
    SymptomReportIntent,
)
from carevibe.models.metrics import MetricField


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryStore:
    """Dict-backed key-value store."""

    def __init__(self):
        self._data: Dict[str, Any] = {}

    def get(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


@dataclass(frozen=True)
class SessionContext:
    last_intent_type: Optional[IntentType] = None
    last_metric: Optional[MetricField] = None
    last_date: Optional[datetime.date] = None
    last_goal: Optional[str] = None
    last_symptom: Optional[str] = None
    last_symptom_category: Optional[str] = None
    last_urgency: Optional[str] = None
    timestamp: float = 0.0


class SessionContextStore:
    """Reads and writes SessionContext entries with a time-to-live."""

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store if store is not None else InMemoryStore()
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.chat.context_ttl_seconds
        self.clock = clock

    def get(self, user_id: str) -> Optional[SessionContext]:
        """Return the user's context, or None if absent or expired."""
        context = self.store.get(user_id)
        if context is None:
            return None
        if self.clock() - context.timestamp > self.ttl_seconds:
            logger.debug(f"[SessionContext] Context for {user_id} expired")
            self.store.delete(user_id)
            return None
        return context

    def set(self, user_id: str, context: SessionContext) -> SessionContext:
        """Store a context, stamping it with a strictly increasing timestamp."""
        now = self.clock()
        previous = self.store.get(user_id)
        if previous is not None and now <= previous.timestamp:
            now = previous.timestamp + 1e-6
        stamped = replace(context, timestamp=now)
        self.store.set(user_id, stamped)
        return stamped

    def clear(self, user_id: str) -> None:
        self.store.delete(user_id)

    def update_from_intent(self, user_id: str, intent: Intent) -> SessionContext:
        """Overwrite the fields the intent carries and refresh the timestamp.

        Fields the intent does not carry keep their previous (unexpired) value
        so a follow-up can still reach an earlier date.
        """
        current = self.get(user_id) or SessionContext()
        changes: Dict[str, Any] = {"last_intent_type": intent.intent_type}

        if isinstance(intent, MetricIntent):
            changes["last_metric"] = intent.metric
        if isinstance(intent, MetricOnDateIntent) and intent.date is not None:
            changes["last_date"] = intent.date
        elif isinstance(intent, MetricInRangeIntent) and intent.start_date is not None:
            changes["last_date"] = intent.start_date
        if isinstance(intent, LifestyleGoalIntent):
            changes["last_goal"] = intent.goal.value
        if isinstance(intent, SymptomReportIntent):
            changes["last_symptom"] = intent.symptom
            changes["last_symptom_category"] = intent.category.value
            changes["last_urgency"] = intent.urgency.value

        return self.set(user_id, replace(current, **changes))
