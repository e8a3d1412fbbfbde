"""Base classes for chat intent handlers."""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from carevibe.models.intents import Intent
from carevibe.services.metrics_store import MetricsStore


@dataclass
class ChatContext:
    """Context passed to intent handlers."""
    user_id: str
    message: str
    intent: Optional[Intent]
    metrics_store: Optional[MetricsStore] = None
    history: List[Dict[str, str]] = field(default_factory=list)

    @property
    def action(self) -> str:
        return self.intent.intent_type.value if self.intent else "general"


@dataclass
class ChatResponse:
    """Standard response from intent handlers."""
    user_id: str
    message: str
    answer: str = ""

    intent: Optional[Dict[str, Any]] = None

    # Whether to skip LLM response generation (handler already produced final answer)
    is_final: bool = False

    # Deterministic sentence the model must treat as ground truth
    context_for_llm: str = ""
    # True when context_for_llm carries looked-up numbers
    has_resolved_data: bool = False

    model: Optional[str] = None
    classification: Optional[str] = None
    warning: Optional[str] = None
    status: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API response."""
        data = {
            "user_id": self.user_id,
            "message": self.message,
            "reply": self.answer,
            "intent": self.intent,
            "template": self.context_for_llm or None,
            "model": self.model,
            "classification": self.classification,
        }
        if self.warning:
            data["warning"] = self.warning
            data["status"] = self.status
        return data


class IntentHandler(ABC):
    """Abstract base class for intent handlers.

    Each handler is responsible for one or more intent types and returns a
    ChatResponse. Handlers that need the model to phrase the answer return
    is_final=False with the verified sentence in context_for_llm.
    """

    # Intent type values this handler can process
    actions: List[str] = []

    @abstractmethod
    def handle(self, context: ChatContext) -> ChatResponse:
        """
        Handle the intent and return a response.

        Args:
            context: ChatContext with message, intent, and user info

        Returns:
            ChatResponse with the result
        """
        pass

    def _final_response(self, context: ChatContext, answer: str) -> ChatResponse:
        """A reply that goes to the user as-is."""
        return ChatResponse(
            user_id=context.user_id,
            message=context.message,
            answer=answer,
            is_final=True,
        )

    def _template_response(
        self,
        context: ChatContext,
        template: str,
        has_resolved_data: bool = False,
    ) -> ChatResponse:
        """A verified sentence for the model to expand on."""
        return ChatResponse(
            user_id=context.user_id,
            message=context.message,
            context_for_llm=template,
            has_resolved_data=has_resolved_data,
            is_final=False,
        )
