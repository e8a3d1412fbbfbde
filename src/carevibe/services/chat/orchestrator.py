"""Chat Orchestrator - Coordinates intent detection, handler dispatch and the model call.

This is the main entry point for the chat service. It:
1. Detects the intent with the user's session context
2. Dispatches to the IntentHandler registered for that intent
3. Derives the response policy and builds the system prompt
4. Calls the model with fallback and post-processes the reply
5. Manages per-user conversation history
"""
from typing import Any, Dict, List, Optional, Type

from carevibe.core.config import settings
from carevibe.core.logging import logger
from carevibe.services.chat.handlers.base import ChatContext, ChatResponse, IntentHandler
from carevibe.services.chat.handlers.metrics import MetricQueryHandler
from carevibe.services.chat.handlers.wellness import GoalHandler, GreetingHandler, SymptomHandler
from carevibe.services.chat.postprocess import enforce_brief_style, sanitize_phrases
from carevibe.services.intent.classifier import IntentClassifier
from carevibe.services.llm import LLMNotConfiguredError, LLMService, LLMServiceError, llm_service
from carevibe.services.metrics_store import MetricsStore
from carevibe.services.response_policy import (
    ResponsePolicyEngine,
    enforce_constraints,
    format_prompt_instructions,
)
from carevibe.services.session_context import InMemoryStore, KeyValueStore, SessionContextStore


PERSONA_PROMPT = (
    "You are CareVibe, a calm and reliable wellness assistant. "
    "Reference earlier symptoms briefly when relevant (e.g., \"With fever and stomach pain...\"). "
    "Give only essential wellness steps. Do not diagnose. "
    "If symptoms sound serious or persist, suggest seeking medical care. "
    "Use simple, natural language. Avoid marketing tone and disclaimers like \"I can't diagnose\". "
    "Ask one short follow-up only when truly helpful."
)

FALLBACK_REPLY = (
    "I am experiencing a slow connection right now. Please try again in a moment "
    "or consult a healthcare professional for urgent concerns."
)


class HandlerRegistry:
    """Registry for intent handlers.

    Handlers register themselves with the actions they can handle.
    The orchestrator looks up handlers by action name.
    """

    def __init__(self):
        self._handlers: Dict[str, IntentHandler] = {}
        self._handler_instances: Dict[Type[IntentHandler], IntentHandler] = {}

    def register(self, handler_class: Type[IntentHandler]) -> None:
        """Register a handler class for its declared actions."""
        # Create single instance per handler class
        if handler_class not in self._handler_instances:
            self._handler_instances[handler_class] = handler_class()

        handler = self._handler_instances[handler_class]

        for action in handler.actions:
            if action in self._handlers:
                logger.warning(
                    f"Action '{action}' already registered to {self._handlers[action].__class__.__name__}, "
                    f"overwriting with {handler_class.__name__}"
                )
            self._handlers[action] = handler
            logger.debug(f"Registered handler {handler_class.__name__} for action '{action}'")

    def get_handler(self, action: str) -> Optional[IntentHandler]:
        """Get the handler for a given action."""
        return self._handlers.get(action)

    def list_handlers(self) -> Dict[str, str]:
        """List all registered handlers and their actions."""
        return {action: handler.__class__.__name__ for action, handler in self._handlers.items()}

    def clear(self) -> None:
        """Clear all registered handlers (useful for testing)."""
        self._handlers.clear()
        self._handler_instances.clear()


def default_registry() -> HandlerRegistry:
    """Registry with every built-in handler."""
    registry = HandlerRegistry()
    registry.register(GreetingHandler)
    registry.register(SymptomHandler)
    registry.register(GoalHandler)
    registry.register(MetricQueryHandler)
    logger.debug(f"Registered {len(registry.list_handlers())} handlers")
    return registry


class ChatOrchestrator:
    """Orchestrates the chat flow: intent detection -> handler dispatch -> model reply.

    Every collaborator is injectable; the defaults are the module singletons
    and in-memory stores.
    """

    def __init__(
        self,
        metrics_store: Optional[MetricsStore] = None,
        classifier: Optional[IntentClassifier] = None,
        policy_engine: Optional[ResponsePolicyEngine] = None,
        llm: Optional[LLMService] = None,
        context_store: Optional[SessionContextStore] = None,
        history_store: Optional[KeyValueStore] = None,
        registry: Optional[HandlerRegistry] = None,
    ):
        self.metrics_store = metrics_store
        self.classifier = classifier or IntentClassifier()
        self.policy_engine = policy_engine or ResponsePolicyEngine()
        self.llm = llm or llm_service
        self.context_store = context_store or SessionContextStore()
        self.history_store = history_store if history_store is not None else InMemoryStore()
        self.registry = registry or default_registry()

    def get_history(self, user_id: str) -> List[Dict[str, str]]:
        """Get conversation history for a user."""
        return list(self.history_store.get(user_id) or [])

    def update_history(self, user_id: str, user_msg: str, assistant_msg: str) -> None:
        """Append one exchange and keep the most recent messages only."""
        history = self.get_history(user_id)
        history.append({"role": "user", "content": user_msg})
        history.append({"role": "assistant", "content": assistant_msg})

        max_messages = settings.chat.max_history_messages
        if len(history) > max_messages:
            history = history[-max_messages:]
        self.history_store.set(user_id, history)

    def build_system_prompt(self, instructions: str, template: str) -> str:
        parts = [PERSONA_PROMPT, f"Response style: {instructions}"]
        if template:
            parts.append(
                "Verified data (treat as ground truth, keep every number and date exactly as written):\n"
                f"{template}"
            )
        return "\n\n".join(parts)

    def _fallback(self, response: ChatResponse, warning: str, status: Optional[int]) -> Dict[str, Any]:
        response.answer = FALLBACK_REPLY
        response.warning = warning
        response.status = status
        return response.to_dict()

    async def chat(
        self,
        message: str,
        user_id: Optional[str] = None,
        verbosity: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Handle a chat message.

        Args:
            message: The user's message
            user_id: Stable user identifier; anonymous when absent
            verbosity: "brief", "detailed" or None (falls back to config)

        Returns:
            Dict with reply, intent, template, model and classification. Failed
            model calls return the fallback reply with "warning" and "status".

        Raises:
            ValueError: if the message is empty
        """
        if not message or not message.strip():
            raise ValueError("message is required")
        message = message.strip()
        user_id = user_id or settings.chat.anonymous_user_id
        history = self.get_history(user_id)

        # Stage 1: Intent detection
        session = self.context_store.get(user_id)
        intent = await self.classifier.detect(message, session)
        if intent is not None:
            self.context_store.update_from_intent(user_id, intent)

        context = ChatContext(
            user_id=user_id,
            message=message,
            intent=intent,
            metrics_store=self.metrics_store,
            history=history,
        )
        logger.info(f"[Orchestrator] Intent: {context.action}")

        # Stage 2: Handler dispatch
        handler = self.registry.get_handler(context.action)
        if handler:
            logger.debug(f"[Orchestrator] Dispatching to handler: {handler.__class__.__name__}")
            response = handler.handle(context)
        else:
            response = ChatResponse(user_id=user_id, message=message)
        response.intent = intent.to_dict() if intent else None

        if response.is_final:
            self.update_history(user_id, message, response.answer)
            return response.to_dict()

        # Stage 3: Model reply shaped by the response policy
        if not self.llm.configured:
            logger.error("[Orchestrator] Missing GROQ_API_KEY")
            return self._fallback(response, "Chat service is not configured", 503)

        policy = await self.policy_engine.derive_policy(
            message,
            len(message),
            has_resolved_data=response.has_resolved_data,
            user_preference=verbosity or settings.user.verbosity,
        )
        response.classification = policy.classification

        system_prompt = self.build_system_prompt(format_prompt_instructions(policy), response.context_for_llm)
        messages = [{"role": "system", "content": system_prompt}, *history, {"role": "user", "content": message}]

        try:
            result = await self.llm.complete_with_fallback(messages)
        except LLMNotConfiguredError:
            return self._fallback(response, "Chat service is not configured", 503)
        except LLMServiceError as e:
            logger.error(f"[Orchestrator] All models failed: {e}")
            return self._fallback(response, e.message or "AI service unavailable", e.status_code)

        reply = sanitize_phrases(result["content"])
        if intent is None:
            reply = enforce_brief_style(reply)
        reply = enforce_constraints(reply, policy)

        response.answer = reply
        response.model = result["model"]
        self.update_history(user_id, message, reply)
        return response.to_dict()
