"""Chat intent handlers."""
from carevibe.services.chat.handlers.base import IntentHandler, ChatResponse, ChatContext
from carevibe.services.chat.handlers.metrics import MetricQueryHandler
from carevibe.services.chat.handlers.wellness import GoalHandler, GreetingHandler, SymptomHandler

__all__ = [
    # Base classes
    'IntentHandler',
    'ChatResponse',
    'ChatContext',
    # Handlers
    'GreetingHandler',
    'SymptomHandler',
    'GoalHandler',
    'MetricQueryHandler',
]
