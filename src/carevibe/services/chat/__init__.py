"""Chat service package.

The ChatOrchestrator coordinates:
1. Intent detection (via IntentClassifier)
2. Handler dispatch (via HandlerRegistry)
3. Conversation management
4. Response shaping (via ResponsePolicyEngine)
"""
from carevibe.services.chat.orchestrator import ChatOrchestrator, HandlerRegistry
from carevibe.services.chat.handlers.base import IntentHandler, ChatContext, ChatResponse

__all__ = [
    'ChatOrchestrator',
    'HandlerRegistry',
    'IntentHandler',
    'ChatContext',
    'ChatResponse',
]
