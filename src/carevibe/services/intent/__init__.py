"""Intent detection."""
from carevibe.services.intent.classifier import IntentClassifier, intent_classifier

__all__ = ["IntentClassifier", "intent_classifier"]
