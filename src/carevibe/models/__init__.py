"""Data models for intents, metrics and remote JSON replies."""
