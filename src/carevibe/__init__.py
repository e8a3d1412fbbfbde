"""CareVibe - wellness chat pipeline: intents, dates, response policy and templates."""

__version__ = "0.3.0"
