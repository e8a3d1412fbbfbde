"""
CareVibe Test Configuration

Shared fixtures and configuration for pytest.
"""

from datetime import date, datetime, timedelta
from typing import List
from unittest.mock import AsyncMock, MagicMock

import pytest

from carevibe.services.llm import LLMService
from carevibe.services.metrics_store import InMemoryMetricsStore


# Reference "today" used across the suite
TODAY = date(2025, 11, 3)
USER = "demo-user"


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )


# =============================================================================
# Mock Fixtures
# =============================================================================

@pytest.fixture
def mock_llm():
    """LLM service double; nothing reaches the network."""
    mock = MagicMock(spec=LLMService)
    mock.configured = True
    mock.complete_json = AsyncMock(return_value=None)
    mock.complete_with_fallback = AsyncMock(
        return_value={"model": "llama-3.1-8b-instant", "content": "Test response."}
    )
    return mock


@pytest.fixture
def mock_completion():
    """Factory for fake chat-completions responses."""
    def _make(content: str = "Hello!"):
        response = MagicMock()
        response.choices = [MagicMock()]
        response.choices[0].message.content = content
        return response
    return _make


# =============================================================================
# Sample Data Fixtures
# =============================================================================

@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def sample_documents() -> List[dict]:
    """Ten days of metrics for one user, newest on TODAY."""
    documents = []
    for offset in range(10):
        day = datetime.combine(TODAY - timedelta(days=offset), datetime.min.time()) + timedelta(hours=8)
        documents.append({
            "userUid": USER,
            "date": day.isoformat(),
            "weightKg": 70.0 + offset * 0.5,
            "stepCount": 8000 - offset * 300,
            "sleepDurationHr": 7.5,
            "stressLevel": 30,
        })
    # A month back, for "a month ago" lookups
    documents.append({
        "userUid": USER,
        "date": "2025-10-03T08:00:00",
        "bmi": 22.8,
        "weightKg": 72.4,
    })
    # Another user's data must never leak into lookups
    documents.append({
        "userUid": "someone-else",
        "date": TODAY.isoformat(),
        "weightKg": 99.9,
    })
    return documents


@pytest.fixture
def metrics_store(sample_documents) -> InMemoryMetricsStore:
    return InMemoryMetricsStore.from_documents(sample_documents, today=lambda: TODAY)
