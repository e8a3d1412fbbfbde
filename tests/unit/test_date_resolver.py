"""Unit tests for DateResolver: deterministic rules and the model fallback."""
import asyncio
from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from carevibe.services.date_resolver import (
    STRATEGY_DETERMINISTIC,
    STRATEGY_MODEL,
    DateResolver,
    DeterministicDateParser,
    normalize_message,
)
from carevibe.services.llm import LLMService


REF = date(2025, 11, 3)  # a Monday


class TestNormalizeMessage:
    """Tests for the typo and abbreviation substitutions."""

    @pytest.mark.parametrize("raw,expected", [
        ("a mouth ago", "a month ago"),
        ("2 mnth back", "2 month ago"),
        ("my weight yday", "my weight yesterday"),
        ("TMRW", "tomorrow"),
        ("3 wk ago", "3 week ago"),
        ("5 dy ago", "5 day ago"),
    ])
    def test_substitutions(self, raw, expected):
        assert normalize_message(raw) == expected

    def test_whole_words_only(self):
        assert normalize_message("hrv monthly") == "hrv monthly"


class TestDeterministicParser:
    """Tests for the rule-based parser, anchored at REF."""

    def setup_method(self):
        self.parser = DeterministicDateParser()

    def parse(self, text):
        return self.parser.parse(normalize_message(text), REF)

    @pytest.mark.parametrize("text,expected", [
        ("what was my bmi a month ago", date(2025, 10, 3)),
        ("weight 30 days ago", date(2025, 10, 4)),
        ("two weeks ago", date(2025, 10, 20)),
        ("a year ago", date(2024, 11, 3)),
        ("yesterday", date(2025, 11, 2)),
        ("the day before yesterday", date(2025, 11, 1)),
        ("today", REF),
        ("on 2025-10-26", date(2025, 10, 26)),
        ("on October 26", date(2025, 10, 26)),
        ("on 26 Oct 2024", date(2024, 10, 26)),
        ("last friday", date(2025, 10, 31)),
        ("on wednesday", date(2025, 10, 29)),
        ("last monday", date(2025, 10, 27)),
    ])
    def test_points(self, text, expected):
        result = self.parse(text)
        assert result is not None
        assert result.kind == "point"
        assert result.start == result.end == expected
        assert result.strategy == STRATEGY_DETERMINISTIC
        assert result.confidence >= 0.8

    def test_yearless_future_date_prefers_past(self):
        result = self.parse("how did I sleep on December 25")
        assert result.start == date(2024, 12, 25)

    def test_range(self):
        result = self.parse("steps from Oct 1 to Oct 5")
        assert result.kind == "range"
        assert result.start == date(2025, 10, 1)
        assert result.end == date(2025, 10, 5)

    def test_range_is_ordered(self):
        result = self.parse("between 2025-10-10 and 2025-10-01")
        assert result.start == date(2025, 10, 1)
        assert result.end == date(2025, 10, 10)

    def test_numeric_date_is_low_confidence(self):
        result = self.parse("my weight on 10/3")
        assert result is not None
        assert result.confidence < 0.8

    def test_invalid_iso_is_ignored(self):
        assert self.parse("2025-02-30") is None

    def test_nothing_found(self):
        assert self.parse("how am I doing") is None


@pytest.mark.asyncio
class TestDateResolver:
    """Tests for resolve(): deterministic first, one model call otherwise."""

    async def test_deterministic_skips_model(self, mock_llm):
        resolver = DateResolver(llm=mock_llm)

        result = await resolver.resolve("a month ago", reference_date=REF)

        assert result.start == date(2025, 10, 3)
        assert result.start < REF
        assert result.strategy == STRATEGY_DETERMINISTIC
        mock_llm.complete_json.assert_not_awaited()

    async def test_model_fallback_point(self, mock_llm):
        mock_llm.complete_json.return_value = {
            "kind": "point", "startISO": "2025-09-01", "endISO": "2025-09-01",
            "granularity": "day", "confidence": 0.85,
        }
        resolver = DateResolver(llm=mock_llm)

        result = await resolver.resolve("around labour day", reference_date=REF)

        assert result.kind == "point"
        assert result.start == result.end == date(2025, 9, 1)
        assert result.strategy == STRATEGY_MODEL
        assert result.confidence == 0.85
        mock_llm.complete_json.assert_awaited_once()
        system_prompt = mock_llm.complete_json.await_args.args[0]
        assert "2025-11-03" in system_prompt

    async def test_model_range_is_swapped(self, mock_llm):
        mock_llm.complete_json.return_value = {
            "kind": "range", "startISO": "2025-10-31", "endISO": "2025-10-27",
        }
        resolver = DateResolver(llm=mock_llm)

        result = await resolver.resolve("the week before", reference_date=REF)

        assert result.kind == "range"
        assert result.start == date(2025, 10, 27)
        assert result.end == date(2025, 10, 31)
        assert result.confidence == 0.7

    async def test_point_ignores_model_end_date(self, mock_llm):
        mock_llm.complete_json.return_value = {
            "kind": "point", "startISO": "2025-10-01", "endISO": "2025-10-05", "confidence": 0.9,
        }
        resolver = DateResolver(llm=mock_llm)

        result = await resolver.resolve("around the start of october", reference_date=REF)

        assert result.start == result.end == date(2025, 10, 1)

    async def test_reply_without_kind_is_none(self, mock_llm):
        mock_llm.complete_json.return_value = {"startISO": "2025-10-01", "endISO": "2025-10-01"}
        resolver = DateResolver(llm=mock_llm)

        assert await resolver.resolve("some vague time", reference_date=REF) is None

    async def test_low_confidence_tries_model_once(self, mock_llm):
        resolver = DateResolver(llm=mock_llm)

        result = await resolver.resolve("weight on 10/3", reference_date=REF)

        assert result is None
        mock_llm.complete_json.assert_awaited_once()

    @pytest.mark.parametrize("payload", [
        None,
        {"kind": "none", "confidence": 0.0},
        {"kind": "point"},
        {"kind": "point", "startISO": "not-a-date"},
        {"kind": "sometime", "startISO": "2025-10-01"},
        {"kind": "point", "startISO": "2025-10-01", "confidence": 7},
    ])
    async def test_unusable_model_reply_is_none(self, mock_llm, payload):
        mock_llm.complete_json.return_value = payload
        resolver = DateResolver(llm=mock_llm)

        assert await resolver.resolve("some vague time", reference_date=REF) is None

    async def test_empty_message(self, mock_llm):
        resolver = DateResolver(llm=mock_llm)
        assert await resolver.resolve("", reference_date=REF) is None
        mock_llm.complete_json.assert_not_awaited()

    async def test_model_disabled(self, mock_llm):
        resolver = DateResolver(llm=mock_llm, use_model=False)
        assert await resolver.resolve("some vague time", reference_date=REF) is None
        mock_llm.complete_json.assert_not_awaited()


class TestResolverNeverRaises:
    """Transport failures from the model client end as "not found"."""

    def test_failing_client_across_event_loops(self):
        service = LLMService(base_url="http://test/v1", api_key="test-key")
        resolver = DateResolver(llm=service)

        with patch("carevibe.services.llm.AsyncOpenAI") as mock_client_class:
            mock_client = MagicMock()
            mock_client.chat.completions.create = AsyncMock(side_effect=RuntimeError("Event loop is closed"))
            mock_client_class.return_value = mock_client

            first = asyncio.run(resolver.resolve("sometime recently", reference_date=REF))
            second = asyncio.run(resolver.resolve("sometime recently", reference_date=REF))

        assert first is None
        assert second is None
        assert mock_client.chat.completions.create.await_count == 2
