"""
Tests for the CareVibe CLI

Runs the commands in-process with Typer's CliRunner; nothing reaches the network.
"""

import json
from unittest.mock import AsyncMock, patch

import pytest
from typer.testing import CliRunner

from carevibe import __version__
from carevibe.cli import app


runner = CliRunner()


class TestCLIBasics:
    """Basic CLI tests."""

    def test_cli_help(self):
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        assert "resolve-date" in result.stdout
        assert "chat" in result.stdout

    def test_cli_version(self):
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert f"CareVibe {__version__}" in result.stdout


class TestPipelineCommands:
    """Tests for the commands that run pipeline stages offline."""

    def test_resolve_date(self):
        result = runner.invoke(app, ["resolve-date", "a month ago", "--reference", "2025-11-03", "--no-model"])

        assert result.exit_code == 0
        assert "2025-10-03" in result.stdout
        assert "deterministic" in result.stdout

    def test_resolve_date_nothing_found(self):
        result = runner.invoke(app, ["resolve-date", "how am I doing", "--no-model"])

        assert result.exit_code == 1
        assert "No date found" in result.stdout

    def test_invalid_reference(self):
        result = runner.invoke(app, ["resolve-date", "yesterday", "--reference", "03/11/2025"])

        assert result.exit_code == 1
        assert "Invalid reference date" in result.stdout

    def test_intent_literal_date(self):
        result = runner.invoke(app, ["intent", "what was my weight yesterday", "-r", "2025-11-03"])

        assert result.exit_code == 0
        assert "metric_on_date" in result.stdout
        assert "2025-11-02" in result.stdout

    def test_intent_greeting(self):
        result = runner.invoke(app, ["intent", "hello"])

        assert result.exit_code == 0
        assert "greeting" in result.stdout

    def test_classify_guidance(self):
        result = runner.invoke(app, ["classify", "How can I improve my sleep?", "--verbosity", "brief"])

        assert result.exit_code == 0
        assert "guidance" in result.stdout


class TestDataCommands:
    """Tests for validate-data and test-llm."""

    @pytest.fixture
    def write_documents(self, tmp_path):
        def _write(documents):
            path = tmp_path / "metrics.json"
            path.write_text(json.dumps(documents))
            return str(path)
        return _write

    def test_validate_clean_file(self, write_documents, sample_documents):
        result = runner.invoke(app, ["validate-data", write_documents(sample_documents)])

        assert result.exit_code == 0
        assert "passed validation" in result.stdout

    def test_validate_reports_issues(self, write_documents):
        path = write_documents({"metrics": [{"userUid": "u1", "date": "2025-11-01", "bmi": 90}]})

        result = runner.invoke(app, ["validate-data", path])

        assert result.exit_code == 1
        assert "bmi" in result.stdout

    def test_validate_missing_file(self, tmp_path):
        result = runner.invoke(app, ["validate-data", str(tmp_path / "nope.json")])

        assert result.exit_code == 1

    def test_llm_without_key(self):
        with patch("carevibe.cli.llm_service") as mock_service:
            mock_service.configured = False

            result = runner.invoke(app, ["test-llm"])

        assert result.exit_code == 1
        assert "GROQ_API_KEY" in result.stdout


class TestChatCommand:
    """Tests for the chat command's event loop handling."""

    def test_interactive_session_answers_every_message(self):
        reply = {"reply": "Hello!", "intent": {"type": "greeting"}}
        with patch("carevibe.cli.ChatOrchestrator") as mock_orchestrator_class, \
                patch("carevibe.cli.llm_service") as mock_service:
            mock_orchestrator = mock_orchestrator_class.return_value
            mock_orchestrator.chat = AsyncMock(return_value=reply)
            mock_service.close = AsyncMock()

            result = runner.invoke(app, ["chat", "--user", "u1"], input="hi\nhow did I sleep\nexit\n")

        assert result.exit_code == 0
        assert mock_orchestrator.chat.await_count == 2
        assert result.stdout.count("Hello!") == 2
        mock_service.close.assert_awaited_once()

    def test_single_message_closes_client(self):
        with patch("carevibe.cli.ChatOrchestrator") as mock_orchestrator_class, \
                patch("carevibe.cli.llm_service") as mock_service:
            mock_orchestrator_class.return_value.chat = AsyncMock(return_value={"reply": "Hi there"})
            mock_service.close = AsyncMock()

            result = runner.invoke(app, ["chat", "hello"])

        assert result.exit_code == 0
        assert "Hi there" in result.stdout
        mock_service.close.assert_awaited_once()
