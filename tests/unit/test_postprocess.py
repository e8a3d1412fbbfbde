"""Unit tests for reply post-processing."""
from carevibe.services.chat.postprocess import enforce_brief_style, sanitize_phrases


class TestSanitizePhrases:
    def test_removes_disclaimers(self):
        text = "As an AI, I cannot diagnose this. Drink water and rest."
        result = sanitize_phrases(text)
        assert "As an AI" not in result
        assert "diagnose" not in result
        assert result.endswith("Drink water and rest.")

    def test_keeps_line_breaks(self):
        assert sanitize_phrases("First point.\n\n- Second  point") == "First point.\n\n- Second point"

    def test_collapses_dot_runs(self):
        assert sanitize_phrases("Rest well. . .") == "Rest well."

    def test_empty(self):
        assert sanitize_phrases("") == ""


class TestEnforceBriefStyle:
    def test_keeps_first_lines(self):
        text = "one\n\ntwo\nthree\nfour\nfive"
        assert enforce_brief_style(text, max_lines=3, max_chars=100) == "one\ntwo\nthree"

    def test_caps_length_without_trailing_punctuation(self):
        result = enforce_brief_style("Sleep more, walk daily, and drink water.", max_lines=4, max_chars=12)
        assert result == "Sleep more"

    def test_short_text_unchanged(self):
        assert enforce_brief_style("Fine.", max_lines=4, max_chars=100) == "Fine."

    def test_empty(self):
        assert enforce_brief_style("") == ""
