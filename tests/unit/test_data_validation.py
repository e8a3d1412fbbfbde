"""Unit tests for metric document validation and rolling averages."""
from datetime import date

import pytest

from carevibe.services.data_validation import rolling_averages, validate_documents


TODAY = date(2025, 11, 3)


class TestValidateDocuments:
    def test_clean_documents(self, sample_documents):
        report = validate_documents(sample_documents)
        assert report.ok
        assert report.total == len(sample_documents)

    def test_missing_keys(self):
        report = validate_documents([{"weightKg": 70}])
        fields = sorted(issue.field for issue in report.issues)
        assert fields == ["date", "userUid"]
        assert not report.ok

    @pytest.mark.parametrize("name,value", [
        ("weightKg", 5),
        ("bmi", 75),
        ("sleepDurationHr", 25),
        ("restingHeartRateBpm", 250),
        ("spo2Percent", 40),
        ("bmi", "high"),
    ])
    def test_out_of_range(self, name, value):
        report = validate_documents([{"userUid": "u1", "date": "2025-11-01", name: value}])
        assert len(report.issues) == 1
        issue = report.issues[0]
        assert issue.index == 0
        assert issue.field == name
        assert issue.value == value

    def test_bounds_are_inclusive(self):
        report = validate_documents([{"userUid": "u1", "date": "2025-11-01", "spo2Percent": 100, "bmi": 10}])
        assert report.ok


class TestRollingAverages:
    """Tests for the derived 7-day averages."""

    def test_seven_day_window(self, sample_documents):
        averages = rolling_averages(sample_documents, "demo-user", TODAY)

        # Days 0..7 inclusive fall on or after the cutoff
        expected_steps = sum(8000 - offset * 300 for offset in range(8)) / 8
        assert averages["stepCount"] == pytest.approx(expected_steps)
        assert averages["sleepDurationHr"] == pytest.approx(7.5)
        assert averages["stressLevel"] == pytest.approx(30)

    def test_unknown_user(self, sample_documents):
        averages = rolling_averages(sample_documents, "nobody", TODAY)
        assert averages == {"stepCount": None, "sleepDurationHr": None, "stressLevel": None}

    def test_unparseable_dates_are_skipped(self):
        documents = [
            {"userUid": "u1", "date": "garbage", "stepCount": 99999},
            {"userUid": "u1", "date": "2025-11-02T09:00:00Z", "stepCount": 5000},
        ]
        assert rolling_averages(documents, "u1", TODAY)["stepCount"] == 5000
