"""
Tests for the reading context payload and the CLI wrapper.
"""

import json

import pytest

from saju.context import generate_reading_context, parse_birth
from saju.errors import InvalidDate
from saju.run import main


class TestParseBirth:
    def test_date_only(self) -> None:
        assert parse_birth("1990-05-15") == (1990, 5, 15, None, None)

    def test_date_and_time(self) -> None:
        assert parse_birth("1990-05-15 10:30") == (1990, 5, 15, 10, 30)

    def test_garbage(self) -> None:
        with pytest.raises(InvalidDate):
            parse_birth("15/05/1990")


class TestGenerateReadingContext:
    """Test the assembled payload."""

    @pytest.fixture(scope="class")
    def context(self) -> dict:
        return generate_reading_context("1990-05-15 10:30", "m", "2026-03-10")

    def test_serialisable(self, context: dict) -> None:
        assert json.loads(json.dumps(context, ensure_ascii=False)) == context

    def test_natal(self, context: dict) -> None:
        natal = context["natal"]
        assert set(natal["chart"]["pillars"]) == {"hour", "day", "month", "year"}
        assert natal["favorable"]["primary"] == "fire"
        assert sum(natal["elements"]["percentages"].values()) in (99, 100, 101)

    def test_fortune(self, context: dict) -> None:
        fortune = context["fortune"]
        assert fortune["saeun"]["calendar_year"] == 2026
        assert fortune["saeun"]["is_current"] is True
        assert len(fortune["wolun"]) == 12
        assert len(fortune["daeun"]["periods"]) == 12
        assert fortune["current_daeun"]["is_current"] is True

    def test_without_gender_or_time(self) -> None:
        context = generate_reading_context("1990-05-15", None, "2026-03-10")
        assert context["natal"]["chart"]["has_hour"] is False
        assert context["fortune"]["daeun"] is None
        assert context["fortune"]["daeun_interactions"] == []

    def test_bad_target_date(self) -> None:
        with pytest.raises(InvalidDate):
            generate_reading_context("1990-05-15", None, "tomorrow")


class TestCli:
    def test_prints_json(self, capsys) -> None:
        main(["--birth-date", "1990-05-15", "--birth-time", "10:30", "--gender", "f", "--date", "2026-03-10"])
        data = json.loads(capsys.readouterr().out)
        assert data["birth"]["gender"] == "f"
        assert data["fortune"]["daeun"]["forward"] is False
