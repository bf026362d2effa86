"""
Tests for sexagenary index arithmetic.
"""

from datetime import date, timedelta

import pytest

from saju.cycle import (
    SEXAGENARY_CYCLE,
    date_for_day_index,
    day_index,
    gapja_index,
    hour_branch,
    hour_index,
    month_branch,
    month_index,
    month_number_for_branch,
    year_for_index,
    year_index,
)
from saju.errors import PillarLookupMiss


class TestDayIndex:
    """Test day pillar arithmetic."""

    def test_epoch(self) -> None:
        """2000-01-01 is 戊午 (54)."""
        assert day_index(date(2000, 1, 1)) == 54

    def test_gapja_day(self) -> None:
        """1949-10-01 is a 甲子 day."""
        assert day_index(date(1949, 10, 1)) == 0

    def test_advances_one_per_day(self) -> None:
        """Consecutive days step the index by one, modulo 60."""
        start = date(1899, 12, 25)
        for i in range(400):
            d = start + timedelta(days=i)
            assert day_index(d + timedelta(days=1)) == (day_index(d) + 1) % 60

    @pytest.mark.parametrize("index", [0, 17, 29, 30, 31, 59])
    def test_date_for_day_index(self, index: int) -> None:
        """The found date carries the index and lies within a month of the seed."""
        near = date(1995, 3, 15)
        found = date_for_day_index(index, near)
        assert day_index(found) == index
        assert -29 <= (found - near).days <= 30


class TestYearIndex:
    """Test year pillar arithmetic."""

    @pytest.mark.parametrize("year,expected", [(1984, 0), (2002, 18), (1990, 6), (2024, 40), (2026, 42)])
    def test_known_years(self, year: int, expected: int) -> None:
        assert year_index(year) == expected

    def test_year_for_index(self) -> None:
        """First year at or after the window start with a given index."""
        assert year_for_index(0, 1960) == 1984
        assert year_for_index(year_index(1960), 1960) == 1960
        assert year_for_index(year_index(1959), 1960) == 2019


class TestMonthIndex:
    """Test month pillar arithmetic."""

    def test_tiger_month_of_gap_year(self) -> None:
        """A 甲 year opens with a 丙寅 month."""
        assert month_index(0, 1) == 2

    def test_known_month(self) -> None:
        """The fourth month of a 庚 year is 辛巳."""
        assert month_index(6, 4) == 17

    def test_branch_round_trip(self) -> None:
        for n in range(1, 13):
            assert month_number_for_branch(month_branch(n)) == n
        assert month_branch(1) == 2
        assert month_branch(12) == 1

    @pytest.mark.parametrize("month_number", [0, 13])
    def test_out_of_range(self, month_number: int) -> None:
        with pytest.raises(ValueError):
            month_index(0, month_number)


class TestHour:
    """Test hour buckets."""

    @pytest.mark.parametrize(
        "hour,minute,expected",
        [
            (23, 30, 0),
            (0, 0, 0),
            (1, 29, 0),
            (1, 30, 1),
            (11, 30, 6),
            (10, 30, 5),
            (21, 29, 10),
            (23, 29, 11),
        ],
    )
    def test_hour_branch(self, hour: int, minute: int, expected: int) -> None:
        assert hour_branch(hour, minute) == expected

    def test_hour_stem(self) -> None:
        """A 甲 or 己 day starts with a 甲子 hour."""
        assert hour_index(0, 0) == 0
        assert hour_index(5, 0) == 0
        assert hour_index(6, 5) == 17


class TestGapjaIndex:
    """Test the cycle lookup."""

    def test_all_pairs(self) -> None:
        for i, (stem, branch) in enumerate(SEXAGENARY_CYCLE):
            assert gapja_index(stem, branch) == i

    def test_mixed_parity(self) -> None:
        with pytest.raises(PillarLookupMiss) as exc:
            gapja_index(0, 1)
        assert exc.value.stem == 0
        assert exc.value.branch == 1
        assert isinstance(exc.value, LookupError)
