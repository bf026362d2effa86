"""
Tests for the best/worst partner search.
"""

from datetime import date

import pytest

from saju.bazi import ELEMENTS, Position
from saju.cycle import day_index, month_index, year_index
from saju.elements import round_half_up, weigh_pillars
from saju.match import (
    BRANCH_PAIR_TABLE,
    BUCKETS,
    STEM_PAIR_TABLE,
    ElementTables,
    MatchSearch,
    example_birth_date,
    find_best_and_worst_match,
)
from saju.relations import Category


@pytest.fixture(scope="module")
def search(chart_1990) -> MatchSearch:
    return MatchSearch(chart_1990)


@pytest.fixture(scope="module")
def result_1995(search):
    return search.find_for_year(1995)


class TestPairTables:
    def test_stem_table(self) -> None:
        assert STEM_PAIR_TABLE[0][5] is Category.COMBINE
        assert STEM_PAIR_TABLE[6][0] is Category.CLASH
        assert STEM_PAIR_TABLE[0][0] is None

    def test_branch_table_precedence(self) -> None:
        """A six combine outranks everything else for the same pair."""
        assert BRANCH_PAIR_TABLE[5][8] == "six"
        assert BRANCH_PAIR_TABLE[2][6] == "half"
        assert BRANCH_PAIR_TABLE[0][6] == "clash"
        assert BRANCH_PAIR_TABLE[0][5] is None


class TestExampleBirthDate:
    def test_carries_pillars(self) -> None:
        yi = year_index(1995)
        mi = month_index(yi % 10, 1)
        found = example_birth_date(yi, mi, 7, window_start=1995)
        assert day_index(found) == 7
        assert abs((found - date(1995, 2, 15)).days) <= 30

    def test_ox_month_seeds_next_january(self) -> None:
        yi = year_index(1995)
        mi = month_index(yi % 10, 12)
        found = example_birth_date(yi, mi, 0, window_start=1995)
        assert abs((found - date(1996, 1, 15)).days) <= 30


class TestFindForYear:
    """Test the per-year search."""

    def test_histogram_counts_every_candidate(self, result_1995) -> None:
        assert len(result_1995.distribution) == BUCKETS
        assert sum(result_1995.distribution) == result_1995.candidates
        assert 0 < result_1995.candidates <= 720

    def test_best_in_top_bucket(self, result_1995) -> None:
        top = max(i for i, n in enumerate(result_1995.distribution) if n)
        assert min(result_1995.best[0].score // 5, BUCKETS - 1) == top

    def test_worst_in_bottom_bucket(self, result_1995) -> None:
        bottom = min(i for i, n in enumerate(result_1995.distribution) if n)
        assert min(result_1995.worst[0].score // 5, BUCKETS - 1) == bottom

    def test_diversity(self, result_1995) -> None:
        for picks in (result_1995.best, result_1995.worst):
            assert len(picks) == 3
            assert len({c.day for c in picks}) == 3
            assert len({c.month for c in picks}) == 3

    def test_ordering(self, result_1995) -> None:
        best = [c.raw for c in result_1995.best]
        worst = [c.raw for c in result_1995.worst]
        assert best == sorted(best, reverse=True)
        assert worst == sorted(worst)
        assert result_1995.worst[0].raw <= result_1995.best[0].raw

    def test_candidates_are_consistent(self, result_1995) -> None:
        for c in result_1995.best + result_1995.worst:
            assert c.year.index == year_index(1995)
            assert c.month.index == month_index(c.year.stem_index, c.month_number)
            assert c.score == max(0, min(100, round_half_up(50 + c.raw)))
            assert c.raw == c.branch_score + c.stem_score + c.element_score
            assert day_index(c.example) == c.day.index
            assert c.example.year == 1995

    def test_day_averages(self, result_1995) -> None:
        assert len(result_1995.day_averages) == 60
        assert all(0 <= a <= 100 for a in result_1995.day_averages)

    def test_branch_scores_use_reference_day(self, search, chart_1990) -> None:
        """A candidate day branch clashing the reference 辰 day scores the day clash."""
        clash_day = next(i for i in range(60) if i % 12 == 10)  # 戌
        assert search.day_branch_scores[clash_day] == search.settings.compatibility.clash_points[Position.DAY.value]

    def test_workers_match_serial(self, search, result_1995) -> None:
        sharded = search.find_for_year(1995, workers=4)
        assert sharded.to_dict() == result_1995.to_dict()

    def test_one_shot(self, chart_1990, result_1995) -> None:
        assert find_best_and_worst_match(chart_1990, None, 1995).to_dict() == result_1995.to_dict()


class TestScanAllYears:
    def test_scan(self, search) -> None:
        result = search.scan_all_years()
        assert result.candidates == 60 * 60 * 12
        assert sum(result.distribution) == result.candidates
        assert len(result.best) == 10
        assert len({c.day for c in result.best}) == 10
        assert len({c.year for c in result.best}) == 10
        assert len({c.year for c in result.worst}) == 10


class TestElementTables:
    """Test the table-driven three-pillar weigher."""

    @pytest.fixture(scope="class")
    def tables(self) -> ElementTables:
        return ElementTables()

    def test_matches_generic_weigher(self, tables) -> None:
        """Every 1995 candidate weighs the same as the generic cascade."""
        yi = year_index(1995)
        for day in range(60):
            for month_number in range(1, 13):
                mi = month_index(yi % 10, month_number)
                pillars = [(Position.DAY, day), (Position.MONTH, mi), (Position.YEAR, yi)]
                expected, _ = weigh_pillars(pillars, day % 10)
                weights = tables.weights(day, mi, yi)
                assert weights == pytest.approx([expected.weights[e] for e in ELEMENTS])

    def test_interacting_run(self, tables) -> None:
        """己丑 / 甲子 / 庚午: stem combine, six combine, stem clash and branch clash."""
        expected, _ = weigh_pillars([(Position.DAY, 25), (Position.MONTH, 0), (Position.YEAR, 6)], 5)
        assert tables.distribution(25, 0, 6).weights == pytest.approx(expected.weights)
        assert tables.distribution(25, 0, 6).total == pytest.approx(expected.total)

    def test_element_points_use_percentages(self, search) -> None:
        """Excess and deficiency are read from the candidate's percentages, not raw weights."""
        points = search.settings.compatibility
        day, month, year = 25, 0, 6
        distribution = search.tables.distribution(day, month, year)
        excess = {e for e, p in distribution.percentages.items() if p >= points.excess_percent}
        low = [e for e, p in distribution.percentages.items() if p <= points.deficient_percent]
        deficient = low[-1] if low else min(reversed(ELEMENTS), key=lambda e: distribution.percentages[e])

        expected = 0
        if deficient in search.excess:
            expected += points.cross_fill_points
        if search.deficient in (excess or {distribution.ranked()[0]}):
            expected += points.cross_fill_points
        expected += points.shared_deficiency_points * len(set(low) & search.deficient_set)
        assert search._element_points(day, month, year) == expected
