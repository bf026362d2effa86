"""
Tests for structural relations between stems and branches.
"""

import pytest

from saju.bazi import Element, Position
from saju.relations import (
    Category,
    CombineKind,
    Layer,
    PunishmentKind,
    Relation,
    Scope,
    check_branch_pair,
    check_stem_pair,
    detect_relations,
    directional_combine,
    fortune_interactions,
    half_combine,
    triple_combine,
    triple_punishment,
)

from conftest import make_chart


class TestPairLookups:
    """Test pairwise tables."""

    def test_stem_symmetry(self) -> None:
        for a in range(10):
            for b in range(10):
                assert check_stem_pair(a, b) == check_stem_pair(b, a)

    def test_branch_symmetry(self) -> None:
        for a in range(12):
            for b in range(12):
                assert check_branch_pair(a, b) == check_branch_pair(b, a)
                assert half_combine(a, b) == half_combine(b, a)

    @pytest.mark.parametrize(
        "a,b,element",
        [(0, 5, Element.EARTH), (1, 6, Element.METAL), (2, 7, Element.WATER),
         (3, 8, Element.WOOD), (4, 9, Element.FIRE)],
    )
    def test_stem_combinations(self, a: int, b: int, element: Element) -> None:
        match = check_stem_pair(a, b)
        assert match.category is Category.COMBINE
        assert match.kind is CombineKind.STEM
        assert match.element is element

    def test_stem_clash(self) -> None:
        assert check_stem_pair(0, 6).category is Category.CLASH
        assert check_stem_pair(4, 5) is None

    def test_snake_monkey_overlap(self) -> None:
        """巳申 is a six combine, a punishment and a destruction at once."""
        categories = [m.category for m in check_branch_pair(5, 8)]
        assert categories == [Category.COMBINE, Category.PUNISHMENT, Category.BREAK]

    def test_self_punishment(self) -> None:
        """Only 辰 午 酉 亥 punish themselves."""
        assert check_branch_pair(4, 4)[0].kind is PunishmentKind.SELF
        assert check_branch_pair(0, 0) == []

    def test_rat_rabbit(self) -> None:
        assert check_branch_pair(0, 3)[0].kind is PunishmentKind.RUDE

    def test_half_combine(self) -> None:
        assert half_combine(2, 6) is Element.FIRE
        assert half_combine(2, 10) is None  # neither member is cardinal

    def test_triples(self) -> None:
        assert triple_combine([2, 6, 10]) is Element.FIRE
        assert triple_combine([2, 6]) is None
        assert directional_combine([11, 0, 1]) is Element.WATER
        assert triple_punishment([2, 5, 8]) is PunishmentKind.BULLY
        assert triple_punishment([1, 10, 7]) is PunishmentKind.UNGRATEFUL
        assert triple_punishment([1, 10]) is None


class TestRelation:
    """Test relation validation."""

    def test_combine_needs_element(self) -> None:
        with pytest.raises(ValueError):
            Relation(Category.COMBINE, Scope.PAIRWISE, Layer.STEM,
                     (Position.DAY, Position.MONTH), (0, 5), kind=CombineKind.STEM)

    def test_punishment_needs_kind(self) -> None:
        with pytest.raises(ValueError):
            Relation(Category.PUNISHMENT, Scope.PAIRWISE, Layer.BRANCH,
                     (Position.DAY, Position.MONTH), (0, 3))

    def test_clash_carries_nothing(self) -> None:
        with pytest.raises(ValueError):
            Relation(Category.CLASH, Scope.PAIRWISE, Layer.BRANCH,
                     (Position.DAY, Position.MONTH), (0, 6), element=Element.FIRE)

    def test_describe(self) -> None:
        relation = Relation(Category.COMBINE, Scope.PAIRWISE, Layer.STEM,
                            (Position.HOUR, Position.DAY), (0, 5), Element.EARTH, CombineKind.STEM)
        assert relation.describe() == "시-일간 甲己천간합(土)"
        assert relation.to_dict()["element"] == Element.EARTH.value


class TestDetectRelations:
    """Test whole-chart detection."""

    def test_adjacent_pairs(self, combine_chart) -> None:
        relations = detect_relations(combine_chart)
        summary = [(r.layer, r.category, r.positions) for r in relations]
        assert summary == [
            (Layer.STEM, Category.COMBINE, (Position.HOUR, Position.DAY)),
            (Layer.BRANCH, Category.COMBINE, (Position.HOUR, Position.DAY)),
            (Layer.BRANCH, Category.HARM, (Position.DAY, Position.MONTH)),
            (Layer.STEM, Category.CLASH, (Position.MONTH, Position.YEAR)),
        ]
        assert relations[0].element is Element.EARTH
        assert relations[1].kind is CombineKind.SIX

    def test_without_hour(self, combine_chart) -> None:
        relations = detect_relations(combine_chart, has_hour=False)
        assert [r.category for r in relations] == [Category.HARM, Category.CLASH]

    def test_triple_window(self) -> None:
        """寅午戌 across hour, day and month is a fire three-harmony."""
        chart = make_chart(2, 6, 10, 10)
        triples = [r for r in detect_relations(chart) if r.scope is Scope.TRIPLE]
        assert len(triples) == 1
        assert triples[0].kind is CombineKind.TRIPLE
        assert triples[0].element is Element.FIRE
        assert triples[0].positions == (Position.HOUR, Position.DAY, Position.MONTH)


class TestFortuneInteractions:
    """Test period pillar against natal positions."""

    def test_against_known_chart(self, chart_1990) -> None:
        """乙亥 against 辛巳/庚辰/辛巳/庚午."""
        relations = fortune_interactions(11, chart_1990)
        summary = sorted((r.positions[1].value, r.layer.value, r.category.value) for r in relations)
        assert summary == sorted([
            ("hour", "stem", "충"), ("hour", "branch", "충"),
            ("day", "stem", "합"),
            ("month", "stem", "충"), ("month", "branch", "충"),
            ("year", "stem", "합"),
        ])
        assert all(r.positions[0] is Position.FORTUNE for r in relations)
        combines = [r for r in relations if r.category is Category.COMBINE]
        assert all(r.element is Element.METAL for r in combines)


class TestDistantRelations:
    """Test the optional two-apart branch checks."""

    # 甲子 hour, 丙寅 day, 甲午 month, 戊辰 year: only 子午 two apart
    def test_off_by_default(self) -> None:
        assert detect_relations(make_chart(0, 2, 30, 4)) == []

    def test_distant_clash(self) -> None:
        relations = detect_relations(make_chart(0, 2, 30, 4), include_distant=True)
        assert len(relations) == 1
        assert relations[0].category is Category.CLASH
        assert relations[0].positions == (Position.HOUR, Position.MONTH)
        assert relations[0].indices == (0, 6)

    def test_distant_punishment(self) -> None:
        """寅 day and 巳 year, with 午 between them."""
        chart = make_chart(None, 2, 30, 17)  # 丙寅 day, 甲午 month, 辛巳 year
        distant = [r for r in detect_relations(chart, include_distant=True)
                   if r.positions == (Position.DAY, Position.YEAR)]
        assert [(r.category, r.kind) for r in distant] == [(Category.PUNISHMENT, PunishmentKind.BULLY)]
