"""
Structural relations between stems and branches (합충형파해).

All tables are fixed and keyed by frozensets, so every pair or triple
lookup is independent of argument order.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Union

from saju.bazi import (
    Chart, EARTHLY_BRANCHES, Element, HEAVENLY_STEMS, Pillar, Position,
)


# ============================================================
# RELATION TYPES
# ============================================================

class Category(Enum):
    COMBINE = "합"
    CLASH = "충"
    PUNISHMENT = "형"
    BREAK = "파"
    HARM = "해"


class Scope(Enum):
    PAIRWISE = "pairwise"
    TRIPLE = "triple"


class Layer(Enum):
    STEM = "stem"
    BRANCH = "branch"


class CombineKind(Enum):
    STEM = "천간합"
    SIX = "육합"
    HALF = "반합"
    TRIPLE = "삼합"
    DIRECTIONAL = "방합"


class PunishmentKind(Enum):
    BULLY = "지세지형"       # 寅巳申
    UNGRATEFUL = "무은지형"  # 丑戌未
    RUDE = "무례지형"        # 子卯
    SELF = "자형"            # 辰辰 午午 酉酉 亥亥


@dataclass(frozen=True)
class PairMatch:
    category: Category
    kind: Optional[Union[CombineKind, PunishmentKind]] = None
    element: Optional[Element] = None


@dataclass(frozen=True)
class Relation:
    category: Category
    scope: Scope
    layer: Layer
    positions: tuple[Position, ...]
    indices: tuple[int, ...]  # stem or branch indices, aligned with positions
    element: Optional[Element] = None
    kind: Optional[Union[CombineKind, PunishmentKind]] = None

    def __post_init__(self):
        if self.category is Category.COMBINE:
            if self.element is None or not isinstance(self.kind, CombineKind):
                raise ValueError("A combine relation needs a resulting element and a combine kind")
        elif self.category is Category.PUNISHMENT:
            if not isinstance(self.kind, PunishmentKind):
                raise ValueError("A punishment relation needs a punishment kind")
        elif self.element is not None or self.kind is not None:
            raise ValueError(f"{self.category.name} relations carry no element or kind")

    @property
    def glyphs(self) -> str:
        table = HEAVENLY_STEMS if self.layer is Layer.STEM else EARTHLY_BRANCHES
        return "".join(table[i].chinese for i in self.indices)

    def describe(self) -> str:
        labels = "-".join(POSITION_LABELS[p] for p in self.positions)
        suffix = "간" if self.layer is Layer.STEM else "지"
        name = self.kind.value if self.kind is not None else self.category.value
        result = f"({ELEMENT_HANJA[self.element]})" if self.element is not None else ""
        return f"{labels}{suffix} {self.glyphs}{name}{result}"

    def to_dict(self):
        return {
            "category": self.category.value,
            "scope": self.scope.value,
            "layer": self.layer.value,
            "positions": [p.value for p in self.positions],
            "indices": list(self.indices),
            "element": self.element.value if self.element is not None else None,
            "kind": self.kind.value if self.kind is not None else None,
            "description": self.describe(),
        }


POSITION_LABELS = {
    Position.HOUR: "시",
    Position.DAY: "일",
    Position.MONTH: "월",
    Position.YEAR: "년",
    Position.FORTUNE: "운",
}

ELEMENT_HANJA = {
    Element.WOOD: "木",
    Element.FIRE: "火",
    Element.EARTH: "土",
    Element.METAL: "金",
    Element.WATER: "水",
}


# ============================================================
# STEM TABLES
# ============================================================

STEM_COMBINATIONS = {
    frozenset({0, 5}): Element.EARTH,   # 甲己
    frozenset({1, 6}): Element.METAL,   # 乙庚
    frozenset({2, 7}): Element.WATER,   # 丙辛
    frozenset({3, 8}): Element.WOOD,    # 丁壬
    frozenset({4, 9}): Element.FIRE,    # 戊癸
}

STEM_CLASHES = {
    frozenset({0, 6}),  # 甲庚
    frozenset({1, 7}),  # 乙辛
    frozenset({2, 8}),  # 丙壬
    frozenset({3, 9}),  # 丁癸
}


# ============================================================
# BRANCH TABLES
# ============================================================

# Six Combinations (육합)
SIX_COMBINATIONS = {
    frozenset({0, 1}): Element.EARTH,    # 子丑
    frozenset({2, 11}): Element.WOOD,    # 寅亥
    frozenset({3, 10}): Element.FIRE,    # 卯戌
    frozenset({4, 9}): Element.METAL,    # 辰酉
    frozenset({5, 8}): Element.WATER,    # 巳申
    frozenset({6, 7}): Element.FIRE,     # 午未
}

# Six Clashes (육충)
SIX_CLASHES = {
    frozenset({0, 6}), frozenset({1, 7}), frozenset({2, 8}),
    frozenset({3, 9}), frozenset({4, 10}), frozenset({5, 11}),
}

PUNISHMENT_PAIRS = {
    frozenset({2, 5}): PunishmentKind.BULLY,        # 寅巳
    frozenset({5, 8}): PunishmentKind.BULLY,        # 巳申
    frozenset({2, 8}): PunishmentKind.BULLY,        # 寅申
    frozenset({1, 10}): PunishmentKind.UNGRATEFUL,  # 丑戌
    frozenset({10, 7}): PunishmentKind.UNGRATEFUL,  # 戌未
    frozenset({1, 7}): PunishmentKind.UNGRATEFUL,   # 丑未
    frozenset({0, 3}): PunishmentKind.RUDE,         # 子卯
}

# A branch punishes itself only when it meets its own kind
SELF_PUNISHMENT = frozenset({4, 6, 9, 11})

# Destructions (파)
DESTRUCTIONS = {
    frozenset({0, 9}), frozenset({1, 4}), frozenset({2, 11}),
    frozenset({3, 6}), frozenset({5, 8}), frozenset({10, 7}),
}

# Six Harms (해)
SIX_HARMS = {
    frozenset({0, 7}), frozenset({1, 6}), frozenset({2, 5}),
    frozenset({3, 4}), frozenset({8, 11}), frozenset({9, 10}),
}

# Three Harmony Combinations (삼합)
THREE_HARMONY = {
    frozenset({2, 6, 10}): Element.FIRE,    # 寅午戌
    frozenset({5, 9, 1}): Element.METAL,    # 巳酉丑
    frozenset({8, 0, 4}): Element.WATER,    # 申子辰
    frozenset({11, 3, 7}): Element.WOOD,    # 亥卯未
}

# Directional Combinations (방합)
DIRECTIONAL_COMBINATIONS = {
    frozenset({2, 3, 4}): Element.WOOD,     # 寅卯辰 east
    frozenset({5, 6, 7}): Element.FIRE,     # 巳午未 south
    frozenset({8, 9, 10}): Element.METAL,   # 申酉戌 west
    frozenset({11, 0, 1}): Element.WATER,   # 亥子丑 north
}

TRIPLE_PUNISHMENTS = {
    frozenset({2, 5, 8}): PunishmentKind.BULLY,
    frozenset({1, 10, 7}): PunishmentKind.UNGRATEFUL,
}

# Half combinations (반합): the cardinal member plus one neighbour of a triad
HALF_COMBINATIONS = {
    frozenset({2, 6}): Element.FIRE, frozenset({6, 10}): Element.FIRE,
    frozenset({5, 9}): Element.METAL, frozenset({9, 1}): Element.METAL,
    frozenset({8, 0}): Element.WATER, frozenset({0, 4}): Element.WATER,
    frozenset({11, 3}): Element.WOOD, frozenset({3, 7}): Element.WOOD,
}

# Cardinal (왕지) branches: 子 卯 午 酉
DOMINANT_BRANCHES = frozenset({0, 3, 6, 9})


# ============================================================
# LOOKUPS
# ============================================================

def check_stem_pair(a: int, b: int) -> Optional[PairMatch]:
    """Combine or clash between two stems, if any."""
    key = frozenset({a, b})
    if key in STEM_COMBINATIONS:
        return PairMatch(Category.COMBINE, CombineKind.STEM, STEM_COMBINATIONS[key])
    if key in STEM_CLASHES:
        return PairMatch(Category.CLASH)
    return None


def check_branch_pair(a: int, b: int) -> list[PairMatch]:
    """
    Every pairwise relation between two branches.

    A pair can fall in several categories at once (巳申 is a six
    combination, a punishment and a destruction). Half combinations are
    reported separately by half_combine().
    """
    key = frozenset({a, b})
    matches = []
    if key in SIX_COMBINATIONS:
        matches.append(PairMatch(Category.COMBINE, CombineKind.SIX, SIX_COMBINATIONS[key]))
    if key in SIX_CLASHES:
        matches.append(PairMatch(Category.CLASH))
    if key in PUNISHMENT_PAIRS:
        matches.append(PairMatch(Category.PUNISHMENT, PUNISHMENT_PAIRS[key]))
    elif a == b and a in SELF_PUNISHMENT:
        matches.append(PairMatch(Category.PUNISHMENT, PunishmentKind.SELF))
    if key in DESTRUCTIONS:
        matches.append(PairMatch(Category.BREAK))
    if key in SIX_HARMS:
        matches.append(PairMatch(Category.HARM))
    return matches


def six_combine(a: int, b: int) -> Optional[Element]:
    return SIX_COMBINATIONS.get(frozenset({a, b}))


def is_branch_clash(a: int, b: int) -> bool:
    return frozenset({a, b}) in SIX_CLASHES


def half_combine(a: int, b: int) -> Optional[Element]:
    return HALF_COMBINATIONS.get(frozenset({a, b}))


def _first_complete(table: dict, branches: Iterable[int]):
    present = set(branches)
    for members, result in table.items():
        if members <= present:
            return result
    return None


def triple_combine(branches: Iterable[int]) -> Optional[Element]:
    """Element of the first Three Harmony frame fully present in `branches`."""
    return _first_complete(THREE_HARMONY, branches)


def directional_combine(branches: Iterable[int]) -> Optional[Element]:
    return _first_complete(DIRECTIONAL_COMBINATIONS, branches)


def triple_punishment(branches: Iterable[int]) -> Optional[PunishmentKind]:
    return _first_complete(TRIPLE_PUNISHMENTS, branches)


# ============================================================
# DETECTION
# ============================================================

def _pair_relations(p1: Position, p2: Position, pillar1: Pillar, pillar2: Pillar) -> list[Relation]:
    relations = []
    stems = (pillar1.stem_index, pillar2.stem_index)
    branches = (pillar1.branch_index, pillar2.branch_index)

    stem_match = check_stem_pair(*stems)
    if stem_match is not None:
        relations.append(Relation(stem_match.category, Scope.PAIRWISE, Layer.STEM, (p1, p2),
                                  stems, stem_match.element, stem_match.kind))
    for match in check_branch_pair(*branches):
        relations.append(Relation(match.category, Scope.PAIRWISE, Layer.BRANCH, (p1, p2),
                                  branches, match.element, match.kind))
    return relations


def detect_relations(chart: Chart, has_hour: Optional[bool] = None,
                     include_distant: bool = False) -> list[Relation]:
    """
    All structural relations inside one chart.

    Adjacent pairs (hour-day, day-month, month-year) are checked for every
    pairwise category; each run of three consecutive positions is checked
    for the triple frames. Overlapping windows are evaluated independently
    and are not deduplicated.

    With include_distant, positions two apart (hour-month, day-year) are
    also checked for branch clashes and punishments.
    """
    details = chart.active_positions(has_hour)
    relations = []

    for first, second in zip(details, details[1:]):
        relations.extend(_pair_relations(first.position, second.position,
                                         first.pillar, second.pillar))

    if include_distant:
        for first, second in zip(details, details[2:]):
            branches = (first.pillar.branch_index, second.pillar.branch_index)
            for match in check_branch_pair(*branches):
                if match.category in (Category.CLASH, Category.PUNISHMENT):
                    relations.append(Relation(match.category, Scope.PAIRWISE, Layer.BRANCH,
                                              (first.position, second.position), branches,
                                              match.element, match.kind))

    for window in zip(details, details[1:], details[2:]):
        positions = tuple(d.position for d in window)
        branches = tuple(d.pillar.branch_index for d in window)
        element = triple_combine(branches)
        if element is not None:
            relations.append(Relation(Category.COMBINE, Scope.TRIPLE, Layer.BRANCH, positions,
                                      branches, element, CombineKind.TRIPLE))
        element = directional_combine(branches)
        if element is not None:
            relations.append(Relation(Category.COMBINE, Scope.TRIPLE, Layer.BRANCH, positions,
                                      branches, element, CombineKind.DIRECTIONAL))
        kind = triple_punishment(branches)
        if kind is not None:
            relations.append(Relation(Category.PUNISHMENT, Scope.TRIPLE, Layer.BRANCH, positions,
                                      branches, kind=kind))

    return relations


def fortune_interactions(index: int, chart: Chart, has_hour: Optional[bool] = None) -> list[Relation]:
    """Relations between a fortune-period pillar and each natal position."""
    fortune = Pillar(index)
    relations = []
    for detail in chart.active_positions(has_hour):
        relations.extend(_pair_relations(Position.FORTUNE, detail.position, fortune, detail.pillar))
    return relations
