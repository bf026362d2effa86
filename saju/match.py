"""
Best/worst partner search.

For a reference chart, every candidate (day pillar × month) of a target
birth year is scored without building a chart: branch and stem
contributions come from lookup arrays precomputed once per reference
chart, and the element stage runs the three-pillar weighing cascade from
per-pair tables.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date
from typing import Optional
import logging

from saju.bazi import ELEMENTS, Chart, Pillar, Position, branch_element_shares, stem_element
from saju.compatibility import (
    PersonProfile, build_profile, deficient_element, excess_elements,
)
from saju.cycle import (
    date_for_day_index, month_index, month_number_for_branch, year_for_index,
    year_index,
)
from saju.elements import (
    ElementDistribution, element_percentages, fold_slots, interaction_events,
    round_half_up,
)
from saju.relations import (
    Category, Layer, check_stem_pair, half_combine, is_branch_clash, six_combine,
)
from saju.settings import EngineSettings, DEFAULT_SETTINGS

logger = logging.getLogger(__name__)

BUCKETS = 21
PICKS = 3
SCAN_PICKS = 10
# Sexagenary years whose example dates the all-years scan reports
EXAMPLE_WINDOW_START = 1960


# ============================================================
# PAIR TABLES
# ============================================================

def _stem_category(a: int, b: int) -> Optional[Category]:
    match = check_stem_pair(a, b)
    return match.category if match else None


# 10×10 stem table: COMBINE, CLASH or None
STEM_PAIR_TABLE = [[_stem_category(a, b) for b in range(10)] for a in range(10)]

# 12×12 branch table: "six", "half", "clash" or None, in scoring precedence
BRANCH_PAIR_TABLE = [
    [
        "six" if six_combine(a, b) is not None
        else "half" if half_combine(a, b) is not None
        else "clash" if is_branch_clash(a, b)
        else None
        for b in range(12)
    ]
    for a in range(12)
]


# ============================================================
# THREE-PILLAR ELEMENT TABLES
# ============================================================

DAY_MONTH = (Position.DAY, Position.MONTH)
MONTH_YEAR = (Position.MONTH, Position.YEAR)


def _vector(contributions) -> list[float]:
    vector = [0.0] * len(ELEMENTS)
    for element, weight in contributions:
        vector[ELEMENTS.index(element)] += weight
    return vector


class ElementTables:
    """
    The day/month/year weighing cascade reduced to table lookups.

    In a three-pillar run every interaction comes from the day-month or the
    month-year pair. A slot's kept share is therefore the product of its
    pair offsets and its converted weight the sum of its pair transforms,
    and both are tabulated per (stem, stem) and (branch, branch) pair.
    """

    def __init__(self, settings: EngineSettings = DEFAULT_SETTINGS):
        self.weighing = settings.weighing
        positions = (Position.DAY, Position.MONTH, Position.YEAR)
        self.layers = (
            (10, [self.weighing.stem_weights[p.value] for p in positions],
             [_vector([(stem_element(s), 1.0)]) for s in range(10)],
             self._pair_table(Layer.STEM, 10)),
            (12, [self.weighing.branch_weights[p.value] for p in positions],
             [_vector(branch_element_shares(b)) for b in range(12)],
             self._pair_table(Layer.BRANCH, 12)),
        )

    def _pair_effects(self, layer: Layer, pair: tuple[Position, Position], a: int, b: int):
        """(offset, converted weight per unit of base weight) for each side of a pair."""
        # cycle indices below 10 carry stem a, below 12 branch a
        pillars = [(pair[0], a), (pair[1], b)]
        events = [e for e in interaction_events(pillars, self.weighing) if e.layer is layer]
        return tuple(
            (slot.offset, _vector((t.element, t.fraction) for t in slot.transforms))
            for slot in fold_slots(pillars, events, self.weighing)
            if slot.layer is layer
        )

    def _pair_table(self, layer: Layer, modulus: int):
        return {
            pair: [[self._pair_effects(layer, pair, a, b) for b in range(modulus)] for a in range(modulus)]
            for pair in (DAY_MONTH, MONTH_YEAR)
        }

    def weights(self, day_idx: int, month_idx: int, year_idx: int) -> list[float]:
        """Element weights, in generation order, of a day/month/year run."""
        totals = [0.0] * len(ELEMENTS)
        for modulus, base, own, pairs in self.layers:
            d, m, y = day_idx % modulus, month_idx % modulus, year_idx % modulus
            (day_keep, day_add), (month_keep_dm, month_add_dm) = pairs[DAY_MONTH][d][m]
            (month_keep_my, month_add_my), (year_keep, year_add) = pairs[MONTH_YEAR][m][y]
            slots = (
                (base[0], own[d], day_keep, (day_add,)),
                (base[1], own[m], month_keep_dm * month_keep_my, (month_add_dm, month_add_my)),
                (base[2], own[y], year_keep, (year_add,)),
            )
            for weight, vector, keep, adds in slots:
                for e in range(len(ELEMENTS)):
                    totals[e] += weight * (keep * vector[e] + sum(add[e] for add in adds))
        return totals

    def distribution(self, day_idx: int, month_idx: int, year_idx: int) -> ElementDistribution:
        weights = dict(zip(ELEMENTS, self.weights(day_idx, month_idx, year_idx)))
        total = sum(weights.values()) or 1.0
        return ElementDistribution(weights=weights,
                                   percentages=element_percentages(weights, total),
                                   total=total)


# ============================================================
# RESULT TYPES
# ============================================================

@dataclass(frozen=True)
class Candidate:
    day: Pillar
    month: Pillar
    year: Pillar
    raw: int
    score: int
    branch_score: int
    stem_score: int
    element_score: int
    example: Optional[date] = None

    @property
    def month_number(self) -> int:
        return month_number_for_branch(self.month.branch_index)

    def to_dict(self):
        return {
            "day": str(self.day),
            "month": str(self.month),
            "year": str(self.year),
            "raw": self.raw,
            "score": self.score,
            "branch_score": self.branch_score,
            "stem_score": self.stem_score,
            "element_score": self.element_score,
            "example": self.example.isoformat() if self.example else None,
        }


@dataclass(frozen=True)
class MatchSearchResult:
    best: list[Candidate]
    worst: list[Candidate]
    distribution: list[int]  # 21 buckets of width 5; the last holds 100
    day_averages: list[float]  # mean normalized score per day pillar
    candidates: int

    def to_dict(self):
        return {
            "best": [c.to_dict() for c in self.best],
            "worst": [c.to_dict() for c in self.worst],
            "distribution": list(self.distribution),
            "day_averages": [round(a, 2) for a in self.day_averages],
            "candidates": self.candidates,
        }


def example_birth_date(year_idx: int, month_idx: int, day_idx: int,
                       window_start: int = EXAMPLE_WINDOW_START) -> date:
    """
    A calendar date carrying the given year, month and day pillars.

    The year is the first one at or after `window_start` with that year
    pillar. The seed is the 15th of the calendar month after the month
    term (the Tiger month seeds Feb 15, the Ox month Jan 15 of the next
    year) and the day pillar is found within ±30 days of it.
    """
    year = year_for_index(year_idx, window_start)
    month_number = month_number_for_branch(month_idx % 12)
    if month_number == 12:
        seed = date(year + 1, 1, 15)
    else:
        seed = date(year, month_number + 1, 15)
    return date_for_day_index(day_idx, seed)


# ============================================================
# SEARCH
# ============================================================

class MatchSearch:
    """
    Precomputed scoring of candidate partners against one reference chart.

    Usage:
        search = MatchSearch(chart)
        result = search.find_for_year(1995)
    """

    def __init__(self, reference: Chart, has_hour: Optional[bool] = None,
                 settings: EngineSettings = DEFAULT_SETTINGS):
        self.reference = reference
        self.settings = settings
        self.profile: PersonProfile = build_profile(reference, has_hour, settings)
        self.tables = ElementTables(settings)
        self._precompute()

    def _branch_points(self, ref_branch: int, branch: int,
                       position: Position) -> int:
        kind = BRANCH_PAIR_TABLE[ref_branch][branch]
        if kind == "six":
            return self.settings.compatibility.six_combine_points[position.value]
        if kind == "half":
            return self.settings.compatibility.half_combine_points[position.value]
        if kind == "clash":
            return self.settings.compatibility.clash_points[position.value]
        return 0

    def _stem_points(self, ref_stem: int, stem: int, position: Position) -> int:
        points = self.settings.compatibility
        weight = points.stem_position_weights[position.value]
        kind = STEM_PAIR_TABLE[ref_stem][stem]
        if kind is Category.COMBINE:
            return round_half_up(points.stem_combine_base * weight)
        if kind is Category.CLASH:
            return -round_half_up(points.stem_clash_base * weight)
        return 0

    def _precompute(self):
        ref = self.reference
        day, month, year = ref.day.pillar, ref.month.pillar, ref.year.pillar

        self.day_branch_scores = [self._branch_points(day.branch_index, i % 12, Position.DAY) for i in range(60)]
        self.day_stem_scores = [self._stem_points(day.stem_index, i % 10, Position.DAY) for i in range(60)]
        self.year_branch_scores = [self._branch_points(year.branch_index, i % 12, Position.YEAR) for i in range(60)]
        self.year_stem_scores = [self._stem_points(year.stem_index, i % 10, Position.YEAR) for i in range(60)]
        # month branch by month number 1..12 (index 0 is month 1)
        self.month_branch_scores = [
            self._branch_points(month.branch_index, (n + 1) % 12, Position.MONTH) for n in range(1, 13)
        ]
        self.month_stem_scores = [self._stem_points(month.stem_index, s, Position.MONTH) for s in range(10)]

        self.excess = set(self.profile.excess)
        self.deficient = self.profile.deficient
        self.deficient_set = set(self.profile.deficient_list)

    def _element_points(self, day_idx: int, month_idx: int, year_idx: int) -> int:
        points = self.settings.compatibility
        distribution = self.tables.distribution(day_idx, month_idx, year_idx)

        # thresholds apply to percentages of the candidate's own total
        excess = excess_elements(distribution, points.excess_percent)
        deficient = deficient_element(distribution, points.deficient_percent)
        deficient_list = [e for e, p in distribution.percentages.items() if p <= points.deficient_percent]

        score = 0
        if deficient in self.excess:
            score += points.cross_fill_points
        if self.deficient in excess:
            score += points.cross_fill_points
        for element in deficient_list:
            if element in self.deficient_set:
                score += points.shared_deficiency_points
        return score

    def score_candidate(self, day_idx: int, month_number: int, year_idx: int,
                        window_start: int = EXAMPLE_WINDOW_START) -> Candidate:
        month_idx = month_index(year_idx % 10, month_number)
        branch = (self.day_branch_scores[day_idx] + self.month_branch_scores[month_number - 1]
                  + self.year_branch_scores[year_idx])
        stem = (self.day_stem_scores[day_idx] + self.month_stem_scores[month_idx % 10]
                + self.year_stem_scores[year_idx])
        element = self._element_points(day_idx, month_idx, year_idx)
        raw = branch + stem + element
        return Candidate(
            day=Pillar(day_idx),
            month=Pillar(month_idx),
            year=Pillar(year_idx),
            raw=raw,
            score=max(0, min(100, round_half_up(50 + raw))),
            branch_score=branch,
            stem_score=stem,
            element_score=element,
            example=example_birth_date(year_idx, month_idx, day_idx, window_start),
        )

    def _score_days(self, day_indices: list[int], year_indices: list[int],
                    window_start: int) -> list[Candidate]:
        return [
            self.score_candidate(d, m, y, window_start)
            for d in day_indices
            for y in year_indices
            for m in range(1, 13)
        ]

    def _enumerate(self, year_indices: list[int], window_start: int,
                   workers: Optional[int]) -> list[Candidate]:
        days = list(range(60))
        if not workers or workers <= 1:
            return self._score_days(days, year_indices, window_start)

        shards = [days[i::workers] for i in range(workers)]
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(lambda shard: self._score_days(shard, year_indices, window_start), shards))
        candidates = [c for shard in results for c in shard]
        # merge in day order so results match the single-threaded run
        candidates.sort(key=lambda c: (c.day.index, year_indices.index(c.year.index), c.month_number))
        return candidates

    @staticmethod
    def histogram(candidates: list[Candidate]) -> list[int]:
        buckets = [0] * BUCKETS
        for c in candidates:
            buckets[min(c.score // 5, BUCKETS - 1)] += 1
        return buckets

    @staticmethod
    def day_averages(candidates: list[Candidate]) -> list[float]:
        sums = [0] * 60
        counts = [0] * 60
        for c in candidates:
            sums[c.day.index] += c.score
            counts[c.day.index] += 1
        return [sums[i] / counts[i] if counts[i] else 0.0 for i in range(60)]

    @staticmethod
    def pick_diverse(ordered: list[Candidate], limit: int, same_year_allowed: bool = True) -> list[Candidate]:
        """
        Greedy picks in order, skipping candidates that repeat a picked day
        pillar or month pillar (or, for the all-years scan, year pillar).
        """
        picked = []
        for c in ordered:
            if len(picked) >= limit:
                break
            clash = any(
                c.day == p.day
                or (same_year_allowed and c.month == p.month)
                or (not same_year_allowed and c.year == p.year)
                for p in picked
            )
            if not clash:
                picked.append(c)
        return picked

    def find_for_year(self, target_year: int, workers: Optional[int] = None) -> MatchSearchResult:
        """
        Best and worst three candidates born in a given sexagenary year.

        Candidates whose example date falls outside the calendar year are
        dropped unless that would leave nothing.
        """
        candidates = self._enumerate([year_index(target_year)], target_year, workers)
        in_year = [c for c in candidates if c.example.year == target_year]
        if in_year:
            candidates = in_year
        logger.debug("Match search %d: %d candidates", target_year, len(candidates))

        ordered = sorted(candidates, key=lambda c: -c.raw)
        return MatchSearchResult(
            best=self.pick_diverse(ordered, PICKS),
            worst=self.pick_diverse(ordered[::-1], PICKS),
            distribution=self.histogram(candidates),
            day_averages=self.day_averages(candidates),
            candidates=len(candidates),
        )

    def scan_all_years(self, workers: Optional[int] = None) -> MatchSearchResult:
        """Top and bottom ten over every year pillar, with distinct day and year pillars."""
        candidates = self._enumerate(list(range(60)), EXAMPLE_WINDOW_START, workers)
        logger.debug("Match scan over all years: %d candidates", len(candidates))

        ordered = sorted(candidates, key=lambda c: -c.raw)
        return MatchSearchResult(
            best=self.pick_diverse(ordered, SCAN_PICKS, same_year_allowed=False),
            worst=self.pick_diverse(ordered[::-1], SCAN_PICKS, same_year_allowed=False),
            distribution=self.histogram(candidates),
            day_averages=self.day_averages(candidates),
            candidates=len(candidates),
        )


def find_best_and_worst_match(reference: Chart, has_hour: Optional[bool], target_year: int,
                              settings: EngineSettings = DEFAULT_SETTINGS,
                              workers: Optional[int] = None) -> MatchSearchResult:
    """One-shot MatchSearch for a single target birth year."""
    return MatchSearch(reference, has_hour, settings).find_for_year(target_year, workers)
