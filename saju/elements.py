"""
Weighted five-element composition and favorable element (용신).

The weigher works in two passes. First every adjacent-pair interaction
(stem combine/clash, branch six combine/clash, branch half combine) is
turned into an ordered list of events, and the events are folded into an
immutable (offset, transforms) per stem or branch slot. Then a pure
aggregation pass discounts each slot's own element(s) by its offset and
adds each transform element at its fraction.

Weights are not conserved: a slot keeps `offset` of its own element while
every transform adds its full fraction, so a clash shrinks the total and
stacked conversions on one slot grow it.
"""

from dataclasses import dataclass
from typing import Optional
import math

from saju.bazi import (
    CONTROL_CYCLE, CONTROLLED_BY, EARTHLY_BRANCHES, ELEMENT_KOREAN, ELEMENTS,
    PRODUCED_BY, PRODUCTION_CYCLE, Chart, Element, Position, TenGod,
    TenGodGroup, stem_element, ten_god,
)
from saju.relations import (
    DOMINANT_BRANCHES, Category, Layer, check_stem_pair, half_combine,
    is_branch_clash, six_combine,
)
from saju.settings import EngineSettings, WeighingSettings, DEFAULT_SETTINGS


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


# ============================================================
# RESULT TYPES
# ============================================================

@dataclass(frozen=True)
class ElementDistribution:
    weights: dict[Element, float]
    percentages: dict[Element, int]
    total: float

    def ranked(self) -> list[Element]:
        """Elements by percentage, strongest first; ties keep generation order."""
        return sorted(ELEMENTS, key=lambda e: -self.percentages[e])

    def weakest(self) -> Element:
        return min(ELEMENTS, key=lambda e: self.percentages[e])

    def to_dict(self):
        return {
            "weights": {e.value: round(w, 3) for e, w in self.weights.items()},
            "percentages": {e.value: p for e, p in self.percentages.items()},
            "total": round(self.total, 3),
        }


@dataclass(frozen=True)
class TenGodCount:
    counts: dict[TenGod, float]

    def group_totals(self) -> dict[TenGodGroup, float]:
        totals = {g: 0.0 for g in TenGodGroup}
        for god, weight in self.counts.items():
            totals[god.group] += weight
        return totals

    def to_dict(self):
        return {god.value: round(w, 3) for god, w in self.counts.items()}


@dataclass(frozen=True)
class Transform:
    element: Element
    fraction: float


@dataclass(frozen=True)
class WeightedSlot:
    """One stem or branch after every interaction has been applied."""
    layer: Layer
    position: Position
    index: int
    base_weight: float
    offset: float
    transforms: tuple[Transform, ...]


@dataclass(frozen=True)
class _Event:
    layer: Layer
    position: Position
    fraction: float
    element: Optional[Element] = None  # None discounts without converting


# ============================================================
# INTERACTION EVENTS
# ============================================================

def _resistance(first: Position, second: Position, target: Position,
                weighing: WeighingSettings) -> float:
    if (first.value, second.value, target.value) in weighing.resisting_roles:
        return weighing.resistance_factor
    return 1.0


def _half_combine_fractions(first: Position, second: Position, b1: int, b2: int,
                            weighing: WeighingSettings) -> tuple[float, float]:
    """Per-side change for a half combine between adjacent positions."""
    pair = (first.value, second.value)
    if pair in weighing.split_pairs:
        flipped = False
    elif pair[::-1] in weighing.split_pairs:
        flipped = True
        b1, b2 = b2, b1
    else:
        return (weighing.half_combine_fraction * _resistance(first, second, first, weighing),
                weighing.half_combine_fraction * _resistance(first, second, second, weighing))

    inner_dominant = b1 in DOMINANT_BRANCHES
    outer_dominant = b2 in DOMINANT_BRANCHES
    if inner_dominant and not outer_dominant:
        inner, outer = weighing.split_inner_dominant
    elif outer_dominant and not inner_dominant:
        inner, outer = weighing.split_outer_dominant
    else:
        inner, outer = weighing.split_neutral
    return (outer, inner) if flipped else (inner, outer)


def interaction_events(pillars: list[tuple[Position, int]],
                       weighing: WeighingSettings) -> list[_Event]:
    """Every combine/clash effect between adjacent positions, in evaluation order."""
    events = []
    adjacent = list(zip(pillars, pillars[1:]))

    for (p1, i1), (p2, i2) in adjacent:
        match = check_stem_pair(i1 % 10, i2 % 10)
        if match is None:
            continue
        element = match.element if match.category is Category.COMBINE else None
        for target in (p1, p2):
            fraction = weighing.stem_fraction * _resistance(p1, p2, target, weighing)
            events.append(_Event(Layer.STEM, target, fraction, element))

    for (p1, i1), (p2, i2) in adjacent:
        b1, b2 = i1 % 12, i2 % 12
        element = six_combine(b1, b2)
        if element is None and not is_branch_clash(b1, b2):
            continue
        for target in (p1, p2):
            fraction = weighing.branch_fraction * _resistance(p1, p2, target, weighing)
            events.append(_Event(Layer.BRANCH, target, fraction, element))

    for (p1, i1), (p2, i2) in adjacent:
        b1, b2 = i1 % 12, i2 % 12
        element = half_combine(b1, b2)
        if element is None:
            continue
        f1, f2 = _half_combine_fractions(p1, p2, b1, b2, weighing)
        events.append(_Event(Layer.BRANCH, p1, f1, element))
        events.append(_Event(Layer.BRANCH, p2, f2, element))

    return events


def fold_slots(pillars: list[tuple[Position, int]], events: list[_Event],
               weighing: WeighingSettings) -> list[WeightedSlot]:
    slots = []
    for layer, weights, modulus in ((Layer.STEM, weighing.stem_weights, 10),
                                    (Layer.BRANCH, weighing.branch_weights, 12)):
        for position, index in pillars:
            mine = [e for e in events if e.layer is layer and e.position is position]
            offset = 1.0
            for event in mine:
                offset *= 1 - event.fraction
            slots.append(WeightedSlot(
                layer=layer,
                position=position,
                index=index % modulus,
                base_weight=weights[position.value],
                offset=offset,
                transforms=tuple(Transform(e.element, e.fraction) for e in mine
                                 if e.element is not None),
            ))
    return slots


# ============================================================
# AGGREGATION
# ============================================================

def element_percentages(weights: dict[Element, float], total: float) -> dict[Element, int]:
    raw = {e: weights[e] / total * 100 for e in ELEMENTS}
    percentages = {e: round_half_up(raw[e]) for e in ELEMENTS}

    # Keep the rounded sum within one point of 100
    while sum(percentages.values()) > 101:
        e = max(ELEMENTS, key=lambda x: percentages[x] - raw[x])
        percentages[e] -= 1
    while sum(percentages.values()) < 99:
        e = max(ELEMENTS, key=lambda x: raw[x] - percentages[x])
        percentages[e] += 1
    return percentages


def weigh_pillars(pillars: list[tuple[Position, int]], day_stem: int,
                  settings: EngineSettings = DEFAULT_SETTINGS
                  ) -> tuple[ElementDistribution, TenGodCount]:
    """
    Weighted element distribution of an arbitrary run of adjacent pillars.

    Args:
        pillars: (position, cycle index) in adjacency order
        day_stem: stem the ten gods are measured against
    """
    weighing = settings.weighing
    slots = fold_slots(pillars, interaction_events(pillars, weighing), weighing)

    weights = {e: 0.0 for e in ELEMENTS}
    counts = {god: 0.0 for god in TenGod}

    def add(element: Element, parity: int, weight: float):
        weights[element] += weight
        if weight > 0:
            counts[ten_god(day_stem, ELEMENTS.index(element) * 2 + parity)] += weight

    # A branch's whole weight, hidden stems and conversions alike, takes the
    # polarity of its main stem in the ten god histogram
    for slot in slots:
        if slot.layer is Layer.STEM:
            shares = [(slot.index, 1.0)]
            parity = slot.index % 2
        else:
            branch = EARTHLY_BRANCHES[slot.index]
            shares = [(s, days / 30) for s, days in branch.hidden_stems]
            parity = branch.main_stem % 2
        for stem, ratio in shares:
            add(stem_element(stem), parity, slot.base_weight * ratio * slot.offset)
        for transform in slot.transforms:
            add(transform.element, parity, slot.base_weight * transform.fraction)

    total = sum(weights.values()) or 1.0
    distribution = ElementDistribution(weights=weights,
                                       percentages=element_percentages(weights, total),
                                       total=total)
    return distribution, TenGodCount(counts)


def weigh_elements(chart: Chart, has_hour: Optional[bool] = None,
                   settings: EngineSettings = DEFAULT_SETTINGS
                   ) -> tuple[ElementDistribution, TenGodCount]:
    """Weighted element distribution and ten god histogram of a chart."""
    pillars = [(d.position, d.pillar.index) for d in chart.active_positions(has_hour)]
    return weigh_pillars(pillars, chart.day_stem, settings)


def ten_god_groups(distribution: ElementDistribution, day_element: Element) -> dict[TenGodGroup, int]:
    """Element percentages regrouped by their relation to the day element."""
    p = distribution.percentages
    return {
        TenGodGroup.PEERS: p[day_element],
        TenGodGroup.OUTPUT: p[PRODUCTION_CYCLE[day_element]],
        TenGodGroup.WEALTH: p[CONTROL_CYCLE[day_element]],
        TenGodGroup.OFFICER: p[CONTROLLED_BY[day_element]],
        TenGodGroup.RESOURCE: p[PRODUCED_BY[day_element]],
    }


# ============================================================
# FAVORABLE ELEMENT (용신)
# ============================================================

@dataclass(frozen=True)
class YongsinResult:
    primary: Element
    basis: str  # "excess", "deficient" or "balanced"
    rationale: str
    mediator: Optional[Element] = None
    mediator_rationale: str = ""

    def to_dict(self):
        return {
            "primary": self.primary.value,
            "basis": self.basis,
            "rationale": self.rationale,
            "mediator": self.mediator.value if self.mediator else None,
            "mediator_rationale": self.mediator_rationale,
        }


def _label(element: Element, percentages: dict[Element, int]) -> str:
    return f"{ELEMENT_KOREAN[element]} {percentages[element]}%"


def resolve_favorable(distribution: ElementDistribution,
                      settings: EngineSettings = DEFAULT_SETTINGS) -> YongsinResult:
    """
    Favorable element from a weighted distribution.

    An excess element is suppressed by its controller. Otherwise the first
    deficient element (or the weakest one) is reinforced by controlling its
    controller. A mediator is reported when the two strongest elements are
    both significant and one controls the other.
    """
    p = distribution.percentages
    thresholds = settings.yongsin

    excess = [e for e in ELEMENTS if p[e] >= thresholds.excess_percent]
    deficient = [e for e in ELEMENTS if p[e] <= thresholds.deficient_percent]

    if excess:
        target = excess[0]
        primary = CONTROLLED_BY[target]
        basis = "excess"
        rationale = f"{_label(target, p)} 과다 → {ELEMENT_KOREAN[primary]}(으)로 억제"
    else:
        if deficient:
            target = deficient[0]
            basis = "deficient"
        else:
            target = distribution.weakest()
            basis = "balanced"
        primary = CONTROLLED_BY[CONTROLLED_BY[target]]
        rationale = f"{_label(target, p)} {'부족' if deficient else '최약'} → {ELEMENT_KOREAN[primary]}(으)로 보충"

    mediator = None
    mediator_rationale = ""
    first, second = distribution.ranked()[:2]
    if p[first] >= thresholds.mediator_percent and p[second] >= thresholds.mediator_percent:
        for strong, weak in ((first, second), (second, first)):
            if CONTROL_CYCLE[strong] == weak:
                mediator = PRODUCTION_CYCLE[strong]
                mediator_rationale = (f"{_label(strong, p)} → {ELEMENT_KOREAN[mediator]}"
                                      f" → {_label(weak, p)}")
                break

    return YongsinResult(primary=primary, basis=basis, rationale=rationale,
                         mediator=mediator, mediator_rationale=mediator_rationale)
