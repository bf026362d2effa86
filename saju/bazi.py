"""
Saju (Four Pillars) chart construction.

Handles:
- Stem, branch and hidden-stem tables
- Ten God (십신) classification of a stem against the day stem
- Twelve Stage (십이운성) phase of a stem on a branch
- Birth timestamp to four pillars, with year and month placed on real
  solar-term instants rather than fixed calendar dates

Design principle: This module COMPUTES and FLAGS. It does not interpret.
"""

from datetime import datetime, timedelta
from typing import Optional
from dataclasses import dataclass
from enum import Enum
import logging

from saju.calendar import SolarTermBoundary, START_OF_SPRING, get_engine
from saju.cycle import (
    day_index, gapja_index, hour_branch, hour_index, month_index, year_index,
)
from saju.errors import InvalidDate, TermNotFound
from saju.settings import EngineSettings, DEFAULT_SETTINGS

logger = logging.getLogger(__name__)


# ============================================================
# FUNDAMENTAL DATA STRUCTURES
# ============================================================

class Polarity(Enum):
    YANG = "yang"
    YIN = "yin"


class Element(Enum):
    WOOD = "wood"
    FIRE = "fire"
    EARTH = "earth"
    METAL = "metal"
    WATER = "water"


# Generation order; an element's position here is its element index.
ELEMENTS = list(Element)

ELEMENT_KOREAN = {
    Element.WOOD: "목(木)",
    Element.FIRE: "화(火)",
    Element.EARTH: "토(土)",
    Element.METAL: "금(金)",
    Element.WATER: "수(水)",
}


class Position(Enum):
    HOUR = "hour"
    DAY = "day"
    MONTH = "month"
    YEAR = "year"
    FORTUNE = "fortune"  # a Daeun/Saeun/Wolun pillar set against the natal chart


# Natal positions in adjacency order
NATAL_POSITIONS = [Position.HOUR, Position.DAY, Position.MONTH, Position.YEAR]


class HiddenRole(Enum):
    INITIAL = "여기"
    MIDDLE = "중기"
    MAIN = "정기"


@dataclass(frozen=True)
class HeavenlyStem:
    chinese: str
    korean: str
    element: Element
    polarity: Polarity
    index: int  # 0-9 in the cycle

    def __str__(self):
        return f"{self.korean}({self.chinese}) {self.polarity.value} {self.element.value}"


@dataclass(frozen=True)
class EarthlyBranch:
    chinese: str
    korean: str
    animal: str
    element: Element  # season element
    polarity: Polarity
    index: int  # 0-11 in the cycle
    hidden_stems: tuple[tuple[int, int], ...]  # (stem index, days out of 30), main stem last

    @property
    def main_stem(self) -> int:
        return self.hidden_stems[-1][0]

    def __str__(self):
        return f"{self.korean}({self.chinese}) {self.animal}"


# ============================================================
# STEM AND BRANCH DEFINITIONS
# ============================================================

HEAVENLY_STEMS = [
    HeavenlyStem("甲", "갑", Element.WOOD, Polarity.YANG, 0),
    HeavenlyStem("乙", "을", Element.WOOD, Polarity.YIN, 1),
    HeavenlyStem("丙", "병", Element.FIRE, Polarity.YANG, 2),
    HeavenlyStem("丁", "정", Element.FIRE, Polarity.YIN, 3),
    HeavenlyStem("戊", "무", Element.EARTH, Polarity.YANG, 4),
    HeavenlyStem("己", "기", Element.EARTH, Polarity.YIN, 5),
    HeavenlyStem("庚", "경", Element.METAL, Polarity.YANG, 6),
    HeavenlyStem("辛", "신", Element.METAL, Polarity.YIN, 7),
    HeavenlyStem("壬", "임", Element.WATER, Polarity.YANG, 8),
    HeavenlyStem("癸", "계", Element.WATER, Polarity.YIN, 9),
]

# Hidden stems are listed initial → (middle →) main with their share of the
# 30-day month.
EARTHLY_BRANCHES = [
    EarthlyBranch("子", "자", "Rat", Element.WATER, Polarity.YANG, 0,
                  ((8, 10), (9, 20))),            # 壬 癸
    EarthlyBranch("丑", "축", "Ox", Element.EARTH, Polarity.YIN, 1,
                  ((9, 9), (7, 3), (5, 18))),     # 癸 辛 己
    EarthlyBranch("寅", "인", "Tiger", Element.WOOD, Polarity.YANG, 2,
                  ((4, 7), (2, 7), (0, 16))),     # 戊 丙 甲
    EarthlyBranch("卯", "묘", "Rabbit", Element.WOOD, Polarity.YIN, 3,
                  ((0, 10), (1, 20))),            # 甲 乙
    EarthlyBranch("辰", "진", "Dragon", Element.EARTH, Polarity.YANG, 4,
                  ((1, 9), (9, 3), (4, 18))),     # 乙 癸 戊
    EarthlyBranch("巳", "사", "Snake", Element.FIRE, Polarity.YIN, 5,
                  ((4, 7), (6, 7), (2, 16))),     # 戊 庚 丙
    EarthlyBranch("午", "오", "Horse", Element.FIRE, Polarity.YANG, 6,
                  ((2, 10), (5, 9), (3, 11))),    # 丙 己 丁
    EarthlyBranch("未", "미", "Goat", Element.EARTH, Polarity.YIN, 7,
                  ((3, 9), (1, 3), (5, 18))),     # 丁 乙 己
    EarthlyBranch("申", "신", "Monkey", Element.METAL, Polarity.YANG, 8,
                  ((4, 7), (8, 7), (6, 16))),     # 戊 壬 庚
    EarthlyBranch("酉", "유", "Rooster", Element.METAL, Polarity.YIN, 9,
                  ((6, 10), (7, 20))),            # 庚 辛
    EarthlyBranch("戌", "술", "Dog", Element.EARTH, Polarity.YANG, 10,
                  ((7, 9), (3, 3), (4, 18))),     # 辛 丁 戊
    EarthlyBranch("亥", "해", "Pig", Element.WATER, Polarity.YIN, 11,
                  ((4, 7), (0, 7), (8, 16))),     # 戊 甲 壬
]


def hidden_roles(count: int) -> list[HiddenRole]:
    if count == 2:
        return [HiddenRole.INITIAL, HiddenRole.MAIN]
    return [HiddenRole.INITIAL, HiddenRole.MIDDLE, HiddenRole.MAIN]


def stem_element(stem: int) -> Element:
    return ELEMENTS[stem // 2]


def branch_element_shares(branch: int) -> list[tuple[Element, float]]:
    """(element, ratio) per hidden stem of a branch; ratios sum to 1."""
    return [(stem_element(s), days / 30) for s, days in EARTHLY_BRANCHES[branch].hidden_stems]


# ============================================================
# ELEMENT CYCLES
# ============================================================

# Production cycle: Wood → Fire → Earth → Metal → Water → Wood
PRODUCTION_CYCLE = {
    Element.WOOD: Element.FIRE,
    Element.FIRE: Element.EARTH,
    Element.EARTH: Element.METAL,
    Element.METAL: Element.WATER,
    Element.WATER: Element.WOOD,
}

# Control cycle: Wood → Earth → Water → Fire → Metal → Wood
CONTROL_CYCLE = {
    Element.WOOD: Element.EARTH,
    Element.EARTH: Element.WATER,
    Element.WATER: Element.FIRE,
    Element.FIRE: Element.METAL,
    Element.METAL: Element.WOOD,
}

PRODUCED_BY = {v: k for k, v in PRODUCTION_CYCLE.items()}
CONTROLLED_BY = {v: k for k, v in CONTROL_CYCLE.items()}


def element_relationship(day_master_element: Element, other_element: Element) -> str:
    """Determine the elemental relationship from the day stem's perspective."""
    if day_master_element == other_element:
        return "same"
    elif PRODUCTION_CYCLE[other_element] == day_master_element:
        return "produces_me"
    elif PRODUCTION_CYCLE[day_master_element] == other_element:
        return "i_produce"
    elif CONTROL_CYCLE[day_master_element] == other_element:
        return "i_control"
    else:
        return "controls_me"


# ============================================================
# TEN GODS (십신)
# ============================================================

class TenGodGroup(Enum):
    PEERS = "비겁"
    OUTPUT = "식상"
    WEALTH = "재성"
    OFFICER = "관성"
    RESOURCE = "인성"


class TenGod(Enum):
    COMPANION = "비견"
    ROB_WEALTH = "겁재"
    EATING_GOD = "식신"
    HURTING_OFFICER = "상관"
    INDIRECT_WEALTH = "편재"
    DIRECT_WEALTH = "정재"
    SEVEN_KILLINGS = "편관"
    DIRECT_OFFICER = "정관"
    INDIRECT_RESOURCE = "편인"
    DIRECT_RESOURCE = "정인"

    @property
    def group(self) -> TenGodGroup:
        return TEN_GOD_GROUP[self]


TEN_GOD_GROUP = {
    TenGod.COMPANION: TenGodGroup.PEERS,
    TenGod.ROB_WEALTH: TenGodGroup.PEERS,
    TenGod.EATING_GOD: TenGodGroup.OUTPUT,
    TenGod.HURTING_OFFICER: TenGodGroup.OUTPUT,
    TenGod.INDIRECT_WEALTH: TenGodGroup.WEALTH,
    TenGod.DIRECT_WEALTH: TenGodGroup.WEALTH,
    TenGod.SEVEN_KILLINGS: TenGodGroup.OFFICER,
    TenGod.DIRECT_OFFICER: TenGodGroup.OFFICER,
    TenGod.INDIRECT_RESOURCE: TenGodGroup.RESOURCE,
    TenGod.DIRECT_RESOURCE: TenGodGroup.RESOURCE,
}

TEN_GODS = {
    # (relationship, same_polarity): ten god
    ("same", True): TenGod.COMPANION,
    ("same", False): TenGod.ROB_WEALTH,
    ("i_produce", True): TenGod.EATING_GOD,
    ("i_produce", False): TenGod.HURTING_OFFICER,
    ("i_control", True): TenGod.INDIRECT_WEALTH,
    ("i_control", False): TenGod.DIRECT_WEALTH,
    ("controls_me", True): TenGod.SEVEN_KILLINGS,
    ("controls_me", False): TenGod.DIRECT_OFFICER,
    ("produces_me", True): TenGod.INDIRECT_RESOURCE,
    ("produces_me", False): TenGod.DIRECT_RESOURCE,
}


def ten_god(day_stem: int, other_stem: int) -> TenGod:
    """
    Ten God of `other_stem` as seen from `day_stem`.

    Args:
        day_stem: day stem index (0-9)
        other_stem: the stem being evaluated (0-9)
    """
    relationship = element_relationship(stem_element(day_stem), stem_element(other_stem))
    same_polarity = day_stem % 2 == other_stem % 2
    return TEN_GODS[(relationship, same_polarity)]


# ============================================================
# TWELVE STAGES (십이운성)
# ============================================================

class TwelveStage(Enum):
    BIRTH = "장생"
    BATH = "목욕"
    CROWN = "관대"
    OFFICE = "건록"
    PEAK = "제왕"
    DECLINE = "쇠"
    SICKNESS = "병"
    DEATH = "사"
    TOMB = "묘"
    EXTINCTION = "절"
    CONCEPTION = "태"
    NURTURE = "양"


TWELVE_STAGES = list(TwelveStage)

# Branch where each stem's Birth (장생) stage sits.
# Yang stems walk forward from it, yin stems walk backward.
STAGE_START_BRANCH = [11, 6, 2, 9, 2, 9, 5, 0, 8, 3]


def twelve_stage(stem: int, branch: int) -> TwelveStage:
    start = STAGE_START_BRANCH[stem]
    if stem % 2 == 0:
        step = (branch - start) % 12
    else:
        step = (start - branch) % 12
    return TWELVE_STAGES[step]


# ============================================================
# PILLARS AND CHART
# ============================================================

@dataclass(frozen=True)
class Pillar:
    index: int  # 0-59 in the sexagenary cycle

    @classmethod
    def from_pair(cls, stem: int, branch: int) -> "Pillar":
        return cls(gapja_index(stem, branch))

    @property
    def stem_index(self) -> int:
        return self.index % 10

    @property
    def branch_index(self) -> int:
        return self.index % 12

    @property
    def stem(self) -> HeavenlyStem:
        return HEAVENLY_STEMS[self.stem_index]

    @property
    def branch(self) -> EarthlyBranch:
        return EARTHLY_BRANCHES[self.branch_index]

    @property
    def element(self) -> Element:
        return self.stem.element

    @property
    def polarity(self) -> Polarity:
        return self.stem.polarity

    @property
    def korean(self) -> str:
        return self.stem.korean + self.branch.korean

    @property
    def chinese(self) -> str:
        return self.stem.chinese + self.branch.chinese

    def __str__(self):
        return f"{self.korean}({self.chinese})"

    def to_dict(self):
        return {
            "index": self.index,
            "stem": {
                "index": self.stem_index,
                "chinese": self.stem.chinese,
                "korean": self.stem.korean,
                "element": self.stem.element.value,
                "polarity": self.stem.polarity.value,
            },
            "branch": {
                "index": self.branch_index,
                "chinese": self.branch.chinese,
                "korean": self.branch.korean,
                "animal": self.branch.animal,
                "element": self.branch.element.value,
                "polarity": self.branch.polarity.value,
            },
            "combined": str(self),
        }


@dataclass(frozen=True)
class HiddenStem:
    stem: int
    role: HiddenRole
    days: int
    ten_god: TenGod

    @property
    def ratio(self) -> float:
        return self.days / 30

    @property
    def element(self) -> Element:
        return stem_element(self.stem)

    def to_dict(self):
        return {
            "stem": HEAVENLY_STEMS[self.stem].korean,
            "role": self.role.value,
            "days": self.days,
            "element": self.element.value,
            "ten_god": self.ten_god.value,
        }


@dataclass(frozen=True)
class PositionDetail:
    position: Position
    pillar: Pillar
    ten_god_stem: TenGod
    ten_god_branch: TenGod  # from the branch's main hidden stem
    twelve_stage: TwelveStage  # day stem on this branch
    twelve_stage_self: TwelveStage  # this stem on its own branch
    hidden_stems: tuple[HiddenStem, ...]

    def to_dict(self):
        return {
            "position": self.position.value,
            "pillar": self.pillar.to_dict(),
            "ten_god_stem": self.ten_god_stem.value,
            "ten_god_branch": self.ten_god_branch.value,
            "twelve_stage": self.twelve_stage.value,
            "twelve_stage_self": self.twelve_stage_self.value,
            "hidden_stems": [h.to_dict() for h in self.hidden_stems],
        }


@dataclass(frozen=True)
class SolarTermContext:
    saju_year: int
    month_number: int  # 1 = 寅 month
    current: SolarTermBoundary
    next: SolarTermBoundary

    def to_dict(self):
        return {
            "saju_year": self.saju_year,
            "month_number": self.month_number,
            "current": self.current.to_dict(),
            "next": self.next.to_dict(),
        }


@dataclass(frozen=True)
class Chart:
    birth: datetime  # placement instant; 12:00 stands in for an unknown time
    has_hour: bool
    terms: SolarTermContext
    year: PositionDetail
    month: PositionDetail
    day: PositionDetail
    hour: Optional[PositionDetail] = None

    @property
    def day_stem(self) -> int:
        return self.day.pillar.stem_index

    def detail(self, position: Position) -> PositionDetail:
        detail = {
            Position.HOUR: self.hour,
            Position.DAY: self.day,
            Position.MONTH: self.month,
            Position.YEAR: self.year,
        }.get(position)
        if detail is None:
            raise ValueError(f"Chart has no {position.value} pillar")
        return detail

    def active_positions(self, has_hour: Optional[bool] = None) -> list[PositionDetail]:
        """
        Positions in adjacency order (hour, day, month, year).

        `has_hour=None` follows the chart; `False` drops a known hour.
        """
        if has_hour is None:
            has_hour = self.has_hour
        if has_hour and self.hour is None:
            raise ValueError("has_hour requested on a chart built without a birth time")
        positions = [self.day, self.month, self.year]
        if has_hour:
            positions.insert(0, self.hour)
        return positions

    def to_dict(self):
        return {
            "birth": self.birth.isoformat(),
            "has_hour": self.has_hour,
            "solar_terms": self.terms.to_dict(),
            "day_master": {
                "stem": self.day.pillar.stem.korean,
                "chinese": self.day.pillar.stem.chinese,
                "element": self.day.pillar.element.value,
                "polarity": self.day.pillar.polarity.value,
                "description": str(self.day.pillar.stem),
            },
            "pillars": {d.position.value: d.to_dict() for d in self.active_positions()},
        }


def position_detail(position: Position, index: int, day_stem: int) -> PositionDetail:
    """Annotate one pillar with its ten gods, twelve stages and hidden stems."""
    pillar = Pillar(index)
    branch = pillar.branch
    roles = hidden_roles(len(branch.hidden_stems))
    hidden = tuple(
        HiddenStem(stem=s, role=role, days=days, ten_god=ten_god(day_stem, s))
        for (s, days), role in zip(branch.hidden_stems, roles)
    )
    return PositionDetail(
        position=position,
        pillar=pillar,
        ten_god_stem=ten_god(day_stem, pillar.stem_index),
        ten_god_branch=ten_god(day_stem, branch.main_stem),
        twelve_stage=twelve_stage(day_stem, pillar.branch_index),
        twelve_stage_self=twelve_stage(pillar.stem_index, pillar.branch_index),
        hidden_stems=hidden,
    )


# ============================================================
# FULL CHART COMPUTATION
# ============================================================

def build_chart(year: int, month: int, day: int,
                hour: Optional[int] = None, minute: Optional[int] = None,
                second: int = 0,
                settings: EngineSettings = DEFAULT_SETTINGS) -> Chart:
    """
    Compute the four pillars of a birth timestamp (local time, UTC+9 by default).

    Args:
        year, month, day: calendar birth date
        hour, minute: birth time; hour=None means the time is unknown and
            the chart has no hour pillar
        second: only matters right at a solar-term boundary

    Raises:
        InvalidDate: calendar components out of range
        TermNotFound: solar-term search failed
    """
    chart_settings = settings.chart
    engine = get_engine(chart_settings)
    has_hour = hour is not None

    if has_hour:
        place_hour, place_minute = hour, minute or 0
    else:
        place_hour, place_minute = chart_settings.unknown_time

    try:
        birth = datetime(year, month, day, place_hour, place_minute, second, tzinfo=engine.tz)
    except (ValueError, TypeError) as e:
        raise InvalidDate(f"Invalid birth date/time {year}-{month}-{day} {hour}:{minute}: {e}") from e

    # Zi-hour rollover: late births belong to the next day pillar
    saju_day = birth.date()
    if place_hour * 60 + place_minute >= chart_settings.zi_rollover_minutes:
        saju_day += timedelta(days=1)
    day_idx = day_index(saju_day)
    day_stem = day_idx % 10

    saju_year = year
    if birth < engine.find_term_instant(year, START_OF_SPRING):
        saju_year -= 1
    year_idx = year_index(saju_year)

    boundaries = engine.month_boundaries(saju_year)
    for current, following in zip(boundaries, boundaries[1:]):
        if current.instant <= birth < following.instant:
            break
    else:
        raise TermNotFound(saju_year, START_OF_SPRING)
    month_idx = month_index(year_idx % 10, current.month_number)

    hour_detail = None
    if has_hour:
        branch = hour_branch(place_hour, place_minute, chart_settings.zi_rollover_minutes)
        hour_detail = position_detail(Position.HOUR, hour_index(day_stem, branch), day_stem)

    chart = Chart(
        birth=birth,
        has_hour=has_hour,
        terms=SolarTermContext(
            saju_year=saju_year,
            month_number=current.month_number,
            current=current,
            next=following,
        ),
        year=position_detail(Position.YEAR, year_idx, day_stem),
        month=position_detail(Position.MONTH, month_idx, day_stem),
        day=position_detail(Position.DAY, day_idx, day_stem),
        hour=hour_detail,
    )
    logger.debug("Built chart for %s: %s", birth.isoformat(),
                 " ".join(str(d.pillar) for d in chart.active_positions()))
    return chart


# ============================================================
# TEST / VERIFICATION
# ============================================================

if __name__ == "__main__":
    chart = build_chart(1990, 5, 15, 10, 30)
    print(f"Birth: {chart.birth.isoformat()}  (saju year {chart.terms.saju_year})")
    print(f"Day Master: {chart.day.pillar.stem}")
    for detail in chart.active_positions():
        print(f"  {detail.position.value.capitalize():6s}: {detail.pillar}  "
              f"{detail.ten_god_stem.value}/{detail.ten_god_branch.value}  {detail.twelve_stage.value}")
    print(f"Month term: {chart.terms.current.name} {chart.terms.current.instant:%Y-%m-%d %H:%M}"
          f" → {chart.terms.next.name} {chart.terms.next.instant:%Y-%m-%d %H:%M}")
