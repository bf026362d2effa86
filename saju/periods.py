"""
Fortune timelines: decade (대운), annual (세운) and monthly (월운) pillars.
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional, Union
import logging
import math

from saju.bazi import (
    Chart, Pillar, TenGod, TwelveStage, ten_god, twelve_stage,
)
from saju.calendar import MONTH_TERMS, SolarTermBoundary, get_engine
from saju.cycle import month_index, year_index
from saju.elements import round_half_up
from saju.settings import EngineSettings, DEFAULT_SETTINGS

logger = logging.getLogger(__name__)

DAEUN_COUNT = 12


class Gender(Enum):
    MALE = "m"
    FEMALE = "f"

    @classmethod
    def parse(cls, value: Union["Gender", str]) -> "Gender":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        if normalized in ("m", "male"):
            return cls.MALE
        if normalized in ("f", "female"):
            return cls.FEMALE
        raise ValueError(f"Unknown gender: {value!r} (expected m/male/f/female)")


@dataclass(frozen=True)
class Period:
    pillar: Pillar
    label: str
    calendar_year: int
    ten_god_stem: TenGod
    ten_god_branch: TenGod
    twelve_stage: TwelveStage
    age: Optional[int] = None  # Korean age (세는 나이)
    month_number: Optional[int] = None
    term: Optional[SolarTermBoundary] = None
    is_current: bool = False

    def to_dict(self):
        return {
            "pillar": str(self.pillar),
            "index": self.pillar.index,
            "label": self.label,
            "calendar_year": self.calendar_year,
            "age": self.age,
            "month_number": self.month_number,
            "term": self.term.to_dict() if self.term else None,
            "ten_god_stem": self.ten_god_stem.value,
            "ten_god_branch": self.ten_god_branch.value,
            "twelve_stage": self.twelve_stage.value,
            "is_current": self.is_current,
        }


@dataclass(frozen=True)
class DaeunResult:
    periods: list[Period]
    forward: bool
    days_to_boundary: float
    start_age: int
    start_year: int
    start_month: int

    def current(self, today: date) -> Optional[Period]:
        for period in self.periods:
            if period.calendar_year <= today.year < period.calendar_year + 10:
                return period
        return None

    def to_dict(self):
        return {
            "forward": self.forward,
            "days_to_boundary": round(self.days_to_boundary, 4),
            "start_age": self.start_age,
            "start_year": self.start_year,
            "start_month": self.start_month,
            "periods": [p.to_dict() for p in self.periods],
        }


def _annotate(chart: Chart, index: int) -> dict:
    pillar = Pillar(index)
    day_stem = chart.day_stem
    return {
        "pillar": pillar,
        "ten_god_stem": ten_god(day_stem, pillar.stem_index),
        "ten_god_branch": ten_god(day_stem, pillar.branch.main_stem),
        "twelve_stage": twelve_stage(day_stem, pillar.branch_index),
    }


# ============================================================
# DAEUN (대운)
# ============================================================

def daeun_direction(year_stem: int, gender: Gender) -> bool:
    """Forward for a yang year and a man or a yin year and a woman."""
    yang_year = year_stem % 2 == 0
    return yang_year == (gender is Gender.MALE)


def generate_daeun(chart: Chart, gender: Union[Gender, str],
                   today: Optional[date] = None) -> DaeunResult:
    """
    Decade pillars stepping from the month pillar through the 60-cycle.

    The start is the distance from birth to the next (forward) or current
    (reverse) month term, converted at 3 days = 1 year and 1 day = 4 months.

    Args:
        chart: natal chart
        gender: required; decides direction together with the year stem
        today: marks the running decade; defaults to the current date
    """
    gender = Gender.parse(gender)
    forward = daeun_direction(chart.year.pillar.stem_index, gender)

    if forward:
        delta = chart.terms.next.instant - chart.birth
    else:
        delta = chart.birth - chart.terms.current.instant
    days = max(0.0, delta.total_seconds() / 86400)

    years = math.floor(days / 3)
    months = round_half_up((days - years * 3) / 3 * 12)

    start_year = chart.birth.year + years
    start_month = chart.birth.month + months
    start_year += (start_month - 1) // 12
    start_month = (start_month - 1) % 12 + 1
    start_age = start_year - chart.birth.year + 1

    today = today or date.today()
    step = 1 if forward else -1
    periods = []
    for i in range(1, DAEUN_COUNT + 1):
        calendar_year = start_year + (i - 1) * 10
        age = start_age + (i - 1) * 10
        periods.append(Period(
            label=f"{age}세",
            calendar_year=calendar_year,
            age=age,
            is_current=calendar_year <= today.year < calendar_year + 10,
            **_annotate(chart, (chart.month.pillar.index + step * i) % 60),
        ))

    logger.debug("Daeun %s from age %d (%d-%02d), %.2f days to boundary",
                 "forward" if forward else "reverse", start_age, start_year, start_month, days)
    return DaeunResult(periods=periods, forward=forward, days_to_boundary=days,
                       start_age=start_age, start_year=start_year, start_month=start_month)


# ============================================================
# SAEUN (세운)
# ============================================================

def generate_saeun(chart: Chart, start_year: int, end_year: int,
                   today: Optional[date] = None) -> list[Period]:
    """One annual pillar per year in [start_year, end_year]."""
    if start_year > end_year:
        raise ValueError(f"Empty year range {start_year}..{end_year}")
    today = today or date.today()
    birth_year = chart.birth.year
    return [
        Period(
            label=f"{y}년",
            calendar_year=y,
            age=y - birth_year + 1,
            is_current=y == today.year,
            **_annotate(chart, year_index(y)),
        )
        for y in range(start_year, end_year + 1)
    ]


# ============================================================
# WOLUN (월운)
# ============================================================

def generate_wolun(chart: Chart, year: int, today: Optional[date] = None,
                   settings: EngineSettings = DEFAULT_SETTINGS) -> list[Period]:
    """The 12 term-anchored months of a sexagenary year, each with its term instant."""
    engine = get_engine(settings.chart)
    today = today or date.today()
    year_stem = year_index(year) % 10

    periods = []
    for term_name, month_number in MONTH_TERMS:
        term_year = year + 1 if month_number == 12 else year
        term = engine.boundary(term_year, term_name, month_number)
        periods.append(Period(
            label=f"{term.instant.month}월({term_name})",
            calendar_year=term_year,
            month_number=month_number,
            term=term,
            is_current=year == today.year and term.instant.month == today.month,
            **_annotate(chart, month_index(year_stem, month_number)),
        ))
    return periods
