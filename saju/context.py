"""
Generate a reading context for a birth on a given date.

This assembles every computed layer (natal chart, element balance,
favorable element, structural relations and the running fortune periods)
into a single JSON-serialisable payload for the interpretation layer.

Usage:
    context = generate_reading_context("1990-05-15 10:30", "f", "2026-02-15")
"""

from datetime import date, datetime
from typing import Optional, Union

from saju.bazi import ELEMENT_KOREAN, build_chart
from saju.elements import resolve_favorable, ten_god_groups, weigh_elements
from saju.errors import InvalidDate
from saju.periods import Gender, generate_daeun, generate_saeun, generate_wolun
from saju.relations import detect_relations, fortune_interactions
from saju.settings import EngineSettings, DEFAULT_SETTINGS


def parse_birth(birth: str) -> tuple[int, int, int, Optional[int], Optional[int]]:
    """
    Split "YYYY-MM-DD" or "YYYY-MM-DD HH:MM" into chart arguments.
    A date without a time means the birth hour is unknown.
    """
    text = birth.strip()
    try:
        if len(text) <= 10:
            d = date.fromisoformat(text)
            return d.year, d.month, d.day, None, None
        dt = datetime.fromisoformat(text)
    except ValueError as e:
        raise InvalidDate(f"Unrecognised birth '{birth}': {e}") from e
    return dt.year, dt.month, dt.day, dt.hour, dt.minute


def generate_reading_context(birth: str, gender: Optional[Union[Gender, str]],
                             target_date: Union[str, date],
                             settings: EngineSettings = DEFAULT_SETTINGS) -> dict:
    """
    Generate the complete context payload for a reading.

    Args:
        birth: "YYYY-MM-DD" (unknown hour) or "YYYY-MM-DD HH:MM"
        gender: m/f; without it the decade pillars are omitted
        target_date: the day the reading is for; marks the current periods
    """
    if isinstance(target_date, str):
        try:
            target_date = date.fromisoformat(target_date)
        except ValueError as e:
            raise InvalidDate(f"Unrecognised target date '{target_date}': {e}") from e

    chart = build_chart(*parse_birth(birth), settings=settings)
    distribution, ten_gods = weigh_elements(chart, settings=settings)
    favorable = resolve_favorable(distribution, settings)
    day_element = chart.day.pillar.element

    # Natal data
    natal = {
        "chart": chart.to_dict(),
        "elements": distribution.to_dict(),
        "ten_gods": ten_gods.to_dict(),
        "ten_god_groups": {g.value: p for g, p in ten_god_groups(distribution, day_element).items()},
        "favorable": favorable.to_dict(),
        "favorable_label": ELEMENT_KOREAN[favorable.primary],
        "relations": [r.to_dict() for r in detect_relations(chart)],
    }

    # Fortune periods
    year = target_date.year
    saeun = generate_saeun(chart, year, year, today=target_date)[0]
    wolun = generate_wolun(chart, year, today=target_date, settings=settings)

    fortune = {
        "saeun": saeun.to_dict(),
        "saeun_interactions": [r.to_dict() for r in fortune_interactions(saeun.pillar.index, chart)],
        "wolun": [p.to_dict() for p in wolun],
        "daeun": None,
        "current_daeun": None,
        "daeun_interactions": [],
    }

    if gender is not None:
        daeun = generate_daeun(chart, gender, today=target_date)
        fortune["daeun"] = daeun.to_dict()
        current = daeun.current(target_date)
        if current is not None:
            fortune["current_daeun"] = current.to_dict()
            fortune["daeun_interactions"] = [
                r.to_dict() for r in fortune_interactions(current.pillar.index, chart)
            ]

    return {
        "generated_at": datetime.now().isoformat(),
        "target_date": target_date.isoformat(),
        "birth": {
            "input": birth,
            "gender": Gender.parse(gender).value if gender is not None else None,
        },
        "natal": natal,
        "fortune": fortune,
    }
