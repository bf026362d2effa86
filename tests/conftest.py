from datetime import datetime

import pytest

from saju.bazi import Chart, Position, build_chart, position_detail


def make_chart(hour, day, month, year) -> Chart:
    """Chart from raw cycle indices; hour=None leaves the hour pillar out."""
    day_stem = day % 10
    return Chart(
        birth=datetime(2000, 1, 1, 12, 0),
        has_hour=hour is not None,
        terms=None,
        year=position_detail(Position.YEAR, year, day_stem),
        month=position_detail(Position.MONTH, month, day_stem),
        day=position_detail(Position.DAY, day, day_stem),
        hour=position_detail(Position.HOUR, hour, day_stem) if hour is not None else None,
    )


@pytest.fixture(scope="session")
def chart_1990() -> Chart:
    """1990-05-15 10:30: 辛巳 hour, 庚辰 day, 辛巳 month, 庚午 year."""
    return build_chart(1990, 5, 15, 10, 30)


@pytest.fixture(scope="session")
def chart_1990_no_hour() -> Chart:
    return build_chart(1990, 5, 15)


@pytest.fixture(scope="session")
def chart_1992() -> Chart:
    return build_chart(1992, 11, 3, 7, 45)


@pytest.fixture
def combine_chart() -> Chart:
    """
    甲子 hour, 己丑 day, 庚午 month, 甲戌 year.

    hour-day: 甲己 stem combine and 子丑 six combine (earth)
    day-month: 丑午 harm
    month-year: 庚甲 stem clash and 午戌 half combine (fire)
    """
    return make_chart(0, 25, 6, 10)
