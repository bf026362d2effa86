"""
Sexagenary (60-cycle) index arithmetic.

An index in [0, 60) names one stem-branch pair: stem = index % 10,
branch = index % 12. Days and years advance the index by one per unit
from fixed reference epochs; months and hours derive their stem from the
year stem and day stem respectively.
"""

from datetime import date, timedelta

from saju.errors import PillarLookupMiss


# ============================================================
# REFERENCE EPOCHS
# ============================================================

# 2000-01-01 was a 戊午 day (index 54); 1949-10-01 甲子 checks out against it.
DAY_EPOCH = date(2000, 1, 1)
DAY_EPOCH_INDEX = 54

# 2002 was a 壬午 year (index 18).
YEAR_EPOCH = 2002
YEAR_EPOCH_INDEX = 18

# Every (stem, branch) pair with matching parity, in cycle order.
SEXAGENARY_CYCLE = [(i % 10, i % 12) for i in range(60)]
_INDEX_BY_PAIR = {pair: i for i, pair in enumerate(SEXAGENARY_CYCLE)}


def gapja_index(stem: int, branch: int) -> int:
    """
    Cycle index of a stem-branch pair.

    Raises:
        PillarLookupMiss: the pair is not part of the cycle (mixed parity)
    """
    try:
        return _INDEX_BY_PAIR[(stem, branch)]
    except KeyError:
        raise PillarLookupMiss(stem, branch) from None


# ============================================================
# DAY AND YEAR
# ============================================================

def day_index(day: date) -> int:
    """Cycle index of a calendar day."""
    return (DAY_EPOCH_INDEX + (day - DAY_EPOCH).days) % 60


def date_for_day_index(index: int, near: date) -> date:
    """The day within [near - 29, near + 30] whose cycle index is `index`."""
    offset = (index - day_index(near)) % 60
    if offset > 30:
        offset -= 60
    return near + timedelta(days=offset)


def year_index(year: int) -> int:
    """Cycle index of a sexagenary year (the year starting at Ipchun)."""
    return (YEAR_EPOCH_INDEX + year - YEAR_EPOCH) % 60


def year_for_index(index: int, start: int) -> int:
    """First year at or after `start` whose cycle index is `index`."""
    return start + (index - year_index(start)) % 60


# ============================================================
# MONTH AND HOUR
# ============================================================

def month_stem_start(year_stem: int) -> int:
    """Stem of month 1 (the Tiger month) for a given year stem."""
    return ((year_stem % 5) * 2 + 2) % 10


def month_branch(month_number: int) -> int:
    """Branch of sexagenary month 1..12 (month 1 is 寅)."""
    return (month_number + 1) % 12


def month_number_for_branch(branch: int) -> int:
    """Inverse of month_branch."""
    return (branch - 2) % 12 + 1


def month_index(year_stem: int, month_number: int) -> int:
    """Cycle index of sexagenary month 1..12 in a year with the given stem."""
    if not 1 <= month_number <= 12:
        raise ValueError(f"Month number must be 1..12, got {month_number}")
    stem = (month_stem_start(year_stem) + month_number - 1) % 10
    return gapja_index(stem, month_branch(month_number))


def hour_branch(hour: int, minute: int, zi_rollover_minutes: int = 1410) -> int:
    """
    Hour branch from the 12 two-hour buckets.

    子 covers [23:30, 01:30); 丑 starts at 01:30 and every later branch
    starts two hours after the previous one (亥 is 21:30-23:30).
    """
    minutes = hour * 60 + minute
    if minutes >= zi_rollover_minutes or minutes < 90:
        return 0
    return (minutes - 90) // 120 + 1


def hour_index(day_stem: int, branch: int) -> int:
    """Cycle index of the hour with `branch` on a day with `day_stem`."""
    stem = ((day_stem % 5) * 2 + branch) % 10
    return gapja_index(stem, branch)
