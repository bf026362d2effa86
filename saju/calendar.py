"""
Solar term computation.

Each of the 24 solar terms is the moment the Sun reaches a fixed ecliptic
longitude. The twelve "jeol" terms starting at Ipchun (315°) delimit the
sexagenary months, and Ipchun itself opens the sexagenary year.

Term instants are found by scanning day by day for the wraparound of
(sun longitude - target) mod 360 and then bisecting the bracketing day.
Results are memoized per (year, term name) for the life of the engine.
"""

from datetime import date, datetime, timedelta, timezone
from dataclasses import dataclass
from typing import Optional
import logging
import math
import threading
import swisseph as swe

from saju.errors import TermNotFound
from saju.settings import ChartSettings, DEFAULT_SETTINGS

logger = logging.getLogger(__name__)


# ============================================================
# SOLAR TERM TABLE
# ============================================================
#
# (korean name, hanja, target longitude, month the search is seeded from)
# Terms seeded from January start scanning on Dec 17 of the previous year,
# all others 15 days before the first of their month.

SOLAR_TERMS = [
    ("소한", "小寒", 285, 1),
    ("대한", "大寒", 300, 1),
    ("입춘", "立春", 315, 2),
    ("우수", "雨水", 330, 2),
    ("경칩", "驚蟄", 345, 3),
    ("춘분", "春分", 0, 3),
    ("청명", "淸明", 15, 4),
    ("곡우", "穀雨", 30, 4),
    ("입하", "立夏", 45, 5),
    ("소만", "小滿", 60, 5),
    ("망종", "芒種", 75, 6),
    ("하지", "夏至", 90, 6),
    ("소서", "小暑", 105, 7),
    ("대서", "大暑", 120, 7),
    ("입추", "立秋", 135, 8),
    ("처서", "處暑", 150, 8),
    ("백로", "白露", 165, 9),
    ("추분", "秋分", 180, 9),
    ("한로", "寒露", 195, 10),
    ("상강", "霜降", 210, 10),
    ("입동", "立冬", 225, 11),
    ("소설", "小雪", 240, 11),
    ("대설", "大雪", 255, 12),
    ("동지", "冬至", 270, 12),
]

TERM_LONGITUDE = {name: lon for name, _, lon, _ in SOLAR_TERMS}
TERM_SEED_MONTH = {name: month for name, _, _, month in SOLAR_TERMS}

START_OF_SPRING = "입춘"

# The twelve month-opening terms in sexagenary order (month 1 = Tiger month).
# Month 12 (Sohan) falls in January of the following calendar year.
MONTH_TERMS = [
    ("입춘", 1), ("경칩", 2), ("청명", 3), ("입하", 4),
    ("망종", 5), ("소서", 6), ("입추", 7), ("백로", 8),
    ("한로", 9), ("입동", 10), ("대설", 11), ("소한", 12),
]


@dataclass(frozen=True)
class SolarTermBoundary:
    name: str
    longitude: float
    instant: datetime
    month_number: Optional[int] = None  # sexagenary month opened by this term

    def to_dict(self):
        return {
            "name": self.name,
            "longitude": self.longitude,
            "instant": self.instant.isoformat(),
            "month_number": self.month_number,
        }


# ============================================================
# ASTRONOMY HELPERS
# ============================================================

def normalize_degrees(angle: float) -> float:
    """Normalize an angle into [0, 360)."""
    angle = math.fmod(angle, 360.0)
    if angle < 0:
        angle += 360.0
    return angle


def sun_longitude(jd: float) -> float:
    """
    Apparent ecliptic longitude of the Sun, truncated analytic series.

    Mean longitude plus the equation of center, corrected for aberration
    and the main nutation term. Good to roughly 0.01° over 1900-2100.
    """
    t = (jd - 2451545.0) / 36525.0
    mean_longitude = normalize_degrees(280.46646 + t * (36000.76983 + t * 0.0003032))
    mean_anomaly = math.radians(math.fmod(357.52911 + t * (35999.05029 - t * 0.0001537), 360.0))

    center = ((1.914602 - t * (0.004817 + t * 0.000014)) * math.sin(mean_anomaly)
              + (0.019993 - t * 0.000101) * math.sin(2 * mean_anomaly)
              + 0.000289 * math.sin(3 * mean_anomaly))

    omega = math.radians(125.04 - 1934.136 * t)
    return normalize_degrees(mean_longitude + center - 0.00569 - 0.00478 * math.sin(omega))


def swisseph_sun_longitude(jd: float) -> float:
    """Sun longitude from the Swiss Ephemeris Moshier model (no data files needed)."""
    result, flag = swe.calc_ut(jd, swe.SUN, swe.FLG_MOSEPH)
    return normalize_degrees(result[0])


def julian_day(instant: datetime) -> float:
    """Julian Day (UT) of an aware datetime."""
    utc = instant.astimezone(timezone.utc)
    hours = utc.hour + utc.minute / 60.0 + utc.second / 3600.0
    return swe.julday(utc.year, utc.month, utc.day, hours)


def jd_to_local(jd: float, tz: timezone) -> datetime:
    """Convert a Julian Day (UT) to a local calendar instant, truncated to the second."""
    offset_hours = tz.utcoffset(None).total_seconds() / 3600.0
    y, m, d, h = swe.revjul(jd + offset_hours / 24.0)
    local = datetime(int(y), int(m), int(d), tzinfo=tz) + timedelta(hours=h)
    return local.replace(microsecond=0)


# ============================================================
# SOLAR TERM ENGINE
# ============================================================

class SolarTermEngine:
    """
    Finds solar term instants and memoizes them per (year, term name).

    The cache is append-only and never invalidated; writes are guarded by a
    lock so one engine can be shared between threads.
    """

    def __init__(self, settings: ChartSettings = DEFAULT_SETTINGS.chart):
        self.settings = settings
        self.tz = timezone(timedelta(hours=settings.utc_offset_hours))
        self._longitude = sun_longitude if settings.sun_model == "series" else swisseph_sun_longitude
        self._cache: dict[tuple[int, str], datetime] = {}
        self._lock = threading.Lock()

    def _offset(self, jd: float, target: float) -> float:
        return normalize_degrees(self._longitude(jd) - target)

    def find_term_instant(self, year: int, term_name: str,
                          target_longitude: Optional[float] = None) -> datetime:
        """
        Exact local instant of a solar term in a given year.

        Args:
            year: calendar year the term falls in
            term_name: Korean term name (see SOLAR_TERMS)
            target_longitude: defaults to the table longitude of the term

        Raises:
            TermNotFound: no crossing inside the scan window
        """
        key = (year, term_name)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        if term_name not in TERM_SEED_MONTH:
            raise ValueError(f"Unknown solar term: {term_name}")
        if target_longitude is None:
            target_longitude = TERM_LONGITUDE[term_name]

        instant = self._search(year, term_name, float(target_longitude))
        with self._lock:
            instant = self._cache.setdefault(key, instant)
        logger.debug("Solar term %s %d resolved to %s", term_name, year, instant.isoformat())
        return instant

    def _search(self, year: int, term_name: str, target: float) -> datetime:
        seed_month = TERM_SEED_MONTH[term_name]
        if seed_month == 1:
            seed = date(year - 1, 12, 17)
        else:
            seed = date(year, seed_month, 1) - timedelta(days=15)

        jd_start = swe.julday(seed.year, seed.month, seed.day, 0.0)
        previous = None

        for i in range(self.settings.scan_days):
            jd = jd_start + i
            offset = self._offset(jd, target)
            # wraparound from just below the target to just above it
            if previous is not None and previous > 300 and offset < 60:
                lo, hi = jd - 1, jd
                for _ in range(self.settings.bisection_iterations):
                    mid = (lo + hi) / 2
                    if self._offset(mid, target) > 180:
                        lo = mid
                    else:
                        hi = mid
                return jd_to_local((lo + hi) / 2, self.tz)
            previous = offset

        raise TermNotFound(year, term_name)

    def boundary(self, year: int, term_name: str,
                 month_number: Optional[int] = None) -> SolarTermBoundary:
        return SolarTermBoundary(
            name=term_name,
            longitude=TERM_LONGITUDE[term_name],
            instant=self.find_term_instant(year, term_name),
            month_number=month_number,
        )

    def year_terms(self, year: int) -> list[SolarTermBoundary]:
        """All 24 solar terms of a calendar year in chronological order."""
        terms = [self.boundary(year, name) for name, _, _, _ in SOLAR_TERMS]
        terms.sort(key=lambda t: t.instant)
        return terms

    def month_boundaries(self, saju_year: int) -> list[SolarTermBoundary]:
        """
        The 12 month-opening terms of a sexagenary year plus the next Ipchun.

        Strictly increasing in time; month i covers [boundary[i], boundary[i+1]).
        """
        boundaries = []
        for name, month_number in MONTH_TERMS:
            term_year = saju_year + 1 if month_number == 12 else saju_year
            boundaries.append(self.boundary(term_year, name, month_number))
        boundaries.append(self.boundary(saju_year + 1, START_OF_SPRING))
        return boundaries


_ENGINES: dict[ChartSettings, SolarTermEngine] = {}
_ENGINES_LOCK = threading.Lock()


def get_engine(settings: ChartSettings = DEFAULT_SETTINGS.chart) -> SolarTermEngine:
    """Shared engine (and term cache) for a given chart configuration."""
    engine = _ENGINES.get(settings)
    if engine is None:
        with _ENGINES_LOCK:
            engine = _ENGINES.setdefault(settings, SolarTermEngine(settings))
    return engine


def find_term_instant(year: int, term_name: str,
                      target_longitude: Optional[float] = None) -> datetime:
    """Term instant from the default engine."""
    return get_engine().find_term_instant(year, term_name, target_longitude)


# Quick verification
if __name__ == "__main__":
    engine = get_engine()
    print("2026 solar terms (KST):")
    for term in engine.year_terms(2026):
        print(f"  {term.name} {term.longitude:>3}° → {term.instant:%Y-%m-%d %H:%M:%S}")
