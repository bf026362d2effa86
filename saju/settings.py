"""
Tunable engine parameters.

The defaults reproduce the reference behaviour. Several of them (the 23:30
day rollover, the resistance roles, the dominant-branch split fractions) are
empirical choices rather than derived values, so they live here instead of
being inlined in the algorithms.

Usage:
    from saju.settings import load_settings
    settings = load_settings(Path("engine.yaml"))
"""

from pathlib import Path
from types import MappingProxyType
from typing import Annotated, Literal

import yaml
from pydantic import AfterValidator, BaseModel, ConfigDict, Field, PlainSerializer, ValidationError


def _freeze(value):
    return MappingProxyType(dict(value))


def _thaw(value):
    return dict(value)


# Per-position tables are read-only once validated
FloatTable = Annotated[dict[str, float], AfterValidator(_freeze), PlainSerializer(_thaw)]
IntTable = Annotated[dict[str, int], AfterValidator(_freeze), PlainSerializer(_thaw)]


class ChartSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    # 23:30 in minutes; births at or after this belong to the next day pillar
    zi_rollover_minutes: int = Field(1410, ge=0, lt=1440)
    # used for year/month placement when the birth hour is unknown
    unknown_time: tuple[int, int] = (12, 0)
    utc_offset_hours: float = 9.0
    scan_days: int = Field(50, gt=0)
    bisection_iterations: int = Field(52, gt=0)
    sun_model: Literal["series", "swisseph"] = "series"


class WeighingSettings(BaseModel):
    model_config = ConfigDict(frozen=True, validate_default=True)

    stem_weights: FloatTable = {"hour": 10.0, "day": 15.0, "month": 20.0, "year": 10.0}
    branch_weights: FloatTable = {"hour": 15.0, "day": 20.0, "month": 30.0, "year": 15.0}
    stem_fraction: float = 1 / 3
    branch_fraction: float = 2 / 3
    half_combine_fraction: float = 2 / 3
    resistance_factor: float = 0.5
    # (first, second, target): target resists when the pair (first, second) interacts
    resisting_roles: tuple[tuple[str, str, str], ...] = (
        ("hour", "day", "day"),
        ("day", "month", "day"),
        ("day", "month", "month"),
        ("month", "year", "month"),
    )
    # half-combine pairs split by which member is the dominant (cardinal) branch,
    # oriented (inner, outer): month-year and day-hour
    split_pairs: tuple[tuple[str, str], ...] = (("month", "year"), ("day", "hour"))
    split_inner_dominant: tuple[float, float] = (1 / 6, 2 / 3)
    split_outer_dominant: tuple[float, float] = (1 / 3, 1 / 6)
    split_neutral: tuple[float, float] = (1 / 3, 1 / 3)


class YongsinSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    excess_percent: int = 40
    deficient_percent: int = 13
    mediator_percent: int = 20


class CompatibilitySettings(BaseModel):
    model_config = ConfigDict(frozen=True, validate_default=True)

    excess_percent: int = 30
    deficient_percent: int = 15
    attachment_strong_percent: int = 20
    attachment_deficient_percent: int = 13

    full_combine_points: int = 30
    favorable_bonus: int = 10
    six_combine_points: IntTable = {"day": 15, "month": 10, "year": 5, "hour": 5}
    half_combine_points: IntTable = {"day": 10, "month": 10, "year": 3, "hour": 3}
    clash_points: IntTable = {"day": -10, "month": -15, "year": -5, "hour": -5}

    stem_position_weights: FloatTable = {"day": 1.0, "month": 0.6, "year": 0.3, "hour": 0.3}
    stem_combine_base: int = 7
    stem_clash_base: int = 5

    cross_fill_points: int = 15
    mutual_fill_points: int = 5
    shared_excess_points: int = 10
    # match search only: each deficient element both candidates lack
    shared_deficiency_points: int = -8

    complementary_attachment_points: int = 10
    giver_taker_points: int = 5
    secure_points: int = 8
    both_secure_points: int = 7
    same_unstable_points: int = -10
    same_subrole_points: int = -5
    ten_god_match_points: int = 8

    stage_same_band_points: int = -3
    stage_complement_points: int = 3
    triple_punishment_points: int = -3


class EngineSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    chart: ChartSettings = Field(default_factory=ChartSettings)
    weighing: WeighingSettings = Field(default_factory=WeighingSettings)
    yongsin: YongsinSettings = Field(default_factory=YongsinSettings)
    compatibility: CompatibilitySettings = Field(default_factory=CompatibilitySettings)


DEFAULT_SETTINGS = EngineSettings()


def load_settings(path: Path) -> EngineSettings:
    """
    Load engine settings from a YAML file.
    Missing keys fall back to the defaults.
    Raises FileNotFoundError if the file is missing, ValueError if invalid.
    """
    if not path.exists():
        raise FileNotFoundError(f"Settings file not found at: {path}")

    with open(path) as f:
        content = f.read()

    try:
        data = yaml.safe_load(content) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML syntax in settings file: {e}") from e

    try:
        return EngineSettings.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Settings validation failed:\n{e}") from e
