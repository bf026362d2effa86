"""
Compatibility (궁합) scoring between two charts.

Six additive stages, each logged to an ordered list of notes:

1. Branches: complete three-harmony / directional frames across both
   month and day branches, then same-position six combines, half
   combines and clashes.
2. Stems: same-position combines and clashes, weighted by position.
3. Elements: one person's excess elements filling the other's deficiency.
4. Ten god groups: attachment archetypes and dominant-group matches.
5. Twelve stages and triple punishments.
6. Special situations (currently none score).

The raw sum is normalized as clamp(round(50 + raw), 0, 100).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from saju.bazi import (
    CONTROL_CYCLE, CONTROLLED_BY, EARTHLY_BRANCHES, ELEMENT_KOREAN, ELEMENTS,
    HEAVENLY_STEMS, PRODUCED_BY, PRODUCTION_CYCLE, Chart, Element, Position,
    TenGod, TenGodGroup, TwelveStage, ten_god,
)
from saju.elements import (
    ElementDistribution, YongsinResult, resolve_favorable, round_half_up,
    ten_god_groups, weigh_elements,
)
from saju.relations import (
    Category, PunishmentKind,
    check_branch_pair, check_stem_pair, directional_combine, half_combine,
    is_branch_clash, six_combine, triple_combine, triple_punishment,
)
from saju.settings import CompatibilitySettings, EngineSettings, DEFAULT_SETTINGS


# ============================================================
# PERSON PROFILE
# ============================================================

class AttachmentStyle(Enum):
    SECURE = "안정형"
    AVOIDANT = "회피형"
    ANXIOUS = "불안형"
    NONE = "해당 사항 없음"


class AttachmentRole(Enum):
    BALANCED = "균형"
    GIVER = "기버"
    TAKER = "테이커"
    NEUTRAL = "보통"
    NONE = ""


@dataclass(frozen=True)
class Attachment:
    style: AttachmentStyle
    role: AttachmentRole

    @property
    def unstable(self) -> bool:
        return self.style in (AttachmentStyle.AVOIDANT, AttachmentStyle.ANXIOUS)


class StageBand(Enum):
    GROWTH = "생지"
    PEAK = "왕지"
    DECLINE = "묘지"


def stage_band(stage: TwelveStage) -> StageBand:
    if stage in (TwelveStage.BIRTH, TwelveStage.BATH, TwelveStage.CROWN):
        return StageBand.GROWTH
    if stage in (TwelveStage.OFFICE, TwelveStage.PEAK):
        return StageBand.PEAK
    return StageBand.DECLINE


@dataclass(frozen=True)
class PersonProfile:
    has_hour: bool
    branches: tuple[int, ...]
    distribution: ElementDistribution
    favorable: YongsinResult
    excess: tuple[Element, ...]
    deficient: Element
    deficient_list: tuple[Element, ...]
    groups: dict[TenGodGroup, int]
    dominant_group: TenGodGroup
    attachment: Attachment
    month_stage: TwelveStage
    day_stage: TwelveStage

    def to_dict(self):
        return {
            "has_hour": self.has_hour,
            "excess": [e.value for e in self.excess],
            "deficient": self.deficient.value,
            "deficient_list": [e.value for e in self.deficient_list],
            "groups": {g.value: p for g, p in self.groups.items()},
            "dominant_group": self.dominant_group.value,
            "attachment": self.attachment.style.value,
            "attachment_role": self.attachment.role.value,
            "month_stage": self.month_stage.value,
            "day_stage": self.day_stage.value,
            "favorable": self.favorable.to_dict(),
            "percentages": {e.value: p for e, p in self.distribution.percentages.items()},
        }


def excess_elements(distribution: ElementDistribution, threshold: int) -> tuple[Element, ...]:
    """Elements at or above `threshold`, or the single strongest if none are."""
    p = distribution.percentages
    excess = tuple(e for e in ELEMENTS if p[e] >= threshold)
    return excess or (distribution.ranked()[0],)


def deficient_element(distribution: ElementDistribution, threshold: int) -> Element:
    """Last element at or below `threshold`, or the weakest if none are."""
    p = distribution.percentages
    deficient = [e for e in ELEMENTS if p[e] <= threshold]
    if deficient:
        return deficient[-1]
    return min(reversed(ELEMENTS), key=lambda e: p[e])


def classify_attachment(groups: dict[TenGodGroup, int], day_element: Element,
                        deficient: list[Element], strong: int) -> Attachment:
    """
    Attachment archetype from group percentages.

    Secure: no deficient element at all.
    Avoidant: wealth or officer strong while resource and output are both deficient.
    Anxious: resource or output strong while wealth and officer are both deficient.
    """
    if not deficient:
        return Attachment(AttachmentStyle.SECURE, AttachmentRole.BALANCED)

    wealth, officer = groups[TenGodGroup.WEALTH], groups[TenGodGroup.OFFICER]
    resource, output = groups[TenGodGroup.RESOURCE], groups[TenGodGroup.OUTPUT]
    lacks_resource = PRODUCED_BY[day_element] in deficient
    lacks_output = PRODUCTION_CYCLE[day_element] in deficient
    lacks_wealth = CONTROL_CYCLE[day_element] in deficient
    lacks_officer = CONTROLLED_BY[day_element] in deficient

    if (wealth >= strong or officer >= strong) and lacks_resource and lacks_output:
        role = AttachmentRole.NEUTRAL
        if wealth >= officer * 2:
            role = AttachmentRole.GIVER
        elif officer >= wealth * 2:
            role = AttachmentRole.TAKER
        return Attachment(AttachmentStyle.AVOIDANT, role)

    if (resource >= strong or output >= strong) and lacks_wealth and lacks_officer:
        role = AttachmentRole.NEUTRAL
        if resource >= output * 2:
            role = AttachmentRole.TAKER
        elif output >= resource * 2:
            role = AttachmentRole.GIVER
        return Attachment(AttachmentStyle.ANXIOUS, role)

    return Attachment(AttachmentStyle.NONE, AttachmentRole.NONE)


def build_profile(chart: Chart, has_hour: Optional[bool] = None,
                  settings: EngineSettings = DEFAULT_SETTINGS) -> PersonProfile:
    compat = settings.compatibility
    details = chart.active_positions(has_hour)
    distribution, _ = weigh_elements(chart, has_hour, settings)
    p = distribution.percentages

    day_element = chart.day.pillar.element
    groups = ten_god_groups(distribution, day_element)
    dominant_group = max(TenGodGroup, key=lambda g: groups[g])
    attachment_deficient = [e for e in ELEMENTS if p[e] <= compat.attachment_deficient_percent]

    return PersonProfile(
        has_hour=len(details) == 4,
        branches=tuple(d.pillar.branch_index for d in details),
        distribution=distribution,
        favorable=resolve_favorable(distribution, settings),
        excess=excess_elements(distribution, compat.excess_percent),
        deficient=deficient_element(distribution, compat.deficient_percent),
        deficient_list=tuple(e for e in ELEMENTS if p[e] <= compat.deficient_percent),
        groups=groups,
        dominant_group=dominant_group,
        attachment=classify_attachment(groups, day_element, attachment_deficient,
                                       compat.attachment_strong_percent),
        month_stage=chart.month.twelve_stage,
        day_stage=chart.day.twelve_stage,
    )


# ============================================================
# RESULT
# ============================================================

@dataclass(frozen=True)
class CrossCount:
    """Same-position relations between the two charts, for display."""
    stem_combines: int = 0
    stem_clashes: int = 0
    branch_combines: int = 0
    branch_clashes: int = 0
    branch_punishments: int = 0

    def to_dict(self):
        return {
            "stem_combines": self.stem_combines,
            "stem_clashes": self.stem_clashes,
            "branch_combines": self.branch_combines,
            "branch_clashes": self.branch_clashes,
            "branch_punishments": self.branch_punishments,
        }


GRADES = [
    (80, "S", "천생연분"),
    (70, "A", "좋은 궁합"),
    (60, "B", "무난한 궁합"),
    (50, "C", "보통"),
]


@dataclass(frozen=True)
class CompatibilityResult:
    branch: int
    stem: int
    element: int
    ten_god_group: int
    twelve_stage: int
    special: int
    raw: int
    total: int
    notes: list[str]
    flags: dict
    profile_a: PersonProfile
    profile_b: PersonProfile
    day_relation_ab: TenGod  # B's day stem seen from A
    day_relation_ba: TenGod
    cross: CrossCount = field(default_factory=CrossCount)

    @property
    def grade(self) -> tuple[str, str]:
        for floor, grade, label in GRADES:
            if self.total >= floor:
                return grade, label
        return "D", "노력 필요"

    def breakdown(self) -> dict[str, int]:
        return {
            "branch": self.branch,
            "stem": self.stem,
            "element": self.element,
            "ten_god_group": self.ten_god_group,
            "twelve_stage": self.twelve_stage,
            "special": self.special,
        }

    def to_dict(self):
        grade, label = self.grade
        return {
            "total": self.total,
            "raw": self.raw,
            "grade": grade,
            "grade_label": label,
            "breakdown": self.breakdown(),
            "notes": list(self.notes),
            "flags": dict(self.flags),
            "day_relation_ab": self.day_relation_ab.value,
            "day_relation_ba": self.day_relation_ba.value,
            "cross": self.cross.to_dict(),
            "profile_a": self.profile_a.to_dict(),
            "profile_b": self.profile_b.to_dict(),
        }


# ============================================================
# SCORING
# ============================================================

POSITION_NAMES = {
    Position.DAY: "일",
    Position.MONTH: "월",
    Position.YEAR: "년",
    Position.HOUR: "시",
}

# Branch checks run month first
BRANCH_ORDER = [Position.MONTH, Position.DAY, Position.YEAR, Position.HOUR]


def _branch_glyphs(a: int, b: int) -> str:
    return EARTHLY_BRANCHES[a].chinese + EARTHLY_BRANCHES[b].chinese


def _stem_glyphs(a: int, b: int) -> str:
    return HEAVENLY_STEMS[a].chinese + HEAVENLY_STEMS[b].chinese


def punishment_pattern(branches) -> Optional[PunishmentKind]:
    """Triple punishment, or the 子卯 pair, anywhere in a branch set."""
    kind = triple_punishment(branches)
    if kind is None and {0, 3} <= set(branches):
        kind = PunishmentKind.RUDE
    return kind


class _Scorer:
    def __init__(self, chart_a: Chart, chart_b: Chart, has_hour_a: bool, has_hour_b: bool,
                 settings: EngineSettings):
        self.a = chart_a
        self.b = chart_b
        self.settings = settings
        self.points: CompatibilitySettings = settings.compatibility
        self.profile_a = build_profile(chart_a, has_hour_a, settings)
        self.profile_b = build_profile(chart_b, has_hour_b, settings)
        self.shared_positions = [Position.DAY, Position.MONTH, Position.YEAR]
        if self.profile_a.has_hour and self.profile_b.has_hour:
            self.shared_positions.append(Position.HOUR)
        self.notes: list[str] = []
        self.flags = {"same_favorable": False, "triple_punishment": None}
        self.any_combine = False

    def _favorable_bonus(self, element: Element) -> int:
        score = 0
        for tag, profile in (("본인", self.profile_a), ("상대", self.profile_b)):
            if profile.favorable.primary is element:
                score += self.points.favorable_bonus
                self.notes.append(f"  → {tag} 용신({ELEMENT_KOREAN[element]}): +{self.points.favorable_bonus}")
        return score

    def branches(self) -> int:
        score = 0
        four = [self.a.month.pillar.branch_index, self.a.day.pillar.branch_index,
                self.b.month.pillar.branch_index, self.b.day.pillar.branch_index]
        complete = False
        for name, element in (("삼합", triple_combine(four)), ("방합", directional_combine(four))):
            if element is not None:
                score += self.points.full_combine_points
                self.notes.append(f"[지지] 완전{name} → {ELEMENT_KOREAN[element]} → +{self.points.full_combine_points}")
                score += self._favorable_bonus(element)
                complete = True
                break

        # month first, then day, year, hour
        for position in [p for p in BRANCH_ORDER if p in self.shared_positions]:
            b1 = self.a.detail(position).pillar.branch_index
            b2 = self.b.detail(position).pillar.branch_index
            label = POSITION_NAMES[position] + "지"
            six = six_combine(b1, b2)
            half = half_combine(b1, b2)
            if six is not None:
                pts = self.points.six_combine_points[position.value]
                score += pts
                self.notes.append(f"[지지] {label} 육합: {_branch_glyphs(b1, b2)}합({ELEMENT_KOREAN[six]}) → +{pts}")
                score += self._favorable_bonus(six)
                self.any_combine = True
            elif half is not None and not complete:
                pts = self.points.half_combine_points[position.value]
                score += pts
                self.notes.append(f"[지지] {label} 삼합반합: {_branch_glyphs(b1, b2)}반합({ELEMENT_KOREAN[half]}) → +{pts}")
                score += self._favorable_bonus(half)
                self.any_combine = True
            elif is_branch_clash(b1, b2):
                pts = self.points.clash_points[position.value]
                score += pts
                self.notes.append(f"[지지] {label} 충: {_branch_glyphs(b1, b2)}충 → {pts}")
        return score

    def stems(self) -> int:
        score = 0
        for position in self.shared_positions:
            s1 = self.a.detail(position).pillar.stem_index
            s2 = self.b.detail(position).pillar.stem_index
            match = check_stem_pair(s1, s2)
            if match is None:
                continue
            weight = self.points.stem_position_weights[position.value]
            label = POSITION_NAMES[position] + "간"
            if match.category is Category.COMBINE:
                pts = round_half_up(self.points.stem_combine_base * weight)
                score += pts
                self.notes.append(f"[천간] {label}합: {_stem_glyphs(s1, s2)}합({ELEMENT_KOREAN[match.element]}) → +{pts}")
            else:
                pts = round_half_up(self.points.stem_clash_base * weight)
                score -= pts
                self.notes.append(f"[천간] {label}충: {_stem_glyphs(s1, s2)}충 → -{pts}")
        return score

    def elements(self) -> int:
        a, b = self.profile_a, self.profile_b
        score = 0
        a_fills_b = b.deficient in a.excess
        b_fills_a = a.deficient in b.excess
        if a_fills_b:
            score += self.points.cross_fill_points
            self.notes.append(f"[오행] 본인발달 → 상대부족({ELEMENT_KOREAN[b.deficient]}) 채움: +{self.points.cross_fill_points}")
        if b_fills_a:
            score += self.points.cross_fill_points
            self.notes.append(f"[오행] 상대발달 → 본인부족({ELEMENT_KOREAN[a.deficient]}) 채움: +{self.points.cross_fill_points}")
        if a_fills_b and b_fills_a:
            score += self.points.mutual_fill_points
            self.notes.append(f"[오행] 상호보완 시너지: +{self.points.mutual_fill_points}")

        common = [e for e in a.excess if e in b.excess]
        if common and self.any_combine:
            score += self.points.shared_excess_points
            names = ",".join(ELEMENT_KOREAN[e] for e in common)
            self.notes.append(f"[오행] 발달오행 겹침({names})+합 존재: +{self.points.shared_excess_points}")

        if a.favorable.primary is b.favorable.primary:
            self.flags["same_favorable"] = True
            self.notes.append(f"[오행] 용신 동일({ELEMENT_KOREAN[a.favorable.primary]}) → 세운 확인 권장")
        return score

    def attachment(self) -> int:
        a, b = self.profile_a.attachment, self.profile_b.attachment
        score = 0
        styles = {a.style, b.style}

        if styles == {AttachmentStyle.AVOIDANT, AttachmentStyle.ANXIOUS}:
            score += self.points.complementary_attachment_points
            self.notes.append(f"[애착] {a.style.value}↔{b.style.value}: 상호보완 → +{self.points.complementary_attachment_points}")
            if {a.role, b.role} == {AttachmentRole.GIVER, AttachmentRole.TAKER}:
                score += self.points.giver_taker_points
                self.notes.append(f"[애착] 기버↔테이커 조합: +{self.points.giver_taker_points}")

        if AttachmentStyle.SECURE in styles:
            score += self.points.secure_points
            self.notes.append(f"[애착] 안정형 포함: +{self.points.secure_points}")
            if styles == {AttachmentStyle.SECURE}:
                score += self.points.both_secure_points
                self.notes.append(f"[애착] 둘 다 안정형: +{self.points.both_secure_points}")

        if a.style is b.style and a.unstable:
            score += self.points.same_unstable_points
            self.notes.append(f"[애착] 동일유형({a.style.value}): {self.points.same_unstable_points}")
            if a.role is b.role and a.role in (AttachmentRole.GIVER, AttachmentRole.TAKER):
                score += self.points.same_subrole_points
                self.notes.append(f"[애착] 동일 서브타입({a.role.value}): {self.points.same_subrole_points}")

        pair = {self.profile_a.dominant_group, self.profile_b.dominant_group}
        if pair in ({TenGodGroup.OUTPUT, TenGodGroup.RESOURCE}, {TenGodGroup.WEALTH, TenGodGroup.OFFICER}):
            score += self.points.ten_god_match_points
            self.notes.append(f"[십성] 특별매칭: {self.profile_a.dominant_group.value}↔"
                              f"{self.profile_b.dominant_group.value} → +{self.points.ten_god_match_points}")
        return score

    def twelve_stages(self) -> int:
        a, b = self.profile_a, self.profile_b
        score = 0
        a_band, b_band = stage_band(a.day_stage), stage_band(b.day_stage)

        if stage_band(a.month_stage) is a_band and stage_band(b.month_stage) is b_band:
            if a_band is b_band:
                if a.day_stage is b.day_stage:
                    self.notes.append(f"[운성] 동일 운성({a.day_stage.value}+{b.day_stage.value}): 0")
                elif is_branch_clash(self.a.day.pillar.branch_index, self.b.day.pillar.branch_index):
                    self.notes.append(f"[운성] 동일카테고리({a_band.value}) 충 관계 → 기존 충 점수 유지")
                else:
                    score += self.points.stage_same_band_points
                    self.notes.append(f"[운성] 동일카테고리({a_band.value}: {a.day_stage.value}↔"
                                      f"{b.day_stage.value}): {self.points.stage_same_band_points}")
            elif {a_band, b_band} == {StageBand.GROWTH, StageBand.DECLINE}:
                score += self.points.stage_complement_points
                self.notes.append(f"[운성] 생지↔묘지 보완: +{self.points.stage_complement_points}")
        else:
            self.notes.append("[운성] 적용조건 미충족")

        kind = punishment_pattern(a.branches + b.branches)
        if kind is not None:
            score += self.points.triple_punishment_points
            self.flags["triple_punishment"] = kind.value
            self.notes.append(f"[운성] 삼형({kind.value}): {self.points.triple_punishment_points}")
        return score

    def cross_count(self) -> CrossCount:
        counts = dict(stem_combines=0, stem_clashes=0, branch_combines=0,
                      branch_clashes=0, branch_punishments=0)
        for position in self.shared_positions:
            pa, pb = self.a.detail(position).pillar, self.b.detail(position).pillar
            match = check_stem_pair(pa.stem_index, pb.stem_index)
            if match is not None:
                key = "stem_combines" if match.category is Category.COMBINE else "stem_clashes"
                counts[key] += 1
            matches = check_branch_pair(pa.branch_index, pb.branch_index)
            for m in matches:
                if m.category is Category.COMBINE:
                    counts["branch_combines"] += 1
                elif m.category is Category.CLASH:
                    counts["branch_clashes"] += 1
                elif m.category is Category.PUNISHMENT:
                    counts["branch_punishments"] += 1
            if half_combine(pa.branch_index, pb.branch_index) is not None:
                counts["branch_combines"] += 1
        return CrossCount(**counts)

    def run(self) -> CompatibilityResult:
        branch = self.branches()
        stem = self.stems()
        element = self.elements()
        groups = self.attachment()
        stages = self.twelve_stages()
        special = 0

        raw = branch + stem + element + groups + stages + special
        total = max(0, min(100, round_half_up(50 + raw)))
        return CompatibilityResult(
            branch=branch, stem=stem, element=element, ten_god_group=groups,
            twelve_stage=stages, special=special, raw=raw, total=total,
            notes=self.notes, flags=self.flags,
            profile_a=self.profile_a, profile_b=self.profile_b,
            day_relation_ab=ten_god(self.a.day_stem, self.b.day_stem),
            day_relation_ba=ten_god(self.b.day_stem, self.a.day_stem),
            cross=self.cross_count(),
        )


def score_compatibility(chart_a: Chart, chart_b: Chart,
                        has_hour_a: Optional[bool] = None, has_hour_b: Optional[bool] = None,
                        settings: EngineSettings = DEFAULT_SETTINGS) -> CompatibilityResult:
    """
    Score two charts against each other.

    Args:
        chart_a: the reference person (본인)
        chart_b: the partner (상대)
        has_hour_a, has_hour_b: None follows each chart's own has_hour

    Returns:
        CompatibilityResult with per-stage scores, notes and a total in [0, 100]
    """
    return _Scorer(chart_a, chart_b, has_hour_a, has_hour_b, settings).run()
