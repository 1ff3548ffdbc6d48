"""
조후 템플릿 (궁통보감식 계절 필수 오행 + 일간별 선호 천간)

- 겨울은 화(火), 여름은 수(水) 필수 → season_mandatory_boost
- 일간별 선호 천간(互不離) → stem_preference_boost
- 冬生要丙 / 夏生要癸 보조 천간 (enforce_summer_winter)
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from sajugraph.services.ganji import (
    CHEONGAN_HANJA, JIJI_HANJA, ELEMENT_ORDER, Element, SeasonGroup,
    season_group_of, stem_element,
)

DEFAULT_STEM_PREFERENCES: Dict[str, List[str]] = {
    "甲": ["庚"],
    "乙": ["癸"],
    "丙": ["壬"],
    "丁": ["甲"],
    "戊": ["甲"],
    "己": ["丙"],
    "庚": ["丁"],
    "辛": ["壬"],
    "壬": ["戊"],
    "癸": ["辛"],
}

SEASON_HELPER_STEM = {SeasonGroup.WINTER: "丙", SeasonGroup.SUMMER: "癸"}


class JohooTemplatePolicy(BaseModel):
    enabled: bool = False
    season_mandatory_boost: float = 0.35
    stem_preference_boost: float = 0.25
    enforce_summer_winter: bool = True
    stem_preferences_override: Optional[Dict[str, List[str]]] = None

    class Config:
        frozen = True
        extra = "ignore"


def _stem_preferences(policy: JohooTemplatePolicy) -> Dict[str, List[str]]:
    prefs = dict(DEFAULT_STEM_PREFERENCES)
    for key, stems in (policy.stem_preferences_override or {}).items():
        cleaned = [s.strip() for s in stems if isinstance(s, str) and s.strip() in CHEONGAN_HANJA]
        if cleaned:
            prefs[key] = cleaned
    return prefs


def mandatory_by_season(season: SeasonGroup) -> List[Element]:
    if season == SeasonGroup.WINTER:
        return [Element.FIRE]
    if season == SeasonGroup.SUMMER:
        return [Element.WATER]
    return []


def compute_johoo_template(
    policy: JohooTemplatePolicy,
    day_stem: int,
    month_branch: int,
    climate_scores: Dict[Element, float],
) -> Optional[Dict[str, Any]]:
    """비활성이면 None"""
    if not policy.enabled:
        return None

    season = season_group_of(month_branch)
    day_stem_hanja = CHEONGAN_HANJA[day_stem]

    preferred_hanja = list(_stem_preferences(policy).get(day_stem_hanja, []))
    preferred_stems = [CHEONGAN_HANJA.index(h) for h in preferred_hanja]
    mandatory = mandatory_by_season(season)

    bonus = {e: 0.0 for e in ELEMENT_ORDER}
    reasons: List[str] = []

    for e in mandatory:
        bonus[e] += policy.season_mandatory_boost
    if mandatory:
        reasons.append(f"seasonMandatory:{season.value}")

    for s in preferred_stems:
        bonus[stem_element(s)] += policy.stem_preference_boost
    if preferred_stems:
        reasons.append(f"stemPreference:{day_stem_hanja}")

    helper = SEASON_HELPER_STEM.get(season) if policy.enforce_summer_winter else None
    if helper is not None:
        helper_stem = CHEONGAN_HANJA.index(helper)
        if helper_stem not in preferred_stems:
            preferred_hanja.append(helper)
            preferred_stems.append(helper_stem)
            bonus[stem_element(helper_stem)] += policy.stem_preference_boost
            reasons.append(f"seasonStemHelper:{season.value}:{helper}")

    combined = {e: climate_scores.get(e, 0.0) + bonus[e] for e in ELEMENT_ORDER}
    ranking = sorted(ELEMENT_ORDER, key=lambda e: (-combined[e], ELEMENT_ORDER.index(e)))

    return {
        "enabled": True,
        "season_group": season,
        "day_stem_hanja": day_stem_hanja,
        "month_branch_hanja": JIJI_HANJA[month_branch % 12],
        "preferred_stem_hanja": preferred_hanja,
        "preferred_elements": [stem_element(s) for s in preferred_stems],
        "mandatory_elements": mandatory,
        "bonus": bonus,
        "combined_scores": combined,
        "primary": ranking[0],
        "secondary": ranking[1],
        "reasons": reasons,
    }
