"""
정책(Policy) 모델
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
EngineConfig(dict)의 strategies.* 를 설정 로드 시점에 검증된 불변 pydantic 모델로 변환
- YongshinPolicy: 가중치 / 조후 긴급도 / method selector / competition
- FactsPolicy: 신강약 모델, 패턴(전왕/종격/합화) 임계값
잘못된 설정(알 수 없는 방법 이름, 음수 가중치 등)은 ConfigError
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
"""
import logging
from typing import Any, Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from sajugraph.rules.climate import DEFAULT_CLIMATE_MODEL, ClimateModel, merge_climate_model
from sajugraph.rules.johoo_template import JohooTemplatePolicy
from sajugraph.services.ganji import ELEMENT_ORDER, Element

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """설정 검증 실패"""


CompetingMethod = Literal["follow", "transformations", "one_element"]


class _Frozen(BaseModel):
    class Config:
        frozen = True
        extra = "forbid"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 용신 정책
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class YongshinWeights(_Frozen):
    balance: float = Field(1.0, ge=0)
    role: float = Field(1.0, ge=0)
    climate: float = Field(0.0, ge=0)
    medicine: float = Field(0.0, ge=0)
    tongguan: float = Field(0.0, ge=0)
    follow: float = Field(0.0, ge=0)
    johoo_template: float = Field(0.0, ge=0)
    transformations: float = Field(0.0, ge=0)
    one_element: float = Field(0.0, ge=0)


class ClimateUrgencyPolicy(_Frozen):
    """조후위급(調候爲急): 기후 필요 크기가 threshold를 넘으면 climate 가중치를 키우고 나머지를 줄인다"""
    enabled: bool = False
    threshold: float = Field(0.6, ge=0, lt=1)
    max_boost: float = Field(1.0, ge=0)
    reduce_others: float = Field(0.25, ge=0, le=1)


class FollowPolicy(_Frozen):
    """종격(從格) 잠재도 판정 임계값"""
    weak_threshold: float = Field(-0.78, gt=-1, lt=0)
    strong_threshold: Optional[float] = Field(None, gt=0, lt=1)
    min_dominance_ratio: float = Field(2.2, gt=0)
    one_element_boost: float = Field(0.35, ge=0)

    @property
    def effective_strong_threshold(self) -> float:
        if self.strong_threshold is not None:
            return self.strong_threshold
        return abs(self.weak_threshold)


class GateRule(_Frozen):
    enabled: bool = True
    threshold: float = Field(0.55, ge=0, lt=1)


class TongguanRule(GateRule):
    threshold: float = Field(0.25, ge=0, lt=1)


class BoostRule(GateRule):
    threshold: float = Field(0.6, ge=0, lt=1)
    max_boost: float = Field(1.0, ge=0)
    reduce_others: float = Field(0.25, ge=0, le=1)


class MedicineRule(BoostRule):
    threshold: float = Field(0.18, ge=0, lt=1)
    max_boost: float = Field(0.9, ge=0)
    reduce_others: float = Field(0.15, ge=0, le=1)


class JohooTemplateRule(_Frozen):
    enabled: bool = True
    scale_by: Literal["climate", "always"] = "climate"


class OneElementRule(GateRule):
    threshold: float = Field(0.62, ge=0, lt=1)
    factor: Literal["zhuanwang", "raw"] = "zhuanwang"


class CompetitionPolicy(_Frozen):
    enabled: bool = False
    methods: List[CompetingMethod] = Field(default_factory=lambda: ["follow", "transformations", "one_element"])
    power: float = Field(2.0, gt=0)
    min_keep: float = Field(0.2, ge=0, le=1)
    renormalize: bool = False

    @field_validator("methods")
    @classmethod
    def unique_methods(cls, v: List[str]) -> List[str]:
        """중복 방법은 한 번만 (순서 유지)"""
        return list(dict.fromkeys(v))


class MethodSelectorPolicy(_Frozen):
    enabled: bool = False
    # None이면 climate_urgency 값을 그대로 사용
    climate: Optional[BoostRule] = None
    medicine: MedicineRule = Field(default_factory=MedicineRule)
    tongguan: TongguanRule = Field(default_factory=TongguanRule)
    follow: GateRule = Field(default_factory=GateRule)
    johoo_template: JohooTemplateRule = Field(default_factory=JohooTemplateRule)
    transformations: GateRule = Field(default_factory=GateRule)
    one_element: OneElementRule = Field(default_factory=OneElementRule)
    competition: CompetitionPolicy = Field(default_factory=CompetitionPolicy)


class YongshinPolicy(BaseModel):
    weights: YongshinWeights = Field(default_factory=YongshinWeights)
    target: Literal["uniform"] = "uniform"
    tie_break_order: List[Element] = Field(default_factory=lambda: list(ELEMENT_ORDER))
    climate_model: ClimateModel = DEFAULT_CLIMATE_MODEL
    climate_urgency: ClimateUrgencyPolicy = Field(default_factory=ClimateUrgencyPolicy)
    follow: FollowPolicy = Field(default_factory=FollowPolicy)
    method_selector: MethodSelectorPolicy = Field(default_factory=MethodSelectorPolicy)
    rule_set: Optional[Dict[str, Any]] = None

    class Config:
        frozen = True
        extra = "forbid"

    @field_validator("tie_break_order", mode="before")
    @classmethod
    def complete_tie_break(cls, v):
        """유효한 오행만 남기고 나머지는 기본 순서로 채움 (중복 제거)"""
        out: List[Element] = []
        for item in list(v or []) + list(ELEMENT_ORDER):
            try:
                e = Element(str(getattr(item, "value", item)).upper())
            except ValueError:
                continue
            if e not in out:
                out.append(e)
        return out


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 원국 facts 정책
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class _Loose(BaseModel):
    class Config:
        frozen = True
        extra = "ignore"


class StrengthPolicy(_Loose):
    model: Literal["base", "seasonal_roots"] = "base"
    season_scale: float = 0.14
    root_scale: float = 0.1


class OneElementPatternPolicy(_Loose):
    enabled: bool = True
    top_min: float = Field(0.52, gt=0, lt=1)
    dominance_ratio_min: float = Field(2.2, gt=0)
    entropy_max: float = Field(0.78, gt=0, le=1)


class FollowPatternPolicy(_Loose):
    enabled: bool = False
    # None이면 용신 follow 정책 값을 상속
    weak_threshold: Optional[float] = None
    strong_threshold: Optional[float] = None
    min_dominance_ratio: Optional[float] = None
    one_element_boost: Optional[float] = None


class PositionWeights(_Loose):
    year: float = 0.15
    month: float = 0.35
    day: float = 0.35
    hour: float = 0.15


class RootWeights(_Loose):
    month: float = 0.65
    day: float = 0.35


class HuaqiPolicy(_Loose):
    enabled: bool = False
    require_day_master_involved: bool = True


class TransformationPolicy(_Loose):
    enabled: bool = True
    threshold: float = Field(0.55, ge=0, lt=1)
    weight_share: float = 0.6
    weight_season: float = 0.4
    weight_root: float = 0.1
    weight_position: float = 0.1
    position_weights: PositionWeights = Field(default_factory=PositionWeights)
    root_weights: RootWeights = Field(default_factory=RootWeights)
    stem_clash_penalty: float = Field(0.12, ge=0)
    huaqi: HuaqiPolicy = Field(default_factory=HuaqiPolicy)


class PatternsPolicy(_Loose):
    one_element: OneElementPatternPolicy = Field(default_factory=OneElementPatternPolicy)
    follow: FollowPatternPolicy = Field(default_factory=FollowPatternPolicy)
    transformations: TransformationPolicy = Field(default_factory=TransformationPolicy)


class FactsPolicy(_Loose):
    stem_weight: float = 1.0
    hidden_stem_weight: float = 1.0
    strength: StrengthPolicy = Field(default_factory=StrengthPolicy)
    patterns: PatternsPolicy = Field(default_factory=PatternsPolicy)
    follow: FollowPolicy = Field(default_factory=FollowPolicy)
    climate_model: ClimateModel = DEFAULT_CLIMATE_MODEL
    johoo_template: JohooTemplatePolicy = Field(default_factory=JohooTemplatePolicy)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 빌더
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _section(obj: Any, *path: str) -> Dict[str, Any]:
    cur = obj
    for key in path:
        if not isinstance(cur, Mapping):
            return {}
        cur = cur.get(key)
    return dict(cur) if isinstance(cur, Mapping) else {}


def _climate_model_from(yongshin_raw: Mapping[str, Any]) -> ClimateModel:
    climate_raw = yongshin_raw.get("climate")
    if not isinstance(climate_raw, Mapping):
        return DEFAULT_CLIMATE_MODEL
    model_raw = climate_raw.get("model", climate_raw)
    return merge_climate_model(DEFAULT_CLIMATE_MODEL, model_raw)


def build_yongshin_policy(config: Mapping[str, Any]) -> YongshinPolicy:
    raw = _section(config, "strategies", "yongshin")
    raw.pop("climate", None)
    # 조후 템플릿은 FactsPolicy에서 검증/사용
    raw.pop("johoo_template", None)
    rule_set = _section(config, "extensions", "rulesets", "yongshin") or None
    try:
        return YongshinPolicy(
            **raw,
            climate_model=_climate_model_from(_section(config, "strategies", "yongshin")),
            rule_set=rule_set,
        )
    except (ValidationError, TypeError) as e:
        raise ConfigError(f"invalid strategies.yongshin: {e}") from e


def build_facts_policy(config: Mapping[str, Any]) -> FactsPolicy:
    yongshin_raw = _section(config, "strategies", "yongshin")
    weights = _section(config, "weights")
    try:
        return FactsPolicy(
            stem_weight=weights.get("stem", 1.0),
            hidden_stem_weight=weights.get("hidden_stem", 1.0),
            strength=_section(config, "strategies", "strength"),
            patterns=_section(config, "strategies", "patterns"),
            follow=yongshin_raw.get("follow") or {},
            climate_model=_climate_model_from(yongshin_raw),
            johoo_template=yongshin_raw.get("johoo_template") or {},
        )
    except ValidationError as e:
        raise ConfigError(f"invalid strategies: {e}") from e
