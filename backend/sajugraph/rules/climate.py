"""
조후(調候) 기후 벡터 모델
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
- 월지별 환경 벡터 env = (temp, moist)
- 오행별 효과 벡터 effect[e]
- need = -env (need_scale='unit'이면 단위 정규화)
- scores[e] = dot(effect[e], need)  ← 클램프 없음, 음수 가능
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
"""
import logging
import math
from typing import Any, Dict, Literal, Mapping, NamedTuple, Optional, Tuple

from pydantic import BaseModel, field_validator

from sajugraph.services.ganji import Element, ELEMENT_ORDER, JIJI_HANJA

logger = logging.getLogger(__name__)

NORM_EPS = 1e-9


class ClimateVector(NamedTuple):
    temp: float
    moist: float

    def dot(self, other: "ClimateVector") -> float:
        return self.temp * other.temp + self.moist * other.moist

    def neg(self) -> "ClimateVector":
        return ClimateVector(-self.temp, -self.moist)

    def scale(self, k: float) -> "ClimateVector":
        return ClimateVector(self.temp * k, self.moist * k)

    def norm(self) -> float:
        return math.hypot(self.temp, self.moist)

    def unit(self) -> "ClimateVector":
        n = self.norm()
        if n <= NORM_EPS:
            return self
        return self.scale(1 / n)

    def to_dict(self) -> Dict[str, float]:
        return {"temp": self.temp, "moist": self.moist}


NeedScale = Literal["none", "unit"]


class ClimateModel(BaseModel):
    """월지(子=0 … 亥=11) 환경 12개 + 오행 효과 5개"""
    env_by_month_branch: Tuple[ClimateVector, ...]
    element_effect: Dict[Element, ClimateVector]
    need_scale: NeedScale = "none"

    class Config:
        frozen = True

    @field_validator("env_by_month_branch")
    @classmethod
    def validate_env(cls, v):
        if len(v) != 12:
            raise ValueError(f"env_by_month_branch needs 12 entries, got {len(v)}")
        return v

    @field_validator("element_effect")
    @classmethod
    def validate_effect(cls, v):
        missing = [e.value for e in ELEMENT_ORDER if e not in v]
        if missing or len(v) != 5:
            raise ValueError(f"element_effect needs exactly the 5 elements, missing={missing}")
        return v

    def env_of(self, month_branch: int) -> ClimateVector:
        return self.env_by_month_branch[month_branch % 12]


DEFAULT_CLIMATE_MODEL = ClimateModel(
    env_by_month_branch=(
        ClimateVector(-0.7, 0.3),   # 子
        ClimateVector(-0.6, 0.2),   # 丑
        ClimateVector(-0.4, 0.1),   # 寅
        ClimateVector(-0.2, 0.2),   # 卯
        ClimateVector(0.0, 0.2),    # 辰
        ClimateVector(0.4, -0.1),   # 巳
        ClimateVector(0.7, -0.2),   # 午
        ClimateVector(0.5, 0.1),    # 未
        ClimateVector(0.2, -0.3),   # 申
        ClimateVector(0.0, -0.5),   # 酉
        ClimateVector(-0.1, -0.4),  # 戌
        ClimateVector(-0.5, 0.2),   # 亥
    ),
    element_effect={
        Element.WOOD: ClimateVector(0.2, 0.1),
        Element.FIRE: ClimateVector(0.6, -0.3),
        Element.EARTH: ClimateVector(0.1, -0.2),
        Element.METAL: ClimateVector(-0.2, -0.3),
        Element.WATER: ClimateVector(-0.6, 0.4),
    },
    need_scale="none",
)


class ClimateScores(NamedTuple):
    env: ClimateVector
    need: ClimateVector
    scores: Dict[Element, float]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "env": self.env.to_dict(),
            "need": self.need.to_dict(),
            "scores": dict(self.scores),
        }


def compute_climate_scores(model: ClimateModel, month_branch: int) -> ClimateScores:
    env = model.env_of(month_branch)
    need = env.neg()
    if model.need_scale == "unit":
        need = need.unit()
    scores = {e: model.element_effect[e].dot(need) for e in ELEMENT_ORDER}
    return ClimateScores(env=env, need=need, scores=scores)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 부분 오버라이드 병합
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _finite(x: Any) -> Optional[float]:
    if isinstance(x, bool) or not isinstance(x, (int, float)):
        return None
    x = float(x)
    return x if math.isfinite(x) else None


def _merge_vector(base: ClimateVector, raw: Any, where: str) -> ClimateVector:
    if not isinstance(raw, Mapping):
        logger.warning(f"[Climate] {where}: not an object, default kept")
        return base
    temp = _finite(raw.get("temp"))
    moist = _finite(raw.get("moist"))
    # 값이 있는데 유효하지 않으면 벡터 전체를 기본값으로 유지 (부분 적용 금지)
    if ("temp" in raw and temp is None) or ("moist" in raw and moist is None):
        logger.warning(f"[Climate] {where}: non-finite component {dict(raw)!r}, default kept")
        return base
    return ClimateVector(
        base.temp if temp is None else temp,
        base.moist if moist is None else moist,
    )


def merge_climate_model(base: ClimateModel, override: Any) -> ClimateModel:
    """
    기본 모델 위에 부분 오버라이드를 적용

    허용 키:
        env_by_month_branch: {"子": {"temp": .., "moist": ..}, ...}
        env_by_month_branch_index: {0: {...}, "11": {...}}
        element_effect: {"FIRE": {...}, ...}
        need_scale: "none" | "unit"

    잘못된 항목은 개별적으로 건너뛰고 기본값을 유지한다.
    """
    if not isinstance(override, Mapping) or not override:
        return base

    env = list(base.env_by_month_branch)
    effect = dict(base.element_effect)
    need_scale = base.need_scale

    by_hanja = override.get("env_by_month_branch")
    if isinstance(by_hanja, Mapping):
        for key, raw in by_hanja.items():
            if key not in JIJI_HANJA:
                logger.warning(f"[Climate] unknown month branch {key!r}, skipped")
                continue
            idx = JIJI_HANJA.index(key)
            env[idx] = _merge_vector(env[idx], raw, f"env_by_month_branch.{key}")

    by_index = override.get("env_by_month_branch_index")
    if isinstance(by_index, Mapping):
        for key, raw in by_index.items():
            try:
                idx = int(key)
            except (TypeError, ValueError):
                logger.warning(f"[Climate] invalid branch index {key!r}, skipped")
                continue
            if not 0 <= idx < 12:
                logger.warning(f"[Climate] branch index out of range {idx}, skipped")
                continue
            env[idx] = _merge_vector(env[idx], raw, f"env_by_month_branch_index.{idx}")

    effects = override.get("element_effect")
    if isinstance(effects, Mapping):
        for key, raw in effects.items():
            try:
                element = Element(str(key).upper())
            except ValueError:
                logger.warning(f"[Climate] unknown element {key!r}, skipped")
                continue
            effect[element] = _merge_vector(effect[element], raw, f"element_effect.{element.value}")

    scale = override.get("need_scale")
    if scale in ("none", "unit"):
        need_scale = scale
    elif scale is not None:
        logger.warning(f"[Climate] invalid need_scale {scale!r}, default kept")

    return ClimateModel(env_by_month_branch=tuple(env), element_effect=effect, need_scale=need_scale)
