"""
용신(用神) 다중 방법 결정기
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
방법별 오행 점수 → 유효 가중치 → 가중합 → DSL 보정 → 순위

방법: balance(억부-부족) / role(억부-역할) / climate(조후) / medicine(병약)
      tongguan(통관) / follow(종격) / johoo_template / transformations(합화) / one_element(전왕)

유효 가중치:
- method selector 비활성: 조후위급(climate_urgency)만 적용
- method selector 활성: 방법별 gate/boost + 특수격 competition
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
"""
import logging
import math
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Mapping, Optional

from sajugraph.rules.climate import compute_climate_scores
from sajugraph.rules.competition import run_competition
from sajugraph.rules.default_rule_sets import DEFAULT_YONGSHIN_RULE_SET
from sajugraph.rules.dsl import eval_rule_set
from sajugraph.rules.facts import (
    clamp01, dominant_pressure_role, dominant_support_role, follow_potential_from_strength,
)
from sajugraph.rules.policy import BoostRule, YongshinPolicy
from sajugraph.services.ganji import ELEMENT_ORDER, Element, Role, controls, role_of

logger = logging.getLogger(__name__)

EPS = 1e-9

WEAK_PREF = {
    Role.RESOURCE: 1.0,
    Role.COMPANION: 0.6,
    Role.OUTPUT: -0.2,
    Role.WEALTH: -0.4,
    Role.OFFICER: -0.4,
}

STRONG_PREF = {
    Role.RESOURCE: -0.2,
    Role.COMPANION: -0.1,
    Role.OUTPUT: 0.8,
    Role.WEALTH: 0.6,
    Role.OFFICER: 0.6,
}

# 통관 전투쌍 → 통관 오행
TONGGUAN_BRIDGES = {
    "water_fire": Element.WOOD,
    "fire_metal": Element.EARTH,
    "metal_wood": Element.WATER,
    "wood_earth": Element.FIRE,
    "earth_water": Element.METAL,
}

# 최대 과다치: 한 오행 1.0, 목표 0.2
MAX_EXCESS = 0.8


@dataclass
class RankedElement:
    element: Element
    score: float


@dataclass
class YongshinResult:
    best: Element
    ranking: List[RankedElement]
    scores: Dict[Element, float]
    base: Dict[str, Any]
    rules: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _zeros() -> Dict[Element, float]:
    return {e: 0.0 for e in ELEMENT_ORDER}


def _num(x: Any, default: float = 0.0) -> float:
    if isinstance(x, bool) or not isinstance(x, (int, float)) or not math.isfinite(x):
        return default
    return float(x)


def _lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def _gate_factor(signal: float, threshold: float) -> float:
    return clamp01((signal - threshold) / max(EPS, 1 - threshold))


def _boost(weights: Dict[str, float], method: str, factor: float, max_boost: float, reduce_others: float) -> None:
    """weights[method] 증폭, 나머지 감쇠 (in-place)"""
    if factor <= 0:
        return
    k = 1 - reduce_others * factor
    for name in weights:
        if name == method:
            weights[name] *= 1 + max_boost * factor
        else:
            weights[name] *= k


def rank_elements(scores: Mapping[Element, float], tie_break_order: List[Element]) -> List[RankedElement]:
    """점수 내림차순, 동점은 tie_break_order 순"""
    order = sorted(ELEMENT_ORDER, key=lambda e: (-scores[e], tie_break_order.index(e)))
    return [RankedElement(element=e, score=scores[e]) for e in order]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 방법별 신호
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _medicine(normalized: Mapping[Element, float], target: float) -> Dict[str, Any]:
    excess = {e: max(0.0, normalized.get(e, 0.0) - target) for e in ELEMENT_ORDER}
    max_excess = max(excess.values())
    scores = {c: sum(excess[o] for o in ELEMENT_ORDER if controls(c, o)) for c in ELEMENT_ORDER}
    return {
        "excess": excess,
        "max_excess": max_excess,
        "signal": clamp01(max_excess / MAX_EXCESS),
        "scores": scores,
    }


def _tongguan(facts: Mapping[str, Any]) -> Dict[str, Any]:
    tg = facts.get("tongguan") or {}
    pairs = tg.get("pairs") or {}
    scores = _zeros()
    for name, bridge in TONGGUAN_BRIDGES.items():
        p = pairs.get(name) or {}
        scores[bridge] = _num(p.get("weighted_intensity"), _num(p.get("intensity")))
    max_intensity = _num(tg.get("max_intensity"), max(scores.values()))
    return {
        "max_intensity": max_intensity,
        "effective_max_intensity": _num(tg.get("effective_max_intensity"), max_intensity),
        "dominance": tg.get("dominance"),
        "dispersion": tg.get("dispersion"),
        "scores": scores,
    }


def _follow(facts: Mapping[str, Any], policy: YongshinPolicy, one_el_raw: float, one_el_zw: float) -> Dict[str, Any]:
    strength = facts["strength"]
    normalized = facts["elements"]["normalized"]
    dm_el = facts["day_master"]["element"]
    pattern = (facts.get("patterns") or {}).get("follow")

    if pattern and pattern.get("enabled"):
        source = "pattern"
        mode = pattern.get("mode", "NONE")
        potential_raw = _num(pattern.get("potential_raw"))
        one_el_factor = _num(pattern.get("one_element_factor"))
        boost = _num(pattern.get("one_element_boost"))
        potential_boosted = _num(pattern.get("potential"))
        potential = _num(pattern.get("jonggyeok_factor"), potential_boosted)
        dominance_ratio = _num(pattern.get("dominance_ratio"))
        dominant_role = pattern.get("dominant_role") or Role.COMPANION
    else:
        source = "strength"
        fp = policy.follow
        info = follow_potential_from_strength(
            strength["index"], strength["support"], strength["pressure"],
            fp.weak_threshold, fp.effective_strong_threshold, fp.min_dominance_ratio,
        )
        mode = info["mode"]
        potential_raw = info["potential"]
        dominance_ratio = info["dominance_ratio"]
        one_el_factor = one_el_zw if one_el_zw > 0 else one_el_raw
        boost = fp.one_element_boost
        potential_boosted = clamp01(potential_raw * (1 + one_el_factor * boost))
        potential = potential_boosted
        if mode == "SUPPORT":
            dominant_role = dominant_support_role(strength["components"])
        elif mode == "PRESSURE":
            dominant_role = dominant_pressure_role(strength["components"])
        else:
            dominant_role = Role.COMPANION

    dominant_role = Role(dominant_role)
    scores = _zeros()
    for e in ELEMENT_ORDER:
        r = role_of(e, dm_el)
        if mode == "SUPPORT":
            other = Role.RESOURCE if dominant_role == Role.COMPANION else Role.COMPANION
            if r == dominant_role:
                scores[e] = normalized.get(e, 0.0)
            elif r == other:
                scores[e] = 0.5 * normalized.get(e, 0.0)
        elif mode == "PRESSURE" and r == dominant_role:
            scores[e] = normalized.get(e, 0.0)

    return {
        "source": source,
        "mode": mode,
        "potential": potential,
        "potential_raw": potential_raw,
        "potential_boosted": potential_boosted,
        "one_element_factor": one_el_factor,
        "one_element_boost": boost,
        "dominance_ratio": dominance_ratio,
        "dominant_role": dominant_role,
        "scores": scores,
    }


def _transformations(facts: Mapping[str, Any]) -> Dict[str, Any]:
    tf = (facts.get("patterns") or {}).get("transformations") or {}
    best = tf.get("best")
    scores = _zeros()
    best_factor = 0.0
    element = None
    if best:
        for key in ("huaqi_factor", "effective_factor", "factor"):
            v = best.get(key)
            if isinstance(v, (int, float)) and math.isfinite(v):
                best_factor = float(v)
                break
        element = best.get("result_element")
        if element in ELEMENT_ORDER:
            element = Element(element)
            scores[element] = best_factor
        else:
            element = None
    return {
        "best_factor": best_factor,
        "best": None if element is None else {"pair": best.get("pair"), "result_element": element},
        "scores": scores,
    }


def _one_element(facts: Mapping[str, Any], policy: YongshinPolicy) -> Dict[str, Any]:
    one_el = ((facts.get("patterns") or {}).get("elements") or {}).get("one_element") or {}
    raw = _num(one_el.get("factor"))
    zw = _num(one_el.get("zhuanwang_factor"))
    use_raw = policy.method_selector.one_element.factor == "raw"
    signal = raw if use_raw else (zw if zw > 0 else raw)
    element = one_el.get("element")
    scores = _zeros()
    if element in ELEMENT_ORDER:
        element = Element(element)
        scores[element] = clamp01(signal)
    else:
        element = None
    return {"raw": raw, "zhuanwang": zw, "signal": clamp01(signal), "element": element, "scores": scores}


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 유효 가중치
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def apply_climate_urgency(weights: Dict[str, float], magnitude: float, policy: YongshinPolicy) -> Optional[Dict[str, Any]]:
    """調候爲急: selector 비활성일 때만 사용"""
    urg = policy.climate_urgency
    if not urg.enabled:
        return None
    factor = _gate_factor(magnitude, urg.threshold)
    _boost(weights, "climate", factor, urg.max_boost, urg.reduce_others)
    return {"magnitude": magnitude, "threshold": urg.threshold, "factor": factor}


def _selector_climate_rule(policy: YongshinPolicy) -> BoostRule:
    rule = policy.method_selector.climate
    if rule is not None:
        return rule
    urg = policy.climate_urgency
    return BoostRule(threshold=urg.threshold, max_boost=urg.max_boost, reduce_others=urg.reduce_others)


def apply_method_selector(
    weights: Dict[str, float],
    signals: Mapping[str, float],
    policy: YongshinPolicy,
    template_enabled: bool,
) -> Dict[str, Any]:
    """방법별 gate/boost 후 특수격 competition (in-place)"""
    sel = policy.method_selector
    out: Dict[str, Any] = {"enabled": True}

    climate = _selector_climate_rule(policy)
    climate_factor = 0.0
    if climate.enabled and weights["climate"] != 0:
        climate_factor = _gate_factor(signals["climate"], climate.threshold)
        _boost(weights, "climate", climate_factor, climate.max_boost, climate.reduce_others)
        out["climate"] = {"magnitude": signals["climate"], "threshold": climate.threshold, "factor": climate_factor}

    if sel.medicine.enabled and weights["medicine"] != 0:
        factor = _gate_factor(signals["medicine"], sel.medicine.threshold)
        _boost(weights, "medicine", factor, sel.medicine.max_boost, sel.medicine.reduce_others)
        out["medicine"] = {"signal": signals["medicine"], "threshold": sel.medicine.threshold, "factor": factor}

    for name in ("tongguan", "follow", "transformations", "one_element"):
        rule = getattr(sel, name)
        if rule.enabled and weights[name] != 0:
            factor = _gate_factor(signals[name], rule.threshold)
            weights[name] *= factor
            out[name] = {"signal": signals[name], "threshold": rule.threshold, "factor": factor}

    tpl_rule = sel.johoo_template
    if tpl_rule.enabled and weights["johoo_template"] != 0 and template_enabled:
        factor = 1.0 if tpl_rule.scale_by == "always" else climate_factor
        weights["johoo_template"] *= factor
        out["johoo_template"] = {"factor": factor, "scale_by": tpl_rule.scale_by}

    comp = sel.competition
    if comp.enabled:
        participants = [m for m in comp.methods if weights[m] != 0]
        if len(participants) >= 2:
            outcome = run_competition({m: clamp01(signals[m]) for m in participants}, comp.power, comp.min_keep)
            before = sum(abs(weights[m]) for m in participants)
            for m in participants:
                weights[m] *= outcome.shares[m]
            after = sum(abs(weights[m]) for m in participants)
            scale = 1.0
            if comp.renormalize and after > EPS:
                scale = before / after
                for m in participants:
                    weights[m] *= scale
            out["competition"] = {
                **outcome.to_dict(),
                "renormalize": comp.renormalize,
                "scale": scale,
                "total_before": before,
                "total_after": sum(abs(weights[m]) for m in participants),
            }

    return out


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 메인
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def compute_yongshin(facts: Mapping[str, Any], policy: YongshinPolicy) -> YongshinResult:
    normalized = facts["elements"]["normalized"]
    dm_el = facts["day_master"]["element"]
    s = _num(facts["strength"]["index"])
    target = 1.0 / len(ELEMENT_ORDER)

    # 억부
    deficiency = {e: max(0.0, target - normalized.get(e, 0.0)) for e in ELEMENT_ORDER}
    t = clamp01((s + 1) / 2)
    role_info = {}
    role_scores = _zeros()
    for e in ELEMENT_ORDER:
        r = role_of(e, dm_el)
        pref = _lerp(WEAK_PREF[r], STRONG_PREF[r], t)
        role_info[e] = {"role": r, "preference": pref}
        role_scores[e] = pref

    # 조후
    cs = compute_climate_scores(policy.climate_model, facts["month"]["branch"])
    climate_active = policy.weights.climate != 0
    climate_magnitude = cs.need.norm() if climate_active else 0.0

    medicine = _medicine(normalized, target)
    tongguan = _tongguan(facts)
    one_element = _one_element(facts, policy)
    follow = _follow(facts, policy, one_element["raw"], one_element["zhuanwang"])
    transformations = _transformations(facts)

    template = (facts.get("climate") or {}).get("template")
    template_enabled = bool(template and template.get("enabled"))
    template_scores = _zeros()
    if template_enabled:
        for e in ELEMENT_ORDER:
            template_scores[e] = _num(template["bonus"].get(e))

    method_scores: Dict[str, Dict[Element, float]] = {
        "balance": deficiency,
        "role": role_scores,
        "climate": dict(cs.scores) if climate_active else _zeros(),
        "medicine": medicine["scores"],
        "tongguan": tongguan["scores"],
        "follow": follow["scores"],
        "johoo_template": template_scores,
        "transformations": transformations["scores"],
        "one_element": one_element["scores"],
    }
    signals = {
        "climate": climate_magnitude,
        "medicine": medicine["signal"],
        "tongguan": tongguan["effective_max_intensity"],
        "follow": follow["potential"],
        "transformations": transformations["best_factor"],
        "one_element": one_element["signal"],
    }

    weights = policy.weights.model_dump()
    climate_urgency = None
    method_selector = None
    if policy.method_selector.enabled:
        method_selector = apply_method_selector(weights, signals, policy, template_enabled)
    else:
        climate_urgency = apply_climate_urgency(weights, climate_magnitude, policy)

    base_scores = {
        e: sum(weights[m] * method_scores[m][e] for m in method_scores)
        for e in ELEMENT_ORDER
    }

    # DSL 보정 (yongshin.<ELEMENT>)
    init = {f"yongshin.{e.value}": base_scores[e] for e in ELEMENT_ORDER}
    evaluated = eval_rule_set(policy.rule_set or DEFAULT_YONGSHIN_RULE_SET, facts, init)
    scores = {e: _num(evaluated["scores"].get(f"yongshin.{e.value}"), base_scores[e]) for e in ELEMENT_ORDER}

    ranking = rank_elements(scores, policy.tie_break_order)
    best = ranking[0].element

    logger.debug(f"[Yongshin] best={best.value} s={s:.3f} selector={method_selector is not None}")

    return YongshinResult(
        best=best,
        ranking=ranking,
        scores=scores,
        base={
            "deficiency": deficiency,
            "role": role_info,
            "climate": {**cs.to_dict(), "active": climate_active, "magnitude": climate_magnitude},
            "medicine": medicine,
            "tongguan": tongguan,
            "follow": follow,
            "johoo_template": {
                "enabled": template_enabled,
                "bonus": template_scores,
                "primary": template.get("primary") if template_enabled else None,
                "secondary": template.get("secondary") if template_enabled else None,
                "reasons": list(template.get("reasons", [])) if template_enabled else [],
            },
            "transformations": transformations,
            "one_element": one_element,
            "method_scores": method_scores,
            "method_selector": method_selector,
            "effective_weights": weights,
            "climate_urgency": climate_urgency,
            "strength_index": s,
        },
        rules={"matches": evaluated["matches"], "assertions_failed": evaluated["assertions_failed"]},
    )
