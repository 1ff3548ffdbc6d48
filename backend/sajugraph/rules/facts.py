"""
RuleFacts 스냅샷 빌더
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
원국 + 1차 파생값 → 규칙/용신 계산이 읽는 평면 dict
- 일간, 오행 역할 맵, 오행 분포(정규화)
- 신강약(strength) : base / seasonal_roots
- 월령 격(month gyeok) + 품질
- 통관(tongguan) 전투 강도
- 전왕/일행(one_element), 종격(follow), 합화(transformations)
- 조후(climate) env/need/scores + 조후 템플릿
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
"""
import logging
import math
from typing import Any, Dict, List, Mapping, Optional

from sajugraph.rules.climate import compute_climate_scores
from sajugraph.rules.johoo_template import compute_johoo_template
from sajugraph.rules.policy import FactsPolicy, FollowPolicy, FollowPatternPolicy, TransformationPolicy
from sajugraph.services.calc_module import SajuPillars
from sajugraph.services.ganji import (
    CHEONGAN_HANJA, ELEMENT_ORDER, Element, Role, TenGod,
    branch_element, generates, controls, hidden_stems_of, main_hidden_stem,
    role_map, season_group_of, stem_element, ten_god_of,
)

logger = logging.getLogger(__name__)

EPS = 1e-9


def clamp01(x: float) -> float:
    if x is None or not math.isfinite(x):
        return 0.0
    return max(0.0, min(1.0, x))


def season_support_score(month_el: Element, dm_el: Element) -> float:
    """득령/실령 대략 점수 [-1, +1]"""
    if month_el == dm_el:
        return 1.0
    if generates(month_el, dm_el):
        return 0.6
    if generates(dm_el, month_el):
        return -0.6
    if controls(month_el, dm_el):
        return -0.8
    if controls(dm_el, month_el):
        return -0.3
    return 0.0


# ===== 신강약 =====

def strength_from_ten_gods(tg: Mapping[TenGod, float]) -> Dict[str, Any]:
    companions = tg.get(TenGod.BI_GYEON, 0.0) + tg.get(TenGod.GEOB_JAE, 0.0)
    resources = tg.get(TenGod.PYEON_IN, 0.0) + tg.get(TenGod.JEONG_IN, 0.0)
    outputs = tg.get(TenGod.SIK_SHIN, 0.0) + tg.get(TenGod.SANG_GWAN, 0.0)
    wealth = tg.get(TenGod.PYEON_JAE, 0.0) + tg.get(TenGod.JEONG_JAE, 0.0)
    officers = tg.get(TenGod.PYEON_GWAN, 0.0) + tg.get(TenGod.JEONG_GWAN, 0.0)
    support = companions + resources
    pressure = outputs + wealth + officers
    total = support + pressure
    return {
        "index": 0.0 if total <= 0 else (support - pressure) / total,
        "support": support,
        "pressure": pressure,
        "total": total,
        "components": {
            "companions": companions,
            "resources": resources,
            "outputs": outputs,
            "wealth": wealth,
            "officers": officers,
        },
    }


def compute_strength(pillars: SajuPillars, tg_scores: Mapping[TenGod, float], policy: FactsPolicy) -> Dict[str, Any]:
    base = strength_from_ten_gods(tg_scores)
    pol = policy.strength
    if pol.model != "seasonal_roots":
        return {**base, "model": "base"}

    dm_el = stem_element(pillars.day.gan_index)
    month_el = branch_element(pillars.month.ji_index)
    season_score = season_support_score(month_el, dm_el)

    # 통근: 모든 지지 지장간 중 일간과 같은 오행 / 일간을 생하는 오행
    same = 0.0
    res = 0.0
    for b in pillars.branches:
        for h in hidden_stems_of(b):
            el = stem_element(h.stem)
            if el == dm_el:
                same += h.weight
            if generates(el, dm_el):
                res += h.weight
    root_score = max(0.0, same + 0.6 * res)

    support = max(0.0, base["support"] * (1 + season_score * pol.season_scale + root_score * pol.root_scale))
    pressure = base["pressure"]
    total = support + pressure
    return {
        "index": 0.0 if total <= 0 else (support - pressure) / total,
        "support": support,
        "pressure": pressure,
        "total": total,
        "components": base["components"],
        "model": "seasonal_roots",
        "details": {
            "season": {"month_element": month_el, "score": season_score, "factor": pol.season_scale},
            "roots": {"same_element": same, "resource_element": res, "score": root_score, "factor": pol.root_scale},
        },
    }


# ===== 월령 격 =====

GYEOK_QUALITY = {"MAIN_EXPOSED": 1.0, "VISIBLE_HIDDEN": 0.85, "MAIN_FALLBACK": 0.7}


def compute_month_gyeok(pillars: SajuPillars) -> Dict[str, Any]:
    """
    월지 지장간 중 격을 잡을 천간

    1) 정기가 천간에 투출 → MAIN_EXPOSED
    2) 다른 지장간이 투출 → 비중이 가장 큰 것 (VISIBLE_HIDDEN)
    3) 없으면 정기 (MAIN_FALLBACK)
    """
    dm = pillars.day.gan_index
    month_branch = pillars.month.ji_index
    visible = {p.gan_index for pos, p in zip(pillars.positions, pillars.present()) if pos != "day"}
    main = main_hidden_stem(month_branch)

    if main.stem in visible:
        stem, source = main.stem, "MAIN_EXPOSED"
    else:
        exposed = [h for h in hidden_stems_of(month_branch) if h.stem in visible]
        if exposed:
            stem, source = max(exposed, key=lambda h: h.days).stem, "VISIBLE_HIDDEN"
        else:
            stem, source = main.stem, "MAIN_FALLBACK"

    return {
        "stem": stem,
        "hanja": CHEONGAN_HANJA[stem],
        "ten_god": ten_god_of(dm, stem),
        "source": source,
        "quality": {"multiplier": GYEOK_QUALITY[source]},
    }


# ===== 통관 =====

TONGGUAN_PAIRS = {
    # 水火战 → 木通关
    "water_fire": (Element.WATER, Element.FIRE, Element.WOOD),
    # 火金战 → 土通关
    "fire_metal": (Element.FIRE, Element.METAL, Element.EARTH),
    # 金木战 → 水通关
    "metal_wood": (Element.METAL, Element.WOOD, Element.WATER),
    # 木土战 → 火通关
    "wood_earth": (Element.WOOD, Element.EARTH, Element.FIRE),
    # 土水战 → 金通关
    "earth_water": (Element.EARTH, Element.WATER, Element.METAL),
}


def battle_intensity(normalized: Mapping[Element, float], a: Element, b: Element) -> float:
    """x=y=0.5일 때 최대 1"""
    x, y = normalized.get(a, 0.0), normalized.get(b, 0.0)
    total = x + y
    if total <= 0:
        return 0.0
    balance = 1 - abs(x - y) / total
    return max(0.0, min(1.0, 2 * min(x, y) * balance))


def compute_tongguan(normalized: Mapping[Element, float]) -> Dict[str, Any]:
    pairs: Dict[str, Dict[str, Any]] = {}
    for name, (a, b, bridge) in TONGGUAN_PAIRS.items():
        pairs[name] = {"a": a, "b": b, "bridge": bridge, "intensity": battle_intensity(normalized, a, b)}

    intensities = [p["intensity"] for p in pairs.values()]
    max_intensity = max(intensities)
    sum_intensity = sum(intensities)
    dominance = max_intensity / sum_intensity if sum_intensity > 0 else 0.0

    # 정규화 엔트로피: 0 = 한 전투가 지배, 1 = 고르게 분산
    dispersion = 0.0
    if sum_intensity > 0:
        h = -sum((x / sum_intensity) * math.log(x / sum_intensity) for x in intensities if x > 0)
        dispersion = clamp01(h / math.log(len(intensities)))

    for p in pairs.values():
        p["weighted_intensity"] = p["intensity"] * dominance

    return {
        "pairs": pairs,
        "max_intensity": max_intensity,
        "sum_intensity": sum_intensity,
        "dominance": dominance,
        "dispersion": dispersion,
        "effective_max_intensity": max_intensity * dominance,
    }


# ===== 전왕 / 일행득기 =====

def compute_element_patterns(
    normalized: Mapping[Element, float],
    policy: FactsPolicy,
    season_support: float,
) -> Dict[str, Any]:
    pol = policy.patterns.one_element
    ranked = sorted(ELEMENT_ORDER, key=lambda e: (-normalized.get(e, 0.0), ELEMENT_ORDER.index(e)))
    top, second = ranked[0], ranked[1]
    top_v, second_v = normalized.get(top, 0.0), normalized.get(second, 0.0)

    h = -sum(p * math.log(p) for p in (max(0.0, normalized.get(e, 0.0)) for e in ELEMENT_ORDER) if p > 1e-12)
    entropy = h / math.log(len(ELEMENT_ORDER))
    dominance_ratio = top_v / max(1e-12, second_v)

    is_one = pol.enabled and top_v >= pol.top_min and dominance_ratio >= pol.dominance_ratio_min and entropy <= pol.entropy_max
    f_top = clamp01((top_v - pol.top_min) / max(EPS, 1 - pol.top_min))
    f_dom = clamp01((dominance_ratio - pol.dominance_ratio_min) / max(EPS, pol.dominance_ratio_min))
    f_ent = clamp01((pol.entropy_max - entropy) / max(EPS, pol.entropy_max))
    factor = clamp01(f_top * f_dom * f_ent) if pol.enabled else 0.0

    # 专旺: 분포 편중 × 득령 정도
    zhuanwang = clamp01(factor * clamp01((season_support + 1) / 2))

    return {
        "top": {
            "element": top, "value": top_v, "second": second_v,
            "dominance_ratio": dominance_ratio, "entropy": entropy,
        },
        "one_element": {
            "enabled": pol.enabled,
            "is_one_element": is_one,
            "element": top,
            "factor": factor,
            "zhuanwang_factor": zhuanwang,
            "thresholds": {
                "top_min": pol.top_min,
                "dominance_ratio_min": pol.dominance_ratio_min,
                "entropy_max": pol.entropy_max,
            },
        },
    }


# ===== 종격 =====

def dominant_support_role(components: Mapping[str, float]) -> Role:
    return Role.COMPANION if components["companions"] >= components["resources"] else Role.RESOURCE


def dominant_pressure_role(components: Mapping[str, float]) -> Role:
    best_role, best = Role.OUTPUT, components["outputs"]
    if components["wealth"] >= best:
        best_role, best = Role.WEALTH, components["wealth"]
    if components["officers"] >= best:
        best_role = Role.OFFICER
    return best_role


# 역할별 십신 쌍 (주, 부)
ROLE_TEN_GOD_PAIRS = {
    Role.COMPANION: (TenGod.BI_GYEON, TenGod.GEOB_JAE),
    Role.RESOURCE: (TenGod.JEONG_IN, TenGod.PYEON_IN),
    Role.OUTPUT: (TenGod.SIK_SHIN, TenGod.SANG_GWAN),
    Role.WEALTH: (TenGod.JEONG_JAE, TenGod.PYEON_JAE),
    Role.OFFICER: (TenGod.JEONG_GWAN, TenGod.PYEON_GWAN),
}

FOLLOW_TYPE_BY_ROLE = {
    Role.WEALTH: "CONG_CAI",
    Role.OUTPUT: "CONG_ER",
    Role.RESOURCE: "CONG_YIN",
    Role.COMPANION: "CONG_BI",
}


def classify_follow_subtype(
    mode: str,
    potential_raw: float,
    dominant_role: Role,
    tg_scores: Mapping[TenGod, float],
) -> Dict[str, Any]:
    """
    종격 세분: 从财 / 从儿 / 从印 / 从比 / 从官 / 从杀

    지배 역할의 십신 쌍 중 점수가 높은 쪽이 주 십신 (동점은 앞쪽).
    관성은 편관이 주이면 从杀, 아니면 从官.
    """
    if mode == "NONE" or potential_raw <= 0:
        return {"follow_type": "NONE", "follow_ten_god": None, "follow_ten_god_split": None}

    def score(tg: TenGod) -> float:
        v = tg_scores.get(tg, 0.0)
        return v if math.isfinite(v) else 0.0

    tg_a, tg_b = ROLE_TEN_GOD_PAIRS[dominant_role]
    sc_a, sc_b = score(tg_a), score(tg_b)
    primary, secondary = (tg_a, tg_b) if sc_a >= sc_b else (tg_b, tg_a)
    primary_score, secondary_score = max(sc_a, sc_b), min(sc_a, sc_b)
    total = sc_a + sc_b

    if dominant_role == Role.OFFICER:
        follow_type = "CONG_SHA" if primary == TenGod.PYEON_GWAN else "CONG_GUAN"
    else:
        follow_type = FOLLOW_TYPE_BY_ROLE[dominant_role]

    return {
        "follow_type": follow_type,
        "follow_ten_god": primary,
        "follow_ten_god_split": {
            "primary": primary,
            "secondary": secondary,
            "primary_score": primary_score,
            "secondary_score": secondary_score,
            "total": total,
            "primary_share": primary_score / total if total > 0 else 0.5,
            "confidence": clamp01(abs(sc_a - sc_b) / total) if total > 0 else 0.0,
        },
    }


def follow_potential_from_strength(
    strength_index: float,
    support: float,
    pressure: float,
    weak_threshold: float,
    strong_threshold: float,
    min_dominance_ratio: float,
) -> Dict[str, Any]:
    """
    종격 잠재도

    - 신약 극단(s < weak) + 억압 세력 비율 → PRESSURE (종재/종살/종아)
    - 신강 극단(s > strong) + 지지 세력 비율 → SUPPORT (종왕/종강)
    """
    s = strength_index
    weak_factor = clamp01((weak_threshold - s) / max(EPS, weak_threshold + 1)) if s < weak_threshold else 0.0
    weak_ratio = pressure / max(EPS, support)
    weak_potential = clamp01(weak_factor * clamp01((weak_ratio - min_dominance_ratio) / max(EPS, min_dominance_ratio)))

    strong_factor = clamp01((s - strong_threshold) / max(EPS, 1 - strong_threshold)) if s > strong_threshold else 0.0
    strong_ratio = support / max(EPS, pressure)
    strong_potential = clamp01(strong_factor * clamp01((strong_ratio - min_dominance_ratio) / max(EPS, min_dominance_ratio)))

    if strong_potential > weak_potential:
        return {"mode": "SUPPORT", "dominance_ratio": strong_ratio, "potential": strong_potential}
    if weak_potential > 0:
        return {"mode": "PRESSURE", "dominance_ratio": weak_ratio, "potential": weak_potential}
    return {"mode": "NONE", "dominance_ratio": weak_ratio, "potential": 0.0}


def compute_follow_pattern(
    pattern_policy: FollowPatternPolicy,
    follow_policy: FollowPolicy,
    strength: Mapping[str, Any],
    one_element: Mapping[str, Any],
    roles: Mapping[Element, Role],
    day_master_element: Element,
    tg_scores: Optional[Mapping[TenGod, float]] = None,
) -> Optional[Dict[str, Any]]:
    """strategies.patterns.follow.enabled 일 때만 생성 (기본 비활성)"""
    if not pattern_policy.enabled:
        return None

    def pick(own: Optional[float], inherited: float) -> float:
        return inherited if own is None else own

    weak = pick(pattern_policy.weak_threshold, follow_policy.weak_threshold)
    strong = pick(pattern_policy.strong_threshold, follow_policy.strong_threshold or abs(weak))
    min_dom = pick(pattern_policy.min_dominance_ratio, follow_policy.min_dominance_ratio)
    boost = pick(pattern_policy.one_element_boost, follow_policy.one_element_boost)

    info = follow_potential_from_strength(
        strength["index"], strength["support"], strength["pressure"], weak, strong, min_dom
    )
    mode = info["mode"]

    raw = one_element.get("factor", 0.0)
    zw = one_element.get("zhuanwang_factor", 0.0)
    one_el_factor = clamp01(zw if zw > 0 else raw)
    potential = clamp01(info["potential"] * (1 + one_el_factor * boost))

    if mode == "SUPPORT":
        dominant_role = dominant_support_role(strength["components"])
    elif mode == "PRESSURE":
        dominant_role = dominant_pressure_role(strength["components"])
    else:
        dominant_role = Role.COMPANION
    dominant_element = next((e for e in ELEMENT_ORDER if roles[e] == dominant_role), day_master_element)
    subtype = classify_follow_subtype(mode, info["potential"], dominant_role, tg_scores or {})

    return {
        "enabled": True,
        "mode": mode,
        "dominance_ratio": info["dominance_ratio"],
        "potential_raw": info["potential"],
        "one_element_factor": one_el_factor,
        "one_element_boost": boost,
        "potential": potential,
        "dominant_role": dominant_role,
        "dominant_element": dominant_element,
        **subtype,
        "jonggyeok_factor": potential,
        "thresholds": {"weak": weak, "strong": strong, "min_dominance_ratio": min_dom},
    }


# ===== 천간합화 =====

HAP_PAIRS = [
    (0, 5, Element.EARTH, "甲己"),
    (1, 6, Element.METAL, "乙庚"),
    (2, 7, Element.WATER, "丙辛"),
    (3, 8, Element.WOOD, "丁壬"),
    (4, 9, Element.FIRE, "戊癸"),
]

# 天干冲: 甲庚, 乙辛, 丙壬, 丁癸
STEM_CLASH = {0: 6, 6: 0, 1: 7, 7: 1, 2: 8, 8: 2, 3: 9, 9: 3}


def _roots_for(branch: int, element: Element) -> float:
    return sum(h.weight for h in hidden_stems_of(branch) if stem_element(h.stem) == element)


def compute_transformations(
    pillars: SajuPillars,
    normalized: Mapping[Element, float],
    policy: TransformationPolicy,
) -> Dict[str, Any]:
    month_el = branch_element(pillars.month.ji_index)
    stems = pillars.stems
    stem_set = set(stems)

    pw = policy.position_weights
    pw_raw = {"year": pw.year, "month": pw.month, "day": pw.day, "hour": pw.hour}
    pw_sum = sum(pw_raw.values())
    pos_weights = {k: (v / pw_sum if pw_sum > 0 else 0.25) for k, v in pw_raw.items()}

    rw_sum = policy.root_weights.month + policy.root_weights.day
    root_w_month = policy.root_weights.month / rw_sum if rw_sum > 0 else 0.5
    root_w_day = policy.root_weights.day / rw_sum if rw_sum > 0 else 0.5

    w_total = policy.weight_share + policy.weight_season + policy.weight_root + policy.weight_position
    scale = 1 / w_total if w_total > 0 else 1.0

    candidates: List[Dict[str, Any]] = []
    for a, b, result, pair in HAP_PAIRS:
        if a not in stem_set or b not in stem_set:
            continue
        share = normalized.get(result, 0.0)
        season01 = clamp01((season_support_score(month_el, result) + 1) / 2)

        pos_a = clamp01(sum(pos_weights[pos] for pos, p in zip(pillars.positions, pillars.present()) if p.gan_index == a))
        pos_b = clamp01(sum(pos_weights[pos] for pos, p in zip(pillars.positions, pillars.present()) if p.gan_index == b))
        pos_pair = clamp01(math.sqrt(pos_a * pos_b))

        root01 = clamp01(
            root_w_month * _roots_for(pillars.month.ji_index, result)
            + root_w_day * _roots_for(pillars.day.ji_index, result)
        )

        blended = clamp01(scale * (
            policy.weight_share * share
            + policy.weight_season * season01
            + policy.weight_root * root01
            + policy.weight_position * pos_pair
        ))
        factor = 0.0
        if policy.enabled:
            factor = clamp01((blended - policy.threshold) / max(EPS, 1 - policy.threshold))

        clashes = sum(1 for s in (a, b) if STEM_CLASH.get(s) in stem_set)
        penalty = policy.stem_clash_penalty * clashes
        effective = factor / (1 + penalty)

        huaqi_factor = None
        if policy.huaqi.enabled:
            dm_involved = pillars.day.gan_index in (a, b)
            gate = 0.0 if policy.huaqi.require_day_master_involved and not dm_involved else 1.0
            huaqi_factor = clamp01(effective * season01 * gate)

        candidates.append({
            "pair": pair,
            "stems": {"a": a, "b": b},
            "result_element": result,
            "support": {
                "element_share": share,
                "season01": season01,
                "root01": root01,
                "position": {"a": pos_a, "b": pos_b, "pair": pos_pair},
                "blended": blended,
            },
            "factor": factor,
            "break": {"stem_clash": clashes, "penalty": penalty},
            "effective_factor": effective,
            "huaqi_factor": huaqi_factor,
        })

    def signal(c: Mapping[str, Any]) -> float:
        return c["huaqi_factor"] if c["huaqi_factor"] is not None else c["effective_factor"]

    best = None
    for c in candidates:
        if signal(c) > 0 and (best is None or signal(c) > signal(best)):
            best = c

    return {
        "enabled": policy.enabled,
        "threshold": policy.threshold,
        "candidates": candidates,
        "best": None if best is None else {
            "pair": best["pair"],
            "result_element": best["result_element"],
            "factor": best["factor"],
            "effective_factor": best["effective_factor"],
            "huaqi_factor": best["huaqi_factor"],
        },
    }


# ===== 조후 =====

def compute_climate_facts(pillars: SajuPillars, policy: FactsPolicy) -> Dict[str, Any]:
    month_branch = pillars.month.ji_index
    cs = compute_climate_scores(policy.climate_model, month_branch)
    template = compute_johoo_template(policy.johoo_template, pillars.day.gan_index, month_branch, cs.scores)
    return {
        "season_group": season_group_of(month_branch),
        "env": cs.env.to_dict(),
        "need": cs.need.to_dict(),
        "scores": dict(cs.scores),
        "template": template,
    }


# ===== 조립 =====

def build_rule_facts(
    pillars: SajuPillars,
    tg_scores: Mapping[TenGod, float],
    distribution: Mapping[str, Any],
    policy: FactsPolicy,
) -> Dict[str, Any]:
    dm_stem = pillars.day.gan_index
    dm_el = stem_element(dm_stem)
    roles = role_map(dm_el)
    normalized = distribution["normalized"]
    month_branch = pillars.month.ji_index
    month_el = branch_element(month_branch)

    strength = compute_strength(pillars, tg_scores, policy)
    element_patterns = compute_element_patterns(normalized, policy, season_support_score(month_el, dm_el))
    follow = compute_follow_pattern(
        policy.patterns.follow, policy.follow, strength,
        element_patterns["one_element"], roles, dm_el, tg_scores,
    )

    ranking = sorted(
        ((tg, v) for tg, v in tg_scores.items() if math.isfinite(v)),
        key=lambda kv: -kv[1],
    )

    facts = {
        "day_master": {"stem": dm_stem, "hanja": CHEONGAN_HANJA[dm_stem], "element": dm_el},
        "day_master_role_by_element": roles,
        "elements": {
            "raw": dict(distribution["raw"]),
            "normalized": dict(normalized),
            "total": distribution["total"],
        },
        "ten_gods": {
            "scores": dict(tg_scores),
            "ranking": [{"ten_god": tg, "score": v} for tg, v in ranking],
        },
        "strength": strength,
        "month": {
            "branch": month_branch,
            "element": month_el,
            "season_group": season_group_of(month_branch),
            "main_stem": main_hidden_stem(month_branch).stem,
            "gyeok": compute_month_gyeok(pillars),
        },
        "tongguan": compute_tongguan(normalized),
        "patterns": {
            "elements": element_patterns,
            "follow": follow,
            "transformations": compute_transformations(pillars, normalized, policy.patterns.transformations),
        },
        "climate": compute_climate_facts(pillars, policy),
    }
    logger.debug(
        f"[RuleFacts] dm={dm_el.value} strength={strength['index']:.3f} "
        f"month={facts['month']['gyeok']['ten_god'].value}"
    )
    return facts
