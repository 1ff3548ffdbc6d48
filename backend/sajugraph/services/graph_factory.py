"""
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
분석 그래프 구성
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
time.* / policy.*  →  pillars.*  →  tenGods.* / hiddenStems.* / scores.pillars / elements.distribution
                   →  rules.facts  →  strength.index / rules.yongshin / rules.gyeokguk

노드는 ctx.parsed(ParsedInput: birth + SajuPillars)와 ctx.config만 읽는다.
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
"""
from dataclasses import asdict
from typing import Any, Dict, List, Mapping

from sajugraph.rules.facts import build_rule_facts
from sajugraph.rules.gyeokguk import compute_gyeokguk
from sajugraph.rules.yongshin import compute_yongshin
from sajugraph.services.cache import policy_cache
from sajugraph.services.derive_module import derive_module
from sajugraph.services.graph_evaluator import EvaluationContext, Node, Resolver, build_graph_map

PILLAR_NODES = ("pillars.year", "pillars.month", "pillars.day", "pillars.hour")

# 토글 → 평가 대상 노드
TOGGLE_NODES: Dict[str, List[str]] = {
    "pillars": list(PILLAR_NODES) + ["time.quality"],
    "ten_gods": ["tenGods.stems", "tenGods.hiddenStems", "scores.pillars"],
    "hidden_stems": ["hiddenStems.branches"],
    "element_distribution": ["elements.distribution"],
    "rules": ["rules.facts", "strength.index", "rules.yongshin", "rules.gyeokguk"],
}


def wanted_from_toggles(toggles: Mapping[str, Any]) -> List[str]:
    wanted: List[str] = []
    for name, node_ids in TOGGLE_NODES.items():
        if toggles.get(name, True):
            wanted.extend(n for n in node_ids if n not in wanted)
    return wanted


def _policies(ctx: EvaluationContext):
    return policy_cache.get(ctx.config)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 입력 / 정책
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _time_birth(ctx: EvaluationContext, get: Resolver) -> Dict[str, Any]:
    return asdict(ctx.parsed.birth)


def _time_quality(ctx: EvaluationContext, get: Resolver) -> Dict[str, Any]:
    return asdict(ctx.parsed.pillars.quality)


def _policy_calendar(ctx: EvaluationContext, get: Resolver) -> Dict[str, Any]:
    return dict(ctx.config.get("calendar") or {})


def _policy_weights(ctx: EvaluationContext, get: Resolver) -> Dict[str, float]:
    weights = ctx.config.get("weights") or {}
    return {"stem": float(weights.get("stem", 1.0)), "hidden_stem": float(weights.get("hidden_stem", 1.0))}


def _policy_rules(ctx: EvaluationContext, get: Resolver) -> Dict[str, Any]:
    compiled = _policies(ctx)
    return {
        "digest": compiled.digest,
        "strength_model": compiled.facts.strength.model,
        "yongshin_weights": compiled.yongshin.weights.model_dump(),
        "method_selector": compiled.yongshin.method_selector.enabled,
        "yongshin_rule_set": (compiled.yongshin.rule_set or {}).get("id"),
        "gyeokguk_rule_set": compiled.gyeokguk_rule_set.id if compiled.gyeokguk_rule_set else None,
    }


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 원국
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _pillar(position: str):
    def compute(ctx: EvaluationContext, get: Resolver):
        p = getattr(ctx.parsed.pillars, position)
        return asdict(p) if p is not None else None
    return compute


def _ten_gods_stems(ctx: EvaluationContext, get: Resolver):
    return derive_module.ten_gods_of_stems(ctx.parsed.pillars)


def _hidden_branches(ctx: EvaluationContext, get: Resolver):
    return derive_module.hidden_stems(ctx.parsed.pillars)


def _ten_gods_hidden(ctx: EvaluationContext, get: Resolver):
    day = get("pillars.day")
    return derive_module.ten_gods_of_hidden(get("hiddenStems.branches"), day["gan_index"])


def _scores_pillars(ctx: EvaluationContext, get: Resolver):
    w = get("policy.weights")
    return derive_module.score_pillars(ctx.parsed.pillars, w["stem"], w["hidden_stem"])


def _elements_distribution(ctx: EvaluationContext, get: Resolver):
    return derive_module.element_distribution(ctx.parsed.pillars)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 규칙
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _rules_facts(ctx: EvaluationContext, get: Resolver):
    compiled = _policies(ctx)
    return build_rule_facts(
        ctx.parsed.pillars,
        get("scores.pillars"),
        get("elements.distribution"),
        compiled.facts,
    )


def _strength_index(ctx: EvaluationContext, get: Resolver) -> float:
    return get("rules.facts")["strength"]["index"]


def _rules_yongshin(ctx: EvaluationContext, get: Resolver):
    compiled = _policies(ctx)
    return compute_yongshin(get("rules.facts"), compiled.yongshin).to_dict()


def _rules_gyeokguk(ctx: EvaluationContext, get: Resolver):
    compiled = _policies(ctx)
    return compute_gyeokguk(get("rules.facts"), compiled.gyeokguk_rule_set).to_dict()


def build_graph():
    """엔진당 1회 구성 (불변)"""
    pillar_deps = ("time.birth", "policy.calendar")
    nodes = [
        Node("time.birth", (), _time_birth, explain="출생 입력(양력 연월일시, 타임존)"),
        Node("time.quality", ("time.birth",), _time_quality, explain="시주 유무, 절입 경계 근접 여부"),
        Node("policy.calendar", (), _policy_calendar,
             explain="연: 입춘 / 월: 절입 / 일: 자정 / 시: 두 시간 단위"),
        Node("policy.weights", (), _policy_weights, formula="stem, hidden_stem",
             explain="천간/지장간 가중치"),
        Node("policy.rules", (), _policy_rules, explain="검증·컴파일된 정책 요약 (digest 기준 캐시)"),

        Node("pillars.year", pillar_deps, _pillar("year"), formula="(y-4) mod 10/12, 입춘 보정",
             explain="연주: 입춘 이전 출생은 전년도"),
        Node("pillars.month", pillar_deps + ("pillars.year",), _pillar("month"), formula="연두법(年頭法)",
             explain="월주: 절입 기준 월지, 연간으로 월간 결정"),
        Node("pillars.day", pillar_deps, _pillar("day"), formula="2000-01-01 = 戊午",
             explain="일주: 기준일로부터 일수 mod 60"),
        Node("pillars.hour", pillar_deps + ("pillars.day",), _pillar("hour"), formula="시두법(時頭法)",
             explain="시주: 출생 시간이 없으면 없음"),

        Node("tenGods.stems", PILLAR_NODES, _ten_gods_stems,
             explain="일간 기준 각 천간의 십신 (일간 자리는 없음)"),
        Node("hiddenStems.branches", PILLAR_NODES, _hidden_branches, formula="weight = days / 30",
             explain="지지별 지장간 (여기/중기/정기)"),
        Node("tenGods.hiddenStems", ("hiddenStems.branches", "pillars.day"), _ten_gods_hidden,
             explain="지장간의 십신"),
        Node("scores.pillars", PILLAR_NODES + ("policy.weights",), _scores_pillars,
             formula="Σ stem_weight + Σ hidden_stem_weight × weight",
             explain="십신별 점수 (일간은 비견)"),
        Node("elements.distribution", PILLAR_NODES, _elements_distribution,
             formula="천간 1 + 지장간 weight, 정규화",
             explain="오행 분포 (기둥당 합계 2)"),

        Node("rules.facts", ("scores.pillars", "elements.distribution", "policy.rules"), _rules_facts,
             explain="규칙/용신이 읽는 사실 스냅샷 (신강약, 월령 격, 통관, 특수격, 조후)"),
        Node("strength.index", ("rules.facts",), _strength_index,
             formula="(support - pressure) / total",
             explain="신강약 지수 [-1, +1]"),
        Node("rules.yongshin", ("rules.facts", "policy.rules"), _rules_yongshin,
             formula="Σ effective_weight[m] × score[m][e]",
             explain="다중 방법 용신 점수와 순위"),
        Node("rules.gyeokguk", ("rules.facts", "policy.rules"), _rules_gyeokguk,
             explain="월령 격 + 특수격 규칙 점수와 순위"),
    ]
    return build_graph_map(nodes)
