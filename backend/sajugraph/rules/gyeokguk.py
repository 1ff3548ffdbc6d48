"""
격국(格局) 판정: 규칙 집합 평가 후 gyeokguk.* 점수 순위
"""
import logging
from dataclasses import dataclass, asdict, field
from typing import Any, Dict, List, Mapping, Optional, Union

from sajugraph.rules.default_rule_sets import DEFAULT_GYEOKGUK_RULE_SET, GYEOKGUK_TIE_BREAK_ORDER
from sajugraph.rules.dsl import RuleSet, eval_rule_set

logger = logging.getLogger(__name__)

PREFIX = "gyeokguk."


@dataclass
class RankedGyeok:
    key: str
    score: float


@dataclass
class GyeokgukResult:
    best: Optional[str]
    ranking: List[RankedGyeok]
    scores: Dict[str, float]
    basis: Dict[str, Any] = field(default_factory=dict)
    rules: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _tie_index(key: str) -> int:
    try:
        return GYEOKGUK_TIE_BREAK_ORDER.index(key)
    except ValueError:
        return len(GYEOKGUK_TIE_BREAK_ORDER)


def compute_gyeokguk(
    facts: Mapping[str, Any],
    rule_set: Optional[Union[RuleSet, Mapping[str, Any]]] = None,
) -> GyeokgukResult:
    """
    rule_set이 주어지면 기본 규칙 집합을 대체한다.
    최고 점수가 0 이하이면 best=None
    """
    init = {k: 0.0 for k in GYEOKGUK_TIE_BREAK_ORDER}
    evaluated = eval_rule_set(rule_set or DEFAULT_GYEOKGUK_RULE_SET, facts, init)
    scores = {k: v for k, v in evaluated["scores"].items() if k.startswith(PREFIX)}

    ordered = sorted(scores.items(), key=lambda kv: (-kv[1], _tie_index(kv[0]), kv[0]))
    ranking = [RankedGyeok(key=k, score=v) for k, v in ordered]
    best = ranking[0].key if ranking and ranking[0].score > 0 else None

    gyeok = facts["month"]["gyeok"]
    logger.debug(f"[Gyeokguk] best={best}")
    return GyeokgukResult(
        best=best,
        ranking=ranking,
        scores=scores,
        basis={
            "month_gyeok_ten_god": gyeok["ten_god"],
            "month_gyeok_source": gyeok["source"],
            "month_gyeok_quality": gyeok["quality"],
        },
        rules={"matches": evaluated["matches"], "assertions_failed": evaluated["assertions_failed"]},
    )
