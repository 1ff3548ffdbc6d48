"""
기본 규칙 집합 (DSL)

- DEFAULT_YONGSHIN_RULE_SET: 비어 있음 (학파별 보정은 extensions.rulesets.yongshin)
- DEFAULT_GYEOKGUK_RULE_SET: 월령 격 십신 × 품질 + 화기격/전왕격/종격(세분 포함) 연속 신호
"""
from typing import Any, Dict, List

from sajugraph.services.ganji import TEN_GOD_KO, TenGod

DEFAULT_YONGSHIN_RULE_SET: Dict[str, Any] = {
    "id": "yongshin.base",
    "rules": [],
}

GYEOKGUK_TIE_BREAK_ORDER: List[str] = [
    "gyeokguk.JEONG_GWAN",
    "gyeokguk.PYEON_GWAN",
    "gyeokguk.JEONG_JAE",
    "gyeokguk.PYEON_JAE",
    "gyeokguk.SIK_SHIN",
    "gyeokguk.SANG_GWAN",
    "gyeokguk.JEONG_IN",
    "gyeokguk.PYEON_IN",
    "gyeokguk.BI_GYEON",
    "gyeokguk.GEOB_JAE",
    "gyeokguk.HUA_QI",
    "gyeokguk.ZHUAN_WANG",
    "gyeokguk.CONG_CAI",
    "gyeokguk.CONG_GUAN",
    "gyeokguk.CONG_SHA",
    "gyeokguk.CONG_ER",
    "gyeokguk.CONG_YIN",
    "gyeokguk.CONG_BI",
    "gyeokguk.CONG_GE",
]


def _var(path: str) -> Dict[str, str]:
    return {"var": path}


def _ten_god_rule(tg: TenGod) -> Dict[str, Any]:
    name = TEN_GOD_KO[tg]
    return {
        "id": f"GYEOK_{tg.value}",
        "when": {"op": "eq", "args": [_var("month.gyeok.ten_god"), tg.value]},
        "score": {f"gyeokguk.{tg.value}": {"op": "mul", "args": [1, _var("month.gyeok.quality.multiplier")]}},
        "explain": f"월지 격={name} → {name}격(기초×품질)",
        "tags": ["MONTH_GYEOK"],
    }


# 화기 신호: huaqi_factor가 있으면 그것, 없으면 effective_factor
_HUAQI_SIGNAL = {
    "op": "if",
    "args": [
        {"op": "gt", "args": [_var("patterns.transformations.best.huaqi_factor"), 0]},
        _var("patterns.transformations.best.huaqi_factor"),
        _var("patterns.transformations.best.effective_factor"),
    ],
}

_ZHUANWANG_SIGNAL = {
    "op": "if",
    "args": [
        {"op": "gt", "args": [_var("patterns.elements.one_element.zhuanwang_factor"), 0]},
        _var("patterns.elements.one_element.zhuanwang_factor"),
        _var("patterns.elements.one_element.factor"),
    ],
}

FOLLOW_SUBTYPES = [
    ("CONG_CAI", "从财"),
    ("CONG_GUAN", "从官"),
    ("CONG_SHA", "从杀"),
    ("CONG_ER", "从儿"),
    ("CONG_YIN", "从印"),
    ("CONG_BI", "从比"),
]


def _follow_subtype_rule(follow_type: str, label: str) -> Dict[str, Any]:
    factor = _var("patterns.follow.jonggyeok_factor")
    return {
        "id": f"GYEOK_{follow_type}",
        "when": {
            "op": "and",
            "args": [
                {"op": "gte", "args": [factor, 0.6]},
                {"op": "eq", "args": [_var("patterns.follow.follow_type"), follow_type]},
            ],
        },
        "score": {f"gyeokguk.{follow_type}": {"op": "mul", "args": [factor, 0.85]}},
        "explain": f"종격 세분({label}) 신호가 강하면 {label}格 후보 가산 (factor×0.85)",
        "tags": ["PATTERN", "CONG_GE", follow_type],
    }


_PATTERN_RULES: List[Dict[str, Any]] = [
    {
        "id": "GYEOK_HUA_QI",
        "when": {"op": "gte", "args": [_HUAQI_SIGNAL, 0.6]},
        "score": {"gyeokguk.HUA_QI": {"op": "mul", "args": [_HUAQI_SIGNAL, 0.85]}},
        "explain": "합화(化气) 신호가 강하면 화기격 후보 가산 (factor×0.85)",
        "tags": ["PATTERN", "HUA_QI"],
    },
    {
        "id": "GYEOK_ZHUAN_WANG",
        "when": {
            "op": "and",
            "args": [
                {"op": "gte", "args": [_var("patterns.elements.one_element.factor"), 0.62]},
                {"op": "gte", "args": [_var("strength.index"), 0]},
            ],
        },
        "score": {"gyeokguk.ZHUAN_WANG": {"op": "mul", "args": [_ZHUANWANG_SIGNAL, 0.85]}},
        "explain": "일행득기/专旺 신호 + 신강(>=0)이면 전왕격 후보 가산 (factor×0.85)",
        "tags": ["PATTERN", "ZHUAN_WANG"],
    },
    {
        "id": "GYEOK_CONG_GE",
        "when": {"op": "gte", "args": [_var("patterns.follow.jonggyeok_factor"), 0.6]},
        "score": {"gyeokguk.CONG_GE": {"op": "mul", "args": [_var("patterns.follow.jonggyeok_factor"), 0.85]}},
        "explain": "종격(从格) 신호가 강하면 종격 후보 가산 (factor×0.85)",
        "tags": ["PATTERN", "CONG_GE"],
    },
] + [_follow_subtype_rule(ft, label) for ft, label in FOLLOW_SUBTYPES]

DEFAULT_GYEOKGUK_RULE_SET: Dict[str, Any] = {
    "id": "gyeokguk.month_gyeok.quality",
    "rules": [_ten_god_rule(tg) for tg in TenGod] + _PATTERN_RULES,
}
