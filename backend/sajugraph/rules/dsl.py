"""
JSON 규칙 DSL
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
- 문자열 파싱 없음: {"var": "a.b.c"} / {"op": "gte", "args": [...]}
- 결정적 평가, 규칙 매칭 추적 (matches / assertions_failed)
- 알 수 없는 연산자는 DslError
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
"""
import math
from typing import Any, Callable, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError


class DslError(Exception):
    pass


class Rule(BaseModel):
    id: str
    when: Any = None
    assert_: Any = Field(None, alias="assert")
    score: Optional[Dict[str, Any]] = None
    emit: Any = None
    explain: Optional[str] = None
    tags: List[str] = Field(default_factory=list)

    class Config:
        populate_by_name = True


class RuleSet(BaseModel):
    id: str = "ruleset"
    rules: List[Rule] = Field(default_factory=list)


def _is_expr(x: Any) -> bool:
    return isinstance(x, Mapping) and (isinstance(x.get("var"), str) or isinstance(x.get("op"), str))


def get_path(obj: Any, path: str) -> Any:
    cur = obj
    for part in path.split("."):
        if cur is None:
            return None
        if isinstance(cur, Mapping):
            cur = cur.get(part)
        elif isinstance(cur, (list, tuple)) and part.isdigit():
            idx = int(part)
            cur = cur[idx] if idx < len(cur) else None
        else:
            cur = getattr(cur, part, None)
    return cur


def as_number(x: Any) -> float:
    if isinstance(x, bool):
        return 1.0 if x else 0.0
    if isinstance(x, (int, float)):
        return float(x)
    if isinstance(x, str) and x.strip():
        try:
            return float(x)
        except ValueError:
            return math.nan
    return math.nan


def truthy(x: Any) -> bool:
    if isinstance(x, float) and math.isnan(x):
        return False
    return bool(x)


def _in(v: Any, c: Any) -> bool:
    if isinstance(c, (list, tuple)):
        return v in c
    if isinstance(c, str):
        return isinstance(v, str) and v in c
    if isinstance(c, Mapping):
        return str(v) in c
    return False


def _overlap(a: Any, b: Any) -> bool:
    if not isinstance(a, (list, tuple)) or not isinstance(b, (list, tuple)):
        return False
    return any(x in b for x in a)


def _intersect(a: Any, b: Any) -> List[Any]:
    if not isinstance(a, (list, tuple)) or not isinstance(b, (list, tuple)):
        return []
    out: List[Any] = []
    for x in a:
        if x in b and x not in out:
            out.append(x)
    return out


def _len(v: Any) -> int:
    if isinstance(v, (str, list, tuple, Mapping)):
        return len(v)
    return 0


def _div(a: float, b: float) -> float:
    if b == 0:
        return math.nan if a == 0 else math.copysign(math.inf, a)
    return a / b


# 지연 평가 연산자 (인자 evaluator를 받는다)
_LAZY_OPS: Dict[str, Callable[[Callable[[int], Any], int], Any]] = {
    "and": lambda ev, n: all(truthy(ev(i)) for i in range(n)),
    "or": lambda ev, n: any(truthy(ev(i)) for i in range(n)),
    "if": lambda ev, n: ev(1) if truthy(ev(0)) else ev(2),
}

# 즉시 평가 연산자 (평가된 인자 리스트를 받는다)
_OPS: Dict[str, Callable[[List[Any]], Any]] = {
    "not": lambda a: not truthy(a[0]),
    "eq": lambda a: a[0] == a[1],
    "ne": lambda a: a[0] != a[1],
    "lt": lambda a: as_number(a[0]) < as_number(a[1]),
    "lte": lambda a: as_number(a[0]) <= as_number(a[1]),
    "gt": lambda a: as_number(a[0]) > as_number(a[1]),
    "gte": lambda a: as_number(a[0]) >= as_number(a[1]),
    "in": lambda a: _in(a[0], a[1]),
    "overlap": lambda a: _overlap(a[0], a[1]),
    "intersect": lambda a: _intersect(a[0], a[1]),
    "len": lambda a: _len(a[0]),
    "add": lambda a: sum(as_number(x) for x in a),
    "sub": lambda a: as_number(a[0]) - as_number(a[1]),
    "mul": lambda a: math.prod(as_number(x) for x in a),
    "div": lambda a: _div(as_number(a[0]), as_number(a[1])),
    "neg": lambda a: -as_number(a[0]),
    "abs": lambda a: abs(as_number(a[0])),
    "min": lambda a: min((as_number(x) for x in a), default=math.inf),
    "max": lambda a: max((as_number(x) for x in a), default=-math.inf),
    "sum": lambda a: sum(as_number(x) for x in a[0]) if isinstance(a[0], (list, tuple)) else 0.0,
    "clamp": lambda a: min(as_number(a[2]), max(as_number(a[1]), as_number(a[0]))),
}

_VARIADIC = {"add", "mul", "min", "max"}

OPERATORS = sorted(set(_OPS) | set(_LAZY_OPS))


def eval_expr(expr: Any, facts: Any) -> Any:
    if expr is None or isinstance(expr, (bool, int, float, str)):
        return expr
    if isinstance(expr, (list, tuple)):
        return [eval_expr(x, facts) for x in expr]
    if not _is_expr(expr):
        return expr
    if isinstance(expr.get("var"), str):
        return get_path(facts, expr["var"])

    op = expr["op"]
    args = list(expr.get("args") or [])

    def ev(i: int) -> Any:
        return eval_expr(args[i], facts) if i < len(args) else None

    if op in _LAZY_OPS:
        return _LAZY_OPS[op](ev, len(args))
    fn = _OPS.get(op)
    if fn is None:
        raise DslError(f"Unknown DSL op: {op} (known: {', '.join(OPERATORS)})")
    values = [ev(i) for i in range(len(args))]
    if op not in _VARIADIC:
        # 부족한 인자는 None
        values += [None] * (3 - len(values))
    return fn(values)


def _eval_template(x: Any, facts: Any) -> Any:
    if x is None or isinstance(x, (bool, int, float, str)):
        return x
    if isinstance(x, (list, tuple)):
        return [_eval_template(v, facts) for v in x]
    if _is_expr(x):
        return eval_expr(x, facts)
    if isinstance(x, Mapping):
        return {k: _eval_template(v, facts) for k, v in x.items()}
    return x


def parse_rule_set(raw: Any) -> RuleSet:
    if isinstance(raw, RuleSet):
        return raw
    try:
        return RuleSet.model_validate(raw)
    except ValidationError as e:
        raise DslError(f"invalid rule set: {e}") from e


def eval_rule_set(rule_set: Any, facts: Any, init_scores: Optional[Mapping[str, float]] = None) -> Dict[str, Any]:
    """
    규칙 집합 평가

    Returns:
        {"scores", "emits", "assertions_failed", "matches"}
    """
    rs = parse_rule_set(rule_set)
    scores: Dict[str, float] = dict(init_scores or {})
    emits: List[Any] = []
    assertions_failed: List[Dict[str, Any]] = []
    matches: List[Dict[str, Any]] = []

    for rule in rs.rules:
        if rule.when is not None and not truthy(eval_expr(rule.when, facts)):
            continue

        match: Optional[Dict[str, Any]] = None
        if rule.assert_ is not None and not truthy(eval_expr(rule.assert_, facts)):
            assertions_failed.append({"rule_id": rule.id, "explain": rule.explain})

        if rule.score:
            match = {"rule_id": rule.id, "explain": rule.explain, "tags": list(rule.tags)}
            contrib: Dict[str, float] = {}
            for key, v_expr in rule.score.items():
                v = as_number(eval_expr(v_expr, facts))
                if not math.isfinite(v):
                    continue
                scores[key] = scores.get(key, 0.0) + v
                contrib[key] = v
            match["scores"] = contrib

        if rule.emit is not None:
            match = match or {"rule_id": rule.id, "explain": rule.explain, "tags": list(rule.tags)}
            payload = _eval_template(rule.emit, facts)
            emits.append(payload)
            match["emit"] = payload

        if match:
            matches.append(match)

    return {
        "scores": scores,
        "emits": emits,
        "assertions_failed": assertions_failed,
        "matches": matches,
    }
