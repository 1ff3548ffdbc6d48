"""
JSON 규칙 DSL 테스트
"""
import math

import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sajugraph.rules.dsl import DslError, eval_expr, eval_rule_set, get_path, parse_rule_set
from sajugraph.services.ganji import Element

FACTS = {
    "strength": {"index": -0.4, "support": 2.0},
    "month": {"gyeok": {"ten_god": "JEONG_GWAN", "quality": {"multiplier": 0.85}}},
    "tags": ["a", "b"],
    "elements": {"normalized": {Element.FIRE: 0.4, Element.WATER: 0.1}},
}


class TestEvalExpr:

    def test_var(self):
        assert eval_expr({"var": "strength.index"}, FACTS) == -0.4

    def test_missing_var_is_none(self):
        assert eval_expr({"var": "strength.nope.deep"}, FACTS) is None

    def test_enum_keys_reachable_by_name(self):
        assert eval_expr({"var": "elements.normalized.FIRE"}, FACTS) == 0.4

    def test_list_index_path(self):
        assert get_path(FACTS, "tags.1") == "b"
        assert get_path(FACTS, "tags.5") is None

    def test_comparisons(self):
        assert eval_expr({"op": "lt", "args": [{"var": "strength.index"}, 0]}, FACTS) is True
        assert eval_expr({"op": "gte", "args": [1, 2]}, FACTS) is False
        assert eval_expr({"op": "eq", "args": [{"var": "month.gyeok.ten_god"}, "JEONG_GWAN"]}, FACTS) is True

    def test_arithmetic(self):
        assert eval_expr({"op": "add", "args": [1, 2, 3]}, FACTS) == 6
        assert eval_expr({"op": "mul", "args": [2, {"var": "month.gyeok.quality.multiplier"}]}, FACTS) == pytest.approx(1.7)
        assert eval_expr({"op": "clamp", "args": [1.5, 0, 1]}, FACTS) == 1
        assert eval_expr({"op": "neg", "args": [2]}, FACTS) == -2

    def test_division_by_zero(self):
        assert math.isinf(eval_expr({"op": "div", "args": [1, 0]}, FACTS))
        assert math.isnan(eval_expr({"op": "div", "args": [0, 0]}, FACTS))

    def test_collections(self):
        assert eval_expr({"op": "in", "args": ["a", {"var": "tags"}]}, FACTS) is True
        assert eval_expr({"op": "overlap", "args": [["x", "b"], {"var": "tags"}]}, FACTS) is True
        assert eval_expr({"op": "intersect", "args": [["b", "c", "b"], {"var": "tags"}]}, FACTS) == ["b"]
        assert eval_expr({"op": "len", "args": [{"var": "tags"}]}, FACTS) == 2

    def test_lazy_if_skips_untaken_branch(self):
        """선택되지 않은 분기의 알 수 없는 연산자는 평가하지 않음"""
        expr = {"op": "if", "args": [True, 1, {"op": "bogus"}]}
        assert eval_expr(expr, FACTS) == 1

    def test_lazy_and_short_circuit(self):
        expr = {"op": "and", "args": [False, {"op": "bogus"}]}
        assert eval_expr(expr, FACTS) is False

    def test_unknown_op(self):
        with pytest.raises(DslError):
            eval_expr({"op": "bogus", "args": [1]}, FACTS)

    def test_nan_is_falsy(self):
        assert eval_expr({"op": "not", "args": [{"op": "div", "args": [0, 0]}]}, FACTS) is True


class TestRuleSet:

    def test_scores_accumulate_on_init(self):
        rs = {
            "id": "t",
            "rules": [
                {"id": "R1", "when": {"op": "lt", "args": [{"var": "strength.index"}, 0]}, "score": {"x": 1.5}},
                {"id": "R2", "score": {"x": 0.5, "y": {"var": "strength.support"}}},
                {"id": "R3", "when": False, "score": {"x": 100}},
            ],
        }
        out = eval_rule_set(rs, FACTS, {"x": 1.0})
        assert out["scores"] == {"x": 3.0, "y": 2.0}
        assert [m["rule_id"] for m in out["matches"]] == ["R1", "R2"]

    def test_non_finite_contribution_skipped(self):
        rs = {"rules": [{"id": "R", "score": {"x": {"op": "div", "args": [1, 0]}}}]}
        out = eval_rule_set(rs, FACTS, {"x": 1.0})
        assert out["scores"]["x"] == 1.0

    def test_assertion_failure_recorded(self):
        rs = {"rules": [{"id": "A1", "assert": {"op": "gt", "args": [{"var": "strength.index"}, 0]}, "explain": "신강 필요"}]}
        out = eval_rule_set(rs, FACTS)
        assert out["assertions_failed"] == [{"rule_id": "A1", "explain": "신강 필요"}]
        assert out["matches"] == []

    def test_emit_template(self):
        rs = {"rules": [{"id": "E", "emit": {"kind": "note", "value": {"var": "strength.index"}}}]}
        out = eval_rule_set(rs, FACTS)
        assert out["emits"] == [{"kind": "note", "value": -0.4}]
        assert out["matches"][0]["emit"] == {"kind": "note", "value": -0.4}

    def test_unknown_op_in_rule(self):
        rs = {"rules": [{"id": "X", "when": {"op": "frobnicate", "args": []}}]}
        with pytest.raises(DslError):
            eval_rule_set(rs, FACTS)

    def test_invalid_rule_set_shape(self):
        with pytest.raises(DslError):
            parse_rule_set({"rules": "not-a-list"})
        with pytest.raises(DslError):
            parse_rule_set({"rules": [{"score": {"x": 1}}]})

    def test_parse_returns_rule_set_instance_unchanged(self):
        rs = parse_rule_set({"id": "p", "rules": []})
        assert parse_rule_set(rs) is rs


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
