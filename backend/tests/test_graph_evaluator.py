"""
사실 그래프 평가기 테스트 - 메모이제이션 / 순환 / trace
"""
import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sajugraph.services.graph_evaluator import (
    CycleError,
    EvaluationContext,
    GraphError,
    Node,
    UnknownNodeError,
    build_graph_map,
    evaluate,
)


def make_ctx():
    return EvaluationContext(request={}, parsed=None, config={})


def diamond(calls):
    """A → (B, C) → D"""
    def counted(node_id, fn):
        def compute(ctx, get):
            calls[node_id] = calls.get(node_id, 0) + 1
            return fn(get)
        return compute

    return build_graph_map([
        Node("D", (), counted("D", lambda get: 1)),
        Node("B", ("D",), counted("B", lambda get: get("D") + 10)),
        Node("C", ("D",), counted("C", lambda get: get("D") + 100)),
        Node("A", ("B", "C"), counted("A", lambda get: get("B") + get("C"))),
    ])


class TestEvaluate:
    """evaluate() 기본 동작"""

    def test_values(self):
        result = evaluate(diamond({}), make_ctx(), ["A"])
        assert result.results == {"A": 112}

    def test_each_node_computed_once(self):
        """공유 의존성 D는 한 번만 계산"""
        calls = {}
        evaluate(diamond(calls), make_ctx(), ["A", "D", "B"])
        assert calls == {"A": 1, "B": 1, "C": 1, "D": 1}, f"중복 계산: {calls}"

    def test_trace_post_order(self):
        result = evaluate(diamond({}), make_ctx(), ["A"])
        assert result.trace.node_ids() == ["D", "B", "C", "A"]

    def test_trace_each_node_once(self):
        result = evaluate(diamond({}), make_ctx(), ["A", "B", "D"])
        ids = result.trace.node_ids()
        assert len(ids) == len(set(ids))

    def test_deterministic(self):
        """같은 입력 → 같은 결과 / 같은 trace 순서"""
        graph = diamond({})
        r1 = evaluate(graph, make_ctx(), ["A", "C"])
        r2 = evaluate(graph, make_ctx(), ["A", "C"])
        assert r1.results == r2.results
        assert r1.trace.node_ids() == r2.trace.node_ids()
        assert r1.trace.edges == r2.trace.edges

    def test_memo_is_per_call(self):
        """evaluate 호출 간에는 메모를 공유하지 않음"""
        calls = {}
        graph = diamond(calls)
        evaluate(graph, make_ctx(), ["A"])
        evaluate(graph, make_ctx(), ["A"])
        assert calls["D"] == 2

    def test_trace_input_snapshot(self):
        result = evaluate(diamond({}), make_ctx(), ["A"])
        node_a = result.trace.nodes[-1]
        assert node_a.id == "A"
        assert node_a.input == {"B": 11, "C": 101}
        assert node_a.output == 112

    def test_trace_to_dict(self):
        result = evaluate(diamond({}), make_ctx(), ["A"])
        data = result.trace.to_dict()
        assert [n["id"] for n in data["nodes"]] == ["D", "B", "C", "A"]
        assert {"from": "D", "to": "B"} in data["edges"]


class TestEdges:
    """edge 중복 제거"""

    def test_declared_and_dynamic_dep_single_edge(self):
        """선언된 의존성을 compute 안에서 다시 get 해도 edge는 1개"""
        graph = build_graph_map([
            Node("X", (), lambda ctx, get: 2),
            Node("Y", ("X",), lambda ctx, get: get("X") * get("X")),
        ])
        result = evaluate(graph, make_ctx(), ["Y"])
        assert result.results["Y"] == 4
        assert result.trace.edges == [{"from": "X", "to": "Y"}]

    def test_dynamic_dep_recorded(self):
        """선언하지 않은 동적 의존성도 edge로 기록"""
        graph = build_graph_map([
            Node("X", (), lambda ctx, get: 3),
            Node("Y", (), lambda ctx, get: get("X") + 1),
        ])
        result = evaluate(graph, make_ctx(), ["Y"])
        assert result.results["Y"] == 4
        assert result.trace.edges == [{"from": "X", "to": "Y"}]
        assert result.trace.node_ids() == ["X", "Y"]


class TestErrors:
    """순환 / 미등록 노드"""

    def cycle_graph(self):
        return build_graph_map([
            Node("A", ("B",), lambda ctx, get: 1),
            Node("B", ("A",), lambda ctx, get: 2),
        ])

    def test_cycle_from_a(self):
        with pytest.raises(CycleError) as exc:
            evaluate(self.cycle_graph(), make_ctx(), ["A"])
        assert exc.value.node_id == "A"
        assert exc.value.path == ["A", "B"]

    def test_cycle_from_b(self):
        with pytest.raises(CycleError) as exc:
            evaluate(self.cycle_graph(), make_ctx(), ["B"])
        assert exc.value.node_id == "B"

    def test_self_cycle(self):
        graph = build_graph_map([Node("S", (), lambda ctx, get: get("S"))])
        with pytest.raises(CycleError):
            evaluate(graph, make_ctx(), ["S"])

    def test_unknown_wanted_checked_before_compute(self):
        """미등록 wanted id → 어떤 노드도 계산되기 전에 오류"""
        calls = {}
        with pytest.raises(UnknownNodeError) as exc:
            evaluate(diamond(calls), make_ctx(), ["A", "missing"])
        assert exc.value.node_id == "missing"
        assert calls == {}

    def test_unknown_dependency(self):
        graph = build_graph_map([Node("A", ("ghost",), lambda ctx, get: 1)])
        with pytest.raises(UnknownNodeError) as exc:
            evaluate(graph, make_ctx(), ["A"])
        assert exc.value.node_id == "ghost"
        assert exc.value.required_by == "A"

    def test_errors_are_graph_errors(self):
        assert issubclass(CycleError, GraphError)
        assert issubclass(UnknownNodeError, GraphError)

    def test_duplicate_node_id(self):
        with pytest.raises(GraphError):
            build_graph_map([
                Node("A", (), lambda ctx, get: 1),
                Node("A", (), lambda ctx, get: 2),
            ])

    def test_compute_exception_propagates(self):
        def boom(ctx, get):
            raise ValueError("boom")

        graph = build_graph_map([Node("A", (), boom)])
        with pytest.raises(ValueError):
            evaluate(graph, make_ctx(), ["A"])


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
