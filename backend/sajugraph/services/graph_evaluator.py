"""
Fact Graph Evaluator
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
- 이름 붙은 노드(derivation)들의 의존성 DAG를 깊이우선으로 평가
- evaluate() 호출 단위 메모이제이션 (노드당 최대 1회 계산)
- 순환 의존성 → CycleError, 없는 노드 → UnknownNodeError
- 실행 trace: 노드별 입력 스냅샷/출력 + 중복 제거된 edge
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple

logger = logging.getLogger(__name__)

Resolver = Callable[[str], Any]


class GraphError(Exception):
    """그래프 구성 오류 (요청 단위 치명적 오류)"""

    def __init__(self, message: str, node_id: str):
        super().__init__(message)
        self.node_id = node_id


class CycleError(GraphError):
    def __init__(self, node_id: str, path: List[str]):
        super().__init__(f"dependency cycle at '{node_id}': {' -> '.join(path + [node_id])}", node_id)
        self.path = path


class UnknownNodeError(GraphError):
    def __init__(self, node_id: str, required_by: Optional[str] = None):
        where = f" (required by '{required_by}')" if required_by else ""
        super().__init__(f"unknown node '{node_id}'{where}", node_id)
        self.required_by = required_by


@dataclass(frozen=True)
class EvaluationContext:
    """요청 단위 컨텍스트 - 모든 노드에 그대로 전달 (노드는 수정하지 않는다)"""
    request: Mapping[str, Any]
    parsed: Any
    config: Mapping[str, Any]


@dataclass(frozen=True)
class Node:
    id: str
    deps: Tuple[str, ...]
    compute: Callable[[EvaluationContext, Resolver], Any]
    formula: Optional[str] = None
    explain: Optional[str] = None


@dataclass
class TraceNode:
    id: str
    deps: List[str]
    formula: Optional[str]
    explain: Optional[str]
    input: Dict[str, Any]
    output: Any


@dataclass
class Trace:
    nodes: List[TraceNode] = field(default_factory=list)
    edges: List[Dict[str, str]] = field(default_factory=list)

    def node_ids(self) -> List[str]:
        return [n.id for n in self.nodes]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [
                {
                    "id": n.id,
                    "deps": list(n.deps),
                    "formula": n.formula,
                    "explain": n.explain,
                    "input": n.input,
                    "output": n.output,
                }
                for n in self.nodes
            ],
            "edges": [dict(e) for e in self.edges],
        }


@dataclass
class EvaluationResult:
    results: Dict[str, Any]
    trace: Trace


Graph = Mapping[str, Node]


def build_graph_map(nodes: Iterable[Node]) -> Dict[str, Node]:
    """노드 목록 → id 맵 (id 중복은 구성 오류)"""
    graph: Dict[str, Node] = {}
    for node in nodes:
        if node.id in graph:
            raise GraphError(f"duplicate node id '{node.id}'", node.id)
        graph[node.id] = node
    return graph


def evaluate(graph: Graph, ctx: EvaluationContext, wanted: Iterable[str]) -> EvaluationResult:
    """
    wanted 노드들을 의존성 순서대로 평가

    동일한 (graph, ctx, wanted)에 대해 결과와 trace 순서(최초 해석의 post-order)가 항상 같다.
    """
    wanted = list(wanted)
    for node_id in wanted:
        if node_id not in graph:
            raise UnknownNodeError(node_id)

    memo: Dict[str, Any] = {}
    visiting: Set[str] = set()
    stack: List[str] = []
    trace = Trace()
    seen_edges: Set[Tuple[str, str]] = set()

    def add_edge(src: str, dst: str) -> None:
        key = (src, dst)
        if key not in seen_edges:
            seen_edges.add(key)
            trace.edges.append({"from": src, "to": dst})

    def resolve(node_id: str, required_by: Optional[str] = None) -> Any:
        if node_id in memo:
            return memo[node_id]
        if node_id in visiting:
            raise CycleError(node_id, list(stack))
        node = graph.get(node_id)
        if node is None:
            raise UnknownNodeError(node_id, required_by)

        visiting.add(node_id)
        stack.append(node_id)
        try:
            inputs: Dict[str, Any] = {}
            for dep in node.deps:
                inputs[dep] = resolve(dep, node_id)
                add_edge(dep, node_id)

            def get(dep_id: str) -> Any:
                value = resolve(dep_id, node_id)
                add_edge(dep_id, node_id)
                return value

            logger.debug(f"[GraphEvaluator] compute {node_id}")
            value = node.compute(ctx, get)
        finally:
            stack.pop()
            visiting.discard(node_id)

        memo[node_id] = value
        trace.nodes.append(TraceNode(
            id=node.id,
            deps=list(node.deps),
            formula=node.formula,
            explain=node.explain,
            input=inputs,
            output=value,
        ))
        return value

    results = {node_id: resolve(node_id) for node_id in wanted}
    return EvaluationResult(results=results, trace=trace)
