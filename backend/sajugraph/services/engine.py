"""
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
SajuGraph Engine
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
설정 정규화 → 그래프 1회 구성 → 정책 검증(fail fast)
analyze(request):
  1) 출생 입력 파싱 + 기둥 계산
  2) EvaluationContext 구성
  3) toggles → wanted 노드
  4) evaluate
  5) bundle 반환 (summary + report)
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from sajugraph.config import get_settings
from sajugraph.services.cache import config_digest, policy_cache
from sajugraph.services.calc_module import BirthInput, CalculationError, SajuPillars, calc_module
from sajugraph.services.graph_evaluator import EvaluationContext, EvaluationResult, evaluate
from sajugraph.services.graph_factory import build_graph, wanted_from_toggles
from sajugraph.services.presets import normalize_config

logger = logging.getLogger(__name__)

API_VERSION = "1"
ENGINE_NAME = "sajugraph"
ENGINE_VERSION = "1.0.0"


@dataclass(frozen=True)
class ParsedInput:
    birth: BirthInput
    pillars: SajuPillars


def _require_int(request: Mapping[str, Any], key: str, optional: bool = False) -> Optional[int]:
    value = request.get(key)
    if value is None:
        if optional:
            return None
        raise CalculationError(f"missing birth field: {key}")
    if isinstance(value, bool):
        raise CalculationError(f"invalid birth field {key}: {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise CalculationError(f"invalid birth field {key}: {value!r}") from e


def parse_birth(request: Mapping[str, Any]) -> BirthInput:
    """요청 dict → BirthInput (누락/형식 오류는 CalculationError)"""
    return BirthInput(
        year=_require_int(request, "birth_year"),
        month=_require_int(request, "birth_month"),
        day=_require_int(request, "birth_day"),
        hour=_require_int(request, "birth_hour", optional=True),
        minute=_require_int(request, "birth_minute", optional=True) or 0,
        timezone=str(request.get("timezone") or "Asia/Seoul"),
    )


class SajuGraphEngine:
    """
    설정 단위 분석 엔진

    그래프와 정책은 생성 시 1회 구성되는 불변 값이고,
    analyze()는 요청마다 새 컨텍스트로 평가한다.
    """

    def __init__(
        self,
        config: Optional[Mapping[str, Any]] = None,
        default_school: Optional[str] = None,
    ):
        settings = get_settings()
        self.config = normalize_config(config, default_school if default_school is not None else settings.default_school)
        self.digest = config_digest(self.config)
        self.graph = build_graph()
        # 잘못된 정책은 여기서 ConfigError / DslError
        self.policies = policy_cache.get(self.config, self.digest)
        logger.info(f"[Engine] 생성: school={self.config.get('school')} digest={self.digest[:12]}")

    def evaluate(self, request: Mapping[str, Any]) -> EvaluationResult:
        birth = parse_birth(request)
        pillars = calc_module.calculate_pillars(birth)
        ctx = EvaluationContext(
            request=dict(request),
            parsed=ParsedInput(birth=birth, pillars=pillars),
            config=self.config,
        )
        wanted = wanted_from_toggles(self.config.get("toggles") or {})
        return evaluate(self.graph, ctx, wanted)

    def analyze(
        self,
        request: Mapping[str, Any],
        include_trace: Optional[bool] = None,
        include_facts: Optional[bool] = None,
    ) -> Dict[str, Any]:
        settings = get_settings()
        if include_trace is None:
            include_trace = settings.include_trace_default
        if include_facts is None:
            include_facts = settings.include_facts_default

        result = self.evaluate(request)
        r = result.results

        report: Dict[str, Any] = {}
        if include_facts and "rules.facts" in r:
            report["facts"] = r["rules.facts"]
        if include_trace:
            report["trace"] = result.trace.to_dict()

        bundle = {
            "api_version": API_VERSION,
            "engine": {"name": ENGINE_NAME, "version": ENGINE_VERSION},
            "config": {
                "schema_version": self.config.get("schema_version"),
                "school": self.config.get("school"),
                "digest": self.digest,
            },
            "input": dict(request),
            "summary": build_summary(r),
            "report": report,
        }
        summary = bundle["summary"]
        logger.info(
            f"[Engine] 분석 완료: yongshin={(summary['yongshin'] or {}).get('best')} "
            f"gyeokguk={(summary['gyeokguk'] or {}).get('best')} nodes={len(result.trace.nodes)}"
        )
        return bundle

    def describe_graph(self):
        return [
            {"id": n.id, "deps": list(n.deps), "formula": n.formula, "explain": n.explain}
            for n in self.graph.values()
        ]


def build_summary(r: Mapping[str, Any]) -> Dict[str, Any]:
    """평가 결과 → 요약 (토글로 빠진 항목은 None)"""
    pillars = None
    if "pillars.day" in r:
        pillars = {pos: r.get(f"pillars.{pos}") for pos in ("year", "month", "day", "hour")}

    ten_gods = None
    if "scores.pillars" in r:
        ten_gods = {
            "stems": r.get("tenGods.stems"),
            "hidden_stems": r.get("tenGods.hiddenStems"),
            "scores": r.get("scores.pillars"),
        }

    strength = None
    facts = r.get("rules.facts")
    if facts is not None:
        s = facts["strength"]
        strength = {
            "index": s["index"],
            "support": s["support"],
            "pressure": s["pressure"],
            "model": s["model"],
        }

    yongshin = None
    if "rules.yongshin" in r:
        y = r["rules.yongshin"]
        yongshin = {"best": y["best"], "ranking": y["ranking"], "strength_index": y["base"]["strength_index"]}

    gyeokguk = None
    if "rules.gyeokguk" in r:
        g = r["rules.gyeokguk"]
        gyeokguk = {"best": g["best"], "ranking": g["ranking"]}

    return {
        "pillars": pillars,
        "quality": r.get("time.quality"),
        "ten_gods": ten_gods,
        "hidden_stems": r.get("hiddenStems.branches"),
        "element_distribution": r.get("elements.distribution"),
        "strength": strength,
        "yongshin": yongshin,
        "gyeokguk": gyeokguk,
    }


def create_engine(config: Optional[Mapping[str, Any]] = None, default_school: Optional[str] = None) -> SajuGraphEngine:
    return SajuGraphEngine(config, default_school=default_school)
