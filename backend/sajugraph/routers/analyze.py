"""
/analyze 엔드포인트

- POST /analyze : 출생 정보 + (school, config) → 분석 번들
- GET /presets  : 학파 프리셋 목록
- GET /graph    : 분석 그래프 노드 목록
"""
from fastapi import APIRouter, HTTPException
import logging

from sajugraph.models.schemas import (
    AnalyzeRequest,
    AnalyzeResponse,
    ErrorResponse,
    GraphResponse,
    PresetListResponse,
)
from sajugraph.rules.dsl import DslError
from sajugraph.rules.policy import ConfigError
from sajugraph.services import get_default_engine
from sajugraph.services.calc_module import CalculationError
from sajugraph.services.engine import create_engine
from sajugraph.services.graph_evaluator import GraphError
from sajugraph.services.presets import list_presets

logger = logging.getLogger(__name__)
router = APIRouter()


def _error(status_code: int, error_code: str, message: str, e: Exception) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail={
            "error_code": error_code,
            "message": message,
            "detail": str(e),
        }
    )


@router.post(
    "/analyze",
    response_model=AnalyzeResponse,
    responses={
        400: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
    summary="사주 분석 (기둥 → 십신 → 용신/격국)",
    description="""
생년월일시와 설정을 받아 분석 그래프를 평가합니다.

**설정 합성 순서:**
1. 기본 설정
2. `school` 프리셋 (예: `classic`, `johoo+byeongyak`)
3. `config` 오버라이드 (dict 재귀 병합, list 교체)

**report:**
- `include_facts=true`: RuleFacts 스냅샷
- `include_trace=true`: 노드별 입력/출력 trace
    """
)
async def analyze_saju(request: AnalyzeRequest):
    config = dict(request.config or {})
    if request.school:
        config["school"] = request.school

    try:
        engine = create_engine(config) if config else get_default_engine()
        bundle = engine.analyze(
            request.birth_dict(),
            include_trace=request.include_trace,
            include_facts=request.include_facts,
        )
        return AnalyzeResponse(**bundle)

    except ConfigError as e:
        logger.warning(f"[Analyze] invalid config: {e}")
        raise _error(400, "INVALID_CONFIG", "설정이 올바르지 않습니다.", e)
    except DslError as e:
        logger.warning(f"[Analyze] invalid ruleset: {e}")
        raise _error(400, "INVALID_RULESET", "규칙 집합이 올바르지 않습니다.", e)
    except CalculationError as e:
        logger.warning(f"[Analyze] invalid birth: {e}")
        raise _error(400, "INVALID_BIRTH", "출생 정보로 사주를 계산할 수 없습니다.", e)
    except GraphError as e:
        logger.error(f"[Analyze] graph error at {e.node_id}: {e}")
        raise _error(500, "GRAPH_ERROR", "분석 그래프 평가에 실패했습니다.", e)


@router.get(
    "/presets",
    response_model=PresetListResponse,
    summary="학파 프리셋 목록",
)
async def get_presets():
    return {"presets": list_presets()}


@router.get(
    "/graph",
    response_model=GraphResponse,
    summary="분석 그래프 노드 목록",
    description="노드 id, 의존성, 공식, 설명"
)
async def get_graph():
    return {"nodes": get_default_engine().describe_graph()}
