"""
Pydantic 스키마 정의
API 요청/응답 모델
"""
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from enum import Enum


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


# ============ /analyze 요청/응답 ============

class AnalyzeRequest(BaseModel):
    """사주 분석 요청"""
    birth_year: int = Field(..., ge=1900, le=2100, description="출생 년도 (양력)")
    birth_month: int = Field(..., ge=1, le=12, description="출생 월")
    birth_day: int = Field(..., ge=1, le=31, description="출생 일")
    birth_hour: Optional[int] = Field(None, ge=0, le=23, description="출생 시간 (0-23시, 선택)")
    birth_minute: int = Field(0, ge=0, le=59, description="출생 분 (0-59)")
    gender: Optional[Gender] = Field(None, description="성별")
    timezone: str = Field("Asia/Seoul", description="타임존")

    school: Optional[str] = Field(None, description="학파 프리셋 (예: classic, johoo+byeongyak)")
    config: Optional[Dict[str, Any]] = Field(None, description="EngineConfig 부분 오버라이드")
    include_trace: Optional[bool] = Field(None, description="그래프 평가 trace 포함")
    include_facts: Optional[bool] = Field(None, description="RuleFacts 스냅샷 포함")

    def birth_dict(self) -> Dict[str, Any]:
        return {
            "birth_year": self.birth_year,
            "birth_month": self.birth_month,
            "birth_day": self.birth_day,
            "birth_hour": self.birth_hour,
            "birth_minute": self.birth_minute,
            "gender": self.gender.value if self.gender else None,
            "timezone": self.timezone,
        }

    class Config:
        json_schema_extra = {
            "example": {
                "birth_year": 1978,
                "birth_month": 5,
                "birth_day": 16,
                "birth_hour": 11,
                "birth_minute": 0,
                "gender": "male",
                "timezone": "Asia/Seoul",
                "school": "johoo",
                "config": {"strategies": {"yongshin": {"climate_urgency": {"threshold": 0.5}}}},
                "include_trace": False,
            }
        }


class EngineInfo(BaseModel):
    name: str
    version: str


class ConfigInfo(BaseModel):
    schema_version: Optional[str] = None
    school: Optional[str] = None
    digest: str = Field(..., description="정규화된 설정의 sha256")


class AnalyzeResponse(BaseModel):
    """분석 결과 번들"""
    api_version: str
    engine: EngineInfo
    config: ConfigInfo
    input: Dict[str, Any]
    summary: Dict[str, Any]
    report: Dict[str, Any] = Field(default_factory=dict)


# ============ 부가 조회 ============

class PresetInfo(BaseModel):
    id: str
    description: str


class PresetListResponse(BaseModel):
    presets: List[PresetInfo]


class GraphNodeInfo(BaseModel):
    id: str
    deps: List[str]
    formula: Optional[str] = None
    explain: Optional[str] = None


class GraphResponse(BaseModel):
    nodes: List[GraphNodeInfo]


# ============ 에러 응답 ============

class ErrorResponse(BaseModel):
    """에러 응답"""
    error_code: str
    message: str
    detail: Optional[str] = None
