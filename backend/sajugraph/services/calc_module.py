"""
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
1️⃣ CALC 모듈 - 사주 8글자 계산
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
절기 엔진(solar_terms)으로 월지/입춘 보정 연도 판정
년/월/일/시주는 ganji_calc 내부 로직
시주는 출생 시간이 있을 경우에만 계산
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
"""
import logging
from dataclasses import dataclass, asdict
from datetime import date
from typing import Any, Dict, List, Optional

from sajugraph.services.ganji import (
    GAN_TO_ELEMENT, JI_TO_ELEMENT,
    ganji_calc, get_ganji_hanja,
)
from sajugraph.services.solar_terms import solar_terms_engine

logger = logging.getLogger(__name__)


class CalculationError(Exception):
    """출생 정보로 기둥을 계산할 수 없을 때"""


@dataclass
class BirthInput:
    year: int
    month: int
    day: int
    hour: Optional[int] = None
    minute: int = 0
    timezone: str = "Asia/Seoul"


@dataclass
class PillarData:
    """단일 기둥 데이터"""
    gan: str                    # 천간 (갑~계)
    ji: str                     # 지지 (자~해)
    ganji: str                  # 간지 조합
    hanja: str                  # 한자 간지 (예: 戊午)
    gan_element: str            # 천간 오행 (목화토금수)
    ji_element: str             # 지지 오행
    gan_index: int              # 천간 인덱스 (0-9)
    ji_index: int               # 지지 인덱스 (0-11)

    @classmethod
    def from_indices(cls, gan: str, ji: str, gan_idx: int, ji_idx: int) -> "PillarData":
        return cls(
            gan=gan, ji=ji, ganji=f"{gan}{ji}",
            hanja=get_ganji_hanja(gan_idx, ji_idx),
            gan_element=GAN_TO_ELEMENT[gan],
            ji_element=JI_TO_ELEMENT[ji],
            gan_index=gan_idx, ji_index=ji_idx,
        )


@dataclass
class QualityInfo:
    """계산 품질 정보"""
    has_birth_time: bool
    solar_term_boundary: bool
    boundary_reason: Optional[str]
    precise_solar_terms: bool
    timezone: str = "Asia/Seoul"


@dataclass
class SajuPillars:
    """사주 8글자 (4기둥)"""
    year: PillarData
    month: PillarData
    day: PillarData
    hour: Optional[PillarData]
    quality: QualityInfo

    def present(self) -> List[PillarData]:
        """시주 미입력이면 3기둥"""
        return [p for p in (self.year, self.month, self.day, self.hour) if p is not None]

    @property
    def stems(self) -> List[int]:
        return [p.gan_index for p in self.present()]

    @property
    def branches(self) -> List[int]:
        return [p.ji_index for p in self.present()]

    @property
    def positions(self) -> List[str]:
        names = ["year", "month", "day", "hour"]
        return [n for n, p in zip(names, (self.year, self.month, self.day, self.hour)) if p is not None]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "year": asdict(self.year),
            "month": asdict(self.month),
            "day": asdict(self.day),
            "hour": asdict(self.hour) if self.hour else None,
            "quality": asdict(self.quality),
        }


class CalcModule:
    """
    사주 8글자 계산 모듈
    - 연주: 입춘 보정 연도
    - 월주: 절입 기준 월지 + 연두법
    - 일주: 2000-01-01 무오일 기준
    - 시주: 일간 기준 자시 천간 (23시는 당일 자시)
    """

    def calculate_pillars(self, birth: BirthInput) -> SajuPillars:
        logger.info(f"[CalcModule] 사주 계산: {birth.year}-{birth.month:02d}-{birth.day:02d}")

        try:
            date(birth.year, birth.month, birth.day)
        except ValueError as e:
            raise CalculationError(f"invalid birth date {birth.year}-{birth.month}-{birth.day}: {e}") from e
        if birth.hour is not None and not 0 <= birth.hour <= 23:
            raise CalculationError(f"invalid birth hour: {birth.hour}")
        if not 0 <= birth.minute <= 59:
            raise CalculationError(f"invalid birth minute: {birth.minute}")

        term = solar_terms_engine.get_solar_term_month_index(
            birth.year, birth.month, birth.day, birth.hour or 0, birth.minute
        )

        year_pillar = PillarData.from_indices(*ganji_calc.calc_year_ganji(term.adjusted_year))
        month_pillar = PillarData.from_indices(
            *ganji_calc.calc_month_ganji(year_pillar.gan_index, term.month_index)
        )
        day_pillar = PillarData.from_indices(*ganji_calc.calc_day_ganji(birth.year, birth.month, birth.day))

        hour_pillar = None
        if birth.hour is not None:
            hour_pillar = PillarData.from_indices(*ganji_calc.calc_hour_ganji(day_pillar.gan_index, birth.hour))

        quality = QualityInfo(
            has_birth_time=birth.hour is not None,
            solar_term_boundary=term.is_boundary,
            boundary_reason=term.boundary_reason,
            precise_solar_terms=term.precise,
            timezone=birth.timezone,
        )

        result = SajuPillars(year=year_pillar, month=month_pillar, day=day_pillar, hour=hour_pillar, quality=quality)
        logger.info(
            f"[CalcModule] 완료: {year_pillar.ganji} {month_pillar.ganji} {day_pillar.ganji} "
            f"{hour_pillar.ganji if hour_pillar else '-'}"
        )
        return result


calc_module = CalcModule()
