"""
절기(節) 데이터 및 절입 시각 판정
- 월주 계산의 핵심: 어느 절기 구간인지 판단
- 입춘 기준 연주 보정
- 정밀 데이터가 없는 연도는 근사 날짜 사용 (경계 플래그 필수)
"""
import logging
from bisect import bisect_right
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

# 월주는 "절(節)" 12개만 사용. 인덱스 = 월지 인덱스 (0=인월, ..., 11=축월)
JEOL_NAMES = [
    "입춘", "경칩", "청명", "입하", "망종", "소서",
    "입추", "백로", "한로", "입동", "대설", "소한",
]

# (양력월, 양력일) 근사값. 소한은 다음 해 1월.
APPROX_JEOL_DATES: List[Tuple[int, int]] = [
    (2, 4), (3, 6), (4, 5), (5, 6), (6, 6), (7, 7),
    (8, 8), (9, 8), (10, 8), (11, 7), (12, 7), (1, 6),
]

# 정밀 절입 시각 (KST, 월/일/시/분). 한국천문연구원 데이터 기반.
# 키는 입춘이 속한 해. 마지막 항목(소한)은 다음 해 1월.
PRECISE_JEOL: Dict[int, List[Tuple[int, int, int, int]]] = {
    1978: [(2, 4, 7, 27), (3, 6, 1, 23), (4, 5, 5, 59), (5, 5, 23, 8),
           (6, 6, 3, 10), (7, 7, 13, 23), (8, 7, 22, 55), (9, 8, 1, 38),
           (10, 8, 16, 15), (11, 7, 20, 24), (12, 7, 13, 17), (1, 6, 0, 32)],
    1990: [(2, 4, 10, 15), (3, 6, 4, 11), (4, 5, 8, 43), (5, 6, 1, 44),
           (6, 6, 5, 47), (7, 7, 16, 8), (8, 8, 1, 55), (9, 8, 4, 54),
           (10, 8, 19, 36), (11, 7, 23, 52), (12, 7, 16, 47), (1, 6, 3, 56)],
    1996: [(2, 4, 15, 8), (3, 5, 9, 2), (4, 4, 13, 43), (5, 5, 6, 53),
           (6, 5, 10, 54), (7, 6, 21, 7), (8, 7, 6, 54), (9, 7, 9, 55),
           (10, 8, 0, 45), (11, 7, 4, 59), (12, 6, 21, 55), (1, 5, 9, 8)],
    2000: [(2, 4, 20, 14), (3, 5, 14, 7), (4, 4, 18, 32), (5, 5, 11, 31),
           (6, 5, 15, 29), (7, 7, 1, 41), (8, 7, 11, 29), (9, 7, 14, 27),
           (10, 8, 5, 12), (11, 7, 9, 24), (12, 7, 2, 14), (1, 5, 13, 21)],
    2024: [(2, 4, 17, 27), (3, 5, 11, 23), (4, 4, 16, 2), (5, 5, 9, 10),
           (6, 5, 13, 10), (7, 6, 23, 20), (8, 7, 9, 9), (9, 7, 12, 11),
           (10, 8, 3, 0), (11, 7, 7, 20), (12, 7, 0, 17), (1, 5, 11, 33)],
    2025: [(2, 3, 23, 10), (3, 5, 17, 7), (4, 4, 21, 48), (5, 5, 14, 57),
           (6, 5, 18, 56), (7, 7, 5, 5), (8, 7, 14, 51), (9, 7, 17, 52),
           (10, 8, 8, 41), (11, 7, 13, 4), (12, 7, 6, 5), (1, 5, 17, 23)],
    2026: [(2, 4, 4, 52), (3, 5, 22, 59), (4, 5, 3, 39), (5, 5, 20, 49),
           (6, 6, 0, 48), (7, 7, 10, 57), (8, 7, 20, 42), (9, 7, 23, 41),
           (10, 8, 14, 29), (11, 7, 18, 52), (12, 7, 11, 52), (1, 5, 23, 10)],
}

BOUNDARY_WINDOW = timedelta(hours=48)


@dataclass
class SolarTermResult:
    """절기 판정 결과"""
    month_index: int                 # 0=인(寅), 1=묘(卯), ..., 11=축(丑)
    adjusted_year: int               # 입춘 보정 연도
    is_boundary: bool                # 절입 ±48시간 이내 또는 근사 계산
    boundary_reason: Optional[str]   # near_ipchun | near_term_change | approx_calculation
    precise: bool


class SolarTermsEngine:
    """
    절기 엔진
    - 출생일시가 어느 절기 구간에 속하는지 판정
    - 월지 인덱스(0~11) + 입춘 보정 연도 반환
    """

    def jeol_instants(self, term_year: int) -> Tuple[List[datetime], bool]:
        """입춘~소한 12개 절입 시각 (정밀 데이터가 없으면 근사 날짜 00:00)"""
        rows = PRECISE_JEOL.get(term_year)
        if rows:
            return [
                datetime(term_year + (1 if i == 11 else 0), m, d, h, mi)
                for i, (m, d, h, mi) in enumerate(rows)
            ], True
        return [
            datetime(term_year + (1 if i == 11 else 0), m, d)
            for i, (m, d) in enumerate(APPROX_JEOL_DATES)
        ], False

    def get_solar_term_month_index(
        self,
        year: int,
        month: int,
        day: int,
        hour: int = 0,
        minute: int = 0
    ) -> SolarTermResult:
        birth_dt = datetime(year, month, day, hour, minute)

        term_year = year
        instants, precise = self.jeol_instants(term_year)
        if birth_dt < instants[0]:
            # 입춘 전 출생 → 전년도 절기 구간
            term_year = year - 1
            instants, precise = self.jeol_instants(term_year)

        month_idx = bisect_right(instants, birth_dt) - 1

        if not precise:
            logger.debug(f"[SolarTerms] {term_year}년 정밀 절입 데이터 없음 → 근사 날짜 사용 ({birth_dt})")
            return SolarTermResult(month_idx, term_year, True, "approx_calculation", False)

        # 다음 해 입춘까지 포함해서 경계 판정
        next_ipchun, _ = self.jeol_instants(term_year + 1)
        candidates = [(i, t) for i, t in enumerate(instants)] + [(0, next_ipchun[0])]

        boundary_reason = None
        for i, term_dt in candidates:
            if abs(birth_dt - term_dt) <= BOUNDARY_WINDOW:
                boundary_reason = "near_ipchun" if i == 0 else "near_term_change"
                logger.debug(f"[SolarTerms] 절입 경계 {boundary_reason}: birth={birth_dt} term={term_dt}")
                break

        return SolarTermResult(month_idx, term_year, boundary_reason is not None, boundary_reason, True)


# 싱글톤
solar_terms_engine = SolarTermsEngine()
