"""
60갑자 / 오행 도메인 모듈
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
- 천간(10) × 지지(12) = 60갑자
- 오행(Element) 상생/상극, 일간 기준 역할(Role)
- 십신(ten gods), 지장간(hidden stems), 계절 그룹
- 연두법(월간) / 일간 기준 시간 천간 계산
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
"""
from datetime import date
from enum import Enum
from typing import Dict, List, NamedTuple, Tuple

# 천간 (10개)
CHEONGAN = ["갑", "을", "병", "정", "무", "기", "경", "신", "임", "계"]
CHEONGAN_HANJA = ["甲", "乙", "丙", "丁", "戊", "己", "庚", "辛", "壬", "癸"]

# 지지 (12개)
JIJI = ["자", "축", "인", "묘", "진", "사", "오", "미", "신", "유", "술", "해"]
JIJI_HANJA = ["子", "丑", "寅", "卯", "辰", "巳", "午", "未", "申", "酉", "戌", "亥"]


class Element(str, Enum):
    WOOD = "WOOD"
    FIRE = "FIRE"
    EARTH = "EARTH"
    METAL = "METAL"
    WATER = "WATER"


class Role(str, Enum):
    """일간 기준 오행 역할"""
    COMPANION = "COMPANION"   # 비겁
    RESOURCE = "RESOURCE"     # 인성
    OUTPUT = "OUTPUT"         # 식상
    WEALTH = "WEALTH"         # 재성
    OFFICER = "OFFICER"       # 관성


class TenGod(str, Enum):
    BI_GYEON = "BI_GYEON"
    GEOB_JAE = "GEOB_JAE"
    SIK_SHIN = "SIK_SHIN"
    SANG_GWAN = "SANG_GWAN"
    PYEON_JAE = "PYEON_JAE"
    JEONG_JAE = "JEONG_JAE"
    PYEON_GWAN = "PYEON_GWAN"
    JEONG_GWAN = "JEONG_GWAN"
    PYEON_IN = "PYEON_IN"
    JEONG_IN = "JEONG_IN"


class SeasonGroup(str, Enum):
    SPRING = "SPRING"
    SUMMER = "SUMMER"
    AUTUMN = "AUTUMN"
    WINTER = "WINTER"


# tie-break 등 결정적 순서에 쓰이는 고정 순서
ELEMENT_ORDER: List[Element] = [
    Element.WOOD, Element.FIRE, Element.EARTH, Element.METAL, Element.WATER
]

ELEMENT_KO = {
    Element.WOOD: "목", Element.FIRE: "화", Element.EARTH: "토",
    Element.METAL: "금", Element.WATER: "수",
}

TEN_GOD_KO = {
    TenGod.BI_GYEON: "비견", TenGod.GEOB_JAE: "겁재",
    TenGod.SIK_SHIN: "식신", TenGod.SANG_GWAN: "상관",
    TenGod.PYEON_JAE: "편재", TenGod.JEONG_JAE: "정재",
    TenGod.PYEON_GWAN: "편관", TenGod.JEONG_GWAN: "정관",
    TenGod.PYEON_IN: "편인", TenGod.JEONG_IN: "정인",
}

# 천간 인덱스 → 오행 (갑을=목, 병정=화, ...)
STEM_ELEMENTS = [ELEMENT_ORDER[i // 2] for i in range(10)]

# 지지 인덱스 → 오행
BRANCH_ELEMENTS = [
    Element.WATER, Element.EARTH, Element.WOOD, Element.WOOD,
    Element.EARTH, Element.FIRE, Element.FIRE, Element.EARTH,
    Element.METAL, Element.METAL, Element.EARTH, Element.WATER,
]

# 천간-오행 매핑 (한글 표기)
GAN_TO_ELEMENT = {gan: ELEMENT_KO[STEM_ELEMENTS[i]] for i, gan in enumerate(CHEONGAN)}

# 지지-오행 매핑 (한글 표기)
JI_TO_ELEMENT = {ji: ELEMENT_KO[BRANCH_ELEMENTS[i]] for i, ji in enumerate(JIJI)}


def stem_element(stem_idx: int) -> Element:
    return STEM_ELEMENTS[stem_idx % 10]


def branch_element(branch_idx: int) -> Element:
    return BRANCH_ELEMENTS[branch_idx % 12]


def stem_is_yang(stem_idx: int) -> bool:
    return stem_idx % 2 == 0


def generates(a: Element, b: Element) -> bool:
    """상생: 목→화→토→금→수→목"""
    i = ELEMENT_ORDER.index(a)
    return ELEMENT_ORDER[(i + 1) % 5] == b


def controls(a: Element, b: Element) -> bool:
    """상극: 목→토→수→화→금→목"""
    i = ELEMENT_ORDER.index(a)
    return ELEMENT_ORDER[(i + 2) % 5] == b


def role_of(candidate: Element, day_master: Element) -> Role:
    """일간 오행 대비 후보 오행의 역할"""
    if candidate == day_master:
        return Role.COMPANION
    if generates(candidate, day_master):
        return Role.RESOURCE
    if generates(day_master, candidate):
        return Role.OUTPUT
    if controls(day_master, candidate):
        return Role.WEALTH
    return Role.OFFICER


def role_map(day_master: Element) -> Dict[Element, Role]:
    return {e: role_of(e, day_master) for e in ELEMENT_ORDER}


def ten_god_of(day_stem_idx: int, other_stem_idx: int) -> TenGod:
    """
    십신 판정

    같은 음양이면 편(偏) 계열, 다르면 정(正) 계열.
    """
    dm = stem_element(day_stem_idx)
    other = stem_element(other_stem_idx)
    same_polarity = stem_is_yang(day_stem_idx) == stem_is_yang(other_stem_idx)
    role = role_of(other, dm)

    if role == Role.COMPANION:
        return TenGod.BI_GYEON if same_polarity else TenGod.GEOB_JAE
    if role == Role.OUTPUT:
        return TenGod.SIK_SHIN if same_polarity else TenGod.SANG_GWAN
    if role == Role.WEALTH:
        return TenGod.PYEON_JAE if same_polarity else TenGod.JEONG_JAE
    if role == Role.OFFICER:
        return TenGod.PYEON_GWAN if same_polarity else TenGod.JEONG_GWAN
    return TenGod.PYEON_IN if same_polarity else TenGod.JEONG_IN


# ===== 지장간 =====

class HiddenStem(NamedTuple):
    stem: int       # 천간 인덱스
    days: int       # 사령 일수
    role: str       # YEOGI | JUNGGI | JEONGGI

    @property
    def weight(self) -> float:
        return self.days / 30


def _hs(*entries: Tuple[str, int]) -> List[HiddenStem]:
    roles = ["YEOGI", "JUNGGI", "JEONGGI"] if len(entries) == 3 else ["YEOGI", "JEONGGI"]
    return [
        HiddenStem(CHEONGAN_HANJA.index(hanja), days, role)
        for (hanja, days), role in zip(entries, roles)
    ]


# 연해자평 사령 일수 기준 (마지막 항목이 정기)
HIDDEN_STEMS: List[List[HiddenStem]] = [
    _hs(("壬", 10), ("癸", 20)),                # 子
    _hs(("癸", 9), ("辛", 3), ("己", 18)),      # 丑
    _hs(("戊", 7), ("丙", 7), ("甲", 16)),      # 寅
    _hs(("甲", 10), ("乙", 20)),                # 卯
    _hs(("乙", 9), ("癸", 3), ("戊", 18)),      # 辰
    _hs(("戊", 7), ("庚", 7), ("丙", 16)),      # 巳
    _hs(("丙", 10), ("己", 9), ("丁", 11)),     # 午
    _hs(("丁", 9), ("乙", 3), ("己", 18)),      # 未
    _hs(("戊", 7), ("壬", 7), ("庚", 16)),      # 申
    _hs(("庚", 10), ("辛", 20)),                # 酉
    _hs(("辛", 9), ("丁", 3), ("戊", 18)),      # 戌
    _hs(("戊", 7), ("甲", 7), ("壬", 16)),      # 亥
]


def hidden_stems_of(branch_idx: int) -> List[HiddenStem]:
    return HIDDEN_STEMS[branch_idx % 12]


def main_hidden_stem(branch_idx: int) -> HiddenStem:
    for h in hidden_stems_of(branch_idx):
        if h.role == "JEONGGI":
            return h
    return hidden_stems_of(branch_idx)[-1]


def season_group_of(branch_idx: int) -> SeasonGroup:
    """寅卯辰=봄, 巳午未=여름, 申酉戌=가을, 亥子丑=겨울"""
    b = branch_idx % 12
    if b in (2, 3, 4):
        return SeasonGroup.SPRING
    if b in (5, 6, 7):
        return SeasonGroup.SUMMER
    if b in (8, 9, 10):
        return SeasonGroup.AUTUMN
    return SeasonGroup.WINTER


class GanjiCalculator:
    """60갑자 계산기"""

    # ===== 연주 계산 =====
    @staticmethod
    def calc_year_ganji(adjusted_year: int) -> Tuple[str, str, int, int]:
        """
        연주 계산 (입춘 보정된 연도 기준)

        Returns:
            (천간, 지지, 천간인덱스, 지지인덱스)
        """
        # 1984년 = 갑자년 기준
        gan_idx = (adjusted_year - 4) % 10
        ji_idx = (adjusted_year - 4) % 12

        return CHEONGAN[gan_idx], JIJI[ji_idx], gan_idx, ji_idx

    # ===== 월주 계산 =====
    @staticmethod
    def calc_month_ganji(
        year_gan_idx: int,
        month_ji_idx: int
    ) -> Tuple[str, str, int, int]:
        """
        월주 계산 (연두법)

        Args:
            year_gan_idx: 연간 인덱스 (0=갑, 1=을, ...)
            month_ji_idx: 월지 인덱스 (0=인, 1=묘, ..., 11=축)

        연두법: 갑기년 병인월, 을경년 무인월, 병신년 경인월, 정임년 임인월, 무계년 갑인월
        """
        start_gan_idx = (2 + (year_gan_idx % 5) * 2) % 10

        month_gan_idx = (start_gan_idx + month_ji_idx) % 10
        actual_ji_idx = (2 + month_ji_idx) % 12  # 인(寅)=2부터 시작

        return CHEONGAN[month_gan_idx], JIJI[actual_ji_idx], month_gan_idx, actual_ji_idx

    # ===== 일주 계산 =====
    @staticmethod
    def calc_day_ganji(year: int, month: int, day: int) -> Tuple[str, str, int, int]:
        """
        일주 계산

        기준일: 2000년 1월 1일 = 무오일 (60갑자 인덱스 54)
        """
        base_date = date(2000, 1, 1)
        days_diff = (date(year, month, day) - base_date).days

        day_gan_idx = (4 + days_diff) % 10
        day_ji_idx = (6 + days_diff) % 12

        return CHEONGAN[day_gan_idx], JIJI[day_ji_idx], day_gan_idx, day_ji_idx

    # ===== 시주 계산 =====
    @staticmethod
    def calc_hour_ganji(day_gan_idx: int, hour: int) -> Tuple[str, str, int, int]:
        """
        시주 계산

        - 子시: 23:00~00:59, 丑시: 01:00~02:59, ... 亥시: 21:00~22:59
        - 시간 천간: 일간 기준 자시 천간(갑기일 갑자시, 을경일 병자시, ...) + 지지 index
        """
        hour_ji_idx = GanjiCalculator.get_hour_ji_index(hour)

        start_gan_idx = (day_gan_idx % 5) * 2
        hour_gan_idx = (start_gan_idx + hour_ji_idx) % 10

        return CHEONGAN[hour_gan_idx], JIJI[hour_ji_idx], hour_gan_idx, hour_ji_idx

    @staticmethod
    def get_hour_ji_index(hour: int) -> int:
        """시간 → 지지 인덱스"""
        if hour == 23:
            return 0
        return (hour + 1) // 2


def get_ganji_hanja(gan_idx: int, ji_idx: int) -> str:
    """간지 한자 문자열"""
    return f"{CHEONGAN_HANJA[gan_idx]}{JIJI_HANJA[ji_idx]}"


# 싱글톤
ganji_calc = GanjiCalculator()
