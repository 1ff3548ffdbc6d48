"""
특수격 경쟁(competition)

종격(follow) / 화기격(transformations) / 전왕(one_element)처럼 서로 배타적인 방법들의
활성 신호를 power 승으로 키운 뒤 합이 1인 share로 나눈다. 각 share는 min_keep 이상.
"""
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Mapping


@dataclass
class CompetitionOutcome:
    methods: List[str]
    signals: Dict[str, float]
    shares: Dict[str, float]
    winner: str
    power: float
    min_keep: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def competition_shares(signals: Mapping[str, float], power: float = 2.0, min_keep: float = 0.2) -> Dict[str, float]:
    """
    share_i = floor + (1 - n*floor) * s_i^p / Σ s^p

    floor = min(min_keep, 1/n) 이므로 합은 항상 1, 각 share >= floor.
    신호가 모두 0이면 균등 분배.
    """
    names = list(signals)
    n = len(names)
    if n == 0:
        return {}

    powered = {m: max(0.0, float(signals[m])) ** power for m in names}
    total = sum(powered.values())
    if total <= 0:
        raw = {m: 1.0 / n for m in names}
    else:
        raw = {m: powered[m] / total for m in names}

    floor = min(max(0.0, min_keep), 1.0 / n)
    spread = 1.0 - n * floor
    return {m: floor + spread * raw[m] for m in names}


def run_competition(
    signals: Mapping[str, float],
    power: float,
    min_keep: float,
) -> CompetitionOutcome:
    shares = competition_shares(signals, power, min_keep)
    names = list(signals)
    # 동점이면 먼저 나온 방법이 승자
    winner = max(names, key=lambda m: (shares[m], -names.index(m)))
    return CompetitionOutcome(
        methods=names,
        signals={m: float(signals[m]) for m in names},
        shares=shares,
        winner=winner,
        power=power,
        min_keep=min_keep,
    )
