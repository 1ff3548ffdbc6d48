"""
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
2️⃣ DERIVE 모듈 - 원국 1차 파생
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
pillars → 천간 십신, 지장간, 지장간 십신, 십신 점수, 오행 분포
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
"""
import logging
from typing import Any, Dict, List, Mapping, Optional

from sajugraph.services.calc_module import SajuPillars
from sajugraph.services.ganji import (
    CHEONGAN_HANJA, ELEMENT_ORDER, Element, TenGod,
    hidden_stems_of, stem_element, ten_god_of,
)

logger = logging.getLogger(__name__)


def normalize_vector(v: Mapping[Element, float]) -> Dict[str, Any]:
    total = sum(v.get(e, 0.0) for e in ELEMENT_ORDER)
    if total <= 0:
        return {"normalized": {e: 0.0 for e in ELEMENT_ORDER}, "total": 0.0}
    return {"normalized": {e: v.get(e, 0.0) / total for e in ELEMENT_ORDER}, "total": total}


class DeriveModule:
    """원국 파생 계산 (모두 순수 함수)"""

    def ten_gods_of_stems(self, pillars: SajuPillars) -> Dict[str, Optional[TenGod]]:
        """위치별 천간 십신. 일간 자리는 None"""
        dm = pillars.day.gan_index
        out: Dict[str, Optional[TenGod]] = {}
        for pos, p in zip(pillars.positions, pillars.present()):
            out[pos] = None if pos == "day" else ten_god_of(dm, p.gan_index)
        return out

    def hidden_stems(self, pillars: SajuPillars) -> Dict[str, List[Dict[str, Any]]]:
        out: Dict[str, List[Dict[str, Any]]] = {}
        for pos, p in zip(pillars.positions, pillars.present()):
            out[pos] = [
                {
                    "stem": h.stem,
                    "hanja": CHEONGAN_HANJA[h.stem],
                    "element": stem_element(h.stem),
                    "role": h.role,
                    "weight": h.weight,
                }
                for h in hidden_stems_of(p.ji_index)
            ]
        return out

    def ten_gods_of_hidden(self, hidden: Mapping[str, List[Dict[str, Any]]], day_stem: int) -> Dict[str, List[Dict[str, Any]]]:
        return {
            pos: [
                {"hanja": h["hanja"], "ten_god": ten_god_of(day_stem, h["stem"]), "weight": h["weight"], "role": h["role"]}
                for h in items
            ]
            for pos, items in hidden.items()
        }

    def score_pillars(
        self,
        pillars: SajuPillars,
        stem_weight: float = 1.0,
        hidden_stem_weight: float = 1.0,
    ) -> Dict[TenGod, float]:
        """
        십신 점수

        - 천간: stem_weight (일간 자신은 비견으로 계산)
        - 지장간: hidden_stem_weight × 사령 비중
        """
        dm = pillars.day.gan_index
        scores = {tg: 0.0 for tg in TenGod}
        for p in pillars.present():
            scores[ten_god_of(dm, p.gan_index)] += stem_weight
            for h in hidden_stems_of(p.ji_index):
                scores[ten_god_of(dm, h.stem)] += hidden_stem_weight * h.weight
        return scores

    def element_distribution(self, pillars: SajuPillars) -> Dict[str, Any]:
        """천간 1점 + 지장간 사령 비중"""
        raw = {e: 0.0 for e in ELEMENT_ORDER}
        for p in pillars.present():
            raw[stem_element(p.gan_index)] += 1.0
            for h in hidden_stems_of(p.ji_index):
                raw[stem_element(h.stem)] += h.weight
        norm = normalize_vector(raw)
        logger.debug(f"[DeriveModule] 오행 분포 total={norm['total']:.2f}")
        return {"raw": raw, "normalized": norm["normalized"], "total": norm["total"]}


derive_module = DeriveModule()
