"""
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
학파 프리셋 + EngineConfig 정규화
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
normalize_config(user):
  1) DEFAULT_CONFIG
  2) school 프리셋을 순서대로 deep merge ("a+b", "a,b" 합성)
  3) 사용자 설정 deep merge (dict는 재귀 병합, list는 교체)
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
"""
import copy
import logging
from typing import Any, Dict, List, Mapping, Optional

from sajugraph.rules.policy import ConfigError

logger = logging.getLogger(__name__)


DEFAULT_CONFIG: Dict[str, Any] = {
    "schema_version": "1",
    "calendar": {
        "year_boundary": "lichun",
        "month_boundary": "jieqi",
        "day_boundary": "midnight",
        "hour_boundary": "double_hour",
    },
    "toggles": {
        "pillars": True,
        "ten_gods": True,
        "hidden_stems": True,
        "element_distribution": True,
        "rules": True,
    },
    "weights": {
        "stem": 1.0,
        "hidden_stem": 1.0,
    },
    "strategies": {},
    "extensions": {},
}


PRESETS: Dict[str, Dict[str, Any]] = {
    "classic": {
        "description": "억부(抑扶) 중심: 오행 부족 보충 + 신강약 역할 선호",
        "overlay": {
            "strategies": {
                "strength": {"model": "base"},
                "yongshin": {"weights": {"balance": 1.0, "role": 1.0}},
            },
        },
    },
    "johoo": {
        "description": "조후(調候) 중심: 계절 한난조습 보정 + 조후위급 + 궁통보감 템플릿",
        "overlay": {
            "strategies": {
                "strength": {"model": "seasonal_roots"},
                "yongshin": {
                    "weights": {"balance": 0.5, "role": 0.8, "climate": 1.2, "johoo_template": 0.5},
                    "climate_urgency": {"enabled": True, "threshold": 0.6, "max_boost": 1.0, "reduce_others": 0.25},
                    "johoo_template": {"enabled": True},
                },
            },
        },
    },
    "byeongyak": {
        "description": "병약(病藥)/통관(通關) 중심: 과다 오행 제어 + 전투 중재",
        "overlay": {
            "strategies": {
                "yongshin": {"weights": {"balance": 0.6, "role": 1.0, "medicine": 0.8, "tongguan": 0.6}},
            },
        },
    },
    "ensemble": {
        "description": "전체 방법 혼합: method selector 신호 게이팅 + 특수격 competition",
        "overlay": {
            "strategies": {
                "strength": {"model": "seasonal_roots"},
                "patterns": {"follow": {"enabled": True}},
                "yongshin": {
                    "weights": {
                        "balance": 0.6,
                        "role": 1.0,
                        "climate": 0.8,
                        "medicine": 0.5,
                        "tongguan": 0.5,
                        "follow": 1.0,
                        "johoo_template": 0.4,
                        "transformations": 0.8,
                        "one_element": 0.8,
                    },
                    "johoo_template": {"enabled": True},
                    "method_selector": {
                        "enabled": True,
                        "competition": {"enabled": True, "power": 2.0, "min_keep": 0.2},
                    },
                },
            },
        },
    },
}


def deep_merge(base: Any, overlay: Any) -> Any:
    """dict는 재귀 병합, 그 외(list 포함)는 overlay가 교체. 입력은 변경하지 않음"""
    if isinstance(base, Mapping) and isinstance(overlay, Mapping):
        out = {k: copy.deepcopy(v) for k, v in base.items()}
        for k, v in overlay.items():
            out[k] = deep_merge(out[k], v) if k in out else copy.deepcopy(v)
        return out
    return copy.deepcopy(overlay)


def parse_preset_ids(ref: Any) -> List[str]:
    """'a+b' / 'a,b' / ['a', 'b'] / {'id': ...} → 중복 제거된 id 리스트"""
    if isinstance(ref, Mapping):
        ref = ref.get("id")
    items = ref if isinstance(ref, (list, tuple)) else [ref]
    out: List[str] = []
    for item in items:
        if not isinstance(item, str):
            continue
        for part in item.replace(",", "+").split("+"):
            part = part.strip()
            if part and part not in out:
                out.append(part)
    return out


def list_presets() -> List[Dict[str, str]]:
    return [{"id": pid, "description": p["description"]} for pid, p in PRESETS.items()]


def normalize_config(config: Optional[Mapping[str, Any]] = None, default_school: Optional[str] = None) -> Dict[str, Any]:
    """
    사용자 설정 → 완전한 EngineConfig

    Raises:
        ConfigError: 설정이 dict가 아니거나 알 수 없는 프리셋 id
    """
    if config is None:
        config = {}
    if not isinstance(config, Mapping):
        raise ConfigError(f"config must be an object, got {type(config).__name__}")

    school = config.get("school", default_school)
    preset_ids = parse_preset_ids(school)

    base: Dict[str, Any] = copy.deepcopy(DEFAULT_CONFIG)
    for pid in preset_ids:
        preset = PRESETS.get(pid)
        if preset is None:
            raise ConfigError(f"unknown school preset: {pid!r} (available: {', '.join(PRESETS)})")
        base = deep_merge(base, preset["overlay"])

    merged = deep_merge(base, config)
    merged["school"] = "+".join(preset_ids) if preset_ids else None
    logger.debug(f"[Presets] school={merged['school']}")
    return merged
