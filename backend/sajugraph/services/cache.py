"""
정책 캐시 서비스
- 정규화된 EngineConfig → 컴파일된 불변 정책 (FactsPolicy / YongshinPolicy / 규칙 집합)
- 키: config digest (sha256, sort_keys JSON)
- 평가 결과는 캐싱하지 않음 (요청마다 새로 계산)
"""
import hashlib
import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from cachetools import LRUCache

from sajugraph.config import get_settings
from sajugraph.rules.dsl import RuleSet, parse_rule_set
from sajugraph.rules.policy import FactsPolicy, YongshinPolicy, build_facts_policy, build_yongshin_policy

logger = logging.getLogger(__name__)


def config_digest(config: Mapping[str, Any]) -> str:
    """정규화된 설정의 안정적인 digest"""
    key_str = json.dumps(config, sort_keys=True, ensure_ascii=False, separators=(",", ":"), default=str)
    return hashlib.sha256(key_str.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class CompiledPolicies:
    digest: str
    facts: FactsPolicy
    yongshin: YongshinPolicy
    gyeokguk_rule_set: Optional[RuleSet]


def compile_policies(config: Mapping[str, Any], digest: Optional[str] = None) -> CompiledPolicies:
    """
    설정 검증 + 컴파일

    Raises:
        ConfigError: strategies.* 검증 실패
        DslError: extensions.rulesets.* 형식 오류
    """
    yongshin = build_yongshin_policy(config)
    if yongshin.rule_set is not None:
        parse_rule_set(yongshin.rule_set)

    rulesets = (config.get("extensions") or {}).get("rulesets") or {}
    gyeokguk_raw = rulesets.get("gyeokguk") if isinstance(rulesets, Mapping) else None

    return CompiledPolicies(
        digest=digest or config_digest(config),
        facts=build_facts_policy(config),
        yongshin=yongshin,
        gyeokguk_rule_set=parse_rule_set(gyeokguk_raw) if gyeokguk_raw else None,
    )


class PolicyCache:
    """
    컴파일된 정책 LRU 캐시

    동일한 설정(digest)으로 반복되는 요청에서 pydantic 검증을 다시 하지 않는다.
    저장 값은 모두 불변이므로 요청 간 공유해도 안전하다.
    """

    def __init__(self, max_size: Optional[int] = None):
        if max_size is None:
            max_size = get_settings().policy_cache_max_size
        self.policies = LRUCache(maxsize=max_size)

        # 통계
        self._hits = 0
        self._misses = 0

    def get(self, config: Mapping[str, Any], digest: Optional[str] = None) -> CompiledPolicies:
        key = digest or config_digest(config)
        compiled = self.policies.get(key)
        if compiled is not None:
            self._hits += 1
            return compiled

        self._misses += 1
        compiled = compile_policies(config, key)
        self.policies[key] = compiled
        logger.debug(f"[PolicyCache] compiled {key[:12]}")
        return compiled

    def get_stats(self) -> dict:
        """캐시 통계 조회"""
        total = self._hits + self._misses
        hit_rate = (self._hits / total * 100) if total > 0 else 0

        return {
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": f"{hit_rate:.1f}%",
            "size": len(self.policies),
        }

    def clear(self):
        """캐시 초기화"""
        self.policies.clear()
        self._hits = 0
        self._misses = 0


# 싱글톤 인스턴스
policy_cache = PolicyCache()
