"""
설정 정규화 / 프리셋 / 정책 검증 / 정책 캐시 테스트
"""
import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sajugraph.rules.dsl import DslError
from sajugraph.rules.policy import ConfigError, build_facts_policy, build_yongshin_policy
from sajugraph.services.cache import PolicyCache, config_digest
from sajugraph.services.presets import (
    DEFAULT_CONFIG,
    PRESETS,
    deep_merge,
    list_presets,
    normalize_config,
    parse_preset_ids,
)


class TestPresets:

    def test_parse_preset_ids(self):
        assert parse_preset_ids("johoo+byeongyak") == ["johoo", "byeongyak"]
        assert parse_preset_ids("a, b+a") == ["a", "b"]
        assert parse_preset_ids(["classic", "johoo"]) == ["classic", "johoo"]
        assert parse_preset_ids({"id": "ensemble"}) == ["ensemble"]
        assert parse_preset_ids(None) == []

    def test_list_presets(self):
        ids = [p["id"] for p in list_presets()]
        assert ids == list(PRESETS)
        assert {"classic", "johoo", "byeongyak", "ensemble"} <= set(ids)

    def test_deep_merge_dicts_recursive_lists_replaced(self):
        base = {"a": {"x": 1, "y": [1, 2]}, "b": 1}
        out = deep_merge(base, {"a": {"y": [3]}, "c": 2})
        assert out == {"a": {"x": 1, "y": [3]}, "b": 1, "c": 2}
        assert base == {"a": {"x": 1, "y": [1, 2]}, "b": 1}


class TestNormalizeConfig:

    def test_defaults(self):
        config = normalize_config()
        assert config["schema_version"] == DEFAULT_CONFIG["schema_version"]
        assert config["toggles"]["rules"] is True
        assert config["school"] is None

    def test_default_school(self):
        config = normalize_config(None, "classic")
        assert config["school"] == "classic"

    def test_composition_order(self):
        """뒤 프리셋이 앞 프리셋을 덮어씀"""
        config = normalize_config({"school": "johoo+byeongyak"})
        weights = config["strategies"]["yongshin"]["weights"]
        assert weights["balance"] == 0.6
        assert weights["role"] == 1.0
        assert weights["climate"] == 1.2
        assert weights["medicine"] == 0.8
        assert config["school"] == "johoo+byeongyak"

    def test_user_overrides_preset(self):
        config = normalize_config({
            "school": "johoo",
            "strategies": {"yongshin": {"climate_urgency": {"threshold": 0.4}}},
        })
        urgency = config["strategies"]["yongshin"]["climate_urgency"]
        assert urgency["threshold"] == 0.4
        assert urgency["enabled"] is True

    def test_unknown_preset(self):
        with pytest.raises(ConfigError):
            normalize_config({"school": "nonexistent"})

    def test_non_dict_config(self):
        with pytest.raises(ConfigError):
            normalize_config(["not", "a", "dict"])

    def test_default_config_untouched(self):
        normalize_config({"school": "ensemble", "toggles": {"rules": False}})
        assert DEFAULT_CONFIG["toggles"]["rules"] is True
        assert DEFAULT_CONFIG["strategies"] == {}


class TestPolicyValidation:

    def test_negative_weight(self):
        with pytest.raises(ConfigError):
            build_yongshin_policy({"strategies": {"yongshin": {"weights": {"climate": -1}}}})

    def test_unknown_weight_name(self):
        with pytest.raises(ConfigError):
            build_yongshin_policy({"strategies": {"yongshin": {"weights": {"astrology": 1}}}})

    def test_threshold_out_of_range(self):
        with pytest.raises(ConfigError):
            build_yongshin_policy({"strategies": {"yongshin": {"climate_urgency": {"threshold": 1.5}}}})

    def test_partial_selector_rules_keep_defaults(self):
        policy = build_yongshin_policy({"strategies": {"yongshin": {"method_selector": {
            "enabled": True,
            "medicine": {"enabled": False},
            "tongguan": {"threshold": 0.4},
        }}}})
        sel = policy.method_selector
        assert sel.medicine.enabled is False
        assert sel.medicine.threshold == pytest.approx(0.18)
        assert sel.tongguan.threshold == pytest.approx(0.4)
        assert sel.follow.threshold == pytest.approx(0.55)
        assert sel.climate is None

    def test_competition_methods_deduplicated(self):
        policy = build_yongshin_policy({"strategies": {"yongshin": {"method_selector": {
            "competition": {"methods": ["one_element", "follow", "one_element"]},
        }}}})
        assert policy.method_selector.competition.methods == ["one_element", "follow"]

    def test_johoo_template_read_by_facts_policy(self):
        """strategies.yongshin.johoo_template → FactsPolicy 전용"""
        config = {"strategies": {"yongshin": {"johoo_template": {"enabled": True, "stem_preference_boost": 0.4}}}}
        yongshin = build_yongshin_policy(config)
        assert not hasattr(yongshin, "johoo_template")
        facts = build_facts_policy(config)
        assert facts.johoo_template.enabled is True
        assert facts.johoo_template.stem_preference_boost == pytest.approx(0.4)

    def test_invalid_johoo_template_rejected(self):
        with pytest.raises(ConfigError):
            build_facts_policy({"strategies": {"yongshin": {"johoo_template": {"enabled": "sometimes"}}}})

    def test_climate_model_override(self):
        policy = build_yongshin_policy({"strategies": {"yongshin": {"climate": {
            "model": {"env_by_month_branch": {"子": {"temp": -1.0}}},
        }}}})
        assert policy.climate_model.env_by_month_branch[0].temp == -1.0

    def test_every_preset_builds(self):
        for pid in PRESETS:
            config = normalize_config({"school": pid})
            build_yongshin_policy(config)
            build_facts_policy(config)

    def test_strong_threshold_defaults_to_weak_mirror(self):
        policy = build_yongshin_policy({"strategies": {"yongshin": {"follow": {"weak_threshold": -0.7}}}})
        assert policy.follow.effective_strong_threshold == pytest.approx(0.7)


class TestPolicyCache:

    def test_digest_stable(self):
        a = normalize_config({"school": "johoo"})
        b = normalize_config({"school": "johoo"})
        assert config_digest(a) == config_digest(b)

    def test_digest_key_order_independent(self):
        assert config_digest({"a": 1, "b": {"c": 2, "d": 3}}) == config_digest({"b": {"d": 3, "c": 2}, "a": 1})

    def test_digest_differs(self):
        assert config_digest(normalize_config({"school": "johoo"})) != config_digest(normalize_config({"school": "classic"}))

    def test_hits_and_misses(self):
        cache = PolicyCache(max_size=4)
        config = normalize_config({"school": "classic"})
        first = cache.get(config)
        second = cache.get(config)
        assert first is second
        stats = cache.get_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["size"] == 1

        cache.clear()
        assert cache.get_stats()["size"] == 0

    def test_invalid_config_not_cached(self):
        cache = PolicyCache(max_size=4)
        bad = {"strategies": {"yongshin": {"weights": {"role": -2}}}}
        with pytest.raises(ConfigError):
            cache.get(bad)
        assert cache.get_stats()["size"] == 0

    def test_invalid_rule_set(self):
        cache = PolicyCache(max_size=4)
        with pytest.raises(DslError):
            cache.get({"extensions": {"rulesets": {"gyeokguk": {"rules": [{"score": {}}]}}}})


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
