"""
조후 기후 벡터 모델 테스트
"""
import math

import pytest
from pydantic import ValidationError

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sajugraph.rules.climate import (
    DEFAULT_CLIMATE_MODEL,
    ClimateModel,
    ClimateVector,
    compute_climate_scores,
    merge_climate_model,
)
from sajugraph.services.ganji import ELEMENT_ORDER, Element


class TestClimateScores:
    """scores[e] = dot(effect[e], -env)"""

    @pytest.mark.parametrize("branch", range(12))
    def test_dot_product_law(self, branch):
        cs = compute_climate_scores(DEFAULT_CLIMATE_MODEL, branch)
        env = DEFAULT_CLIMATE_MODEL.env_by_month_branch[branch]
        assert cs.env == env
        assert cs.need == ClimateVector(-env.temp, -env.moist)
        for e in ELEMENT_ORDER:
            expected = DEFAULT_CLIMATE_MODEL.element_effect[e].dot(env.neg())
            assert cs.scores[e] == pytest.approx(expected), f"{branch} {e}: {cs.scores[e]} != {expected}"

    @pytest.mark.parametrize("branch", [11, 0, 1, 2, 3])  # 亥子丑寅卯
    def test_cold_month_prefers_fire(self, branch):
        """한랭한 달은 화(火) 점수 양수, 수(水)보다 높음"""
        cs = compute_climate_scores(DEFAULT_CLIMATE_MODEL, branch)
        assert cs.scores[Element.FIRE] > 0, f"branch {branch}: FIRE {cs.scores[Element.FIRE]}"
        assert cs.scores[Element.WATER] < cs.scores[Element.FIRE]

    def test_hot_month_prefers_water(self):
        cs = compute_climate_scores(DEFAULT_CLIMATE_MODEL, 6)  # 午
        assert cs.scores[Element.WATER] > 0
        assert cs.scores[Element.FIRE] < 0
        assert max(cs.scores, key=cs.scores.get) == Element.WATER

    def test_default_env_table(self):
        """월지별 기본 (temp, moist)"""
        expected = [
            (-0.7, 0.3), (-0.6, 0.2), (-0.4, 0.1), (-0.2, 0.2),
            (0.0, 0.2), (0.4, -0.1), (0.7, -0.2), (0.5, 0.1),
            (0.2, -0.3), (0.0, -0.5), (-0.1, -0.4), (-0.5, 0.2),
        ]
        actual = [tuple(v) for v in DEFAULT_CLIMATE_MODEL.env_by_month_branch]
        assert actual == expected, f"env table: {actual}"

    def test_dry_autumn_prefers_water(self):
        """戌월: 서늘하고 건조 → 수(水) 최우선, 화(火)는 음수"""
        cs = compute_climate_scores(DEFAULT_CLIMATE_MODEL, 10)
        assert cs.env == ClimateVector(-0.1, -0.4)
        assert cs.scores[Element.WATER] == pytest.approx(0.10)
        assert cs.scores[Element.FIRE] == pytest.approx(-0.06)
        assert max(cs.scores, key=cs.scores.get) == Element.WATER

    def test_deep_winter_values(self):
        cs = compute_climate_scores(DEFAULT_CLIMATE_MODEL, 0)  # 子
        assert cs.scores[Element.FIRE] == pytest.approx(0.51)
        assert cs.scores[Element.WOOD] == pytest.approx(0.11)
        assert cs.scores[Element.EARTH] == pytest.approx(0.13)
        assert cs.scores[Element.METAL] == pytest.approx(-0.05)
        assert cs.scores[Element.WATER] == pytest.approx(-0.54)

    def test_scores_not_clamped(self):
        cs = compute_climate_scores(DEFAULT_CLIMATE_MODEL, 0)
        assert min(cs.scores.values()) < 0

    def test_unit_need_scale(self):
        model = merge_climate_model(DEFAULT_CLIMATE_MODEL, {"need_scale": "unit"})
        for branch in range(12):
            cs = compute_climate_scores(model, branch)
            assert cs.need.norm() == pytest.approx(1.0)

    def test_unit_need_scale_zero_env(self):
        """환경이 0 벡터이면 unit 스케일에서도 need = 0"""
        model = merge_climate_model(DEFAULT_CLIMATE_MODEL, {
            "need_scale": "unit",
            "env_by_month_branch": {"辰": {"temp": 0.0, "moist": 0.0}},
        })
        cs = compute_climate_scores(model, 4)
        assert cs.need.norm() == 0.0
        assert all(v == 0 for v in cs.scores.values())

    def test_to_dict(self):
        data = compute_climate_scores(DEFAULT_CLIMATE_MODEL, 6).to_dict()
        assert data["env"] == {"temp": 0.7, "moist": -0.2}
        assert set(data["scores"]) == set(ELEMENT_ORDER)


class TestMergeClimateModel:
    """부분 오버라이드 병합"""

    def test_empty_override_returns_base(self):
        assert merge_climate_model(DEFAULT_CLIMATE_MODEL, {}) is DEFAULT_CLIMATE_MODEL
        assert merge_climate_model(DEFAULT_CLIMATE_MODEL, None) is DEFAULT_CLIMATE_MODEL

    def test_partial_component(self):
        """temp만 지정 → moist는 기본값 유지"""
        model = merge_climate_model(DEFAULT_CLIMATE_MODEL, {"env_by_month_branch": {"子": {"temp": -0.9}}})
        assert model.env_by_month_branch[0] == ClimateVector(-0.9, 0.3)
        assert model.env_by_month_branch[1] == DEFAULT_CLIMATE_MODEL.env_by_month_branch[1]

    def test_non_finite_keeps_whole_vector(self):
        model = merge_climate_model(DEFAULT_CLIMATE_MODEL, {
            "env_by_month_branch": {"子": {"temp": -0.9, "moist": math.nan}},
        })
        assert model.env_by_month_branch[0] == DEFAULT_CLIMATE_MODEL.env_by_month_branch[0]

    def test_non_numeric_keeps_whole_vector(self):
        model = merge_climate_model(DEFAULT_CLIMATE_MODEL, {
            "element_effect": {"FIRE": {"temp": "hot", "moist": 0.0}},
        })
        assert model.element_effect[Element.FIRE] == DEFAULT_CLIMATE_MODEL.element_effect[Element.FIRE]

    def test_unknown_keys_skipped(self):
        model = merge_climate_model(DEFAULT_CLIMATE_MODEL, {
            "env_by_month_branch": {"X": {"temp": 1.0}},
            "env_by_month_branch_index": {"12": {"temp": 1.0}, "abc": {"temp": 1.0}},
            "element_effect": {"PLASMA": {"temp": 1.0}},
            "need_scale": "cubic",
        })
        assert model.env_by_month_branch == DEFAULT_CLIMATE_MODEL.env_by_month_branch
        assert model.element_effect == DEFAULT_CLIMATE_MODEL.element_effect
        assert model.need_scale == "none"

    def test_index_override(self):
        model = merge_climate_model(DEFAULT_CLIMATE_MODEL, {
            "env_by_month_branch_index": {"11": {"temp": -0.8, "moist": 0.4}},
        })
        assert model.env_by_month_branch[11] == ClimateVector(-0.8, 0.4)

    def test_lowercase_element_key(self):
        model = merge_climate_model(DEFAULT_CLIMATE_MODEL, {"element_effect": {"fire": {"temp": 0.9}}})
        assert model.element_effect[Element.FIRE] == ClimateVector(0.9, -0.3)

    def test_default_not_mutated(self):
        before = DEFAULT_CLIMATE_MODEL.env_by_month_branch
        merge_climate_model(DEFAULT_CLIMATE_MODEL, {"env_by_month_branch": {"子": {"temp": 0.0}}})
        assert DEFAULT_CLIMATE_MODEL.env_by_month_branch == before


class TestClimateModelValidation:

    def test_env_requires_12_entries(self):
        with pytest.raises(ValidationError):
            ClimateModel(
                env_by_month_branch=DEFAULT_CLIMATE_MODEL.env_by_month_branch[:11],
                element_effect=DEFAULT_CLIMATE_MODEL.element_effect,
            )

    def test_effect_requires_5_elements(self):
        effect = dict(DEFAULT_CLIMATE_MODEL.element_effect)
        effect.pop(Element.WATER)
        with pytest.raises(ValidationError):
            ClimateModel(env_by_month_branch=DEFAULT_CLIMATE_MODEL.env_by_month_branch, element_effect=effect)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
