"""
SajuGraph 엔진 통합 테스트 - 출생 입력 → 그래프 평가 → 번들
"""
import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sajugraph.rules.policy import ConfigError
from sajugraph.services.calc_module import CalculationError
from sajugraph.services.engine import API_VERSION, ENGINE_NAME, create_engine, parse_birth
from sajugraph.services.ganji import ELEMENT_ORDER
from sajugraph.services.graph_factory import TOGGLE_NODES, build_graph, wanted_from_toggles
from sajugraph.services.presets import PRESETS

REQUEST = {
    "birth_year": 1978,
    "birth_month": 5,
    "birth_day": 16,
    "birth_hour": 11,
    "birth_minute": 0,
    "timezone": "Asia/Seoul",
}


class TestParseBirth:

    def test_full(self):
        birth = parse_birth(REQUEST)
        assert (birth.year, birth.month, birth.day, birth.hour, birth.minute) == (1978, 5, 16, 11, 0)

    def test_optional_hour(self):
        birth = parse_birth({"birth_year": 1990, "birth_month": 1, "birth_day": 2})
        assert birth.hour is None
        assert birth.minute == 0
        assert birth.timezone == "Asia/Seoul"

    def test_missing_field(self):
        with pytest.raises(CalculationError):
            parse_birth({"birth_year": 1990, "birth_month": 1})

    def test_invalid_field(self):
        with pytest.raises(CalculationError):
            parse_birth({"birth_year": "nineteen", "birth_month": 1, "birth_day": 1})
        with pytest.raises(CalculationError):
            parse_birth({"birth_year": True, "birth_month": 1, "birth_day": 1})


class TestGraph:

    def test_all_toggles_on(self):
        wanted = wanted_from_toggles({})
        for node_ids in TOGGLE_NODES.values():
            for node_id in node_ids:
                assert node_id in wanted

    def test_toggle_off(self):
        wanted = wanted_from_toggles({"rules": False, "hidden_stems": False})
        assert "rules.yongshin" not in wanted
        assert "hiddenStems.branches" not in wanted
        assert "pillars.day" in wanted

    def test_wanted_nodes_registered(self):
        graph = build_graph()
        for node_id in wanted_from_toggles({}):
            assert node_id in graph, f"{node_id} 미등록"


class TestEngine:

    def test_bundle_shape(self):
        bundle = create_engine({"school": "classic"}).analyze(REQUEST)
        assert bundle["api_version"] == API_VERSION
        assert bundle["engine"]["name"] == ENGINE_NAME
        assert bundle["config"]["school"] == "classic"
        assert len(bundle["config"]["digest"]) == 64
        assert bundle["input"]["birth_year"] == 1978

        summary = bundle["summary"]
        assert summary["pillars"]["day"]["ganji"] == "무인"
        assert summary["pillars"]["hour"]["ganji"] == "무오"
        assert summary["element_distribution"]["total"] == pytest.approx(8.0)
        assert summary["yongshin"]["best"] in ELEMENT_ORDER
        assert len(summary["yongshin"]["ranking"]) == 5
        assert summary["strength"]["model"] == "base"

    def test_strong_earth_chart_classic(self):
        """신강한 토 일간 → 억부 용신은 인성/비겁이 아님"""
        bundle = create_engine({"school": "classic"}).analyze(REQUEST)
        best = bundle["summary"]["yongshin"]["best"]
        assert best not in ("FIRE", "EARTH"), f"best={best}"

    def test_digest_stable(self):
        a = create_engine({"school": "johoo"})
        b = create_engine({"school": "johoo"})
        assert a.digest == b.digest
        assert a.digest != create_engine({"school": "classic"}).digest

    def test_deterministic(self):
        engine = create_engine({"school": "ensemble"})
        r1 = engine.analyze(REQUEST, include_trace=True, include_facts=True)
        r2 = engine.analyze(REQUEST, include_trace=True, include_facts=True)
        assert r1["summary"] == r2["summary"]
        assert [n["id"] for n in r1["report"]["trace"]["nodes"]] == [n["id"] for n in r2["report"]["trace"]["nodes"]]

    def test_trace_and_facts(self):
        bundle = create_engine().analyze(REQUEST, include_trace=True, include_facts=True)
        ids = [n["id"] for n in bundle["report"]["trace"]["nodes"]]
        assert len(ids) == len(set(ids))
        assert "rules.yongshin" in ids
        # 의존성이 먼저 기록됨
        assert ids.index("rules.facts") < ids.index("rules.yongshin")
        assert "strength" in bundle["report"]["facts"]

    def test_report_empty_by_default(self):
        bundle = create_engine().analyze(REQUEST, include_trace=False, include_facts=False)
        assert bundle["report"] == {}

    def test_no_birth_hour(self):
        request = {k: v for k, v in REQUEST.items() if k != "birth_hour"}
        summary = create_engine().analyze(request)["summary"]
        assert summary["pillars"]["hour"] is None
        assert summary["element_distribution"]["total"] == pytest.approx(6.0)
        assert summary["quality"]["has_birth_time"] is False

    def test_rules_toggle_off(self):
        bundle = create_engine({"toggles": {"rules": False}}).analyze(REQUEST, include_trace=True)
        summary = bundle["summary"]
        assert summary["yongshin"] is None
        assert summary["gyeokguk"] is None
        assert summary["strength"] is None
        ids = [n["id"] for n in bundle["report"]["trace"]["nodes"]]
        assert "rules.facts" not in ids

    @pytest.mark.parametrize("school", list(PRESETS) + ["johoo+byeongyak"])
    def test_every_preset(self, school):
        summary = create_engine({"school": school}).analyze(REQUEST)["summary"]
        assert summary["yongshin"]["best"] in ELEMENT_ORDER
        scores = [r["score"] for r in summary["yongshin"]["ranking"]]
        assert scores == sorted(scores, reverse=True)

    def test_gyeokguk(self):
        summary = create_engine({"school": "classic"}).analyze(REQUEST)["summary"]
        gyeokguk = summary["gyeokguk"]
        keys = [r["key"] for r in gyeokguk["ranking"]]
        assert all(k.startswith("gyeokguk.") for k in keys)
        assert gyeokguk["best"] == keys[0]

    def test_invalid_config_fails_fast(self):
        with pytest.raises(ConfigError):
            create_engine({"strategies": {"yongshin": {"weights": {"climate": -1}}}})

    def test_unknown_preset(self):
        with pytest.raises(ConfigError):
            create_engine({"school": "astrology"})

    def test_invalid_birth(self):
        with pytest.raises(CalculationError):
            create_engine().analyze({**REQUEST, "birth_month": 2, "birth_day": 30})

    def test_describe_graph(self):
        nodes = create_engine().describe_graph()
        ids = [n["id"] for n in nodes]
        assert "rules.yongshin" in ids
        yongshin = next(n for n in nodes if n["id"] == "rules.yongshin")
        assert yongshin["deps"] == ["rules.facts", "policy.rules"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
