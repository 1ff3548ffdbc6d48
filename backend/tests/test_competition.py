"""
특수격 competition share 테스트
"""
import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sajugraph.rules.competition import competition_shares, run_competition


class TestCompetitionShares:

    def test_reference_case(self):
        """신호 [.9, .3, .1], power 2, min_keep .2"""
        shares = competition_shares({"follow": 0.9, "transformations": 0.3, "one_element": 0.1}, 2.0, 0.2)
        assert shares["follow"] == pytest.approx(0.556, abs=1e-3)
        assert shares["transformations"] == pytest.approx(0.240, abs=1e-3)
        assert shares["one_element"] == pytest.approx(0.204, abs=1e-3)

    @pytest.mark.parametrize("signals,power,min_keep", [
        ({"a": 0.9, "b": 0.3, "c": 0.1}, 2.0, 0.2),
        ({"a": 1.0, "b": 0.0}, 3.0, 0.1),
        ({"a": 0.5, "b": 0.5, "c": 0.5}, 1.0, 0.0),
        ({"a": 0.7, "b": 0.2}, 0.5, 0.45),
    ])
    def test_sum_to_one_and_floor(self, signals, power, min_keep):
        shares = competition_shares(signals, power, min_keep)
        assert sum(shares.values()) == pytest.approx(1.0)
        floor = min(min_keep, 1.0 / len(signals))
        for m, s in shares.items():
            assert s >= floor - 1e-12, f"{m}: {s} < {floor}"

    def test_all_zero_signals_equal(self):
        shares = competition_shares({"a": 0.0, "b": 0.0, "c": 0.0}, 2.0, 0.2)
        for s in shares.values():
            assert s == pytest.approx(1 / 3)

    def test_min_keep_capped_at_uniform(self):
        """min_keep > 1/n 이면 균등"""
        shares = competition_shares({"a": 0.9, "b": 0.1, "c": 0.0}, 2.0, 0.5)
        for s in shares.values():
            assert s == pytest.approx(1 / 3)

    def test_higher_signal_higher_share(self):
        shares = competition_shares({"a": 0.8, "b": 0.4}, 2.0, 0.1)
        assert shares["a"] > shares["b"]

    def test_empty(self):
        assert competition_shares({}, 2.0, 0.2) == {}


class TestRunCompetition:

    def test_winner(self):
        outcome = run_competition({"follow": 0.2, "one_element": 0.7}, 2.0, 0.2)
        assert outcome.winner == "one_element"
        assert outcome.methods == ["follow", "one_element"]

    def test_tie_goes_to_first(self):
        outcome = run_competition({"transformations": 0.5, "follow": 0.5}, 2.0, 0.2)
        assert outcome.winner == "transformations"

    def test_to_dict(self):
        data = run_competition({"a": 0.5, "b": 0.1}, 2.0, 0.2).to_dict()
        assert set(data) == {"methods", "signals", "shares", "winner", "power", "min_keep"}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
