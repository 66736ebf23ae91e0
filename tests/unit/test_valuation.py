"""Tests for the value estimator: stated amounts, baselines, multipliers."""

import pytest

from leadscout.core.config import ValuationConfig
from leadscout.pipeline.valuation import ValueEstimator, parse_dollar_amount


@pytest.fixture
def estimator() -> ValueEstimator:
    return ValueEstimator()


class TestParseDollarAmount:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("$12,500", 12500.0),
            ("$ 900", 900.0),
            ("$12.5k", 12500.0),
            ("$3K", 3000.0),
            ("paying $1,500.00 total", 1500.0),
            ("$450/day", 450.0),
        ],
    )
    def test_parses(self, text: str, expected: float) -> None:
        assert parse_dollar_amount(text) == expected

    @pytest.mark.parametrize("text", ["", "call for quote", "negotiable", "500"])
    def test_no_amount(self, text: str) -> None:
        assert parse_dollar_amount(text) is None


class TestStatedAmount:
    def test_used_directly_above_floor(self, estimator: ValueEstimator) -> None:
        assert estimator.estimate("Roof replacement", "$12,500") == 12500.0

    def test_multipliers_never_touch_stated_amount(self, estimator: ValueEstimator) -> None:
        assert estimator.estimate("URGENT large roof job", "$9,000") == 9000.0

    def test_amount_at_floor_falls_back(self, estimator: ValueEstimator) -> None:
        # $500 is not above the $500 floor
        assert estimator.estimate("drywall patch", "$500") == 4000.0

    def test_amount_below_floor_falls_back(self, estimator: ValueEstimator) -> None:
        assert estimator.estimate("drywall patch", "$300") == 4000.0


class TestBaselinePath:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("Roof leak repair", 12000.0),
            ("Kitchen remodel", 15000.0),
            ("Bathroom tile job", 8000.0),
            ("Drywall finishing", 4000.0),
            ("Fix fence gate", 5000.0),
        ],
    )
    def test_category_baseline(self, estimator: ValueEstimator, text: str, expected: float) -> None:
        assert estimator.estimate(text) == expected

    def test_first_keyword_wins(self, estimator: ValueEstimator) -> None:
        # roof precedes kitchen in the baseline order
        assert estimator.estimate("Kitchen and roof work") == 12000.0

    def test_large_scope(self, estimator: ValueEstimator) -> None:
        assert estimator.estimate("Big roof tear-off") == 18000.0

    def test_small_scope(self, estimator: ValueEstimator) -> None:
        assert estimator.estimate("Minor drywall repair") == 2400.0

    def test_multipliers_compose(self, estimator: ValueEstimator) -> None:
        # 8000 * 0.6 * 1.2
        assert estimator.estimate("small bathroom emergency") == 5760.0

    def test_compensation_text_contributes_keywords(self, estimator: ValueEstimator) -> None:
        assert estimator.estimate("Help needed", "asap") == 6000.0

    def test_result_is_rounded(self) -> None:
        est = ValueEstimator(ValuationConfig(default_baseline=1000.0, small_multiplier=0.333))
        assert est.estimate("small job") == 333.0

    def test_custom_baselines(self) -> None:
        est = ValueEstimator(ValuationConfig(baselines=[("deck", 7000.0)]))
        assert est.estimate("New deck build") == 7000.0
        assert est.estimate("Roof") == 5000.0
