"""Tests for suitability scoring."""

from datetime import date

import pytest

from fundlink.models import ClientProfile, FundRecord
from fundlink.stats import FieldStats
from fundlink.suitability import SuitabilityScorer, score_fund, suit_label


@pytest.fixture
def scorer(clock):
    return SuitabilityScorer(clock=clock)


def strong_fund(**overrides):
    values = dict(
        id=1, name="Strong DST", sector="Multifamily", prop_type="Multifamily",
        ltv=40.0, min_invest=100000.0, y1_coc=6.0, occupancy=97.0,
        hold_period=7.0, exemption="506(c)",
    )
    values.update(overrides)
    return FundRecord(**values)


def full_profile(**overrides):
    values = dict(
        name="Jane Doe", exchange_amount=500000.0, risk_tolerance="moderate",
        accredited_status="accredited", hold_period=7.0,
        prop_type_prefs=["Multifamily"],
    )
    values.update(overrides)
    return ClientProfile(**values)


class TestScoreBasics:
    def test_no_profile_returns_none(self, scorer):
        assert scorer.score(strong_fund(), ClientProfile()) is None
        assert scorer.score(strong_fund(), None) is None
        assert scorer.score(strong_fund(), {"risk": "moderate"}) is None

    def test_name_only_profile_is_neutral(self, scorer):
        result = scorer.score(FundRecord(id=1, name="Bare"), ClientProfile(name="Jane"))
        assert result.score == 50
        assert result.flags == []
        assert all(c.neutral for c in result.components.values())

    def test_perfect_fit_scores_100(self, scorer):
        result = scorer.score(strong_fund(), full_profile())
        assert result.score == 100
        assert result.label.label == "Strong Match"
        assert result.flags == []
        assert len(result.reasons) == 6

    def test_score_is_bounded(self, scorer):
        fund = strong_fund(ltv=90.0, min_invest=1_000_000.0, y1_coc=1.0,
                           occupancy=50.0, hold_period=20.0, sector="Retail",
                           prop_type="Retail", offering_close=date(2024, 1, 1))
        result = scorer.score(fund, full_profile(hold_period=3.0))
        assert 0 <= result.score <= 100
        assert result.label.label == "Poor Match"

    def test_accepts_legacy_profile_dict(self, scorer):
        legacy = {"clientName": "Legacy Client", "exchangeEquity": "$300,000",
                  "risk": "Conservative", "horizon": 7, "propTypes": "Multifamily"}
        result = scorer.score(strong_fund(), legacy)
        assert result is not None
        assert result.components["capacity"].points == 20

    def test_convenience_wrapper(self, clock):
        result = score_fund(strong_fund(), full_profile(), clock=clock)
        assert result.score == 100


class TestCapacity:
    def test_three_positions_full_credit(self, scorer):
        profile = ClientProfile(name="Jane", exchange_amount=300000)
        fund = FundRecord(id=1, name="DST", min_invest=100000)
        result = scorer.score(fund, profile)
        assert result.components["capacity"].points == 20
        assert result.score == 60

    def test_more_than_three_positions(self, scorer):
        profile = ClientProfile(name="Jane", exchange_amount=350000)
        fund = FundRecord(id=1, name="DST", min_invest=100000)
        assert scorer.score(fund, profile).components["capacity"].points == 20

    def test_minimum_above_three_hundred_thousand_exchange(self, scorer):
        profile = ClientProfile(name="Jane", exchange_amount=300000)
        fund = FundRecord(id=1, name="DST", min_invest=350000)
        result = scorer.score(fund, profile)
        assert result.components["capacity"].points == 0
        assert any(flag.startswith("Minimum investment ($350K)") for flag in result.flags)

    def test_two_positions(self, scorer):
        profile = ClientProfile(name="Jane", exchange_amount=200000)
        fund = FundRecord(id=1, name="DST", min_invest=100000)
        assert scorer.score(fund, profile).components["capacity"].points == 15

    def test_minimum_above_exchange_flags(self, scorer):
        profile = ClientProfile(name="Jane", exchange_amount=50000)
        fund = FundRecord(id=1, name="DST", min_invest=100000)
        result = scorer.score(fund, profile)
        assert result.components["capacity"].points == 0
        assert "Minimum investment ($100K) exceeds the exchange amount ($50K)" in result.flags


class TestStructure:
    def test_non_accredited_blocked_from_reg_d(self, scorer):
        result = scorer.score(strong_fund(), full_profile(accredited_status="non-accredited"))
        assert result.components["structure"].points == 0
        assert "Offering is limited to accredited investors" in result.flags

    def test_conservative_low_leverage(self, scorer):
        result = scorer.score(strong_fund(ltv=45.0), full_profile(risk_tolerance="conservative"))
        assert result.components["structure"].points == 20

    def test_partial_leverage_credit(self, scorer):
        result = scorer.score(strong_fund(ltv=55.0), full_profile(risk_tolerance="conservative"))
        assert result.components["structure"].points == pytest.approx(12)

    def test_high_leverage_flags(self, scorer):
        result = scorer.score(strong_fund(ltv=85.0), full_profile(risk_tolerance="aggressive"))
        assert result.components["structure"].points == pytest.approx(2)
        assert any("LTV" in flag for flag in result.flags)


class TestYield:
    def test_above_peer_average(self, scorer):
        peers = {"y1_coc": FieldStats(avg=5.0, min=4.0, max=6.0, count=3)}
        result = scorer.score(strong_fund(y1_coc=5.5), full_profile(), peers)
        assert result.components["yield"].points == 20
        assert any("peer average" in reason for reason in result.reasons)

    def test_peer_stats_as_dict(self, scorer):
        peers = {"y1_coc": {"avg": 5.0, "min": 4.0, "max": 6.0, "count": 3}}
        result = scorer.score(strong_fund(y1_coc=5.0), full_profile(), peers)
        assert result.components["yield"].points == 16

    def test_trails_benchmark_without_peers(self, scorer):
        result = scorer.score(strong_fund(y1_coc=3.0), full_profile())
        assert result.components["yield"].points == pytest.approx(4)
        assert any("trails the benchmark" in flag for flag in result.flags)


class TestOtherComponents:
    def test_low_occupancy_flags(self, scorer):
        result = scorer.score(strong_fund(occupancy=80.0), full_profile())
        assert result.components["occupancy"].points == pytest.approx(2.25)
        assert "Occupancy of 80% is below 85%" in result.flags

    def test_hold_far_past_horizon(self, scorer):
        result = scorer.score(strong_fund(hold_period=10.0), full_profile(hold_period=5.0))
        assert result.components["hold_period"].points == 0
        assert any("past the client's horizon" in flag for flag in result.flags)

    def test_hold_shorter_than_horizon(self, scorer):
        result = scorer.score(strong_fund(hold_period=5.0), full_profile(hold_period=10.0))
        assert result.components["hold_period"].points == pytest.approx(10.5)

    def test_property_type_mismatch(self, scorer):
        fund = strong_fund(sector="Retail", prop_type="Retail")
        result = scorer.score(fund, full_profile(prop_type_prefs=["Industrial"]))
        assert result.components["property_type"].points == pytest.approx(1)
        assert "Retail is outside the client's property preferences" in result.flags

    def test_property_type_match_ignores_case(self, scorer):
        result = scorer.score(strong_fund(), full_profile(prop_type_prefs=["multi-family"]))
        assert result.components["property_type"].points == 10

    def test_closed_offering_flagged(self, scorer):
        result = scorer.score(strong_fund(offering_close=date(2024, 5, 1)), full_profile())
        assert "Offering has closed" in result.flags


class TestWeights:
    def test_default_weights_sum_to_100(self):
        assert sum(SuitabilityScorer.WEIGHTS.values()) == 100

    def test_rejects_bad_total(self):
        weights = dict(SuitabilityScorer.WEIGHTS, structure=10)
        with pytest.raises(ValueError, match="sum to 100"):
            SuitabilityScorer(weights=weights)

    def test_rejects_missing_component(self):
        weights = dict(SuitabilityScorer.WEIGHTS)
        weights.pop("yield")
        with pytest.raises(ValueError):
            SuitabilityScorer(weights=weights)

    def test_custom_weights(self, clock):
        weights = {"structure": 0, "capacity": 100, "yield": 0,
                   "occupancy": 0, "hold_period": 0, "property_type": 0}
        scorer = SuitabilityScorer(weights=weights, clock=clock)
        profile = ClientProfile(name="Jane", exchange_amount=50000)
        assert scorer.score(FundRecord(id=1, name="DST", min_invest=100000), profile).score == 0


class TestSuitLabel:
    @pytest.mark.parametrize("score,label,color", [
        (100, "Strong Match", "green"),
        (75, "Strong Match", "green"),
        (74, "Good Match", "blue"),
        (55, "Good Match", "blue"),
        (54, "Fair Match", "amber"),
        (40, "Fair Match", "amber"),
        (39, "Poor Match", "red"),
        (0, "Poor Match", "red"),
    ])
    def test_buckets(self, score, label, color):
        result = suit_label(score)
        assert (result.label, result.color) == (label, color)

    def test_none(self):
        assert suit_label(None) is None

    def test_result_to_dict(self, scorer):
        d = scorer.score(strong_fund(), full_profile()).to_dict()
        assert d["score"] == 100
        assert d["label"] == "Strong Match"
        assert d["components"]["capacity"]["max_points"] == 20
