"""Tests for the pure scoring function, dimension by dimension."""
from __future__ import annotations

import itertools

import pytest

from dealmatch.scorer import (
    InvestorProfile,
    MatchResult,
    StartupProfile,
    calculate_match_score,
    normalize_tag,
    rank_results,
    score_business_model,
    score_check_size,
    score_geography,
    score_industry,
    score_stage,
)


def _startup(**kw) -> StartupProfile:
    kw.setdefault("id", 1)
    return StartupProfile(**kw)


def _investor(**kw) -> InvestorProfile:
    kw.setdefault("id", 2)
    return InvestorProfile(**kw)


# =========================================================================
# normalize_tag
# =========================================================================

class TestNormalizeTag:
    @pytest.mark.parametrize("raw,expected", [
        ("Seed", "seed"),
        ("Series A", "series-a"),
        ("  pre_seed ", "pre-seed"),
        ("B2B", "b2b"),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_tag(raw) == expected


# =========================================================================
# Industry
# =========================================================================

class TestIndustry:
    def test_direct_match(self):
        pts, reason = score_industry(
            _startup(industry=("fintech", "payments")),
            _investor(investment_industries=("payments",)),
        )
        assert (pts, reason) == (35, "Perfect industry alignment")

    def test_direct_match_ignores_case(self):
        pts, _ = score_industry(
            _startup(industry=("Technology",)), _investor(investment_industries=("technology",)),
        )
        assert pts == 35

    def test_category_match(self):
        pts, reason = score_industry(
            _startup(industry=("payments",)), _investor(investment_industries=("banking",)),
        )
        assert (pts, reason) == (25, "Related industry focus")

    def test_direct_beats_category_and_generalist(self):
        pts, _ = score_industry(
            _startup(industry=("payments",)),
            _investor(investment_industries=("payments", "banking", "generalist")),
        )
        assert pts == 35

    def test_category_beats_generalist(self):
        pts, _ = score_industry(
            _startup(industry=("healthcare",)),
            _investor(investment_industries=("biotechnology", "generalist")),
        )
        assert pts == 25

    def test_generalist(self):
        pts, reason = score_industry(
            _startup(industry=("Blockchain",)), _investor(investment_industries=("generalist",)),
        )
        assert (pts, reason) == (15, "Generalist investor")

    def test_sector_agnostic(self):
        pts, _ = score_industry(
            _startup(industry=("blockchain",)), _investor(investment_industries=("sector-agnostic",)),
        )
        assert pts == 15

    def test_generalist_with_empty_startup_industry(self):
        pts, _ = score_industry(_startup(industry=()), _investor(investment_industries=("generalist",)))
        assert pts == 15

    def test_no_match(self):
        assert score_industry(
            _startup(industry=("blockchain",)), _investor(investment_industries=("healthcare",)),
        ) == (0, None)

    def test_investor_without_industries(self):
        assert score_industry(_startup(industry=("payments",)), _investor()) == (0, None)

    def test_category_needs_both_sides_in_same_category(self):
        # payments is fintech, healthcare is healthtech
        assert score_industry(
            _startup(industry=("payments",)), _investor(investment_industries=("healthcare",)),
        ) == (0, None)


# =========================================================================
# Stage
# =========================================================================

class TestStage:
    @pytest.mark.parametrize("stage,investor_stage", [
        ("idea", "pre-seed"),
        ("prototype", "seed"),
        ("mvp", "series-a"),
        ("early-stage", "series-b"),
        ("growth", "series-c"),
        ("expansion", "late-stage"),
    ])
    def test_progression_match(self, stage, investor_stage):
        pts, reason = score_stage(_startup(stage=stage), _investor(investment_stages=(investor_stage,)))
        assert pts == 25
        assert reason == f"Invests in {stage} stage"

    def test_progression_match_across_casing(self):
        pts, _ = score_stage(_startup(stage="mvp"), _investor(investment_stages=("Series A",)))
        assert pts == 25

    def test_unmapped_stage_uses_raw_value(self):
        pts, reason = score_stage(_startup(stage="seed"), _investor(investment_stages=("Seed",)))
        assert pts == 25
        assert reason == "Invests in seed stage"

    def test_adjacent_stage(self):
        pts, reason = score_stage(_startup(stage="seed"), _investor(investment_stages=("series-a",)))
        assert (pts, reason) == (15, "Adjacent stage match")

    def test_two_steps_away_is_no_match(self):
        assert score_stage(
            _startup(stage="pre-seed"), _investor(investment_stages=("series-a",)),
        ) == (0, None)

    def test_positions_outside_reference_never_adjacent(self):
        # Neither value is in the adjacency list, so no partial credit.
        assert score_stage(
            _startup(stage="bridge"), _investor(investment_stages=("growth",)),
        ) == (0, None)

    def test_product_stage_has_no_adjacency(self):
        assert score_stage(
            _startup(stage="idea"), _investor(investment_stages=("series-c",)),
        ) == (0, None)

    def test_missing_investor_stages(self):
        assert score_stage(_startup(stage="mvp"), _investor()) == (0, None)


# =========================================================================
# Business model
# =========================================================================

class TestBusinessModel:
    @pytest.mark.parametrize("model,investor_model", [
        ("b2b", "enterprise"),
        ("b2c", "consumer"),
        ("b2b2c", "platform"),
        ("marketplace", "b2c"),
        ("saas", "b2b"),
    ])
    def test_compatible(self, model, investor_model):
        pts, reason = score_business_model(
            _startup(business_model=model), _investor(business_models=(investor_model,)),
        )
        assert pts == 20
        assert reason == f"Matches {model} business model"

    def test_other_only_matches_itself(self):
        assert score_business_model(
            _startup(business_model="other"), _investor(business_models=("other",)),
        )[0] == 20
        assert score_business_model(
            _startup(business_model="other"), _investor(business_models=("b2b",)),
        ) == (0, None)

    def test_incompatible(self):
        assert score_business_model(
            _startup(business_model="b2b"), _investor(business_models=("b2c",)),
        ) == (0, None)


# =========================================================================
# Check size
# =========================================================================

class TestCheckSize:
    def _score(self, target, lo, hi):
        return score_check_size(
            _startup(target_amount=target), _investor(check_size_min=lo, check_size_max=hi),
        )

    def test_in_range(self):
        assert self._score(500_000, 100, 1000) == (15, "Check size matches funding needs")

    def test_range_bounds_inclusive(self):
        assert self._score(100_000, 100, 1000)[0] == 15
        assert self._score(1_000_000, 100, 1000)[0] == 15

    def test_partial_below(self):
        assert self._score(60_000, 100, 1000) == (10, "Partial check size alignment")

    def test_partial_above(self):
        assert self._score(1_500_000, 100, 1000)[0] == 10

    def test_out_of_range(self):
        assert self._score(40_000, 100, 1000) == (0, None)
        assert self._score(1_600_000, 100, 1000) == (0, None)

    def test_missing_target(self):
        assert self._score(None, 100, 1000) == (0, None)

    def test_missing_bound(self):
        assert self._score(500_000, None, 1000) == (0, None)
        assert self._score(500_000, 100, None) == (0, None)

    def test_zero_treated_as_missing(self):
        assert self._score(500_000, 0, 1000) == (0, None)
        assert self._score(0, 100, 1000) == (0, None)


# =========================================================================
# Geography
# =========================================================================

class TestGeography:
    def test_global(self):
        assert score_geography(_startup(), _investor(investment_geographies=("Global",))) == (
            5, "Global investment scope",
        )

    def test_worldwide(self):
        assert score_geography(_startup(), _investor(investment_geographies=("worldwide", "europe")))[0] == 5

    def test_regional(self):
        assert score_geography(_startup(), _investor(investment_geographies=("dach",))) == (
            3, "Regional investment focus",
        )

    def test_empty(self):
        assert score_geography(_startup(), _investor(investment_geographies=())) == (0, None)


# =========================================================================
# calculate_match_score
# =========================================================================

class TestCalculateMatchScore:
    def test_full_alignment_scenario(self):
        startup = {
            "id": "s1", "industry": ["Technology"], "stage": "seed",
            "business_model": "saas", "target_amount": 500000,
        }
        investor = {
            "id": "i1", "investment_industries": ["Technology"], "investment_stages": ["Seed"],
            "business_models": ["saas"], "check_size_min": 100, "check_size_max": 1000,
            "investment_geographies": ["global"],
        }
        result = calculate_match_score(startup, investor)
        assert result.startup_id == "s1"
        assert result.investor_id == "i1"
        assert result.total == 100
        assert result.to_dict()["score"]["breakdown"] == {
            "industry": 35, "stage": 25, "businessModel": 20, "checkSize": 15, "geography": 5,
        }
        assert len(result.reasons) == 5

    def test_missing_target_amount_adds_no_reason(self):
        result = calculate_match_score(
            {"id": 1, "industry": ["payments"], "stage": "mvp", "business_model": "saas", "target_amount": None},
            {"id": 2, "investment_industries": ["payments"], "check_size_min": 100, "check_size_max": 1000},
        )
        assert result.score.breakdown.check_size == 0
        assert not any("check size" in r.lower() for r in result.reasons)

    def test_null_columns_never_raise(self):
        result = calculate_match_score(
            {"id": 1, "industry": None, "stage": None, "business_model": None},
            {"id": 2, "investment_industries": None, "investment_stages": None,
             "business_models": None, "investment_geographies": None},
        )
        assert result.total == 0
        assert result.reasons == []

    def test_bare_string_columns_are_wrapped(self):
        result = calculate_match_score(
            {"id": 1, "industry": "payments", "stage": "mvp", "business_model": "saas"},
            {"id": 2, "investment_industries": "payments", "investment_geographies": "global"},
        )
        assert result.score.breakdown.industry == 35
        assert result.score.breakdown.geography == 5

    def test_orm_rows(self, make_startup, make_investor):
        result = calculate_match_score(make_startup(), make_investor())
        assert result.total == 35 + 25 + 20 + 15 + 5

    def test_deterministic(self):
        s = _startup(industry=("payments",), stage="mvp", business_model="b2b", target_amount=250_000)
        i = _investor(investment_industries=("banking",), investment_stages=("seed",),
                      business_models=("enterprise",), check_size_min=300, check_size_max=800,
                      investment_geographies=("uk",))
        first = calculate_match_score(s, i)
        for _ in range(5):
            again = calculate_match_score(s, i)
            assert again.to_dict() == first.to_dict()

    def test_bounds_over_grid(self):
        industries = [(), ("payments",), ("blockchain",)]
        inv_industries = [(), ("payments",), ("banking",), ("generalist",)]
        stages = ["idea", "mvp", "seed", "expansion"]
        inv_stages = [(), ("seed",), ("series-a",), ("growth",)]
        geos = [(), ("global",), ("france",)]
        for ind, inv_ind, stage, inv_stage, geo in itertools.product(
            industries, inv_industries, stages, inv_stages, geos,
        ):
            r = calculate_match_score(
                _startup(industry=ind, stage=stage, business_model="b2b", target_amount=200_000),
                _investor(investment_industries=inv_ind, investment_stages=inv_stage,
                          business_models=("b2b",), check_size_min=100, check_size_max=300,
                          investment_geographies=geo),
            )
            b = r.score.breakdown
            assert 0 <= b.industry <= 35
            assert 0 <= b.stage <= 25
            assert 0 <= b.business_model <= 20
            assert 0 <= b.check_size <= 15
            assert 0 <= b.geography <= 5
            assert r.total == b.industry + b.stage + b.business_model + b.check_size + b.geography
            assert 0 <= r.total <= 100


# =========================================================================
# rank_results
# =========================================================================

class TestRankResults:
    def _result(self, investor_id, total):
        r = calculate_match_score(_startup(), _investor(id=investor_id))
        r.score.total = total
        return r

    def test_threshold_is_inclusive(self):
        ranked = rank_results([self._result(1, 29), self._result(2, 30)], min_score=30, limit=20)
        assert [r.investor_id for r in ranked] == [2]

    def test_sorted_descending_and_truncated(self):
        results = [self._result(i, 30 + i) for i in range(10)]
        ranked = rank_results(results, min_score=30, limit=3)
        assert [r.total for r in ranked] == [39, 38, 37]

    def test_ties_keep_pool_order(self):
        ranked = rank_results([self._result(1, 50), self._result(2, 50)], min_score=30, limit=5)
        assert [r.investor_id for r in ranked] == [1, 2]

    def test_returns_match_results(self):
        assert all(isinstance(r, MatchResult) for r in rank_results([self._result(1, 80)], 30, 1))
