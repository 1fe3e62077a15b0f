"""Scoring engine: five weighted dimensions with deterministic aggregation.

Architecture
------------
Every startup/investor pair is scored on five independent dimensions:

- **Industry** (35): direct tag overlap, then overlap inside one of the
  canonical ``INDUSTRY_CATEGORIES``, then a generalist fallback.
- **Stage** (25): the startup stage is expanded through
  ``STAGE_PROGRESSION`` into the funding rounds it usually raises;
  neighbouring rounds earn partial credit.
- **Business model** (20): overlap with the compatible models in
  ``BUSINESS_MODEL_COMPAT``.
- **Check size** (15): the startup's raw target amount against the
  investor's range, which is expressed in thousands.
- **Geography** (5): global investors get full credit, any other stated
  focus a flat partial credit.

``total`` is the plain sum of the five sub-scores, so it always lies in
``[0, 100]``.  The scorer does no I/O and never raises on missing optional
fields: the affected dimension contributes 0 and no reason string.
"""
from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Weights
# ---------------------------------------------------------------------------

INDUSTRY_WEIGHT = 35
INDUSTRY_CATEGORY_SCORE = 25
INDUSTRY_GENERALIST_SCORE = 15
STAGE_WEIGHT = 25
STAGE_ADJACENT_SCORE = 15
BUSINESS_MODEL_WEIGHT = 20
CHECK_SIZE_WEIGHT = 15
CHECK_SIZE_PARTIAL_SCORE = 10
GEOGRAPHY_WEIGHT = 5
GEOGRAPHY_REGIONAL_SCORE = 3

# ---------------------------------------------------------------------------
# Static tables
# ---------------------------------------------------------------------------

# Canonical category -> related raw tags. Iteration order matters: the first
# category matched on both sides wins.
INDUSTRY_CATEGORIES: dict[str, tuple[str, ...]] = {
    "fintech": ("financial-services", "payments", "banking", "insurance"),
    "healthtech": ("healthcare", "medical-devices", "biotechnology", "pharmaceuticals"),
    "edtech": ("education", "e-learning", "training"),
    "ecommerce": ("retail", "marketplace", "consumer-goods"),
    "saas": ("software", "enterprise-software", "productivity"),
    "ai-ml": ("artificial-intelligence", "machine-learning", "data-analytics"),
    "mobility": ("transportation", "automotive", "logistics"),
    "proptech": ("real-estate", "construction", "property-management"),
    "foodtech": ("food-beverage", "agriculture", "restaurant-tech"),
    "cleantech": ("renewable-energy", "sustainability", "environment"),
}

# Startup product stage -> funding rounds an investor would write a check in.
STAGE_PROGRESSION: dict[str, tuple[str, ...]] = {
    "idea": ("pre-seed", "seed"),
    "prototype": ("pre-seed", "seed"),
    "mvp": ("seed", "series-a"),
    "early-stage": ("series-a", "series-b"),
    "growth": ("series-b", "series-c"),
    "expansion": ("series-c", "series-d", "growth", "late-stage"),
}

ADJACENT_STAGES: tuple[str, ...] = ("pre-seed", "seed", "series-a", "series-b")

BUSINESS_MODEL_COMPAT: dict[str, tuple[str, ...]] = {
    "b2b": ("b2b", "enterprise", "saas"),
    "b2c": ("b2c", "consumer", "marketplace"),
    "b2b2c": ("b2b2c", "platform"),
    "marketplace": ("marketplace", "platform", "b2c"),
    "saas": ("saas", "b2b", "enterprise"),
}

GENERALIST_TAGS = frozenset({"generalist", "sector-agnostic"})
GLOBAL_TAGS = frozenset({"global", "worldwide"})

_SEPARATORS_RE = re.compile(r"[\s_]+")


def normalize_tag(value: Any) -> str:
    """Canonical form used for every tag comparison: ``" Series A "`` -> ``"series-a"``."""
    return _SEPARATORS_RE.sub("-", str(value).strip().lower())


def _tag_set(values: Iterable[Any]) -> set[str]:
    return {normalize_tag(v) for v in values if v is not None and str(v).strip()}


def _as_tuple(value: Any) -> tuple[str, ...]:
    """Coerce a nullable list column (or a bare string) into a tuple of strings."""
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,) if value.strip() else ()
    return tuple(str(v) for v in value if v is not None)


def _as_amount(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        log.warning("Ignoring non-numeric amount %r", value)
        return None


def _read(row: Any, name: str) -> Any:
    if isinstance(row, Mapping):
        return row.get(name)
    return getattr(row, name, None)


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StartupProfile:
    """The fields of a startup the scorer reads."""
    id: Any
    industry: tuple[str, ...] = ()
    stage: str = ""
    business_model: str = ""
    target_amount: float | None = None

    @classmethod
    def from_row(cls, row: Any) -> StartupProfile:
        """Build from an ORM row or a plain mapping."""
        return cls(
            id=_read(row, "id"),
            industry=_as_tuple(_read(row, "industry")),
            stage=str(_read(row, "stage") or ""),
            business_model=str(_read(row, "business_model") or ""),
            target_amount=_as_amount(_read(row, "target_amount")),
        )


@dataclass(frozen=True)
class InvestorProfile:
    """The fields of an investor the scorer reads."""
    id: Any
    investment_industries: tuple[str, ...] = ()
    investment_stages: tuple[str, ...] = ()
    business_models: tuple[str, ...] = ()
    check_size_min: float | None = None
    check_size_max: float | None = None
    investment_geographies: tuple[str, ...] = ()

    @classmethod
    def from_row(cls, row: Any) -> InvestorProfile:
        """Build from an ORM row or a plain mapping."""
        return cls(
            id=_read(row, "id"),
            investment_industries=_as_tuple(_read(row, "investment_industries")),
            investment_stages=_as_tuple(_read(row, "investment_stages")),
            business_models=_as_tuple(_read(row, "business_models")),
            check_size_min=_as_amount(_read(row, "check_size_min")),
            check_size_max=_as_amount(_read(row, "check_size_max")),
            investment_geographies=_as_tuple(_read(row, "investment_geographies")),
        )


@dataclass
class ScoreBreakdown:
    industry: int = 0
    stage: int = 0
    business_model: int = 0
    check_size: int = 0
    geography: int = 0

    @property
    def total(self) -> int:
        return self.industry + self.stage + self.business_model + self.check_size + self.geography

    def to_dict(self) -> dict[str, int]:
        return {
            "industry": self.industry, "stage": self.stage,
            "businessModel": self.business_model, "checkSize": self.check_size,
            "geography": self.geography,
        }


@dataclass
class MatchScore:
    total: int
    breakdown: ScoreBreakdown


@dataclass
class MatchResult:
    """Result of scoring one startup against one investor."""
    startup_id: Any
    investor_id: Any
    score: MatchScore
    reasons: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.score.total

    def to_dict(self) -> dict[str, Any]:
        return {
            "startupId": self.startup_id,
            "investorId": self.investor_id,
            "score": {"total": self.score.total, "breakdown": self.score.breakdown.to_dict()},
            "reasons": list(self.reasons),
        }


# ---------------------------------------------------------------------------
# Dimension scoring
# ---------------------------------------------------------------------------


def score_industry(startup: StartupProfile, investor: InvestorProfile) -> tuple[int, str | None]:
    investor_tags = _tag_set(investor.investment_industries)
    if not investor_tags:
        return 0, None
    startup_tags = _tag_set(startup.industry)

    if startup_tags & investor_tags:
        return INDUSTRY_WEIGHT, "Perfect industry alignment"

    for related in INDUSTRY_CATEGORIES.values():
        if startup_tags.intersection(related) and investor_tags.intersection(related):
            return INDUSTRY_CATEGORY_SCORE, "Related industry focus"

    if investor_tags & GENERALIST_TAGS:
        return INDUSTRY_GENERALIST_SCORE, "Generalist investor"
    return 0, None


def score_stage(startup: StartupProfile, investor: InvestorProfile) -> tuple[int, str | None]:
    stage = normalize_tag(startup.stage) if startup.stage else ""
    investor_stages = _tag_set(investor.investment_stages)
    if not stage or not investor_stages:
        return 0, None

    acceptable = set(STAGE_PROGRESSION.get(stage, (stage,)))
    if acceptable & investor_stages:
        return STAGE_WEIGHT, f"Invests in {startup.stage} stage"

    if stage in ADJACENT_STAGES:
        pos = ADJACENT_STAGES.index(stage)
        for inv_stage in investor_stages:
            if inv_stage in ADJACENT_STAGES and abs(ADJACENT_STAGES.index(inv_stage) - pos) <= 1:
                return STAGE_ADJACENT_SCORE, "Adjacent stage match"
    return 0, None


def score_business_model(startup: StartupProfile, investor: InvestorProfile) -> tuple[int, str | None]:
    model = normalize_tag(startup.business_model) if startup.business_model else ""
    investor_models = _tag_set(investor.business_models)
    if not model or not investor_models:
        return 0, None
    compatible = set(BUSINESS_MODEL_COMPAT.get(model, (model,)))
    if compatible & investor_models:
        return BUSINESS_MODEL_WEIGHT, f"Matches {startup.business_model} business model"
    return 0, None


def score_check_size(startup: StartupProfile, investor: InvestorProfile) -> tuple[int, str | None]:
    # Zero is treated like a missing value on every side.
    if not startup.target_amount or not investor.check_size_min or not investor.check_size_max:
        return 0, None
    # target_amount is raw currency, the investor range is in thousands.
    target_k = startup.target_amount / 1000
    lo, hi = investor.check_size_min, investor.check_size_max
    if lo <= target_k <= hi:
        return CHECK_SIZE_WEIGHT, "Check size matches funding needs"
    if lo * 0.5 <= target_k <= hi * 1.5:
        return CHECK_SIZE_PARTIAL_SCORE, "Partial check size alignment"
    return 0, None


def score_geography(startup: StartupProfile, investor: InvestorProfile) -> tuple[int, str | None]:
    geographies = _tag_set(investor.investment_geographies)
    if not geographies:
        return 0, None
    if geographies & GLOBAL_TAGS:
        return GEOGRAPHY_WEIGHT, "Global investment scope"
    # Startups carry no location, so any stated regional focus earns the same credit.
    return GEOGRAPHY_REGIONAL_SCORE, "Regional investment focus"


_DIMENSIONS = (
    ("industry", score_industry),
    ("stage", score_stage),
    ("business_model", score_business_model),
    ("check_size", score_check_size),
    ("geography", score_geography),
)


# ---------------------------------------------------------------------------
# Score one pair
# ---------------------------------------------------------------------------


def calculate_match_score(startup: Any, investor: Any) -> MatchResult:
    """Score a startup against an investor.

    Args:
        startup: ``StartupProfile``, ``Startup`` row, or mapping with the same keys.
        investor: ``InvestorProfile``, ``Investor`` row, or mapping with the same keys.
    """
    if not isinstance(startup, StartupProfile):
        startup = StartupProfile.from_row(startup)
    if not isinstance(investor, InvestorProfile):
        investor = InvestorProfile.from_row(investor)

    breakdown = ScoreBreakdown()
    reasons: list[str] = []
    for name, fn in _DIMENSIONS:
        points, reason = fn(startup, investor)
        setattr(breakdown, name, points)
        if reason:
            reasons.append(reason)

    return MatchResult(
        startup_id=startup.id,
        investor_id=investor.id,
        score=MatchScore(total=breakdown.total, breakdown=breakdown),
        reasons=reasons,
    )


def rank_results(results: Iterable[MatchResult], min_score: int, limit: int) -> list[MatchResult]:
    """Drop results below ``min_score``, sort by total descending, keep the top ``limit``.

    The sort is stable, so candidates with equal totals keep their pool order.
    """
    kept = [r for r in results if r.total >= min_score]
    kept.sort(key=lambda r: r.total, reverse=True)
    return kept[:limit]
