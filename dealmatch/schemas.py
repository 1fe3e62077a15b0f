"""Pydantic request/response schemas for the DealMatch API."""
from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

StartupStage = Literal["idea", "prototype", "mvp", "early-stage", "growth", "expansion"]
BusinessModel = Literal["b2b", "b2c", "b2b2c", "marketplace", "saas", "other"]
StartupStatus = Literal["draft", "pending_approval", "published", "suspended"]
InvestorStatus = Literal["active", "inactive", "suspended"]
MatchStatus = Literal["pending", "interested", "not-interested", "meeting-scheduled", "deal-closed"]
Initiator = Literal["system", "startup", "investor"]
UserType = Literal["startup", "investor"]


def _clean_tags(values: list[str] | None) -> list[str] | None:
    if values is None:
        return None
    return [v.strip() for v in values if v and v.strip()]


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------


class StartupCreate(BaseModel):
    user_id: str = Field(min_length=1)
    company_name: str = Field(min_length=1)
    description: str = ""
    industry: list[str] = []
    stage: StartupStage
    business_model: BusinessModel
    target_amount: float | None = Field(None, ge=0, description="Raw currency units")
    status: StartupStatus = "draft"

    clean_tags = field_validator("industry")(_clean_tags)


class StartupUpdate(BaseModel):
    company_name: str | None = None
    description: str | None = None
    industry: list[str] | None = None
    stage: StartupStage | None = None
    business_model: BusinessModel | None = None
    target_amount: float | None = Field(None, ge=0)
    status: StartupStatus | None = None

    clean_tags = field_validator("industry")(_clean_tags)


class StartupOut(BaseModel):
    id: int
    user_id: str
    company_name: str
    description: str
    industry: list[str]
    stage: str
    business_model: str
    target_amount: float | None = None
    status: str
    created_at: str | None = None


class _InvestorFields(BaseModel):
    firm_name: str | None = None
    bio: str | None = None
    investment_industries: list[str] | None = None
    investment_stages: list[str] | None = None
    business_models: list[str] | None = None
    investment_geographies: list[str] | None = None
    check_size_min: float | None = Field(None, ge=0, description="Thousands of currency units")
    check_size_max: float | None = Field(None, ge=0, description="Thousands of currency units")

    clean_tags = field_validator(
        "investment_industries", "investment_stages", "business_models", "investment_geographies",
    )(_clean_tags)

    @model_validator(mode="after")
    def check_range(self):
        lo, hi = self.check_size_min, self.check_size_max
        if lo is not None and hi is not None and lo > hi:
            raise ValueError("check_size_min must not exceed check_size_max")
        return self


class InvestorCreate(_InvestorFields):
    user_id: str = Field(min_length=1)
    status: InvestorStatus = "active"


class InvestorUpdate(_InvestorFields):
    status: InvestorStatus | None = None


class InvestorOut(BaseModel):
    id: int
    user_id: str
    firm_name: str
    bio: str
    investment_industries: list[str]
    investment_stages: list[str]
    business_models: list[str]
    investment_geographies: list[str]
    check_size_min: float | None = None
    check_size_max: float | None = None
    status: str
    created_at: str | None = None


# ---------------------------------------------------------------------------
# Matches
# ---------------------------------------------------------------------------


class MatchOut(BaseModel):
    id: int
    startup_id: int
    investor_id: int
    match_score: int
    status: str
    initiated_by: str
    match_reasons: list[str] = []
    notes: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


class GenerateRequest(BaseModel):
    user_id: str = Field(min_length=1)
    user_type: UserType | None = None


class GenerateResponse(BaseModel):
    success: bool
    totalGenerated: int
    matches: list[MatchOut]
    message: str


class MatchCreate(BaseModel):
    startup_id: int
    investor_id: int
    match_score: int = Field(ge=0, le=100)
    initiated_by: Initiator
    match_reasons: list[str] = []


class StatusUpdate(BaseModel):
    user_id: str = Field(min_length=1)
    status: str
    notes: str | None = None


class StatusUpdateResponse(BaseModel):
    success: bool
    match: MatchOut


class BreakdownOut(BaseModel):
    industry: int
    stage: int
    businessModel: int
    checkSize: int
    geography: int


class ScoreOut(BaseModel):
    total: int
    breakdown: BreakdownOut


class MatchResultOut(BaseModel):
    startupId: int
    investorId: int
    score: ScoreOut
    reasons: list[str]


class StatsOut(BaseModel):
    startups: int
    published_startups: int
    investors: int
    active_investors: int
    matches: int
    by_status: dict[str, int]
    by_initiator: dict[str, int]
    avg_score: float | None = None
