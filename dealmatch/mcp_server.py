from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from mcp.server.fastmcp import FastMCP

from dealmatch import config, services
from dealmatch.db import init_db, session_scope
from dealmatch.models import MATCH_STATUSES, Investor, Startup
from dealmatch.scorer import (
    BUSINESS_MODEL_COMPAT, INDUSTRY_CATEGORIES, STAGE_PROGRESSION, calculate_match_score,
)

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def dealmatch_lifespan(server: FastMCP) -> AsyncIterator[None]:
    init_db()
    yield


mcp = FastMCP(
    "DealMatch",
    instructions=(
        "DealMatch connects startups raising capital with investors. "
        "Use score_pair() to explain a single pairing, preview_matches() to see ranked "
        "candidates without storing anything, and generate_matches_tool() to store new matches. "
        "Start with get_stats() for an overview."
    ),
    lifespan=dealmatch_lifespan,
    json_response=True,
)


def _get_or_error(session, model, entity_id, label="Entity"):
    obj = services.get_entity(session, model, entity_id)
    if not obj:
        return None, {"error": f"{label} {entity_id} not found"}
    return obj, None


# ---------------------------------------------------------------------------
# Resource
# ---------------------------------------------------------------------------


@mcp.resource("dealmatch://overview")
def dealmatch_overview() -> str:
    """Overview of DealMatch: data model, scoring weights, and match lifecycle."""
    return json.dumps({
        "system": "DealMatch: startup/investor matchmaking",
        "data_model": {
            "startup": "Company raising capital. Has industry tags, stage, business model, target amount (raw currency).",
            "investor": "Angel or fund. Has target industries, stages, business models, geographies, check size range (thousands).",
            "match": "Scored startup/investor pair with status and human-readable reasons. At most one per pair.",
        },
        "scoring": {
            "industry": "35 direct tag match, 25 same category, 15 generalist investor",
            "stage": "25 investor funds the startup's stage, 15 adjacent round",
            "business_model": "20 compatible model",
            "check_size": "15 target inside range, 10 within 50% of the range",
            "geography": "5 global, 3 any regional focus",
            "threshold": config.MIN_MATCH_SCORE,
        },
        "industry_categories": {k: list(v) for k, v in INDUSTRY_CATEGORIES.items()},
        "stage_progression": {k: list(v) for k, v in STAGE_PROGRESSION.items()},
        "business_model_compat": {k: list(v) for k, v in BUSINESS_MODEL_COMPAT.items()},
        "match_statuses": list(MATCH_STATUSES),
    }, indent=2)


# ---------------------------------------------------------------------------
# Tools: Scoring
# ---------------------------------------------------------------------------


@mcp.tool()
def score_pair(startup_id: int, investor_id: int) -> dict:
    """Score one startup against one investor and explain the result."""
    with session_scope() as session:
        startup, err = _get_or_error(session, Startup, startup_id, "Startup")
        if err:
            return err
        investor, err = _get_or_error(session, Investor, investor_id, "Investor")
        if err:
            return err
        return calculate_match_score(startup, investor).to_dict()


@mcp.tool()
def preview_matches(startup_id: int | None = None, investor_id: int | None = None, limit: int = 50) -> list[dict] | dict:
    """Ranked candidates for a startup or an investor. Nothing is stored.

    Args:
        startup_id: Rank active investors for this startup.
        investor_id: Rank published startups for this investor.
        limit: Max results (default 50, max 500).
    """
    if (startup_id is None) == (investor_id is None):
        return {"error": "Pass exactly one of startup_id or investor_id"}
    limit = max(1, min(limit, 500))
    with session_scope() as session:
        if startup_id is not None:
            results = services.generate_matches_for_startup(session, startup_id, limit=limit)
        else:
            results = services.generate_matches_for_investor(session, investor_id, limit=limit)
        return [r.to_dict() for r in results]


# ---------------------------------------------------------------------------
# Tools: Matches
# ---------------------------------------------------------------------------


@mcp.tool()
def generate_matches_tool(user_id: str, user_type: str | None = None) -> dict:
    """Store new matches for a user's startup or investor profile.

    Args:
        user_id: Owner of the profile.
        user_type: "startup" or "investor". Detected from the user's profiles when omitted.
    """
    with session_scope() as session:
        user_type = user_type or services.resolve_user_type(session, user_id)
        try:
            created = services.generate_matches(session, user_id, user_type)
        except (services.ProfileNotFoundError, services.InvalidUserTypeError) as exc:
            return {"error": str(exc)}
        matches = [services.match_summary(m) for m in created]
        return {"success": True, "totalGenerated": len(matches), "matches": matches}


@mcp.tool()
def list_matches(user_id: str | None = None, status: str | None = None) -> list[dict]:
    """List matches, optionally only those where the user owns the startup or the investor."""
    with session_scope() as session:
        return [services.match_summary(m) for m in services.list_matches(session, user_id=user_id, status=status)]


@mcp.tool()
def update_match_status_tool(match_id: int, user_id: str, status: str, notes: str | None = None) -> dict:
    """Change a match's status on behalf of one of its two sides."""
    with session_scope() as session:
        try:
            match = services.update_match_status(session, match_id, user_id, status, notes)
        except (services.InvalidStatusError, services.MatchNotFoundError, services.MatchAccessError) as exc:
            return {"error": str(exc)}
        return services.match_summary(match)


@mcp.tool()
def get_stats() -> dict:
    """Counts of startups, investors, and matches by status."""
    with session_scope() as session:
        return services.compute_stats(session)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main():
    """Run the DealMatch MCP server over stdio."""
    mcp.run()


if __name__ == "__main__":
    main()
