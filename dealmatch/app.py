from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Generator

from fastapi import Depends, FastAPI, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from dealmatch import config, services
from dealmatch.db import init_db, session_generator
from dealmatch.models import Investor, Startup
from dealmatch.schemas import (
    GenerateRequest,
    GenerateResponse,
    InvestorCreate,
    InvestorOut,
    InvestorUpdate,
    MatchCreate,
    MatchOut,
    MatchResultOut,
    MatchStatus,
    StartupCreate,
    StartupOut,
    StartupUpdate,
    StatsOut,
    StatusUpdate,
    StatusUpdateResponse,
)
from dealmatch.scorer import calculate_match_score

log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(
    title="DealMatch",
    version="0.1.0",
    description=(
        "Matchmaking API connecting startups raising capital with investors. "
        "Scores startup/investor pairs on industry, stage, business model, "
        "check size, and geography, and stores the best matches. "
        "All endpoints return JSON. Callers identify themselves with user_id."
    ),
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Matches", "description": "Generate, list, and update matches."},
        {"name": "Scoring", "description": "Score pairs and preview ranked candidates without storing them."},
        {"name": "Startups", "description": "Startup profiles."},
        {"name": "Investors", "description": "Investor profiles."},
        {"name": "Stats", "description": "Aggregate counts."},
    ],
)


# ---------------------------------------------------------------------------
# Dependencies & Helpers
# ---------------------------------------------------------------------------


def db_session() -> Generator[Session, None, None]:
    yield from session_generator()


def _get_or_404(session: Session, model, entity_id: int, label: str = "Entity"):
    obj = services.get_entity(session, model, entity_id)
    if not obj:
        raise HTTPException(404, f"{label} not found")
    return obj


@app.get("/api/health", tags=["Stats"], summary="Liveness check")
async def health():
    return {"status": "ok"}


# ---------------------------------------------------------------------------
# Routes: Matches (static paths before parameterized to avoid route shadowing)
# ---------------------------------------------------------------------------


@app.post("/api/matches/generate", response_model=GenerateResponse,
          tags=["Matches"], summary="Find new matches for the caller's startup or investor profile")
async def generate(body: GenerateRequest, session: Session = Depends(db_session)):
    user_type = body.user_type or services.resolve_user_type(session, body.user_id)
    try:
        created = services.generate_matches(session, body.user_id, user_type)
    except services.ProfileNotFoundError as exc:
        raise HTTPException(404, str(exc)) from exc
    except services.InvalidUserTypeError as exc:
        raise HTTPException(400, str(exc)) from exc
    except Exception as exc:
        log.exception("Match generation failed for %s", body.user_id)
        raise HTTPException(500, f"Failed to generate matches: {exc}") from exc
    matches = [services.match_summary(m) for m in created]
    return {
        "success": True,
        "totalGenerated": len(matches),
        "matches": matches,
        "message": f"Generated {len(matches)} new matches",
    }


@app.get("/api/matches", response_model=list[MatchOut],
         tags=["Matches"], summary="List matches, optionally only those involving a user")
async def list_matches(
    user_id: str | None = Query(None, description="Only matches where this user owns the startup or the investor"),
    status: MatchStatus | None = Query(None),
    session: Session = Depends(db_session),
):
    return [services.match_summary(m) for m in services.list_matches(session, user_id=user_id, status=status)]


@app.post("/api/matches", response_model=MatchOut, status_code=201,
          tags=["Matches"], summary="Create a single match manually")
async def create_match(body: MatchCreate, session: Session = Depends(db_session)):
    _get_or_404(session, Startup, body.startup_id, "Startup")
    _get_or_404(session, Investor, body.investor_id, "Investor")
    match = services.create_match(
        session, body.startup_id, body.investor_id, body.match_score,
        body.initiated_by, body.match_reasons,
    )
    if match is None:
        raise HTTPException(409, "Match could not be created (it may already exist)")
    return services.match_summary(match)


@app.patch("/api/matches/{match_id}/status", response_model=StatusUpdateResponse,
           tags=["Matches"], summary="Change a match's status (either side of the match)")
async def update_match_status(match_id: int, body: StatusUpdate, session: Session = Depends(db_session)):
    try:
        match = services.update_match_status(session, match_id, body.user_id, body.status, body.notes)
    except services.InvalidStatusError as exc:
        raise HTTPException(400, "Invalid status") from exc
    except services.MatchNotFoundError as exc:
        raise HTTPException(404, "Match not found") from exc
    except services.MatchAccessError as exc:
        raise HTTPException(403, "Forbidden: You are not part of this match") from exc
    return {"success": True, "match": services.match_summary(match)}


# ---------------------------------------------------------------------------
# Routes: Scoring
# ---------------------------------------------------------------------------


@app.get("/api/score", response_model=MatchResultOut,
         tags=["Scoring"], summary="Score one startup against one investor")
async def score_pair(
    startup_id: int = Query(...), investor_id: int = Query(...),
    session: Session = Depends(db_session),
):
    startup = _get_or_404(session, Startup, startup_id, "Startup")
    investor = _get_or_404(session, Investor, investor_id, "Investor")
    return calculate_match_score(startup, investor).to_dict()


@app.get("/api/startups/{startup_id}/candidates", response_model=list[MatchResultOut],
         tags=["Scoring"], summary="Ranked investor candidates for a startup (nothing is stored)")
async def startup_candidates(
    startup_id: int,
    limit: int = Query(config.MAX_PREVIEW_MATCHES, ge=1, le=500),
    session: Session = Depends(db_session),
):
    _get_or_404(session, Startup, startup_id, "Startup")
    return [r.to_dict() for r in services.generate_matches_for_startup(session, startup_id, limit=limit)]


@app.get("/api/investors/{investor_id}/candidates", response_model=list[MatchResultOut],
         tags=["Scoring"], summary="Ranked startup candidates for an investor (nothing is stored)")
async def investor_candidates(
    investor_id: int,
    limit: int = Query(config.MAX_PREVIEW_MATCHES, ge=1, le=500),
    session: Session = Depends(db_session),
):
    _get_or_404(session, Investor, investor_id, "Investor")
    return [r.to_dict() for r in services.generate_matches_for_investor(session, investor_id, limit=limit)]


# ---------------------------------------------------------------------------
# Routes: Startups
# ---------------------------------------------------------------------------


@app.get("/api/startups", response_model=list[StartupOut], tags=["Startups"], summary="List startups")
async def list_startups(
    status: str | None = Query(None, description="draft, pending_approval, published, suspended"),
    session: Session = Depends(db_session),
):
    query = select(Startup).order_by(Startup.id)
    if status:
        query = query.where(Startup.status == status)
    return [services.startup_summary(s) for s in session.execute(query).scalars().all()]


@app.post("/api/startups", response_model=StartupOut, status_code=201,
          tags=["Startups"], summary="Create a startup profile")
async def create_startup(body: StartupCreate, session: Session = Depends(db_session)):
    startup = services.create_startup(session, body.user_id, **body.model_dump(exclude={"user_id"}))
    return services.startup_summary(startup)


@app.get("/api/startups/{startup_id}", response_model=StartupOut, tags=["Startups"], summary="Get a startup")
async def get_startup(startup_id: int, session: Session = Depends(db_session)):
    return services.startup_summary(_get_or_404(session, Startup, startup_id, "Startup"))


@app.put("/api/startups/{startup_id}", response_model=StartupOut,
         tags=["Startups"], summary="Update startup fields (partial update, null fields ignored)")
async def update_startup(startup_id: int, body: StartupUpdate, session: Session = Depends(db_session)):
    startup = _get_or_404(session, Startup, startup_id, "Startup")
    services.apply_updates(startup, body.model_dump(), services.STARTUP_FIELDS)
    session.commit()
    return services.startup_summary(startup)


# ---------------------------------------------------------------------------
# Routes: Investors
# ---------------------------------------------------------------------------


@app.get("/api/investors", response_model=list[InvestorOut], tags=["Investors"], summary="List investors")
async def list_investors(
    status: str | None = Query(None, description="active, inactive, suspended"),
    session: Session = Depends(db_session),
):
    query = select(Investor).order_by(Investor.id)
    if status:
        query = query.where(Investor.status == status)
    return [services.investor_summary(i) for i in session.execute(query).scalars().all()]


@app.post("/api/investors", response_model=InvestorOut, status_code=201,
          tags=["Investors"], summary="Create an investor profile")
async def create_investor(body: InvestorCreate, session: Session = Depends(db_session)):
    investor = services.create_investor(session, body.user_id, **body.model_dump(exclude={"user_id"}))
    return services.investor_summary(investor)


@app.get("/api/investors/{investor_id}", response_model=InvestorOut, tags=["Investors"], summary="Get an investor")
async def get_investor(investor_id: int, session: Session = Depends(db_session)):
    return services.investor_summary(_get_or_404(session, Investor, investor_id, "Investor"))


@app.put("/api/investors/{investor_id}", response_model=InvestorOut,
         tags=["Investors"], summary="Update investor fields (partial update, null fields ignored)")
async def update_investor(investor_id: int, body: InvestorUpdate, session: Session = Depends(db_session)):
    investor = _get_or_404(session, Investor, investor_id, "Investor")
    services.apply_updates(investor, body.model_dump(), services.INVESTOR_FIELDS)
    session.commit()
    return services.investor_summary(investor)


# ---------------------------------------------------------------------------
# Routes: Stats
# ---------------------------------------------------------------------------


@app.get("/api/stats", response_model=StatsOut, tags=["Stats"], summary="Get aggregate counts")
async def get_stats(session: Session = Depends(db_session)):
    return services.compute_stats(session)


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------


def main():
    import uvicorn
    uvicorn.run("dealmatch.app:app", host=config.HOST, port=config.PORT, reload=True)


if __name__ == "__main__":
    main()
