"""Shared business logic for the DealMatch API and MCP server."""
from __future__ import annotations

import logging
from collections import Counter
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from dealmatch import config
from dealmatch.models import INITIATORS, MATCH_STATUSES, Investor, Match, Startup
from dealmatch.scorer import MatchResult, calculate_match_score, rank_results

log = logging.getLogger(__name__)

USER_TYPES = ("startup", "investor")

# ---------------------------------------------------------------------------
# Shared field tuples
# ---------------------------------------------------------------------------

STARTUP_FIELDS = (
    "company_name", "description", "industry", "stage", "business_model",
    "target_amount", "status",
)

INVESTOR_FIELDS = (
    "firm_name", "bio", "investment_industries", "investment_stages",
    "business_models", "investment_geographies", "check_size_min",
    "check_size_max", "status",
)

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ProfileNotFoundError(LookupError):
    """The anchor startup or investor profile does not exist."""
    def __init__(self, user_type: str, key: Any):
        super().__init__(f"{user_type.capitalize()} profile not found: {key}")
        self.user_type = user_type
        self.key = key


class InvalidUserTypeError(ValueError):
    pass


class InvalidStatusError(ValueError):
    pass


class MatchNotFoundError(LookupError):
    pass


class MatchAccessError(PermissionError):
    """The user owns neither side of the match."""


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def startup_summary(s: Startup) -> dict:
    return {
        "id": s.id, "user_id": s.user_id, "company_name": s.company_name,
        "description": s.description, "industry": list(s.industry or []),
        "stage": s.stage, "business_model": s.business_model,
        "target_amount": s.target_amount, "status": s.status,
        "created_at": _iso(s.created_at),
    }


def investor_summary(inv: Investor) -> dict:
    return {
        "id": inv.id, "user_id": inv.user_id, "firm_name": inv.firm_name, "bio": inv.bio,
        "investment_industries": list(inv.investment_industries or []),
        "investment_stages": list(inv.investment_stages or []),
        "business_models": list(inv.business_models or []),
        "investment_geographies": list(inv.investment_geographies or []),
        "check_size_min": inv.check_size_min, "check_size_max": inv.check_size_max,
        "status": inv.status, "created_at": _iso(inv.created_at),
    }


def match_summary(m: Match) -> dict:
    return {
        "id": m.id, "startup_id": m.startup_id, "investor_id": m.investor_id,
        "match_score": m.match_score, "status": m.status,
        "initiated_by": m.initiated_by, "match_reasons": list(m.match_reasons or []),
        "notes": m.notes,
        "created_at": _iso(m.created_at), "updated_at": _iso(m.updated_at),
    }


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


def get_entity(session: Session, model, entity_id: int):
    return session.execute(select(model).where(model.id == entity_id)).scalars().first()


def _profile_by_user(session: Session, model, user_id: str):
    return session.execute(
        select(model).where(model.user_id == user_id).order_by(model.id)
    ).scalars().first()


def resolve_user_type(session: Session, user_id: str) -> str:
    """Users that own an investor profile act as investors, everyone else as a startup."""
    return "investor" if _profile_by_user(session, Investor, user_id) is not None else "startup"


def active_investors(session: Session) -> list[Investor]:
    return list(session.execute(
        select(Investor).where(Investor.status == "active").order_by(Investor.id)
    ).scalars().all())


def published_startups(session: Session) -> list[Startup]:
    return list(session.execute(
        select(Startup).where(Startup.status == "published").order_by(Startup.id)
    ).scalars().all())


def find_match(session: Session, startup_id: int, investor_id: int) -> Match | None:
    return session.execute(
        select(Match).where(Match.startup_id == startup_id, Match.investor_id == investor_id)
    ).scalars().first()


# ---------------------------------------------------------------------------
# Mutation helpers
# ---------------------------------------------------------------------------


def apply_updates(obj, updates: dict[str, Any], fields: tuple[str, ...]) -> None:
    """Apply non-None values from updates dict to an ORM object."""
    for f in fields:
        val = updates.get(f)
        if val is not None:
            setattr(obj, f, val)


def create_startup(session: Session, user_id: str, **fields: Any) -> Startup:
    startup = Startup(user_id=user_id)
    apply_updates(startup, fields, STARTUP_FIELDS)
    session.add(startup)
    session.commit()
    session.refresh(startup)
    return startup


def create_investor(session: Session, user_id: str, **fields: Any) -> Investor:
    investor = Investor(user_id=user_id)
    apply_updates(investor, fields, INVESTOR_FIELDS)
    session.add(investor)
    session.commit()
    session.refresh(investor)
    return investor


# ---------------------------------------------------------------------------
# Match generation
# ---------------------------------------------------------------------------


def _score_pool(anchor, pool, user_type: str) -> list[MatchResult]:
    if user_type == "startup":
        return [calculate_match_score(anchor, investor) for investor in pool]
    return [calculate_match_score(startup, anchor) for startup in pool]


def _persist_result(session: Session, result: MatchResult) -> Match | None:
    """Insert one system match unless the pair already exists. Commits on success."""
    if find_match(session, result.startup_id, result.investor_id) is not None:
        return None
    match = Match(
        startup_id=result.startup_id,
        investor_id=result.investor_id,
        match_score=result.total,
        status="pending",
        initiated_by="system",
        match_reasons=list(result.reasons),
    )
    session.add(match)
    session.commit()
    return match


def generate_matches(
    session: Session, user_id: str, user_type: str, *, limit: int | None = None,
) -> list[Match]:
    """Score the opposing pool against the caller's profile and persist the best new matches.

    Args:
        session: Open session; committed once per created match.
        user_id: External auth id owning the anchor profile.
        user_type: ``"startup"`` (pool = active investors) or
            ``"investor"`` (pool = published startups).
        limit: Max candidates considered for persistence
            (default ``config.MAX_GENERATED_MATCHES``).

    Returns only the rows created by this call. Pairs that already have a
    match are skipped and their scores are left untouched. A failure while
    persisting one candidate is logged and does not stop the rest.

    Raises:
        InvalidUserTypeError: ``user_type`` is not startup or investor.
        ProfileNotFoundError: the user has no profile of that type.
    """
    if user_type not in USER_TYPES:
        raise InvalidUserTypeError(f"Invalid user type: {user_type!r}")
    if limit is None:
        limit = config.MAX_GENERATED_MATCHES

    log.info("Generating matches for %s user %s", user_type, user_id)
    anchor = _profile_by_user(session, Startup if user_type == "startup" else Investor, user_id)
    if anchor is None:
        raise ProfileNotFoundError(user_type, user_id)

    pool = active_investors(session) if user_type == "startup" else published_startups(session)
    if not pool:
        log.info("No candidates in pool for %s %s", user_type, anchor.id)
        return []

    ranked = rank_results(_score_pool(anchor, pool, user_type), config.MIN_MATCH_SCORE, limit)
    log.info("Scored %d candidates, %d above threshold", len(pool), len(ranked))

    created: list[Match] = []
    for result in ranked:
        try:
            match = _persist_result(session, result)
        except IntegrityError as exc:
            session.rollback()
            if find_match(session, result.startup_id, result.investor_id) is not None:
                # Another run inserted the same pair between the check and the insert.
                log.info("Match %s/%s already exists, skipping", result.startup_id, result.investor_id)
            else:
                log.warning("Failed to store match %s/%s: %s", result.startup_id, result.investor_id, exc)
            continue
        except SQLAlchemyError as exc:
            session.rollback()
            log.warning("Failed to store match %s/%s: %s", result.startup_id, result.investor_id, exc)
            continue
        if match is not None:
            created.append(match)

    log.info("Created %d new matches for %s %s", len(created), user_type, anchor.id)
    return created


def generate_matches_for_startup(
    session: Session, startup_id: int, *, limit: int | None = None,
) -> list[MatchResult]:
    """Ranked investor candidates for a startup. Read-only; unknown id gives ``[]``."""
    startup = get_entity(session, Startup, startup_id)
    if startup is None:
        return []
    if limit is None:
        limit = config.MAX_PREVIEW_MATCHES
    results = _score_pool(startup, active_investors(session), "startup")
    return rank_results(results, config.MIN_MATCH_SCORE, limit)


def generate_matches_for_investor(
    session: Session, investor_id: int, *, limit: int | None = None,
) -> list[MatchResult]:
    """Ranked startup candidates for an investor. Read-only; unknown id gives ``[]``."""
    investor = get_entity(session, Investor, investor_id)
    if investor is None:
        return []
    if limit is None:
        limit = config.MAX_PREVIEW_MATCHES
    results = _score_pool(investor, published_startups(session), "investor")
    return rank_results(results, config.MIN_MATCH_SCORE, limit)


def create_match(
    session: Session,
    startup_id: int,
    investor_id: int,
    score: int,
    initiated_by: str,
    reasons: list[str] | None = None,
) -> Match | None:
    """Insert a single match with status ``pending``.

    Store errors (including a duplicate pair) are logged and ``None`` is
    returned instead of raising.
    """
    if initiated_by not in INITIATORS:
        log.error("Error creating match: invalid initiator %r", initiated_by)
        return None
    if not 0 <= score <= 100:
        log.error("Error creating match: score %r outside 0-100", score)
        return None
    match = Match(
        startup_id=startup_id,
        investor_id=investor_id,
        match_score=int(score),
        status="pending",
        initiated_by=initiated_by,
        match_reasons=list(reasons or []),
    )
    try:
        session.add(match)
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        log.error("Error creating match %s/%s: %s", startup_id, investor_id, exc)
        return None
    return match


# ---------------------------------------------------------------------------
# Match queries and status updates
# ---------------------------------------------------------------------------


def list_matches(
    session: Session, *, user_id: str | None = None, status: str | None = None,
) -> list[Match]:
    """Matches where the user owns either side, newest first."""
    query = select(Match)
    if user_id is not None:
        startup_ids = select(Startup.id).where(Startup.user_id == user_id)
        investor_ids = select(Investor.id).where(Investor.user_id == user_id)
        query = query.where(or_(Match.startup_id.in_(startup_ids), Match.investor_id.in_(investor_ids)))
    if status:
        query = query.where(Match.status == status)
    query = query.order_by(Match.created_at.desc(), Match.id.desc())
    return list(session.execute(query).scalars().all())


def update_match_status(
    session: Session, match_id: int, user_id: str, status: str, notes: str | None = None,
) -> Match:
    if status not in MATCH_STATUSES:
        raise InvalidStatusError(f"Invalid status: {status!r}")
    match = get_entity(session, Match, match_id)
    if match is None or match.startup is None or match.investor is None:
        raise MatchNotFoundError(f"Match {match_id} not found")
    if user_id not in (match.startup.user_id, match.investor.user_id):
        raise MatchAccessError("You are not part of this match")
    match.status = status
    match.notes = notes or None
    match.updated_at = datetime.now(UTC)
    session.commit()
    return match


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------


def compute_stats(session: Session) -> dict:
    matches = session.execute(select(Match)).scalars().all()
    by_status: Counter[str] = Counter(m.status for m in matches)
    by_initiator: Counter[str] = Counter(m.initiated_by for m in matches)
    startups = session.execute(select(Startup.status)).scalars().all()
    investors = session.execute(select(Investor.status)).scalars().all()
    return {
        "startups": len(startups),
        "published_startups": sum(1 for s in startups if s == "published"),
        "investors": len(investors),
        "active_investors": sum(1 for s in investors if s == "active"),
        "matches": len(matches),
        "by_status": dict(by_status),
        "by_initiator": dict(by_initiator),
        "avg_score": round(sum(m.match_score for m in matches) / len(matches), 1) if matches else None,
    }
