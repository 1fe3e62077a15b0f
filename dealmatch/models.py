from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


MATCH_STATUSES = ("pending", "interested", "not-interested", "meeting-scheduled", "deal-closed")
INITIATORS = ("system", "startup", "investor")


class Startup(Base):
    __tablename__ = "startups"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    company_name: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    industry: Mapped[list[str]] = mapped_column(JSON, default=list)
    stage: Mapped[str] = mapped_column(String(30), nullable=False)
    business_model: Mapped[str] = mapped_column(String(30), nullable=False)
    target_amount: Mapped[float | None] = mapped_column(Float, nullable=True)  # raw currency units
    status: Mapped[str] = mapped_column(String(30), default="draft")
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    matches: Mapped[list[Match]] = relationship("Match", back_populates="startup", cascade="all, delete-orphan")


class Investor(Base):
    __tablename__ = "investors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    firm_name: Mapped[str] = mapped_column(String(300), default="")
    bio: Mapped[str] = mapped_column(Text, default="")
    investment_industries: Mapped[list[str]] = mapped_column(JSON, default=list)
    investment_stages: Mapped[list[str]] = mapped_column(JSON, default=list)
    business_models: Mapped[list[str]] = mapped_column(JSON, default=list)
    investment_geographies: Mapped[list[str]] = mapped_column(JSON, default=list)
    check_size_min: Mapped[float | None] = mapped_column(Float, nullable=True)  # thousands
    check_size_max: Mapped[float | None] = mapped_column(Float, nullable=True)  # thousands
    status: Mapped[str] = mapped_column(String(30), default="active")
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    matches: Mapped[list[Match]] = relationship("Match", back_populates="investor", cascade="all, delete-orphan")


class Match(Base):
    __tablename__ = "matches"
    __table_args__ = (UniqueConstraint("startup_id", "investor_id", name="uq_matches_pair"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    startup_id: Mapped[int] = mapped_column(Integer, ForeignKey("startups.id"), nullable=False)
    investor_id: Mapped[int] = mapped_column(Integer, ForeignKey("investors.id"), nullable=False)
    match_score: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(30), default="pending")
    initiated_by: Mapped[str] = mapped_column(String(20), default="system")  # system | startup | investor
    match_reasons: Mapped[list[str]] = mapped_column(JSON, default=list)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    startup: Mapped[Startup] = relationship("Startup", back_populates="matches")
    investor: Mapped[Investor] = relationship("Investor", back_populates="matches")
