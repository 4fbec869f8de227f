from typing import Any

from sqlalchemy import JSON, Float, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class Game(Base):
    """Canonical games table; keyed by the provider numeric id stored as text."""

    __tablename__ = "games"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    slug: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    name: Mapped[str | None] = mapped_column(String, nullable=True)
    released: Mapped[str | None] = mapped_column(String, nullable=True)
    metacritic: Mapped[float | None] = mapped_column(Float, nullable=True)
    source: Mapped[str | None] = mapped_column(String, nullable=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON)
    updated_at: Mapped[float] = mapped_column(Float, index=True)


class ApiCacheEntry(Base):
    """Locale-scoped snapshot, keyed by "{identifier}_{locale}"."""

    __tablename__ = "api_cache"

    cache_key: Mapped[str] = mapped_column(String, primary_key=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON)
    expires_at: Mapped[float] = mapped_column(Float, index=True)


class GameStat(Base):
    # Filled by the ratings side of the platform; read-only here.
    __tablename__ = "game_stats"

    game_id: Mapped[str] = mapped_column(String, primary_key=True)
    average_rating: Mapped[float | None] = mapped_column(Float, nullable=True)
    ratings_count: Mapped[int] = mapped_column(Integer, default=0)


class LocalBase(DeclarativeBase):
    """Client-side cache database, kept apart from the service tables."""


class LocalCacheEntry(LocalBase):
    __tablename__ = "game_cache"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    fetched_at: Mapped[float] = mapped_column(Float)
    data: Mapped[dict[str, Any]] = mapped_column(JSON)
