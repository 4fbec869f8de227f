import time
from dataclasses import asdict, dataclass, field, fields
from typing import Any

from .constants import MAX_SCREENSHOTS

# Fields the batch endpoint returns; everything else is left at its default.
MINIMAL_FIELDS = (
    "id",
    "slug",
    "name",
    "cover",
    "background_image",
    "metacritic",
    "released",
    "genres",
    "platforms",
    "community_rating",
    "updated_at",
)


def _empty_videos() -> dict[str, list[dict[str, Any]]]:
    return {"trailers": [], "gameplay": []}


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _as_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        # "unknown" / "Inconnue" style sentinels
        return None


def _as_list(value: Any) -> list:
    return list(value) if isinstance(value, (list, tuple)) else []


@dataclass
class GameRecord:
    """
    Canonical, fixed-shape game record.

    Provider payloads are normalized into this shape before any merge logic
    runs, and the same shape is persisted in both the games table and the
    api cache table.
    """

    id: int | None = None
    slug: str | None = None
    name: str | None = None
    description: str | None = None
    released: str | None = None
    cover: str | None = None
    background_image: str | None = None
    metacritic: float | None = None
    community_rating: float | None = None
    playtime: int | None = None
    genres: list[dict[str, Any]] = field(default_factory=list)
    tags: list[dict[str, Any]] = field(default_factory=list)
    platforms: list[dict[str, Any]] = field(default_factory=list)
    developers: list[dict[str, Any]] = field(default_factory=list)
    publishers: list[dict[str, Any]] = field(default_factory=list)
    screenshots: list[str] = field(default_factory=list)
    videos: dict[str, list[dict[str, Any]]] = field(default_factory=_empty_videos)
    buy_links: list[dict[str, Any]] = field(default_factory=list)
    stores: list[dict[str, Any]] = field(default_factory=list)
    pc_requirements: dict[str, str | None] = field(default_factory=dict)
    source: str | None = None
    id_source: str | None = None
    updated_at: float | None = None

    @property
    def trailers(self) -> list[dict[str, Any]]:
        return self.videos.get("trailers", [])

    @property
    def gameplay(self) -> list[dict[str, Any]]:
        return self.videos.get("gameplay", [])

    @property
    def storefront_links(self) -> list[dict[str, Any]]:
        """Direct deep links when known, generic storefront links otherwise."""
        return self.buy_links or self.stores

    def has_media(self) -> bool:
        return bool(self.screenshots) and bool(self.trailers or self.gameplay)

    def has_storefronts(self) -> bool:
        return bool(self.buy_links)

    def age(self, now: float | None = None) -> float | None:
        if self.updated_at is None:
            return None
        return (now if now is not None else time.time()) - self.updated_at

    def is_fresh(self, ttl: float, now: float | None = None) -> bool:
        age = self.age(now)
        return age is not None and age < ttl

    def to_payload(self) -> dict[str, Any]:
        return asdict(self)

    def minimal(self) -> "GameRecord":
        """Identity/cover/rating/release projection used by batch lookups."""
        return GameRecord(**{name: getattr(self, name) for name in MINIMAL_FIELDS})

    @classmethod
    def from_payload(cls, payload: dict[str, Any] | None) -> "GameRecord | None":
        if not payload:
            return None

        known = {f.name for f in fields(cls)}
        data = {k: v for k, v in payload.items() if k in known}

        # Legacy payloads stored the description under description_raw
        if "description" not in data and payload.get("description_raw"):
            data["description"] = payload["description_raw"]
        if "community_rating" not in data and payload.get("factiony_rating") is not None:
            data["community_rating"] = payload["factiony_rating"]

        data["id"] = _as_int(data.get("id"))
        data["metacritic"] = _as_float(data.get("metacritic"))
        data["community_rating"] = _as_float(data.get("community_rating"))
        data["playtime"] = _as_int(data.get("playtime")) if data.get("playtime") else None
        data["updated_at"] = _as_float(data.get("updated_at"))

        for name in ("genres", "tags", "platforms", "developers", "publishers", "buy_links", "stores"):
            data[name] = _as_list(data.get(name))
        data["screenshots"] = [s for s in _as_list(data.get("screenshots")) if s][:MAX_SCREENSHOTS]

        videos = data.get("videos")
        if not isinstance(videos, dict):
            videos = {}
        data["videos"] = {
            "trailers": _as_list(videos.get("trailers")),
            "gameplay": _as_list(videos.get("gameplay")),
        }

        requirements = data.get("pc_requirements")
        data["pc_requirements"] = requirements if isinstance(requirements, dict) else {}

        return cls(**data)
