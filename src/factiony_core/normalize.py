"""
Shape normalization for provider payloads.

Every provider answers with its own ad hoc JSON (fields that are sometimes a
string, sometimes an object, sometimes a list of either). The helpers here map
those shapes onto GameRecord vocabulary so that merge and enrichment code only
ever sees one shape.
"""

import re
from datetime import datetime, timezone
from typing import Any

from bs4 import BeautifulSoup

from .constants import GENERIC_STORE_KEYWORDS, IGDB_STORE_WEBSITES, RAWG_STORE_MAP

NUMERIC_ID_REGEX = re.compile(r"^\d+$")
LOCALE_SUFFIX_REGEX = re.compile(r"^[a-z]{2}$", re.IGNORECASE)
MOVIE_QUALITIES = ("max", "720", "480", "360", "240")


def is_numeric_id(value: Any) -> bool:
    return bool(NUMERIC_ID_REGEX.match(str(value).strip())) if value is not None else False


def clean_identifier(raw: str) -> str:
    """Strips " (...)" decorations and a trailing "_xx" locale suffix."""
    cleaned = str(raw)
    if " (" in cleaned:
        cleaned = cleaned.split(" (")[0]
    if "_" in cleaned:
        parts = cleaned.split("_")
        if len(parts) > 1 and LOCALE_SUFFIX_REGEX.match(parts[-1]):
            cleaned = "_".join(parts[:-1])
    return cleaned.strip()


def sanitize_description(text: str | None) -> str | None:
    """Turns an HTML description into plain text, keeping paragraph breaks."""
    if not text:
        return text
    if "<" not in text:
        return text.strip()

    soup = BeautifulSoup(text, "html.parser")
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for p in soup.find_all("p"):
        p.insert_before("\n\n")
        p.insert_after("\n\n")
        p.unwrap()
    plain = soup.get_text()
    return re.sub(r"\n{3,}", "\n\n", plain).strip()


def clean_requirements(text: str | None) -> str:
    """
    Sanitizes a requirements HTML fragment to plain text.
    List items become "• " bullets on their own line.
    """
    if not text:
        return ""

    soup = BeautifulSoup(text, "html.parser")
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for li in soup.find_all("li"):
        li.insert_before("\n• ")
        li.unwrap()
    for ul in soup.find_all(["ul", "ol"]):
        ul.insert_before("\n")
        ul.unwrap()
    for strong in soup.find_all(["strong", "b"]):
        strong.unwrap()

    plain = soup.get_text().replace("\xa0", " ")
    return plain.strip()


def parse_metacritic(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        score = float(value)
    except (TypeError, ValueError):
        return None
    return round(score, 1) if score > 0 else None


def _named(items: Any, key: str | None = None) -> list[dict[str, Any]]:
    """
    Normalizes a list whose entries may be plain strings, {"name": ...} dicts, or
    wrapper dicts like RAWG's {"platform": {"name": ..., "slug": ...}}.
    """
    out: list[dict[str, Any]] = []
    if not isinstance(items, list):
        return out

    for item in items:
        if isinstance(item, str):
            out.append({"name": item, "slug": _slugify(item)})
            continue
        if not isinstance(item, dict):
            continue
        inner = item.get(key) if key and isinstance(item.get(key), dict) else item
        name = inner.get("name")
        if not name:
            continue
        out.append({"name": name, "slug": inner.get("slug") or _slugify(name)})
    return out


def _slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def _igdb_image(url: str | None) -> str | None:
    if not url:
        return None
    if url.startswith("//"):
        url = "https:" + url
    return url.replace("t_thumb", "t_cover_big")


def _unix_to_iso(value: Any) -> str | None:
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc).strftime("%Y-%m-%d")
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def normalize_rawg_game(data: dict[str, Any] | None) -> dict[str, Any]:
    if not data:
        return {}

    return {
        "id": data.get("id") if isinstance(data.get("id"), int) else None,
        "slug": data.get("slug"),
        "name": data.get("name"),
        "description": data.get("description_raw") or sanitize_description(data.get("description")),
        "released": data.get("released") or None,
        "background_image": data.get("background_image"),
        "metacritic": parse_metacritic(data.get("metacritic")),
        "playtime": data.get("playtime") or None,
        "genres": _named(data.get("genres")),
        "tags": _named(data.get("tags")),
        "platforms": _named(data.get("platforms"), key="platform"),
        "developers": [{"name": d["name"]} for d in _named(data.get("developers"))],
        "publishers": [{"name": p["name"]} for p in _named(data.get("publishers"))],
        "raw_stores": data.get("stores") or [],
        "raw_platforms": data.get("platforms") or [],
    }


def normalize_igdb_game(data: dict[str, Any] | None) -> dict[str, Any]:
    if not data:
        return {}

    companies = data.get("involved_companies") or []
    developers = []
    publishers = []
    for company in companies:
        if not isinstance(company, dict):
            continue
        name = (company.get("company") or {}).get("name")
        if not name:
            continue
        (publishers if company.get("publisher") else developers).append({"name": name})

    cover = data.get("cover")
    cover_url = cover.get("url") if isinstance(cover, dict) else None

    return {
        "id": data.get("id") if isinstance(data.get("id"), int) else None,
        "slug": data.get("slug"),
        "name": data.get("name"),
        "description": data.get("summary"),
        "released": _unix_to_iso(data.get("first_release_date")) if data.get("first_release_date") else None,
        "cover": _igdb_image(cover_url),
        "rating": parse_metacritic(data.get("rating")),
        "genres": _named(data.get("genres")),
        "tags": _named(data.get("themes")),
        "platforms": _named(data.get("platforms")),
        "developers": developers,
        "publishers": publishers,
        "websites": data.get("websites") or [],
    }


def normalize_rawg_stores(results: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
    """Maps RAWG /stores results onto direct buy links for the known storefronts."""
    links = []
    for item in results or []:
        store = item.get("store") if isinstance(item.get("store"), dict) else {}
        store_id = item.get("store_id") or store.get("id")
        url = item.get("url")
        if not store_id or not url:
            continue

        info = RAWG_STORE_MAP.get(store_id)
        if not info:
            continue
        slug, name = info
        links.append({"store": slug, "name": name, "url": url})
    return links


def generic_store_links(raw_stores: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
    """Fallback storefront links from the game details payload (often homepages)."""
    links = []
    for item in raw_stores or []:
        store = item.get("store") if isinstance(item, dict) else None
        if not isinstance(store, dict):
            continue
        name = store.get("name") or ""
        if not any(keyword in name.lower() for keyword in GENERIC_STORE_KEYWORDS):
            continue
        url = item.get("url") or (f"https://{store['domain']}" if store.get("domain") else None)
        if url:
            links.append({"name": name, "url": url})
    return links


def igdb_store_links(websites: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
    links = []
    for site in websites or []:
        if not isinstance(site, dict):
            continue
        name = IGDB_STORE_WEBSITES.get(site.get("category"))
        if name and site.get("url"):
            links.append({"name": name, "url": site["url"]})
    return links


def extract_pc_requirements(raw_platforms: list[dict[str, Any]] | None) -> dict[str, str | None]:
    for entry in raw_platforms or []:
        if not isinstance(entry, dict):
            continue
        platform = entry.get("platform") or {}
        is_pc = platform.get("slug") == "pc" or "pc" in (platform.get("name") or "").lower()
        if not is_pc:
            continue

        requirements = entry.get("requirements") or entry.get("requirements_en") or {}
        if not isinstance(requirements, dict) or not requirements:
            return {}
        return {
            "minimum": clean_requirements(requirements.get("minimum")) or None,
            "recommended": clean_requirements(requirements.get("recommended")) or None,
        }
    return {}


def pick_mp4_url(movie: dict[str, Any] | None) -> str | None:
    data = (movie or {}).get("data")
    if not isinstance(data, dict):
        return None
    for quality in MOVIE_QUALITIES:
        if data.get(quality):
            return data[quality]
    return None
