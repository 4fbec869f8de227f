import pytest

from factiony_core.models import GameRecord
from factiony_core.normalize import (
    clean_identifier,
    clean_requirements,
    extract_pc_requirements,
    generic_store_links,
    igdb_store_links,
    is_numeric_id,
    normalize_igdb_game,
    normalize_rawg_game,
    normalize_rawg_stores,
    parse_metacritic,
    pick_mp4_url,
    sanitize_description,
)

from factories import rawg_game


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("3498", "3498"),
        ("witcher-3_fr", "witcher-3"),
        ("The Witcher 3 (2015)", "The Witcher 3"),
        ("dark_souls", "dark_souls"),
        (" 3328 ", "3328"),
    ],
)
def test_clean_identifier(raw, expected):
    assert clean_identifier(raw) == expected


def test_is_numeric_id():
    assert is_numeric_id("3498")
    assert is_numeric_id(3498)
    assert not is_numeric_id("gta-5")
    assert not is_numeric_id(None)


@pytest.mark.parametrize("value", [None, "unknown", "Inconnue", 0, -1, True])
def test_parse_metacritic_sentinels(value):
    assert parse_metacritic(value) is None


def test_parse_metacritic_rounds():
    assert parse_metacritic("92") == 92.0
    assert parse_metacritic(86.456) == 86.5


def test_sanitize_description_strips_html():
    html = "<p>First paragraph.</p><p>Second<br/>line.</p>"
    assert sanitize_description(html) == "First paragraph.\n\nSecond\nline."
    assert sanitize_description("  plain  ") == "plain"
    assert sanitize_description(None) is None


def test_clean_requirements_bullets():
    html = "<strong>Minimum:</strong><br><ul><li>OS: Windows 10</li><li>Memory:&nbsp;8 GB RAM</li></ul>"
    cleaned = clean_requirements(html)

    assert cleaned.startswith("Minimum:")
    assert "• OS: Windows 10" in cleaned
    assert "• Memory: 8 GB RAM" in cleaned
    assert "<" not in cleaned


def test_normalize_rawg_game():
    game = normalize_rawg_game(rawg_game(metacritic="unknown"))

    assert game["id"] == 3498
    assert game["metacritic"] is None
    assert game["description"] == "Grand Theft Auto V is an action game."
    assert game["platforms"] == [{"name": "PC", "slug": "pc"}]
    assert game["developers"] == [{"name": "Rockstar North"}]
    assert normalize_rawg_game(None) == {}


def test_normalize_rawg_game_accepts_string_lists():
    game = normalize_rawg_game(rawg_game(genres=["Action", "Role Playing"]))
    assert game["genres"] == [{"name": "Action", "slug": "action"}, {"name": "Role Playing", "slug": "role-playing"}]


def test_normalize_igdb_game():
    game = normalize_igdb_game(
        {
            "id": 1942,
            "name": "The Witcher 3: Wild Hunt",
            "summary": "Geralt returns.",
            "first_release_date": 1431993600,
            "rating": 93.456,
            "cover": {"url": "//images.igdb.com/igdb/image/upload/t_thumb/co1wyy.jpg"},
            "involved_companies": [
                {"company": {"name": "CD Projekt RED"}, "developer": True, "publisher": False},
                {"company": {"name": "Bandai Namco"}, "developer": False, "publisher": True},
            ],
            "genres": [{"name": "RPG"}],
        }
    )

    assert game["released"] == "2015-05-19"
    assert game["rating"] == 93.5
    assert game["cover"] == "https://images.igdb.com/igdb/image/upload/t_cover_big/co1wyy.jpg"
    assert game["developers"] == [{"name": "CD Projekt RED"}]
    assert game["publishers"] == [{"name": "Bandai Namco"}]


def test_normalize_rawg_stores_maps_known_storefronts():
    links = normalize_rawg_stores(
        [
            {"store_id": 1, "url": "https://store.steampowered.com/app/271590/"},
            {"store_id": 99, "url": "https://example.com"},
            {"store_id": 6, "url": ""},
        ]
    )
    assert links == [{"store": "steam", "name": "Steam", "url": "https://store.steampowered.com/app/271590/"}]


def test_generic_and_igdb_store_links():
    generic = generic_store_links(
        [
            {"store": {"name": "Steam", "domain": "store.steampowered.com"}, "url": ""},
            {"store": {"name": "Humble", "domain": "humblebundle.com"}},
        ]
    )
    assert generic == [{"name": "Steam", "url": "https://store.steampowered.com"}]

    websites = igdb_store_links([{"category": 16, "url": "https://store.epicgames.com/p/x"}, {"category": 1}])
    assert websites == [{"name": "Epic Games", "url": "https://store.epicgames.com/p/x"}]


def test_extract_pc_requirements():
    platforms = [
        {"platform": {"name": "PlayStation 4", "slug": "playstation4"}},
        {
            "platform": {"name": "PC", "slug": "pc"},
            "requirements": {"minimum": "<ul><li>OS: Windows 7</li></ul>", "recommended": ""},
        },
    ]
    requirements = extract_pc_requirements(platforms)
    assert requirements["minimum"] == "• OS: Windows 7"
    assert requirements["recommended"] is None
    assert extract_pc_requirements([]) == {}


def test_pick_mp4_url_prefers_highest_quality():
    assert pick_mp4_url({"data": {"480": "low.mp4", "max": "max.mp4"}}) == "max.mp4"
    assert pick_mp4_url({"data": {"360": "360.mp4"}}) == "360.mp4"
    assert pick_mp4_url({"data": {}}) is None
    assert pick_mp4_url(None) is None


def test_game_record_from_legacy_payload():
    record = GameRecord.from_payload(
        {
            "id": "3498",
            "name": "GTA V",
            "description_raw": "Legacy text",
            "factiony_rating": 4.2,
            "metacritic": "Inconnue",
            "screenshots": [f"{i}.jpg" for i in range(10)],
            "videos": None,
            "unknown_field": True,
        }
    )

    assert record.id == 3498
    assert record.description == "Legacy text"
    assert record.community_rating == 4.2
    assert record.metacritic is None
    assert len(record.screenshots) == 6
    assert record.videos == {"trailers": [], "gameplay": []}
    assert GameRecord.from_payload(None) is None


def test_game_record_minimal_projection():
    record = GameRecord(id=1, name="X", description="long", screenshots=["a.jpg"], metacritic=90.0)
    minimal = record.minimal()
    assert minimal.id == 1
    assert minimal.metacritic == 90.0
    assert minimal.description is None
    assert minimal.screenshots == []
