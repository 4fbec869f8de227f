import logging
from typing import Any

import aiohttp

from .constants import MAX_YOUTUBE_RESULTS
from .network import request_json

logger = logging.getLogger(__name__)


class YouTubeAPIManager:
    """
    Last-resort trailer search. Only used when the catalog providers have no
    playable clip at all for a game.
    """

    BASE_URL = "https://www.googleapis.com/youtube/v3"
    PROVIDER = "YouTube"

    def __init__(self, session: aiohttp.ClientSession, api_key: str | None):
        self.session = session
        self.api_key = api_key

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def search_trailers(self, game_name: str, limit: int = MAX_YOUTUBE_RESULTS) -> list[dict[str, Any]]:
        """
        Searches "<name> official trailer" and keeps embeddable videos only,
        in relevance order.
        """
        if not self.enabled or not game_name:
            return []

        search = await request_json(
            self.session,
            "GET",
            f"{self.BASE_URL}/search",
            self.PROVIDER,
            identifier=game_name,
            params={
                "part": "snippet",
                "q": f"{game_name} official trailer",
                "type": "video",
                "videoEmbeddable": "true",
                "safeSearch": "none",
                "order": "relevance",
                "maxResults": 10,
                "key": self.api_key,
            },
        )
        video_ids = [item.get("id", {}).get("videoId") for item in (search or {}).get("items", [])]
        video_ids = [v for v in video_ids if v]
        if not video_ids:
            logger.debug(f"YouTube search returned nothing for '{game_name}'")
            return []

        details = await request_json(
            self.session,
            "GET",
            f"{self.BASE_URL}/videos",
            self.PROVIDER,
            identifier=game_name,
            params={"part": "status,snippet", "id": ",".join(video_ids), "key": self.api_key},
        )

        trailers = []
        for video in (details or {}).get("items", []):
            if len(trailers) >= limit:
                break
            if not (video.get("status") or {}).get("embeddable"):
                continue
            video_id = video.get("id")
            if not video_id:
                continue

            snippet = video.get("snippet") or {}
            thumbnails = snippet.get("thumbnails") or {}
            thumbnail = (thumbnails.get("high") or thumbnails.get("default") or {}).get("url")
            trailers.append(
                {
                    "title": snippet.get("title") or "Video",
                    "provider": "youtube",
                    "video_id": video_id,
                    "url": f"https://www.youtube.com/watch?v={video_id}",
                    "thumbnail": thumbnail,
                    "score": 0,
                }
            )

        logger.debug(f"YouTube fallback for '{game_name}': {len(trailers)} embeddable video(s)")
        return trailers
