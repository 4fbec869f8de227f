import logging
import re

import aiohttp

from .exceptions import FactionyException
from .network import request_json
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

MAX_QUERY_LENGTH = 500
CHUNK_REGEX = re.compile(r".{1,400}(?:\s|$)|.{1,400}", re.DOTALL)


class TranslateAPIManager:
    """
    Machine translation through the MyMemory API.

    Translation is best effort: any failure returns the source text, and a
    chunk that cannot be translated is kept as-is.
    """

    BASE_URL = "https://api.mymemory.translated.net/get"
    PROVIDER = "MyMemory"

    def __init__(self, session: aiohttp.ClientSession):
        self.session = session
        self.rate_limiter = RateLimiter(calls_per_second=3.0)
        self._memo: dict[tuple[str, str, str], str] = {}

    async def _translate_chunk(self, text: str, source: str, target: str) -> str:
        await self.rate_limiter.acquire()
        try:
            data = await request_json(
                self.session,
                "GET",
                self.BASE_URL,
                self.PROVIDER,
                params={"q": text, "langpair": f"{source}|{target}"},
            )
        except FactionyException as e:
            logger.warning(f"Translation chunk failed ({source}->{target}): {e}")
            return text
        translated = ((data or {}).get("responseData") or {}).get("translatedText")
        return translated or text

    async def translate(self, text: str | None, source: str = "en", target: str = "fr") -> str | None:
        if not text or source == target:
            return text

        memo_key = (text, source, target)
        if memo_key in self._memo:
            return self._memo[memo_key]

        if len(text) <= MAX_QUERY_LENGTH:
            translated = await self._translate_chunk(text, source, target)
        else:
            parts = []
            for line in text.split("\n"):
                if not line.strip():
                    parts.append("")
                    continue
                chunks = [c.strip() for c in CHUNK_REGEX.findall(line.strip()) if c.strip()]
                translated_chunks = [await self._translate_chunk(c, source, target) for c in chunks]
                parts.append(" ".join(translated_chunks))
            translated = "\n".join(parts)

        if translated != text:
            self._memo[memo_key] = translated
        return translated
