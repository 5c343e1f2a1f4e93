import asyncio
from typing import List, Optional

import aiohttp

from content_worker.constants.config import (
    GOOGLE_CSE_MAX_CALLS_PER_SECOND,
    GOOGLE_CSE_SEARCH_URL,
    GOOGLE_CSE_TIMEOUT,
    MAX_RETRIEVED_EVIDENCE,
)
from content_worker.core.config import settings
from content_worker.core.logger import get_logger
from content_worker.core.rate_limit import AsyncRateLimiter
from content_worker.core.schemas import Evidence
from content_worker.services.common.url_helpers import extract_domain
from content_worker.services.evidence.domain_quality import score_evidence_url

logger = get_logger(__name__)


class EvidenceSearch:
    """
    Google Custom Search (CSE) lookup that turns search hits into Evidence.

    Search failures never propagate: a claim without retrieved evidence is
    still judged by the model.
    """

    SEARCH_URL = GOOGLE_CSE_SEARCH_URL

    def __init__(self, api_key: Optional[str] = None, cse_id: Optional[str] = None) -> None:
        self.api_key = api_key or settings.GOOGLE_API_KEY
        self.cse_id = cse_id or settings.GOOGLE_CSE_ID
        if not self.api_key or not self.cse_id:
            raise RuntimeError("Missing GOOGLE_API_KEY or GOOGLE_CSE_ID")
        self.limiter = AsyncRateLimiter(max_calls=GOOGLE_CSE_MAX_CALLS_PER_SECOND, period=1)

    @staticmethod
    def is_configured() -> bool:
        return bool(settings.VERIFY_WEB_SEARCH and settings.GOOGLE_API_KEY and settings.GOOGLE_CSE_ID)

    def _to_evidence(self, item: dict) -> Optional[Evidence]:
        link = item.get("link")
        snippet = (item.get("snippet") or item.get("title") or "").strip()
        if not link or not snippet:
            return None
        quality = score_evidence_url(link)
        if quality <= 0.0:
            return None
        source = item.get("displayLink") or extract_domain(link) or link
        return Evidence(source=source, url=link, snippet=snippet, quality=quality)

    async def search(
        self,
        query: str,
        session: Optional[aiohttp.ClientSession] = None,
        limit: int = MAX_RETRIEVED_EVIDENCE,
    ) -> List[Evidence]:
        params = {"key": self.api_key, "cx": self.cse_id, "q": query, "num": str(min(limit, 10))}
        owns_session = session is None
        session = session or aiohttp.ClientSession()
        try:
            await self.limiter.acquire()
            async with session.get(
                self.SEARCH_URL, params=params, timeout=aiohttp.ClientTimeout(total=GOOGLE_CSE_TIMEOUT)
            ) as resp:
                if resp.status != 200:
                    logger.warning(f"[EvidenceSearch] CSE returned HTTP {resp.status} for query='{query[:80]}'")
                    return []
                data = await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"[EvidenceSearch] Google search failed for query='{query[:80]}': {e}")
            return []
        finally:
            if owns_session:
                await session.close()

        evidence = [ev for ev in (self._to_evidence(item) for item in data.get("items", [])) if ev]
        evidence.sort(key=lambda ev: ev.quality, reverse=True)
        logger.info(f"[EvidenceSearch] {len(evidence)} evidence items for query='{query[:80]}'")
        return evidence[:limit]
