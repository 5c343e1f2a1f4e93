from typing import Any, List, Optional

import aiohttp

from content_worker.constants.config import (
    DEFAULT_VERDICT_CONFIDENCE,
    EVIDENCE_MIN_QUALITY,
    FALLBACK_FACT_CHECK_CONFIDENCE,
    MAX_RETRIEVED_EVIDENCE,
)
from content_worker.constants.llm_prompts import FACT_CHECK_SCHEMA, FACT_CHECK_SYSTEM_PROMPT
from content_worker.core.errors import AuthenticationError
from content_worker.core.logger import get_logger
from content_worker.core.schemas import Claim, ContentItem, Evidence, FactCheck
from content_worker.services.common.url_helpers import find_url
from content_worker.services.evidence.domain_quality import score_evidence_url

logger = get_logger(__name__)

_VERDICTS = {"true", "false", "mixed", "unknown"}
FALLBACK_CAVEAT = "Automatic fallback: unable to verify claim"


def fallback_fact_check(claim: Claim, caveat: str = FALLBACK_CAVEAT) -> FactCheck:
    return FactCheck(
        id=f"{claim.id}-fallback",
        claim_id=claim.id,
        verdict="unknown",
        confidence=FALLBACK_FACT_CHECK_CONFIDENCE,
        evidence=[],
        caveats=[caveat],
    )


def sanitize_verdict(value: Any) -> str:
    verdict = str(value or "").strip().lower()
    return verdict if verdict in _VERDICTS else "unknown"


def _clamp_confidence(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return DEFAULT_VERDICT_CONFIDENCE
    if number != number or number == 0.0:
        return DEFAULT_VERDICT_CONFIDENCE
    return max(0.0, min(1.0, number))


def normalize_evidence(raw: Any) -> List[Evidence]:
    """
    Normalize model-cited evidence.

    Accepts plain strings (a markdown link or bare URL is pulled out of the
    text) and objects with url/snippet/description. Quality is derived from the
    source domain unless the model supplied one; items at or below the minimum
    quality are dropped.
    """
    if not isinstance(raw, list):
        return []

    items: List[Evidence] = []
    for item in raw:
        if isinstance(item, str):
            if not item.strip():
                continue
            _, url = find_url(item)
            items.append(
                Evidence(
                    source="Web Search",
                    url=url,
                    snippet=item.strip(),
                    quality=score_evidence_url(url) if url else 0.5,
                )
            )
        elif isinstance(item, dict):
            text = str(item.get("snippet") or item.get("description") or "")
            url = item.get("url") or find_url(text)[1]
            quality = item.get("quality")
            try:
                quality = float(quality) if quality is not None else None
            except (TypeError, ValueError):
                quality = None
            if quality is None or quality != quality:
                quality = score_evidence_url(url) if url else 0.5
            items.append(
                Evidence(
                    source=str(item.get("source") or "Web Search"),
                    url=url or None,
                    snippet=text or str(item.get("source") or ""),
                    quality=max(0.0, min(1.0, quality)),
                )
            )

    return [ev for ev in items if ev.quality > EVIDENCE_MIN_QUALITY]


class ClaimVerificationStage:
    """
    Produces exactly one FactCheck per claim, in claim order.

    A claim that cannot be verified gets an `unknown` fallback verdict rather
    than being omitted. Credential failures propagate and stop the run.
    """

    def __init__(self, llm=None, search=None) -> None:
        self.llm = llm
        self.search = search

    def _build_prompt(self, content: ContentItem, claim: Claim, retrieved: List[Evidence]) -> str:
        prompt = (
            "You are a senior fact-checking analyst. Evaluate the following claim that appeared on a social platform."
            f"\n\nPost Context:\n- Post ID: {content.id}\n- Author ID: {content.author_id}\n- Topic: {content.topic}"
        )
        if content.has_text:
            prompt += f'\n- Post text: """{content.text}"""'
        if content.has_image:
            prompt += f"\n- An image is attached to this post (image URL: {content.image_url})."
            prompt += " The claim may have been extracted from text visible in the image."

        prompt += f'\n\nClaim to verify: "{claim.text}"'

        if retrieved:
            prompt += "\n\nWeb search results:"
            for i, ev in enumerate(retrieved, start=1):
                prompt += f"\n[{i}] {ev.source} ({ev.url}): {ev.snippet}"

        prompt += (
            "\n\nInstructions:"
            "\n- Use the search results and your knowledge to make a definitive verdict (true/false/mixed/unknown)."
            "\n- Cite specific credible sources with URLs."
            "\n- Provide high confidence (0.7+) when sources clearly support or contradict the claim."
            '\n- Only use "unknown" with low confidence (0.3-0.5) if no relevant information is found.'
        )
        return prompt

    async def _retrieve(self, claim: Claim, session: Optional[aiohttp.ClientSession]) -> List[Evidence]:
        if self.search is None:
            return []
        return await self.search.search(claim.text, session=session, limit=MAX_RETRIEVED_EVIDENCE)

    async def _check(
        self, content: ContentItem, claim: Claim, session: Optional[aiohttp.ClientSession]
    ) -> FactCheck:
        retrieved = await self._retrieve(claim, session)
        response = await self.llm.generate_json(
            self._build_prompt(content, claim, retrieved), FACT_CHECK_SYSTEM_PROMPT, FACT_CHECK_SCHEMA
        )
        if not isinstance(response, dict):
            response = {}

        evidence = normalize_evidence(response.get("evidence"))
        if retrieved and not any(ev.url for ev in evidence):
            evidence.extend(ev for ev in retrieved if ev.quality > EVIDENCE_MIN_QUALITY)

        caveats = response.get("caveats")
        return FactCheck(
            id=f"{claim.id}-fact-check",
            claim_id=claim.id,
            verdict=sanitize_verdict(response.get("verdict")),
            confidence=_clamp_confidence(response.get("confidence")),
            evidence=evidence,
            caveats=[c.strip() for c in caveats if isinstance(c, str) and c.strip()] if isinstance(caveats, list) else [],
        )

    async def run(self, content: ContentItem, claims: List[Claim]) -> List[FactCheck]:
        if not claims:
            return []

        if self.llm is None:
            logger.warning(f"[ClaimVerification] LLM unavailable, using fallback fact-checks for {content.id}")
            return [fallback_fact_check(claim) for claim in claims]

        results: List[FactCheck] = []
        session = aiohttp.ClientSession() if self.search is not None else None
        try:
            for claim in claims:
                try:
                    results.append(await self._check(content, claim, session))
                except AuthenticationError:
                    raise
                except Exception as e:
                    logger.error(f"[ClaimVerification] Fact-check failed for claim {claim.id}: {e}")
                    results.append(fallback_fact_check(claim))
        finally:
            if session is not None:
                await session.close()

        logger.info(
            f"[ClaimVerification] {content.id}: {len(results)} fact-checks, "
            f"verdicts={[fc.verdict for fc in results]}"
        )
        return results
