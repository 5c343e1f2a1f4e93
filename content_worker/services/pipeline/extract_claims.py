import re
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from content_worker.constants.config import (
    CLAIM_MAX_LENGTH,
    HEURISTIC_CLAIM_CONFIDENCE,
    HEURISTIC_IMAGE_CLAIM_CONFIDENCE,
    HEURISTIC_MAX_CLAIMS,
    HEURISTIC_MIN_SENTENCE_LENGTH,
)
from content_worker.constants.llm_prompts import (
    CLAIM_EXTRACTION_SCHEMA,
    CLAIM_EXTRACTION_STRICT_SUFFIX,
    CLAIM_EXTRACTION_SYSTEM_PROMPT,
)
from content_worker.core.errors import AuthenticationError, ClaimValidationError
from content_worker.core.logger import get_logger
from content_worker.core.schemas import Claim, ContentItem, Evidence, utcnow
from content_worker.services.common.text_cleaner import clean_statement, extract_sentences

logger = get_logger(__name__)

_RISKY_SENTENCE = re.compile(r"health|medical|finance|money|investment|politic|election", re.IGNORECASE)
_CLAIM_TYPES = {"fact", "opinion", "experience"}
_CLAIM_DOMAINS = {"health", "finance", "politics", "technology", "science", "society", "general"}
_RISK_LEVELS = {"low", "medium", "high"}


def ensure_claim_id(content_id: str, candidate_id: Any, index: int) -> str:
    candidate = str(candidate_id).strip() if candidate_id is not None else ""
    if candidate:
        return f"{content_id}-{candidate}"
    return f"{content_id}-claim-{index + 1}"


def _normalize_choice(value: Any, allowed: set, default: str) -> str:
    v = str(value or "").strip().lower()
    return v if v in allowed else default


def _to_float(value: Any, default: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number:
        return default
    return max(0.0, min(1.0, number))


def _normalize_evidence(raw: Any) -> Optional[List[Evidence]]:
    if not isinstance(raw, list):
        return None
    items: List[Evidence] = []
    for item in raw:
        if not isinstance(item, dict) or not (item.get("source") or item.get("snippet")):
            continue
        items.append(
            Evidence(
                source=str(item.get("source") or "unknown"),
                url=item.get("url") or None,
                snippet=str(item.get("snippet") or ""),
                quality=_to_float(item.get("quality"), 0.5),
            )
        )
    return items


def to_claim(content_id: str, raw: Dict[str, Any], index: int) -> Claim:
    """
    Build a Claim from one model-produced candidate.

    Unknown labels fall back to fact/general/low. Raises ClaimValidationError
    when the candidate cannot form a valid claim.
    """
    if not isinstance(raw, dict):
        raise ClaimValidationError("claim candidate is not an object", raw_claim=raw)

    text = clean_statement(str(raw.get("text") or ""))
    if len(text) > CLAIM_MAX_LENGTH:
        text = text[: CLAIM_MAX_LENGTH - 3].rstrip() + "..."

    try:
        return Claim(
            id=ensure_claim_id(content_id, raw.get("id"), index),
            text=text,
            type=_normalize_choice(raw.get("type"), _CLAIM_TYPES, "fact"),
            domain=_normalize_choice(raw.get("domain"), _CLAIM_DOMAINS, "general"),
            risk_level=_normalize_choice(raw.get("riskLevel") or raw.get("risk_level"), _RISK_LEVELS, "low"),
            confidence=_to_float(raw.get("confidence"), 0.0),
            evidence=_normalize_evidence(raw.get("evidence")),
        )
    except ValidationError as e:
        raise ClaimValidationError(f"invalid claim: {e.errors()[0].get('msg')}", raw_claim=raw) from e


def heuristic_claims(content: ContentItem) -> List[Claim]:
    """Sentence-split fallback used when the extractor is unavailable or returned nothing usable."""
    if not content.has_text and not content.has_image:
        return []

    if not content.has_text:
        return [
            Claim(
                id=f"{content.id}-heuristic-image",
                text="Image content requires analysis",
                type="fact",
                domain="general",
                risk_level="medium",
                confidence=HEURISTIC_IMAGE_CLAIM_CONFIDENCE,
            )
        ]

    sentences = extract_sentences(content.text, min_length=HEURISTIC_MIN_SENTENCE_LENGTH)
    now = utcnow()
    claims = []
    for i, sentence in enumerate(sentences[:HEURISTIC_MAX_CLAIMS]):
        claims.append(
            Claim(
                id=f"{content.id}-heuristic-{i + 1}",
                text=sentence[:CLAIM_MAX_LENGTH],
                type="experience" if ("I " in sentence or "my " in sentence) else "fact",
                domain="general",
                risk_level="medium" if _RISKY_SENTENCE.search(sentence) else "low",
                confidence=HEURISTIC_CLAIM_CONFIDENCE,
                extracted_at=now,
            )
        )
    return claims


class ClaimExtractionStage:
    """
    Extracts atomic, verifiable claims from a content item.

    Replies are extracted together with their parent (quoted) content. The
    vision model is used whenever the item or its parent carries an image.
    Extraction never fails on a bad model answer: it re-asks once with a
    strict prompt and then falls back to sentence heuristics. Only an
    AuthenticationError escapes.
    """

    def __init__(self, llm=None) -> None:
        self.llm = llm

    def _build_prompt(self, content: ContentItem, parent: Optional[ContentItem]) -> str:
        has_parent_text = bool(parent and parent.has_text)
        has_parent_image = bool(parent and parent.has_image)

        prompt = f"Post ID: {content.id}\nAuthor: {content.author_id}\nTopic: {content.topic}"

        if parent is not None and (has_parent_text or has_parent_image):
            quoted = f'"""{parent.text}"""' if has_parent_text else "(image only)"
            prompt += (
                "\n\nThis post replies to or quotes another post. Extract claims from BOTH the "
                f"user's new text AND the original post's text.\n\nORIGINAL POST:\n{quoted}"
            )
            if content.has_text:
                prompt += f'\n\nUSER\'S NEW TEXT:\n"""\n{content.text}\n"""'
        elif content.has_text:
            prompt += f'\n\nText:\n"""\n{content.text}\n"""'

        if content.has_image:
            if content.has_text or has_parent_text:
                prompt += (
                    "\n\nAn image is attached to this post. Extract claims from BOTH the text above "
                    "AND any text/claims visible in the image."
                )
            else:
                prompt += (
                    "\n\nThis post contains only an image. Read ALL text in the image (including any "
                    "overlays, captions, memes, infographics, or embedded text) and extract all "
                    "verifiable claims from it."
                )
        elif has_parent_image:
            prompt += "\n\nThe original post contains an image. Extract claims from any text visible in it."

        prompt += "\n\nExtract claims following the schema. Ignore emojis or filler text."
        return prompt

    async def _ask(
        self, content: ContentItem, prompt: str, image_url: Optional[str], strict: bool
    ) -> List[Claim]:
        system_prompt = CLAIM_EXTRACTION_SYSTEM_PROMPT
        if strict:
            system_prompt += CLAIM_EXTRACTION_STRICT_SUFFIX
            prompt += CLAIM_EXTRACTION_STRICT_SUFFIX

        if image_url:
            response = await self.llm.generate_json_with_vision(
                prompt, image_url, system_prompt, CLAIM_EXTRACTION_SCHEMA
            )
        else:
            response = await self.llm.generate_json(prompt, system_prompt, CLAIM_EXTRACTION_SCHEMA)

        raw_claims = response.get("claims") if isinstance(response, dict) else response
        if not isinstance(raw_claims, list) or not raw_claims:
            return []

        candidates = [c for c in raw_claims if isinstance(c, dict) and str(c.get("text") or "").strip()]
        claims: List[Claim] = []
        for index, candidate in enumerate(candidates):
            try:
                claims.append(to_claim(content.id, candidate, index))
            except ClaimValidationError as e:
                logger.warning(f"[ClaimExtraction] Dropping malformed claim for {content.id}: {e}")

        if not claims:
            logger.warning(
                f"[ClaimExtraction] Model returned {len(raw_claims)} candidates for {content.id}, none usable"
            )
        return claims

    async def run(self, content: ContentItem, parent: Optional[ContentItem] = None) -> List[Claim]:
        has_parent = bool(parent and (parent.has_text or parent.has_image))
        if not content.has_text and not content.has_image and not has_parent:
            return []

        if self.llm is None:
            logger.warning(f"[ClaimExtraction] LLM unavailable, using heuristic extraction for {content.id}")
            return heuristic_claims(content)

        prompt = self._build_prompt(content, parent)
        image_url = content.image_url if content.has_image else None
        if image_url is None and has_parent and parent.has_image:
            image_url = parent.image_url

        try:
            claims = await self._ask(content, prompt, image_url, strict=False)
            if not claims:
                logger.warning(f"[ClaimExtraction] Retrying extraction with strict prompt for {content.id}")
                claims = await self._ask(content, prompt, image_url, strict=True)
        except AuthenticationError:
            raise
        except Exception as e:
            logger.error(f"[ClaimExtraction] Extraction failed for {content.id}, using heuristics: {e}")
            return heuristic_claims(content)

        if not claims:
            logger.warning(f"[ClaimExtraction] No claims after strict retry for {content.id}, using heuristics")
            return heuristic_claims(content)

        claims = [c for c in claims if c.text.strip()]
        logger.info(f"[ClaimExtraction] Extracted {len(claims)} claims for {content.id}")
        return claims
