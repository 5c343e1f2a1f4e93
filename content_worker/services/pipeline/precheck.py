import re
from typing import List, Optional

from content_worker.constants.config import (
    HIGH_RISK_KEYWORDS,
    HIGH_RISK_TOPICS,
    PRECHECK_DEFAULT_CONFIDENCE,
    PRECHECK_ERROR_CONFIDENCE,
    PRECHECK_UNAVAILABLE_CONFIDENCE,
)
from content_worker.constants.llm_prompts import PRECHECK_SCHEMA, PRECHECK_SYSTEM_PROMPT
from content_worker.core.errors import AuthenticationError
from content_worker.core.logger import get_logger
from content_worker.core.schemas import ContentItem, PreCheckResult

logger = get_logger(__name__)

STAT_INDICATORS = (
    re.compile(r"\d+%"),
    re.compile(r"\d+ out of \d+"),
    re.compile(r"\d{4}"),
    re.compile(r"\b(million|billion|trillion)\b", re.IGNORECASE),
)
AUTHORITY_INDICATORS = (
    re.compile(r"according to", re.IGNORECASE),
    re.compile(r"study shows", re.IGNORECASE),
    re.compile(r"research indicates", re.IGNORECASE),
    re.compile(r"experts? (say|claim)", re.IGNORECASE),
    re.compile(r"scientists", re.IGNORECASE),
    re.compile(r"doctors", re.IGNORECASE),
)
OPINION_INDICATORS = (
    re.compile(r"^i think", re.IGNORECASE),
    re.compile(r"^i believe", re.IGNORECASE),
    re.compile(r"^in my opinion", re.IGNORECASE),
    re.compile(r"^i feel", re.IGNORECASE),
    re.compile(r"just my opinion", re.IGNORECASE),
    re.compile(r"personally", re.IGNORECASE),
)
LONG_TEXT_WORDS = 25

_CONTENT_TYPES = {"factual", "news", "opinion", "experience", "question", "humor", "other"}


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def _any_pattern(text: str, patterns) -> bool:
    return any(p.search(text) for p in patterns)


def _any_keyword(text: str, keywords) -> bool:
    return any(kw and kw in text for kw in keywords)


def calculate_content_risk_score(text: str, topic: str = "", image_url: Optional[str] = None) -> float:
    """
    Deterministic risk estimate in [0, 1] from cheap lexical cues.

    Base 0.1; a risky topic adds 0.35, statistics 0.2, authority cues 0.15,
    risky keywords 0.2, long text 0.1, an image 0.05; very short text takes 0.05 off.
    """
    raw = text or ""
    lowered = raw.lower()
    score = 0.1

    if _any_keyword((topic or "").lower(), HIGH_RISK_TOPICS):
        score += 0.35
    if _any_pattern(lowered, STAT_INDICATORS):
        score += 0.2
    if _any_pattern(lowered, AUTHORITY_INDICATORS):
        score += 0.15
    if _any_keyword(lowered, HIGH_RISK_KEYWORDS):
        score += 0.2

    if len(raw) > 200:
        score += 0.1
    if len(raw) < 40:
        score -= 0.05
    if image_url and image_url.strip():
        score += 0.05

    return round(_clamp01(score), 4)


def detect_signals(text: str, topic: str = "", image_url: Optional[str] = None) -> List[str]:
    lowered = (text or "").lower()
    signals: List[str] = []

    if _any_pattern(lowered, STAT_INDICATORS):
        signals.append("stats_or_numbers")
    if _any_pattern(lowered, AUTHORITY_INDICATORS):
        signals.append("authority_cue")
    if _any_keyword(lowered, HIGH_RISK_KEYWORDS):
        signals.append("high_risk_keywords")
    if _any_keyword((topic or "").lower(), HIGH_RISK_TOPICS):
        signals.append("high_risk_topic")
    if image_url and image_url.strip():
        signals.append("has_image")
    if _any_pattern(lowered, OPINION_INDICATORS):
        signals.append("opinion_marker")
    if len(lowered.split()) >= LONG_TEXT_WORDS:
        signals.append("long_text")

    return signals


class PrecheckStage:
    """
    Cheap classifier that decides whether a content item needs verification.

    Every ambiguous path answers needs_fact_check=True: a skipped check that
    was needed costs more than an unnecessary one.
    """

    def __init__(self, llm=None) -> None:
        self.llm = llm

    def _build_prompt(self, content: ContentItem, signals: List[str]) -> str:
        prompt = f"Content ID: {content.id}\nAuthor: {content.author_id}"
        if content.topic:
            prompt += f"\nTopic: {content.topic}"
        if signals:
            prompt += f"\nSignals: {', '.join(signals)}"
        if content.has_text:
            prompt += f'\n\nText:\n"""\n{content.text}\n"""'
        if content.has_image:
            prompt += "\n\n(Image attached - analyze any text/claims visible in the image)"
        prompt += "\n\nClassify and decide if fact-checking is needed."
        return prompt

    async def run(self, content: ContentItem) -> PreCheckResult:
        if not content.has_text and not content.has_image:
            return PreCheckResult(
                needs_fact_check=False,
                confidence=1.0,
                reasoning="No content to analyze",
                content_type="other",
                risk_score=0.0,
            )

        risk_score = calculate_content_risk_score(content.text, content.topic, content.image_url)
        signals = detect_signals(content.text, content.topic, content.image_url)

        if self.llm is None:
            logger.warning(f"[PreCheck] LLM unavailable for {content.id}, defaulting to fact-check")
            return PreCheckResult(
                needs_fact_check=True,
                confidence=PRECHECK_UNAVAILABLE_CONFIDENCE,
                reasoning="AI unavailable, defaulting to fact-check",
                risk_score=risk_score,
                signals=signals,
            )

        prompt = self._build_prompt(content, signals)
        try:
            if content.has_image:
                response = await self.llm.generate_json_with_vision(
                    prompt, content.image_url, PRECHECK_SYSTEM_PROMPT, PRECHECK_SCHEMA
                )
            else:
                response = await self.llm.generate_json(prompt, PRECHECK_SYSTEM_PROMPT, PRECHECK_SCHEMA)
        except AuthenticationError:
            raise
        except Exception as e:
            logger.error(f"[PreCheck] Failed for {content.id}, defaulting to fact-check: {e}")
            return PreCheckResult(
                needs_fact_check=True,
                confidence=PRECHECK_ERROR_CONFIDENCE,
                reasoning=f"Pre-check failed: {e}",
                risk_score=risk_score,
                signals=signals,
            )

        if not isinstance(response, dict):
            response = {}

        try:
            confidence = float(response.get("confidence"))
        except (TypeError, ValueError):
            confidence = PRECHECK_DEFAULT_CONFIDENCE
        if confidence != confidence or confidence == 0.0:
            confidence = PRECHECK_DEFAULT_CONFIDENCE

        # Anything but a real boolean decision counts as "check it"
        decision = response.get("needsFactCheck")
        needs_fact_check = decision if isinstance(decision, bool) else True

        content_type = str(response.get("contentType") or "other").lower()
        result = PreCheckResult(
            needs_fact_check=needs_fact_check,
            confidence=_clamp01(confidence),
            reasoning=str(response.get("reasoning") or "No reasoning provided"),
            content_type=content_type if content_type in _CONTENT_TYPES else "other",
            risk_score=risk_score,
            signals=signals,
        )
        logger.info(
            f"[PreCheck] {content.id}: needs_fact_check={result.needs_fact_check} "
            f"type={result.content_type} confidence={result.confidence:.2f}"
        )
        return result
