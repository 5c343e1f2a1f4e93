"""
LLM Service Factory

One GroqService per process; its HTTP connection pool is shared by all runs.
Returns None when no credentials are configured so stages can take their
"unavailable" path instead of failing.
"""

from typing import Optional

from content_worker.core.logger import get_logger
from content_worker.services.llms.groq_service import GroqService

logger = get_logger(__name__)

_groq_service: GroqService | None = None


def get_llm_service() -> Optional[GroqService]:
    """Get or create the Groq service instance, or None when unconfigured."""
    global _groq_service
    if _groq_service is not None:
        return _groq_service

    if not GroqService.is_available():
        logger.warning("[LLM Factory] GROQ_API_KEY not configured; LLM-backed stages will use fallbacks")
        return None

    _groq_service = GroqService()
    logger.info("[LLM Factory] Groq service initialized")
    return _groq_service


def reset_llm_service() -> None:
    global _groq_service
    _groq_service = None
