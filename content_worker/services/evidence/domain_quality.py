"""
Source-quality scoring for evidence URLs.

Quality is display/diagnostic metadata only; the policy decision never reads it.
"""

from typing import Optional

from content_worker.constants.config import (
    BLOCKED_DOMAINS,
    EVIDENCE_QUALITY_DEFAULT,
    EVIDENCE_QUALITY_EDU_GOV,
    EVIDENCE_QUALITY_NO_URL,
    EVIDENCE_QUALITY_ORG,
    EVIDENCE_QUALITY_TRUSTED,
    TRUSTED_DOMAINS,
)
from content_worker.services.common.url_helpers import extract_domain


def _matches(domain: str, candidates) -> bool:
    return any(domain == c or domain.endswith("." + c) for c in candidates)


def is_trusted_domain(url: str) -> bool:
    domain = extract_domain(url)
    return bool(domain) and _matches(domain, TRUSTED_DOMAINS)


def is_blocked_domain(url: str) -> bool:
    domain = extract_domain(url)
    return bool(domain) and _matches(domain, BLOCKED_DOMAINS)


def score_evidence_url(url: Optional[str]) -> float:
    if not url:
        return EVIDENCE_QUALITY_NO_URL
    domain = extract_domain(url)
    if not domain:
        return EVIDENCE_QUALITY_NO_URL
    if _matches(domain, BLOCKED_DOMAINS):
        return 0.0
    if _matches(domain, TRUSTED_DOMAINS):
        return EVIDENCE_QUALITY_TRUSTED
    if domain.endswith(".gov") or domain.endswith(".edu"):
        return EVIDENCE_QUALITY_EDU_GOV
    if domain.endswith(".org"):
        return EVIDENCE_QUALITY_ORG
    return EVIDENCE_QUALITY_DEFAULT
