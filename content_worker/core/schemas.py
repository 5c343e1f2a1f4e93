from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from content_worker.core.config import settings

ContentType = Literal["factual", "news", "opinion", "experience", "question", "humor", "other"]
ClaimType = Literal["fact", "opinion", "experience"]
ClaimDomain = Literal["health", "finance", "politics", "technology", "science", "society", "general"]
RiskLevel = Literal["low", "medium", "high"]
Verdict = Literal["true", "false", "mixed", "unknown"]
FactCheckStatus = Literal["clean", "needs_review", "blocked"]
PipelineStatus = Literal["pending", "processing", "completed", "failed"]
SideEffectType = Literal["reputation_update", "author_score_update"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ContentItem(BaseModel):
    id: str
    author_id: str
    text: str = ""
    image_url: Optional[str] = None
    topic: str = "general"
    created_at: datetime = Field(default_factory=utcnow)
    parent_content_id: Optional[str] = None

    @property
    def has_text(self) -> bool:
        return bool(self.text and self.text.strip())

    @property
    def has_image(self) -> bool:
        return bool(self.image_url and self.image_url.strip())

    @property
    def is_reply(self) -> bool:
        return bool(self.parent_content_id)


class PreCheckResult(BaseModel):
    needs_fact_check: bool
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""
    content_type: ContentType = "other"
    risk_score: Optional[float] = None
    signals: List[str] = Field(default_factory=list)


class Evidence(BaseModel):
    source: str
    url: Optional[str] = None
    snippet: str
    quality: float = Field(ge=0.0, le=1.0)


class Claim(BaseModel):
    model_config = {"frozen": True}

    id: str
    text: str = Field(min_length=1, max_length=240)
    type: ClaimType = "fact"
    domain: ClaimDomain = "general"
    risk_level: RiskLevel = "low"
    confidence: float = Field(ge=0.0, le=1.0)
    evidence: Optional[List[Evidence]] = None
    extracted_at: datetime = Field(default_factory=utcnow)

    @field_validator("text")
    @classmethod
    def _text_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("claim text must not be blank")
        return value


class FactCheck(BaseModel):
    id: str
    claim_id: str
    verdict: Verdict
    confidence: float = Field(ge=0.0, le=1.0)
    evidence: List[Evidence] = Field(default_factory=list)
    caveats: List[str] = Field(default_factory=list)
    checked_at: datetime = Field(default_factory=utcnow)


class ValueVector(BaseModel):
    epistemic: float = Field(ge=0.0, le=1.0)
    insight: float = Field(ge=0.0, le=1.0)
    practical: float = Field(ge=0.0, le=1.0)
    relational: float = Field(ge=0.0, le=1.0)
    effort: float = Field(ge=0.0, le=1.0)


class ValueScore(ValueVector):
    total: float = Field(ge=0.0, le=1.0)
    confidence: float = Field(ge=0.0, le=1.0)
    drivers: List[str] = Field(default_factory=list)
    updated_at: datetime = Field(default_factory=utcnow)


class PredictedEngagement(BaseModel):
    expected_views_7d: int
    expected_bookmarks_7d: int
    expected_reshares_7d: int
    expected_replies_7d: int
    predicted_at: datetime = Field(default_factory=utcnow)


class PipelineErrorInfo(BaseModel):
    step: str
    message: str
    is_retryable: bool


class PipelineResult(BaseModel):
    success: bool
    status: Literal["completed", "failed"]
    pre_check: Optional[PreCheckResult] = None
    claims: List[Claim] = Field(default_factory=list)
    fact_checks: List[FactCheck] = Field(default_factory=list)
    fact_check_status: FactCheckStatus = "clean"
    value_score: Optional[ValueScore] = None
    processed_at: datetime = Field(default_factory=utcnow)
    duration_ms: int = 0
    steps_completed: List[str] = Field(default_factory=list)
    error: Optional[PipelineErrorInfo] = None


class PipelineOptions(BaseModel):
    """Per-run options; unset values come from PIPELINE_MAX_RETRIES / PIPELINE_TIMEOUT_MS."""

    max_retries: int = Field(default_factory=lambda: settings.PIPELINE_MAX_RETRIES)
    timeout_ms: int = Field(default_factory=lambda: settings.PIPELINE_TIMEOUT_MS)
    skip_value_scoring: bool = False


class SideEffectJob(BaseModel):
    type: SideEffectType
    user_id: str
    content_id: str
    content_type: Literal["post", "reply"]
    data: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def dedupe_key(self) -> str:
        """Stable key consumers use to ignore redelivered jobs."""
        return f"{self.type}:{self.content_id}:{self.data.get('processed_at', '')}"


class ContentJob(BaseModel):
    job_id: str
    attempt: int = 0
    content: ContentItem
    parent: Optional[ContentItem] = None
    skip_precheck: bool = False
    options: PipelineOptions = Field(default_factory=PipelineOptions)


class ContentJobResult(BaseModel):
    job_id: str
    content_id: str
    attempt: int = 0
    result: PipelineResult


class ProcessContentRequest(BaseModel):
    content: ContentItem
    parent: Optional[ContentItem] = None
    skip_precheck: bool = False
    options: Optional[PipelineOptions] = None
