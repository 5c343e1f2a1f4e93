"""
Pipeline constants.
Fixed safety-policy thresholds, scoring weights and heuristic parameters.
These are policy, not deployment configuration: they do not come from Settings.
"""

# ============================================================================
# PIPELINE STEP NAMES
# ============================================================================

STEP_PRECHECK = "precheck"
STEP_PRECHECK_SKIPPED = "precheck_skipped"
STEP_EXTRACT_CLAIMS = "extract_claims"
STEP_VERIFY_CLAIMS = "verify_claims"
STEP_SCORE_VALUE = "score_value"
STEP_SCORE_VALUE_SKIPPED = "score_value_skipped"
STEP_INIT = "init"
STEP_PERSIST = "persist"

# ============================================================================
# POLICY ENGINE
# ============================================================================

# A single false verdict at or above this confidence blocks the content outright
POLICY_BLOCK_CONFIDENCE = 0.85

# Aggregate thresholds for human review
POLICY_REVIEW_UNKNOWN_COUNT = 2
POLICY_REVIEW_MIXED_COUNT = 2

# ============================================================================
# PRE-CHECK
# ============================================================================

PRECHECK_UNAVAILABLE_CONFIDENCE = 0.5
PRECHECK_ERROR_CONFIDENCE = 0.3
PRECHECK_DEFAULT_CONFIDENCE = 0.5

HIGH_RISK_TOPICS = (
    "health",
    "medical",
    "finance",
    "money",
    "invest",
    "stocks",
    "economy",
    "politics",
    "election",
    "science",
)

HIGH_RISK_KEYWORDS = (
    "vaccine",
    "treatment",
    "cancer",
    "covid",
    "virus",
    "pandemic",
    "inflation",
    "recession",
    "investment",
    "returns",
    "guaranteed",
    "election",
    "vote",
    "fraud",
    "war",
    "nuclear",
)

# ============================================================================
# CLAIM EXTRACTION
# ============================================================================

CLAIM_MAX_LENGTH = 240

HEURISTIC_MAX_CLAIMS = 3
HEURISTIC_MIN_SENTENCE_LENGTH = 8
HEURISTIC_CLAIM_CONFIDENCE = 0.35
HEURISTIC_IMAGE_CLAIM_CONFIDENCE = 0.2

# ============================================================================
# CLAIM VERIFICATION
# ============================================================================

FALLBACK_FACT_CHECK_CONFIDENCE = 0.25
DEFAULT_VERDICT_CONFIDENCE = 0.5
EVIDENCE_MIN_QUALITY = 0.1
MAX_RETRIEVED_EVIDENCE = 5

# Source quality by domain class
EVIDENCE_QUALITY_TRUSTED = 0.95
EVIDENCE_QUALITY_EDU_GOV = 0.85
EVIDENCE_QUALITY_ORG = 0.7
EVIDENCE_QUALITY_DEFAULT = 0.5
EVIDENCE_QUALITY_NO_URL = 0.4

TRUSTED_DOMAINS = {
    "who.int",
    "cdc.gov",
    "nih.gov",
    "fda.gov",
    "worldbank.org",
    "imf.org",
    "reuters.com",
    "apnews.com",
    "nature.com",
    "science.org",
    "ft.com",
    "nytimes.com",
    "theguardian.com",
}

BLOCKED_DOMAINS = {"facebook.com", "reddit.com", "tiktok.com", "instagram.com", "telegram.org"}

GOOGLE_CSE_SEARCH_URL = "https://www.googleapis.com/customsearch/v1"
GOOGLE_CSE_TIMEOUT = 12
GOOGLE_CSE_MAX_CALLS_PER_SECOND = 5

# ============================================================================
# VALUE SCORING
# ============================================================================

VALUE_DIMENSIONS = ("epistemic", "insight", "practical", "relational", "effort")

# Fact-check penalty: false verdicts above this confidence reduce epistemic/insight
PENALTY_FALSE_CONFIDENCE = 0.7
PENALTY_PER_FALSE_CLAIM = 0.25
PENALTY_MAX = 0.8
PENALTY_INSIGHT_SHARE = 0.3

# Epistemic ceiling when nothing was verified
UNVERIFIED_EPISTEMIC_CAP = 0.35

NON_FINITE_DIMENSION_FALLBACK = 0.5
DEFAULT_SCORE_CONFIDENCE = 0.7

RISK_DOMAIN_WEIGHTS = {"high": 2.0, "medium": 1.5, "low": 1.0}

WEIGHTS_EPISTEMIC_FIRST = {"epistemic": 0.35, "insight": 0.25, "practical": 0.2, "relational": 0.1, "effort": 0.1}
WEIGHTS_INSIGHT_FIRST = {"epistemic": 0.25, "insight": 0.35, "practical": 0.2, "relational": 0.1, "effort": 0.1}
WEIGHTS_PRACTICAL_FIRST = {"epistemic": 0.2, "insight": 0.25, "practical": 0.35, "relational": 0.1, "effort": 0.1}
WEIGHTS_BALANCED = {"epistemic": 0.3, "insight": 0.25, "practical": 0.2, "relational": 0.15, "effort": 0.1}

DOMAIN_WEIGHT_PROFILES = {
    "health": WEIGHTS_EPISTEMIC_FIRST,
    "politics": WEIGHTS_EPISTEMIC_FIRST,
    "technology": WEIGHTS_INSIGHT_FIRST,
    "startups": WEIGHTS_INSIGHT_FIRST,
    "ai": WEIGHTS_INSIGHT_FIRST,
    "productivity": WEIGHTS_PRACTICAL_FIRST,
    "design": WEIGHTS_PRACTICAL_FIRST,
}

PROMPT_MAX_LENGTH = 2000
SCORING_TEXT_PREVIEW = 700

# ============================================================================
# ENGAGEMENT PREDICTION
# ============================================================================

ENGAGEMENT_BASE = {"views": 100, "bookmarks": 5, "reshares": 3, "replies": 10}
ENGAGEMENT_FALSE_MULTIPLIERS = {"views": 0.5, "bookmarks": 0.3, "reshares": 0.3, "replies": 0.6}
ENGAGEMENT_BLOCKED_MULTIPLIERS = {"views": 0.2, "bookmarks": 0.1, "reshares": 0.1, "replies": 0.3}
ENGAGEMENT_BLOCKED_CONFIDENCE = 0.9
