"""
LLM prompts and JSON schema hints for the content value pipeline.
Centralized so every stage sends the same instructions to the completion service.
"""

# ============================================================================
# PRE-CHECK
# ============================================================================

PRECHECK_SYSTEM_PROMPT = """You are a content classification agent. Analyze text and decide if it contains factual claims that need verification.

Output JSON with:
- needsFactCheck: boolean (true if content has verifiable claims)
- confidence: number 0-1 (how confident you are)
- reasoning: string (brief explanation)
- contentType: one of "factual", "news", "opinion", "experience", "question", "humor", "other"

CLASSIFY AS NEEDS FACT-CHECK (needsFactCheck=true):
- Statistics, numbers, percentages
- Claims about public figures, companies, events
- Health/medical claims
- Financial claims
- Scientific claims
- News-like assertions
- Claims citing "studies", "experts", "research"

CLASSIFY AS NO FACT-CHECK NEEDED (needsFactCheck=false):
- Pure opinions ("I think...", "In my opinion...")
- Personal experiences ("I went to...", "My day was...")
- Questions without embedded claims
- Jokes, memes, humor
- Greetings, small talk
- Emotional expressions

When uncertain, lean toward needsFactCheck=true (better to verify than miss)."""

PRECHECK_SCHEMA = {
    "type": "object",
    "properties": {
        "needsFactCheck": {"type": "boolean"},
        "confidence": {"type": "number"},
        "reasoning": {"type": "string"},
        "contentType": {
            "type": "string",
            "enum": ["factual", "news", "opinion", "experience", "question", "humor", "other"],
        },
    },
    "required": ["needsFactCheck", "confidence", "contentType"],
}

# ============================================================================
# CLAIM EXTRACTION
# ============================================================================

CLAIM_EXTRACTION_SYSTEM_PROMPT = """You are a fact-focused claim extraction agent for a social platform.
Extract verifiable claims from the provided post. Split complex posts into atomic claims.

Rules:
- Keep each claim under 240 characters.
- Label each claim as fact, opinion, or experience.
- Detect the domain (health, finance, politics, technology, science, society, general).
- Assign risk level (low, medium, high) based on potential harm if incorrect.
- Estimate confidence 0-1 for how clear and verifiable the claim is.
- Provide any cited evidence snippets if mentioned (optional).
- If an image is provided, read ALL text in the image (including overlays, captions, memes, infographics).
- Extract claims from both the post text AND any text visible in the image.
- NEVER return an empty claims list when input text (or image text) contains any statement.
- If uncertain, return a single claim that mirrors the input text with low confidence.
- If the content is a denial or controversy (e.g., "X is a scam"), still treat it as a claim."""

CLAIM_EXTRACTION_STRICT_SUFFIX = (
    '\n\nIMPORTANT: Every claim must have a non-empty "text" field. Do not return empty strings.'
)

EVIDENCE_ITEM_SCHEMA = {
    "type": "object",
    "properties": {
        "source": {"type": "string"},
        "url": {"type": "string"},
        "snippet": {"type": "string"},
        "quality": {"type": "number"},
    },
    "required": ["source", "snippet", "quality"],
}

CLAIM_EXTRACTION_SCHEMA = {
    "type": "object",
    "properties": {
        "claims": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "id": {"type": "string"},
                    "text": {"type": "string"},
                    "type": {"type": "string", "enum": ["fact", "opinion", "experience"]},
                    "domain": {
                        "type": "string",
                        "enum": ["health", "finance", "politics", "technology", "science", "society", "general"],
                    },
                    "riskLevel": {"type": "string", "enum": ["low", "medium", "high"]},
                    "confidence": {"type": "number"},
                    "evidence": {"type": "array", "items": EVIDENCE_ITEM_SCHEMA},
                },
                "required": ["text", "type", "domain", "riskLevel", "confidence"],
            },
        }
    },
    "required": ["claims"],
}

# ============================================================================
# CLAIM VERIFICATION
# ============================================================================

FACT_CHECK_SYSTEM_PROMPT = (
    "You are a rigorous fact-checking agent. Always cite credible sources. Avoid speculation. "
    "Make a definitive verdict: "
    '"true" if the claim is supported by credible sources (confidence 0.7+); '
    '"false" if the claim is contradicted by credible sources (confidence 0.7+); '
    '"mixed" if sources conflict or only partially support it (confidence 0.6+); '
    '"unknown" ONLY if no relevant information is available (confidence 0.3-0.5). '
    "Return ONLY JSON with verdict, confidence, evidence (with URLs) and caveats."
)

FACT_CHECK_SCHEMA = {
    "type": "object",
    "properties": {
        "verdict": {"type": "string", "enum": ["true", "false", "mixed", "unknown"]},
        "confidence": {"type": "number"},
        "evidence": {"type": "array", "items": EVIDENCE_ITEM_SCHEMA},
        "caveats": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["verdict", "confidence"],
}

# ============================================================================
# VALUE SCORING
# ============================================================================

VALUE_SCORING_SYSTEM_PROMPT = "You are a value scoring agent for a social network."

VALUE_SCORING_PROMPT = """You are scoring post value for a social network.

Dimensions (0-1 each):
- Epistemic: factual rigor and correctness.
- Insight: novelty, synthesis, non-obvious perspective.
- Practical: actionable guidance or clear takeaways.
- Relational: healthy discourse, empathy, constructive tone.
- Effort: depth of work, sourcing, structure.

Input summary:
{summary}

Instructions:
- Base scores on provided evidence only.
- Reward posts with true/high-confidence claims.
- Penalize misinformation (false verdicts or missing evidence).
- Practical value depends on concrete steps or useful tips.
- Relational value depends on civility and cross-perspective markers.
- Effort considers text length, number of claims, and clarity indicators.
- Return JSON matching schema."""

VALUE_SCHEMA = {
    "type": "object",
    "properties": {
        "scores": {
            "type": "object",
            "properties": {
                "epistemic": {"type": "number"},
                "insight": {"type": "number"},
                "practical": {"type": "number"},
                "relational": {"type": "number"},
                "effort": {"type": "number"},
            },
            "required": ["epistemic", "insight", "practical", "relational", "effort"],
        },
        "drivers": {"type": "array", "items": {"type": "string"}},
        "confidence": {"type": "number"},
    },
    "required": ["scores", "confidence"],
}
