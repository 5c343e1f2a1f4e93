"""
Text cleaning helpers for claims and for user text embedded in prompts.
"""

import re
from typing import List

from content_worker.constants.config import PROMPT_MAX_LENGTH

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")
_CODE_BLOCK = re.compile(r"```[\s\S]*?```")
_INLINE_CODE = re.compile(r"`[^`]+`")
_SPECIAL_TOKENS = re.compile(r"<\|[^|]+\|>|\[/?INST\]", re.IGNORECASE)

# (patterns, replacement) applied in order
_INJECTION_RULES = (
    (
        (
            r"ignore\s+(all\s+)?(previous|prior|above|earlier)\s+(instructions?|prompts?|directions?|rules?)",
            r"disregard\s+(all\s+)?(previous|prior|above|earlier)\s+(instructions?|prompts?|directions?)",
            r"forget\s+(all\s+)?(previous|prior|above|earlier)\s+(instructions?|prompts?)",
            r"override\s+(all\s+)?(previous|prior|above|earlier)\s+(instructions?|prompts?)",
            r"system\s*:\s*ignore",
            r"you\s+are\s+now",
            r"from\s+now\s+on",
            r"new\s+instructions?\s*:",
        ),
        "[instruction removed]",
    ),
    (
        (
            r"act\s+as\s+(if\s+you\s+are\s+)?(a|an)\s+[^.]+[.,;]",
            r"pretend\s+(to\s+be|that\s+you\s+are)\s+(a|an)\s+[^.]+",
            r"role\s*:\s*[^\n]+",
            r"persona\s*:\s*[^\n]+",
        ),
        "[role instruction removed]",
    ),
    (
        (
            r"output\s+(format|style|mode)\s*:\s*[^\n]+",
            r"respond\s+(in|as|with)\s+(the\s+following|this|json|xml|markdown|html)",
            r"use\s+(the\s+following|this)\s+(format|structure|template)",
            r"return\s+[^.]+\s+instead",
        ),
        "[format instruction removed]",
    ),
    (
        (
            r"(-{3,}|={3,}|#{3,})\s*new\s+(instruction|prompt|context|task)",
            r"\[(BEGIN|END)\s+(INSTRUCTION|PROMPT)\]",
        ),
        "[delimiter removed]",
    ),
)
_COMPILED_RULES = tuple(
    (tuple(re.compile(p, re.IGNORECASE) for p in patterns), replacement) for patterns, replacement in _INJECTION_RULES
)
_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")


def normalize_text(text: str) -> str:
    """Collapse runs of whitespace into single spaces."""
    if not isinstance(text, str):
        return ""
    return re.sub(r"\s+", " ", text).strip()


def clean_statement(statement: str) -> str:
    """
    Clean a claim statement before it is stored.

    Drops markdown artifacts and repeated dots; whitespace is normalized.
    """
    if not statement:
        return ""
    text = normalize_text(statement)
    text = re.sub(r"[*_`#~]", "", text)
    text = re.sub(r"\.{2,}", ".", text)
    return text.strip()


def sanitize_for_prompt(text: str, max_length: int = PROMPT_MAX_LENGTH) -> str:
    """
    Make user-authored text safe to embed in an LLM prompt.

    Removes control characters, code and model special tokens, replaces
    instruction/role/format/delimiter injection phrases with a marker,
    truncates to `max_length` and collapses whitespace.
    """
    if not text:
        return ""
    cleaned = _CONTROL_CHARS.sub("", text)
    cleaned = _CODE_BLOCK.sub("[code block removed]", cleaned)
    cleaned = _INLINE_CODE.sub("[code removed]", cleaned)
    cleaned = _SPECIAL_TOKENS.sub("", cleaned)
    for patterns, replacement in _COMPILED_RULES:
        for pattern in patterns:
            cleaned = pattern.sub(replacement, cleaned)

    if len(cleaned) > max_length:
        cleaned = cleaned[:max_length] + " [truncated]"
    return normalize_text(cleaned)


def extract_sentences(text: str, min_length: int = 1) -> List[str]:
    """Split on sentence-ending punctuation and keep sentences of at least `min_length` chars."""
    if not text:
        return []
    sentences = _SENTENCE_SPLIT.split(text)
    return [s.strip() for s in sentences if len(s.strip()) >= min_length]
